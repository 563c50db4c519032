# epubkit/src/epubkit/cli.py
"""
Logique pour le mode ligne de commande.

Lit un livre, affiche un résumé et le réécrit éventuellement dans la
version EPUB demandée.
"""

import logging
from typing import List, Optional, Tuple

from .config import DEFAULT_VERSION
from .core.epub.reader import EpubReader
from .core.epub.writer import EpubWriter
from .core.errors import StructuralError
from .core.models import Book
from .core.processors import (
    BookProcessorPipeline,
    CoverPageBookProcessor,
    LanguageDetectionBookProcessor,
)

logger = logging.getLogger(__name__)


def cli_read_book(epub_path: str) -> Tuple[Book, List[StructuralError]]:
    """
    Lit un fichier EPUB en mode CLI.

    Args:
        epub_path: Chemin vers le fichier EPUB

    Returns:
        (livre lu, erreurs structurelles rencontrées)
    """
    logger.info("CLI mode - reading: %s", epub_path)
    reader = EpubReader()
    book = reader.read(epub_path)
    logger.info("CLI mode - read %s with %d errors", epub_path, len(reader.errors))
    return book, reader.errors


def cli_convert_book(book: Book, output_path: str, version: str = DEFAULT_VERSION) -> List[StructuralError]:
    """
    Réécrit un livre en complétant langue et page de couverture si besoin.

    Args:
        book: Livre à écrire
        output_path: Fichier EPUB de sortie
        version: Version EPUB écrite ('2.0' ou '3.0')

    Returns:
        Erreurs structurelles de l'écriture
    """
    pipeline = BookProcessorPipeline([LanguageDetectionBookProcessor(), CoverPageBookProcessor()])
    writer = EpubWriter(version, pipeline)
    writer.write(book, output_path)
    logger.info("CLI mode - wrote %s (EPUB %s)", output_path, version)
    return writer.errors


def print_book_summary(book: Book, errors: Optional[List[StructuralError]] = None):
    """Affiche un résumé du livre lu."""
    errors = errors or []
    meta = book.metadata

    print("\n=== Résumé du livre ===")
    print(f"Titre: {book.title or '(sans titre)'}")
    print(f"Version: {book.version or 'inconnue'}")
    if meta.authors:
        print(f"Auteurs: {', '.join(author.display_name for author in meta.authors)}")
    if meta.language:
        print(f"Langue: {meta.language}")
    for identifier in meta.identifiers:
        scheme = f" ({identifier.scheme})" if identifier.scheme else ""
        print(f"Identifiant: {identifier.value}{scheme}")
    isbn = meta.isbn
    if isbn:
        print(f"ISBN: {isbn}")

    print(f"Ressources: {len(book.resources)}")
    print(f"Spine: {len(book.spine)} entrées")
    print(f"Table des matières: {book.table_of_contents.size()} entrées")
    if book.cover_image is not None:
        print(f"Couverture: {book.cover_image.href}")

    print(f"Erreurs: {len(errors)}")
    for error in errors:
        print(f"  - {error.message}")
