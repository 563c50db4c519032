# epubkit/src/epubkit/core/epub/reader.py
"""
Module de lecture EPUB.

Responsabilité unique: reconstruire un Book depuis un conteneur zip.
Le pointeur META-INF/container.xml est lu en premier, puis le document
de paquet, puis la table des matières (NCX ou navigation XHTML).
"""

import logging
import zipfile
from enum import Enum
from typing import BinaryIO, List, Optional, Union

from ...config import CONTAINER_PATH, MIMETYPE_ENTRY
from .. import media_types
from ..errors import EpubFormatError, StructuralError
from ..models import Book
from .nav import read_nav
from .ncx import read_ncx
from .package_reader import read_package_document
from .xml_utils import child_elements, first_child, parse_xml

logger = logging.getLogger(__name__)


class ReadState(Enum):
    BEGIN = "begin"
    CONTAINER_READ = "container-read"
    PACKAGE_READ = "package-read"
    TOC_READ = "toc-read"
    DONE = "done"


class EpubReader:
    """Lecteur EPUB à usage unique; les erreurs structurelles sont dans self.errors."""

    def __init__(self):
        self.state = ReadState.BEGIN
        self.errors: List[StructuralError] = []

    def _advance(self, state: ReadState):
        logger.debug("EpubReader: %s -> %s", self.state.value, state.value)
        self.state = state

    def read(self, source: Union[str, BinaryIO, zipfile.ZipFile]) -> Book:
        """
        Lit un fichier EPUB.

        Args:
            source: Chemin, fichier binaire ou ZipFile déjà ouvert

        Returns:
            Livre reconstruit (éventuellement dégradé si le paquet est illisible)

        Raises:
            RuntimeError: si le lecteur a déjà servi
            EpubFormatError: si le document de paquet est introuvable
            OSError, zipfile.BadZipFile: si l'archive ne peut pas être lue
        """
        if self.state is not ReadState.BEGIN:
            raise RuntimeError("EpubReader instances are single use")

        if isinstance(source, zipfile.ZipFile):
            return self._read_archive(source)
        with zipfile.ZipFile(source) as archive:
            return self._read_archive(archive)

    def _read_archive(self, archive: zipfile.ZipFile) -> Book:
        book = Book()
        self._check_mimetype(archive)

        package_path = self._find_package_path(archive)
        self._advance(ReadState.CONTAINER_READ)

        if self._read_package(book, archive, package_path):
            self._read_table_of_contents(book)
        self._advance(ReadState.DONE)
        return book

    def _check_mimetype(self, archive: zipfile.ZipFile):
        names = archive.namelist()
        if not names or names[0] != MIMETYPE_ENTRY:
            logger.warning("EPUB archive does not start with a mimetype entry")
            return
        content = archive.read(MIMETYPE_ENTRY).decode("ascii", errors="replace").strip()
        if content != media_types.EPUB.name:
            logger.warning("Unexpected mimetype content: %s", content)

    def _find_package_path(self, archive: zipfile.ZipFile) -> str:
        """
        Retrouve le chemin du document de paquet via META-INF/container.xml.

        À défaut, le premier fichier .opf de l'archive est utilisé.
        """
        try:
            root = parse_xml(archive.read(CONTAINER_PATH))
            rootfiles = list(child_elements(first_child(root, "rootfiles"), "rootfile"))
            for rootfile in rootfiles:
                if rootfile.get("media-type") == media_types.OPF.name and rootfile.get("full-path"):
                    return rootfile.get("full-path")
            for rootfile in rootfiles:
                if rootfile.get("full-path"):
                    return rootfile.get("full-path")
            logger.warning("No rootfile declared in %s", CONTAINER_PATH)
        except KeyError:
            logger.warning("%s not found in archive", CONTAINER_PATH)
        except EpubFormatError:
            logger.exception("Could not parse %s", CONTAINER_PATH)

        for name in archive.namelist():
            if name.lower().endswith(media_types.OPF.default_extension):
                logger.info("Using package document %s found in archive", name)
                return name
        raise EpubFormatError("No package document found in archive")

    def _read_package(self, book: Book, archive: zipfile.ZipFile, package_path: str) -> bool:
        def load_resource(path: str) -> Optional[bytes]:
            try:
                return archive.read(path)
            except KeyError:
                return None

        data = load_resource(package_path)
        if data is None:
            raise EpubFormatError(f"Package document {package_path} not found in archive")

        try:
            read_package_document(book, data, package_path, load_resource, self.errors)
        except EpubFormatError:
            logger.exception("Could not read package document %s", package_path)
            return False
        finally:
            self._advance(ReadState.PACKAGE_READ)
        return True

    def _read_table_of_contents(self, book: Book):
        toc_resource = book.toc_resource
        if toc_resource is None:
            logger.warning("Book has no table of contents resource")
        elif toc_resource.media_type == media_types.NCX:
            book.table_of_contents = read_ncx(book, self.errors)
        else:
            book.table_of_contents = read_nav(book, self.errors)
        self._advance(ReadState.TOC_READ)


def read_epub(source: Union[str, BinaryIO, zipfile.ZipFile]) -> Book:
    """Lit un livre avec un EpubReader neuf."""
    return EpubReader().read(source)


def safe_read_epub(epub_path: str) -> Optional[Book]:
    """
    Lit un fichier EPUB de manière sécurisée.

    Args:
        epub_path: Chemin vers le fichier EPUB

    Returns:
        Objet Book si succès, None sinon
    """
    try:
        return read_epub(epub_path)
    except Exception as e:
        logger.exception("Failed to read %s: %s", epub_path, e)
        return None
