# epubkit/src/epubkit/core/epub/writer.py
"""
Module d'écriture EPUB.

Responsabilité unique: assembler le conteneur zip dans un ordre fixe:
mimetype, META-INF/container.xml, ressources (table des matières comprise),
document de paquet. Un EpubWriter ne sert qu'une seule fois.
"""

import logging
import posixpath
import zipfile
from enum import Enum
from typing import BinaryIO, List, Optional, Union

from ...config import (
    CONTAINER_PATH,
    CONTENT_DIR,
    DEFAULT_VERSION,
    EPUB2_VERSION,
    MIMETYPE_ENTRY,
    NAV_HREF,
    NCX_HREF,
    NAMESPACE_CONTAINER,
    PACKAGE_DOCUMENT_HREF,
    SUPPORTED_VERSIONS,
)
from .. import media_types
from ..errors import EpubError, ResourceUnavailableError, StructuralError, record_error
from ..models import Book, Identifier, Resource
from ..processors import BookProcessor, IdentityBookProcessor
from .nav import NAV_PROPERTY, create_nav_resource
from .ncx import create_ncx_resource
from .package_writer import write_package_document

logger = logging.getLogger(__name__)

PACKAGE_DOCUMENT_PATH = f"{CONTENT_DIR}/{PACKAGE_DOCUMENT_HREF}"

CONTAINER_XML = (
    '<?xml version="1.0"?>\n'
    f'<container version="1.0" xmlns="{NAMESPACE_CONTAINER}">\n'
    "\t<rootfiles>\n"
    f'\t\t<rootfile full-path="{PACKAGE_DOCUMENT_PATH}" media-type="{media_types.OPF.name}"/>\n'
    "\t</rootfiles>\n"
    "</container>"
)


class WriteState(Enum):
    BEGIN = "begin"
    MIMETYPE_WRITTEN = "mimetype-written"
    CONTAINER_WRITTEN = "container-written"
    TOC_INITIALIZED = "toc-initialized"
    RESOURCES_WRITTEN = "resources-written"
    PACKAGE_WRITTEN = "package-written"
    DONE = "done"


def ensure_identifier(book: Book) -> Identifier:
    """Garantit un identifiant principal (UUID généré si le livre n'en a aucun)."""
    identifier = book.metadata.primary_identifier
    if identifier is None:
        identifier = book.metadata.add_identifier(Identifier.create_uuid(bookid=True))
        logger.info("No identifier found, generated %s", identifier.value)
    return identifier


class EpubWriter:
    """
    Écrivain EPUB à usage unique.

    Exemple:
        writer = EpubWriter(version="2.0")
        writer.write(book, "book.epub")
        print(writer.errors)
    """

    def __init__(self, version: str = DEFAULT_VERSION, book_processor: Optional[BookProcessor] = None):
        if version not in SUPPORTED_VERSIONS:
            raise ValueError(f"Unsupported EPUB version: {version}")
        self.version = version
        self.book_processor = book_processor or IdentityBookProcessor()
        self.state = WriteState.BEGIN
        self.errors: List[StructuralError] = []

    def _advance(self, state: WriteState):
        logger.debug("EpubWriter: %s -> %s", self.state.value, state.value)
        self.state = state

    def write(self, book: Book, out: Union[str, BinaryIO]) -> Book:
        """
        Écrit le livre dans un fichier EPUB.

        Args:
            book: Livre à écrire (modifié par le book processor et par
                l'initialisation de la table des matières)
            out: Chemin ou fichier binaire ouvert en écriture

        Returns:
            Le livre effectivement écrit

        Raises:
            RuntimeError: si l'écrivain a déjà servi
            OSError: en cas d'échec d'écriture de l'archive ou de lecture d'une ressource
        """
        if self.state is not WriteState.BEGIN:
            raise RuntimeError("EpubWriter instances are single use")

        book = self.book_processor.process_book(book)
        ensure_identifier(book)

        with zipfile.ZipFile(out, "w", zipfile.ZIP_DEFLATED) as archive:
            self._write_mimetype(archive)
            self._write_container(archive)
            self._init_toc_resource(book)
            self._write_resources(book, archive)
            self._write_package_document(book, archive)

        self._advance(WriteState.DONE)
        logger.info("Wrote EPUB %s book '%s' (%d errors)", self.version, book.title, len(self.errors))
        return book

    def _write_mimetype(self, archive: zipfile.ZipFile):
        # Entrée non compressée, sans champ extra: signature du conteneur
        info = zipfile.ZipInfo(MIMETYPE_ENTRY)
        info.compress_type = zipfile.ZIP_STORED
        archive.writestr(info, media_types.EPUB.name.encode("ascii"))
        self._advance(WriteState.MIMETYPE_WRITTEN)

    def _write_container(self, archive: zipfile.ZipFile):
        archive.writestr(CONTAINER_PATH, CONTAINER_XML.encode("utf-8"))
        self._advance(WriteState.CONTAINER_WRITTEN)

    def _toc_href(self, book: Book, default_href: str, replaced: Optional[Resource]) -> str:
        """Emplacement de la table des matières générée, sans écraser une autre ressource."""
        occupant = book.resources.get_by_href(default_href)
        if occupant is None or occupant is replaced:
            return default_href
        stem, extension = posixpath.splitext(default_href)
        index = 1
        while book.resources.contains_by_href(f"{stem}-{index}{extension}"):
            index += 1
        href = f"{stem}-{index}{extension}"
        logger.warning("%s already belongs to resource %s, table of contents written to %s", default_href, occupant.id, href)
        return href

    def _init_toc_resource(self, book: Book):
        """Remplace la ressource de table des matières du livre par celle du dialecte écrit."""
        if self.version == EPUB2_VERSION:
            default_href, media_type, create = NCX_HREF, media_types.NCX, create_ncx_resource
        else:
            default_href, media_type, create = NAV_HREF, media_types.XHTML, create_nav_resource

        current = book.toc_resource
        in_spine = current is not None and book.spine.find_first_resource_by_id(current.id) >= 0
        # Un document de navigation lu dans la spine reste une page de contenu
        keep_current = in_spine and current.media_type != media_type
        replaced = None if keep_current else current

        try:
            toc_resource = create(book, self.errors, self._toc_href(book, default_href, replaced))
        except (EpubError, ValueError) as e:
            record_error(self.errors, logger, f"Error writing table of contents: {e}")
            self._advance(WriteState.TOC_INITIALIZED)
            return

        if keep_current:
            if NAV_PROPERTY in current.properties:
                current.properties.remove(NAV_PROPERTY)
        elif current is not None:
            book.resources.remove(current.href)
            if in_spine:
                toc_resource.id = current.id

        if book.resources.contains_id(toc_resource.id):
            toc_resource.id = book.resources.create_unique_id(toc_resource)
        book.resources.add(toc_resource)
        book.spine.toc_resource_id = toc_resource.id
        self._advance(WriteState.TOC_INITIALIZED)

    def _write_resource(self, resource: Resource, archive: zipfile.ZipFile) -> bool:
        if not resource.href:
            logger.debug("Skipping resource without href (id: %s)", resource.id)
            return True
        try:
            data = resource.get_data()
        except ResourceUnavailableError as e:
            record_error(self.errors, logger, str(e), resource_id=resource.id, href=resource.href)
            return False
        archive.writestr(f"{CONTENT_DIR}/{resource.href}", data)
        return True

    def _write_resources(self, book: Book, archive: zipfile.ZipFile):
        for resource in book.resources.get_all():
            if not self._write_resource(resource, archive):
                # Le manifest ne doit pas référencer une entrée absente
                book.resources.remove(resource.href)
        self._advance(WriteState.RESOURCES_WRITTEN)

    def _write_package_document(self, book: Book, archive: zipfile.ZipFile):
        data = write_package_document(book, self.version, self.errors)
        archive.writestr(PACKAGE_DOCUMENT_PATH, data)
        self._advance(WriteState.PACKAGE_WRITTEN)


def write_epub(
    out: Union[str, BinaryIO],
    book: Book,
    version: str = DEFAULT_VERSION,
    book_processor: Optional[BookProcessor] = None,
) -> List[StructuralError]:
    """
    Écrit un livre avec un EpubWriter neuf.

    Returns:
        Liste des erreurs structurelles rencontrées
    """
    writer = EpubWriter(version, book_processor)
    writer.write(book, out)
    return writer.errors
