# epubkit/src/epubkit/core/epub/ncx.py
"""
Codec NCX (table des matières du dialecte EPUB 2).

Écrit et lit le document http://www.daisy.org/z3986/2005/ncx/.
Ce dialecte est hiérarchique: les entrées enfants deviennent des
navPoint imbriqués.
"""

import logging
from typing import List, Optional, Tuple

from lxml import etree

from ...config import GENERATOR, NAMESPACE_NCX, NCX_HREF, NCX_ID
from .. import media_types
from ..errors import EpubError, EpubFormatError, PathEscapeError, StructuralError, record_error
from ..models import Book, Resource, TableOfContents, TOCReference
from ..references import FRAGMENT_SEPARATOR, quote_href, relative_href, resolve_reference
from .xml_utils import (
    child_elements,
    first_child,
    first_descendant,
    get_attribute,
    parse_xml,
    qname,
    text_content,
    to_bytes,
)

logger = logging.getLogger(__name__)

NCX_VERSION = "2005-1"


def _ncx(tag: str) -> str:
    return qname(NAMESPACE_NCX, tag)


# --- Résolution partagée avec le lecteur de navigation XHTML ---


def resolve_toc_target(
    book: Book,
    base_href: str,
    raw_reference: Optional[str],
    errors: Optional[List[StructuralError]] = None,
) -> Tuple[Optional[str], str]:
    """
    Résout la cible d'une entrée de table des matières.

    Args:
        book: Livre dont l'ensemble de ressources sert à la recherche
        base_href: Href du document de navigation
        raw_reference: Référence brute (attribut src ou href)
        errors: Liste collectrice des erreurs structurelles

    Returns:
        (href de la ressource ou None si introuvable, fragment)
    """
    if not raw_reference:
        record_error(errors, logger, "Table of contents entry without reference", href=base_href)
        return None, ""

    try:
        href, fragment = resolve_reference(base_href, raw_reference)
    except PathEscapeError as e:
        record_error(errors, logger, str(e), href=raw_reference)
        return None, ""

    if book.resources.get_by_href(href) is None:
        record_error(
            errors, logger, f"Resource with href {href} in table of contents not found", href=href
        )
        return None, fragment
    return href, fragment


# --- Écriture ---


def _add_meta(head, name: str, content: str):
    etree.SubElement(head, _ncx("meta"), name=name, content=content)


def _write_nav_points(parent, references, book, ncx_href, play_order, errors) -> int:
    for reference in references:
        resource = book.resources.get_by_href(reference.resource_href)
        if resource is None:
            # Entrée sans cible: ses enfants remontent d'un niveau
            if reference.resource_href:
                record_error(
                    errors,
                    logger,
                    f"TOC entry '{reference.title}' points to unknown resource {reference.resource_href}",
                    href=reference.resource_href,
                )
            play_order = _write_nav_points(
                parent, reference.children, book, ncx_href, play_order, errors
            )
            continue

        play_order += 1
        nav_point = etree.SubElement(
            parent,
            _ncx("navPoint"),
            {"id": f"navPoint-{play_order}", "playOrder": str(play_order), "class": "chapter"},
        )
        nav_label = etree.SubElement(nav_point, _ncx("navLabel"))
        etree.SubElement(nav_label, _ncx("text")).text = reference.title or ""

        src = quote_href(relative_href(ncx_href, resource.href))
        if reference.fragment:
            src = f"{src}{FRAGMENT_SEPARATOR}{reference.fragment}"
        etree.SubElement(nav_point, _ncx("content"), src=src)

        play_order = _write_nav_points(
            nav_point, reference.children, book, ncx_href, play_order, errors
        )
    return play_order


def write_ncx(
    book: Book,
    ncx_href: str = NCX_HREF,
    errors: Optional[List[StructuralError]] = None,
) -> bytes:
    """
    Sérialise la table des matières du livre au format NCX.

    Args:
        book: Livre à sérialiser
        ncx_href: Emplacement du document NCX (pour calculer les chemins relatifs)
        errors: Liste collectrice des erreurs structurelles

    Returns:
        Document NCX encodé en UTF-8
    """
    root = etree.Element(_ncx("ncx"), nsmap={None: NAMESPACE_NCX}, version=NCX_VERSION)

    head = etree.SubElement(root, _ncx("head"))
    identifier = book.metadata.primary_identifier
    _add_meta(head, "dtb:uid", identifier.value if identifier else "")
    _add_meta(head, "dtb:generator", GENERATOR)
    _add_meta(head, "dtb:depth", str(max(book.table_of_contents.calculate_depth(), 1)))
    _add_meta(head, "dtb:totalPageCount", "0")
    _add_meta(head, "dtb:maxPageNumber", "0")

    doc_title = etree.SubElement(root, _ncx("docTitle"))
    etree.SubElement(doc_title, _ncx("text")).text = book.title

    for author in book.metadata.authors:
        doc_author = etree.SubElement(root, _ncx("docAuthor"))
        etree.SubElement(doc_author, _ncx("text")).text = author.file_as

    nav_map = etree.SubElement(root, _ncx("navMap"))
    _write_nav_points(nav_map, book.table_of_contents.references, book, ncx_href, 0, errors)

    return to_bytes(root)


def create_ncx_resource(
    book: Book,
    errors: Optional[List[StructuralError]] = None,
    ncx_href: str = NCX_HREF,
) -> Resource:
    """Crée la ressource NCX (id 'ncx', href 'toc.ncx' par défaut) du livre."""
    data = write_ncx(book, ncx_href, errors)
    return Resource(id=NCX_ID, href=ncx_href, media_type=media_types.NCX, data=data)


# --- Lecture ---


def _read_nav_label(nav_point) -> str:
    nav_label = first_child(nav_point, "navLabel")
    return text_content(first_child(nav_label, "text"))


def _read_toc_references(parent, book, ncx_href, errors) -> List[TOCReference]:
    result = []
    for nav_point in child_elements(parent, "navPoint"):
        result.append(_read_toc_reference(nav_point, book, ncx_href, errors))
    return result


def _read_toc_reference(nav_point, book, ncx_href, errors) -> TOCReference:
    label = _read_nav_label(nav_point)
    src = get_attribute(first_child(nav_point, "content"), "src")
    href, fragment = resolve_toc_target(book, ncx_href, src, errors)
    reference = TOCReference(label, href, fragment)
    reference.children = _read_toc_references(nav_point, book, ncx_href, errors)
    return reference


def read_ncx(book: Book, errors: Optional[List[StructuralError]] = None) -> TableOfContents:
    """
    Construit la table des matières depuis la ressource NCX du livre.

    Un document mal formé produit une table des matières vide sans
    interrompre la lecture du livre.

    Args:
        book: Livre dont spine.toc_resource_id désigne le NCX
        errors: Liste collectrice des erreurs structurelles

    Returns:
        Table des matières (vide en cas d'échec)
    """
    ncx_resource = book.toc_resource
    if ncx_resource is None:
        logger.error("Book does not contain a table of contents file")
        return TableOfContents()

    try:
        root = parse_xml(ncx_resource.get_data())
        nav_map = first_descendant(root, "navMap")
        if nav_map is None:
            raise EpubFormatError(f"No navMap element in {ncx_resource.href}")
        references = _read_toc_references(nav_map, book, ncx_resource.href, errors)
    except EpubError:
        logger.exception("Could not read NCX document %s", ncx_resource.href)
        return TableOfContents()

    logger.info("Read %d top-level TOC entries from %s", len(references), ncx_resource.href)
    return TableOfContents(references)
