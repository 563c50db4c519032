# epubkit/src/epubkit/core/epub/nav.py
"""
Codec du document de navigation XHTML (dialecte EPUB 3).

L'écrivain ne produit que les entrées de premier niveau: les entrées
enfants ne sont pas écrites. Le lecteur accepte les listes imbriquées.
"""

import logging
from typing import List, Optional

from lxml import etree

from ...config import DEFAULT_LANGUAGE, NAMESPACE_EPUB, NAMESPACE_XHTML, NAV_HREF, NAV_ID, PREFIX_EPUB
from .. import media_types
from ..errors import EpubError, EpubFormatError, StructuralError, record_error
from ..models import Book, Resource, TableOfContents, TOCReference
from ..references import FRAGMENT_SEPARATOR, quote_href, relative_href
from .ncx import resolve_toc_target
from .xml_utils import child_elements, first_child, local_name, parse_xml, qname, text_content, to_bytes

logger = logging.getLogger(__name__)

NAV_PROPERTY = "nav"
XML_LANG = "{http://www.w3.org/XML/1998/namespace}lang"
EPUB_TYPE = qname(NAMESPACE_EPUB, "type")


def _xhtml(tag: str) -> str:
    return qname(NAMESPACE_XHTML, tag)


# --- Écriture ---


def write_nav(
    book: Book,
    nav_href: str = NAV_HREF,
    errors: Optional[List[StructuralError]] = None,
) -> bytes:
    """
    Sérialise la table des matières en document de navigation XHTML.

    Args:
        book: Livre à sérialiser
        nav_href: Emplacement du document (pour calculer les chemins relatifs)
        errors: Liste collectrice des erreurs structurelles

    Returns:
        Document XHTML encodé en UTF-8
    """
    root = etree.Element(_xhtml("html"), nsmap={None: NAMESPACE_XHTML, PREFIX_EPUB: NAMESPACE_EPUB})
    language = book.metadata.language or DEFAULT_LANGUAGE
    root.set("lang", language)
    root.set(XML_LANG, language)

    head = etree.SubElement(root, _xhtml("head"))
    etree.SubElement(head, _xhtml("title")).text = book.title

    body = etree.SubElement(root, _xhtml("body"), {EPUB_TYPE: "frontmatter"})
    nav = etree.SubElement(body, _xhtml("nav"), {EPUB_TYPE: "toc", "id": NAV_ID})
    ordered_list = etree.SubElement(nav, _xhtml("ol"))

    for reference in book.table_of_contents.references:
        resource = book.resources.get_by_href(reference.resource_href)
        if resource is None:
            record_error(
                errors,
                logger,
                f"TOC entry '{reference.title}' has no target resource, not written to nav",
                href=reference.resource_href,
            )
            continue
        href = quote_href(relative_href(nav_href, resource.href))
        if reference.fragment:
            href = f"{href}{FRAGMENT_SEPARATOR}{reference.fragment}"
        item = etree.SubElement(ordered_list, _xhtml("li"))
        etree.SubElement(item, _xhtml("a"), href=href).text = reference.title or ""

    return to_bytes(root, doctype="<!DOCTYPE html>")


def create_nav_resource(
    book: Book,
    errors: Optional[List[StructuralError]] = None,
    nav_href: str = NAV_HREF,
) -> Resource:
    """Crée la ressource de navigation (id 'toc', href 'toc.xhtml' par défaut) du livre."""
    data = write_nav(book, nav_href, errors)
    return Resource(
        id=NAV_ID,
        href=nav_href,
        media_type=media_types.XHTML,
        data=data,
        properties=[NAV_PROPERTY],
    )


# --- Lecture ---


def _is_toc_nav(element) -> bool:
    types = element.get(EPUB_TYPE) or element.get("epub:type") or ""
    return "toc" in types.split()


def _find_toc_nav(root):
    navs = [element for element in root.iter() if local_name(element) == "nav"]
    for nav in navs:
        if _is_toc_nav(nav):
            return nav
    return navs[0] if navs else None


def _read_list(ordered_list, book, nav_href, errors) -> List[TOCReference]:
    result = []
    for item in child_elements(ordered_list, "li"):
        anchor = first_child(item, "a")
        label_element = anchor if anchor is not None else first_child(item, "span")
        label = text_content(label_element)

        if anchor is not None:
            href, fragment = resolve_toc_target(book, nav_href, anchor.get("href"), errors)
        else:
            href, fragment = None, ""

        reference = TOCReference(label, href, fragment)
        sublist = first_child(item, "ol")
        if sublist is not None:
            reference.children = _read_list(sublist, book, nav_href, errors)
        result.append(reference)
    return result


def read_nav(book: Book, errors: Optional[List[StructuralError]] = None) -> TableOfContents:
    """
    Construit la table des matières depuis le document de navigation XHTML.

    Args:
        book: Livre dont spine.toc_resource_id désigne le document de navigation
        errors: Liste collectrice des erreurs structurelles

    Returns:
        Table des matières (vide en cas d'échec)
    """
    nav_resource = book.toc_resource
    if nav_resource is None:
        logger.error("Book does not contain a navigation document")
        return TableOfContents()

    try:
        root = parse_xml(nav_resource.get_data(), recover=True)
        nav = _find_toc_nav(root)
        if nav is None:
            raise EpubFormatError(f"No nav element in {nav_resource.href}")
        references = _read_list(first_child(nav, "ol"), book, nav_resource.href, errors)
    except EpubError:
        logger.exception("Could not read navigation document %s", nav_resource.href)
        return TableOfContents()

    logger.info("Read %d top-level TOC entries from %s", len(references), nav_resource.href)
    return TableOfContents(references)
