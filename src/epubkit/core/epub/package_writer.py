# epubkit/src/epubkit/core/epub/package_writer.py
"""
Écriture du document de paquet OPF (metadata, manifest, spine, guide).

Deux variantes: EPUB 2.0 (rôles en attributs opf:, guide, spine@toc) et
EPUB 3.0 (rôles en meta refines, propriétés d'items, pas de guide).
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Set

from lxml import etree

from ...config import (
    BOOK_ID_ID,
    DEFAULT_LANGUAGE,
    EPUB2_VERSION,
    EPUB3_VERSION,
    GENERATOR,
    NAMESPACE_DUBLIN_CORE,
    NAMESPACE_OPF,
    NAV_HREF,
    NAV_ID,
    PREFIX_DUBLIN_CORE,
    PREFIX_OPF,
    SUPPORTED_VERSIONS,
)
from .. import media_types
from ..errors import ResourceUnavailableError, StructuralError, record_error
from ..models import Author, Book, GuideReference, Resource
from ..references import FRAGMENT_SEPARATOR, quote_href
from .nav import NAV_PROPERTY
from .xml_utils import contains_element, qname, to_bytes

logger = logging.getLogger(__name__)

SCRIPTED_PROPERTY = "scripted"
COVER_IMAGE_PROPERTY = "cover-image"
COMPUTED_PROPERTIES = (SCRIPTED_PROPERTY, COVER_IMAGE_PROPERTY, NAV_PROPERTY)
MARC_RELATORS_SCHEME = "marc:relators"

_OPF_NSMAP = {PREFIX_OPF: NAMESPACE_OPF}


def _opf(tag: str) -> str:
    return qname(NAMESPACE_OPF, tag)


def _dc(tag: str) -> str:
    return qname(NAMESPACE_DUBLIN_CORE, tag)


# --- Métadonnées ---


def _add_dc(metadata, tag: str, text: str, nsmap=None):
    element = etree.SubElement(metadata, _dc(tag), nsmap=nsmap)
    element.text = text
    return element


def _add_meta(metadata, text: Optional[str] = None, **attributes):
    element = etree.SubElement(metadata, _opf("meta"), attributes)
    if text is not None:
        element.text = text
    return element


def _write_identifiers(metadata, book: Book, is_epub3: bool):
    primary = book.metadata.primary_identifier
    for identifier in book.metadata.identifiers:
        use_scheme = bool(identifier.scheme) and not is_epub3
        element = _add_dc(
            metadata, "identifier", identifier.value, nsmap=_OPF_NSMAP if use_scheme else None
        )
        if identifier is primary:
            element.set("id", BOOK_ID_ID)
        if use_scheme:
            element.set(_opf("scheme"), identifier.scheme)


def _write_epub2_author(metadata, tag: str, author: Author):
    element = _add_dc(metadata, tag, author.display_name, nsmap=_OPF_NSMAP)
    # opf:role n'accepte qu'un code: le premier rôle est retenu
    element.set(_opf("role"), author.relators[0].code)
    element.set(_opf("file-as"), author.file_as)


def _write_epub3_author(metadata, tag: str, author: Author, element_id: str):
    element = _add_dc(metadata, tag, author.display_name)
    element.set("id", element_id)
    for relator in author.relators:
        _add_meta(
            metadata,
            relator.code,
            refines=f"#{element_id}",
            property="role",
            scheme=MARC_RELATORS_SCHEME,
        )
    _add_meta(metadata, author.file_as, refines=f"#{element_id}", property="file-as")


def _write_dates(metadata, book: Book, is_epub3: bool):
    dates = book.metadata.dates
    if is_epub3:
        # EPUB 3 n'autorise qu'un seul dc:date: la date de publication de préférence
        publication = [d for d in dates if d.event in (None, "", "publication")]
        dates = (publication or dates)[:1]
    for date in dates:
        if is_epub3 or not date.event:
            _add_dc(metadata, "date", date.value)
        else:
            element = _add_dc(metadata, "date", date.value, nsmap=_OPF_NSMAP)
            element.set(_opf("event"), date.event)


def _write_metadata(root, book: Book, is_epub3: bool):
    metadata = etree.SubElement(root, _opf("metadata"), nsmap={PREFIX_DUBLIN_CORE: NAMESPACE_DUBLIN_CORE})
    meta = book.metadata

    _write_identifiers(metadata, book, is_epub3)
    for title in meta.titles:
        _add_dc(metadata, "title", title)

    for index, author in enumerate(meta.authors, start=1):
        if is_epub3:
            _write_epub3_author(metadata, "creator", author, f"creator-{index}")
        else:
            _write_epub2_author(metadata, "creator", author)
    for index, contributor in enumerate(meta.contributors, start=1):
        if is_epub3:
            _write_epub3_author(metadata, "contributor", contributor, f"contributor-{index}")
        else:
            _write_epub2_author(metadata, "contributor", contributor)

    _add_dc(metadata, "language", meta.language or DEFAULT_LANGUAGE)
    for publisher in meta.publishers:
        _add_dc(metadata, "publisher", publisher)
    _write_dates(metadata, book, is_epub3)
    for subject in meta.subjects:
        _add_dc(metadata, "subject", subject)
    for description in meta.descriptions:
        _add_dc(metadata, "description", description)
    for rights in meta.rights:
        _add_dc(metadata, "rights", rights)
    for book_type in meta.types:
        _add_dc(metadata, "type", book_type)

    cover_image = book.cover_image
    if cover_image is not None and cover_image.id:
        _add_meta(metadata, name="cover", content=cover_image.id)
    _add_meta(metadata, name="generator", content=GENERATOR)

    if is_epub3:
        modified = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        _add_meta(metadata, modified, property="dcterms:modified")


# --- Manifest ---


def _is_scripted(resource: Resource) -> bool:
    if resource.media_type != media_types.XHTML:
        return False
    try:
        return contains_element(resource.get_data(), "script")
    except ResourceUnavailableError:
        logger.warning("Could not inspect %s for scripts: no content", resource.href)
        return False


def _item_properties(book: Book, resource: Resource) -> List[str]:
    properties = []
    if _is_scripted(resource):
        properties.append(SCRIPTED_PROPERTY)
    if book.cover_image_href and resource.href == book.cover_image_href:
        properties.append(COVER_IMAGE_PROPERTY)
    if resource.id == book.spine.toc_resource_id and resource.media_type == media_types.XHTML:
        properties.append(NAV_PROPERTY)
    for prop in resource.properties:
        if prop not in COMPUTED_PROPERTIES and prop not in properties:
            properties.append(prop)
    return properties


def _write_item(manifest, book: Book, resource: Resource, is_epub3: bool, errors) -> Optional[str]:
    """
    Écrit un item du manifest.

    Returns:
        L'id écrit, ou None si la ressource a été ignorée
    """
    toc_resource = book.toc_resource
    if (
        resource.media_type == media_types.NCX
        and toc_resource is not None
        and resource is not toc_resource
    ):
        return None

    if not resource.id or not resource.id.strip():
        record_error(
            errors,
            logger,
            f"resource id must not be empty (href: {resource.href}, mediatype: {resource.media_type})",
            href=resource.href,
        )
        return None
    if not resource.href or not resource.href.strip():
        record_error(
            errors,
            logger,
            f"resource href must not be empty (id: {resource.id}, mediatype: {resource.media_type})",
            resource_id=resource.id,
        )
        return None
    if resource.media_type is None:
        record_error(
            errors,
            logger,
            f"resource mediatype must not be empty (id: {resource.id}, href: {resource.href})",
            resource_id=resource.id,
            href=resource.href,
        )
        return None

    item = etree.SubElement(manifest, _opf("item"))
    item.set("id", resource.id)
    item.set("href", quote_href(resource.href))
    item.set("media-type", resource.media_type.name)

    if is_epub3:
        properties = _item_properties(book, resource)
        if properties:
            item.set("properties", " ".join(properties))
    return resource.id


def _write_manifest(root, book: Book, is_epub3: bool, errors) -> Set[str]:
    manifest = etree.SubElement(root, _opf("manifest"))
    written_ids = set()

    resources = sorted(book.resources.get_all(), key=lambda r: (r.id or "").lower())
    for resource in resources:
        if resource.id and resource.id in written_ids:
            record_error(
                errors,
                logger,
                f"Duplicate manifest id {resource.id}, item {resource.href} not written",
                resource_id=resource.id,
                href=resource.href,
            )
            continue
        written_id = _write_item(manifest, book, resource, is_epub3, errors)
        if written_id:
            written_ids.add(written_id)

    toc_resource = book.toc_resource
    has_nav = toc_resource is not None and toc_resource.media_type == media_types.XHTML
    if is_epub3 and not has_nav:
        # Document de navigation absent de l'ensemble des ressources
        nav_id = NAV_ID if NAV_ID not in written_ids else f"{NAV_ID}-nav"
        item = etree.SubElement(manifest, _opf("item"))
        item.set("id", nav_id)
        item.set("properties", NAV_PROPERTY)
        item.set("href", NAV_HREF)
        item.set("media-type", media_types.XHTML.name)
        written_ids.add(nav_id)

    return written_ids


# --- Spine et guide ---


def _write_spine(root, book: Book, written_ids: Set[str], is_epub3: bool, errors):
    spine = etree.SubElement(root, _opf("spine"))

    toc_resource = book.toc_resource
    if toc_resource is not None and toc_resource.media_type == media_types.NCX:
        spine.set("toc", toc_resource.id)
    elif not is_epub3:
        logger.warning("EPUB 2 package written without NCX table of contents")

    cover_page = book.cover_page
    if (
        cover_page is not None
        and cover_page.id in written_ids
        and book.spine.find_first_resource_by_id(cover_page.id) < 0
    ):
        etree.SubElement(spine, _opf("itemref"), idref=cover_page.id, linear="no")

    for reference in book.spine.references:
        if reference.resource_id not in written_ids:
            record_error(
                errors,
                logger,
                f"Spine reference {reference.resource_id} does not match a manifest item",
                resource_id=reference.resource_id,
            )
            continue
        itemref = etree.SubElement(spine, _opf("itemref"), idref=reference.resource_id)
        if not reference.linear:
            itemref.set("linear", "no")


def _guide_references(book: Book) -> List[GuideReference]:
    references = list(book.guide.references)
    cover_page = book.cover_page
    if cover_page is not None and not book.guide.get_references_by_type(GuideReference.COVER):
        references.insert(0, GuideReference(GuideReference.COVER, cover_page.href, title="Cover"))
    return references


def _write_guide(root, book: Book, errors):
    references = _guide_references(book)
    if not references:
        return

    guide = etree.SubElement(root, _opf("guide"))
    for reference in references:
        if not reference.href or not book.resources.contains_by_href(reference.href):
            record_error(
                errors,
                logger,
                f"Guide reference '{reference.type}' points to unknown resource {reference.href}",
                href=reference.href,
            )
            continue
        href = quote_href(reference.href)
        if reference.fragment:
            href = f"{href}{FRAGMENT_SEPARATOR}{reference.fragment}"
        element = etree.SubElement(guide, _opf("reference"), type=reference.type, href=href)
        if reference.title and reference.title.strip():
            element.set("title", reference.title)


# --- Document ---


def write_package_document(
    book: Book,
    version: str = EPUB3_VERSION,
    errors: Optional[List[StructuralError]] = None,
) -> bytes:
    """
    Sérialise le document de paquet OPF du livre.

    Les ressources invalides (id, href ou type de média manquant) sont
    omises du manifest; une erreur est ajoutée à errors pour chacune et
    l'écriture continue.

    Args:
        book: Livre à sérialiser (ressource de table des matières déjà initialisée)
        version: '2.0' ou '3.0'
        errors: Liste collectrice des erreurs structurelles

    Returns:
        Document OPF encodé en UTF-8

    Raises:
        ValueError: si la version n'est pas supportée
    """
    if version not in SUPPORTED_VERSIONS:
        raise ValueError(f"Unsupported EPUB version: {version}")
    is_epub3 = version == EPUB3_VERSION

    root = etree.Element(_opf("package"), nsmap={None: NAMESPACE_OPF})
    root.set("version", version)
    root.set("unique-identifier", BOOK_ID_ID)

    _write_metadata(root, book, is_epub3)
    written_ids = _write_manifest(root, book, is_epub3, errors)
    _write_spine(root, book, written_ids, is_epub3, errors)
    if version == EPUB2_VERSION:
        _write_guide(root, book, errors)

    logger.info("Wrote EPUB %s package document (%d manifest items)", version, len(written_ids))
    return to_bytes(root)
