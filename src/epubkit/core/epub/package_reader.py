# epubkit/src/epubkit/core/epub/package_reader.py
"""
Lecture du document de paquet OPF.

Responsabilité unique: remplir métadonnées, ressources, spine, guide et
couverture d'un livre depuis le XML du paquet (EPUB 2 ou 3). Un item
invalide est journalisé et ignoré; le reste du manifest est traité.
"""

import logging
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Tuple

from ...config import NAMESPACE_OPF
from .. import media_types
from ..errors import EpubFormatError, PathEscapeError, StructuralError, record_error
from ..models import Author, Book, Date, GuideReference, Identifier, Resource, SpineReference
from ..references import directory_of, resolve_reference
from ..relators import Relator
from .nav import NAV_PROPERTY
from .package_writer import COVER_IMAGE_PROPERTY
from .xml_utils import child_elements, first_child, get_attribute, local_name, parse_xml, text_content

logger = logging.getLogger(__name__)

# (propriété, valeur, schéma) des meta 'refines' indexées par id d'élément
RefinesMap = Dict[str, List[Tuple[str, str, Optional[str]]]]


# --- Helpers ---


def _to_resource_href(package_path: str, raw_href: str) -> Tuple[str, str, str]:
    """
    Résout un href du paquet.

    Returns:
        (chemin dans l'archive, href relatif au dossier du paquet, fragment)
    """
    zip_path, fragment = resolve_reference(package_path, raw_href)
    package_dir = directory_of(package_path)
    if package_dir and zip_path.startswith(package_dir + "/"):
        return zip_path, zip_path[len(package_dir) + 1:], fragment
    if package_dir:
        logger.warning("Resource %s lies outside the package directory", zip_path)
    return zip_path, zip_path, fragment


def _infer_identifier_scheme(value: str) -> Optional[str]:
    lowered = value.lower()
    if lowered.startswith("urn:uuid:"):
        return Identifier.UUID
    if lowered.startswith("urn:isbn:"):
        return Identifier.ISBN
    if lowered.startswith("doi:") or lowered.startswith("urn:doi:"):
        return Identifier.DOI
    if lowered.startswith("http://") or lowered.startswith("https://"):
        return Identifier.URL
    return None


# --- Métadonnées ---


def _read_refines(metadata) -> RefinesMap:
    refines: RefinesMap = defaultdict(list)
    for meta in child_elements(metadata, "meta"):
        target = meta.get("refines")
        prop = meta.get("property")
        if target and prop:
            refines[target.lstrip("#")].append((prop, text_content(meta), meta.get("scheme")))
    return refines


def _refined_values(element, refines: RefinesMap, prop: str) -> List[str]:
    element_id = element.get("id")
    if not element_id:
        return []
    return [value for name, value, _ in refines.get(element_id, []) if name == prop and value]


def _read_author(element, refines: RefinesMap) -> Optional[Author]:
    name = text_content(element)
    file_as = get_attribute(element, "file-as", NAMESPACE_OPF)
    if not file_as:
        file_as = next(iter(_refined_values(element, refines, "file-as")), None)
    if not name and not file_as:
        return None

    codes = []
    role = get_attribute(element, "role", NAMESPACE_OPF)
    if role:
        codes.append(role)
    codes.extend(_refined_values(element, refines, "role"))
    relators = []
    for code in codes:
        relator = Relator.by_code(code) or Relator.by_name(code) or Relator.AUTHOR
        if relator not in relators:
            relators.append(relator)

    if file_as and "," in file_as:
        return Author.from_file_as(file_as, relators)
    return Author.from_display_name(name or file_as, relators)


def _read_metadata(book: Book, metadata, unique_identifier: Optional[str]):
    meta = book.metadata
    refines = _read_refines(metadata)
    language = None

    for element in child_elements(metadata):
        tag = local_name(element)
        text = text_content(element)

        if tag == "identifier":
            if not text:
                logger.warning("Skipping empty dc:identifier")
                continue
            scheme = get_attribute(element, "scheme", NAMESPACE_OPF) or _infer_identifier_scheme(text)
            bookid = bool(unique_identifier) and element.get("id") == unique_identifier
            meta.identifiers.append(Identifier(text, scheme, bookid))
        elif tag == "title" and text:
            meta.titles.append(text)
        elif tag in ("creator", "contributor"):
            author = _read_author(element, refines)
            if author is None:
                logger.warning("Skipping empty dc:%s", tag)
                continue
            target = meta.authors if tag == "creator" else meta.contributors
            target.append(author)
        elif tag == "language" and text and language is None:
            language = text
        elif tag == "publisher" and text:
            meta.publishers.append(text)
        elif tag == "date" and text:
            meta.dates.append(Date(text, get_attribute(element, "event", NAMESPACE_OPF)))
        elif tag == "subject" and text:
            meta.subjects.append(text)
        elif tag == "description" and text:
            meta.descriptions.append(text)
        elif tag == "rights" and text:
            meta.rights.append(text)
        elif tag == "type" and text:
            meta.types.append(text)

    meta.language = language


def _read_cover_meta(metadata) -> Optional[str]:
    for element in child_elements(metadata, "meta"):
        if element.get("name") == "cover":
            return element.get("content")
    return None


# --- Manifest ---


def _read_manifest(book, manifest, package_path, load_resource, errors):
    for item in child_elements(manifest, "item"):
        item_id = (item.get("id") or "").strip()
        raw_href = (item.get("href") or "").strip()
        declared_type = item.get("media-type")

        if not item_id or not raw_href:
            record_error(
                errors,
                logger,
                f"Manifest item without id or href (id: {item_id}, href: {raw_href})",
                resource_id=item_id or None,
                href=raw_href or None,
            )
            continue

        try:
            zip_path, href, _ = _to_resource_href(package_path, raw_href)
        except PathEscapeError as e:
            record_error(errors, logger, str(e), resource_id=item_id, href=raw_href)
            continue

        media_type = media_types.by_name(declared_type) or media_types.determine_media_type(href)
        if media_type is None:
            record_error(
                errors,
                logger,
                f"Unknown media type '{declared_type}' for manifest item {item_id} ({href})",
                resource_id=item_id,
                href=href,
            )
            continue

        data = load_resource(zip_path)
        if data is None:
            record_error(
                errors,
                logger,
                f"Manifest item {item_id} refers to missing archive entry {zip_path}",
                resource_id=item_id,
                href=href,
            )
            continue

        if book.resources.contains_by_href(href):
            logger.warning("Duplicate manifest href %s, keeping item %s", href, item_id)
        properties = (item.get("properties") or "").split()
        book.resources.add(
            Resource(id=item_id, href=href, media_type=media_type, data=data, properties=properties)
        )


# --- Spine et guide ---


def _generate_spine_from_resources(book: Book):
    """Spine de secours: tous les documents XHTML dans l'ordre du manifest."""
    toc_id = book.spine.toc_resource_id
    for resource in book.resources.get_all():
        if resource.media_type == media_types.XHTML and resource.id != toc_id:
            book.spine.add_resource(resource)
    logger.warning("Spine empty, generated %d entries from manifest", len(book.spine))


def _find_toc_resource_id(book: Book, spine, errors) -> Optional[str]:
    toc_id = spine.get("toc") if spine is not None else None
    if toc_id:
        if book.resources.contains_id(toc_id):
            return toc_id
        record_error(errors, logger, f"Spine toc {toc_id} not found in manifest", resource_id=toc_id)

    ncx_resources = book.resources.get_resources_by_media_type(media_types.NCX)
    if ncx_resources:
        return ncx_resources[0].id
    for resource in book.resources.get_all():
        if NAV_PROPERTY in resource.properties:
            return resource.id
    return None


def _read_spine(book: Book, spine, errors):
    if spine is None:
        record_error(errors, logger, "Package document has no spine")
    else:
        for itemref in child_elements(spine, "itemref"):
            idref = (itemref.get("idref") or "").strip()
            if not idref or not book.resources.contains_id(idref):
                record_error(
                    errors,
                    logger,
                    f"Spine itemref {idref!r} does not match a manifest item",
                    resource_id=idref or None,
                )
                continue
            linear = (itemref.get("linear") or "yes").strip().lower() != "no"
            book.spine.add_reference(SpineReference(idref, linear))

    book.spine.toc_resource_id = _find_toc_resource_id(book, spine, errors)
    if book.spine.is_empty():
        _generate_spine_from_resources(book)


def _read_guide(book: Book, guide, package_path, errors):
    for element in child_elements(guide, "reference"):
        reference_type = (element.get("type") or "").strip()
        raw_href = (element.get("href") or "").strip()
        if not reference_type or not raw_href:
            record_error(errors, logger, "Guide reference without type or href", href=raw_href or None)
            continue
        try:
            _, href, fragment = _to_resource_href(package_path, raw_href)
        except PathEscapeError as e:
            record_error(errors, logger, str(e), href=raw_href)
            continue
        if not book.resources.contains_by_href(href):
            record_error(
                errors, logger, f"Guide reference {reference_type} to unknown resource {href}", href=href
            )
            continue
        book.guide.add_reference(GuideReference(reference_type, href, fragment, element.get("title")))


def _read_cover(book: Book, cover_meta: Optional[str]):
    for resource in book.resources.get_all():
        if COVER_IMAGE_PROPERTY in resource.properties:
            book.cover_image_href = resource.href
            break
    else:
        cover_image = book.resources.get_by_id_or_href(cover_meta)
        if cover_image is not None:
            book.cover_image_href = cover_image.href

    cover_references = book.guide.get_references_by_type(GuideReference.COVER)
    if cover_references:
        cover_page = book.resources.get_by_href(cover_references[0].href)
        if cover_page is not None and cover_page.media_type == media_types.XHTML:
            book.cover_page_href = cover_page.href


# --- Document ---


def read_package_document(
    book: Book,
    data: bytes,
    package_path: str,
    load_resource: Callable[[str], Optional[bytes]],
    errors: Optional[List[StructuralError]] = None,
) -> Book:
    """
    Remplit le livre depuis le document de paquet OPF.

    Args:
        book: Livre à remplir
        data: Contenu du document OPF
        package_path: Chemin du document OPF dans l'archive (ex: 'OEBPS/content.opf')
        load_resource: Fonction retournant le contenu d'une entrée de l'archive,
            ou None si l'entrée n'existe pas
        errors: Liste collectrice des erreurs structurelles

    Returns:
        Le livre rempli

    Raises:
        EpubFormatError: si le document n'est pas un paquet OPF
    """
    root = parse_xml(data)
    if local_name(root) != "package":
        raise EpubFormatError(f"{package_path} is not an OPF package document")

    book.version = root.get("version")
    metadata = first_child(root, "metadata")
    if metadata is not None:
        _read_metadata(book, metadata, root.get("unique-identifier"))
    else:
        logger.warning("Package document %s has no metadata", package_path)

    _read_manifest(book, first_child(root, "manifest"), package_path, load_resource, errors)
    _read_spine(book, first_child(root, "spine"), errors)
    _read_guide(book, first_child(root, "guide"), package_path, errors)
    _read_cover(book, _read_cover_meta(metadata) if metadata is not None else None)

    logger.info(
        "Read EPUB %s package: %d resources, %d spine entries",
        book.version,
        len(book.resources),
        len(book.spine),
    )
    return book
