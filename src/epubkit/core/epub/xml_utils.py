# epubkit/src/epubkit/core/epub/xml_utils.py
"""
Utilitaires XML (lxml) partagés par les codecs.
"""

import logging
from typing import Iterator, Optional

from lxml import etree

from ..errors import EpubFormatError

logger = logging.getLogger(__name__)

_STRICT_PARSER = etree.XMLParser(remove_blank_text=True, resolve_entities=False, no_network=True)
_RECOVER_PARSER = etree.XMLParser(recover=True, resolve_entities=False, no_network=True)


def qname(namespace: Optional[str], tag: str) -> str:
    """Nom qualifié au format Clark: '{namespace}tag'."""
    if not namespace:
        return tag
    return "{%s}%s" % (namespace, tag)


def parse_xml(data: bytes, recover: bool = False) -> etree._Element:
    """
    Analyse un document XML.

    Args:
        data: Contenu binaire du document
        recover: Si True, tolère les documents mal formés (HTML approximatif)

    Returns:
        Élément racine

    Raises:
        EpubFormatError: si le document n'est pas du XML exploitable
    """
    parser = _RECOVER_PARSER if recover else _STRICT_PARSER
    try:
        root = etree.fromstring(data, parser=parser)
    except (etree.XMLSyntaxError, ValueError) as e:
        raise EpubFormatError(f"Invalid XML document: {e}") from e
    if root is None:
        raise EpubFormatError("Empty XML document")
    return root


def to_bytes(root: etree._Element, doctype: Optional[str] = None) -> bytes:
    """Sérialise un élément racine en UTF-8 avec déclaration XML."""
    return etree.tostring(
        root, pretty_print=True, encoding="utf-8", xml_declaration=True, doctype=doctype
    )


def local_name(element) -> Optional[str]:
    """Nom local d'un élément, None pour les commentaires et instructions."""
    if not isinstance(element.tag, str):
        return None
    return etree.QName(element).localname


def child_elements(element, name: Optional[str] = None) -> Iterator[etree._Element]:
    """Enfants directs d'un élément, filtrés par nom local (tous espaces de noms)."""
    if element is None:
        return
    for child in element:
        tag = local_name(child)
        if tag is None:
            continue
        if name is None or tag == name:
            yield child


def first_child(element, name: str) -> Optional[etree._Element]:
    return next(child_elements(element, name), None)


def first_descendant(element, name: str) -> Optional[etree._Element]:
    """Premier descendant portant ce nom local, quel que soit l'espace de noms."""
    if element is None:
        return None
    for descendant in element.iter():
        if local_name(descendant) == name:
            return descendant
    return None


def get_attribute(element, name: str, namespace: Optional[str] = None) -> Optional[str]:
    """
    Lit un attribut, avec ou sans espace de noms.

    Certains livres omettent le préfixe 'opf:' sur les attributs: on
    essaie donc la version qualifiée puis la version simple.
    """
    if element is None:
        return None
    if namespace:
        value = element.get(qname(namespace, name))
        if value is not None:
            return value
    return element.get(name)


def text_content(element) -> str:
    if element is None:
        return ""
    return "".join(element.itertext()).strip()


def contains_element(data: bytes, name: str) -> bool:
    """Indique si un document contient un élément de ce nom local (ex: 'script')."""
    try:
        root = parse_xml(data, recover=True)
    except EpubFormatError:
        logger.warning("Could not parse document while looking for <%s>", name)
        return False
    return first_descendant(root, name) is not None
