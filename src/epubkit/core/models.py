# epubkit/src/epubkit/core/models.py
"""
Modèle en mémoire d'un livre EPUB.

L'ensemble des ressources (Resources) est le seul propriétaire des
ressources. Spine, guide, table des matières et couverture n'en gardent
que des références (id ou href) résolues via book.resources.
"""

import logging
import posixpath
import re
import uuid
from dataclasses import dataclass, field
from typing import BinaryIO, Callable, Dict, Iterator, List, Optional, Tuple

from isbnlib import canonical, is_isbn10, is_isbn13

from ..config import CHARACTER_ENCODING, ISBN_RE
from . import media_types
from .errors import ResourceUnavailableError
from .media_types import MediaType
from .references import FRAGMENT_SEPARATOR, normalize_href, split_fragment
from .relators import Relator

logger = logging.getLogger(__name__)


# --- Ressources ---


@dataclass(eq=False)
class Resource:
    """
    Fichier du conteneur (document XHTML, image, feuille de style...).

    Le contenu est fourni soit directement (data), soit par un flux
    réouvrable (opener). Le flux est ouvert au plus une fois: le contenu
    lu est ensuite conservé.
    """

    id: Optional[str] = None
    href: Optional[str] = None
    media_type: Optional[MediaType] = None
    data: Optional[bytes] = None
    opener: Optional[Callable[[], BinaryIO]] = field(default=None, repr=False)
    input_encoding: str = CHARACTER_ENCODING
    title: Optional[str] = None
    properties: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.media_type is None and self.href:
            self.media_type = media_types.determine_media_type(self.href)

    def get_data(self) -> bytes:
        """
        Retourne le contenu binaire de la ressource.

        Raises:
            ResourceUnavailableError: si ni data ni opener ne sont définis
            OSError: si le flux ne peut pas être lu
        """
        if self.data is None:
            if self.opener is None:
                raise ResourceUnavailableError(f"Resource {self.href} has no content")
            with self.opener() as stream:
                self.data = stream.read()
            self.opener = None
        return self.data

    def set_data(self, data: bytes):
        self.data = data
        self.opener = None

    def get_text(self) -> str:
        return self.get_data().decode(self.input_encoding or CHARACTER_ENCODING, errors="replace")

    @property
    def size(self) -> int:
        return len(self.get_data())

    def __repr__(self) -> str:
        media = self.media_type.name if self.media_type else None
        return f"Resource(id={self.id!r}, href={self.href!r}, media_type={media!r})"


class Resources:
    """Ensemble des ressources du livre, indexé par href (ordre d'insertion conservé)."""

    def __init__(self):
        self._by_href: Dict[str, Resource] = {}
        self._last_id = 1

    def add(self, resource: Resource) -> Resource:
        """
        Ajoute (ou remplace) une ressource.

        Le href est normalisé; un href qui sort du conteneur lève
        PathEscapeError. L'id n'est pas modifié: voir Book.add_resource.
        """
        if resource.href:
            resource.href = normalize_href(resource.href)
        self._by_href[resource.href or ""] = resource
        return resource

    def remove(self, href: Optional[str]) -> Optional[Resource]:
        if href is None:
            return None
        if href in self._by_href:
            return self._by_href.pop(href)
        path, _ = split_fragment(href)
        return self._by_href.pop(path, None)

    def get_by_href(self, href: Optional[str]) -> Optional[Resource]:
        """Retrouve une ressource par href (le fragment est ignoré, sauf si le href exact existe)."""
        if not href:
            return None
        if href in self._by_href:
            return self._by_href[href]
        path, _ = split_fragment(href)
        return self._by_href.get(path)

    def get_by_id(self, resource_id: Optional[str]) -> Optional[Resource]:
        if not resource_id:
            return None
        for resource in self._by_href.values():
            if resource.id == resource_id:
                return resource
        return None

    def get_by_id_or_href(self, value: Optional[str]) -> Optional[Resource]:
        return self.get_by_id(value) or self.get_by_href(value)

    def contains_by_href(self, href: Optional[str]) -> bool:
        return self.get_by_href(href) is not None

    def contains_id(self, resource_id: Optional[str]) -> bool:
        return self.get_by_id(resource_id) is not None

    def create_unique_id(self, resource: Resource) -> str:
        """
        Génère un id unique pour une ressource, dérivé de son nom de fichier.

        Les ids XML ne peuvent pas commencer par un chiffre: on préfixe alors
        par 'x'. En cas de collision on bascule sur 'item_<n>'.
        """
        candidate = None
        if resource.href:
            stem = posixpath.splitext(posixpath.basename(resource.href))[0]
            stem = re.sub(r"[^\w.-]", "_", stem)
            if stem:
                candidate = stem if not stem[0].isdigit() else "x" + stem
        if candidate and not self.contains_id(candidate):
            return candidate

        while self.contains_id(f"item_{self._last_id}"):
            self._last_id += 1
        return f"item_{self._last_id}"

    def get_all(self) -> List[Resource]:
        return list(self._by_href.values())

    def get_resources_by_media_type(self, media_type: MediaType) -> List[Resource]:
        return [r for r in self._by_href.values() if r.media_type == media_type]

    def __len__(self) -> int:
        return len(self._by_href)

    def __iter__(self) -> Iterator[Resource]:
        return iter(list(self._by_href.values()))


# --- Spine et guide ---


@dataclass
class SpineReference:
    """Entrée de l'ordre de lecture."""

    resource_id: str
    linear: bool = True


class Spine:
    """Ordre de lecture des ressources (par id) et ressource de table des matières."""

    def __init__(self, references: Optional[List[SpineReference]] = None):
        self.references: List[SpineReference] = list(references or [])
        self.toc_resource_id: Optional[str] = None

    def add_reference(self, reference: SpineReference) -> SpineReference:
        self.references.append(reference)
        return reference

    def add_resource(self, resource: Resource, linear: bool = True) -> SpineReference:
        return self.add_reference(SpineReference(resource.id, linear))

    def find_first_resource_by_id(self, resource_id: Optional[str]) -> int:
        """Position de la première entrée pointant sur resource_id, -1 si absente."""
        for index, reference in enumerate(self.references):
            if reference.resource_id == resource_id:
                return index
        return -1

    def resource_ids(self) -> List[str]:
        return [reference.resource_id for reference in self.references]

    def is_empty(self) -> bool:
        return not self.references

    def __len__(self) -> int:
        return len(self.references)


@dataclass
class GuideReference:
    """Repère sémantique du guide (dialecte EPUB 2)."""

    COVER = "cover"
    TITLE_PAGE = "title-page"
    TOC = "toc"
    INDEX = "index"
    GLOSSARY = "glossary"
    ACKNOWLEDGEMENTS = "acknowledgements"
    BIBLIOGRAPHY = "bibliography"
    COLOPHON = "colophon"
    COPYRIGHT_PAGE = "copyright-page"
    DEDICATION = "dedication"
    EPIGRAPH = "epigraph"
    FOREWORD = "foreword"
    PREFACE = "preface"
    TEXT = "text"

    type: str
    href: Optional[str]
    fragment: str = ""
    title: Optional[str] = None

    @property
    def complete_href(self) -> Optional[str]:
        if not self.href or not self.fragment:
            return self.href
        return f"{self.href}{FRAGMENT_SEPARATOR}{self.fragment}"


class Guide:
    def __init__(self):
        self.references: List[GuideReference] = []

    def add_reference(self, reference: GuideReference) -> GuideReference:
        self.references.append(reference)
        return reference

    def get_references_by_type(self, reference_type: str) -> List[GuideReference]:
        return [r for r in self.references if r.type.lower() == reference_type.lower()]

    def __len__(self) -> int:
        return len(self.references)


# --- Métadonnées ---


@dataclass
class Identifier:
    """Identifiant du livre; bookid marque l'identifiant principal."""

    UUID = "UUID"
    ISBN = "ISBN"
    URI = "URI"
    URL = "URL"
    DOI = "DOI"

    value: str
    scheme: Optional[str] = None
    bookid: bool = False

    @classmethod
    def create_uuid(cls, bookid: bool = False) -> "Identifier":
        return cls(f"urn:uuid:{uuid.uuid4()}", cls.UUID, bookid)


@dataclass
class Author:
    """Créateur ou contributeur: prénom, nom et un ou plusieurs rôles."""

    first_name: str = ""
    last_name: str = ""
    relators: List[Relator] = field(default_factory=list, compare=False)

    def __post_init__(self):
        if not self.relators:
            self.relators.append(Relator.AUTHOR)

    @classmethod
    def from_display_name(cls, name: str, roles: Optional[List[Relator]] = None) -> "Author":
        """Découpe 'Prénom Nom' sur le dernier espace; un nom seul devient le nom de famille."""
        name = (name or "").strip()
        first, _, last = name.rpartition(" ")
        return cls(first.strip(), last.strip(), list(roles or []))

    @classmethod
    def from_file_as(cls, file_as: str, roles: Optional[List[Relator]] = None) -> "Author":
        """Construit un auteur depuis la forme 'Nom, Prénom'."""
        last, _, first = (file_as or "").partition(",")
        return cls(first.strip(), last.strip(), list(roles or []))

    def add_role_by_code(self, code: str) -> Relator:
        relator = Relator.by_code(code) or Relator.AUTHOR
        self._add_relator(relator)
        return relator

    def add_role_by_name(self, name: str) -> Relator:
        relator = Relator.by_name(name) or Relator.AUTHOR
        self._add_relator(relator)
        return relator

    def _add_relator(self, relator: Relator):
        if relator not in self.relators:
            self.relators.append(relator)

    @property
    def display_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    @property
    def file_as(self) -> str:
        if self.first_name and self.last_name:
            return f"{self.last_name}, {self.first_name}"
        return self.last_name or self.first_name

    def __str__(self) -> str:
        return self.file_as


@dataclass
class Date:
    PUBLICATION = "publication"
    CREATION = "creation"
    MODIFICATION = "modification"

    value: str
    event: Optional[str] = None


@dataclass
class Metadata:
    """Métadonnées descriptives du livre."""

    titles: List[str] = field(default_factory=list)
    identifiers: List[Identifier] = field(default_factory=list)
    authors: List[Author] = field(default_factory=list)
    contributors: List[Author] = field(default_factory=list)
    language: Optional[str] = None
    publishers: List[str] = field(default_factory=list)
    dates: List[Date] = field(default_factory=list)
    subjects: List[str] = field(default_factory=list)
    descriptions: List[str] = field(default_factory=list)
    rights: List[str] = field(default_factory=list)
    types: List[str] = field(default_factory=list)

    @property
    def first_title(self) -> str:
        for title in self.titles:
            if title and title.strip():
                return title
        return ""

    def add_title(self, title: str) -> str:
        self.titles.append(title)
        return title

    def add_author(self, author: Author) -> Author:
        self.authors.append(author)
        return author

    def add_identifier(self, identifier: Identifier) -> Identifier:
        self.identifiers.append(identifier)
        return identifier

    @property
    def primary_identifier(self) -> Optional[Identifier]:
        """Identifiant marqué bookid, sinon le premier."""
        for identifier in self.identifiers:
            if identifier.bookid:
                return identifier
        return self.identifiers[0] if self.identifiers else None

    @property
    def isbn(self) -> Optional[str]:
        """
        ISBN canonique trouvé parmi les identifiants.

        Returns:
            ISBN canonique ou None
        """
        for identifier in self.identifiers:
            match = ISBN_RE.search(identifier.value or "")
            if not match:
                continue
            candidate = match.group(0)
            if is_isbn10(candidate) or is_isbn13(candidate):
                return canonical(candidate)
        return None


# --- Table des matières ---


@dataclass
class TOCReference:
    """
    Entrée de la table des matières.

    resource_href vaut None quand la cible n'a pas pu être résolue: l'entrée
    est conservée pour préserver la structure du document.
    """

    title: str
    resource_href: Optional[str] = None
    fragment: str = ""
    children: List["TOCReference"] = field(default_factory=list)

    @property
    def complete_href(self) -> Optional[str]:
        if not self.resource_href or not self.fragment:
            return self.resource_href
        return f"{self.resource_href}{FRAGMENT_SEPARATOR}{self.fragment}"

    def add_child(self, child: "TOCReference") -> "TOCReference":
        self.children.append(child)
        return child


class TableOfContents:
    """Arbre des entrées de table des matières."""

    def __init__(self, references: Optional[List[TOCReference]] = None):
        self.references: List[TOCReference] = list(references or [])

    def add_toc_reference(self, reference: TOCReference) -> TOCReference:
        self.references.append(reference)
        return reference

    def walk(self) -> Iterator[Tuple[TOCReference, int]]:
        """Parcours en profondeur: (entrée, profondeur à partir de 1)."""

        def _walk(references, depth):
            for reference in references:
                yield reference, depth
                yield from _walk(reference.children, depth + 1)

        return _walk(self.references, 1)

    def size(self) -> int:
        """Nombre total d'entrées, enfants compris."""
        return sum(1 for _ in self.walk())

    def calculate_depth(self) -> int:
        return max((depth for _, depth in self.walk()), default=0)

    def all_unique_resource_hrefs(self) -> List[str]:
        result = []
        for reference, _ in self.walk():
            if reference.resource_href and reference.resource_href not in result:
                result.append(reference.resource_href)
        return result

    def __len__(self) -> int:
        return len(self.references)


# --- Livre ---


class Book:
    """Agrège métadonnées, ressources, spine, guide et table des matières."""

    def __init__(self):
        self.metadata = Metadata()
        self.resources = Resources()
        self.spine = Spine()
        self.guide = Guide()
        self.table_of_contents = TableOfContents()
        self.cover_image_href: Optional[str] = None
        self.cover_page_href: Optional[str] = None
        self.version: Optional[str] = None

    @property
    def title(self) -> str:
        return self.metadata.first_title

    def add_resource(self, resource: Resource) -> Resource:
        """
        Ajoute une ressource en lui attribuant un id unique si besoin.

        Un id déjà porté par une ressource d'un autre href est remplacé par
        un id généré.
        """
        if resource.href:
            resource.href = normalize_href(resource.href)
        if not resource.id or not resource.id.strip():
            resource.id = self.resources.create_unique_id(resource)
        else:
            owner = self.resources.get_by_id(resource.id)
            if owner is not None and owner is not resource and owner.href != resource.href:
                new_id = self.resources.create_unique_id(resource)
                logger.warning("Id %s already used by %s, %s renamed to %s", resource.id, owner.href, resource.href, new_id)
                resource.id = new_id
        return self.resources.add(resource)

    def add_section(
        self,
        title: str,
        resource: Resource,
        parent: Optional[TOCReference] = None,
        fragment: str = "",
    ) -> TOCReference:
        """
        Ajoute un chapitre: ressource, entrée de spine et entrée de table des matières.

        Args:
            title: Titre affiché dans la table des matières
            resource: Document du chapitre
            parent: Entrée parente (None pour une entrée de premier niveau)
            fragment: Ancre optionnelle dans le document

        Returns:
            L'entrée de table des matières créée
        """
        self.add_resource(resource)
        if self.spine.find_first_resource_by_id(resource.id) < 0:
            self.spine.add_resource(resource)
        reference = TOCReference(title, resource.href, fragment)
        if parent is None:
            self.table_of_contents.add_toc_reference(reference)
        else:
            parent.add_child(reference)
        return reference

    def _slot(self, href: Optional[str]) -> Optional[Resource]:
        return self.resources.get_by_href(href)

    @property
    def cover_image(self) -> Optional[Resource]:
        return self._slot(self.cover_image_href)

    @cover_image.setter
    def cover_image(self, resource: Optional[Resource]):
        if resource is not None and not self.resources.contains_by_href(resource.href):
            self.add_resource(resource)
        self.cover_image_href = resource.href if resource else None

    @property
    def cover_page(self) -> Optional[Resource]:
        return self._slot(self.cover_page_href)

    @cover_page.setter
    def cover_page(self, resource: Optional[Resource]):
        if resource is not None and not self.resources.contains_by_href(resource.href):
            self.add_resource(resource)
        self.cover_page_href = resource.href if resource else None

    @property
    def toc_resource(self) -> Optional[Resource]:
        return self.resources.get_by_id(self.spine.toc_resource_id)

    def get_contents(self) -> List[Resource]:
        """Ressources de la spine dans l'ordre de lecture (sans doublons)."""
        result = []
        for resource_id in self.spine.resource_ids():
            resource = self.resources.get_by_id(resource_id)
            if resource is not None and resource not in result:
                result.append(resource)
        return result
