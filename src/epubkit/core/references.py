# epubkit/src/epubkit/core/references.py
"""
Résolution des références (chemins et fragments).

Responsabilité unique: normaliser les références trouvées dans un document
(manifeste, guide, NCX, navigation XHTML) en un couple (href, fragment)
relatif à la racine des ressources. Tous les lecteurs et écrivains passent
par ce module.
"""

import logging
import posixpath
from typing import Tuple
from urllib.parse import quote, unquote

from .errors import PathEscapeError

logger = logging.getLogger(__name__)

FRAGMENT_SEPARATOR = "#"
PATH_SEPARATOR = "/"


def split_fragment(reference: str) -> Tuple[str, str]:
    """Coupe une référence sur le premier '#': (chemin, fragment)."""
    path, _, fragment = (reference or "").partition(FRAGMENT_SEPARATOR)
    return path, fragment


def directory_of(href: str) -> str:
    """Dossier contenant un href (vide si le href n'a pas de '/')."""
    if not href or PATH_SEPARATOR not in href:
        return ""
    return href.rsplit(PATH_SEPARATOR, 1)[0]


def collapse_path_dots(path: str) -> str:
    """
    Réduit les segments '.' et '..' d'un chemin.

    Chaque '..' supprime le segment réel qui le précède. Les segments vides
    (slash initial, doubles slashs) sont ignorés.

    Args:
        path: Chemin séparé par des '/'

    Returns:
        Chemin relatif normalisé

    Raises:
        PathEscapeError: si un '..' remonte au-dessus de la racine
    """
    segments = []
    for segment in path.split(PATH_SEPARATOR):
        if segment in ("", "."):
            continue
        if segment == "..":
            if not segments:
                raise PathEscapeError(f"Path escapes the container root: {path}")
            segments.pop()
        else:
            segments.append(segment)
    return PATH_SEPARATOR.join(segments)


def normalize_href(href: str) -> str:
    """Normalise un href déjà décodé (sans fragment) en chemin relatif."""
    return collapse_path_dots(href or "")


def resolve_reference(base_href: str, reference: str) -> Tuple[str, str]:
    """
    Résout une référence trouvée dans un document.

    1. Coupe la référence sur le premier '#'
    2. Décode les séquences '%xx' du chemin
    3. Joint le chemin au dossier du document de base
    4. Réduit les segments '.' et '..'

    Une référence réduite à un fragment ('#note') vise le document de base.

    Args:
        base_href: Href du document contenant la référence
        reference: Référence brute (ex: '../images/cover.jpg#frag')

    Returns:
        Couple (href cible, fragment); le fragment est vide s'il est absent

    Raises:
        PathEscapeError: si la référence sort du conteneur
    """
    path, fragment = split_fragment(reference)
    path = unquote(path)
    if not path:
        return normalize_href(base_href), fragment

    directory = directory_of(base_href)
    joined = f"{directory}{PATH_SEPARATOR}{path}" if directory else path
    return collapse_path_dots(joined), fragment


def relative_href(from_href: str, to_href: str) -> str:
    """
    Calcule le chemin de to_href vu depuis le document from_href.

    Inverse de resolve_reference pour la partie chemin.
    """
    start = directory_of(from_href)
    if not start:
        return to_href
    return posixpath.relpath(to_href, start)


def quote_href(href: str) -> str:
    """Encode un href pour l'écrire dans un attribut XML (espaces, accents...)."""
    return quote(href, safe="/")
