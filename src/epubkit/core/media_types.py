# epubkit/src/epubkit/core/media_types.py
"""
Registre des types de médias.

Responsabilité unique: associer extensions de fichiers et noms MIME
déclarés à un ensemble fermé de types canoniques.
"""

import posixpath
from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class MediaType:
    """Type de média immuable (nom canonique, extension par défaut)."""

    name: str
    default_extension: str
    extensions: Tuple[str, ...] = ()

    def __str__(self) -> str:
        return self.name


XHTML = MediaType("application/xhtml+xml", ".xhtml", (".xhtml", ".htm", ".html"))
EPUB = MediaType("application/epub+zip", ".epub", (".epub",))
NCX = MediaType("application/x-dtbncx+xml", ".ncx", (".ncx",))
OPF = MediaType("application/oebps-package+xml", ".opf", (".opf",))

JAVASCRIPT = MediaType("text/javascript", ".js", (".js",))
CSS = MediaType("text/css", ".css", (".css",))

JPG = MediaType("image/jpeg", ".jpg", (".jpg", ".jpeg"))
PNG = MediaType("image/png", ".png", (".png",))
GIF = MediaType("image/gif", ".gif", (".gif",))
SVG = MediaType("image/svg+xml", ".svg", (".svg",))

TTF = MediaType("application/x-truetype-font", ".ttf", (".ttf",))
OPENTYPE = MediaType("application/vnd.ms-opentype", ".otf", (".otf",))
WOFF = MediaType("application/font-woff", ".woff", (".woff",))
WOFF2 = MediaType("font/woff2", ".woff2", (".woff2",))

MP3 = MediaType("audio/mpeg", ".mp3", (".mp3",))
MP4 = MediaType("audio/mp4", ".mp4", (".mp4", ".m4a"))
OGG = MediaType("audio/ogg", ".ogg", (".ogg",))

SMIL = MediaType("application/smil+xml", ".smil", (".smil",))
XPGT = MediaType("application/adobe-page-template+xml", ".xpgt", (".xpgt",))
PLS = MediaType("application/pls+xml", ".pls", (".pls",))
XML = MediaType("application/xml", ".xml", (".xml",))
TXT = MediaType("text/plain", ".txt", (".txt",))

MEDIA_TYPES = (
    XHTML, EPUB, NCX, OPF, JAVASCRIPT, CSS, JPG, PNG, GIF, SVG,
    TTF, OPENTYPE, WOFF, WOFF2, MP3, MP4, OGG, SMIL, XPGT, PLS, XML, TXT,
)

BITMAP_IMAGE_TYPES = (JPG, PNG, GIF)

# Noms rencontrés dans des livres réels mais non canoniques
_NAME_ALIASES = {
    "image/jpg": JPG,
    "text/html": XHTML,
    "application/javascript": JAVASCRIPT,
    "application/x-javascript": JAVASCRIPT,
    "application/font-sfnt": TTF,
    "application/x-font-ttf": TTF,
    "font/ttf": TTF,
    "font/otf": OPENTYPE,
    "application/x-font-opentype": OPENTYPE,
    "font/woff": WOFF,
    "text/xml": XML,
}

_BY_NAME = {media_type.name: media_type for media_type in MEDIA_TYPES}
_BY_EXTENSION = {
    extension: media_type for media_type in MEDIA_TYPES for extension in media_type.extensions
}


def by_name(name: Optional[str]) -> Optional[MediaType]:
    """
    Retrouve un type de média depuis son nom MIME déclaré.

    Args:
        name: Nom MIME (ex: 'application/xhtml+xml')

    Returns:
        MediaType correspondant ou None si inconnu
    """
    if not name:
        return None
    key = name.strip().lower()
    return _BY_NAME.get(key) or _NAME_ALIASES.get(key)


def by_extension(extension: Optional[str]) -> Optional[MediaType]:
    """Retrouve un type de média depuis une extension ('.png' ou 'png')."""
    if not extension:
        return None
    key = extension.lower()
    if not key.startswith("."):
        key = "." + key
    return _BY_EXTENSION.get(key)


def determine_media_type(href: Optional[str]) -> Optional[MediaType]:
    """Devine le type de média d'une ressource depuis l'extension de son href."""
    if not href:
        return None
    _, extension = posixpath.splitext(href.split("#", 1)[0])
    return by_extension(extension)


def is_bitmap_image(media_type: Optional[MediaType]) -> bool:
    return media_type in BITMAP_IMAGE_TYPES
