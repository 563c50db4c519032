# epubkit/src/epubkit/config.py
"""
Configuration et constantes pour epubkit
"""

import os
import re

# ---------- Structure du conteneur ----------
MIMETYPE_ENTRY = "mimetype"
CONTAINER_PATH = "META-INF/container.xml"
CONTENT_DIR = "OEBPS"
PACKAGE_DOCUMENT_HREF = "content.opf"

# ---------- Versions supportées ----------
EPUB2_VERSION = "2.0"
EPUB3_VERSION = "3.0"
SUPPORTED_VERSIONS = (EPUB2_VERSION, EPUB3_VERSION)
DEFAULT_VERSION = EPUB3_VERSION

# ---------- Espaces de noms XML ----------
NAMESPACE_CONTAINER = "urn:oasis:names:tc:opendocument:xmlns:container"
NAMESPACE_OPF = "http://www.idpf.org/2007/opf"
NAMESPACE_DUBLIN_CORE = "http://purl.org/dc/elements/1.1/"
NAMESPACE_NCX = "http://www.daisy.org/z3986/2005/ncx/"
NAMESPACE_XHTML = "http://www.w3.org/1999/xhtml"
NAMESPACE_EPUB = "http://www.idpf.org/2007/ops"

PREFIX_OPF = "opf"
PREFIX_DUBLIN_CORE = "dc"
PREFIX_EPUB = "epub"

# ---------- Identifiants et chemins par défaut ----------
BOOK_ID_ID = "BookId"
NCX_ID = "ncx"
NCX_HREF = "toc.ncx"
NAV_ID = "toc"
NAV_HREF = "toc.xhtml"
COVER_PAGE_ID = "cover"
COVER_PAGE_HREF = "cover.xhtml"

# ---------- Métadonnées ----------
DEFAULT_LANGUAGE = "en"
UNDETERMINED_LANGUAGE = "und"
GENERATOR = "epubkit"
CHARACTER_ENCODING = "utf-8"

# ---------- Expressions régulières ----------
ISBN_RE = re.compile(r"(?:(?:ISBN(?:-1[03])?:?\s*)?)(97[89][ -]?)?[0-9][0-9 -]{8,}[0-9Xx]")

# ---------- Détection de langue ----------
LANGUAGE_SAMPLE_SIZE = 3000

# ---------- Configuration logging ----------
LOG_DIR = "logs"
LOG_MAX_BYTES = 5 * 1024 * 1024  # 5MB
LOG_BACKUP_COUNT = 5
LOG_ENCODING = "utf-8"


# ---------- Initialisation des dossiers ----------
def ensure_directories():
    """Crée les dossiers nécessaires s'ils n'existent pas."""
    os.makedirs(LOG_DIR, exist_ok=True)
