# epubkit/src/epubkit/core/epub/__init__.py
"""
Module EPUB - Lecture et écriture des conteneurs EPUB 2 et EPUB 3.

Ce module fournit les fonctions de haut niveau; les codecs (document de
paquet, NCX, navigation XHTML) restent accessibles dans leurs modules.
"""

from .reader import EpubReader, ReadState, read_epub, safe_read_epub
from .writer import EpubWriter, WriteState, write_epub

__all__ = [
    "EpubReader",
    "EpubWriter",
    "ReadState",
    "WriteState",
    "read_epub",
    "safe_read_epub",
    "write_epub",
]
