# tests/conftest.py
"""
Configuration globale pour pytest.

Fournit des fixtures réutilisables pour tous les tests.
"""

from io import BytesIO

import pytest
from PIL import Image

from epubkit.core import media_types
from epubkit.core.models import Author, Book, Identifier, Resource

CHAPTER_TEMPLATE = """<?xml version="1.0" encoding="utf-8"?>
<html xmlns="http://www.w3.org/1999/xhtml">
<head><title>{title}</title></head>
<body>
<h1 id="top">{title}</h1>
<p>{text}</p>
<h2 id="s1">Section</h2>
</body>
</html>
"""


def make_chapter(href: str, title: str, text: str = "Lorem ipsum dolor sit amet.", **kwargs) -> Resource:
    """Crée une ressource XHTML minimale."""
    data = CHAPTER_TEMPLATE.format(title=title, text=text).encode("utf-8")
    return Resource(href=href, data=data, media_type=media_types.XHTML, **kwargs)


def make_png(width: int = 60, height: int = 90) -> bytes:
    """Génère une image PNG réelle avec Pillow."""
    buffer = BytesIO()
    Image.new("RGB", (width, height), color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def sample_book(png_bytes) -> Book:
    """Retourne un livre d'exemple: deux chapitres, une section imbriquée, CSS et couverture."""
    book = Book()
    book.metadata.add_title("Test Book")
    book.metadata.add_author(Author("Test", "Author"))
    book.metadata.add_identifier(Identifier("urn:uuid:12345678-1234-5678-1234-567812345678", Identifier.UUID, bookid=True))
    book.metadata.add_identifier(Identifier("9780306406157", Identifier.ISBN))
    book.metadata.language = "en"
    book.metadata.publishers.append("Test Publisher")

    chapter1 = book.add_section("Chapter 1", make_chapter("ch1.xhtml", "Chapter 1", id="ch1"))
    book.add_section("Section 1.1", book.resources.get_by_href("ch1.xhtml"), parent=chapter1, fragment="s1")
    book.add_section("Chapter 2", make_chapter("text/ch2.xhtml", "Chapter 2", id="ch2"))

    book.add_resource(Resource(id="css", href="styles/main.css", data=b"body { margin: 0; }"))
    book.cover_image = Resource(id="cover-image", href="images/cover.png", data=png_bytes)
    return book


@pytest.fixture
def temp_dir(tmp_path):
    """Fournit un répertoire temporaire pour les tests."""
    return tmp_path


@pytest.fixture
def chapter_factory():
    """Fabrique de ressources XHTML (href, titre, texte, id...)."""
    return make_chapter
