"""
Tests pour le module core.models.
"""

from io import BytesIO
from unittest.mock import MagicMock

import pytest

from epubkit.core import media_types
from epubkit.core.errors import PathEscapeError, ResourceUnavailableError
from epubkit.core.models import (
    Author,
    Book,
    Identifier,
    Metadata,
    Resource,
    Resources,
    Spine,
    SpineReference,
    TableOfContents,
    TOCReference,
)
from epubkit.core.relators import Relator


class TestResource:
    """Tests pour Resource."""

    def test_media_type_inferred_from_href(self):
        assert Resource(href="ch1.xhtml").media_type is media_types.XHTML
        assert Resource(href="data.bin").media_type is None

    def test_explicit_media_type_kept(self):
        resource = Resource(href="page.html", media_type=media_types.TXT)
        assert resource.media_type is media_types.TXT

    def test_opener_called_once(self):
        """Test que le flux n'est ouvert qu'une seule fois."""
        opener = MagicMock(return_value=BytesIO(b"content"))
        resource = Resource(href="a.txt", opener=opener)

        assert resource.get_data() == b"content"
        assert resource.get_data() == b"content"
        assert resource.size == 7
        opener.assert_called_once()

    def test_no_content_raises(self):
        with pytest.raises(ResourceUnavailableError):
            Resource(href="a.txt").get_data()

    def test_get_text(self):
        resource = Resource(href="a.txt", data="héllo".encode("utf-8"))
        assert resource.get_text() == "héllo"

    def test_set_data_drops_opener(self):
        opener = MagicMock()
        resource = Resource(href="a.txt", opener=opener)
        resource.set_data(b"new")
        assert resource.get_data() == b"new"
        opener.assert_not_called()


class TestResources:
    """Tests pour l'ensemble des ressources."""

    def test_add_normalizes_href(self):
        resources = Resources()
        resource = resources.add(Resource(id="a", href="./text/../a.xhtml"))
        assert resource.href == "a.xhtml"
        assert resources.get_by_href("a.xhtml#frag") is resource

    def test_add_rejects_escaping_href(self):
        with pytest.raises(PathEscapeError):
            Resources().add(Resource(id="a", href="../a.xhtml"))

    def test_add_replaces_same_href(self):
        resources = Resources()
        resources.add(Resource(id="a", href="a.xhtml"))
        second = resources.add(Resource(id="b", href="a.xhtml"))
        assert len(resources) == 1
        assert resources.get_by_href("a.xhtml") is second

    def test_lookups(self):
        resources = Resources()
        resource = resources.add(Resource(id="a", href="a.xhtml"))
        assert resources.get_by_id("a") is resource
        assert resources.get_by_id_or_href("a.xhtml") is resource
        assert resources.contains_id("a")
        assert not resources.contains_by_href("b.xhtml")
        assert resources.get_by_id(None) is None

    def test_remove(self):
        resources = Resources()
        resources.add(Resource(id="a", href="a.xhtml"))
        removed = resources.remove("a.xhtml")
        assert removed.id == "a"
        assert len(resources) == 0
        assert resources.remove(None) is None

    def test_href_with_literal_hash(self):
        """Test qu'un href décodé contenant '#' reste accessible tel quel."""
        resources = Resources()
        resource = resources.add(Resource(id="notes", href="notes#1.xhtml"))
        assert resources.get_by_href("notes#1.xhtml") is resource
        assert resources.contains_by_href("notes#1.xhtml")
        assert resources.remove("notes#1.xhtml") is resource
        assert len(resources) == 0

    def test_create_unique_id(self):
        """Test génération d'id depuis le nom de fichier, avec repli."""
        resources = Resources()
        assert resources.create_unique_id(Resource(href="text/chapter one.xhtml")) == "chapter_one"
        assert resources.create_unique_id(Resource(href="1.xhtml")) == "x1"

        resources.add(Resource(id="cover", href="cover.xhtml"))
        new_id = resources.create_unique_id(Resource(href="img/cover.jpg"))
        assert new_id.startswith("item_")
        assert not resources.contains_id(new_id)

    def test_by_media_type_and_order(self):
        resources = Resources()
        resources.add(Resource(id="b", href="b.xhtml"))
        resources.add(Resource(id="css", href="s.css"))
        resources.add(Resource(id="a", href="a.xhtml"))
        assert [r.id for r in resources] == ["b", "css", "a"]
        assert [r.id for r in resources.get_resources_by_media_type(media_types.XHTML)] == ["b", "a"]


class TestSpine:
    def test_find_first_resource_by_id(self):
        spine = Spine([SpineReference("a"), SpineReference("b", linear=False), SpineReference("a")])
        assert spine.find_first_resource_by_id("a") == 0
        assert spine.find_first_resource_by_id("b") == 1
        assert spine.find_first_resource_by_id("zzz") == -1
        assert spine.resource_ids() == ["a", "b", "a"]

    def test_empty(self):
        assert Spine().is_empty()
        assert len(Spine()) == 0


class TestAuthor:
    """Tests pour Author."""

    def test_default_role(self):
        assert Author("Jane", "Doe").relators == [Relator.AUTHOR]

    def test_from_display_name_splits_on_last_space(self):
        author = Author.from_display_name("Jean Paul Sartre")
        assert author.first_name == "Jean Paul"
        assert author.last_name == "Sartre"

    def test_single_name_is_last_name(self):
        author = Author.from_display_name("Homer")
        assert author.last_name == "Homer"
        assert author.display_name == "Homer"
        assert author.file_as == "Homer"

    def test_from_file_as(self):
        author = Author.from_file_as("Doe, Jane", [Relator.EDITOR])
        assert author.display_name == "Jane Doe"
        assert author.file_as == "Doe, Jane"
        assert author.relators == [Relator.EDITOR]

    def test_add_role(self):
        author = Author("Jane", "Doe")
        assert author.add_role_by_code("trl") is Relator.TRANSLATOR
        assert author.add_role_by_name("unknown role") is Relator.AUTHOR
        assert author.relators == [Relator.AUTHOR, Relator.TRANSLATOR]

    def test_equality_ignores_roles(self):
        assert Author("Jane", "Doe") == Author("Jane", "Doe", [Relator.EDITOR])


class TestMetadata:
    """Tests pour Metadata."""

    def test_first_title_skips_blank(self):
        metadata = Metadata(titles=["  ", "Real Title"])
        assert metadata.first_title == "Real Title"
        assert Metadata().first_title == ""

    def test_primary_identifier(self):
        metadata = Metadata()
        assert metadata.primary_identifier is None
        first = metadata.add_identifier(Identifier("a"))
        assert metadata.primary_identifier is first
        flagged = metadata.add_identifier(Identifier("b", bookid=True))
        assert metadata.primary_identifier is flagged

    def test_create_uuid(self):
        identifier = Identifier.create_uuid(bookid=True)
        assert identifier.value.startswith("urn:uuid:")
        assert identifier.scheme == Identifier.UUID
        assert identifier.bookid

    def test_isbn(self):
        """Test extraction de l'ISBN canonique depuis les identifiants."""
        metadata = Metadata(identifiers=[Identifier("urn:uuid:x"), Identifier("urn:isbn:978-0-306-40615-7")])
        assert metadata.isbn == "9780306406157"

    def test_isbn_invalid_checksum(self):
        metadata = Metadata(identifiers=[Identifier("9780306406158")])
        assert metadata.isbn is None

    def test_language_unset_by_default(self):
        assert Metadata().language is None


class TestTableOfContents:
    """Tests pour TableOfContents."""

    @pytest.fixture
    def toc(self):
        chapter = TOCReference("Chapter 1", "ch1.xhtml")
        chapter.add_child(TOCReference("Section 1.1", "ch1.xhtml", "s1"))
        chapter.children[0].add_child(TOCReference("Sub", "ch1b.xhtml"))
        return TableOfContents([chapter, TOCReference("Chapter 2", "ch2.xhtml")])

    def test_size_and_depth(self, toc):
        assert len(toc) == 2
        assert toc.size() == 4
        assert toc.calculate_depth() == 3
        assert TableOfContents().calculate_depth() == 0

    def test_walk_order(self, toc):
        assert [(ref.title, depth) for ref, depth in toc.walk()] == [
            ("Chapter 1", 1),
            ("Section 1.1", 2),
            ("Sub", 3),
            ("Chapter 2", 1),
        ]

    def test_all_unique_resource_hrefs(self, toc):
        assert toc.all_unique_resource_hrefs() == ["ch1.xhtml", "ch1b.xhtml", "ch2.xhtml"]

    def test_complete_href(self):
        assert TOCReference("a", "ch1.xhtml", "s1").complete_href == "ch1.xhtml#s1"
        assert TOCReference("a", "ch1.xhtml").complete_href == "ch1.xhtml"
        assert TOCReference("a").complete_href is None


class TestBook:
    """Tests pour Book."""

    def test_add_resource_assigns_id(self):
        book = Book()
        resource = book.add_resource(Resource(href="text/intro.xhtml"))
        assert resource.id == "intro"

    def test_add_resource_renames_duplicate_id(self, chapter_factory):
        """Test qu'un id déjà pris par un autre href est remplacé."""
        book = Book()
        first = book.add_resource(chapter_factory("ch1.xhtml", "Chapter 1", id="ch1"))
        other = book.add_resource(chapter_factory("other.xhtml", "Other", id="ch1"))

        assert first.id == "ch1"
        assert other.id == "other"
        assert book.resources.get_by_id("ch1") is first

    def test_add_resource_same_href_keeps_id(self, chapter_factory):
        book = Book()
        book.add_resource(chapter_factory("ch1.xhtml", "Chapter 1", id="ch1"))
        replacement = book.add_resource(chapter_factory("./ch1.xhtml", "Chapter 1", id="ch1"))
        assert replacement.id == "ch1"
        assert len(book.resources) == 1

    def test_add_section(self, chapter_factory):
        """Test qu'une section ajoute ressource, spine et entrée de table des matières."""
        book = Book()
        chapter = book.add_section("Chapter 1", chapter_factory("ch1.xhtml", "Chapter 1"))
        book.add_section("Section", book.resources.get_by_href("ch1.xhtml"), parent=chapter, fragment="s1")

        assert len(book.resources) == 1
        assert book.spine.resource_ids() == ["ch1"]
        assert book.table_of_contents.size() == 2
        assert chapter.children[0].complete_href == "ch1.xhtml#s1"

    def test_cover_setters_add_resource(self, png_bytes):
        book = Book()
        image = Resource(href="images/cover.png", data=png_bytes)
        book.cover_image = image
        assert book.cover_image is image
        assert book.resources.contains_by_href("images/cover.png")
        assert image.id

        book.cover_image = None
        assert book.cover_image is None

    def test_get_contents(self, sample_book):
        assert [r.href for r in sample_book.get_contents()] == ["ch1.xhtml", "text/ch2.xhtml"]

    def test_toc_resource(self):
        book = Book()
        ncx = book.add_resource(Resource(id="ncx", href="toc.ncx", data=b""))
        book.spine.toc_resource_id = "ncx"
        assert book.toc_resource is ncx
