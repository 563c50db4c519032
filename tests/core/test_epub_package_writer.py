"""
Tests pour le module core.epub.package_writer.
"""

import pytest
from lxml import etree

from epubkit.core import media_types
from epubkit.core.epub.package_writer import write_package_document
from epubkit.core.models import Author, Date, GuideReference, Resource, SpineReference
from epubkit.core.relators import Relator

NS = {
    "opf": "http://www.idpf.org/2007/opf",
    "dc": "http://purl.org/dc/elements/1.1/",
}
OPF = "{http://www.idpf.org/2007/opf}"


def _parse(data: bytes):
    return etree.fromstring(data)


def _manifest_ids(root):
    return [item.get("id") for item in root.findall("opf:manifest/opf:item", NS)]


def _item(root, item_id):
    return root.find(f"opf:manifest/opf:item[@id='{item_id}']", NS)


def _itemrefs(root):
    return [(ref.get("idref"), ref.get("linear")) for ref in root.findall("opf:spine/opf:itemref", NS)]


class TestPackageRoot:
    def test_root_attributes(self, sample_book):
        root = _parse(write_package_document(sample_book, "3.0"))
        assert root.tag == f"{OPF}package"
        assert root.get("version") == "3.0"
        assert root.get("unique-identifier") == "BookId"

    def test_unsupported_version(self, sample_book):
        with pytest.raises(ValueError):
            write_package_document(sample_book, "1.0")


class TestMetadata:
    """Tests pour l'écriture des métadonnées."""

    def test_identifiers(self, sample_book):
        root = _parse(write_package_document(sample_book, "2.0"))
        identifiers = root.findall("opf:metadata/dc:identifier", NS)
        assert [i.text for i in identifiers] == [
            "urn:uuid:12345678-1234-5678-1234-567812345678",
            "9780306406157",
        ]
        assert identifiers[0].get("id") == "BookId"
        assert identifiers[1].get(f"{OPF}scheme") == "ISBN"

    def test_epub3_has_no_opf_scheme(self, sample_book):
        root = _parse(write_package_document(sample_book, "3.0"))
        for identifier in root.findall("opf:metadata/dc:identifier", NS):
            assert identifier.get(f"{OPF}scheme") is None

    def test_epub2_creator_attributes(self, sample_book):
        """Test rôle et file-as en attributs opf: (premier rôle seulement)."""
        sample_book.metadata.authors[0].relators.append(Relator.ILLUSTRATOR)
        root = _parse(write_package_document(sample_book, "2.0"))
        creator = root.find("opf:metadata/dc:creator", NS)
        assert creator.text == "Test Author"
        assert creator.get(f"{OPF}role") == "aut"
        assert creator.get(f"{OPF}file-as") == "Author, Test"

    def test_epub3_creator_refines(self, sample_book):
        """Test rôles et file-as en meta refines (tous les rôles)."""
        sample_book.metadata.authors[0].relators.append(Relator.ILLUSTRATOR)
        sample_book.metadata.contributors.append(Author("Ed", "Itor", [Relator.EDITOR]))
        root = _parse(write_package_document(sample_book, "3.0"))

        creator = root.find("opf:metadata/dc:creator", NS)
        creator_id = creator.get("id")
        roles = root.findall(f"opf:metadata/opf:meta[@refines='#{creator_id}'][@property='role']", NS)
        assert [r.text for r in roles] == ["aut", "ill"]
        assert roles[0].get("scheme") == "marc:relators"
        file_as = root.find(f"opf:metadata/opf:meta[@refines='#{creator_id}'][@property='file-as']", NS)
        assert file_as.text == "Author, Test"

        contributor = root.find("opf:metadata/dc:contributor", NS)
        assert contributor.get("id") != creator_id

    def test_language_default(self, sample_book):
        sample_book.metadata.language = None
        root = _parse(write_package_document(sample_book, "3.0"))
        assert root.find("opf:metadata/dc:language", NS).text == "en"

    def test_dates(self, sample_book):
        sample_book.metadata.dates = [Date("2020-01-01", Date.CREATION), Date("2021-05-05", Date.PUBLICATION)]
        root2 = _parse(write_package_document(sample_book, "2.0"))
        dates = root2.findall("opf:metadata/dc:date", NS)
        assert [(d.text, d.get(f"{OPF}event")) for d in dates] == [
            ("2020-01-01", "creation"),
            ("2021-05-05", "publication"),
        ]

        root3 = _parse(write_package_document(sample_book, "3.0"))
        assert [d.text for d in root3.findall("opf:metadata/dc:date", NS)] == ["2021-05-05"]
        assert root3.find("opf:metadata/opf:meta[@property='dcterms:modified']", NS) is not None

    def test_cover_and_generator_meta(self, sample_book):
        root = _parse(write_package_document(sample_book, "2.0"))
        assert root.find("opf:metadata/opf:meta[@name='cover']", NS).get("content") == "cover-image"
        assert root.find("opf:metadata/opf:meta[@name='generator']", NS).get("content") == "epubkit"


class TestManifest:
    """Tests pour l'écriture du manifest."""

    def test_sorted_case_insensitive(self, sample_book):
        sample_book.add_resource(Resource(id="Zeta", href="z.css", data=b""))
        sample_book.add_resource(Resource(id="alpha", href="a.css", data=b""))
        sample_book.add_resource(Resource(id="Beta", href="b.css", data=b""))
        root = _parse(write_package_document(sample_book, "3.0"))
        ids = [i for i in _manifest_ids(root) if i != "toc"]
        assert ids == sorted(ids, key=str.lower)
        assert ids.index("alpha") < ids.index("Beta") < ids.index("Zeta")

    @pytest.mark.parametrize(
        "resource",
        [
            Resource(id="", href="blank.xhtml", data=b""),
            Resource(id="nohref", href="", data=b""),
            Resource(id="bin", href="data.bin", data=b"\x00"),
        ],
    )
    def test_invalid_resource_one_error(self, sample_book, resource):
        """Test qu'une ressource invalide est omise avec exactement une erreur."""
        sample_book.resources.add(resource)
        errors = []
        root = _parse(write_package_document(sample_book, "3.0", errors))

        assert len(errors) == 1
        hrefs = [item.get("href") for item in root.findall("opf:manifest/opf:item", NS)]
        assert resource.href not in hrefs
        assert "ch1.xhtml" in hrefs

    def test_href_is_quoted(self, sample_book):
        sample_book.add_resource(Resource(id="spaced", href="text/my chapter.xhtml", data=b"<html/>"))
        root = _parse(write_package_document(sample_book, "3.0"))
        assert _item(root, "spaced").get("href") == "text/my%20chapter.xhtml"

    def test_epub3_properties(self, sample_book, chapter_factory):
        """Test des propriétés scripted, cover-image et nav."""
        scripted = chapter_factory("script.xhtml", "Script", id="script")
        scripted.set_data(scripted.get_data().replace(b"</body>", b"<script>var a = 1;</script></body>"))
        sample_book.add_resource(scripted)
        root = _parse(write_package_document(sample_book, "3.0"))

        assert _item(root, "script").get("properties") == "scripted"
        assert _item(root, "cover-image").get("properties") == "cover-image"
        assert _item(root, "ch1").get("properties") is None
        # Document de navigation synthétisé
        nav = _item(root, "toc")
        assert nav.get("properties") == "nav"
        assert nav.get("href") == "toc.xhtml"

    def test_epub2_has_no_properties(self, sample_book):
        root = _parse(write_package_document(sample_book, "2.0"))
        assert all(item.get("properties") is None for item in root.findall("opf:manifest/opf:item", NS))
        assert _item(root, "toc") is None

    def test_nav_resource_gets_nav_property(self, sample_book):
        nav = sample_book.add_resource(
            Resource(id="nav", href="nav.xhtml", media_type=media_types.XHTML, data=b"<html/>")
        )
        sample_book.spine.toc_resource_id = nav.id
        root = _parse(write_package_document(sample_book, "3.0"))
        assert _item(root, "nav").get("properties") == "nav"
        assert _item(root, "toc") is None

    def test_stale_ncx_skipped(self, sample_book):
        """Test qu'un NCX qui n'est pas la table des matières courante est ignoré."""
        sample_book.add_resource(Resource(id="old-ncx", href="old.ncx", data=b""))
        nav = sample_book.add_resource(Resource(id="nav", href="nav.xhtml", data=b"<html/>"))
        sample_book.spine.toc_resource_id = nav.id
        errors = []
        root = _parse(write_package_document(sample_book, "3.0", errors))
        assert _item(root, "old-ncx") is None
        assert errors == []

    def test_duplicate_id_written_once(self, sample_book):
        """Test qu'un id en double n'est écrit qu'une fois et signalé."""
        sample_book.resources.add(Resource(id="ch1", href="dup.xhtml", data=b"<html/>"))
        errors = []
        root = _parse(write_package_document(sample_book, "3.0", errors))

        assert _manifest_ids(root).count("ch1") == 1
        assert _item(root, "ch1").get("href") == "ch1.xhtml"
        assert [e.href for e in errors] == ["dup.xhtml"]


class TestSpine:
    """Tests pour l'écriture de la spine."""

    def test_spine_order_and_linear(self, sample_book):
        sample_book.spine.references[1].linear = False
        root = _parse(write_package_document(sample_book, "3.0"))
        assert _itemrefs(root) == [("ch1", None), ("ch2", "no")]

    def test_cover_page_leading_non_linear(self, sample_book, chapter_factory):
        """Test qu'une page de couverture hors spine est le premier itemref, non linéaire."""
        sample_book.cover_page = chapter_factory("cover.xhtml", "Cover", id="cover")
        root = _parse(write_package_document(sample_book, "3.0"))
        assert _itemrefs(root)[0] == ("cover", "no")
        assert len(_itemrefs(root)) == 3

    def test_cover_page_already_in_spine(self, sample_book, chapter_factory):
        cover = chapter_factory("cover.xhtml", "Cover", id="cover")
        sample_book.cover_page = cover
        sample_book.spine.references.insert(0, SpineReference("cover"))
        root = _parse(write_package_document(sample_book, "3.0"))
        assert _itemrefs(root) == [("cover", None), ("ch1", None), ("ch2", None)]

    def test_unknown_idref_reported(self, sample_book):
        sample_book.spine.add_reference(SpineReference("missing"))
        errors = []
        root = _parse(write_package_document(sample_book, "3.0", errors))
        assert "missing" not in [idref for idref, _ in _itemrefs(root)]
        assert len(errors) == 1
        assert errors[0].resource_id == "missing"

    def test_epub2_toc_attribute(self, sample_book):
        ncx = sample_book.add_resource(Resource(id="ncx", href="toc.ncx", data=b""))
        sample_book.spine.toc_resource_id = ncx.id
        root = _parse(write_package_document(sample_book, "2.0"))
        assert root.find("opf:spine", NS).get("toc") == "ncx"


class TestGuide:
    """Tests pour l'écriture du guide (EPUB 2)."""

    def test_cover_reference_synthesized(self, sample_book, chapter_factory):
        sample_book.cover_page = chapter_factory("cover.xhtml", "Cover", id="cover")
        root = _parse(write_package_document(sample_book, "2.0"))
        references = root.findall("opf:guide/opf:reference", NS)
        assert [(r.get("type"), r.get("href")) for r in references] == [("cover", "cover.xhtml")]

    def test_guide_references_with_fragment(self, sample_book):
        sample_book.guide.add_reference(GuideReference(GuideReference.TOC, "ch1.xhtml", "s1", "Contents"))
        root = _parse(write_package_document(sample_book, "2.0"))
        reference = root.find("opf:guide/opf:reference", NS)
        assert reference.get("href") == "ch1.xhtml#s1"
        assert reference.get("title") == "Contents"

    def test_no_guide_when_empty(self, sample_book):
        root = _parse(write_package_document(sample_book, "2.0"))
        assert root.find("opf:guide", NS) is None

    def test_no_guide_in_epub3(self, sample_book, chapter_factory):
        sample_book.cover_page = chapter_factory("cover.xhtml", "Cover", id="cover")
        root = _parse(write_package_document(sample_book, "3.0"))
        assert root.find("opf:guide", NS) is None
