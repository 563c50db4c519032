# epubkit/src/epubkit/core/relators.py
"""
Vocabulaire fermé des rôles de contributeurs (MARC relators).

Les recherches retournent None pour un code ou un nom inconnu;
le choix d'une valeur de repli (AUTHOR) appartient à l'appelant.
"""

from enum import Enum
from typing import Optional


class Relator(Enum):
    """Rôle d'un créateur ou contributeur: (code MARC, nom)."""

    ACTOR = ("act", "Actor")
    ADAPTER = ("adp", "Adapter")
    ANNOTATOR = ("ann", "Annotator")
    ARRANGER = ("arr", "Arranger")
    ARTIST = ("art", "Artist")
    AUTHOR = ("aut", "Author")
    AUTHOR_OF_AFTERWORD = ("aft", "Author of afterword, colophon, etc.")
    AUTHOR_OF_INTRODUCTION = ("aui", "Author of introduction, etc.")
    BIBLIOGRAPHIC_ANTECEDENT = ("ant", "Bibliographic antecedent")
    BOOK_DESIGNER = ("bkd", "Book designer")
    BOOK_PRODUCER = ("bkp", "Book producer")
    CALLIGRAPHER = ("cll", "Calligrapher")
    CARTOGRAPHER = ("ctg", "Cartographer")
    COLLABORATOR = ("clb", "Collaborator")
    COMMENTATOR = ("cmm", "Commentator")
    COMMENTATOR_FOR_WRITTEN_TEXT = ("cwt", "Commentator for written text")
    COMPILER = ("com", "Compiler")
    COMPOSER = ("cmp", "Composer")
    CONTRIBUTOR = ("ctb", "Contributor")
    COPYRIGHT_HOLDER = ("cph", "Copyright holder")
    COVER_DESIGNER = ("cov", "Cover designer")
    CREATOR = ("cre", "Creator")
    DEDICATEE = ("dte", "Dedicatee")
    DESIGNER = ("dsr", "Designer")
    EDITOR = ("edt", "Editor")
    ENGRAVER = ("egr", "Engraver")
    FORMER_OWNER = ("fmo", "Former owner")
    ILLUSTRATOR = ("ill", "Illustrator")
    INTERVIEWEE = ("ive", "Interviewee")
    INTERVIEWER = ("ivr", "Interviewer")
    LIBRETTIST = ("lbt", "Librettist")
    LYRICIST = ("lyr", "Lyricist")
    NARRATOR = ("nrt", "Narrator")
    ORIGINATOR = ("org", "Originator")
    PHOTOGRAPHER = ("pht", "Photographer")
    PRINTER = ("prt", "Printer")
    PROOFREADER = ("pfr", "Proofreader")
    PUBLISHER = ("pbl", "Publisher")
    READER = ("rdr", "Reader")
    REDACTOR = ("red", "Redactor")
    RESEARCHER = ("res", "Researcher")
    REVIEWER = ("rev", "Reviewer")
    SCRIBE = ("scr", "Scribe")
    SPONSOR = ("spn", "Sponsor")
    THESIS_ADVISOR = ("ths", "Thesis advisor")
    TRANSCRIBER = ("trc", "Transcriber")
    TRANSLATOR = ("trl", "Translator")
    WRITER_OF_ACCOMPANYING_MATERIAL = ("wam", "Writer of accompanying material")

    @property
    def code(self) -> str:
        return self.value[0]

    @property
    def display_name(self) -> str:
        return self.value[1]

    @classmethod
    def by_code(cls, code: Optional[str]) -> Optional["Relator"]:
        """Retrouve un rôle depuis son code MARC ('aut', 'edt', ...)."""
        if not code:
            return None
        key = code.strip().lower()
        for relator in cls:
            if relator.code == key:
                return relator
        return None

    @classmethod
    def by_name(cls, name: Optional[str]) -> Optional["Relator"]:
        """Retrouve un rôle depuis son nom ('Author', 'editor', ...), insensible à la casse."""
        if not name:
            return None
        key = name.strip().lower()
        for relator in cls:
            if relator.display_name.lower() == key:
                return relator
        return None
