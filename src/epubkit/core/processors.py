# epubkit/src/epubkit/core/processors.py
"""
Traitements appliqués à un livre avant son écriture.

Un book processor reçoit un Book et retourne le livre à écrire (le même
objet modifié, ou un autre). L'écrivain EPUB en exécute un seul; plusieurs
traitements se combinent avec BookProcessorPipeline.
"""

import logging
import re
from io import BytesIO
from typing import Iterable, List, Optional, Protocol, Tuple
from xml.sax.saxutils import escape

from langdetect import DetectorFactory, detect
from langdetect.lang_detect_exception import LangDetectException
from PIL import Image, UnidentifiedImageError

from ..config import COVER_PAGE_HREF, COVER_PAGE_ID, LANGUAGE_SAMPLE_SIZE, UNDETERMINED_LANGUAGE
from . import media_types
from .errors import ResourceUnavailableError
from .models import Book, Resource
from .references import quote_href, relative_href

logger = logging.getLogger(__name__)

# Résultats reproductibles d'une exécution à l'autre
DetectorFactory.seed = 0


class BookProcessor(Protocol):
    def process_book(self, book: Book) -> Book:
        ...


class IdentityBookProcessor:
    """Retourne le livre inchangé."""

    def process_book(self, book: Book) -> Book:
        return book


class BookProcessorPipeline:
    """Enchaîne plusieurs book processors dans l'ordre donné."""

    def __init__(self, processors: Optional[Iterable[BookProcessor]] = None):
        self.processors: List[BookProcessor] = list(processors or [])

    def add_processor(self, processor: BookProcessor) -> BookProcessor:
        self.processors.append(processor)
        return processor

    def process_book(self, book: Book) -> Book:
        for processor in self.processors:
            logger.debug("Running book processor %s", type(processor).__name__)
            book = processor.process_book(book)
        return book


class LanguageDetectionBookProcessor:
    """
    Renseigne la langue du livre quand elle est absente ou indéterminée.

    La langue est détectée avec langdetect sur un échantillon du texte des
    premiers documents de la spine, balises HTML retirées.
    """

    def __init__(self, sample_size: int = LANGUAGE_SAMPLE_SIZE):
        self.sample_size = sample_size

    def _sample(self, book: Book) -> str:
        parts = []
        length = 0
        for resource in book.get_contents():
            if resource.media_type != media_types.XHTML:
                continue
            try:
                text = resource.get_text()
            except ResourceUnavailableError:
                logger.warning("Skipping %s for language detection: no content", resource.href)
                continue
            text = re.sub("<[^<]+?>", "", text)
            text = re.sub(r"\s+", " ", text).strip()
            if text:
                parts.append(text)
                length += len(text)
            if length >= self.sample_size:
                break
        return " ".join(parts)[: self.sample_size]

    def process_book(self, book: Book) -> Book:
        language = (book.metadata.language or "").strip()
        if language and language != UNDETERMINED_LANGUAGE:
            return book

        sample = self._sample(book)
        if not sample:
            logger.info("No text available for language detection")
            return book

        try:
            detected = detect(sample)
        except LangDetectException:
            logger.info("Language detection failed.", exc_info=True)
            return book

        logger.info("Language detected from text: %s", detected)
        book.metadata.language = detected
        return book


COVER_PAGE_TEMPLATE = """<?xml version="1.0" encoding="utf-8"?>
<!DOCTYPE html>
<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops">
<head>
<title>{title}</title>
<style type="text/css">body {{ margin: 0; padding: 0; text-align: center; }}</style>
</head>
<body>
{body}
</body>
</html>
"""

SVG_COVER_TEMPLATE = (
    '<svg xmlns="http://www.w3.org/2000/svg" xmlns:xlink="http://www.w3.org/1999/xlink" '
    'version="1.1" width="100%" height="100%" viewBox="0 0 {width} {height}" '
    'preserveAspectRatio="xMidYMid meet">'
    '<image width="{width}" height="{height}" xlink:href="{href}"/></svg>'
)

IMG_COVER_TEMPLATE = '<div><img src="{href}" alt="{title}" style="height: 100%"/></div>'


def _escape(value: str) -> str:
    return escape(value, {'"': "&quot;"})


class CoverPageBookProcessor:
    """
    Crée une page de couverture XHTML quand le livre a une image de
    couverture mais pas de page de couverture.

    L'image est enveloppée dans un SVG aux dimensions de l'image (lues avec
    Pillow); si l'image est illisible, une simple balise img est utilisée.
    """

    SVG_PROPERTY = "svg"

    def _image_size(self, image: Resource) -> Optional[Tuple[int, int]]:
        try:
            with Image.open(BytesIO(image.get_data())) as pil:
                return pil.size
        except (UnidentifiedImageError, OSError, ResourceUnavailableError):
            logger.warning("Could not read cover image dimensions for %s", image.href, exc_info=True)
            return None

    def _render(self, book: Book, image: Resource) -> Tuple[bytes, bool]:
        href = _escape(quote_href(relative_href(COVER_PAGE_HREF, image.href)))
        title = _escape(book.title or "Cover")
        size = self._image_size(image) if media_types.is_bitmap_image(image.media_type) else None
        if size:
            body = SVG_COVER_TEMPLATE.format(width=size[0], height=size[1], href=href)
        else:
            body = IMG_COVER_TEMPLATE.format(href=href, title=title)
        return COVER_PAGE_TEMPLATE.format(title=title, body=body).encode("utf-8"), size is not None

    def process_book(self, book: Book) -> Book:
        image = book.cover_image
        if image is None or book.cover_page is not None:
            return book

        href = COVER_PAGE_HREF
        if book.resources.contains_by_href(href):
            logger.warning("%s already exists, cover page not generated", href)
            return book

        data, uses_svg = self._render(book, image)
        cover_page = Resource(
            id=COVER_PAGE_ID,
            href=href,
            media_type=media_types.XHTML,
            data=data,
            properties=[self.SVG_PROPERTY] if uses_svg else [],
        )
        if book.resources.contains_id(COVER_PAGE_ID):
            cover_page.id = book.resources.create_unique_id(cover_page)
        book.cover_page = cover_page
        logger.info("Generated cover page %s for image %s", cover_page.href, image.href)
        return book
