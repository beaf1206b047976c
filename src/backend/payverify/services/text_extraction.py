"""
Text extraction for receipt documents.

Three strategies converge on the same flattened, whitespace-normalized string:
native PDF text, already-rendered page text, and OCR for images.
"""

import io
import re
import logging
from typing import Optional

import pytesseract
from PIL import Image, ImageEnhance
from pdf2image import convert_from_bytes
from PyPDF2 import PdfReader

from payverify.config import settings
from payverify.models.verification import DocumentKind, ExtractedDocument
from payverify.utils.errors import ExtractionFailed

logger = logging.getLogger(__name__)

# Below this many characters a PDF is treated as scanned (image-only)
MIN_NATIVE_TEXT_CHARS = 20

ZERO_WIDTH = re.compile('[\u200b\u200c\u200d\ufeff]')


def normalize_text(text: str) -> str:
    """
    Flatten text to single-spaced form.

    All whitespace (newlines, tabs, non-breaking and other Unicode spaces)
    collapses to one space; zero-width characters are dropped.
    """
    if not text:
        return ""
    text = ZERO_WIDTH.sub('', text)
    return re.sub(r'\s+', ' ', text).strip()


class TextExtractionService:
    """Service for turning receipt documents into flattened text."""

    def __init__(self, tesseract_cmd: Optional[str] = None):
        """Initialize with Tesseract configuration."""
        pytesseract.pytesseract.tesseract_cmd = tesseract_cmd or settings.TESSERACT_CMD

    def extract(self, document: ExtractedDocument, languages: str = "eng") -> str:
        """
        Extract normalized text from a retrieved provider document.

        Args:
            document: Document produced by acquisition
            languages: Tesseract language set used for image documents

        Returns:
            Flattened text
        """
        if document.kind == DocumentKind.PDF:
            return self.extract_pdf_text(document.content)

        if document.kind == DocumentKind.RENDERED_PAGE:
            return self.extract_page_text(document.content)

        return self.extract_image_text(document.content, languages)

    def extract_pdf_text(
        self,
        pdf_data: bytes,
        languages: str = "eng",
        ocr_fallback: bool = False
    ) -> str:
        """
        Extract text from a PDF page by page.

        Args:
            pdf_data: Raw PDF bytes
            languages: Tesseract languages for the OCR fallback
            ocr_fallback: OCR rasterised pages when the text layer is (nearly) empty

        Returns:
            Flattened text
        """
        try:
            reader = PdfReader(io.BytesIO(pdf_data))
            pages = [page.extract_text() or "" for page in reader.pages]
        except Exception as e:
            logger.warning("PDF text extraction failed", extra={"error": str(e)})
            raise ExtractionFailed(f"Could not read PDF: {e}") from e

        text = normalize_text("\n".join(pages))

        if ocr_fallback and len(text) < MIN_NATIVE_TEXT_CHARS:
            logger.info("PDF appears to be image-based, using OCR", extra={
                "pages": len(pages),
                "native_chars": len(text),
            })
            text = self._extract_pdf_text_ocr(pdf_data, languages)

        return text

    def extract_page_text(self, page_data: bytes) -> str:
        """Normalize visible text captured from a rendered page."""
        return normalize_text(page_data.decode('utf-8', errors='replace'))

    def extract_image_text(self, image_data: bytes, languages: str = "eng") -> str:
        """
        Extract text from an image using Tesseract OCR.

        Args:
            image_data: Raw image bytes (JPEG, PNG, etc.)
            languages: Tesseract language set, e.g. "eng+amh" for bilingual receipts

        Returns:
            Flattened text
        """
        try:
            image = Image.open(io.BytesIO(image_data))
            image = self._preprocess_image(image)
            return normalize_text(self._ocr(image, languages))
        except Exception as e:
            logger.warning("Image OCR failed", extra={
                "languages": languages,
                "error": str(e)
            })
            raise ExtractionFailed(f"Could not OCR image: {e}") from e

    def _extract_pdf_text_ocr(self, pdf_data: bytes, languages: str) -> str:
        """OCR every page of an image-based PDF."""
        try:
            images = convert_from_bytes(pdf_data)
            pages = [self._ocr(self._preprocess_image(image), languages) for image in images]
        except Exception as e:
            logger.warning("OCR-based PDF extraction failed", extra={"error": str(e)})
            raise ExtractionFailed(f"Could not OCR PDF: {e}") from e

        return normalize_text("\n".join(pages))

    def _ocr(self, image: Image.Image, languages: str) -> str:
        custom_config = r'--oem 3 --psm 6'
        return pytesseract.image_to_string(image, lang=languages, config=custom_config)

    def _preprocess_image(self, image: Image.Image) -> Image.Image:
        """
        Grayscale and boost contrast to improve OCR accuracy on phone screenshots.
        """
        if image.mode != 'RGB':
            image = image.convert('RGB')

        image = image.convert('L')
        return ImageEnhance.Contrast(image).enhance(2.0)
