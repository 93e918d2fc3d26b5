import asyncio
import logging
from io import BytesIO
from typing import Callable, List, Optional, Tuple

import fitz  # PyMuPDF
import pytesseract
from PIL import Image, UnidentifiedImageError
from pypdf import PdfReader

from filing_intake.config import settings
from filing_intake.errors import ExtractionError, InputError, IntakeError
from filing_intake.models.schemas import TextExtractionResult

logger = logging.getLogger(__name__)

# Global semaphore for heavy OCR/PDF rendering work
OCR_SEMAPHORE = asyncio.Semaphore(settings.ocr_concurrency)

ProgressCallback = Optional[Callable[[float], None]]

PDF_MIME_TYPES = {"application/pdf"}
IMAGE_MIME_TYPES = {
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/tiff",
    "image/bmp",
    "image/gif",
    "image/webp",
}

EMPTY_OCR_MESSAGE = "OCR returned no text. The image may be too blurry or contain no readable text."


def media_kind_for(mime_type: Optional[str], filename: Optional[str] = None) -> Optional[str]:
    """Map a mime type (or, failing that, a filename extension) to 'pdf' or 'image'."""
    if mime_type:
        mime_type = mime_type.lower()
        if mime_type in PDF_MIME_TYPES:
            return "pdf"
        if mime_type in IMAGE_MIME_TYPES:
            return "image"
    if filename:
        suffix = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
        if suffix == "pdf":
            return "pdf"
        if suffix in ("jpg", "jpeg", "png", "tif", "tiff", "bmp", "gif", "webp"):
            return "image"
    return None


class TextExtractor:
    """Turns PDF or image bytes into raw text.

    PDFs are read from their text layer first. When the whole document yields
    fewer than ``min_text_chars`` characters it is treated as a scan and every
    page is rendered and OCR'd instead.
    """

    def __init__(
        self,
        min_text_chars: Optional[int] = None,
        lang: Optional[str] = None,
        tesseract_config: Optional[str] = None,
        dpi: Optional[int] = None,
    ):
        self.min_text_chars = min_text_chars if min_text_chars is not None else settings.pdf_min_text_chars
        self.lang = lang or settings.tesseract_lang
        self.tesseract_config = tesseract_config if tesseract_config is not None else settings.tesseract_config
        self.dpi = dpi or settings.ocr_dpi

    async def extract(
        self,
        file_bytes: bytes,
        media_kind: Optional[str],
        progress_callback: ProgressCallback = None,
    ) -> TextExtractionResult:
        """Extract text, never raising: failures come back as success=False."""
        try:
            if media_kind == "pdf":
                text, ocr_used, page_count = await self._extract_pdf_text(file_bytes, progress_callback)
            elif media_kind == "image":
                text = await self._extract_image_text(file_bytes, progress_callback)
                ocr_used, page_count = True, 1
            else:
                raise InputError("Unsupported file type")

            if not text.strip():
                raise InputError(EMPTY_OCR_MESSAGE)

        except IntakeError as e:
            logger.warning(f"Text extraction failed ({media_kind}): {e}")
            return TextExtractionResult(success=False, error=str(e))
        except Exception as e:
            logger.error(f"Unexpected text extraction failure ({media_kind}): {e}")
            return TextExtractionResult(success=False, error=f"Text extraction failed: {e}")

        self._report(progress_callback, 1.0)
        logger.info(f"Extracted {len(text.strip())} chars from {media_kind} (OCR used: {ocr_used})")
        return TextExtractionResult(success=True, text=text, ocr_used=ocr_used, page_count=page_count)

    async def _extract_pdf_text(self, file_bytes: bytes, progress_callback: ProgressCallback) -> Tuple[str, bool, int]:
        try:
            doc = fitz.open(stream=file_bytes, filetype="pdf")
        except Exception as e:
            logger.warning(f"PyMuPDF could not open PDF, trying pypdf: {e}")
            text = self._extract_pdf_text_pypdf(file_bytes)
            if len(text.strip()) < self.min_text_chars:
                raise ExtractionError(f"PDF processing failed: {e}") from e
            return text, False, text.count("\f") + 1

        try:
            page_count = len(doc)
            page_texts: List[str] = []
            for page_num in range(page_count):
                page = doc.load_page(page_num)
                try:
                    page_texts.append(page.get_text("text"))
                except Exception as e:
                    logger.debug(f"Text layer extraction failed for page {page_num}: {e}")
                    page_texts.append("")
                # Text layer covers the first half of the progress range, OCR the second.
                self._report(progress_callback, 0.5 * (page_num + 1) / max(page_count, 1))

            text = "\n".join(page_texts)
            if len(text.strip()) >= self.min_text_chars:
                logger.info(f"PDF text layer: {page_count} pages, {len(text.strip())} chars")
                return text, False, page_count

            logger.info(f"PDF text layer has {len(text.strip())} chars, treating as scan and running OCR")
            ocr_texts: List[str] = []
            for page_num in range(page_count):
                page = doc.load_page(page_num)
                img = await self._render_page(page)
                ocr_texts.append(await self._ocr_image(img))
                self._report(progress_callback, 0.5 + 0.5 * (page_num + 1) / max(page_count, 1))

            return "\n".join(ocr_texts), True, page_count
        finally:
            doc.close()

    def _extract_pdf_text_pypdf(self, file_bytes: bytes) -> str:
        try:
            reader = PdfReader(BytesIO(file_bytes))
            return "\f".join((page.extract_text() or "") for page in reader.pages)
        except Exception as e:
            logger.debug(f"pypdf extraction failed: {e}")
            return ""

    async def _extract_image_text(self, file_bytes: bytes, progress_callback: ProgressCallback) -> str:
        try:
            img = Image.open(BytesIO(file_bytes))
            img.load()
        except (UnidentifiedImageError, OSError) as e:
            raise ExtractionError(f"OCR failed: could not read image ({e})") from e

        self._report(progress_callback, 0.1)
        return await self._ocr_image(img)

    async def _render_page(self, page) -> Image.Image:
        try:
            async with OCR_SEMAPHORE:
                pix = await asyncio.to_thread(page.get_pixmap, dpi=self.dpi)
        except Exception as e:
            raise ExtractionError(f"PDF processing failed: could not render page ({e})") from e
        return Image.open(BytesIO(pix.tobytes("png")))

    async def _ocr_image(self, img: Image.Image) -> str:
        try:
            async with OCR_SEMAPHORE:
                return await asyncio.to_thread(
                    pytesseract.image_to_string, img, lang=self.lang, config=self.tesseract_config
                )
        except Exception as e:
            raise ExtractionError(f"OCR failed: {e}") from e

    @staticmethod
    def _report(progress_callback: ProgressCallback, value: float) -> None:
        if progress_callback is None:
            return
        try:
            progress_callback(min(max(value, 0.0), 1.0))
        except Exception as e:
            logger.debug(f"Progress callback raised: {e}")
