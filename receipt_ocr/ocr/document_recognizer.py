"""Document-level recognition: decode pages, build variants, run the grid.

Combines PDF rendering, variant generation and the recognition
orchestrator into a single interface that turns an input document into
the best raw text for each of its pages.
"""

import asyncio
import io
from dataclasses import dataclass

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from receipt_ocr.exceptions import ImageDecodingError
from receipt_ocr.preprocessing.variants import ResizeMode, VariantGenerator
from receipt_ocr.service.models import InputDocument
from receipt_ocr.utils.config import AppConfig
from receipt_ocr.utils.logger import get_logger

from .configurations import RecognitionConfig, select_configs
from .orchestrator import RecognitionOrchestrator, RecognitionResult
from .pdf_handler import PDFHandler
from .tesseract_engine import TesseractEngine

logger = get_logger(__name__)

PAGE_SEPARATOR = "\n\n"


@dataclass
class DocumentRecognition:
    """Best recognition results for every page of a document."""

    pages: list[RecognitionResult]

    @property
    def text(self) -> str:
        return PAGE_SEPARATOR.join(p.text for p in self.pages)

    @property
    def engine_confidence(self) -> float:
        if not self.pages:
            return 0.0
        return sum(p.engine_confidence for p in self.pages) / len(self.pages)

    @property
    def quality_score(self) -> float:
        if not self.pages:
            return 0.0
        return sum(p.quality_score for p in self.pages) / len(self.pages)

    @property
    def method(self) -> str:
        return ",".join(p.method for p in self.pages)


class DocumentRecognizer:
    """Turns an input document into recognized text.

    Args:
        engine: Recognition engine owned by the caller.
        config: Application configuration object.
        pdf_handler: Page renderer for PDF documents.
        configs: Recognition configurations to try; defaults to the
            catalog subset named in ``config.ocr.configurations``.
    """

    def __init__(
        self,
        engine: TesseractEngine,
        config: AppConfig,
        pdf_handler: PDFHandler | None = None,
        configs: list[RecognitionConfig] | None = None,
    ) -> None:
        self.engine = engine
        self.config = config
        self.pdf_handler = pdf_handler or PDFHandler(config.ocr.render_scale)
        self.variant_generator = VariantGenerator(config.variants)
        self.orchestrator = RecognitionOrchestrator(engine)
        self.configs = configs or select_configs(config.ocr.configurations)

    def load_pages(self, document: InputDocument) -> list[np.ndarray]:
        """Decode a document into page images.

        Raises:
            ImageDecodingError: If the document cannot be decoded.
        """
        if document.is_pdf:
            pages = self.pdf_handler.pdf_to_images(document.data)
        else:
            pages = [self._decode_image(document.data)]

        if not pages:
            raise ImageDecodingError(f"{document.name} contains no pages")
        logger.info("Decoded %s into %d page(s)", document.name, len(pages))
        return pages

    async def recognize(
        self,
        pages: list[np.ndarray],
        mode: ResizeMode = ResizeMode.STANDARD,
        enable_preprocessing: bool = True,
    ) -> DocumentRecognition:
        """Run grid recognition on every page, in page order.

        Raises:
            NoUsableResultError: If every attempt on some page failed.
        """
        results: list[RecognitionResult] = []
        for number, page in enumerate(pages, 1):
            variants = await asyncio.to_thread(
                self.variant_generator.generate, page, mode, enable_preprocessing
            )
            logger.info("Recognizing page %d/%d", number, len(pages))
            results.append(await self.orchestrator.run(variants, self.configs))
        return DocumentRecognition(pages=results)

    @staticmethod
    def _decode_image(data: bytes) -> np.ndarray:
        try:
            with Image.open(io.BytesIO(data)) as img:
                img = ImageOps.exif_transpose(img)
                return np.array(img.convert("RGB"))
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            raise ImageDecodingError(f"Unable to decode image: {exc}") from exc
