"""
PDF processing service using pdf2image (poppler).

Handles conversion of PDF documents to base64-encoded JPEG page images
for AI processing.
"""

import base64
import io
import logging
import tempfile
from typing import Protocol

from PIL import Image

logger = logging.getLogger(__name__)


class DecodeError(Exception):
    """Raised when a document cannot be read or a page cannot be rendered."""

    pass


class PageDecoder(Protocol):
    """Anything that turns document bytes into ordered base64 page images."""

    def decode_pages(self, content: bytes) -> list[str]: ...


def image_to_base64_jpeg(image: Image.Image, quality: int = 92) -> str:
    """
    Encode a PIL Image as a bare base64 JPEG payload (no data: prefix).

    Args:
        image: PIL Image to encode. Converted to RGB if needed.
        quality: JPEG quality (1-95).

    Returns:
        Base64 string of the JPEG bytes.
    """
    if image.mode != "RGB":
        image = image.convert("RGB")
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=quality)
    return base64.b64encode(buffer.getvalue()).decode("ascii")


class PDFService:
    """
    Service for PDF rasterization.

    Uses pdf2image (backed by poppler) to render PDF pages, then encodes
    each page as JPEG for the extraction model.
    """

    def __init__(self, dpi: int = 108, jpeg_quality: int = 92):
        """
        Initialize the PDF service.

        Args:
            dpi: Render resolution. 108 DPI matches a 1.5x viewport scale.
            jpeg_quality: Quality for the encoded page images.
        """
        self.dpi = dpi
        self.jpeg_quality = jpeg_quality

    def convert_pdf_to_images(self, pdf_bytes: bytes) -> list[str]:
        """
        Render every page of a PDF to a base64 JPEG.

        Args:
            pdf_bytes: Raw PDF document.

        Returns:
            Base64 JPEG payloads, in page order (index 0 is page 1).

        Raises:
            DecodeError: If the file is not a PDF or any page fails to render.
        """
        from pdf2image import convert_from_bytes
        from pdf2image.exceptions import (
            PDFInfoNotInstalledError,
            PDFPageCountError,
            PDFSyntaxError,
        )

        if not pdf_bytes:
            raise DecodeError("Empty PDF file provided")

        # Validate PDF magic bytes
        if not pdf_bytes[:4] == b"%PDF":
            raise DecodeError("Invalid PDF file: does not start with PDF header")

        logger.info("Converting PDF to images (dpi=%d)", self.dpi)

        # Rendered pages live in a scratch directory that is removed on every exit path
        with tempfile.TemporaryDirectory(prefix="invoice-pages-") as output_folder:
            images: list[Image.Image] = []
            try:
                images = convert_from_bytes(
                    pdf_bytes,
                    dpi=self.dpi,
                    fmt="jpeg",
                    output_folder=output_folder,
                )
                pages = [
                    image_to_base64_jpeg(image, quality=self.jpeg_quality)
                    for image in images
                ]
            except PDFInfoNotInstalledError as e:
                logger.error("Poppler not installed: %s", e)
                raise DecodeError(
                    "Poppler not installed. Install poppler-utils: "
                    "brew install poppler (macOS) or apt-get install poppler-utils (Linux)"
                ) from e
            except PDFPageCountError as e:
                logger.error("Could not get PDF page count: %s", e)
                raise DecodeError(f"Could not determine PDF page count: {e}") from e
            except PDFSyntaxError as e:
                logger.error("PDF syntax error: %s", e)
                raise DecodeError(f"Invalid or corrupted PDF file: {e}") from e
            except Exception as e:
                logger.exception("Unexpected error during PDF conversion")
                raise DecodeError(f"PDF conversion failed: {e}") from e
            finally:
                for image in images:
                    image.close()

        logger.info("Successfully converted %d page(s)", len(pages))
        return pages

    def decode_pages(self, content: bytes) -> list[str]:
        """PageDecoder entry point used by the batch pipeline."""
        return self.convert_pdf_to_images(content)


# Singleton instance for convenience
_pdf_service: PDFService | None = None


def get_pdf_service() -> PDFService:
    """Get or create the PDF service singleton."""
    global _pdf_service
    if _pdf_service is None:
        try:
            from ..config import get_settings
        except ImportError:
            from config import get_settings

        settings = get_settings()
        _pdf_service = PDFService(
            dpi=settings.render_dpi,
            jpeg_quality=settings.jpeg_quality,
        )
    return _pdf_service
