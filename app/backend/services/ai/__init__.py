"""
AI service package for invoice data extraction.

This package provides:
- extraction: Single-image invoice extraction via OpenAI vision
- validation: Normalization of the model's JSON payload
- exceptions: Error taxonomy for extraction failures

The AIService class owns the OpenAI client and delegates to these modules.
"""

import logging
from typing import Any

# Handle both package imports and standalone imports
try:
    from ...models import InvoiceData
except ImportError:
    from models import InvoiceData

from .exceptions import (
    AIServiceError,
    EmptyResponseError,
    ExtractionTimeoutError,
    ServiceError,
)
from .extraction import extract_invoice_data as _extract_invoice_data
from .validation import normalize_invoice_payload, parse_currency

logger = logging.getLogger(__name__)

__all__ = [
    "AIService",
    "AIServiceError",
    "EmptyResponseError",
    "ExtractionTimeoutError",
    "ServiceError",
    "extract_invoice_data",
    "get_ai_service",
    "normalize_invoice_payload",
    "parse_currency",
]


class AIService:
    """
    Service for AI-powered invoice extraction.

    Uses an OpenAI vision model to read invoice fields from a page image.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4.1",
        timeout: float | None = 120.0,
        client: Any = None,
    ):
        """
        Initialize the AI service.

        Args:
            api_key: OpenAI API key. Required.
            model: OpenAI model to use (must support vision).
            timeout: Seconds allowed per extraction call.
            client: Pre-built OpenAI-compatible client (tests inject fakes here).

        Raises:
            AIServiceError: If no API key is given.
        """
        if not api_key:
            raise AIServiceError(
                "OpenAI API key not provided. Set OPENAI_API_KEY environment variable."
            )
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client = client

    @property
    def client(self):
        """Lazy-load the OpenAI client."""
        if self._client is None:
            from openai import OpenAI

            # Retries stay with the caller; one attempt per extraction
            self._client = OpenAI(
                api_key=self.api_key,
                max_retries=0,
                timeout=self.timeout,
            )
        return self._client

    async def extract_invoice(self, image_base64: str) -> InvoiceData:
        """
        Extract invoice fields from one base64 JPEG page image.

        Args:
            image_base64: Bare base64 JPEG payload.

        Returns:
            InvoiceData for the page.
        """
        return await _extract_invoice_data(
            image_base64,
            client=self.client,
            model=self.model,
            timeout=self.timeout,
        )


# =============================================================================
# Singleton Factory
# =============================================================================

_ai_service: AIService | None = None


def get_ai_service() -> AIService:
    """Get or create the AI service singleton from application settings."""
    global _ai_service
    if _ai_service is None:
        try:
            from ...config import get_settings
        except ImportError:
            from config import get_settings

        settings = get_settings()
        _ai_service = AIService(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            timeout=settings.extraction_timeout_seconds,
        )
    return _ai_service


# Re-export module function for direct use without AIService
extract_invoice_data = _extract_invoice_data
