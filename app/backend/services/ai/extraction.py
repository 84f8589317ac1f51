"""
Invoice field extraction from a single page image.

Uses OpenAI chat completions with a strict JSON schema so the model returns
exactly the four invoice fields.
"""

import asyncio
import json
import logging
from typing import Any

from openai import APITimeoutError

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
from .validation import normalize_invoice_payload

logger = logging.getLogger(__name__)


# =============================================================================
# Prompt and Output Schema
# =============================================================================

EXTRACTION_PROMPT = """Analyze the provided invoice image and extract the following information:
- The invoice number.
- The name of the vendor or company that issued the invoice.
- The date of the invoice.
- The total amount due.
Return the information in the specified JSON format. If a value is not found, use a reasonable default like "N/A" for strings or 0 for numbers."""

INVOICE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "invoiceNumber": {
            "type": "string",
            "description": "The invoice number or ID.",
        },
        "vendorName": {
            "type": "string",
            "description": "The name of the company that sent the invoice.",
        },
        "invoiceDate": {
            "type": "string",
            "description": "The date the invoice was issued (YYYY-MM-DD).",
        },
        "totalAmount": {
            "type": "number",
            "description": "The final total amount due.",
        },
    },
    "required": ["invoiceNumber", "vendorName", "invoiceDate", "totalAmount"],
    "additionalProperties": False,
}

RESPONSE_FORMAT: dict[str, Any] = {
    "type": "json_schema",
    "json_schema": {
        "name": "invoice_data",
        "strict": True,
        "schema": INVOICE_SCHEMA,
    },
}


def build_messages(image_base64: str) -> list[dict[str, Any]]:
    """Build the chat messages for one JPEG page image."""
    return [
        {
            "role": "user",
            "content": [
                {
                    "type": "image_url",
                    "image_url": {
                        "url": f"data:image/jpeg;base64,{image_base64}",
                        "detail": "high",
                    },
                },
                {"type": "text", "text": EXTRACTION_PROMPT},
            ],
        },
    ]


# =============================================================================
# Main Extraction Function
# =============================================================================


async def extract_invoice_data(
    image_base64: str,
    client: Any,  # OpenAI client
    model: str = "gpt-4.1",
    timeout: float | None = None,
) -> InvoiceData:
    """
    Extract invoice fields from one base64 JPEG image.

    Makes exactly one request; retry policy belongs to the caller.

    Args:
        image_base64: Bare base64 JPEG payload (no data: prefix).
        client: OpenAI client instance.
        model: Model name to use (must support vision).
        timeout: Seconds to wait for the response. None waits indefinitely.

    Returns:
        InvoiceData parsed from the model's JSON response.

    Raises:
        EmptyResponseError: If the response carries no content.
        ExtractionTimeoutError: If the call exceeds ``timeout``.
        ServiceError: On any other transport, model, or parsing failure.
    """
    logger.info("Requesting invoice extraction (model=%s)", model)

    try:
        call = asyncio.to_thread(
            client.chat.completions.create,
            model=model,
            messages=build_messages(image_base64),
            response_format=RESPONSE_FORMAT,
        )
        response = await asyncio.wait_for(call, timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.warning("Extraction timed out after %ss", timeout)
        raise ExtractionTimeoutError(
            f"Failed to extract data from invoice: request timed out after {timeout}s"
        ) from e
    except Exception as e:
        logger.error("Error calling OpenAI API: %s", e)
        if _is_timeout(e):
            raise ExtractionTimeoutError(
                f"Failed to extract data from invoice: {e}"
            ) from e
        raise ServiceError(f"Failed to extract data from invoice: {e}") from e

    content = response.choices[0].message.content if response.choices else None
    if not content:
        raise EmptyResponseError("API returned an empty response.")

    try:
        data = normalize_invoice_payload(json.loads(content))
    except (json.JSONDecodeError, ValueError) as e:
        logger.error("Failed to parse extraction response: %s", content[:500])
        raise ServiceError(f"Failed to extract data from invoice: {e}") from e

    logger.info(
        "Extracted invoice %s from %s (total=%s)",
        data.invoice_number,
        data.vendor_name,
        data.total_amount,
    )
    return data


def _is_timeout(error: Exception) -> bool:
    """Whether an SDK error represents a request timeout."""
    return isinstance(error, APITimeoutError)


__all__ = [
    "AIServiceError",
    "EXTRACTION_PROMPT",
    "INVOICE_SCHEMA",
    "RESPONSE_FORMAT",
    "build_messages",
    "extract_invoice_data",
]
