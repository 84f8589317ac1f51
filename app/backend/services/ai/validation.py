"""
Validation and normalization of the model's invoice payload.

Handles:
- Defaults for missing fields ("N/A" for text, 0 for the total)
- Currency strings returned where a number was expected
"""

import logging
import re
from typing import Any

# Handle both package imports and standalone imports
try:
    from ...models import InvoiceData
except ImportError:
    from models import InvoiceData

logger = logging.getLogger(__name__)

STRING_DEFAULT = "N/A"
NUMBER_DEFAULT = 0.0

STRING_FIELDS = ("invoiceNumber", "vendorName", "invoiceDate")
NUMBER_FIELD = "totalAmount"


def parse_currency(value: Any) -> float | None:
    """
    Parse a currency string to float using price-parser.

    Handles international formats:
    - "$1,234.56", "€1.234,56", "1000 USD", "£500.00"

    Returns None if no amount can be found.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        return None

    value = value.strip()
    if not value:
        return None

    from price_parser import Price

    price = Price.fromstring(value)
    if price.amount_float is not None:
        return price.amount_float

    # Fallback for bare numbers price-parser does not pick up
    cleaned = re.sub(r"[^\d.,\-]", "", value)
    if not cleaned:
        return None

    # European format: the last separator is the decimal one
    if "," in cleaned and "." in cleaned:
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        parts = cleaned.split(",")
        if len(parts) == 2 and len(parts[1]) == 2:
            cleaned = cleaned.replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")

    try:
        return float(cleaned)
    except ValueError:
        return None


def normalize_invoice_payload(payload: Any) -> InvoiceData:
    """
    Turn the decoded JSON response into an InvoiceData record.

    Missing or null fields take the defaults the prompt asks for. Strings
    are stripped; a non-numeric total is parsed as currency.

    Args:
        payload: Decoded JSON object from the model.

    Returns:
        InvoiceData with all four fields populated.

    Raises:
        ValueError: If the payload is not a JSON object.
    """
    if not isinstance(payload, dict):
        raise ValueError(f"Expected a JSON object, got {type(payload).__name__}")

    normalized: dict[str, Any] = {}
    for key in STRING_FIELDS:
        value = payload.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            logger.warning("Model omitted '%s', using default", key)
            normalized[key] = STRING_DEFAULT
        else:
            normalized[key] = str(value).strip()

    amount = parse_currency(payload.get(NUMBER_FIELD))
    if amount is None:
        logger.warning(
            "Could not read '%s' from %r, using default",
            NUMBER_FIELD,
            payload.get(NUMBER_FIELD),
        )
        amount = NUMBER_DEFAULT
    normalized[NUMBER_FIELD] = amount

    return InvoiceData.model_validate(normalized)
