"""
CSV export and display formatting for extracted invoice records.
"""

import csv
import io
import math
from collections.abc import Iterable
from decimal import Decimal

# Handle both package imports and standalone imports
try:
    from ..models import ExtractedRecord
except ImportError:
    from models import ExtractedRecord

CSV_FILENAME = "invoice_data.csv"
CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
CSV_HEADERS = ["FileName", "InvoiceNumber", "VendorName", "InvoiceDate", "TotalAmount"]

TABLE_COLUMNS = ["Vendor Name", "Invoice #", "Date", "Total Amount", "Source File"]
MISSING = "N/A"


def format_amount(amount: float) -> str:
    """
    Render a total the way a JavaScript number prints.

    Shortest round-trip digits, no trailing ".0", plain notation from 1e-6
    up to 1e21 and exponent notation such as ``1e-7`` or ``1.5e+21`` beyond.
    """
    if math.isnan(amount):
        return "NaN"
    if math.isinf(amount):
        return "Infinity" if amount > 0 else "-Infinity"
    if amount == 0:
        return "0"

    sign, digits, exponent = Decimal(repr(float(amount))).as_tuple()
    digits = list(digits)
    while len(digits) > 1 and digits[-1] == 0:
        digits.pop()
        exponent += 1

    text = "".join(str(d) for d in digits)
    k = len(text)
    # Position of the decimal point relative to the first digit
    n = exponent + k
    prefix = "-" if sign else ""

    if k <= n <= 21:
        return prefix + text + "0" * (n - k)
    if 0 < n <= 21:
        return prefix + text[:n] + "." + text[n:]
    if -6 < n <= 0:
        return prefix + "0." + "0" * -n + text

    e = n - 1
    mantissa = text if k == 1 else text[0] + "." + text[1:]
    return f"{prefix}{mantissa}e{'+' if e > 0 else '-'}{abs(e)}"


def records_to_csv(records: Iterable[ExtractedRecord]) -> str:
    """
    Serialize records to comma-separated text.

    The header row is bare; every text field is quoted with embedded quotes
    doubled, and the total is left unquoted. Lines are joined with ``\\n``.

    Args:
        records: Extraction results in display order.

    Returns:
        CSV document text (no trailing newline).
    """
    buffer = io.StringIO()
    writer = csv.writer(
        buffer,
        quoting=csv.QUOTE_ALL,
        doublequote=True,
        lineterminator="",
    )

    lines = [",".join(CSV_HEADERS)]
    for record in records:
        writer.writerow(
            [
                record.file_name,
                record.invoice_number,
                record.vendor_name,
                record.invoice_date,
            ]
        )
        lines.append(f"{buffer.getvalue()},{format_amount(record.total_amount)}")
        buffer.seek(0)
        buffer.truncate()
    return "\n".join(lines)


def records_to_table(records: Iterable[ExtractedRecord]) -> list[dict[str, str]]:
    """
    Format records as display rows.

    Empty text and a zero total render as "N/A"; totals are shown as
    dollars with two decimals.
    """
    rows = []
    for record in records:
        rows.append(
            {
                "Vendor Name": record.vendor_name or MISSING,
                "Invoice #": record.invoice_number or MISSING,
                "Date": record.invoice_date or MISSING,
                "Total Amount": f"${record.total_amount:,.2f}" if record.total_amount else MISSING,
                "Source File": record.file_name or MISSING,
            }
        )
    return rows
