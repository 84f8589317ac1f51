"""Pytest configuration and fixtures."""

import os
from typing import Generator

import pytest
from fastapi.testclient import TestClient

# Settings are built at app startup and require a key
os.environ.setdefault("OPENAI_API_KEY", "test-key")

from app.backend.main import app  # noqa: E402
from app.backend.models import InvoiceData, UploadedFile  # noqa: E402
from app.backend.routers.batches import get_batch_pipeline  # noqa: E402
from app.backend.services.pdf_service import DecodeError  # noqa: E402
from app.backend.services.pipeline import BatchPipeline  # noqa: E402


VALID_PDF = b"%PDF-1.4 first invoice"
SECOND_PDF = b"%PDF-1.4 second invoice"
BROKEN_PDF = b"%PDF-1.4 corrupted"
EMPTY_PDF = b"%PDF-1.4 no pages"
NOT_A_PDF = b"This is not a PDF file"


class FakeDecoder:
    """PageDecoder that maps document bytes to canned pages or errors."""

    def __init__(self, pages: dict[bytes, list[str] | Exception] | None = None):
        self.pages = pages or {}
        self.calls: list[bytes] = []

    def decode_pages(self, content: bytes) -> list[str]:
        self.calls.append(content)
        result = self.pages.get(content)
        if result is None:
            raise DecodeError("Invalid PDF file: does not start with PDF header")
        if isinstance(result, Exception):
            raise result
        return list(result)


class FakeExtractor:
    """InvoiceExtractor that maps page payloads to canned records or errors."""

    def __init__(self, records: dict[str, InvoiceData | Exception] | None = None):
        self.records = records or {}
        self.calls: list[str] = []

    async def extract_invoice(self, image_base64: str) -> InvoiceData:
        self.calls.append(image_base64)
        result = self.records[image_base64]
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def sample_pdf_bytes() -> bytes:
    """
    Create a minimal valid PDF for testing.

    This is a minimal PDF structure that should be recognized as a valid PDF.
    """
    return b"""%PDF-1.4
1 0 obj
<< /Type /Catalog /Pages 2 0 R >>
endobj
2 0 obj
<< /Type /Pages /Kids [3 0 R] /Count 1 >>
endobj
3 0 obj
<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents 4 0 R >>
endobj
4 0 obj
<< /Length 44 >>
stream
BT
/F1 12 Tf
100 700 Td
(INV-1) Tj
ET
endstream
endobj
xref
0 5
0000000000 65535 f
0000000009 00000 n
0000000058 00000 n
0000000115 00000 n
0000000214 00000 n
trailer
<< /Size 5 /Root 1 0 R >>
startxref
306
%%EOF"""


@pytest.fixture
def acme_invoice() -> InvoiceData:
    """Invoice extracted from the first sample page."""
    return InvoiceData(
        invoiceNumber="INV-1",
        vendorName="Acme",
        invoiceDate="2024-01-05",
        totalAmount=100.5,
    )


@pytest.fixture
def globex_invoice() -> InvoiceData:
    """Invoice extracted from the second sample page."""
    return InvoiceData(
        invoiceNumber="GX-42",
        vendorName='Globex "Corp"',
        invoiceDate="2024-02-10",
        totalAmount=2000.0,
    )


@pytest.fixture
def decoder() -> FakeDecoder:
    """Decoder knowing two valid invoices, one corrupt file and one with no pages."""
    return FakeDecoder(
        {
            VALID_PDF: ["page-1-a", "page-1-b"],
            SECOND_PDF: ["page-2-a"],
            BROKEN_PDF: DecodeError("Invalid or corrupted PDF file: bad xref"),
            EMPTY_PDF: [],
        }
    )


@pytest.fixture
def extractor(acme_invoice: InvoiceData, globex_invoice: InvoiceData) -> FakeExtractor:
    """Extractor returning the sample invoices for their first pages."""
    return FakeExtractor({"page-1-a": acme_invoice, "page-2-a": globex_invoice})


@pytest.fixture
def pipeline(decoder: FakeDecoder, extractor: FakeExtractor) -> BatchPipeline:
    """Fresh batch pipeline backed by fakes."""
    return BatchPipeline(decoder=decoder, extractor=extractor)


@pytest.fixture
def make_file():
    """Factory for in-memory uploaded files."""

    def _make(
        filename: str, content: bytes, content_type: str = "application/pdf"
    ) -> UploadedFile:
        return UploadedFile(filename=filename, content_type=content_type, content=content)

    return _make


@pytest.fixture
def client(pipeline: BatchPipeline) -> Generator[TestClient, None, None]:
    """Create a test client whose batch runs against the fake collaborators."""
    app.dependency_overrides[get_batch_pipeline] = lambda: pipeline
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
