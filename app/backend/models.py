"""
Pydantic models for the invoice extraction pipeline.

Defines strict types for uploaded files, per-file processing status,
extracted invoice records, and API responses.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class FileStatus(str, Enum):
    """Processing status of a single uploaded file."""

    PENDING = "pending"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class UploadedFile(BaseModel):
    """Raw uploaded document held in memory for the current batch."""

    filename: str = Field(..., description="Original filename")
    content_type: str = Field(default="application/pdf", description="Declared media type")
    content: bytes = Field(..., repr=False, description="Raw document bytes")


class UploadItem(BaseModel):
    """
    One file in the current batch and its processing status.

    Attributes:
        file: The uploaded document.
        status: Current position in pending -> processing -> succeeded/failed.
        error_message: Human-readable failure reason (failed items only).
    """

    file: UploadedFile
    status: FileStatus = FileStatus.PENDING
    error_message: str | None = None


class InvoiceData(BaseModel):
    """
    Structured fields returned by the extraction model.

    Serialized with camelCase names to match the model's output schema.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    invoice_number: str = Field(
        ...,
        alias="invoiceNumber",
        description="The invoice number or ID",
        examples=["INV-2024-001"],
    )
    vendor_name: str = Field(
        ...,
        alias="vendorName",
        description="The name of the company that sent the invoice",
    )
    invoice_date: str = Field(
        ...,
        alias="invoiceDate",
        description="The date the invoice was issued (YYYY-MM-DD expected, not validated)",
    )
    total_amount: float = Field(
        ...,
        alias="totalAmount",
        description="The final total amount due",
    )


class ExtractedRecord(InvoiceData):
    """Invoice data annotated with the file it was extracted from."""

    file_name: str = Field(..., alias="fileName", description="Source filename")

    @classmethod
    def from_invoice(cls, data: InvoiceData, file_name: str) -> "ExtractedRecord":
        """Attach the originating filename to an extraction result."""
        return cls(**data.model_dump(), file_name=file_name)


class StatusEvent(BaseModel):
    """A single status transition emitted while a batch is processed."""

    model_config = ConfigDict(populate_by_name=True)

    index: int = Field(..., ge=0, description="Position of the item in the batch")
    filename: str
    status: FileStatus
    error_message: str | None = Field(default=None, alias="errorMessage")


# =============================================================================
# API Response Models
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default="healthy")
    version: str = Field(default="1.0.0")
    message: str | None = None


class FileStatusResponse(BaseModel):
    """Status of a single file in the current batch."""

    model_config = ConfigDict(populate_by_name=True)

    filename: str = Field(..., description="Original filename")
    status: FileStatus = Field(..., description="Processing status")
    error_message: str | None = Field(
        default=None,
        alias="errorMessage",
        description="Error message (if failed)",
    )


class BatchStateResponse(BaseModel):
    """Snapshot of the current batch."""

    model_config = ConfigDict(populate_by_name=True)

    files: list[FileStatusResponse] = Field(default_factory=list)
    results: list[ExtractedRecord] = Field(default_factory=list)
    is_processing: bool = Field(default=False, alias="isProcessing")
    global_error: str | None = Field(default=None, alias="globalError")
    total_files: int = Field(..., ge=0, alias="totalFiles")


class ExtractionStartedResponse(BaseModel):
    """Response model for starting an extraction run."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., description="Status message")
    total_files: int = Field(..., ge=0, alias="totalFiles", description="Files queued")
    status: str = Field(default="processing", description="processing or idle")


class ResultsResponse(BaseModel):
    """Extraction results with display-formatted table rows."""

    results: list[ExtractedRecord] = Field(default_factory=list)
    table: list[dict[str, str]] = Field(
        default_factory=list,
        description="Rows formatted for display (N/A for missing values)",
    )
    total: int = Field(..., ge=0)
