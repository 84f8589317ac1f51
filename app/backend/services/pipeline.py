"""
Batch pipeline for invoice extraction.

Processes the selected files strictly one at a time, in selection order:

    pending -> processing -> succeeded | failed

Every transition is yielded as a StatusEvent so an observer (HTTP stream,
background task, test) can follow progress. Aggregated results are only
published once the whole batch has finished.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from typing import Protocol

# Handle both package imports and standalone imports
try:
    from ..models import (
        ExtractedRecord,
        FileStatus,
        InvoiceData,
        StatusEvent,
        UploadedFile,
        UploadItem,
    )
    from .pdf_service import PageDecoder
except ImportError:
    from models import (
        ExtractedRecord,
        FileStatus,
        InvoiceData,
        StatusEvent,
        UploadedFile,
        UploadItem,
    )
    from services.pdf_service import PageDecoder

logger = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"
INTERRUPTED_MESSAGE = "Processing was interrupted"


class InvoiceExtractor(Protocol):
    """Anything that turns one page image into invoice fields."""

    async def extract_invoice(self, image_base64: str) -> InvoiceData: ...


class UnknownError(Exception):
    """Fallback for failures that carry no usable message."""

    def __init__(self, message: str = "An unknown error occurred."):
        super().__init__(message)


class BatchInProgressError(Exception):
    """Raised when the batch is changed or restarted while it is running."""

    pass


class BatchFinishedError(Exception):
    """Raised when a batch that already ran is started again without a new selection."""

    pass


def filter_pdf_files(files: Iterable[UploadedFile]) -> list[UploadedFile]:
    """Keep only files whose declared media type is application/pdf."""
    accepted = []
    for file in files:
        if (file.content_type or "").split(";")[0].strip().lower() == PDF_MEDIA_TYPE:
            accepted.append(file)
        else:
            logger.info(
                "Dropping non-PDF file %s (%s)", file.filename, file.content_type
            )
    return accepted


def describe_error(error: BaseException) -> str:
    """Human-readable message for a per-item failure."""
    if isinstance(error, IndexError):
        return "No renderable pages found in document"
    message = str(error).strip()
    if not message:
        return str(UnknownError())
    return message


class BatchRun:
    """
    A claimed run of the batch, iterated for its status events.

    The batch stays claimed from creation until the events are exhausted or
    the run is closed. Closing or dropping a run that never started releases
    the claim without touching any item.
    """

    def __init__(self, pipeline: "BatchPipeline", claimed: bool):
        self._pipeline = pipeline
        self._claimed = claimed
        self._events = pipeline._run()
        self._started = False
        self._closed = False

    def __aiter__(self) -> "BatchRun":
        return self

    async def __anext__(self) -> StatusEvent:
        if self._closed:
            raise StopAsyncIteration
        self._started = True
        return await self._events.__anext__()

    async def aclose(self) -> None:
        """Stop the run; unfinished items are marked failed."""
        if self._closed:
            return
        self._closed = True
        if self._started:
            await self._events.aclose()
        elif self._claimed:
            self._pipeline._release()

    def __del__(self):
        if self._claimed and not self._started and not self._closed:
            self._closed = True
            self._pipeline._release()


class BatchPipeline:
    """
    Per-session batch of uploaded invoices and their extraction state.

    The pipeline is the only writer of item status. ``results`` stays empty
    until a run has finished or been interrupted.
    """

    def __init__(self, decoder: PageDecoder, extractor: InvoiceExtractor):
        self.decoder = decoder
        self.extractor = extractor
        self.items: list[UploadItem] = []
        self.results: list[ExtractedRecord] = []
        self.global_error: str | None = None
        self.is_processing = False
        self.is_finished = False

    def select(self, files: Iterable[UploadedFile]) -> list[UploadItem]:
        """
        Replace the current batch with a new selection.

        All previous items, results and the global error are discarded;
        every new item starts as pending.

        Raises:
            BatchInProgressError: If a batch is currently being processed.
        """
        if self.is_processing:
            raise BatchInProgressError("Cannot change files while a batch is processing")

        self.items = [UploadItem(file=file) for file in files]
        self.results = []
        self.global_error = None
        self.is_finished = False
        logger.info("Selected %d file(s) for extraction", len(self.items))
        return self.items

    def _transition(
        self,
        index: int,
        status: FileStatus,
        error_message: str | None = None,
    ) -> StatusEvent:
        item = self.items[index]
        item.status = status
        item.error_message = error_message
        return StatusEvent(
            index=index,
            filename=item.file.filename,
            status=status,
            error_message=error_message,
        )

    async def _process_item(self, item: UploadItem) -> ExtractedRecord:
        pages = await asyncio.to_thread(self.decoder.decode_pages, item.file.content)
        # Only the first page is sent for extraction
        first_page = pages[0]
        data = await self.extractor.extract_invoice(first_page)
        return ExtractedRecord.from_invoice(data, file_name=item.file.filename)

    def run(self) -> BatchRun:
        """
        Start processing every item sequentially.

        The batch is claimed immediately, so a second call raises even
        before the first run is iterated. The returned run yields each
        status transition; a failing item is marked failed with its error
        message and the batch moves on. Results are published to
        ``self.results`` only after the last item, or when the run is
        interrupted.

        Raises:
            BatchInProgressError: If a batch is already running.
            BatchFinishedError: If this selection was already processed.
        """
        if self.is_processing:
            raise BatchInProgressError("A batch is already being processed")
        if self.is_finished:
            raise BatchFinishedError("This batch was already processed; select files again")
        if not self.items:
            logger.info("No files selected, nothing to process")
            return BatchRun(self, claimed=False)

        self.is_processing = True
        self.global_error = None
        self.results = []
        return BatchRun(self, claimed=True)

    def _release(self) -> None:
        logger.info("Batch run released before it started")
        self.is_processing = False

    def _abandon(self, collected: list[ExtractedRecord], message: str) -> int:
        """Fail every item that has not finished and keep what succeeded."""
        abandoned = 0
        for index, item in enumerate(self.items):
            if item.status in (FileStatus.PENDING, FileStatus.PROCESSING):
                self._transition(index, FileStatus.FAILED, message)
                abandoned += 1
        self.results = collected
        return abandoned

    async def _run(self) -> AsyncIterator[StatusEvent]:
        if not self.items:
            return

        collected: list[ExtractedRecord] = []

        try:
            for index, item in enumerate(self.items):
                yield self._transition(index, FileStatus.PROCESSING)

                try:
                    record = await self._process_item(item)
                except Exception as e:
                    message = describe_error(e)
                    logger.warning(
                        "Error processing file %s: %s", item.file.filename, message
                    )
                    yield self._transition(index, FileStatus.FAILED, message)
                    continue

                collected.append(record)
                yield self._transition(index, FileStatus.SUCCEEDED)

            self.results = collected
            logger.info(
                "Batch finished: %d succeeded, %d failed",
                len(collected),
                len(self.items) - len(collected),
            )
        except Exception as e:
            self.global_error = describe_error(e)
            self._abandon(collected, self.global_error)
            logger.exception("Batch processing aborted")
            raise
        except BaseException:
            # Closed or cancelled by the consumer
            if self._abandon(collected, INTERRUPTED_MESSAGE):
                self.global_error = INTERRUPTED_MESSAGE
            logger.warning(
                "Batch interrupted after %d succeeded file(s)", len(collected)
            )
            raise
        finally:
            self.is_processing = False
            self.is_finished = True

    async def process(self) -> list[ExtractedRecord]:
        """Run the whole batch without observing events and return the results."""
        async for _ in self.run():
            pass
        return self.results
