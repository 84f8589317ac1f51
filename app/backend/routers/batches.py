"""
Router for batch extraction endpoints.

Handles:
- Selecting files for the current batch
- Starting extraction (background or streamed)
- Monitoring per-file status
- Retrieving results and the CSV export
"""

import logging
from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, File, HTTPException, Response, UploadFile, status
from fastapi.responses import StreamingResponse

# Handle both package imports and standalone imports
try:
    from ..models import (
        BatchStateResponse,
        ExtractionStartedResponse,
        FileStatusResponse,
        ResultsResponse,
        UploadedFile,
    )
    from ..services.ai import get_ai_service
    from ..services.export import (
        CSV_FILENAME,
        CSV_MEDIA_TYPE,
        records_to_csv,
        records_to_table,
    )
    from ..services.pdf_service import get_pdf_service
    from ..services.pipeline import (
        BatchFinishedError,
        BatchInProgressError,
        BatchPipeline,
        BatchRun,
        filter_pdf_files,
    )
except ImportError:
    from models import (
        BatchStateResponse,
        ExtractionStartedResponse,
        FileStatusResponse,
        ResultsResponse,
        UploadedFile,
    )
    from services.ai import get_ai_service
    from services.export import (
        CSV_FILENAME,
        CSV_MEDIA_TYPE,
        records_to_csv,
        records_to_table,
    )
    from services.pdf_service import get_pdf_service
    from services.pipeline import (
        BatchFinishedError,
        BatchInProgressError,
        BatchPipeline,
        BatchRun,
        filter_pdf_files,
    )

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/batch", tags=["batch"])


# =============================================================================
# Dependencies
# =============================================================================

_batch_pipeline: BatchPipeline | None = None


def get_batch_pipeline() -> BatchPipeline:
    """Get or create the in-memory batch for this process."""
    global _batch_pipeline
    if _batch_pipeline is None:
        _batch_pipeline = BatchPipeline(
            decoder=get_pdf_service(),
            extractor=get_ai_service(),
        )
    return _batch_pipeline


PipelineDep = Annotated[BatchPipeline, Depends(get_batch_pipeline)]


def _state_response(pipeline: BatchPipeline) -> BatchStateResponse:
    return BatchStateResponse(
        files=[
            FileStatusResponse(
                filename=item.file.filename,
                status=item.status,
                error_message=item.error_message,
            )
            for item in pipeline.items
        ],
        results=list(pipeline.results),
        is_processing=pipeline.is_processing,
        global_error=pipeline.global_error,
        total_files=len(pipeline.items),
    )


async def _drain_events(events: BatchRun) -> None:
    """Background task: consume status events until the batch finishes."""
    try:
        async for event in events:
            logger.info(
                "File %d (%s): %s",
                event.index,
                event.filename,
                event.status.value,
            )
    except Exception as e:
        # Already recorded as the batch's global error
        logger.error("Batch processing stopped: %s", e)
    finally:
        await events.aclose()


# =============================================================================
# Batch Endpoints
# =============================================================================


@router.post("/files", response_model=BatchStateResponse)
async def select_files(
    pipeline: PipelineDep,
    files: Annotated[list[UploadFile], File(description="Invoice PDF files")],
) -> BatchStateResponse:
    """
    Replace the current batch with the uploaded files.

    Parts whose declared media type is not application/pdf are dropped
    silently. Every accepted file starts as pending.
    """
    if pipeline.is_processing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A batch is currently being processed",
        )

    uploaded: list[UploadedFile] = []
    for file in files:
        try:
            content = await file.read()
        finally:
            await file.close()
        uploaded.append(
            UploadedFile(
                filename=file.filename or "unnamed.pdf",
                content_type=file.content_type or "",
                content=content,
            )
        )

    accepted = filter_pdf_files(uploaded)
    logger.info(
        "Received %d file(s), accepted %d PDF(s)", len(uploaded), len(accepted)
    )

    try:
        pipeline.select(accepted)
    except BatchInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return _state_response(pipeline)


@router.post("/extract", response_model=ExtractionStartedResponse)
async def start_extraction(
    pipeline: PipelineDep,
    background_tasks: BackgroundTasks,
    response: Response,
) -> ExtractionStartedResponse:
    """
    Start extracting the current batch in the background.

    Use GET /batch to monitor progress. An empty batch is a no-op.
    """
    if not pipeline.items:
        return ExtractionStartedResponse(
            message="No files selected",
            total_files=0,
            status="idle",
        )

    try:
        events = pipeline.run()
    except (BatchInProgressError, BatchFinishedError) as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    background_tasks.add_task(_drain_events, events)
    response.status_code = status.HTTP_202_ACCEPTED

    return ExtractionStartedResponse(
        message=f"Extraction started for {len(pipeline.items)} file(s)",
        total_files=len(pipeline.items),
        status="processing",
    )


@router.post("/extract/stream")
async def stream_extraction(pipeline: PipelineDep) -> StreamingResponse:
    """
    Run the current batch and stream each status change as NDJSON.

    One JSON object per line: index, filename, status, errorMessage.
    """
    try:
        events = pipeline.run()
    except (BatchInProgressError, BatchFinishedError) as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    async def body() -> AsyncIterator[str]:
        try:
            async for event in events:
                yield event.model_dump_json(by_alias=True) + "\n"
        finally:
            await events.aclose()

    return StreamingResponse(body(), media_type="application/x-ndjson")


@router.get("", response_model=BatchStateResponse)
async def get_batch_state(pipeline: PipelineDep) -> BatchStateResponse:
    """Current per-file status, results and global error."""
    return _state_response(pipeline)


@router.get("/results", response_model=ResultsResponse)
async def get_results(pipeline: PipelineDep) -> ResultsResponse:
    """Extraction results of the last finished batch, with display rows."""
    results = list(pipeline.results)
    return ResultsResponse(
        results=results,
        table=records_to_table(results),
        total=len(results),
    )


@router.get("/export")
async def export_csv(pipeline: PipelineDep) -> Response:
    """Download the results as invoice_data.csv."""
    if not pipeline.results:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No extracted data to export",
        )

    return Response(
        content=records_to_csv(pipeline.results),
        media_type=CSV_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{CSV_FILENAME}"'},
    )
