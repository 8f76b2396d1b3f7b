"""FastAPI application for the receipt OCR service.

Provides REST endpoints for document processing, running statistics and
health checks. The processing controller, and with it the recognition
engine, is created and released by the application lifespan.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware

from receipt_ocr import __version__
from receipt_ocr.exceptions import ValidationError
from receipt_ocr.service.controller import (
    BYTES_PER_MB,
    ProcessingController,
    build_controller,
)
from receipt_ocr.service.models import InputDocument
from receipt_ocr.utils.config import load_config
from receipt_ocr.utils.logger import get_logger

from .schemas import HealthResponse, ProcessResponse, StatsResponse

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Own one controller for the lifetime of the application."""
    controller = build_controller(load_config())
    app.state.controller = controller
    logger.info("Receipt OCR service started")
    try:
        yield
    finally:
        await controller.terminate()
        logger.info("Receipt OCR service stopped")


app = FastAPI(
    title="Receipt OCR API",
    description="Extract structured data from receipts and invoices",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_controller(request: Request) -> ProcessingController:
    """Return the controller owned by the application lifespan."""
    return request.app.state.controller


ControllerDep = Annotated[ProcessingController, Depends(get_controller)]


@app.get("/health", response_model=HealthResponse)
async def health_check(controller: ControllerDep) -> HealthResponse:
    """Return engine health and current statistics."""
    health = await controller.health_check()
    return HealthResponse(
        status=health["status"], version=__version__, details=health["details"]
    )


@app.get("/stats", response_model=StatsResponse)
async def statistics(controller: ControllerDep) -> StatsResponse:
    """Return running statistics over processed documents."""
    return StatsResponse(**controller.get_statistics())


@app.post("/process", response_model=ProcessResponse)
async def process_document(
    controller: ControllerDep,
    file: Annotated[UploadFile, File(...)],
    max_retries: Annotated[int | None, Query(ge=0)] = None,
    timeout_ms: Annotated[int | None, Query(gt=0)] = None,
    enable_preprocessing: Annotated[bool | None, Query()] = None,
) -> ProcessResponse:
    """Extract structured fields from an uploaded receipt or invoice.

    Args:
        controller: Processing controller.
        file: Uploaded image or PDF.
        max_retries: Extra attempts after the first one.
        timeout_ms: Deadline per attempt in milliseconds.
        enable_preprocessing: Whether to generate enhanced image variants.

    Returns:
        The processing result. Processing failures are reported with
        ``success: false``; rejected input yields HTTP 400.
    """
    limit = controller.config.max_file_size_mb * BYTES_PER_MB
    if file.size is not None and file.size > limit:
        raise HTTPException(
            status_code=400,
            detail=f"File too large: {file.size} bytes "
            f"(max {controller.config.max_file_size_mb} MB)",
        )
    # One byte past the limit is enough for validation to reject it.
    document = InputDocument(
        name=file.filename or "",
        mime_type=file.content_type or "application/octet-stream",
        data=await file.read(limit + 1),
    )
    try:
        controller.validate(document)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    overrides = {
        "max_retries": max_retries,
        "timeout_ms": timeout_ms,
        "enable_preprocessing": enable_preprocessing,
    }
    options = {k: v for k, v in overrides.items() if v is not None}
    result = await controller.process_document(document, options)
    return ProcessResponse(**result.to_dict())

