"""Pydantic response schemas for the FastAPI endpoints."""

from typing import Any

from pydantic import BaseModel, Field


class LineItemResponse(BaseModel):
    """Response schema for a purchased item."""

    description: str
    quantity: float
    unit_price: float
    amount: float


class RecordResponse(BaseModel):
    """Response schema for an extracted receipt record."""

    id: str
    invoice_number: str | None = None
    transaction_id: str | None = None
    authorization_code: str | None = None
    terminal_id: str | None = None
    merchant_id: str | None = None
    card_number: str | None = None
    payment_method: str | None = None
    date: str | None = None
    time: str | None = None
    due_date: str | None = None
    subtotal: float | None = None
    tax: float | None = None
    total: float | None = None
    currency: str | None = None
    vendor: str | None = None
    vendor_address: str | None = None
    vendor_phone: str | None = None
    vendor_email: str | None = None
    items: list[LineItemResponse] = Field(default_factory=list)
    extra_fields: list[str] = Field(default_factory=list)
    raw_text: str = ""
    processing_method: str | None = None
    confidence: float | None = None
    processing_time_ms: float = 0.0
    warnings: list[str] = Field(default_factory=list)


class PerformanceResponse(BaseModel):
    """Timing breakdown of a processing call."""

    total_time_ms: float
    ocr_time_ms: float
    parsing_time_ms: float
    attempts_used: int


class ProcessResponse(BaseModel):
    """Response schema for a document processing request."""

    success: bool
    data: RecordResponse
    error: str | None = None
    quality_score: float
    performance: PerformanceResponse


class StatsResponse(BaseModel):
    """Running processing statistics."""

    documents_processed: int
    successful: int
    success_rate: float
    average_time_ms: float
    average_quality: float


class HealthResponse(BaseModel):
    """Response schema for the health check endpoint."""

    status: str
    version: str
    details: dict[str, Any] = Field(default_factory=dict)
