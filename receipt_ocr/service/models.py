"""Input and output models for document processing."""

import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from receipt_ocr.extraction.models import ExtractedRecord

ALLOWED_MIME_TYPES: frozenset[str] = frozenset(
    {
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/gif",
        "image/bmp",
        "image/tiff",
        "image/webp",
        "application/pdf",
    }
)
PDF_MIME_TYPE = "application/pdf"


@dataclass
class InputDocument:
    """An in-memory document submitted for processing."""

    name: str
    mime_type: str
    data: bytes

    @property
    def size(self) -> int:
        """Document size in bytes."""
        return len(self.data)

    @property
    def is_pdf(self) -> bool:
        return self.mime_type == PDF_MIME_TYPE

    @classmethod
    def from_path(cls, path: Path, mime_type: str | None = None) -> "InputDocument":
        """Read a document from disk, guessing the MIME type from its suffix."""
        path = Path(path)
        if mime_type is None:
            mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return cls(name=path.name, mime_type=mime_type, data=path.read_bytes())


class ProcessingOptions(BaseModel):
    """Caller-supplied options; unrecognized keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    max_retries: int = Field(default=2, ge=0)
    timeout_ms: int = Field(default=60000, gt=0)
    enable_preprocessing: bool = True


@dataclass
class PerformanceReport:
    """Timing breakdown of one processing call."""

    total_time_ms: float = 0.0
    ocr_time_ms: float = 0.0
    parsing_time_ms: float = 0.0
    attempts_used: int = 0


@dataclass
class ProcessingResult:
    """Outcome of processing one document."""

    success: bool
    data: ExtractedRecord
    error: str | None = None
    performance: PerformanceReport = field(default_factory=PerformanceReport)
    quality_score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable representation."""
        return {
            "success": self.success,
            "data": self.data.to_dict(),
            "error": self.error,
            "quality_score": round(self.quality_score, 1),
            "performance": {
                "total_time_ms": round(self.performance.total_time_ms, 1),
                "ocr_time_ms": round(self.performance.ocr_time_ms, 1),
                "parsing_time_ms": round(self.performance.parsing_time_ms, 1),
                "attempts_used": self.performance.attempts_used,
            },
        }
