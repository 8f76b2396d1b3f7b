"""Tests for the FastAPI REST endpoints."""

from collections.abc import Iterator
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from receipt_ocr import __version__
from receipt_ocr.api.app import app, get_controller
from receipt_ocr.extraction.models import ExtractedRecord
from receipt_ocr.extraction.parser import ReceiptParser
from receipt_ocr.service.controller import ProcessingController
from receipt_ocr.service.models import PerformanceReport, ProcessingResult
from receipt_ocr.utils.config import ProcessingConfig
from receipt_ocr.validation.quality import QualityAssessor


def _make_result(success: bool = True) -> ProcessingResult:
    """Create a processing result for a simple receipt."""
    record = ExtractedRecord(
        vendor="Joe's Coffee House",
        total=Decimal("12.42") if success else None,
        currency="USD",
        raw_text="Joe's Coffee House\nTOTAL $12.42",
    )
    return ProcessingResult(
        success=success,
        data=record,
        error=None if success else "Processing failed after 3 attempt(s): boom",
        performance=PerformanceReport(100.0, 80.0, 5.0, 1 if success else 3),
        quality_score=72.5 if success else 10.0,
    )


@pytest.fixture
def controller() -> ProcessingController:
    """Controller with a stub engine so no Tesseract binary is needed."""
    recognizer = MagicMock()
    recognizer.engine.is_initialized = True
    recognizer.engine.version = "5.3.0"
    controller = ProcessingController(
        recognizer, ReceiptParser(), QualityAssessor(), ProcessingConfig()
    )
    controller.process_document = AsyncMock(return_value=_make_result())
    return controller


@pytest.fixture
def client(controller: ProcessingController) -> Iterator[TestClient]:
    """Create a FastAPI test client bound to the stub controller."""
    app.dependency_overrides[get_controller] = lambda: controller
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealthEndpoint:
    """Tests for the /health endpoint."""

    def test_health_returns_ok(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["version"] == __version__
        assert data["details"]["engine_version"] == "5.3.0"

    def test_health_reports_engine_failure(
        self, client: TestClient, controller: ProcessingController
    ) -> None:
        controller.health_check = AsyncMock(
            return_value={"status": "error", "details": {"error": "no tesseract"}}
        )
        data = client.get("/health").json()
        assert data["status"] == "error"
        assert data["details"]["error"] == "no tesseract"


class TestStatsEndpoint:
    """Tests for the /stats endpoint."""

    def test_initial_stats(self, client: TestClient) -> None:
        response = client.get("/stats")
        assert response.status_code == 200
        assert response.json() == {
            "documents_processed": 0,
            "successful": 0,
            "success_rate": 0.0,
            "average_time_ms": 0.0,
            "average_quality": 0.0,
        }


class TestProcessEndpoint:
    """Tests for the /process endpoint."""

    def test_process_image(
        self, client: TestClient, controller: ProcessingController, png_bytes: bytes
    ) -> None:
        response = client.post(
            "/process", files={"file": ("receipt.png", png_bytes, "image/png")}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["data"]["total"] == 12.42
        assert data["data"]["currency"] == "USD"
        assert data["quality_score"] == 72.5
        assert data["performance"]["attempts_used"] == 1

        document, options = controller.process_document.call_args.args
        assert document.name == "receipt.png"
        assert document.mime_type == "image/png"
        assert options == {}

    def test_query_options_forwarded(
        self, client: TestClient, controller: ProcessingController, png_bytes: bytes
    ) -> None:
        client.post(
            "/process?max_retries=1&enable_preprocessing=false",
            files={"file": ("receipt.png", png_bytes, "image/png")},
        )
        _, options = controller.process_document.call_args.args
        assert options == {"max_retries": 1, "enable_preprocessing": False}

    def test_processing_failure_is_not_http_error(
        self, client: TestClient, controller: ProcessingController, png_bytes: bytes
    ) -> None:
        controller.process_document.return_value = _make_result(success=False)

        response = client.post(
            "/process", files={"file": ("receipt.png", png_bytes, "image/png")}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["data"]["total"] is None
        assert "after 3 attempt(s)" in data["error"]

    def test_unsupported_type_rejected(
        self, client: TestClient, controller: ProcessingController
    ) -> None:
        response = client.post(
            "/process", files={"file": ("notes.txt", b"hello", "text/plain")}
        )
        assert response.status_code == 400
        assert "Unsupported file type" in response.json()["detail"]
        controller.process_document.assert_not_called()

    def test_oversized_upload_rejected(
        self, client: TestClient, controller: ProcessingController
    ) -> None:
        controller.config = ProcessingConfig(max_file_size_mb=1)
        payload = b"x" * (2 * 1024 * 1024)

        response = client.post(
            "/process", files={"file": ("receipt.png", payload, "image/png")}
        )

        assert response.status_code == 400
        assert "File too large" in response.json()["detail"]
        controller.process_document.assert_not_called()

    def test_empty_file_rejected(self, client: TestClient) -> None:
        response = client.post(
            "/process", files={"file": ("receipt.png", b"", "image/png")}
        )
        assert response.status_code == 400

    def test_negative_retries_rejected(
        self, client: TestClient, png_bytes: bytes
    ) -> None:
        response = client.post(
            "/process?max_retries=-1",
            files={"file": ("receipt.png", png_bytes, "image/png")},
        )
        assert response.status_code == 422

    def test_missing_file(self, client: TestClient) -> None:
        assert client.post("/process").status_code == 422
