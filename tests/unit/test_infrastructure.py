# tests/unit/test_infrastructure.py
# Unit tests for infrastructure components

import json
import logging

import pytest
from pydantic import ValidationError


class TestSettings:
    """Test settings loading and the core config view."""

    def test_defaults(self, monkeypatch):
        from villa_sync.config import Settings

        monkeypatch.delenv("ELECTRIC_URL", raising=False)
        settings = Settings(_env_file=None)

        assert settings.ELECTRIC_URL == "http://localhost:5133"
        assert settings.POLL_INTERVAL_MS == 5000
        assert settings.HEALTH_CHECK_TIMEOUT_MS == 3000

    def test_env_overrides_and_url_is_normalized(self, monkeypatch):
        from villa_sync.config import Settings

        monkeypatch.setenv("ELECTRIC_URL", "https://sync.example.com/")
        monkeypatch.setenv("POLL_INTERVAL_MS", "2500")
        settings = Settings(_env_file=None)

        assert settings.ELECTRIC_URL == "https://sync.example.com"
        assert settings.POLL_INTERVAL_MS == 2500

    def test_invalid_log_level_is_rejected(self):
        from villa_sync.config import Settings

        with pytest.raises(ValidationError):
            Settings(_env_file=None, LOG_LEVEL="chatty")

    def test_sync_config_from_settings(self):
        from villa_sync.config import Settings
        from villa_sync.schemas.shape import SyncConfig

        settings = Settings(_env_file=None, ELECTRIC_URL="http://electric:3000", SHAPE_FETCH_TIMEOUT_MS=8000)
        config = SyncConfig.from_settings(settings)

        assert config.url == "http://electric:3000"
        assert config.shape_fetch_timeout_ms == 8000
        assert config.retry_attempts == 3

    def test_non_positive_interval_is_rejected(self):
        from villa_sync.schemas.shape import SyncConfig

        with pytest.raises(ValidationError):
            SyncConfig(url="http://x", poll_interval_ms=0)


class TestErrors:
    """Test error classes."""

    def test_sync_error_has_correct_properties(self):
        from villa_sync.errors import SyncError

        error = SyncError(
            message="Test error",
            error_code="TEST_ERROR",
            status_code=400,
            details={"field": "value"}
        )

        assert error.message == "Test error"
        assert error.error_code == "TEST_ERROR"
        assert error.status_code == 400
        assert error.details == {"field": "value"}

    def test_request_error_defaults(self):
        from villa_sync.errors import RequestError

        error = RequestError("Failed to fetch Villa", upstream_status=503)

        assert error.error_code == "SHAPE_REQUEST_FAILED"
        assert error.status_code == 502
        assert error.upstream_status == 503

    def test_configuration_error_defaults(self):
        from villa_sync.errors import ConfigurationError

        error = ConfigurationError("Shape table is required")

        assert error.error_code == "CONFIGURATION_ERROR"
        assert error.status_code == 400

    def test_create_error_response_structure(self):
        from villa_sync.middleware.error_handler import create_error_response

        response = create_error_response(
            error_code="TEST",
            message="Test message",
            status_code=400,
            details={"key": "value"},
            request_id="req-123"
        )

        assert response.status_code == 400
        assert json.loads(response.body) == {
            "error": {
                "code": "TEST",
                "message": "Test message",
                "details": {"key": "value"},
                "request_id": "req-123",
            }
        }


class TestLogging:
    """Test JSON logging setup."""

    def test_configure_logging_is_idempotent(self):
        from villa_sync.observability.logger import configure_logging

        root = logging.getLogger()
        before = list(root.handlers)
        level_before = root.level
        try:
            configure_logging(level="DEBUG")
            configure_logging(level="DEBUG")
            console = [h for h in root.handlers if getattr(h, "_villa_sync_console", False)]
            assert len(console) == 1
            assert logging.getLogger("httpx").level == logging.WARNING
        finally:
            for handler in list(root.handlers):
                if handler not in before:
                    root.removeHandler(handler)
            root.setLevel(level_before)

    def test_formatter_emits_json(self):
        from villa_sync.observability.logger import _build_formatter

        record = logging.LogRecord("villa_sync.test", logging.INFO, __file__, 1, "poll ok", None, None)
        payload = json.loads(_build_formatter().format(record))

        assert payload["message"] == "poll ok"
        assert payload["levelname"] == "INFO"


class TestMetrics:
    """Test Prometheus exposition."""

    def test_fetch_observations_are_exported(self):
        from villa_sync.observability.metrics import observe_fetch, render_latest

        observe_fetch("Villa", "ok", 0.05)
        body, content_type = render_latest()

        assert content_type.startswith("text/plain")
        assert b'shape_fetch_count_total{table="Villa",outcome="ok"}' in body
