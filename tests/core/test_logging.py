"""
Tests for the structlog configuration.

Tests verify:
- configure_logging renders JSON with ECS field names
- DEBUG logs are suppressed at INFO level
- Bound context appears in log events
- A configured chain renders retry-loop events
"""

import json

import pytest
import structlog

from callspine.core.errors import NotFoundError, TransportError
from callspine.core.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)
from callspine.execution import retry as retry_module
from callspine.execution.retry import RetryingCallable
from callspine.testing import ScriptedCallable


@pytest.fixture(autouse=True)
def reset_structlog():
    clear_context()
    yield
    clear_context()
    structlog.reset_defaults()


class TestConfigureLogging:
    """Test configure_logging output."""

    def test_json_output_uses_ecs_names(self, capsys):
        configure_logging(level="INFO", json_format=True, service="billing-client")
        get_logger("test").info("retry_scheduled", attempt=1)

        record = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert record["event"] == "retry_scheduled"
        assert record["attempt"] == 1
        assert record["service.name"] == "billing-client"
        assert record["log.level"] == "info"
        assert "@timestamp" in record
        assert record["logger"] == "test"

    def test_debug_suppressed_at_info(self, capsys):
        configure_logging(level="INFO", json_format=True)
        get_logger("test").debug("attempt_failed")
        assert "attempt_failed" not in capsys.readouterr().out

    def test_without_timestamp(self, capsys):
        configure_logging(level="DEBUG", json_format=True, add_timestamp=False)
        get_logger("test").debug("attempt_failed")
        record = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert "@timestamp" not in record


class TestContext:
    """Test context binding helpers."""

    def test_bind_and_unbind(self):
        bind_context(client="billing", method="GetInvoice")
        unbind_context("method")
        assert structlog.contextvars.get_contextvars() == {"client": "billing"}

    def test_log_context_scopes_keys(self):
        with LogContext(client="billing"):
            assert structlog.contextvars.get_contextvars()["client"] == "billing"
        assert "client" not in structlog.contextvars.get_contextvars()

    def test_context_reaches_events(self, capsys):
        configure_logging(level="INFO", json_format=True)
        with LogContext(client="billing"):
            get_logger("test").info("call_failed")
        record = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert record["client"] == "billing"

    @pytest.mark.asyncio
    async def test_async_log_context(self):
        async with LogContext(call_id="c-1"):
            assert structlog.contextvars.get_contextvars()["call_id"] == "c-1"
        assert "call_id" not in structlog.contextvars.get_contextvars()


class TestConfiguredRetryLoop:
    """The retry loop keeps working once logging is configured."""

    def test_failed_call_logs_json(self, capsys, monkeypatch, fast_settings, fake_clock, recording_scheduler):
        configure_logging(level="DEBUG", json_format=True)
        # fresh proxy so the configured chain is not cached on the module logger
        monkeypatch.setattr(retry_module, "logger", get_logger("callspine.execution.retry"))
        inner = ScriptedCallable([TransportError("gone", status_code=404)], clock=fake_clock)
        resilient = RetryingCallable(
            inner, fast_settings, clock=fake_clock, scheduler=recording_scheduler
        )

        with pytest.raises(NotFoundError):
            resilient.future_call(1).result(timeout=1)

        records = [json.loads(line) for line in capsys.readouterr().out.strip().splitlines()]
        assert [r["event"] for r in records] == ["attempt_failed", "call_failed"]
        assert records[-1]["logger"] == "callspine.execution.retry"
        assert records[-1]["code"] == "NOT_FOUND"

    def test_retried_call_succeeds(self, capsys, monkeypatch, fast_settings, fake_clock, recording_scheduler):
        configure_logging(level="DEBUG", json_format=True)
        monkeypatch.setattr(retry_module, "logger", get_logger("callspine.execution.retry"))
        inner = ScriptedCallable(
            [TransportError("down", status_code=503), "ok"], clock=fake_clock
        )
        resilient = RetryingCallable(
            inner, fast_settings, clock=fake_clock, scheduler=recording_scheduler
        )

        assert resilient.future_call(1).result(timeout=1) == "ok"
        events = [json.loads(line)["event"] for line in capsys.readouterr().out.strip().splitlines()]
        assert events == ["attempt_failed", "retry_scheduled"]
