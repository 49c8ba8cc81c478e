"""
Shared pytest fixtures for callspine tests.

This module provides:
- A FakeClock and a RecordingScheduler bound to it
- Fast retry settings (2ms delay/timeout, 10ms total) used by the scenario tests
- A KeyStore pointing at the self-signed client certificate in fixtures/mtls

Usage:
    Fixtures are auto-discovered by pytest. Use them as function arguments.

    def test_something(fast_settings, fake_clock, recording_scheduler):
        ...
"""

import os
import sys
from pathlib import Path

import pytest

# Ensure callspine package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from callspine.core.errors import Code
from callspine.execution.retry import RetrySettings
from callspine.mtls.provider import KeyStore
from callspine.testing import FakeClock, RecordingScheduler

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def fake_clock() -> FakeClock:
    """Clock that only moves when a test (or the scheduler) advances it."""
    return FakeClock()


@pytest.fixture
def recording_scheduler(fake_clock) -> RecordingScheduler:
    """Scheduler that advances fake_clock by each delay and runs inline."""
    return RecordingScheduler(fake_clock)


@pytest.fixture
def fast_settings() -> RetrySettings:
    """2ms delay and attempt timeout, 10ms total, UNAVAILABLE retryable."""
    return RetrySettings(
        initial_retry_delay=0.002,
        retry_delay_multiplier=1.0,
        max_retry_delay=0.002,
        initial_rpc_timeout=0.002,
        rpc_timeout_multiplier=1.0,
        max_rpc_timeout=0.002,
        total_timeout=0.010,
        retryable_codes={Code.UNAVAILABLE},
    )


@pytest.fixture
def key_store() -> KeyStore:
    """Self-signed client certificate and unencrypted key."""
    return KeyStore(
        cert_chain_file=FIXTURES_DIR / "mtls" / "client.crt",
        key_file=FIXTURES_DIR / "mtls" / "client.key",
    )


@pytest.fixture
def clean_env(monkeypatch):
    """Remove CALLSPINE_* variables so settings tests start from defaults."""
    for key in list(os.environ):
        if key.startswith("CALLSPINE_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(Path(__file__).parent)
    yield monkeypatch
