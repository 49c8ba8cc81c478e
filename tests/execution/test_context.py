"""Tests for CallContext."""

import pytest

from callspine.execution.context import CallContext
from callspine.execution.retry import RetrySettings


class TestCallContext:
    """CallContext is immutable; with_* return copies."""

    def test_defaults(self):
        context = CallContext()
        assert context.timeout is None
        assert dict(context.metadata) == {}
        assert context.attempt_number == 0
        assert context.retry_settings is None

    def test_negative_timeout_rejected(self):
        with pytest.raises(ValueError):
            CallContext(timeout=-0.1)

    def test_with_timeout(self):
        context = CallContext(timeout=1.0)
        derived = context.with_timeout(0.25)
        assert derived.timeout == 0.25
        assert context.timeout == 1.0

    def test_with_attempt(self):
        assert CallContext().with_attempt(3).attempt_number == 3

    def test_with_metadata_merges(self):
        context = CallContext(metadata={"a": "1"})
        derived = context.with_metadata(b="2", a="3")
        assert dict(derived.metadata) == {"a": "3", "b": "2"}
        assert dict(context.metadata) == {"a": "1"}

    def test_metadata_read_only(self):
        source = {"a": "1"}
        context = CallContext(metadata=source)
        source["a"] = "changed"
        assert context.metadata["a"] == "1"
        with pytest.raises(TypeError):
            context.metadata["b"] = "2"

    def test_frozen(self):
        with pytest.raises(AttributeError):
            CallContext().timeout = 1.0

    def test_hashable(self):
        settings = RetrySettings(max_attempts=2)
        first = CallContext(timeout=1.0, metadata={"k": "v"}, retry_settings=settings)
        second = CallContext(timeout=1.0, metadata={"k": "v"}, retry_settings=settings)
        assert hash(first) == hash(second)
        assert len({first, second, CallContext()}) == 2

    def test_with_retry_settings(self):
        settings = RetrySettings(max_attempts=2)
        assert CallContext().with_retry_settings(settings).retry_settings is settings

    def test_to_dict(self):
        context = CallContext(timeout=2.0, metadata={"k": "v"}, attempt_number=1)
        assert context.to_dict() == {
            "timeout": 2.0,
            "metadata": {"k": "v"},
            "attempt_number": 1,
        }
