"""Tests for the canonical code table and ApiError hierarchy."""

import pytest

from callspine.core.errors import (
    ERROR_TYPES,
    ApiError,
    Code,
    FailedPreconditionError,
    InvalidConfigError,
    StatusCode,
    TransportError,
    UnavailableError,
    UnknownError,
    create_error,
    error_type_for,
    is_retryable,
    status_of,
)


class TestStatusCode:
    """Tests for StatusCode."""

    def test_str_without_transport_code(self):
        assert str(StatusCode(Code.NOT_FOUND)) == "NOT_FOUND"

    def test_str_with_transport_code(self):
        assert str(StatusCode(Code.UNAVAILABLE, 503)) == "UNAVAILABLE (503)"

    def test_equality(self):
        assert StatusCode(Code.ABORTED, 409) == StatusCode(Code.ABORTED, 409)
        assert StatusCode(Code.ABORTED, 409) != StatusCode(Code.ABORTED)


class TestErrorTable:
    """Every non-OK code has exactly one error type."""

    def test_all_codes_except_ok_are_mapped(self):
        assert set(ERROR_TYPES) == set(Code) - {Code.OK}

    @pytest.mark.parametrize("code", [c for c in Code if c is not Code.OK])
    def test_error_type_matches_code(self, code):
        error_cls = error_type_for(code)
        assert issubclass(error_cls, ApiError)
        assert error_cls.default_code is code

    def test_ok_has_no_error_type(self):
        with pytest.raises(ValueError, match="OK"):
            error_type_for(Code.OK)


class TestApiError:
    """Tests for ApiError construction and serialization."""

    def test_defaults_to_class_code(self):
        error = UnavailableError("down")
        assert error.code is Code.UNAVAILABLE
        assert error.status_code.transport_code is None
        assert error.message == "down"
        assert error.retryable is False

    def test_rejects_mismatched_code(self):
        with pytest.raises(ValueError, match="UNAVAILABLE"):
            UnavailableError("x", status_code=StatusCode(Code.NOT_FOUND))

    def test_cause_is_preserved_by_identity(self):
        cause = ConnectionResetError("reset")
        error = UnavailableError("down", cause=cause)
        assert error.cause is cause
        assert error.__cause__ is cause

    def test_to_dict(self):
        cause = TransportError("precondition", status_code=400)
        error = FailedPreconditionError(
            "precondition",
            cause=cause,
            status_code=StatusCode(Code.FAILED_PRECONDITION, 400),
            retryable=False,
        )
        data = error.to_dict()
        assert data["error_type"] == "FailedPreconditionError"
        assert data["code"] == "FAILED_PRECONDITION"
        assert data["transport_code"] == 400
        assert data["retryable"] is False
        assert "TransportError" in data["cause"]

    def test_to_dict_omits_absent_fields(self):
        data = UnknownError("?").to_dict()
        assert "transport_code" not in data
        assert "cause" not in data

    def test_repr(self):
        error = UnavailableError("down", status_code=StatusCode(Code.UNAVAILABLE, 503))
        assert repr(error) == "UnavailableError('down', status=UNAVAILABLE (503))"


class TestHelpers:
    """Tests for create_error, status_of and is_retryable."""

    def test_create_error_picks_subclass(self):
        cause = RuntimeError("boom")
        error = create_error("boom", cause, StatusCode(Code.INTERNAL, 500), retryable=True)
        assert type(error).__name__ == "InternalError"
        assert error.cause is cause
        assert error.status_code.transport_code == 500
        assert error.retryable is True

    def test_status_of(self):
        assert status_of(UnavailableError("x")) == StatusCode(Code.UNAVAILABLE)
        assert status_of(RuntimeError("x")) is None

    def test_is_retryable(self):
        assert is_retryable(UnavailableError("x"), {Code.UNAVAILABLE}) is True
        assert is_retryable(UnavailableError("x"), {Code.ABORTED}) is False
        assert is_retryable(RuntimeError("x"), {Code.UNAVAILABLE}) is False


class TestTransportError:
    """Tests for TransportError."""

    def test_attributes(self):
        error = TransportError("bad", status_code=400, reason="FAILED_PRECONDITION", body="{}")
        assert str(error) == "bad"
        assert error.status_code == 400
        assert error.reason == "FAILED_PRECONDITION"
        assert error.body == "{}"


class TestInvalidConfigError:
    """Tests for InvalidConfigError."""

    def test_is_value_error(self):
        error = InvalidConfigError("max_attempts", -1)
        assert isinstance(error, ValueError)
        assert error.key == "max_attempts"
        assert error.value == -1
        assert "max_attempts" in str(error)

    def test_custom_message(self):
        assert str(InvalidConfigError("k", 1, "nope")) == "nope"
