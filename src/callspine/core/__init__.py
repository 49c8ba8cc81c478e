"""callspine.core -- leaf primitives shared by the execution and mTLS layers.

Architecture::

    errors.py      Canonical Code enum, StatusCode, ApiError hierarchy
    clock.py       Clock protocol, SystemClock, FakeClock
    logging.py     structlog configuration + get_logger
    settings.py    CallSpineSettings (pydantic-settings, CALLSPINE_ prefix)

Nothing in this package imports from ``callspine.execution`` or
``callspine.mtls`` at module level.
"""

from callspine.core.clock import Clock, FakeClock, SystemClock
from callspine.core.errors import (
    ERROR_TYPES,
    ApiError,
    Code,
    InvalidConfigError,
    StatusCode,
    TransportError,
    create_error,
    error_type_for,
)
from callspine.core.logging import configure_logging, get_logger
from callspine.core.settings import CallSpineSettings

__all__ = [
    "Clock",
    "FakeClock",
    "SystemClock",
    "ERROR_TYPES",
    "ApiError",
    "Code",
    "InvalidConfigError",
    "StatusCode",
    "TransportError",
    "create_error",
    "error_type_for",
    "configure_logging",
    "get_logger",
    "CallSpineSettings",
]
