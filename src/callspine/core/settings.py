"""Environment-driven settings for callspine clients.

``CallSpineSettings`` gathers the knobs an application usually wants to set
per deployment: log level and format, the default retry policy, and whether
channels should present a client certificate. Values come from
``CALLSPINE_*`` environment variables or a ``.env`` file.

The settings object is only a loader. Clients turn it into the immutable
runtime objects they own (``RetrySettings``, ``EnvironmentMtlsProvider``)
once at setup; nothing reads it at call time.

Examples:
    >>> import os
    >>> os.environ["CALLSPINE_RETRYABLE_CODES"] = "UNAVAILABLE,DEADLINE_EXCEEDED"
    >>> settings = CallSpineSettings()
    >>> retry = settings.to_retry_settings()

Tags:
    settings, configuration, pydantic, environment, callspine

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from callspine.core.errors import Code

if TYPE_CHECKING:
    from callspine.execution.retry import RetrySettings
    from callspine.mtls.provider import MtlsEndpointUsagePolicy


class CallSpineSettings(BaseSettings):
    """Deployment configuration for callspine.

    Fields
    ──────
    log_level               : structlog log level
    json_logs               : JSON output (None = auto-detect from tty)
    initial_retry_delay ... : default RetrySettings fields, seconds
    retryable_codes         : comma-separated canonical codes
    use_client_certificate  : present a client certificate on channels
    use_mtls_endpoint       : auto | always | never
    client_cert_file        : PEM certificate chain
    client_key_file         : PEM private key
    """

    model_config = SettingsConfigDict(
        env_prefix="CALLSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None
    service_name: str = "callspine"

    # ── Retry defaults ───────────────────────────────────────────
    initial_retry_delay: float = Field(default=0.1, ge=0)
    retry_delay_multiplier: float = Field(default=1.3, ge=1)
    max_retry_delay: float = Field(default=60.0, ge=0)
    initial_rpc_timeout: float = Field(default=20.0, ge=0)
    rpc_timeout_multiplier: float = Field(default=1.0, ge=1)
    max_rpc_timeout: float = Field(default=20.0, ge=0)
    total_timeout: float = Field(default=600.0, ge=0)
    max_attempts: int = Field(default=0, ge=0)
    jittered: bool = False
    retryable_codes: Annotated[frozenset[Code], NoDecode] = Field(
        default=frozenset({Code.UNAVAILABLE})
    )

    # ── Client certificates ──────────────────────────────────────
    use_client_certificate: bool = False
    use_mtls_endpoint: str = "auto"
    client_cert_file: Path | None = None
    client_key_file: Path | None = None
    client_key_password: str | None = None

    @field_validator("retryable_codes", mode="before")
    @classmethod
    def _split_codes(cls, value: Any) -> Any:
        if isinstance(value, str):
            return frozenset(Code(part.strip().upper()) for part in value.split(",") if part.strip())
        return value

    @field_validator("use_mtls_endpoint")
    @classmethod
    def _check_endpoint_policy(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in {"auto", "always", "never"}:
            raise ValueError(f"use_mtls_endpoint must be auto, always or never, got {value!r}")
        return value

    @property
    def endpoint_usage_policy(self) -> MtlsEndpointUsagePolicy:
        from callspine.mtls.provider import MtlsEndpointUsagePolicy

        return MtlsEndpointUsagePolicy(self.use_mtls_endpoint.upper())

    def to_retry_settings(self) -> RetrySettings:
        """Build a validated ``RetrySettings`` from these values.

        Raises:
            InvalidConfigError: If caps are below their initial values
        """
        from callspine.execution.retry import RetrySettings

        return RetrySettings(
            initial_retry_delay=self.initial_retry_delay,
            retry_delay_multiplier=self.retry_delay_multiplier,
            max_retry_delay=self.max_retry_delay,
            initial_rpc_timeout=self.initial_rpc_timeout,
            rpc_timeout_multiplier=self.rpc_timeout_multiplier,
            max_rpc_timeout=self.max_rpc_timeout,
            total_timeout=self.total_timeout,
            max_attempts=self.max_attempts,
            retryable_codes=self.retryable_codes,
            jittered=self.jittered,
        )


__all__ = ["CallSpineSettings"]
