"""Client-certificate availability for channel construction.

An ``MtlsProvider`` answers three questions for a channel builder:

    - should a client certificate be used at all?   use_client_certificate
    - which endpoint should the channel target?     endpoint_usage_policy
    - where is the certificate?                     get_key_store()

``get_key_store()`` may legitimately return None (no certificate installed)
or raise ``OSError`` (certificate configured but unreadable). Callers treat
the two very differently: None falls back to a plain channel, OSError aborts
channel construction.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol, runtime_checkable

from callspine.core.logging import get_logger
from callspine.core.settings import CallSpineSettings

logger = get_logger(__name__)


class MtlsEndpointUsagePolicy(str, Enum):
    """Which endpoint a channel targets."""

    AUTO = "AUTO"  # mTLS endpoint only when a client certificate is in use
    ALWAYS = "ALWAYS"
    NEVER = "NEVER"


@dataclass(frozen=True)
class KeyStore:
    """Location of a PEM client certificate chain and its private key."""

    cert_chain_file: Path
    key_file: Path
    password: str | None = None

    def read_cert_chain(self) -> bytes:
        return Path(self.cert_chain_file).read_bytes()

    def read_private_key(self) -> bytes:
        return Path(self.key_file).read_bytes()


@runtime_checkable
class MtlsProvider(Protocol):
    """Read-only certificate policy consumed by channel providers."""

    use_client_certificate: bool
    endpoint_usage_policy: MtlsEndpointUsagePolicy
    endpoint: str
    mtls_endpoint: str | None

    def get_key_store(self) -> KeyStore | None:
        """Return the client key store, None when absent.

        Raises:
            OSError: The key store is configured but cannot be read
        """
        ...


class EnvironmentMtlsProvider:
    """``MtlsProvider`` driven by ``CallSpineSettings`` (``CALLSPINE_*`` env vars).

    Example:
        >>> provider = EnvironmentMtlsProvider.from_settings(
        ...     CallSpineSettings(), endpoint="billing.example.com:443",
        ...     mtls_endpoint="billing.mtls.example.com:443",
        ... )
    """

    def __init__(
        self,
        endpoint: str,
        *,
        mtls_endpoint: str | None = None,
        use_client_certificate: bool = False,
        endpoint_usage_policy: MtlsEndpointUsagePolicy = MtlsEndpointUsagePolicy.AUTO,
        cert_file: Path | None = None,
        key_file: Path | None = None,
        key_password: str | None = None,
    ):
        self.endpoint = endpoint
        self.mtls_endpoint = mtls_endpoint
        self.use_client_certificate = use_client_certificate
        self.endpoint_usage_policy = endpoint_usage_policy
        self._cert_file = cert_file
        self._key_file = key_file
        self._key_password = key_password

    @classmethod
    def from_settings(
        cls,
        settings: CallSpineSettings,
        endpoint: str,
        mtls_endpoint: str | None = None,
    ) -> EnvironmentMtlsProvider:
        return cls(
            endpoint,
            mtls_endpoint=mtls_endpoint,
            use_client_certificate=settings.use_client_certificate,
            endpoint_usage_policy=settings.endpoint_usage_policy,
            cert_file=settings.client_cert_file,
            key_file=settings.client_key_file,
            key_password=settings.client_key_password,
        )

    def get_key_store(self) -> KeyStore | None:
        if self._cert_file is None and self._key_file is None:
            return None
        if self._cert_file is None or self._key_file is None:
            raise OSError(
                "Client certificate and key must be configured together "
                f"(cert={self._cert_file}, key={self._key_file})"
            )
        for path in (self._cert_file, self._key_file):
            if not Path(path).is_file():
                raise FileNotFoundError(f"Client certificate file not found: {path}")
        logger.debug("key_store_loaded", cert_file=str(self._cert_file))
        return KeyStore(Path(self._cert_file), Path(self._key_file), self._key_password)

    def __repr__(self) -> str:
        return (
            f"EnvironmentMtlsProvider(endpoint={self.endpoint!r}, "
            f"use_client_certificate={self.use_client_certificate}, "
            f"policy={self.endpoint_usage_policy.value})"
        )


__all__ = [
    "MtlsEndpointUsagePolicy",
    "KeyStore",
    "MtlsProvider",
    "EnvironmentMtlsProvider",
]
