"""Channel construction: plain or client-certificate (mTLS) channel.

┌──────────────────────────────────────────────────────────────────────────────┐
│  DECISION TABLE  (evaluated once per build_channel call)                     │
│                                                                              │
│  use_client_certificate │ get_key_store()      │ outcome                     │
│  ───────────────────────┼──────────────────────┼──────────────────────────── │
│  False                  │ not called           │ plain channel               │
│  True                   │ raises OSError       │ OSError propagates as-is    │
│  True                   │ KeyStore             │ mTLS channel                │
│  True                   │ None                 │ plain channel               │
│                                                                              │
│  ENDPOINT                                                                    │
│  NEVER  → endpoint                                                           │
│  ALWAYS → mtls_endpoint                                                      │
│  AUTO   → mtls_endpoint if the channel is mTLS, else endpoint                │
└──────────────────────────────────────────────────────────────────────────────┘

The endpoint policy picks the target only; it never decides whether a
certificate is attached. Channel construction is not retried: an unreadable
key store is a configuration problem, not a transient one.

Variants differ only in the mTLS object they build:

    SslContextChannelProvider   ssl.SSLContext with the client chain loaded
    PemChannelProvider          ClientCertificate holding raw PEM bytes

Guardrails:
    ❌ DON'T: Catch the OSError from get_key_store() and fall back to plain
    ✅ DO: Let it reach the caller; only a None store means "no certificate"

Tags:
    mtls, tls, channel, client-certificate, callspine

Doc-Types:
    api-reference
"""

from __future__ import annotations

import ssl
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from callspine.core.logging import get_logger
from callspine.mtls.provider import KeyStore, MtlsEndpointUsagePolicy, MtlsProvider

logger = get_logger(__name__)


@dataclass(frozen=True)
class ChannelDescriptor:
    """What a transport needs to open a channel.

    Attributes:
        endpoint: Target address
        mtls_object: Client-certificate artifact; None for a plain channel
    """

    endpoint: str
    mtls_object: Any = None

    @property
    def is_mtls(self) -> bool:
        return self.mtls_object is not None


@dataclass(frozen=True)
class ClientCertificate:
    """PEM-encoded client certificate chain and private key."""

    certificate_chain: bytes
    private_key: bytes

    def __repr__(self) -> str:
        # never print key material
        return f"ClientCertificate(certificate_chain=<{len(self.certificate_chain)} bytes>)"


def select_endpoint(provider: MtlsProvider, is_mtls: bool) -> str:
    """Pick the target endpoint for ``provider`` under its usage policy."""
    policy = provider.endpoint_usage_policy
    mtls_endpoint = provider.mtls_endpoint or provider.endpoint
    if policy is MtlsEndpointUsagePolicy.ALWAYS:
        return mtls_endpoint
    if policy is MtlsEndpointUsagePolicy.NEVER:
        return provider.endpoint
    return mtls_endpoint if is_mtls else provider.endpoint


class MtlsChannelProvider(ABC):
    """Builds channel descriptors; subclasses supply the mTLS object."""

    def build_channel(self, provider: MtlsProvider) -> ChannelDescriptor:
        """Decide between a plain and an mTLS channel for ``provider``.

        Raises:
            OSError: Whatever ``provider.get_key_store()`` raised, unchanged
        """
        mtls_object = None
        if provider.use_client_certificate:
            key_store = provider.get_key_store()
            if key_store is None:
                logger.warning("key_store_unavailable", endpoint=provider.endpoint)
            else:
                mtls_object = self.create_mtls_object(key_store)

        channel = ChannelDescriptor(
            endpoint=select_endpoint(provider, mtls_object is not None),
            mtls_object=mtls_object,
        )
        logger.debug(
            "channel_built",
            endpoint=channel.endpoint,
            mtls=channel.is_mtls,
            variant=self.__class__.__name__,
        )
        return channel

    @abstractmethod
    def create_mtls_object(self, key_store: KeyStore) -> Any:
        """Build the transport artifact bound to ``key_store``."""


class SslContextChannelProvider(MtlsChannelProvider):
    """mTLS object is a client ``ssl.SSLContext`` with the chain loaded."""

    def __init__(self, cafile: str | None = None):
        self.cafile = cafile

    def create_mtls_object(self, key_store: KeyStore) -> ssl.SSLContext:
        context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH, cafile=self.cafile)
        context.load_cert_chain(
            certfile=str(key_store.cert_chain_file),
            keyfile=str(key_store.key_file),
            password=key_store.password,
        )
        return context


class PemChannelProvider(MtlsChannelProvider):
    """mTLS object is a ``ClientCertificate`` with the raw PEM bytes."""

    def create_mtls_object(self, key_store: KeyStore) -> ClientCertificate:
        return ClientCertificate(
            certificate_chain=key_store.read_cert_chain(),
            private_key=key_store.read_private_key(),
        )


__all__ = [
    "ChannelDescriptor",
    "ClientCertificate",
    "MtlsChannelProvider",
    "SslContextChannelProvider",
    "PemChannelProvider",
    "select_endpoint",
]
