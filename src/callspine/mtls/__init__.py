"""callspine.mtls -- client-certificate channel selection.

Architecture::

    provider.py    MtlsProvider protocol, KeyStore, EnvironmentMtlsProvider
    channel.py     MtlsChannelProvider decision + SSLContext / PEM variants
"""

from callspine.mtls.channel import (
    ChannelDescriptor,
    ClientCertificate,
    MtlsChannelProvider,
    PemChannelProvider,
    SslContextChannelProvider,
    select_endpoint,
)
from callspine.mtls.provider import (
    EnvironmentMtlsProvider,
    KeyStore,
    MtlsEndpointUsagePolicy,
    MtlsProvider,
)

__all__ = [
    "ChannelDescriptor",
    "ClientCertificate",
    "MtlsChannelProvider",
    "PemChannelProvider",
    "SslContextChannelProvider",
    "select_endpoint",
    "EnvironmentMtlsProvider",
    "KeyStore",
    "MtlsEndpointUsagePolicy",
    "MtlsProvider",
]
