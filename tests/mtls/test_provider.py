"""Tests for KeyStore and EnvironmentMtlsProvider."""

import pytest

from callspine.core.settings import CallSpineSettings
from callspine.mtls.channel import PemChannelProvider
from callspine.mtls.provider import (
    EnvironmentMtlsProvider,
    KeyStore,
    MtlsEndpointUsagePolicy,
    MtlsProvider,
)
from callspine.testing import FakeMtlsProvider


class TestKeyStore:
    def test_reads_files(self, key_store):
        assert key_store.read_cert_chain().startswith(b"-----BEGIN CERTIFICATE-----")
        assert b"PRIVATE KEY" in key_store.read_private_key()

    def test_frozen(self, key_store):
        with pytest.raises(AttributeError):
            key_store.password = "x"


class TestEnvironmentMtlsProvider:
    """Provider built from CallSpineSettings."""

    def test_is_mtls_provider(self):
        assert isinstance(EnvironmentMtlsProvider("svc:443"), MtlsProvider)
        assert isinstance(FakeMtlsProvider(False), MtlsProvider)

    def test_no_files_means_no_store(self):
        provider = EnvironmentMtlsProvider("svc:443", use_client_certificate=True)
        assert provider.get_key_store() is None

    def test_store_from_files(self, key_store):
        provider = EnvironmentMtlsProvider(
            "svc:443",
            use_client_certificate=True,
            cert_file=key_store.cert_chain_file,
            key_file=key_store.key_file,
            key_password="secret",
        )
        store = provider.get_key_store()
        assert store == KeyStore(key_store.cert_chain_file, key_store.key_file, "secret")

    def test_missing_file_raises(self, tmp_path, key_store):
        provider = EnvironmentMtlsProvider(
            "svc:443",
            use_client_certificate=True,
            cert_file=tmp_path / "missing.crt",
            key_file=key_store.key_file,
        )
        with pytest.raises(FileNotFoundError):
            provider.get_key_store()

    def test_half_configured_raises(self, key_store):
        provider = EnvironmentMtlsProvider("svc:443", cert_file=key_store.cert_chain_file)
        with pytest.raises(OSError, match="together"):
            provider.get_key_store()

    def test_missing_file_aborts_channel(self, tmp_path):
        provider = EnvironmentMtlsProvider(
            "svc:443",
            use_client_certificate=True,
            cert_file=tmp_path / "a.crt",
            key_file=tmp_path / "a.key",
        )
        with pytest.raises(FileNotFoundError):
            PemChannelProvider().build_channel(provider)

    def test_from_settings(self, clean_env, key_store):
        clean_env.setenv("CALLSPINE_USE_CLIENT_CERTIFICATE", "true")
        clean_env.setenv("CALLSPINE_USE_MTLS_ENDPOINT", "never")
        clean_env.setenv("CALLSPINE_CLIENT_CERT_FILE", str(key_store.cert_chain_file))
        clean_env.setenv("CALLSPINE_CLIENT_KEY_FILE", str(key_store.key_file))

        provider = EnvironmentMtlsProvider.from_settings(
            CallSpineSettings(), endpoint="svc:443", mtls_endpoint="svc.mtls:443"
        )
        channel = PemChannelProvider().build_channel(provider)

        assert provider.use_client_certificate is True
        assert provider.endpoint_usage_policy is MtlsEndpointUsagePolicy.NEVER
        assert channel.is_mtls
        assert channel.endpoint == "svc:443"

    def test_repr(self):
        text = repr(EnvironmentMtlsProvider("svc:443"))
        assert "svc:443" in text
        assert "AUTO" in text
