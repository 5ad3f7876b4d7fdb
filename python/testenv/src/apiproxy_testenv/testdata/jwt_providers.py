"""
JWT provider registry - the mock identity providers a test can request
"""

from dataclasses import dataclass, field
from typing import Any

from apiproxy_testenv.exceptions import UnsupportedJwtProviderError

# Public half of the key pair the JWT test fixtures are signed with
_TEST_RSA_JWK = {
    "kty": "RSA",
    "alg": "RS256",
    "use": "sig",
    "kid": "b3319a147514df7ee5e4bcdee51350cc890cc89e",
    "e": "AQAB",
    "n": (
        "qDi7Tx4DhNvPQsl1ofxxc2ePQFcs-L0mXYo6TGS64CY_2WmOtvYlcLNZjhuddZVV2X88m0MfwaSA16w"
        "E-RiKM9hqo5EY8BPXj57CMiYAyiHuQPp1yayjMgoE1P2jvp4eqF-BTillGJt5W5RuXti9uqfMtCQdag"
        "B8EC3MNRuU_KdeLgBy3lS3oo4LOYd-74kRBVZbk2wnmmb7IhP9OoLc1-7-9qU1uhpDxmE6JwBau0mDS"
        "wMnYDS4G_ML17dC-ZDtLd1i24STUw39KH0pcSdfFbL2NtEZdNeam1DDdk0iUtJSPZliUHJBI_pj8M-2"
        "Mn_oA8jBuI8YKwBqYkZCN1I95Q"
    ),
}


@dataclass
class JwtProviderInfo:
    """Mock identity provider information"""

    id: str
    issuer: str
    audiences: str = ""
    jwks: Any = field(default_factory=lambda: {"keys": [_TEST_RSA_JWK]})
    jwks_status: int = 200


class JwtProviderRegistry:
    """Registry of identity providers the fake JWT service can provision"""

    _providers: dict[str, JwtProviderInfo] = {
        "google_service_account": JwtProviderInfo(
            id="google_service_account",
            issuer="api-proxy-testing@cloud.goog",
        ),
        "google_jwt": JwtProviderInfo(
            id="google_jwt",
            issuer="api-proxy-testing@cloud.goog",
            audiences="ok_audience",
        ),
        "endpoints_jwt": JwtProviderInfo(
            id="endpoints_jwt",
            issuer="jwt-client.endpoints.sample.google.com",
        ),
        "test_auth": JwtProviderInfo(
            id="test_auth",
            issuer="es256-issuer",
        ),
        "test_auth_1": JwtProviderInfo(
            id="test_auth_1",
            issuer="rs256-issuer",
        ),
        "broken_provider": JwtProviderInfo(
            id="broken_provider",
            issuer="http://broken_issuer",
            jwks={"error": "unavailable"},
            jwks_status=500,
        ),
        "invalid_jwks_provider": JwtProviderInfo(
            id="invalid_jwks_provider",
            issuer="invalid_jwks_issuer",
            jwks={"keys": "not-a-key-list"},
        ),
    }

    @classmethod
    def register_provider(cls, provider: JwtProviderInfo) -> None:
        """Register a custom provider

        Args:
            provider: JwtProviderInfo to register, replaces any provider with the same id
        """
        cls._providers[provider.id] = provider

    @classmethod
    def is_supported(cls, provider_id: str) -> bool:
        return provider_id in cls._providers

    @classmethod
    def get_provider(cls, provider_id: str) -> JwtProviderInfo:
        """Get provider information

        Raises:
            UnsupportedJwtProviderError: If provider does not exist
        """
        provider = cls._providers.get(provider_id)
        if provider is None:
            raise UnsupportedJwtProviderError(provider_id)
        return provider

    @classmethod
    def list_providers(cls) -> list[str]:
        return sorted(cls._providers)
