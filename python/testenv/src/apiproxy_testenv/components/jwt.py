"""
Fake JWT service

Provisions mock identity providers and serves their JWKS.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from fastapi import HTTPException
from fastapi.responses import JSONResponse

from apiproxy_testenv.components.mock_server import MockHttpServer
from apiproxy_testenv.ports import Ports
from apiproxy_testenv.testdata.jwt_providers import JwtProviderInfo, JwtProviderRegistry
from apiproxy_testenv.types import AuthProvider

logger = logging.getLogger(__name__)


@dataclass
class FakeJwtProvider:
    """A provisioned provider and the descriptor appended to the service config"""

    info: JwtProviderInfo
    auth_provider: AuthProvider


class JwksServer(MockHttpServer):
    """Serves /{provider_id}/jwks for provisioned providers"""

    def __init__(self, port: int = 0):
        super().__init__("jwks", port=port)
        self.providers: dict[str, JwtProviderInfo] = {}
        self.app.add_api_route("/{provider_id}/jwks", self._get_jwks, methods=["GET"])

    async def _get_jwks(self, provider_id: str) -> JSONResponse:
        info = self.providers.get(provider_id)
        if info is None:
            raise HTTPException(status_code=404, detail=f"unknown provider {provider_id}")
        return JSONResponse(content=info.jwks, status_code=info.jwks_status)

    def jwks_uri(self, provider_id: str) -> str:
        return f"{self.get_url()}/{provider_id}/jwks"


class FakeJwtService:
    """
    Fake JWT service.

    Usage:
        service = FakeJwtService()
        service.setup_jwt({"google_jwt"}, ports)
        provider = service.provider_map["google_jwt"]
        ...
        await service.tear_down()
    """

    def __init__(self):
        self.provider_map: dict[str, FakeJwtProvider] = {}
        self._server: Optional[JwksServer] = None

    def setup_jwt(self, provider_ids: Iterable[str], ports: Ports) -> None:
        """
        Provision every supported provider in provider_ids.

        Unsupported ids are skipped; callers detect them by their absence
        from provider_map. Provisioning an id twice is a no-op.
        """
        supported = []
        for provider_id in sorted(set(provider_ids)):
            if JwtProviderRegistry.is_supported(provider_id):
                supported.append(provider_id)
            else:
                logger.warning(f"JWT provider {provider_id} is not supported")

        if not supported:
            return

        if self._server is None:
            self._server = JwksServer(port=ports.jwt_range_base)
            self._server.start()

        for provider_id in supported:
            if provider_id in self.provider_map:
                continue
            info = JwtProviderRegistry.get_provider(provider_id)
            self._server.providers[provider_id] = info
            self.provider_map[provider_id] = FakeJwtProvider(
                info=info,
                auth_provider=AuthProvider(
                    id=info.id,
                    issuer=info.issuer,
                    jwks_uri=self._server.jwks_uri(provider_id),
                    audiences=info.audiences,
                ),
            )
            logger.info(f"Provisioned JWT provider {provider_id}")

    async def tear_down(self) -> None:
        if self._server is not None:
            await self._server.stop_and_wait()
            self._server = None
