"""
Mock IAM credentials server
"""

import asyncio
import logging
from typing import Optional

from fastapi import Request, Response

from apiproxy_testenv.components.mock_server import MockHttpServer

logger = logging.getLogger(__name__)

DEFAULT_ACCESS_TOKEN_RESPONSE = (
    '{"accessToken": "default-test-access-token", "expireTime": "2099-01-01T00:00:00Z"}'
)
DEFAULT_ID_TOKEN_RESPONSE = '{"token": "default-test-id-token"}'


class MockIamServer(MockHttpServer):
    """
    Mock IAM server answering generateAccessToken / generateIdToken.

    Args:
        resps: Path -> response body; unscripted paths get a default token
        failures: Number of requests answered with 500 before responding normally
        resp_time: Seconds to wait before every response
    """

    def __init__(
        self,
        resps: Optional[dict[str, str]] = None,
        failures: int = 0,
        resp_time: float = 0.0,
    ):
        super().__init__("iam")
        self.resps = dict(resps or {})
        self.remaining_failures = failures
        self.resp_time = resp_time
        self.request_bodies: list[bytes] = []

        self.app.add_api_route("/{path:path}", self._handle, methods=["POST"])

    async def _handle(self, path: str, request: Request) -> Response:
        path = "/" + path
        self.request_bodies.append(await request.body())

        if self.resp_time > 0:
            await asyncio.sleep(self.resp_time)

        if self.remaining_failures > 0:
            self.remaining_failures -= 1
            logger.debug(f"Injecting IAM failure for {path}")
            return Response(content="injected failure", status_code=500)

        body = self.resps.get(path)
        if body is None:
            if path.endswith(":generateIdToken"):
                body = DEFAULT_ID_TOKEN_RESPONSE
            elif path.endswith(":generateAccessToken"):
                body = DEFAULT_ACCESS_TOKEN_RESPONSE
            else:
                return Response(content=f"{path} not found", status_code=404)
        return Response(content=body, media_type="application/json")

    def get_request_count(self) -> int:
        return len(self.request_bodies)
