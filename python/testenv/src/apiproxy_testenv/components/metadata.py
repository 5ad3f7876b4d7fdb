"""
Mock metadata server
"""

import logging
from collections import Counter
from typing import Optional

from fastapi import Request, Response

from apiproxy_testenv.components.mock_server import MockHttpServer

logger = logging.getLogger(__name__)

METADATA_FLAVOR_HEADER = "Metadata-Flavor"
METADATA_FLAVOR = "Google"

ACCESS_TOKEN_PATH = "/computeMetadata/v1/instance/service-accounts/default/token"
IDENTITY_TOKEN_PATH = "/computeMetadata/v1/instance/service-accounts/default/identity"
PROJECT_ID_PATH = "/computeMetadata/v1/project/project-id"
NUMERIC_PROJECT_ID_PATH = "/computeMetadata/v1/project/numeric-project-id"
ZONE_PATH = "/computeMetadata/v1/instance/zone"

DEFAULT_RESPONSES: dict[str, str] = {
    ACCESS_TOKEN_PATH: '{"access_token": "ya29.new", "expires_in": 3599, "token_type": "Bearer"}',
    IDENTITY_TOKEN_PATH: "ya29.identity-token",
    PROJECT_ID_PATH: "test-project",
    NUMERIC_PROJECT_ID_PATH: "123456789",
    ZONE_PATH: "projects/123456789/zones/test-zone",
}


class MockMetadataServer(MockHttpServer):
    """
    Mock metadata server.

    Args:
        override: Path -> response body, merged over the defaults
        failures: Number of requests answered with 500 before responding normally
    """

    def __init__(self, override: Optional[dict[str, str]] = None, failures: int = 0):
        super().__init__("metadata")
        self.responses = dict(DEFAULT_RESPONSES)
        if override:
            self.responses.update(override)
        self.remaining_failures = failures
        self.request_counts: Counter[str] = Counter()

        self.app.add_api_route("/{path:path}", self._handle, methods=["GET"])

    async def _handle(self, path: str, request: Request) -> Response:
        path = "/" + path
        self.request_counts[path] += 1
        headers = {METADATA_FLAVOR_HEADER: METADATA_FLAVOR}

        if self.remaining_failures > 0:
            self.remaining_failures -= 1
            logger.debug(f"Injecting metadata failure for {path}")
            return Response(content="injected failure", status_code=500, headers=headers)

        body = self.responses.get(path)
        if body is None:
            return Response(content=f"{path} not found", status_code=404, headers=headers)
        return Response(content=body, headers=headers)

    def get_request_count(self, path: str) -> int:
        return self.request_counts[path]
