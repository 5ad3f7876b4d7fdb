"""
Mock service control server

Records check, report and allocateQuota calls. Responses are empty
protobuf messages, which decode as successful default responses.
"""

import threading
import time
from dataclasses import dataclass
from typing import Optional

from fastapi import Request, Response

from apiproxy_testenv.components.mock_server import MockHttpServer

PROTOBUF_CONTENT_TYPE = "application/x-protobuf"


@dataclass
class ServiceRequest:
    """A recorded service control call"""

    kind: str  # "check", "report" or "allocateQuota"
    service_name: str
    body: bytes
    content_type: str


class MockServiceCtrl(MockHttpServer):
    """Mock service control server for one service"""

    def __init__(self, service_name: str):
        super().__init__("service-control")
        self.service_name = service_name
        self._requests: list[ServiceRequest] = []
        self._cond = threading.Condition()

        for kind in ("check", "report", "allocateQuota"):
            self.app.add_api_route(
                f"/v1/services/{{service_name}}:{kind}",
                self._make_handler(kind),
                methods=["POST"],
            )

    def _make_handler(self, kind: str):
        async def handler(service_name: str, request: Request) -> Response:
            body = await request.body()
            self._record(
                ServiceRequest(
                    kind=kind,
                    service_name=service_name,
                    body=body,
                    content_type=request.headers.get("content-type", ""),
                )
            )
            return Response(content=b"", media_type=PROTOBUF_CONTENT_TYPE)

        handler.__name__ = f"service_control_{kind}"
        return handler

    def _record(self, request: ServiceRequest) -> None:
        with self._cond:
            self._requests.append(request)
            self._cond.notify_all()

    def setup(self) -> str:
        """Start the server and return its URL"""
        return self.start()

    def get_requests(self, count: Optional[int] = None, timeout: float = 10.0) -> list[ServiceRequest]:
        """
        Return recorded calls.

        Args:
            count: Wait until at least this many calls were recorded
            timeout: Seconds to wait for count calls

        Raises:
            TimeoutError: Fewer than count calls arrived in time
        """
        deadline = time.monotonic() + timeout
        with self._cond:
            while count is not None and len(self._requests) < count:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TimeoutError(
                        f"expected {count} service control requests, got {len(self._requests)}"
                    )
                self._cond.wait(remaining)
            return list(self._requests)

    def reset(self) -> None:
        with self._cond:
            self._requests.clear()
