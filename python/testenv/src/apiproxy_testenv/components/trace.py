"""
Fake trace receiver

Serves the Cloud Trace v2 BatchWriteSpans RPC that Envoy exports spans to
(--tracing_stackdriver_address), keeps the spans for tests to retrieve, and
verifies at teardown that what was received matches the tracing settings.
"""

import asyncio
import logging
import threading
import time
from concurrent import futures
from typing import Optional

import grpc
from google.cloud import trace_v2
from google.protobuf import empty_pb2

from apiproxy_testenv.config import PlatformConfig
from apiproxy_testenv.exceptions import InvariantVerificationError, StartupError

logger = logging.getLogger(__name__)

TRACE_SERVICE = "google.devtools.cloudtrace.v2.TraceService"
BATCH_WRITE_SPANS = "BatchWriteSpans"

MAX_WORKERS = 4
SHUTDOWN_GRACE = 1.0
SHUTDOWN_TIMEOUT = 5.0


class FakeTraceServer:
    """
    Fake Cloud Trace server; started in every test, whether tracing is on or not.

    Usage:
        server = FakeTraceServer()
        server.start_stackdriver_server(port, tracing_enabled=True, sample_rate=1.0)
        # ... send traced requests through Envoy ...
        spans = server.retrieve_spans(2)
        server.verify_invariants()
        await server.stop_and_wait()
    """

    name = "fake-stackdriver"

    def __init__(self, host: Optional[str] = None):
        self.host = host or PlatformConfig.get_loopback_address()
        self.port = 0
        self.tracing_enabled = False
        self.sample_rate = 0.0
        self.expect_traces = False
        self._spans: list[trace_v2.Span] = []
        self._retrieved = 0
        self._cond = threading.Condition()
        self._server: Optional[grpc.Server] = None

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def is_running(self) -> bool:
        return self._server is not None

    def BatchWriteSpans(self, request: trace_v2.BatchWriteSpansRequest, context) -> empty_pb2.Empty:
        spans = list(request.spans)
        with self._cond:
            self._spans.extend(spans)
            self._cond.notify_all()
        logger.debug(f"Received {len(spans)} spans for {request.name}")
        return empty_pb2.Empty()

    def _rpc_handler(self) -> grpc.GenericRpcHandler:
        return grpc.method_handlers_generic_handler(
            TRACE_SERVICE,
            {
                BATCH_WRITE_SPANS: grpc.unary_unary_rpc_method_handler(
                    self.BatchWriteSpans,
                    request_deserializer=trace_v2.BatchWriteSpansRequest.deserialize,
                    response_serializer=empty_pb2.Empty.SerializeToString,
                ),
            },
        )

    def start_stackdriver_server(
        self, port: int, tracing_enabled: bool = False, sample_rate: float = 0.0
    ) -> str:
        """
        Start serving on port; port 0 picks a free port.

        Args:
            port: Port to listen on
            tracing_enabled: Whether Envoy was configured to export spans
            sample_rate: Sampling rate Envoy was configured with

        Returns:
            host:port address of the server

        Raises:
            StartupError: Could not bind the port
        """
        self.tracing_enabled = tracing_enabled
        self.sample_rate = sample_rate
        if self._server is not None:
            return self.address

        server = grpc.server(futures.ThreadPoolExecutor(max_workers=MAX_WORKERS))
        server.add_generic_rpc_handlers((self._rpc_handler(),))
        try:
            bound = server.add_insecure_port(f"{self.host}:{port}")
        except RuntimeError as e:
            raise StartupError(f"{self.name} cannot bind {self.host}:{port}: {e}") from e
        if bound == 0:
            raise StartupError(f"{self.name} cannot bind {self.host}:{port}")

        server.start()
        self.port = bound
        self._server = server
        logger.info(f"{self.name} listening at {self.address}")
        return self.address

    def set_expect_traces(self, expect: bool = True) -> None:
        """Declare that the test sends requests that must be traced"""
        self.expect_traces = expect

    @property
    def received_count(self) -> int:
        with self._cond:
            return len(self._spans)

    def retrieve_spans(self, count: int, timeout: float = 10.0) -> list[trace_v2.Span]:
        """
        Wait for and return the next count spans.

        Raises:
            TimeoutError: Fewer than count new spans arrived in time
        """
        deadline = time.monotonic() + timeout
        with self._cond:
            while len(self._spans) - self._retrieved < count:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TimeoutError(
                        f"expected {count} spans, got {len(self._spans) - self._retrieved}"
                    )
                self._cond.wait(remaining)
            spans = self._spans[self._retrieved : self._retrieved + count]
            self._retrieved += count
            return spans

    def verify_invariants(self) -> None:
        """
        Check the spans received over the whole test.

        With tracing disabled no span may arrive. With tracing enabled every
        span must have been retrieved, and at least one must have arrived if
        the sample rate is positive or the test expected traces.

        Raises:
            InvariantVerificationError: Listing every violation
        """
        with self._cond:
            received = len(self._spans)
            unretrieved = received - self._retrieved

        violations = []
        if not self.tracing_enabled:
            if received:
                violations.append(f"received {received} spans while tracing is disabled")
        else:
            if unretrieved:
                violations.append(f"{unretrieved} received spans were not retrieved by the test")
            if not received and (self.sample_rate > 0 or self.expect_traces):
                violations.append(
                    f"no spans received although tracing is enabled "
                    f"with sample rate {self.sample_rate:g}"
                )

        if violations:
            raise InvariantVerificationError("tracing", violations)

    async def stop_and_wait(self) -> None:
        """Stop serving; no-op if not started"""
        server, self._server = self._server, None
        if server is None:
            return

        stopped = server.stop(SHUTDOWN_GRACE)
        loop = asyncio.get_running_loop()
        if not await loop.run_in_executor(None, stopped.wait, SHUTDOWN_TIMEOUT):
            logger.warning(f"{self.name} did not shut down within {SHUTDOWN_TIMEOUT}s")
        logger.info(f"{self.name} stopped")
