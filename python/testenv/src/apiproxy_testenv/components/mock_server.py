"""
In-process mock HTTP server

Serves a FastAPI app with uvicorn on a background thread so mock
management-plane servers live inside the test process.
"""

import asyncio
import logging
import socket
import threading
import time
from typing import Optional

import uvicorn
from fastapi import FastAPI

from apiproxy_testenv.config import PlatformConfig
from apiproxy_testenv.exceptions import StartupError

logger = logging.getLogger(__name__)

STARTUP_TIMEOUT = 10.0
SHUTDOWN_TIMEOUT = 5.0


class MockHttpServer:
    """
    Base class for mock servers.

    Subclasses add their routes to self.app in __init__.

    Usage:
        server = MockMetadataServer(...)
        url = server.start()
        # ... point a component at url ...
        await server.stop_and_wait()
    """

    def __init__(self, name: str, port: int = 0, host: Optional[str] = None):
        self.name = name
        self.host = host or PlatformConfig.get_loopback_address()
        self.port = port
        self.app = FastAPI(title=name)
        self._server: Optional[uvicorn.Server] = None
        self._thread: Optional[threading.Thread] = None
        self._socket: Optional[socket.socket] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def get_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def start(self) -> str:
        """
        Start serving; port 0 picks a free port.

        Returns:
            Server URL

        Raises:
            StartupError: Could not bind or did not start in time
        """
        if self.is_running:
            return self.get_url()

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.host, self.port))
        except OSError as e:
            sock.close()
            raise StartupError(f"{self.name} cannot bind {self.host}:{self.port}: {e}") from e
        self.port = sock.getsockname()[1]
        self._socket = sock

        config = uvicorn.Config(self.app, log_level="warning", access_log=False)
        self._server = uvicorn.Server(config)
        self._thread = threading.Thread(
            target=self._server.run,
            kwargs={"sockets": [sock]},
            name=f"mock-{self.name}",
            daemon=True,
        )
        self._thread.start()

        deadline = time.monotonic() + STARTUP_TIMEOUT
        while not self._server.started:
            if not self._thread.is_alive() or time.monotonic() > deadline:
                self._shutdown()
                raise StartupError(f"{self.name} did not start within {STARTUP_TIMEOUT}s")
            time.sleep(0.01)

        logger.info(f"{self.name} listening at {self.get_url()}")
        return self.get_url()

    async def stop_and_wait(self) -> None:
        """Stop serving; no-op if not started"""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._shutdown)

    def _shutdown(self) -> None:
        if self._server is None:
            return

        self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(SHUTDOWN_TIMEOUT)
            if self._thread.is_alive():
                logger.warning(f"{self.name} did not shut down within {SHUTDOWN_TIMEOUT}s")
        if self._socket is not None:
            self._socket.close()

        self._server = None
        self._thread = None
        self._socket = None
        logger.info(f"{self.name} stopped")
