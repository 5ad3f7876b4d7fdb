"""
Managed Process

Unified lifecycle for the subprocesses a test environment runs:
- start() / start_and_wait(): start subprocess, optionally wait for readiness
- stop() / stop_and_wait(): stop subprocess; no-op once stopped
- check_health(): readiness probe used by the health registry
- run_one_shot_process(): one-shot helper execution
"""

import asyncio
import logging
import os
import signal
import subprocess
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

import httpx

from apiproxy_testenv.exceptions import ProcessError, ProcessStopError, StartupError
from apiproxy_testenv.logging_config import get_component_logger

logger = logging.getLogger(__name__)

PROBE_INTERVAL = 0.5
PROBE_TIMEOUT = 5.0


class ProcessState(str, Enum):
    """Lifecycle of a managed process; each transition happens once per run"""

    NOT_STARTED = "not-started"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass
class ProcessConfig:
    """Process configuration"""

    name: str
    command: list[str]
    working_dir: Optional[Path] = None
    env: dict[str, str] = field(default_factory=dict)
    port: int = 0
    host: str = "localhost"
    startup_timeout: float = 30.0
    stop_timeout: float = 5.0
    # HTTP path probed for readiness; None probes with a TCP connect to port
    health_endpoint: Optional[str] = None


class ManagedProcess:
    """
    Subprocess with an explicit not-started -> running -> stopped lifecycle.

    Usage:
        process = ManagedProcess(config)
        await process.start_and_wait()
        # ... use service ...
        await process.stop_and_wait()
    """

    def __init__(self, config: ProcessConfig):
        self.config = config
        self._process: Optional[subprocess.Popen] = None
        self._state = ProcessState.NOT_STARTED
        self._log_task: Optional[asyncio.Task] = None
        self._output = get_component_logger(config.name)

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def state(self) -> ProcessState:
        return self._state

    @property
    def is_running(self) -> bool:
        """Check if process is running"""
        if self._process is None:
            return False
        return self._process.poll() is None

    @property
    def base_url(self) -> str:
        return f"http://{self.config.host}:{self.config.port}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, state={self._state.value})"

    async def start(self) -> None:
        """
        Start the subprocess without waiting for readiness.

        Raises:
            StartupError: The command could not be executed
            ProcessError: The process was already stopped
        """
        if self._state is ProcessState.RUNNING:
            return
        if self._state is ProcessState.STOPPED:
            raise ProcessError(f"{self.name} was already stopped and cannot be restarted")

        env = os.environ.copy()
        env.update(self.config.env)

        logger.info(f"Starting {self.name}: {' '.join(self.config.command)}")
        try:
            self._process = subprocess.Popen(
                self.config.command,
                cwd=self.config.working_dir,
                env=env,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                bufsize=1,
                universal_newlines=True,
                preexec_fn=os.setsid if sys.platform != "win32" else None,
            )
        except OSError as e:
            raise StartupError(f"failed to start {self.name}: {e}") from e

        self._state = ProcessState.RUNNING
        self._log_task = asyncio.create_task(self._stream_logs())

    async def start_and_wait(self) -> None:
        """
        Start the subprocess and block until it is ready.

        The process is stopped again if it does not become ready within
        startup_timeout.

        Raises:
            StartupError: Not ready in time, or exited during startup
        """
        await self.start()

        if self.config.port <= 0:
            return

        if not await self._wait_for_ready():
            exit_code = self._process.poll() if self._process else None
            await self.stop_and_wait()
            if exit_code is not None:
                raise StartupError(f"{self.name} exited with code {exit_code} during startup")
            raise StartupError(
                f"{self.name} not ready on port {self.config.port} "
                f"after {self.config.startup_timeout}s"
            )
        logger.info(f"{self.name} is ready at {self.base_url}")

    async def stop(self) -> None:
        """Ask the subprocess to terminate without waiting for it to exit"""
        if self._state is not ProcessState.RUNNING:
            return
        self._signal(signal.SIGTERM)
        self._state = ProcessState.STOPPED

    async def stop_and_wait(self) -> None:
        """
        Stop the subprocess and wait for it to exit.

        Escalates to SIGKILL after stop_timeout. Calling it again once
        stopped is a no-op.

        Raises:
            ProcessStopError: The process could not be stopped
        """
        if self._process is None:
            self._state = ProcessState.STOPPED
            return

        if self._state is ProcessState.RUNNING:
            self._signal(signal.SIGTERM)
            self._state = ProcessState.STOPPED

        loop = asyncio.get_running_loop()
        try:
            try:
                await loop.run_in_executor(None, self._process.wait, self.config.stop_timeout)
            except subprocess.TimeoutExpired:
                logger.warning(f"{self.name} did not exit after SIGTERM, killing")
                self._signal(signal.SIGKILL)
                await loop.run_in_executor(None, self._process.wait)
        except OSError as e:
            raise ProcessStopError(f"failed to stop {self.name}: {e}") from e
        finally:
            await self._stop_log_streaming()

        logger.info(f"{self.name} stopped with code {self._process.returncode}")
        self._process = None

    async def check_health(self) -> None:
        """
        Readiness probe.

        Raises:
            ProcessError: Process exited or is not answering
        """
        if not self.is_running:
            code = self._process.poll() if self._process else None
            raise ProcessError(f"{self.name} is not running (exit code {code})")
        if self.config.port > 0 and not await self._probe():
            raise ProcessError(f"{self.name} is not answering on port {self.config.port}")

    async def run_one_shot_process(
        self,
        command: list[str],
        timeout: float = 60.0,
    ) -> tuple[int, str, str]:
        """
        Run a one-shot command.

        Args:
            command: Command to execute
            timeout: Execution timeout

        Returns:
            Tuple of (return_code, stdout, stderr)
        """
        env = os.environ.copy()
        env.update(self.config.env)

        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                cwd=self.config.working_dir,
                env=env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            return (-1, "", str(e))

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            return (-1, "", "Process timed out")

        return (
            proc.returncode or 0,
            stdout.decode() if stdout else "",
            stderr.decode() if stderr else "",
        )

    def _signal(self, sig: signal.Signals) -> None:
        if self._process is None or self._process.poll() is not None:
            return
        try:
            if sys.platform != "win32":
                os.killpg(os.getpgid(self._process.pid), sig)
            elif sig == signal.SIGKILL:
                self._process.kill()
            else:
                self._process.terminate()
        except ProcessLookupError:
            # Exited between poll() and the signal
            pass

    async def _probe(self) -> bool:
        if self.config.health_endpoint is not None:
            url = f"{self.base_url}{self.config.health_endpoint}"
            try:
                async with httpx.AsyncClient(timeout=PROBE_TIMEOUT) as client:
                    response = await client.get(url)
                    return response.status_code == 200
            except httpx.HTTPError:
                return False

        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(self.config.host, self.config.port),
                timeout=PROBE_TIMEOUT,
            )
        except (OSError, asyncio.TimeoutError):
            return False
        writer.close()
        await writer.wait_closed()
        return True

    async def _wait_for_ready(self) -> bool:
        """Wait for service to be ready"""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.startup_timeout

        while loop.time() < deadline:
            if not self.is_running:
                return False
            if await self._probe():
                return True
            await asyncio.sleep(PROBE_INTERVAL)

        return False

    async def _stream_logs(self):
        """Stream process output to the component logger"""
        if not self._process or not self._process.stdout:
            return

        stdout = self._process.stdout
        loop = asyncio.get_running_loop()
        try:
            while True:
                line = await loop.run_in_executor(None, stdout.readline)
                if not line:
                    break
                self._output.info(line.rstrip())
        except asyncio.CancelledError:
            pass
        except (OSError, ValueError) as e:
            logger.warning(f"[{self.name}] Log streaming error: {e}")

    async def _stop_log_streaming(self) -> None:
        if self._log_task is None:
            return
        self._log_task.cancel()
        try:
            await self._log_task
        except asyncio.CancelledError:
            pass
        self._log_task = None
