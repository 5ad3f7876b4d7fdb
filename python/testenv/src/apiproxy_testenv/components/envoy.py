"""
Envoy process

The bootstrapper runs once to write the Envoy bootstrap config, then Envoy
is started on it.
"""

import logging

from apiproxy_testenv.components.process import ManagedProcess, ProcessConfig, ProcessState
from apiproxy_testenv.config import PlatformConfig
from apiproxy_testenv.exceptions import StartupError
from apiproxy_testenv.ports import Ports

logger = logging.getLogger(__name__)

READY_ENDPOINT = "/ready"
BOOTSTRAP_TIMEOUT = 30.0


class Envoy(ManagedProcess):
    """
    Envoy proxy.

    Args:
        envoy_binary: Path to envoy
        bootstrap_binary: Path to the bootstrapper
        envoy_args: Extra Envoy flags (log level, drain time)
        bootstrap_args: Extra bootstrapper flags (metadata URL, debug)
        conf_path: Where the bootstrapper writes the Envoy config
        ports: Ports of this test run
    """

    def __init__(
        self,
        envoy_binary: str,
        bootstrap_binary: str,
        envoy_args: list[str],
        bootstrap_args: list[str],
        conf_path: str,
        ports: Ports,
        startup_timeout: float = 30.0,
    ):
        self.conf_path = conf_path
        self.bootstrap_command = [
            bootstrap_binary,
            *bootstrap_args,
            f"--admin_port={ports.admin_port}",
            f"--discovery_address={PlatformConfig.get_loopback_address()}:{ports.discovery_port}",
            conf_path,
        ]
        super().__init__(
            ProcessConfig(
                name="envoy",
                command=[
                    envoy_binary,
                    "-c",
                    conf_path,
                    "--disable-hot-restart",
                    "--base-id",
                    str(ports.test_id),
                    *envoy_args,
                ],
                port=ports.admin_port,
                host=PlatformConfig.get_loopback_address(),
                startup_timeout=startup_timeout,
                health_endpoint=READY_ENDPOINT,
            )
        )

    async def start(self) -> None:
        """
        Write the bootstrap config, then start Envoy.

        The bootstrapper only runs before the first start; a running Envoy
        is left alone and a stopped one cannot be restarted.

        Raises:
            StartupError: The bootstrapper failed
            ProcessError: Envoy was already stopped
        """
        if self.state is not ProcessState.NOT_STARTED:
            await super().start()
            return

        code, stdout, stderr = await self.run_one_shot_process(
            self.bootstrap_command, timeout=BOOTSTRAP_TIMEOUT
        )
        if stdout:
            logger.debug(f"bootstrap output: {stdout.strip()}")
        if code != 0:
            raise StartupError(f"bootstrapper exited with code {code}: {stderr.strip()}")
        await super().start()
