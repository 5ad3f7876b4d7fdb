"""
Config manager process
"""

from apiproxy_testenv.components.process import ManagedProcess, ProcessConfig
from apiproxy_testenv.config import PlatformConfig
from apiproxy_testenv.ports import Ports


class ConfigManagerServer(ManagedProcess):
    """
    Config manager serving xDS to Envoy on the discovery port.

    Ready once the discovery port accepts connections.
    """

    def __init__(
        self,
        binary: str,
        ports: Ports,
        args: list[str],
        debug: bool = False,
        startup_timeout: float = 30.0,
    ):
        command = [binary, f"--discovery_port={ports.discovery_port}", *args]
        if debug:
            command.extend(["--logtostderr", "--v=1"])
        super().__init__(
            ProcessConfig(
                name="configmanager",
                command=command,
                port=ports.discovery_port,
                host=PlatformConfig.get_loopback_address(),
                startup_timeout=startup_timeout,
            )
        )
