"""
Platform Configuration
Centralized constants for hosts, protocols and debug component selection
"""

from enum import Enum


class PlatformConfig:
    """Static platform settings shared by every test run"""

    LOOPBACK_HOST = "localhost"
    LOOPBACK_ADDRESS = "127.0.0.1"
    IP_PROTOCOL = "ipv4"

    # Backend rule addresses in the fake service configs use these in place of a port
    WORKING_BACKEND_PORT = "-1"
    INVALID_BACKEND_PORT = "-2"

    # Additional wait time after TestEnv.setup (seconds)
    SETUP_WAIT_TIME = 1.0

    INIT_ROLLOUT_ID = "test-rollout-id"

    @classmethod
    def get_loopback_host(cls) -> str:
        return cls.LOOPBACK_HOST

    @classmethod
    def get_loopback_address(cls) -> str:
        return cls.LOOPBACK_ADDRESS

    @classmethod
    def get_ip_protocol(cls) -> str:
        return cls.IP_PROTOCOL


class DebugComponents(str, Enum):
    """Which components emit verbose logs"""

    NONE = ""
    ALL = "all"
    ENVOY = "envoy"
    CONFIG_MANAGER = "configmanager"
    BOOTSTRAP = "bootstrap"

    @classmethod
    def parse(cls, value: str | None) -> "DebugComponents":
        """
        Parse a debug selector value.

        Raises:
            ValueError: Unknown selector
        """
        if not value:
            return cls.NONE
        try:
            return cls(value.strip().lower())
        except ValueError:
            allowed = ", ".join(repr(m.value) for m in cls if m is not cls.NONE)
            raise ValueError(f"invalid debug components {value!r}, expected one of {allowed}")

    def includes(self, component: "DebugComponents") -> bool:
        """True if verbose logs are requested for component"""
        return self is DebugComponents.ALL or self is component
