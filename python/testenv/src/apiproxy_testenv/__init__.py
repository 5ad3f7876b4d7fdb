"""
apiproxy_testenv - integration test environment for the API proxy

Starts the config manager, Envoy, a backend and the mock management-plane
servers for one test case, gates on health checks, and verifies invariants
at teardown.
"""

__version__ = "0.1.0"

from apiproxy_testenv.backend import Backend
from apiproxy_testenv.config import DebugComponents, PlatformConfig
from apiproxy_testenv.env import EnvConfig, load_env_config, print_env_status, validate_env_config
from apiproxy_testenv.exceptions import (
    TestEnvError,
    ConfigurationError,
    MalformedBackendAddressError,
    UnsupportedBackendError,
    UnsupportedJwtProviderError,
    ProcessError,
    StartupError,
    ProcessStopError,
    HealthCheckError,
    InvariantVerificationError,
)
from apiproxy_testenv.options import TestEnvOptions
from apiproxy_testenv.ports import Ports
from apiproxy_testenv.testenv import TestEnv

__all__ = [
    "__version__",
    # Orchestrator
    "TestEnv",
    "TestEnvOptions",
    "Backend",
    "Ports",
    # Configuration
    "DebugComponents",
    "PlatformConfig",
    "EnvConfig",
    "load_env_config",
    "validate_env_config",
    "print_env_status",
    # Exceptions
    "TestEnvError",
    "ConfigurationError",
    "MalformedBackendAddressError",
    "UnsupportedBackendError",
    "UnsupportedJwtProviderError",
    "ProcessError",
    "StartupError",
    "ProcessStopError",
    "HealthCheckError",
    "InvariantVerificationError",
]
