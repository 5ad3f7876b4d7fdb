"""
Environment Variable Loading

Loads and validates the environment the test harness runs in: locations of
the component binaries and the debug selector.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from apiproxy_testenv.config import DebugComponents

DEFAULT_BIN_DIR = "bin"
DEFAULT_STARTUP_TIMEOUT = 30.0


@dataclass
class EnvConfig:
    """Environment configuration for the test harness"""

    # Proxy stack binaries
    config_manager_binary: str = f"{DEFAULT_BIN_DIR}/configmanager"
    envoy_binary: str = f"{DEFAULT_BIN_DIR}/envoy"
    bootstrap_binary: str = f"{DEFAULT_BIN_DIR}/bootstrap"

    # Backend binaries
    echo_server_binary: str = f"{DEFAULT_BIN_DIR}/echo/server/app"
    bookstore_server_binary: str = f"{DEFAULT_BIN_DIR}/bookstore"
    grpc_interop_server_binary: str = f"{DEFAULT_BIN_DIR}/interop_server"
    grpc_echo_server_binary: str = f"{DEFAULT_BIN_DIR}/grpc-echo-server"

    # Certificates used by HTTPS backends
    server_cert_path: str = "tests/env/testdata/localhost.crt"
    server_key_path: str = "tests/env/testdata/localhost.key"
    wrong_server_cert_path: str = "tests/env/testdata/wrong.crt"

    debug_components: DebugComponents = DebugComponents.NONE
    startup_timeout: float = DEFAULT_STARTUP_TIMEOUT

    @property
    def proxy_binaries(self) -> dict[str, str]:
        """Binaries every test run needs"""
        return {
            "configmanager": self.config_manager_binary,
            "envoy": self.envoy_binary,
            "bootstrap": self.bootstrap_binary,
        }

    @property
    def backend_binaries(self) -> dict[str, str]:
        return {
            "echo": self.echo_server_binary,
            "bookstore": self.bookstore_server_binary,
            "grpc-interop": self.grpc_interop_server_binary,
            "grpc-echo": self.grpc_echo_server_binary,
        }


def load_env_config(env_paths: Optional[list[Path]] = None) -> EnvConfig:
    """
    Load environment configuration from .env files.

    Args:
        env_paths: List of .env file paths to load (in order)

    Returns:
        EnvConfig with loaded values
    """
    if env_paths is None:
        cwd = Path.cwd()
        env_paths = [
            cwd / ".env",
            cwd / "e2e" / ".env",
        ]

    for path in env_paths:
        if path.exists():
            load_dotenv(path)

    defaults = EnvConfig()
    return EnvConfig(
        config_manager_binary=os.getenv("CONFIGMANAGER_BINARY", defaults.config_manager_binary),
        envoy_binary=os.getenv("ENVOY_BINARY", defaults.envoy_binary),
        bootstrap_binary=os.getenv("BOOTSTRAP_BINARY", defaults.bootstrap_binary),
        echo_server_binary=os.getenv("ECHO_SERVER_BINARY", defaults.echo_server_binary),
        bookstore_server_binary=os.getenv(
            "BOOKSTORE_SERVER_BINARY", defaults.bookstore_server_binary
        ),
        grpc_interop_server_binary=os.getenv(
            "GRPC_INTEROP_SERVER_BINARY", defaults.grpc_interop_server_binary
        ),
        grpc_echo_server_binary=os.getenv(
            "GRPC_ECHO_SERVER_BINARY", defaults.grpc_echo_server_binary
        ),
        server_cert_path=os.getenv("SERVER_CERT_PATH", defaults.server_cert_path),
        server_key_path=os.getenv("SERVER_KEY_PATH", defaults.server_key_path),
        wrong_server_cert_path=os.getenv(
            "WRONG_SERVER_CERT_PATH", defaults.wrong_server_cert_path
        ),
        debug_components=DebugComponents.parse(os.getenv("TESTENV_DEBUG_COMPONENTS")),
        startup_timeout=float(os.getenv("TESTENV_STARTUP_TIMEOUT", DEFAULT_STARTUP_TIMEOUT)),
    )


def validate_env_config(config: EnvConfig) -> tuple[bool, list[str]]:
    """
    Validate environment configuration.

    Only the proxy stack binaries are required; a missing backend binary
    just makes the tests for that backend kind fail at startup.

    Args:
        config: Environment configuration

    Returns:
        Tuple of (is_valid, list of missing/invalid items)
    """
    issues = []

    for name, binary in config.proxy_binaries.items():
        if not Path(binary).exists():
            issues.append(f"{name} binary not found: {binary}")

    if config.startup_timeout <= 0:
        issues.append("TESTENV_STARTUP_TIMEOUT must be positive")

    return len(issues) == 0, issues


def print_env_status(config: EnvConfig):
    """Print environment configuration status"""
    print("\n" + "=" * 60)
    print("API Proxy Test Environment")
    print("=" * 60)

    print("\nProxy binaries:")
    for name, binary in config.proxy_binaries.items():
        print(f"  {name}: {'✓ ' if Path(binary).exists() else '✗ '}{binary}")

    print("\nBackend binaries:")
    for name, binary in config.backend_binaries.items():
        print(f"  {name}: {'✓ ' if Path(binary).exists() else '✗ '}{binary}")

    print(f"\nDebug components: {config.debug_components.value or '(none)'}")
    print(f"Startup timeout: {config.startup_timeout}s")

    print("=" * 60 + "\n")
