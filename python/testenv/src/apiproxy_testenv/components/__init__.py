"""
Components of a test environment

- Managed processes: config manager, Envoy, backend servers
- In-process mock servers: service control, service management, metadata,
  IAM, JWKS, trace receiver
- Health registry and stats verifier
"""

from .process import ManagedProcess, ProcessConfig, ProcessState
from .health import HealthChecker, HealthRegistry
from .mock_server import MockHttpServer
from .service_control import MockServiceCtrl, ServiceRequest
from .service_management import MockServiceMrg
from .metadata import MockMetadataServer
from .iam import MockIamServer
from .jwt import FakeJwtProvider, FakeJwtService
from .trace import FakeTraceServer
from .stats import StatsVerifier, check_stats_invariants
from .config_manager import ConfigManagerServer
from .envoy import Envoy
from .backends import (
    BookstoreServer,
    EchoHTTPServer,
    EchoHTTPServerFlags,
    GrpcEchoServer,
    GrpcInteropServer,
)
from .factory import ComponentFactory

__all__ = [
    # Processes
    "ManagedProcess",
    "ProcessConfig",
    "ProcessState",
    "ConfigManagerServer",
    "Envoy",
    "EchoHTTPServer",
    "EchoHTTPServerFlags",
    "BookstoreServer",
    "GrpcInteropServer",
    "GrpcEchoServer",
    # Health
    "HealthChecker",
    "HealthRegistry",
    "StatsVerifier",
    "check_stats_invariants",
    # Mock servers
    "MockHttpServer",
    "MockServiceCtrl",
    "ServiceRequest",
    "MockServiceMrg",
    "MockMetadataServer",
    "MockIamServer",
    "FakeJwtProvider",
    "FakeJwtService",
    "FakeTraceServer",
    # Factory
    "ComponentFactory",
]
