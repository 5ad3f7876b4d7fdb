"""
Test environment options

Every option defaults to "not set". An option that is not set contributes no
flag, so the downstream process falls back to its own default.
"""

from dataclasses import dataclass
from typing import Optional

from apiproxy_testenv.backend import Backend
from apiproxy_testenv.exceptions import ConfigurationError

_ECHO_BACKENDS = frozenset({Backend.ECHO_SIDECAR, Backend.ECHO_REMOTE})

# Backend-specific options and the backend kinds that honor them
_BACKEND_OPTION_KINDS: dict[str, frozenset[Backend]] = {
    "use_wrong_backend_cert": frozenset({Backend.ECHO_REMOTE, Backend.GRPC_BOOKSTORE_REMOTE}),
    "backend_mtls_cert_file": frozenset(
        {Backend.ECHO_SIDECAR, Backend.ECHO_REMOTE, Backend.GRPC_BOOKSTORE_REMOTE}
    ),
    "enable_echo_server_root_path_handler": _ECHO_BACKENDS,
    "backend_always_respond_rst": _ECHO_BACKENDS,
    "backend_reject_request_num": _ECHO_BACKENDS,
    "backend_reject_request_status": _ECHO_BACKENDS,
    "disable_http2_for_https_backend": _ECHO_BACKENDS,
}


@dataclass
class TestEnvOptions:
    """Overrides applied to one test run"""

    __test__ = False

    # Explicit --backend_address; computed from the backend kind when empty
    backend_address: str = ""

    # Mock metadata server; its URL goes to both config manager and bootstrapper
    mock_metadata: bool = True
    # Metadata path -> response overrides
    mock_metadata_override: Optional[dict[str, str]] = None
    # Number of metadata requests answered with an error before succeeding
    mock_metadata_failures: int = 0

    # Mock IAM server is started only if any of these three is set
    mock_iam_resps: Optional[dict[str, str]] = None
    mock_iam_failures: int = 0
    # Seconds the mock IAM server waits before each response
    mock_iam_resp_time: float = 0.0

    # IAM impersonation for backend auth and service control
    backend_auth_iam_service_account: str = ""
    backend_auth_iam_delegates: str = ""
    service_control_iam_service_account: str = ""
    service_control_iam_delegates: str = ""

    # Service control network failures fail closed unless enabled
    enable_sc_network_fail_open: bool = False

    # Tracing; when disabled --disable_tracing is passed instead
    enable_tracing: bool = False
    tracing_sample_rate: float = 0.0

    # Envoy --drain-time-s; 0 means not set
    envoy_drain_time_s: int = 0

    # Mock service management server; its URL goes to --service_management_url
    mock_service_management: bool = True

    # Health check gating
    skip_health_checks: bool = False
    skip_envoy_health_checks: bool = False

    # Do not start any backend (tests of an unreachable backend)
    backend_not_start: bool = False

    # Backend-specific options, honored only by some backend kinds
    enable_echo_server_root_path_handler: bool = False
    backend_mtls_cert_file: str = ""
    use_wrong_backend_cert: bool = False
    backend_always_respond_rst: bool = False
    backend_reject_request_num: int = 0
    backend_reject_request_status: int = 0
    disable_http2_for_https_backend: bool = False

    # Settle time after all processes started, seconds; None uses the platform default
    setup_wait_time: Optional[float] = None

    @property
    def has_iam_overrides(self) -> bool:
        """True if any mock IAM option was set"""
        return (
            self.mock_iam_resps is not None
            or self.mock_iam_failures != 0
            or self.mock_iam_resp_time != 0
        )

    def unsupported_for_backend(self, backend: Backend) -> list[str]:
        """Names of backend-specific options that are set but ignored by backend"""
        unsupported = []
        for name, kinds in _BACKEND_OPTION_KINDS.items():
            if getattr(self, name) and backend not in kinds:
                unsupported.append(name)
        return unsupported

    def validate_for_backend(self, backend: Backend) -> None:
        """
        Reject backend-specific options that the backend kind would ignore.

        Raises:
            ConfigurationError: An option is set that backend does not honor
        """
        unsupported = self.unsupported_for_backend(backend)
        if unsupported:
            raise ConfigurationError(
                f"options {', '.join(unsupported)} are not supported by backend ({backend})"
            )
