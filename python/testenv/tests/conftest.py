"""
Pytest configuration and fixtures
"""

from typing import Optional

import pytest

from apiproxy_testenv.backend import Backend
from apiproxy_testenv.components.factory import ComponentFactory
from apiproxy_testenv.components.jwt import FakeJwtProvider
from apiproxy_testenv.env import EnvConfig
from apiproxy_testenv.exceptions import ProcessError, StartupError
from apiproxy_testenv.testdata import JwtProviderRegistry
from apiproxy_testenv.testenv import TestEnv
from apiproxy_testenv.types import AuthProvider


class FakeProcess:
    """Managed process stand-in counting lifecycle calls"""

    def __init__(self, name: str, events: list[str], fail_start: bool = False, **kwargs):
        self.name = name
        self.kwargs = kwargs
        self.events = events
        self.fail_start = fail_start
        self.healthy = True
        self.start_count = 0
        self.stop_count = 0
        self.health_check_count = 0

    async def start_and_wait(self):
        self.start_count += 1
        self.events.append(f"start:{self.name}")
        if self.fail_start:
            raise StartupError(f"{self.name} not ready")

    async def stop_and_wait(self):
        self.stop_count += 1
        self.events.append(f"stop:{self.name}")

    async def check_health(self):
        self.health_check_count += 1
        if not self.healthy:
            raise ProcessError(f"{self.name} is not running")


class FakeMockServer:
    """In-process mock server stand-in that never binds a socket"""

    def __init__(self, name: str, events: list[str], **kwargs):
        self.name = name
        self.kwargs = kwargs
        self.events = events
        self.started = False
        self.rollout_id: Optional[str] = kwargs.get("rollout_id")

    def start(self) -> str:
        self.started = True
        self.events.append(f"start:{self.name}")
        return f"http://127.0.0.1/{self.name}"

    def setup(self) -> str:
        return self.start()

    def set_rollout_id(self, rollout_id: str):
        self.rollout_id = rollout_id

    async def stop_and_wait(self):
        self.events.append(f"stop:{self.name}")


class FakeJwtService:
    """Provisions providers from the registry without serving JWKS"""

    def __init__(self, events: list[str]):
        self.events = events
        self.provider_map: dict[str, FakeJwtProvider] = {}
        self.setup_calls = 0

    def setup_jwt(self, provider_ids, ports):
        self.setup_calls += 1
        for provider_id in provider_ids:
            if provider_id in self.provider_map or not JwtProviderRegistry.is_supported(provider_id):
                continue
            info = JwtProviderRegistry.get_provider(provider_id)
            self.provider_map[provider_id] = FakeJwtProvider(
                info=info,
                auth_provider=AuthProvider(
                    id=info.id,
                    issuer=info.issuer,
                    jwks_uri=f"http://127.0.0.1:{ports.jwt_range_base}/{provider_id}/jwks",
                    audiences=info.audiences,
                ),
            )

    async def tear_down(self):
        self.events.append("stop:jwt")


class FakeTraceServer:
    def __init__(self, events: list[str]):
        self.events = events
        self.tracing_enabled = None
        self.sample_rate = None
        self.verify_count = 0
        self.violation: Optional[Exception] = None

    def start_stackdriver_server(
        self, port: int, tracing_enabled: bool = False, sample_rate: float = 0.0
    ) -> str:
        self.tracing_enabled = tracing_enabled
        self.sample_rate = sample_rate
        self.events.append("start:trace")
        return f"127.0.0.1:{port}"

    def verify_invariants(self):
        self.verify_count += 1
        if self.violation is not None:
            raise self.violation

    async def stop_and_wait(self):
        self.events.append("stop:trace")


class FakeStatsVerifier:
    name = "stats-verifier"

    def __init__(self):
        self.verify_count = 0

    async def check_health(self):
        pass

    async def verify_invariants(self):
        self.verify_count += 1


class FakeComponentFactory(ComponentFactory):
    """
    Builds fakes and remembers them.

    Attributes:
        events: Every start/stop in call order, as "start:<name>" / "stop:<name>"
        processes: Processes created so far, by name
    """

    def __init__(self):
        super().__init__(EnvConfig())
        self.events: list[str] = []
        self.processes: dict[str, FakeProcess] = {}
        self.fail_start: set[str] = set()
        self.mocks: dict[str, FakeMockServer] = {}
        self.stats_verifier: Optional[FakeStatsVerifier] = None

    def _process(self, name: str, **kwargs) -> FakeProcess:
        process = FakeProcess(name, self.events, fail_start=name in self.fail_start, **kwargs)
        self.processes[name] = process
        return process

    def _mock(self, name: str, **kwargs) -> FakeMockServer:
        mock = FakeMockServer(name, self.events, **kwargs)
        self.mocks[name] = mock
        return mock

    def new_service_control(self, service_name):
        return self._mock("service-control", service_name=service_name)

    def new_service_management(self, service_name, rollout_id, service_config):
        return self._mock(
            "service-management",
            service_name=service_name,
            rollout_id=rollout_id,
            service_config=service_config,
        )

    def new_jwt_service(self):
        return FakeJwtService(self.events)

    def new_trace_server(self):
        return FakeTraceServer(self.events)

    def new_metadata_server(self, override=None, failures=0):
        return self._mock("metadata", override=override, failures=failures)

    def new_iam_server(self, resps=None, failures=0, resp_time=0.0):
        return self._mock("iam", resps=resps, failures=failures, resp_time=resp_time)

    def new_config_manager(self, ports, args, debug):
        return self._process("configmanager", args=args, debug=debug)

    def new_envoy(self, envoy_args, bootstrap_args, conf_path, ports):
        return self._process(
            "envoy", envoy_args=envoy_args, bootstrap_args=bootstrap_args, conf_path=conf_path
        )

    def new_stats_verifier(self, ports):
        self.stats_verifier = FakeStatsVerifier()
        return self.stats_verifier

    def new_echo_server(self, port, use_wrong_cert, flags):
        return self._process("echo", port=port, use_wrong_cert=use_wrong_cert, flags=flags)

    def new_bookstore_server(self, port, enable_tls, use_wrong_cert, mtls_cert_file):
        return self._process(
            "bookstore",
            port=port,
            enable_tls=enable_tls,
            use_wrong_cert=use_wrong_cert,
            mtls_cert_file=mtls_cert_file,
        )

    def new_grpc_interop_server(self, port):
        return self._process("grpc-interop", port=port)

    def new_grpc_echo_server(self, port):
        return self._process("grpc-echo", port=port)


@pytest.fixture
def factory():
    return FakeComponentFactory()


@pytest.fixture
def make_env(factory):
    """Build a TestEnv on the fake factory with no settle time"""

    def _make(backend: Backend = Backend.ECHO_SIDECAR, test_id: int = 1) -> TestEnv:
        env = TestEnv(test_id, backend, env_config=factory.env_config, factory=factory)
        env.options.setup_wait_time = 0
        return env

    return _make
