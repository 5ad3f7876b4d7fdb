"""
Test Environment

Owns the processes and mock servers of one test case. setup() derives the
configuration and starts everything in dependency order; teardown() verifies
invariants and stops everything, reporting failures instead of raising.

Usage:
    env = TestEnv(test_id=1, backend=Backend.ECHO_SIDECAR)
    env.set_envoy_drain_time_in_sec(5)
    await env.setup([])
    try:
        ...  # requests against env.ports.listener_port
    finally:
        failures = await env.teardown()
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

from apiproxy_testenv.backend import Backend
from apiproxy_testenv.components.backends import EchoHTTPServerFlags
from apiproxy_testenv.components.factory import ComponentFactory
from apiproxy_testenv.components.health import HealthRegistry
from apiproxy_testenv.components.process import ManagedProcess
from apiproxy_testenv.config import DebugComponents, PlatformConfig
from apiproxy_testenv.derivation import (
    MockUrls,
    add_dynamic_routing_backend_port,
    collect_jwt_provider_ids,
    derive_config_args,
    derive_envoy_args,
    envoy_conf_path,
)
from apiproxy_testenv.env import EnvConfig, load_env_config
from apiproxy_testenv.exceptions import UnsupportedBackendError, UnsupportedJwtProviderError
from apiproxy_testenv.options import TestEnvOptions
from apiproxy_testenv.ports import Ports
from apiproxy_testenv.testdata import (
    JwtProviderRegistry,
    append_log_metrics,
    set_fake_control_environment,
    setup_service_config,
)
from apiproxy_testenv.types import (
    Authentication,
    BackendRule,
    HttpRule,
    Quota,
    ServiceBackend,
    SystemParameters,
    UsageRule,
)

logger = logging.getLogger(__name__)


class TestEnv:
    """
    Test environment for one test case.

    Args:
        test_id: Unique id of the test case; selects its ports
        backend: Backend kind to start
        env_config: Binary locations and debug selector; loaded from the
            environment if not given
        factory: Builds the components; defaults to ComponentFactory
    """

    __test__ = False

    def __init__(
        self,
        test_id: int,
        backend: Backend,
        env_config: Optional[EnvConfig] = None,
        factory: Optional[ComponentFactory] = None,
    ):
        logger.info(f"Running test function #{test_id}")

        self.backend = backend
        self.env_config = env_config or load_env_config()
        self.factory = factory or ComponentFactory(self.env_config)
        self.options = TestEnvOptions()

        self.service_config = setup_service_config(backend)
        self.rollout_id = PlatformConfig.INIT_ROLLOUT_ID
        self._ports = Ports.from_test_id(test_id)

        self.service_management_server = self.factory.new_service_management(
            self.service_config.name, self.rollout_id, self.service_config
        )
        self.service_control_server = self.factory.new_service_control(self.service_config.name)
        self.jwt_service = self.factory.new_jwt_service()
        self.trace_server = self.factory.new_trace_server()
        self.health_registry = HealthRegistry()

        self.metadata_server = None
        self.iam_server = None
        self.stats_verifier = None

        self._config_mgr: Optional[ManagedProcess] = None
        self._envoy: Optional[ManagedProcess] = None
        # Only one backend is instantiated per test
        self._backend_server: Optional[ManagedProcess] = None
        self._trace_server_started = False

    # ---- accessors ----

    @property
    def ports(self) -> Ports:
        return self._ports

    @property
    def config_manager(self) -> Optional[ManagedProcess]:
        return self._config_mgr

    @property
    def envoy(self) -> Optional[ManagedProcess]:
        return self._envoy

    @property
    def backend_server(self) -> Optional[ManagedProcess]:
        return self._backend_server

    @property
    def debug_components(self) -> DebugComponents:
        return self.env_config.debug_components

    # ---- options ----

    def set_envoy_drain_time_in_sec(self, drain_time_s: int) -> None:
        self.options.envoy_drain_time_s = drain_time_s

    def override_mock_metadata(self, new_imds_data: dict[str, str], imds_failures: int) -> None:
        """Override mock metadata responses (path -> body) and fail the first requests"""
        self.options.mock_metadata_override = new_imds_data
        self.options.mock_metadata_failures = imds_failures

    def disable_mock_metadata(self) -> None:
        self.options.mock_metadata = False

    def set_backend_address(self, backend_address: str) -> None:
        self.options.backend_address = backend_address

    def set_iam_resps(
        self, iam_resps: Optional[dict[str, str]], iam_failures: int, iam_resp_time: float
    ) -> None:
        """Responses, number of failures and response delay of the mock IAM server"""
        self.options.mock_iam_resps = iam_resps
        self.options.mock_iam_failures = iam_failures
        self.options.mock_iam_resp_time = iam_resp_time

    def set_backend_auth_iam_service_account(self, service_account: str) -> None:
        self.options.backend_auth_iam_service_account = service_account

    def set_backend_auth_iam_delegates(self, delegates: str) -> None:
        self.options.backend_auth_iam_delegates = delegates

    def set_service_control_iam_service_account(self, service_account: str) -> None:
        self.options.service_control_iam_service_account = service_account

    def set_service_control_iam_delegates(self, delegates: str) -> None:
        self.options.service_control_iam_delegates = delegates

    def override_backend_service(self, backend: Backend) -> None:
        """
        Start another backend kind.

        The service config of the original backend kind is kept.
        """
        self.backend = backend

    def use_wrong_backend_cert_for_dr(self, use_wrong_backend_cert: bool) -> None:
        """Serve dynamic routing backends with a cert Envoy does not trust"""
        self.options.use_wrong_backend_cert = use_wrong_backend_cert

    def set_backend_always_respond_rst(self, always_respond_rst: bool) -> None:
        self.options.backend_always_respond_rst = always_respond_rst

    def set_backend_not_start(self, backend_not_start: bool) -> None:
        self.options.backend_not_start = backend_not_start

    def set_backend_reject_request_num(self, reject_request_num: int) -> None:
        self.options.backend_reject_request_num = reject_request_num

    def set_backend_reject_request_status(self, reject_request_status: int) -> None:
        self.options.backend_reject_request_status = reject_request_status

    def set_backend_mtls_cert(self, file_name: str) -> None:
        """Require backend clients to present a cert signed by file_name"""
        self.options.backend_mtls_cert_file = file_name

    def enable_sc_network_fail_open(self) -> None:
        self.options.enable_sc_network_fail_open = True

    def enable_echo_server_root_path_handler(self) -> None:
        self.options.enable_echo_server_root_path_handler = True

    def skip_health_checks(self) -> None:
        """
        Skip health checks in setup and teardown.

        Only meant for tests of Envoy startup itself. Calling it after setup
        skips the teardown checks.
        """
        self.options.skip_health_checks = True

    def skip_envoy_health_checks(self) -> None:
        """Do not register Envoy with the health registry; admin stats are still checked"""
        self.options.skip_envoy_health_checks = True

    def setup_fake_trace_server(self, sample_rate: float) -> None:
        """Enable tracing with sample_rate, exported to the fake trace server"""
        self.options.enable_tracing = True
        self.options.tracing_sample_rate = sample_rate

    def disable_http2_for_https_backend(self) -> None:
        self.options.disable_http2_for_https_backend = True

    def disable_service_management(self) -> None:
        """Do not start the mock service management server"""
        self.options.mock_service_management = False

    # ---- service config ----

    def override_authentication(self, authentication: Authentication) -> None:
        self.service_config.authentication = authentication

    def override_rollout_id_and_config_id(self, new_rollout_id: str, new_config_id: str) -> None:
        self.service_config.id = new_config_id
        self.rollout_id = new_rollout_id
        self.service_management_server.set_rollout_id(new_rollout_id)

    def service_config_id(self) -> str:
        return self.service_config.id

    def override_system_parameters(self, system_parameters: SystemParameters) -> None:
        self.service_config.system_parameters = system_parameters

    def override_quota(self, quota: Quota) -> None:
        self.service_config.quota = quota

    def append_http_rules(self, rules: list[HttpRule]) -> None:
        self.service_config.http.rules.extend(rules)

    def append_backend_rules(self, rules: list[BackendRule]) -> None:
        self.service_config.backend.rules.extend(rules)

    def remove_all_backend_rules(self) -> None:
        self.service_config.backend = ServiceBackend()

    def append_usage_rules(self, rules: list[UsageRule]) -> None:
        self.service_config.usage.rules.extend(rules)

    def set_allow_cors(self) -> None:
        """Allow CORS on the API endpoint"""
        self.service_config.endpoints[0].allow_cors = True

    # ---- lifecycle ----

    async def setup(self, conf_args: Optional[list[str]] = None) -> None:
        """
        Derive configuration and start every component.

        Already started components are left running when a step fails;
        teardown() stops them.

        Args:
            conf_args: Extra config manager arguments

        Raises:
            ConfigurationError: Invalid options or service config
            StartupError: A component did not become ready
            HealthCheckError: Health checks failed after startup
        """
        self.options.validate_for_backend(self.backend)

        add_dynamic_routing_backend_port(self.service_config, self._ports.dynamic_routing_backend_port)
        self._setup_jwt_providers()

        service_control_url = self.service_control_server.setup()
        set_fake_control_environment(self.service_config, service_control_url)
        append_log_metrics(self.service_config)
        mock_urls = MockUrls(service_control=service_control_url)

        if self.options.mock_service_management:
            mock_urls.service_management = self.service_management_server.start()

        if self.options.mock_metadata:
            self.metadata_server = self.factory.new_metadata_server(
                override=self.options.mock_metadata_override,
                failures=self.options.mock_metadata_failures,
            )
            mock_urls.metadata = self.metadata_server.start()

        if self.options.has_iam_overrides:
            self.iam_server = self.factory.new_iam_server(
                resps=self.options.mock_iam_resps,
                failures=self.options.mock_iam_failures,
                resp_time=self.options.mock_iam_resp_time,
            )
            mock_urls.iam = self.iam_server.start()

        derived = derive_config_args(
            self.options,
            self._ports,
            self.service_config.name,
            mock_urls,
            self.backend,
            debug_components=self.debug_components,
            base_args=conf_args,
        )

        self._config_mgr = self.factory.new_config_manager(
            self._ports,
            derived.conf_args,
            debug=self.debug_components.includes(DebugComponents.CONFIG_MANAGER),
        )
        await self._config_mgr.start_and_wait()
        self.health_registry.register_health_checker(self._config_mgr)

        self._envoy = self.factory.new_envoy(
            derive_envoy_args(self.options, self.debug_components),
            derived.bootstrap_args,
            envoy_conf_path(self._ports.test_id),
            self._ports,
        )
        await self._envoy.start_and_wait()
        if not self.options.skip_envoy_health_checks:
            self.health_registry.register_health_checker(self._envoy)

        self.stats_verifier = self.factory.new_stats_verifier(self._ports)
        self.health_registry.register_health_checker(self.stats_verifier)
        self.trace_server.start_stackdriver_server(
            self._ports.fake_stackdriver_port,
            tracing_enabled=self.options.enable_tracing,
            sample_rate=self.options.tracing_sample_rate,
        )
        self._trace_server_started = True

        if not self.options.backend_not_start:
            self._backend_server = self._new_backend_server()
            await self._backend_server.start_and_wait()

        wait_time = self.options.setup_wait_time
        if wait_time is None:
            wait_time = PlatformConfig.SETUP_WAIT_TIME
        await asyncio.sleep(wait_time)

        if not self.options.skip_health_checks:
            await self.health_registry.run_all()

        logger.info(f"Test environment #{self._ports.test_id} is ready")

    def _setup_jwt_providers(self) -> None:
        provider_ids = sorted(collect_jwt_provider_ids(self.service_config))
        logger.info(f"Requested JWT providers for this test: {provider_ids}")

        for provider_id in provider_ids:
            if not JwtProviderRegistry.is_supported(provider_id):
                raise UnsupportedJwtProviderError(provider_id)

        self.jwt_service.setup_jwt(provider_ids, self._ports)

        auth = self.service_config.authentication
        known = {provider.id for provider in auth.providers}
        for provider_id in provider_ids:
            provider = self.jwt_service.provider_map.get(provider_id)
            if provider is None:
                raise UnsupportedJwtProviderError(provider_id)
            if provider_id not in known:
                auth.providers.append(provider.auth_provider)
                known.add(provider_id)

    def _new_backend_server(self) -> ManagedProcess:
        """Construct the backend process for the configured backend kind"""
        ports = self._ports
        options = self.options

        if self.backend in (Backend.ECHO_SIDECAR, Backend.ECHO_REMOTE):
            remote = self.backend is Backend.ECHO_REMOTE
            flags = EchoHTTPServerFlags(
                enable_https=remote,
                enable_root_path_handler=remote or options.enable_echo_server_root_path_handler,
                mtls_cert_file=options.backend_mtls_cert_file,
                disable_http2=options.disable_http2_for_https_backend,
                always_respond_rst=options.backend_always_respond_rst,
                reject_request_num=options.backend_reject_request_num,
                reject_request_status=options.backend_reject_request_status,
            )
            port = ports.dynamic_routing_backend_port if remote else ports.backend_server_port
            return self.factory.new_echo_server(
                port, use_wrong_cert=remote and options.use_wrong_backend_cert, flags=flags
            )

        if self.backend is Backend.GRPC_BOOKSTORE_SIDECAR:
            return self.factory.new_bookstore_server(
                ports.backend_server_port, enable_tls=False, use_wrong_cert=False, mtls_cert_file=""
            )
        if self.backend is Backend.GRPC_BOOKSTORE_REMOTE:
            return self.factory.new_bookstore_server(
                ports.dynamic_routing_backend_port,
                enable_tls=True,
                use_wrong_cert=options.use_wrong_backend_cert,
                mtls_cert_file=options.backend_mtls_cert_file,
            )
        if self.backend is Backend.GRPC_INTEROP_SIDECAR:
            return self.factory.new_grpc_interop_server(ports.backend_server_port)
        if self.backend is Backend.GRPC_ECHO_SIDECAR:
            return self.factory.new_grpc_echo_server(ports.backend_server_port)
        if self.backend is Backend.GRPC_ECHO_REMOTE:
            return self.factory.new_grpc_echo_server(ports.dynamic_routing_backend_port)
        raise UnsupportedBackendError(self.backend)

    async def stop_backend_server(self) -> None:
        """
        Stop only the backend, leaving config manager and Envoy running.

        Raises:
            ProcessStopError: The backend could not be stopped
        """
        backend_server, self._backend_server = self._backend_server, None
        if backend_server is not None:
            await backend_server.stop_and_wait()

    async def teardown(self, report: Optional[Callable[[str], Any]] = None) -> list[str]:
        """
        Verify invariants and stop every component.

        Every step runs even if an earlier one failed.

        Args:
            report: Called with each failure message, e.g. pytest's fail channel

        Returns:
            Failure messages; empty if the test environment was healthy
        """
        logger.info("start tearing down...")
        failures: list[str] = []

        async def attempt(description: str, action: Callable[[], Any]) -> None:
            try:
                result = action()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                message = f"{description}: {e}"
                logger.error(message)
                failures.append(message)
                if report is not None:
                    report(message)

        # A failing health check here means the test crashed a component
        if not self.options.skip_health_checks:
            await attempt("health check failure during teardown", self.health_registry.run_all)

        if self.stats_verifier is not None:
            await attempt("error verifying stats invariants", self.stats_verifier.verify_invariants)

        if self._trace_server_started:
            await attempt("error verifying tracing invariants", self.trace_server.verify_invariants)

        await attempt("error tearing down JWT service", self.jwt_service.tear_down)

        if self._config_mgr is not None:
            await attempt("error stopping config manager", self._config_mgr.stop_and_wait)
        if self._envoy is not None:
            await attempt("error stopping envoy", self._envoy.stop_and_wait)
        if self._backend_server is not None:
            await attempt(
                f"error stopping {self._backend_server.name} backend", self.stop_backend_server
            )

        for server in (
            self.metadata_server,
            self.iam_server,
            self.service_control_server,
            self.service_management_server,
        ):
            if server is not None:
                await attempt(f"error stopping {server.name} mock", server.stop_and_wait)

        # Stopped last
        await attempt("error stopping trace server", self.trace_server.stop_and_wait)

        logger.info("finish tearing down...")
        return failures
