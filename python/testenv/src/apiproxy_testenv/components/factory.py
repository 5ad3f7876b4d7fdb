"""
Component factory

Every collaborator TestEnv starts is constructed here, so tests can swap in
fakes by passing another factory.
"""

from typing import Optional

from apiproxy_testenv.components.backends import (
    BookstoreServer,
    EchoHTTPServer,
    EchoHTTPServerFlags,
    GrpcEchoServer,
    GrpcInteropServer,
)
from apiproxy_testenv.components.config_manager import ConfigManagerServer
from apiproxy_testenv.components.envoy import Envoy
from apiproxy_testenv.components.iam import MockIamServer
from apiproxy_testenv.components.jwt import FakeJwtService
from apiproxy_testenv.components.metadata import MockMetadataServer
from apiproxy_testenv.components.service_control import MockServiceCtrl
from apiproxy_testenv.components.service_management import MockServiceMrg
from apiproxy_testenv.components.stats import StatsVerifier
from apiproxy_testenv.components.trace import FakeTraceServer
from apiproxy_testenv.env import EnvConfig
from apiproxy_testenv.ports import Ports
from apiproxy_testenv.types import Service


class ComponentFactory:
    """Builds the collaborators of a test environment from the environment config"""

    def __init__(self, env_config: EnvConfig):
        self.env_config = env_config

    def new_service_control(self, service_name: str) -> MockServiceCtrl:
        return MockServiceCtrl(service_name)

    def new_service_management(
        self, service_name: str, rollout_id: str, service_config: Service
    ) -> MockServiceMrg:
        return MockServiceMrg(service_name, rollout_id, service_config)

    def new_jwt_service(self) -> FakeJwtService:
        return FakeJwtService()

    def new_trace_server(self) -> FakeTraceServer:
        return FakeTraceServer()

    def new_metadata_server(
        self, override: Optional[dict[str, str]] = None, failures: int = 0
    ) -> MockMetadataServer:
        return MockMetadataServer(override=override, failures=failures)

    def new_iam_server(
        self, resps: Optional[dict[str, str]] = None, failures: int = 0, resp_time: float = 0.0
    ) -> MockIamServer:
        return MockIamServer(resps=resps, failures=failures, resp_time=resp_time)

    def new_config_manager(self, ports: Ports, args: list[str], debug: bool) -> ConfigManagerServer:
        return ConfigManagerServer(
            self.env_config.config_manager_binary,
            ports,
            args,
            debug=debug,
            startup_timeout=self.env_config.startup_timeout,
        )

    def new_envoy(
        self,
        envoy_args: list[str],
        bootstrap_args: list[str],
        conf_path: str,
        ports: Ports,
    ) -> Envoy:
        return Envoy(
            self.env_config.envoy_binary,
            self.env_config.bootstrap_binary,
            envoy_args,
            bootstrap_args,
            conf_path,
            ports,
            startup_timeout=self.env_config.startup_timeout,
        )

    def new_stats_verifier(self, ports: Ports) -> StatsVerifier:
        return StatsVerifier(ports)

    def _cert_path(self, use_wrong_cert: bool) -> str:
        if use_wrong_cert:
            return self.env_config.wrong_server_cert_path
        return self.env_config.server_cert_path

    def new_echo_server(
        self, port: int, use_wrong_cert: bool, flags: EchoHTTPServerFlags
    ) -> EchoHTTPServer:
        return EchoHTTPServer(
            self.env_config.echo_server_binary,
            port,
            flags,
            cert_path=self._cert_path(use_wrong_cert),
            key_path=self.env_config.server_key_path,
            startup_timeout=self.env_config.startup_timeout,
        )

    def new_bookstore_server(
        self, port: int, enable_tls: bool, use_wrong_cert: bool, mtls_cert_file: str
    ) -> BookstoreServer:
        return BookstoreServer(
            self.env_config.bookstore_server_binary,
            port,
            enable_tls=enable_tls,
            cert_path=self._cert_path(use_wrong_cert),
            key_path=self.env_config.server_key_path,
            mtls_cert_file=mtls_cert_file,
            startup_timeout=self.env_config.startup_timeout,
        )

    def new_grpc_interop_server(self, port: int) -> GrpcInteropServer:
        return GrpcInteropServer(
            self.env_config.grpc_interop_server_binary,
            port,
            startup_timeout=self.env_config.startup_timeout,
        )

    def new_grpc_echo_server(self, port: int) -> GrpcEchoServer:
        return GrpcEchoServer(
            self.env_config.grpc_echo_server_binary,
            port,
            startup_timeout=self.env_config.startup_timeout,
        )
