"""
Configuration Derivation

Turns sparse test options into the service config mutations and the ordered
argument lists handed to the config manager, the bootstrapper and Envoy.
Nothing here starts a process.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from apiproxy_testenv.backend import Backend
from apiproxy_testenv.config import DebugComponents, PlatformConfig
from apiproxy_testenv.exceptions import MalformedBackendAddressError, UnsupportedBackendError
from apiproxy_testenv.options import TestEnvOptions
from apiproxy_testenv.ports import Ports
from apiproxy_testenv.types import Service

logger = logging.getLogger(__name__)

DEBUG_ENVOY_DRAIN_TIME_S = 1


@dataclass
class MockUrls:
    """URLs of the mock servers started so far; None means not started"""

    service_control: Optional[str] = None
    service_management: Optional[str] = None
    metadata: Optional[str] = None
    iam: Optional[str] = None


@dataclass
class DerivedArgs:
    """Arguments derived for one test run"""

    conf_args: list[str] = field(default_factory=list)
    bootstrap_args: list[str] = field(default_factory=list)
    # Resolved --backend_address; empty for dynamic routing backends
    backend_address: str = ""


def add_dynamic_routing_backend_port(service: Service, port: int) -> None:
    """
    Substitute the dynamic routing backend port into backend rule addresses.

    Rules with an empty address are left alone; the config manager fills them
    from --backend_address. The invalid-port placeholder is kept so the rule
    stays unroutable.

    Args:
        service: Service config, mutated in place
        port: Port the dynamic routing backend listens on

    Raises:
        MalformedBackendAddressError: Address carries neither placeholder
    """
    working = PlatformConfig.WORKING_BACKEND_PORT
    invalid = PlatformConfig.INVALID_BACKEND_PORT

    # Check every rule first so a bad rule leaves the service untouched
    for rule in service.backend.rules:
        if rule.address and working not in rule.address and invalid not in rule.address:
            raise MalformedBackendAddressError(rule.address)

    for rule in service.backend.rules:
        if rule.address:
            rule.address = rule.address.replace(working, str(port))


def collect_jwt_provider_ids(service: Service) -> set[str]:
    """Unique non-empty provider ids required by the service's authentication rules"""
    provider_ids = set()
    for rule in service.authentication.rules:
        for requirement in rule.requirements:
            if requirement.provider_id:
                provider_ids.add(requirement.provider_id)
    return provider_ids


def form_backend_address(ports: Ports, backend: Backend) -> str:
    """
    Form the --backend_address value for a backend kind.

    Returns:
        Backend address, or "" for dynamic routing backends which must not get the flag

    Raises:
        UnsupportedBackendError: Unknown backend kind
    """
    address = f"{PlatformConfig.get_loopback_host()}:{ports.backend_server_port}"

    if backend in (Backend.ECHO_REMOTE, Backend.GRPC_BOOKSTORE_REMOTE, Backend.GRPC_ECHO_REMOTE):
        return ""
    if backend in (
        Backend.GRPC_BOOKSTORE_SIDECAR,
        Backend.GRPC_ECHO_SIDECAR,
        Backend.GRPC_INTEROP_SIDECAR,
    ):
        return f"grpc://{address}"
    if backend is Backend.ECHO_SIDECAR:
        return f"http://{address}"
    raise UnsupportedBackendError(backend)


def tracing_args(options: TestEnvOptions, ports: Ports) -> list[str]:
    """Tracing flags; exactly one of the two forms is always returned"""
    if not options.enable_tracing:
        return ["--disable_tracing"]

    # gRPC naming format: protocol:host:port
    address = ":".join(
        [
            PlatformConfig.get_ip_protocol(),
            PlatformConfig.get_loopback_address(),
            str(ports.fake_stackdriver_port),
        ]
    )
    return [
        f"--tracing_sample_rate={options.tracing_sample_rate:g}",
        f"--tracing_stackdriver_address={address}",
    ]


def derive_config_args(
    options: TestEnvOptions,
    ports: Ports,
    service_name: str,
    mock_urls: MockUrls,
    backend: Backend,
    debug_components: DebugComponents = DebugComponents.NONE,
    base_args: Optional[list[str]] = None,
) -> DerivedArgs:
    """
    Derive config manager and bootstrapper arguments.

    Flags are appended in a fixed order after base_args. A flag is emitted
    only when its option (or mock URL) is set.

    Args:
        options: Test options
        ports: Ports of this test run
        service_name: Name of the fake service
        mock_urls: URLs of the mock servers already started
        backend: Backend kind, used when no backend address override is set
        debug_components: Debug selector
        base_args: Caller-supplied config manager arguments

    Returns:
        DerivedArgs

    Raises:
        UnsupportedBackendError: Backend address cannot be formed
    """
    conf_args = list(base_args or [])
    bootstrap_args: list[str] = []

    if mock_urls.service_control:
        conf_args.append(f"--service_control_url={mock_urls.service_control}")
    if mock_urls.service_management:
        conf_args.append(f"--service_management_url={mock_urls.service_management}")

    if not options.enable_sc_network_fail_open:
        conf_args.append("--service_control_network_fail_open=false")

    if mock_urls.metadata:
        conf_args.append(f"--metadata_url={mock_urls.metadata}")
        bootstrap_args.append(f"--metadata_url={mock_urls.metadata}")

    if mock_urls.iam:
        conf_args.append(f"--iam_url={mock_urls.iam}")

    if options.backend_auth_iam_service_account:
        conf_args.append(
            f"--backend_auth_iam_service_account={options.backend_auth_iam_service_account}"
        )
    if options.backend_auth_iam_delegates:
        conf_args.append(f"--backend_auth_iam_delegates={options.backend_auth_iam_delegates}")
    if options.service_control_iam_service_account:
        conf_args.append(
            f"--service_control_iam_service_account={options.service_control_iam_service_account}"
        )
    if options.service_control_iam_delegates:
        conf_args.append(
            f"--service_control_iam_delegates={options.service_control_iam_delegates}"
        )

    conf_args.append(f"--listener_port={ports.listener_port}")
    conf_args.append(f"--service={service_name}")

    conf_args.extend(tracing_args(options, ports))

    if debug_components.includes(DebugComponents.BOOTSTRAP):
        bootstrap_args.extend(["--logtostderr", "--v=1"])

    backend_address = options.backend_address or form_backend_address(ports, backend)
    if backend_address:
        conf_args.extend(["--backend_address", backend_address])

    logger.debug(f"Derived config manager args: {conf_args}")
    logger.debug(f"Derived bootstrapper args: {bootstrap_args}")

    return DerivedArgs(
        conf_args=conf_args,
        bootstrap_args=bootstrap_args,
        backend_address=backend_address,
    )


def derive_envoy_args(
    options: TestEnvOptions,
    debug_components: DebugComponents = DebugComponents.NONE,
) -> list[str]:
    """Envoy log level and drain time flags"""
    envoy_args = []
    if debug_components.includes(DebugComponents.ENVOY):
        envoy_args.extend(["--log-level", "debug"])
        if options.envoy_drain_time_s == 0:
            envoy_args.extend(["--drain-time-s", str(DEBUG_ENVOY_DRAIN_TIME_S)])
    if options.envoy_drain_time_s != 0:
        envoy_args.extend(["--drain-time-s", str(options.envoy_drain_time_s)])
    return envoy_args


def envoy_conf_path(test_id: int) -> str:
    """Path of the bootstrap config the bootstrapper writes for Envoy"""
    return f"/tmp/apiproxy-testdata-bootstrap-{test_id}.yaml"
