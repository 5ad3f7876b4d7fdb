"""
Fake service configs, one per backend kind
"""

import logging

from apiproxy_testenv.backend import Backend
from apiproxy_testenv.config import PlatformConfig
from apiproxy_testenv.exceptions import UnsupportedBackendError
from apiproxy_testenv.types import (
    Api,
    Authentication,
    AuthenticationRule,
    AuthRequirement,
    BackendRule,
    Endpoint,
    Http,
    HttpRule,
    LabelDescriptor,
    LogDescriptor,
    Logging,
    LoggingDestination,
    MetricDescriptor,
    MonitoredResourceDescriptor,
    Monitoring,
    MonitoringDestination,
    Service,
    ServiceBackend,
    Usage,
    UsageRule,
)

logger = logging.getLogger(__name__)

TEST_CONFIG_ID = "test-config-id"
PRODUCER_PROJECT = "producer-project"

ECHO_SERVICE_NAME = "echo-api.endpoints.cloudesf-testing.cloud.goog"
BOOKSTORE_SERVICE_NAME = "bookstore.endpoints.cloudesf-testing.cloud.goog"
GRPC_INTEROP_SERVICE_NAME = "grpc-interop.endpoints.cloudesf-testing.cloud.goog"
GRPC_ECHO_SERVICE_NAME = "grpc-echo.endpoints.cloudesf-testing.cloud.goog"

ECHO_API = "1.echo_api_endpoints_cloudesf_testing_cloud_goog"
BOOKSTORE_API = "endpoints.examples.bookstore.Bookstore"
GRPC_INTEROP_API = "grpc.testing.TestService"
GRPC_ECHO_API = "test.grpc.Test"

REQUEST_LOG_NAME = "endpoints_log"
API_MONITORED_RESOURCE = "api"

# Reported by service control for every request
SERVICERUNTIME_METRICS = (
    "serviceruntime.googleapis.com/api/consumer/request_count",
    "serviceruntime.googleapis.com/api/consumer/total_latencies",
    "serviceruntime.googleapis.com/api/consumer/request_sizes",
    "serviceruntime.googleapis.com/api/consumer/response_sizes",
    "serviceruntime.googleapis.com/api/producer/request_count",
    "serviceruntime.googleapis.com/api/producer/total_latencies",
    "serviceruntime.googleapis.com/api/producer/backend_latencies",
    "serviceruntime.googleapis.com/api/producer/request_overhead_latencies",
    "serviceruntime.googleapis.com/api/producer/request_sizes",
    "serviceruntime.googleapis.com/api/producer/response_sizes",
)

_API_RESOURCE_LABELS = (
    "cloud.googleapis.com/location",
    "cloud.googleapis.com/uid",
    "serviceruntime.googleapis.com/api_version",
    "serviceruntime.googleapis.com/api_method",
    "serviceruntime.googleapis.com/consumer_project",
    "cloud.googleapis.com/project",
    "cloud.googleapis.com/service",
)


def _dynamic_routing_address(scheme: str, port: str, path: str = "") -> str:
    return f"{scheme}://{PlatformConfig.get_loopback_host()}:{port}{path}"


def _echo_service_config(remote: bool) -> Service:
    rules = [
        HttpRule(selector=f"{ECHO_API}.Echo", post="/echo", body="message"),
        HttpRule(selector=f"{ECHO_API}.Simpleget", get="/simpleget"),
        HttpRule(selector=f"{ECHO_API}.EchoHeader", get="/echoHeader"),
        HttpRule(selector=f"{ECHO_API}.Auth_info_google_jwt", get="/auth/info/googlejwt"),
        HttpRule(selector=f"{ECHO_API}.Root", get="/"),
    ]

    backend_rules = []
    if remote:
        working = PlatformConfig.WORKING_BACKEND_PORT
        backend_rules = [
            BackendRule(
                selector=f"{ECHO_API}.Echo",
                address=_dynamic_routing_address("https", working, "/echo"),
                path_translation="CONSTANT_ADDRESS",
            ),
            BackendRule(
                selector=f"{ECHO_API}.Simpleget",
                address=_dynamic_routing_address("https", working, "/simpleget"),
                path_translation="CONSTANT_ADDRESS",
            ),
            BackendRule(
                selector=f"{ECHO_API}.EchoHeader",
                address=_dynamic_routing_address("https", working),
                path_translation="APPEND_PATH_TO_ADDRESS",
            ),
            BackendRule(
                selector=f"{ECHO_API}.Root",
                address=_dynamic_routing_address(
                    "https", PlatformConfig.INVALID_BACKEND_PORT
                ),
                path_translation="APPEND_PATH_TO_ADDRESS",
            ),
        ]

    return Service(
        name=ECHO_SERVICE_NAME,
        id=TEST_CONFIG_ID,
        title="Endpoints Example",
        producer_project_id=PRODUCER_PROJECT,
        apis=[Api(name=ECHO_API)],
        http=Http(rules=rules),
        backend=ServiceBackend(rules=backend_rules),
        authentication=Authentication(
            rules=[
                AuthenticationRule(
                    selector=f"{ECHO_API}.Auth_info_google_jwt",
                    requirements=[
                        AuthRequirement(provider_id="google_jwt", audiences="ok_audience")
                    ],
                ),
            ],
        ),
        usage=Usage(
            rules=[
                UsageRule(selector=f"{ECHO_API}.Simpleget", allow_unregistered_calls=True),
                UsageRule(selector=f"{ECHO_API}.Root", allow_unregistered_calls=True),
            ]
        ),
        endpoints=[Endpoint(name=ECHO_SERVICE_NAME)],
    )


def _bookstore_service_config(remote: bool) -> Service:
    rules = [
        HttpRule(selector=f"{BOOKSTORE_API}.ListShelves", get="/v1/shelves"),
        HttpRule(selector=f"{BOOKSTORE_API}.CreateShelf", post="/v1/shelves", body="shelf"),
        HttpRule(selector=f"{BOOKSTORE_API}.GetShelf", get="/v1/shelves/{shelf}"),
        HttpRule(selector=f"{BOOKSTORE_API}.DeleteShelf", delete="/v1/shelves/{shelf}"),
        HttpRule(selector=f"{BOOKSTORE_API}.ListBooks", get="/v1/shelves/{shelf}/books"),
    ]

    backend_rules = []
    if remote:
        backend_rules = [
            BackendRule(
                selector=f"{BOOKSTORE_API}.{method}",
                address=_dynamic_routing_address("grpcs", PlatformConfig.WORKING_BACKEND_PORT),
            )
            for method in ("ListShelves", "CreateShelf", "GetShelf", "DeleteShelf", "ListBooks")
        ]

    return Service(
        name=BOOKSTORE_SERVICE_NAME,
        id=TEST_CONFIG_ID,
        title="Bookstore gRPC API",
        producer_project_id=PRODUCER_PROJECT,
        apis=[Api(name=BOOKSTORE_API)],
        http=Http(rules=rules),
        backend=ServiceBackend(rules=backend_rules),
        usage=Usage(
            rules=[
                UsageRule(selector=f"{BOOKSTORE_API}.ListShelves", allow_unregistered_calls=True),
            ]
        ),
        endpoints=[Endpoint(name=BOOKSTORE_SERVICE_NAME)],
    )


def _grpc_interop_service_config() -> Service:
    return Service(
        name=GRPC_INTEROP_SERVICE_NAME,
        id=TEST_CONFIG_ID,
        title="gRPC interop test service",
        producer_project_id=PRODUCER_PROJECT,
        apis=[Api(name=GRPC_INTEROP_API)],
        usage=Usage(rules=[UsageRule(selector="*", allow_unregistered_calls=True)]),
        endpoints=[Endpoint(name=GRPC_INTEROP_SERVICE_NAME)],
    )


def _grpc_echo_service_config(remote: bool) -> Service:
    backend_rules = []
    if remote:
        backend_rules = [
            BackendRule(
                selector=f"{GRPC_ECHO_API}.{method}",
                address=_dynamic_routing_address("grpc", PlatformConfig.WORKING_BACKEND_PORT),
            )
            for method in ("Echo", "EchoStream")
        ]

    return Service(
        name=GRPC_ECHO_SERVICE_NAME,
        id=TEST_CONFIG_ID,
        title="gRPC echo test service",
        producer_project_id=PRODUCER_PROJECT,
        apis=[Api(name=GRPC_ECHO_API)],
        backend=ServiceBackend(rules=backend_rules),
        usage=Usage(rules=[UsageRule(selector="*", allow_unregistered_calls=True)]),
        endpoints=[Endpoint(name=GRPC_ECHO_SERVICE_NAME)],
    )


def setup_service_config(backend: Backend) -> Service:
    """
    Build a fresh fake service config for a backend kind.

    Args:
        backend: Backend the test runs against

    Returns:
        New Service instance, owned by the caller

    Raises:
        UnsupportedBackendError: Unknown backend kind
    """
    if backend in (Backend.ECHO_SIDECAR, Backend.ECHO_REMOTE):
        return _echo_service_config(remote=backend.is_remote)
    if backend in (Backend.GRPC_BOOKSTORE_SIDECAR, Backend.GRPC_BOOKSTORE_REMOTE):
        return _bookstore_service_config(remote=backend.is_remote)
    if backend is Backend.GRPC_INTEROP_SIDECAR:
        return _grpc_interop_service_config()
    if backend in (Backend.GRPC_ECHO_SIDECAR, Backend.GRPC_ECHO_REMOTE):
        return _grpc_echo_service_config(remote=backend.is_remote)
    raise UnsupportedBackendError(backend)


def set_fake_control_environment(service: Service, url: str) -> None:
    """Point the service's control environment at the mock service control server"""
    service.control.environment = url


def append_log_metrics(service: Service) -> None:
    """
    Append the request log, serviceruntime metrics and their destinations.

    Calling it again on the same service is a no-op.
    """
    if any(log.name == REQUEST_LOG_NAME for log in service.logs):
        logger.debug(f"{service.name} already has log and metric descriptors")
        return

    service.logs.append(
        LogDescriptor(
            name=REQUEST_LOG_NAME,
            display_name="Endpoints Log",
            labels=[LabelDescriptor(key="supported/endpoints_log")],
        )
    )
    service.metrics.extend(
        MetricDescriptor(
            name=name,
            metric_kind="DELTA",
            value_type="DISTRIBUTION" if "latencies" in name or "sizes" in name else "INT64",
        )
        for name in SERVICERUNTIME_METRICS
    )
    service.monitored_resources.append(
        MonitoredResourceDescriptor(
            type=API_MONITORED_RESOURCE,
            labels=[LabelDescriptor(key=key) for key in _API_RESOURCE_LABELS],
        )
    )
    service.logging = Logging(
        producer_destinations=[
            LoggingDestination(
                monitored_resource=API_MONITORED_RESOURCE, logs=[REQUEST_LOG_NAME]
            )
        ]
    )
    consumer_metrics = [m for m in SERVICERUNTIME_METRICS if "/consumer/" in m]
    producer_metrics = [m for m in SERVICERUNTIME_METRICS if "/producer/" in m]
    service.monitoring = Monitoring(
        consumer_destinations=[
            MonitoringDestination(
                monitored_resource=API_MONITORED_RESOURCE, metrics=consumer_metrics
            )
        ],
        producer_destinations=[
            MonitoringDestination(
                monitored_resource=API_MONITORED_RESOURCE, metrics=producer_metrics
            )
        ],
    )
