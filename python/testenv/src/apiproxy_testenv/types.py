"""
Type definitions for the fake service config served to the config manager
"""

from typing import Optional

from pydantic import BaseModel, Field


class Api(BaseModel):
    """API exposed by the service"""

    name: str
    version: str = ""


class HttpRule(BaseModel):
    """HTTP mapping for an API method"""

    selector: str
    get: Optional[str] = None
    put: Optional[str] = None
    post: Optional[str] = None
    delete: Optional[str] = None
    patch: Optional[str] = None
    body: Optional[str] = None


class Http(BaseModel):
    rules: list[HttpRule] = Field(default_factory=list)


class BackendRule(BaseModel):
    """Backend routing rule"""

    selector: str
    address: str = ""
    deadline: Optional[float] = None
    path_translation: Optional[str] = Field(None, alias="pathTranslation")
    jwt_audience: Optional[str] = Field(None, alias="jwtAudience")
    disable_auth: Optional[bool] = Field(None, alias="disableAuth")

    class Config:
        populate_by_name = True


class ServiceBackend(BaseModel):
    rules: list[BackendRule] = Field(default_factory=list)


class AuthRequirement(BaseModel):
    """Requirement that a JWT from provider_id is present"""

    provider_id: str = Field("", alias="providerId")
    audiences: str = ""

    class Config:
        populate_by_name = True


class AuthenticationRule(BaseModel):
    selector: str
    requirements: list[AuthRequirement] = Field(default_factory=list)
    allow_without_credential: bool = Field(False, alias="allowWithoutCredential")

    class Config:
        populate_by_name = True


class AuthProvider(BaseModel):
    """JWT provider descriptor"""

    id: str
    issuer: str
    jwks_uri: str = Field("", alias="jwksUri")
    audiences: str = ""

    class Config:
        populate_by_name = True


class Authentication(BaseModel):
    rules: list[AuthenticationRule] = Field(default_factory=list)
    providers: list[AuthProvider] = Field(default_factory=list)


class UsageRule(BaseModel):
    selector: str
    allow_unregistered_calls: bool = Field(False, alias="allowUnregisteredCalls")
    skip_service_control: bool = Field(False, alias="skipServiceControl")

    class Config:
        populate_by_name = True


class Usage(BaseModel):
    rules: list[UsageRule] = Field(default_factory=list)


class Endpoint(BaseModel):
    name: str
    allow_cors: bool = Field(False, alias="allowCors")

    class Config:
        populate_by_name = True


class Control(BaseModel):
    """Service control environment (the service control server URL)"""

    environment: str = ""


class MetricRule(BaseModel):
    selector: str
    metric_costs: dict[str, int] = Field(default_factory=dict, alias="metricCosts")

    class Config:
        populate_by_name = True


class QuotaLimit(BaseModel):
    name: str
    metric: str
    unit: str = "1/min/{project}"
    values: dict[str, int] = Field(default_factory=dict)


class Quota(BaseModel):
    limits: list[QuotaLimit] = Field(default_factory=list)
    metric_rules: list[MetricRule] = Field(default_factory=list, alias="metricRules")

    class Config:
        populate_by_name = True


class SystemParameter(BaseModel):
    name: str
    http_header: str = Field("", alias="httpHeader")
    url_query_parameter: str = Field("", alias="urlQueryParameter")

    class Config:
        populate_by_name = True


class SystemParameterRule(BaseModel):
    selector: str
    parameters: list[SystemParameter] = Field(default_factory=list)


class SystemParameters(BaseModel):
    rules: list[SystemParameterRule] = Field(default_factory=list)


class LabelDescriptor(BaseModel):
    key: str
    description: str = ""


class LogDescriptor(BaseModel):
    name: str
    labels: list[LabelDescriptor] = Field(default_factory=list)
    description: str = ""
    display_name: str = Field("", alias="displayName")

    class Config:
        populate_by_name = True


class MetricDescriptor(BaseModel):
    name: str
    metric_kind: str = Field("DELTA", alias="metricKind")
    value_type: str = Field("INT64", alias="valueType")
    labels: list[LabelDescriptor] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class MonitoredResourceDescriptor(BaseModel):
    type: str
    labels: list[LabelDescriptor] = Field(default_factory=list)


class LoggingDestination(BaseModel):
    monitored_resource: str = Field(alias="monitoredResource")
    logs: list[str] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class Logging(BaseModel):
    producer_destinations: list[LoggingDestination] = Field(
        default_factory=list, alias="producerDestinations"
    )

    class Config:
        populate_by_name = True


class MonitoringDestination(BaseModel):
    monitored_resource: str = Field(alias="monitoredResource")
    metrics: list[str] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class Monitoring(BaseModel):
    consumer_destinations: list[MonitoringDestination] = Field(
        default_factory=list, alias="consumerDestinations"
    )
    producer_destinations: list[MonitoringDestination] = Field(
        default_factory=list, alias="producerDestinations"
    )

    class Config:
        populate_by_name = True


class Service(BaseModel):
    """Fake service config, mutated in place during TestEnv.setup"""

    name: str
    id: str = ""
    title: str = ""
    producer_project_id: str = Field("", alias="producerProjectId")
    apis: list[Api] = Field(default_factory=list)
    http: Http = Field(default_factory=Http)
    backend: ServiceBackend = Field(default_factory=ServiceBackend)
    authentication: Authentication = Field(default_factory=Authentication)
    usage: Usage = Field(default_factory=Usage)
    endpoints: list[Endpoint] = Field(default_factory=list)
    control: Control = Field(default_factory=Control)
    quota: Optional[Quota] = None
    system_parameters: Optional[SystemParameters] = Field(None, alias="systemParameters")
    logs: list[LogDescriptor] = Field(default_factory=list)
    metrics: list[MetricDescriptor] = Field(default_factory=list)
    monitored_resources: list[MonitoredResourceDescriptor] = Field(
        default_factory=list, alias="monitoredResources"
    )
    logging: Optional[Logging] = None
    monitoring: Optional[Monitoring] = None

    class Config:
        populate_by_name = True

    def to_json_dict(self) -> dict:
        """Serialize the way the service management API returns it"""
        return self.model_dump(by_alias=True, exclude_none=True)
