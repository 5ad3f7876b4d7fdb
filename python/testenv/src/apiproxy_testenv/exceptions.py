"""
apiproxy_testenv custom exception hierarchy
"""


class TestEnvError(Exception):
    """Test environment base exception"""

    # Keep pytest from collecting this class as a test case
    __test__ = False


class ConfigurationError(TestEnvError):
    """Configuration-related error, raised before any process starts"""
    pass


class MalformedBackendAddressError(ConfigurationError):
    """Backend rule address carries no recognized port placeholder"""

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"backend rule address ({address}) is not properly formatted")


class UnsupportedBackendError(ConfigurationError):
    """Backend kind is not supported"""

    def __init__(self, backend: object):
        self.backend = backend
        super().__init__(f"backend ({backend}) is not supported")


class UnsupportedJwtProviderError(ConfigurationError):
    """Requested JWT provider cannot be provisioned"""

    def __init__(self, provider_id: str):
        self.provider_id = provider_id
        super().__init__(f"not supported jwt provider id: {provider_id}")


class ProcessError(TestEnvError):
    """Managed process error"""
    pass


class StartupError(ProcessError):
    """Process failed to start or become ready in time"""
    pass


class ProcessStopError(ProcessError):
    """Process failed to stop cleanly"""
    pass


class HealthCheckError(TestEnvError):
    """
    One or more health checks failed.

    Attributes:
        failures: component name -> failure description
    """

    def __init__(self, failures: dict[str, str]):
        self.failures = dict(failures)
        details = "; ".join(f"{name}: {reason}" for name, reason in self.failures.items())
        super().__init__(f"{len(self.failures)} health check(s) failed: {details}")


class InvariantVerificationError(TestEnvError):
    """Post-test invariant verification failed"""

    def __init__(self, component: str, violations: list[str]):
        self.component = component
        self.violations = list(violations)
        super().__init__(f"{component} invariants violated: {'; '.join(self.violations)}")
