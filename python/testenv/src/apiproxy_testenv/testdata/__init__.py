"""
Test data: fake service configs and mock identity providers
"""

from apiproxy_testenv.testdata.jwt_providers import JwtProviderInfo, JwtProviderRegistry
from apiproxy_testenv.testdata.service_configs import (
    append_log_metrics,
    set_fake_control_environment,
    setup_service_config,
)

__all__ = [
    "JwtProviderInfo",
    "JwtProviderRegistry",
    "append_log_metrics",
    "set_fake_control_environment",
    "setup_service_config",
]
