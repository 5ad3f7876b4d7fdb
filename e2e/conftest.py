"""
E2E Test Configuration with real proxy binaries

This module provides:
- Environment configuration loading and validation
- The --debug-components option
- A TestEnv factory fixture that tears every environment down after the test
"""

import dataclasses
import logging

import httpx
import pytest
import pytest_asyncio

from apiproxy_testenv import (
    Backend,
    DebugComponents,
    TestEnv,
    load_env_config,
    print_env_status,
    validate_env_config,
)
from apiproxy_testenv.logging_config import setup_logging

# =============================================================================
# Environment Configuration
# =============================================================================

ENV_CONFIG = load_env_config()
ENV_VALID, ENV_ISSUES = validate_env_config(ENV_CONFIG)

SKIP_E2E = not ENV_VALID
SKIP_REASON = "E2E tests require the configmanager, envoy and bootstrap binaries"


# =============================================================================
# Pytest Hooks
# =============================================================================


def pytest_addoption(parser):
    parser.addoption(
        "--debug-components",
        default=None,
        help='display debug logs for components, can be "all", "envoy", "configmanager", "bootstrap"',
    )


def pytest_configure(config):
    """Register custom markers and configure logging."""
    config.addinivalue_line("markers", "e2e: end-to-end tests requiring the proxy binaries")
    setup_logging(logging.INFO)


def pytest_collection_modifyitems(config, items):
    """Print environment status and skip e2e tests when it is incomplete."""
    if not items:
        return

    print_env_status(ENV_CONFIG)
    if ENV_ISSUES:
        print(f"⚠️  Environment issues: {ENV_ISSUES}")

    if SKIP_E2E:
        skip = pytest.mark.skip(reason=SKIP_REASON)
        for item in items:
            if "e2e" in [m.name for m in item.iter_markers()]:
                item.add_marker(skip)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def env_config(pytestconfig):
    """Environment configuration with the command line debug selector applied."""
    debug = pytestconfig.getoption("--debug-components")
    if debug is None:
        return ENV_CONFIG
    return dataclasses.replace(ENV_CONFIG, debug_components=DebugComponents.parse(debug))


@pytest_asyncio.fixture
async def new_test_env(env_config):
    """
    Factory for test environments.

    Every environment created through it is torn down after the test; any
    teardown failure fails the test.
    """
    envs: list[TestEnv] = []

    def _new(test_id: int, backend: Backend) -> TestEnv:
        env = TestEnv(test_id, backend, env_config=env_config)
        envs.append(env)
        return env

    yield _new

    failures = []
    for env in envs:
        failures.extend(await env.teardown())
    if failures:
        pytest.fail("\n".join(failures))


@pytest_asyncio.fixture
async def http_client():
    """Async HTTP client for requests through the proxy."""
    async with httpx.AsyncClient(timeout=30.0) as client:
        yield client
