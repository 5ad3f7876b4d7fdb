"""
Health Registry

Runs the readiness probes of every registered component together. The
registry only probes: it holds weak references and never starts or stops
anything.
"""

import asyncio
import logging
import weakref
from typing import Protocol, runtime_checkable

from apiproxy_testenv.exceptions import HealthCheckError

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT = 30.0


@runtime_checkable
class HealthChecker(Protocol):
    """Health checker interface"""

    @property
    def name(self) -> str:
        """Component name used in failure reports"""
        ...

    async def check_health(self) -> None:
        """Probe the component, raising on failure"""
        ...


class HealthRegistry:
    """
    Collects health checkers and runs them on demand.

    Usage:
        registry = HealthRegistry()
        registry.register_health_checker(envoy)
        await registry.run_all()
    """

    def __init__(self, probe_timeout: float = DEFAULT_PROBE_TIMEOUT):
        self.probe_timeout = probe_timeout
        self._checkers: list[weakref.ReferenceType] = []

    def register_health_checker(self, checker: HealthChecker) -> None:
        """Add a checker; registration order is kept for reporting"""
        logger.debug(f"Registering health checker for {checker.name}")
        self._checkers.append(weakref.ref(checker))

    @property
    def checkers(self) -> list[HealthChecker]:
        """Registered checkers that are still alive, in registration order"""
        return [checker for ref in self._checkers if (checker := ref()) is not None]

    def __len__(self) -> int:
        return len(self.checkers)

    async def run_all(self) -> None:
        """
        Run every health check, even after one fails.

        Raises:
            HealthCheckError: One or more checks failed; failures maps each
                failing component name to its error
        """
        checkers = self.checkers
        if not checkers:
            return

        results = await asyncio.gather(
            *[self._run_one(checker) for checker in checkers],
            return_exceptions=True,
        )

        failures: dict[str, str] = {}
        for checker, result in zip(checkers, results):
            if isinstance(result, BaseException):
                failures[checker.name] = str(result) or type(result).__name__
                logger.error(f"Health check failed for {checker.name}: {result}")

        if failures:
            raise HealthCheckError(failures)
        logger.info(f"All {len(checkers)} health checks passed")

    async def _run_one(self, checker: HealthChecker) -> None:
        try:
            await asyncio.wait_for(checker.check_health(), timeout=self.probe_timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(f"health check timed out after {self.probe_timeout}s")
