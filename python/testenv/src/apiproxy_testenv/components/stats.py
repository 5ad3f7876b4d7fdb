"""
Stats verifier

Reads Envoy admin stats; registered as a health checker and run once more at
teardown to verify invariants between counters.
"""

import logging

import httpx

from apiproxy_testenv.config import PlatformConfig
from apiproxy_testenv.exceptions import InvariantVerificationError, ProcessError
from apiproxy_testenv.ports import Ports

logger = logging.getLogger(__name__)

COMPLETED_SUFFIX = ".downstream_rq_completed"
RESPONSE_CLASSES = ("1xx", "2xx", "3xx", "4xx", "5xx")


def parse_counters(payload: dict) -> dict[str, int]:
    """Counters and gauges from a /stats?format=json payload; histograms skipped"""
    counters = {}
    for stat in payload.get("stats", []):
        if "name" in stat and "value" in stat:
            counters[stat["name"]] = int(stat["value"])
    return counters


def check_stats_invariants(counters: dict[str, int]) -> list[str]:
    """
    Every completed downstream request falls in exactly one response class.

    Returns:
        Violation descriptions, empty if all invariants hold
    """
    violations = []
    for name, completed in sorted(counters.items()):
        if not name.endswith(COMPLETED_SUFFIX):
            continue
        prefix = name[: -len(COMPLETED_SUFFIX)]
        by_class = sum(counters.get(f"{prefix}.downstream_rq_{c}", 0) for c in RESPONSE_CLASSES)
        if by_class != completed:
            violations.append(
                f"{name}={completed} but response classes of {prefix} sum to {by_class}"
            )
    return violations


class StatsVerifier:
    """Envoy admin stats client"""

    name = "stats-verifier"

    def __init__(self, ports: Ports, timeout: float = 5.0):
        self.admin_url = f"http://{PlatformConfig.get_loopback_address()}:{ports.admin_port}"
        self.timeout = timeout

    async def fetch_counters(self) -> dict[str, int]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(f"{self.admin_url}/stats", params={"format": "json"})
            response.raise_for_status()
            return parse_counters(response.json())

    async def check_health(self) -> None:
        """
        Raises:
            ProcessError: Admin stats endpoint not reachable
        """
        try:
            await self.fetch_counters()
        except httpx.HTTPError as e:
            raise ProcessError(f"admin stats unavailable at {self.admin_url}: {e}") from e

    async def verify_invariants(self) -> None:
        """
        Raises:
            InvariantVerificationError: A stats invariant does not hold, or
                the stats could not be read
        """
        try:
            counters = await self.fetch_counters()
        except httpx.HTTPError as e:
            raise InvariantVerificationError("stats", [f"cannot read stats: {e}"]) from e

        violations = check_stats_invariants(counters)
        if violations:
            raise InvariantVerificationError("stats", violations)
        logger.info(f"Stats invariants hold over {len(counters)} counters")
