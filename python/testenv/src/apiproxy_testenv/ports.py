"""
Per-test port allocation
"""

from dataclasses import dataclass

BASE_PORT = 20000
PORT_BLOCK_SIZE = 20
MAX_TEST_ID = (65535 - BASE_PORT) // PORT_BLOCK_SIZE - 1

# Offsets inside a test's port block
_BACKEND_SERVER = 0
_DYNAMIC_ROUTING_BACKEND = 1
_LISTENER = 2
_ADMIN = 3
_DISCOVERY = 4
_FAKE_STACKDRIVER = 5
_JWT_RANGE = 10


@dataclass(frozen=True)
class Ports:
    """Ports assigned to one test run; never change after construction"""

    test_id: int
    backend_server_port: int
    dynamic_routing_backend_port: int
    listener_port: int
    admin_port: int
    discovery_port: int
    fake_stackdriver_port: int
    jwt_range_base: int

    @classmethod
    def from_test_id(cls, test_id: int) -> "Ports":
        """
        Allocate a disjoint block of ports for a test.

        Args:
            test_id: Numeric test identifier, unique per test function

        Raises:
            ValueError: test_id does not fit in the port range
        """
        if test_id < 0 or test_id > MAX_TEST_ID:
            raise ValueError(f"test id {test_id} out of range [0, {MAX_TEST_ID}]")

        base = BASE_PORT + test_id * PORT_BLOCK_SIZE
        return cls(
            test_id=test_id,
            backend_server_port=base + _BACKEND_SERVER,
            dynamic_routing_backend_port=base + _DYNAMIC_ROUTING_BACKEND,
            listener_port=base + _LISTENER,
            admin_port=base + _ADMIN,
            discovery_port=base + _DISCOVERY,
            fake_stackdriver_port=base + _FAKE_STACKDRIVER,
            jwt_range_base=base + _JWT_RANGE,
        )
