"""
Backend kinds a test can run against
"""

from enum import Enum


class Backend(str, Enum):
    """Which backend implementation is exercised in a test run"""

    ECHO_SIDECAR = "echo-sidecar"
    ECHO_REMOTE = "echo-remote"
    GRPC_BOOKSTORE_SIDECAR = "grpc-bookstore-sidecar"
    GRPC_BOOKSTORE_REMOTE = "grpc-bookstore-remote"
    GRPC_INTEROP_SIDECAR = "grpc-interop-sidecar"
    GRPC_ECHO_SIDECAR = "grpc-echo-sidecar"
    GRPC_ECHO_REMOTE = "grpc-echo-remote"

    @property
    def is_remote(self) -> bool:
        """Remote backends are reached through dynamic routing, not --backend_address"""
        return self in _REMOTE_BACKENDS

    @property
    def is_grpc(self) -> bool:
        return self not in (Backend.ECHO_SIDECAR, Backend.ECHO_REMOTE)

    def __str__(self) -> str:
        return self.value


_REMOTE_BACKENDS = frozenset(
    {
        Backend.ECHO_REMOTE,
        Backend.GRPC_BOOKSTORE_REMOTE,
        Backend.GRPC_ECHO_REMOTE,
    }
)
