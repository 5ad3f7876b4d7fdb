"""
Backend server processes

One class per backend binary. Each is ready once its port accepts
connections.
"""

from dataclasses import dataclass

from apiproxy_testenv.components.process import ManagedProcess, ProcessConfig
from apiproxy_testenv.config import PlatformConfig


@dataclass
class EchoHTTPServerFlags:
    """Behavior switches of the HTTP echo server"""

    enable_https: bool = False
    enable_root_path_handler: bool = False
    mtls_cert_file: str = ""
    disable_http2: bool = False
    always_respond_rst: bool = False
    reject_request_num: int = 0
    reject_request_status: int = 0

    def to_args(self) -> list[str]:
        args = []
        if self.enable_https:
            args.append("--enable_https")
        if self.enable_root_path_handler:
            args.append("--enable_root_path_handler")
        if self.mtls_cert_file:
            args.append(f"--mtls_cert_file={self.mtls_cert_file}")
        if self.disable_http2:
            args.append("--disable_http2")
        if self.always_respond_rst:
            args.append("--always_respond_rst")
        if self.reject_request_num:
            args.append(f"--reject_request_num={self.reject_request_num}")
        if self.reject_request_status:
            args.append(f"--reject_request_status={self.reject_request_status}")
        return args


def _backend_config(name: str, command: list[str], port: int, startup_timeout: float) -> ProcessConfig:
    return ProcessConfig(
        name=name,
        command=command,
        port=port,
        host=PlatformConfig.get_loopback_address(),
        startup_timeout=startup_timeout,
    )


class EchoHTTPServer(ManagedProcess):
    """HTTP(S) echo backend"""

    def __init__(
        self,
        binary: str,
        port: int,
        flags: EchoHTTPServerFlags,
        cert_path: str = "",
        key_path: str = "",
        startup_timeout: float = 30.0,
    ):
        self.flags = flags
        command = [binary, f"--port={port}", *flags.to_args()]
        if flags.enable_https:
            command.extend([f"--https_cert_path={cert_path}", f"--https_key_path={key_path}"])
        super().__init__(_backend_config("echo", command, port, startup_timeout))


class BookstoreServer(ManagedProcess):
    """gRPC bookstore backend"""

    def __init__(
        self,
        binary: str,
        port: int,
        enable_tls: bool = False,
        cert_path: str = "",
        key_path: str = "",
        mtls_cert_file: str = "",
        startup_timeout: float = 30.0,
    ):
        self.enable_tls = enable_tls
        command = [binary, f"--port={port}"]
        if enable_tls:
            command.extend(
                ["--enable_tls", f"--cert_path={cert_path}", f"--key_path={key_path}"]
            )
        if mtls_cert_file:
            command.append(f"--root_cert_path={mtls_cert_file}")
        super().__init__(_backend_config("bookstore", command, port, startup_timeout))


class GrpcInteropServer(ManagedProcess):
    """gRPC interop test server"""

    def __init__(self, binary: str, port: int, startup_timeout: float = 30.0):
        super().__init__(
            _backend_config("grpc-interop", [binary, f"--port={port}"], port, startup_timeout)
        )


class GrpcEchoServer(ManagedProcess):
    """gRPC echo server"""

    def __init__(self, binary: str, port: int, startup_timeout: float = 30.0):
        super().__init__(
            _backend_config("grpc-echo", [binary, f"--port={port}"], port, startup_timeout)
        )
