"""Shared fixtures: socket-pair driven sessions and a live server on an ephemeral port."""
from __future__ import annotations

import ftplib
import socket
import sys
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

import pytest

_REPO_ROOT = Path(__file__).resolve().parents[1]
_root_str = str(_REPO_ROOT)
if _root_str not in sys.path:
    sys.path.insert(0, _root_str)

from ftp_engine import (  # noqa: E402
    ConnectionListener,
    FTPConfig,
    FTPConnection,
    FTPServer,
    UserAuthenticator,
    UserDatabaseAuthenticator,
    UserInfo,
)


class FakeServer:
    """Just enough of FTPServer for a session to live in."""

    def __init__(self, authenticator: UserAuthenticator, config: FTPConfig) -> None:
        self.authenticator = authenticator
        self.config = config
        self.listeners: List[ConnectionListener] = []
        self.connections: List[FTPConnection] = []
        self.removed: List[FTPConnection] = []

    def add_connection(self, connection: FTPConnection) -> None:
        self.connections.append(connection)

    def remove_connection(self, connection: FTPConnection) -> None:
        self.removed.append(connection)
        if connection in self.connections:
            self.connections.remove(connection)


class ControlClient:
    """Client end of a control connection, speaking raw lines."""

    def __init__(self, sock: socket.socket) -> None:
        self.sock = sock
        self.sock.settimeout(5)
        self.file = sock.makefile("rb")

    def send_raw(self, data: bytes) -> None:
        self.sock.sendall(data)

    def send(self, line: str) -> None:
        self.send_raw(line.encode("utf-8") + b"\r\n")

    def read_line(self) -> str:
        """Next reply line, or "" once the server has closed the connection."""
        return self.file.readline().decode("utf-8").rstrip("\r\n")

    def command(self, line: str) -> str:
        self.send(line)
        return self.read_line()

    def close(self) -> None:
        for resource in (self.file, self.sock):
            try:
                resource.close()
            except OSError:
                pass


class RegisteringListener(ConnectionListener):
    """Registers extra commands on every new session before it starts reading."""

    def __init__(self, register: Callable[[FTPConnection], None]) -> None:
        self.register = register

    def on_connected(self, connection: FTPConnection) -> None:
        self.register(connection)


SessionFactory = Callable[..., Tuple[FTPConnection, ControlClient, FakeServer]]


@pytest.fixture
def config(tmp_path: Path) -> FTPConfig:
    return FTPConfig(
        host="127.0.0.1",
        port=0,
        root=str(tmp_path / "root"),
        users={
            "bob": UserInfo(password="secret", perm="rw"),
            "guest": UserInfo(password="guest", perm="r"),
        },
        data_timeout=5.0,
    )


@pytest.fixture
def session_factory(config: FTPConfig):
    created: List[Tuple[FTPConnection, ControlClient]] = []

    def factory(
        authenticator: Optional[UserAuthenticator] = None,
        register: Optional[Callable[[FTPConnection], None]] = None,
        session_config: Optional[FTPConfig] = None,
    ) -> Tuple[FTPConnection, ControlClient, FakeServer]:
        cfg = session_config if session_config is not None else config
        if authenticator is None:
            authenticator = UserDatabaseAuthenticator(cfg.users, cfg.root)
        server = FakeServer(authenticator, cfg)
        if register is not None:
            server.listeners.append(RegisteringListener(register))
        server_end, client_end = socket.socketpair()
        connection = FTPConnection(server, server_end, ("127.0.0.1", 50000))
        client = ControlClient(client_end)
        banner = client.read_line()
        assert banner.startswith("220 "), banner
        created.append((connection, client))
        return connection, client, server

    yield factory

    for connection, client in created:
        client.close()
        connection.close()
        connection.thread.join(timeout=5)


@pytest.fixture
def ftp_server(config: FTPConfig):
    server = FTPServer(config=config)
    server.start()
    yield server
    server.close()


def connect_client(server: FTPServer) -> ftplib.FTP:
    host, port = server.address
    client = ftplib.FTP()
    client.connect(host, port, timeout=5)
    return client


@pytest.fixture
def ftp(ftp_server: FTPServer):
    client = connect_client(ftp_server)
    yield client
    try:
        client.quit()
    except ftplib.all_errors:
        client.close()


def read_all(sock: socket.socket) -> bytes:
    chunks: List[bytes] = []
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            return b"".join(chunks)
        chunks.append(chunk)


def lines_of(payload: Sequence[str]) -> int:
    """Size of a CRLF-terminated listing made of ``payload`` lines."""
    return sum(len(line.encode("utf-8")) + 2 for line in payload)
