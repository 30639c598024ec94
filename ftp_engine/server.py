# -*- coding: utf-8 -*-
"""Listening socket and session bookkeeping.

The server accepts control connections forever and wraps each one in an
:class:`FTPConnection`, which runs in its own thread. Hosts can observe
sessions through :class:`ConnectionListener` objects added with
:meth:`FTPServer.add_listener`.
"""

from __future__ import annotations

import logging
import socket
import threading
from typing import List, Optional, Tuple

from .api import ConnectionListener, UserAuthenticator
from .auth import UserDatabaseAuthenticator
from .config import FTPConfig
from .connection import FTPConnection

logger = logging.getLogger(__name__)


class FTPServer:
    def __init__(self, authenticator: Optional[UserAuthenticator] = None, config: Optional[FTPConfig] = None) -> None:
        self.config = config if config is not None else FTPConfig()
        if authenticator is None:
            authenticator = UserDatabaseAuthenticator(self.config.users, self.config.root)
        self.authenticator = authenticator

        self.listeners: List[ConnectionListener] = []
        self.connections: List[FTPConnection] = []
        self._lock = threading.Lock()

        self.sock: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self._closing = threading.Event()

    # ---------- Listeners ----------
    def add_listener(self, listener: ConnectionListener) -> None:
        self.listeners.append(listener)

    def remove_listener(self, listener: ConnectionListener) -> None:
        self.listeners.remove(listener)

    # ---------- Sessions ----------
    def add_connection(self, connection: FTPConnection) -> None:
        with self._lock:
            self.connections.append(connection)

    def remove_connection(self, connection: FTPConnection) -> None:
        with self._lock:
            if connection not in self.connections:
                return
            self.connections.remove(connection)
        for listener in list(self.listeners):
            try:
                listener.on_disconnected(connection)
            except Exception:
                logger.exception("Disconnect listener failed for %s", connection.addr)

    # ---------- Listening ----------
    @property
    def address(self) -> Tuple[str, int]:
        if self.sock is None:
            raise RuntimeError("Server is not listening")
        host, port = self.sock.getsockname()[:2]
        return host, port

    def listen(self) -> Tuple[str, int]:
        """Bind the control port. Returns the bound (host, port)."""
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.config.host, self.config.port))
            sock.listen(self.config.backlog)
        except OSError:
            sock.close()
            raise
        self.sock = sock
        logger.info("FTP server listening on %s:%d, root=%s", *self.address, self.config.root)
        return self.address

    def serve_forever(self) -> None:
        """Accept connections until :meth:`close` is called."""
        if self.sock is None:
            self.listen()
        while not self._closing.is_set():
            try:
                conn, addr = self.sock.accept()
            except OSError:
                if self._closing.is_set():
                    break
                raise
            logger.info("New connection from %s", addr)
            try:
                FTPConnection(self, conn, addr)
            except Exception:
                logger.exception("Could not start a session for %s", addr)
                conn.close()

    def start(self) -> Tuple[str, int]:
        """Listen and serve from a background thread."""
        address = self.listen() if self.sock is None else self.address
        self._thread = threading.Thread(target=self.serve_forever, name="ftp-accept", daemon=True)
        self._thread.start()
        return address

    def close(self) -> None:
        """Stop accepting and close every open session."""
        self._closing.set()
        if self.sock is not None:
            # shutdown() is what wakes a thread blocked in accept()
            try:
                self.sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            self.sock.close()
        with self._lock:
            connections = list(self.connections)
        for connection in connections:
            connection.close()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=5)
