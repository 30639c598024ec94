# -*- coding: utf-8 -*-
"""One FTP control connection and the thread that serves it.

Each accepted socket gets an :class:`FTPConnection`. The constructor fills the
command registries, runs the on-connect hooks (which send the 220 banner) and
then starts a dedicated thread that loops:

    read a line -> split it -> look up the verb -> run the handler -> reply

Exactly one final reply is written per command line. Handlers may reply
themselves; if they do not, ``200 Done`` is sent for them. Exceptions raised
by a handler are turned into a reply at a single place (:meth:`process_command`)
and never end the session. Only a broken control connection does.

Data transfers (:meth:`send_data`, :meth:`receive_data`) run synchronously
inside the handler, so the next command is not read before the transfer is
over.
"""

from __future__ import annotations

import io
import logging
import socket
import threading
from contextlib import closing
from enum import Enum
from typing import TYPE_CHECKING, BinaryIO, Callable, List, Optional, Tuple, Union

from .commands import CommandInfo, CommandRegistry, CommandShape
from .connection_handler import ConnectionHandler
from .errors import DataConnectionError, ResponseError
from .file_handler import FileHandler
from .transfer import receive_stream, send_stream

if TYPE_CHECKING:
    from .api import FileSystem
    from .server import FTPServer

logger = logging.getLogger(__name__)


class SessionState(Enum):
    CONNECTING = "connecting"
    IDLE = "idle"
    EXECUTING = "executing"
    CLOSING = "closing"
    CLOSED = "closed"


class FTPConnection:
    """Represents one FTP control connection (one client)."""

    def __init__(self, server: "FTPServer", conn: socket.socket, addr: Optional[Tuple] = None) -> None:
        self.server = server
        self.conn = conn
        self.addr = addr if addr is not None else conn.getpeername()
        self.config = server.config
        self.state = SessionState.CONNECTING

        if self.config.idle_timeout is not None:
            conn.settimeout(self.config.idle_timeout)
        self.control_file = conn.makefile("rwb")  # for readline/write

        self.commands = CommandRegistry()
        self.site_commands = CommandRegistry(site=True)

        self.bytes_transferred = 0
        self.response_sent = True

        # Guards writes on the control connection; reentrant so a reply can be
        # sent while checking whether one is still owed
        self._write_lock = threading.RLock()
        self._close_lock = threading.Lock()
        self._closed = False
        self._removed = False
        self._data_socket: Optional[socket.socket] = None

        self.con_handler = ConnectionHandler(self)
        self.file_handler = FileHandler(self)

        self.register_command("SITE", "SITE <command>", self.site)
        self.con_handler.register_commands()
        self.file_handler.register_commands()

        self.thread = threading.Thread(target=self._run, name=f"ftp-session-{self.addr}", daemon=True)
        server.add_connection(self)
        try:
            for listener in list(server.listeners):
                listener.on_connected(self)
            self.con_handler.on_connected()
        except Exception:
            self.close()
            raise

        self.state = SessionState.IDLE
        self.thread.start()

    # ---------- Session information ----------
    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def authenticated(self) -> bool:
        return self.con_handler.authenticated

    @property
    def username(self) -> Optional[str]:
        return self.con_handler.username

    @property
    def ascii_mode(self) -> bool:
        return self.con_handler.ascii_mode

    @property
    def file_system(self) -> Optional["FileSystem"]:
        """The file system of the session, None until the user has logged in."""
        return self.file_handler.file_system

    def set_file_system(self, fs: "FileSystem") -> None:
        """Swap the session's file system.

        Normally only the login path calls this; changing it while commands
        are running moves the session under the client's feet.
        """
        self.file_handler.set_file_system(fs)

    # ---------- Command registration ----------
    def register_command(
        self,
        label: str,
        help: str,
        handler: Callable,
        needs_auth: bool = True,
        shape: CommandShape = CommandShape.ARGS,
    ) -> CommandInfo:
        return self.commands.register(label, help, handler, needs_auth=needs_auth, shape=shape)

    def register_site_command(
        self,
        label: str,
        help: str,
        handler: Callable,
        shape: CommandShape = CommandShape.ARGS,
    ) -> CommandInfo:
        return self.site_commands.register(label, help, handler, shape=shape)

    def help_message(self, label: str) -> Optional[str]:
        return self.commands.help(label)

    def site_help_message(self, label: str) -> Optional[str]:
        return self.site_commands.help(label)

    # ---------- Responses ----------
    def send_response(self, code: int, message: str) -> None:
        """Write ``"<code> <message>\\r\\n"`` on the control connection.

        Does nothing once the connection is closed. A failed write closes
        the session since nothing more can be said to the client.
        """
        if self._closed:
            return
        # A reply is one line; stray line breaks would split it in two
        message = message.replace("\r", " ").replace("\n", " ")
        data = f"{code} {message}\r\n".encode("utf-8")
        failed: Optional[Exception] = None
        with self._write_lock:
            try:
                self.control_file.write(data)
                self.control_file.flush()
            except (OSError, ValueError) as e:
                failed = e
            # 1xx replies are preliminary, the command still owes a final one
            if code >= 200:
                self.response_sent = True
        if failed is not None:
            logger.debug("Write to %s failed, closing: %s", self.addr, failed)
            self.close()

    def _send_final(self, code: int, message: str) -> bool:
        with self._write_lock:
            if self.response_sent:
                return False
            self.send_response(code, message)
            return True

    # ---------- Data connection ----------
    def _count(self, length: int) -> None:
        self.bytes_transferred += length

    def _open_data_socket(self) -> socket.socket:
        try:
            sock = self.con_handler.create_data_socket()
        except DataConnectionError:
            raise
        except OSError as e:
            logger.debug("Data connection for %s failed: %s", self.addr, e)
            raise DataConnectionError() from e
        self._data_socket = sock
        return sock

    def _close_data_socket(self, sock: socket.socket) -> None:
        self._data_socket = None
        try:
            sock.close()
        except OSError as e:
            logger.debug("Closing data connection failed: %s", e)

    def send_data(self, data: Union[bytes, bytearray, memoryview, BinaryIO]) -> int:
        """Send ``data`` (bytes or a readable binary stream) over a new data connection.

        The stream is closed afterwards whatever happens. Returns the number
        of payload bytes sent, which is also added to ``bytes_transferred``.
        """
        if isinstance(data, (bytes, bytearray, memoryview)):
            source: BinaryIO = io.BytesIO(bytes(data))
        else:
            source = data
        with closing(source):
            if self._closed:
                return 0
            sock = self._open_data_socket()
            try:
                sent = send_stream(source, sock, self.ascii_mode, self._count)
            finally:
                self._close_data_socket(sock)
        logger.debug("Sent %d bytes to %s", sent, self.addr)
        return sent

    def receive_data(self, destination: BinaryIO) -> int:
        """Store everything received on a new data connection into ``destination``.

        ``destination`` is flushed and closed afterwards whatever happens.
        """
        with closing(destination):
            if self._closed:
                return 0
            sock = self._open_data_socket()
            try:
                received = receive_stream(sock, destination, self._count)
                destination.flush()
            finally:
                self._close_data_socket(sock)
        logger.debug("Received %d bytes from %s", received, self.addr)
        return received

    # ---------- Dispatch ----------
    def process(self, args: List[str]) -> None:
        info = self.commands.lookup(args[0])
        if info is None:
            self.send_response(502, "Unknown command")
            return
        self.process_command(info, args)

    def site(self, args: List[str]) -> None:
        if len(args) <= 1:
            self.send_response(500, "Missing the command name")
            return
        info = self.site_commands.lookup(args[1])
        if info is None:
            self.send_response(504, "Unknown site command")
            return
        args[1] = args[1].upper()
        self.process_command(info, args)

    def process_command(self, info: CommandInfo, args: List[str]) -> None:
        if info.needs_auth and not self.authenticated:
            self.send_response(530, "Needs authentication")
            return

        self.state = SessionState.EXECUTING
        self.response_sent = False
        try:
            info.command(args)
        except ResponseError as e:
            self._reply_error(info, e.code, e.message, e)
        except FileNotFoundError as e:
            self._reply_error(info, 550, e.strerror or str(e) or "File not found", e)
        except OSError as e:
            self._reply_error(info, 450, e.strerror or str(e) or "Requested file action not taken", e)
        except Exception as e:
            logger.exception("Command %s from %s failed", info.label, self.addr)
            self._reply_error(info, 451, str(e) or "Requested action aborted: local error in processing", e)

        self._send_final(200, "Done")
        if not self._closed:
            self.state = SessionState.IDLE

    def _reply_error(self, info: CommandInfo, code: int, message: str, error: Exception) -> None:
        if not self._send_final(code, message):
            logger.warning("%s already answered, dropping %d reply: %r", info.label, code, error)

    # ---------- Main loop ----------
    def update(self) -> None:
        """Read and process one command line."""
        if self.con_handler.should_stop:
            self.close()
            return

        try:
            raw = self.control_file.readline()
        except socket.timeout:
            logger.info("Idle timeout for %s", self.addr)
            self.send_response(421, "Idle timeout, closing control connection")
            self.close()
            return
        except (OSError, ValueError) as e:
            if not self._closed:
                logger.debug("Read from %s failed, closing: %s", self.addr, e)
            self.close()
            return

        if not raw:
            self.close()
            return

        args = raw.decode("utf-8", errors="ignore").split()
        # Blank keep-alive line
        if not args:
            return

        args[0] = args[0].upper()
        logger.debug("%s -> %s", self.addr, args[0])
        self.process(args)

    def _run(self) -> None:
        try:
            while not self._closed:
                self.update()
        finally:
            self.close()

    # ---------- Teardown ----------
    def stop(self) -> bool:
        """Stop the session without removing it from the server.

        Safe to call from any thread and more than once; returns False when
        the session was already stopped.
        """
        with self._close_lock:
            if self._closed:
                return False
            self._closed = True
        self.state = SessionState.CLOSING

        # Wakes the session thread if it is blocked reading
        try:
            self.conn.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        data_socket = self._data_socket
        if data_socket is not None:
            self._close_data_socket(data_socket)

        try:
            self.con_handler.on_disconnected()
        except Exception:
            logger.exception("Disconnect hook for %s failed", self.addr)

        try:
            self.control_file.close()
        except (OSError, ValueError):
            pass
        try:
            self.conn.close()
        except OSError:
            pass

        self.state = SessionState.CLOSED
        logger.info("Connection from %s closed (%d bytes transferred)", self.addr, self.bytes_transferred)
        return True

    def close(self) -> None:
        """Stop the session and remove it from the server's session list."""
        self.stop()
        with self._close_lock:
            if self._removed:
                return
            self._removed = True
        self.server.remove_connection(self)
