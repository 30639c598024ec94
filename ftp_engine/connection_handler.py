# -*- coding: utf-8 -*-
"""Login, transfer parameters and data connection set-up for one session.

Commands registered here:

- USER / PASS / ACCT : login through the server's :class:`UserAuthenticator`
- NOOP, SYST, HELP   : informational
- QUIT               : reply 221 and end the session
- TYPE A|I           : ASCII (default) or binary transfers
- MODE S, STRU F     : the only mode and structure supported
- ALLO               : accepted, nothing to allocate
- PASV               : passive mode (server listens, client connects)
- PORT               : active mode (server connects to the client)
"""

from __future__ import annotations

import logging
import socket
from typing import TYPE_CHECKING, List, Optional, Tuple

from .commands import CommandShape
from .errors import DataConnectionError, ResponseError

if TYPE_CHECKING:
    from .connection import FTPConnection

logger = logging.getLogger(__name__)


class ConnectionHandler:
    def __init__(self, connection: "FTPConnection") -> None:
        self.connection = connection
        self.config = connection.config
        self.authenticator = connection.server.authenticator

        self.authenticated = False
        self.username: Optional[str] = None
        self.ascii_mode = True
        self.should_stop = False

        # Passive mode data listener (per transfer)
        self.pasv_listener: Optional[socket.socket] = None
        # Client address from the last PORT command
        self.active_address: Optional[Tuple[str, int]] = None

    def register_commands(self) -> None:
        con = self.connection
        con.register_command("NOOP", "NOOP", self.noop, False, CommandShape.NO_ARGS)
        con.register_command("HELP", "HELP [command]", self.help, False)
        con.register_command("USER", "USER <username>", self.user, False, CommandShape.SINGLE_ARG)
        con.register_command("PASS", "PASS <password>", self.pass_, False, CommandShape.SINGLE_ARG)
        con.register_command("ACCT", "ACCT <info>", self.acct, False, CommandShape.NO_ARGS)
        con.register_command("SYST", "SYST", self.syst, False, CommandShape.NO_ARGS)
        con.register_command("QUIT", "QUIT", self.quit, False, CommandShape.NO_ARGS)
        con.register_command("TYPE", "TYPE <type>", self.type, shape=CommandShape.SINGLE_ARG)
        con.register_command("MODE", "MODE <mode>", self.mode, shape=CommandShape.SINGLE_ARG)
        con.register_command("STRU", "STRU <structure>", self.stru, shape=CommandShape.SINGLE_ARG)
        con.register_command("ALLO", "ALLO <size>", self.allo, shape=CommandShape.NO_ARGS)
        con.register_command("PASV", "PASV", self.pasv, shape=CommandShape.NO_ARGS)
        con.register_command("PORT", "PORT <h1,h2,h3,h4,p1,p2>", self.port, shape=CommandShape.SINGLE_ARG)

    # ---------- Lifecycle ----------
    def on_connected(self) -> None:
        self.connection.send_response(220, self.config.greeting)

    def on_disconnected(self) -> None:
        self._close_pasv_listener()

    # ---------- Login ----------
    def user(self, username: str) -> None:
        if self.authenticated:
            self.connection.send_response(230, "Already logged in.")
            return
        if not username:
            raise ResponseError(501, "Missing the username")
        self.username = username
        if not self.authenticator.needs_password(username):
            self._login(None)
            return
        self.connection.send_response(331, "User name okay, need password.")

    def pass_(self, password: str) -> None:
        if self.authenticated:
            self.connection.send_response(230, "Already logged in.")
            return
        if self.username is None:
            raise ResponseError(503, "Login with USER first.")
        self._login(password)

    def _login(self, password: Optional[str]) -> None:
        success, fs = self.authenticator.authenticate(self.username, password)
        if not success or fs is None:
            logger.info("Failed login for %r from %s", self.username, self.connection.addr)
            raise ResponseError(530, "Login incorrect.")
        self.connection.set_file_system(fs)
        self.authenticated = True
        logger.info("%s logged in from %s", self.username, self.connection.addr)
        self.connection.send_response(230, "User logged in, proceed.")

    def acct(self) -> None:
        self.connection.send_response(202, "ACCT command superfluous.")

    # ---------- Informational ----------
    def noop(self) -> None:
        self.connection.send_response(200, "OK")

    def syst(self) -> None:
        self.connection.send_response(215, "UNIX Type: L8")

    def help(self, args: List[str]) -> None:
        con = self.connection
        if len(args) < 2:
            con.send_response(214, "Available commands: " + " ".join(con.commands.labels()))
            return
        if args[1].upper() == "SITE":
            if len(args) < 3:
                con.send_response(214, "Available site commands: " + " ".join(con.site_commands.labels()))
                return
            text = con.site_help_message(args[2])
        else:
            text = con.help_message(args[1])
        if text is None:
            raise ResponseError(502, "Unknown command")
        con.send_response(214, text)

    def quit(self) -> None:
        self.connection.send_response(221, "Goodbye.")
        self.should_stop = True

    # ---------- Transfer parameters ----------
    def type(self, arg: str) -> None:
        kind = arg.upper()
        if kind.startswith("A"):
            self.ascii_mode = True
        elif kind.startswith("I"):
            self.ascii_mode = False
        else:
            raise ResponseError(504, f"Type {arg} not implemented.")
        self.connection.send_response(200, f"Type set to {kind}.")

    def mode(self, arg: str) -> None:
        if arg.upper() != "S":
            raise ResponseError(504, f"Mode {arg} not implemented.")
        self.connection.send_response(200, "Mode set to S.")

    def stru(self, arg: str) -> None:
        if arg.upper() != "F":
            raise ResponseError(504, f"Structure {arg} not implemented.")
        self.connection.send_response(200, "Structure set to F.")

    def allo(self) -> None:
        self.connection.send_response(202, "No storage allocation necessary.")

    # ---- Passive mode ----
    def _close_pasv_listener(self) -> None:
        listener = self.pasv_listener
        self.pasv_listener = None
        if listener is not None:
            # shutdown() wakes a thread blocked in accept()
            try:
                listener.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            try:
                listener.close()
            except OSError:
                pass

    def pasv(self) -> None:
        # Close any previous listener
        self._close_pasv_listener()
        self.active_address = None

        control = self.connection.conn
        if control.family != socket.AF_INET:
            raise ResponseError(425, "Passive mode needs an IPv4 control connection.")
        # Bind to an ephemeral port on the same address the client reached us on
        host = control.getsockname()[0]
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            listener.bind((host, 0))
            listener.listen(1)
        except OSError as e:
            listener.close()
            logger.warning("Cannot open passive listener on %s: %s", host, e)
            raise ResponseError(425, "Cannot open passive listener.") from e
        listener.settimeout(self.config.data_timeout)
        self.pasv_listener = listener

        port = listener.getsockname()[1]
        logger.debug("Passive listener for %s on %s:%d", self.connection.addr, host, port)
        h1, h2, h3, h4 = host.split(".")
        p1, p2 = divmod(port, 256)
        self.connection.send_response(227, f"Entering Passive Mode ({h1},{h2},{h3},{h4},{p1},{p2}).")

    # ---- Active mode ----
    def port(self, arg: str) -> None:
        try:
            parts = [int(p) for p in arg.split(",")]
        except ValueError:
            raise ResponseError(501, "Syntax error in parameters or arguments.")
        if len(parts) != 6 or any(not 0 <= p <= 255 for p in parts):
            raise ResponseError(501, "Syntax error in parameters or arguments.")

        host = ".".join(str(p) for p in parts[:4])
        port = parts[4] * 256 + parts[5]
        # Only connect back to the client itself, and never to a privileged port
        if host != self.connection.addr[0]:
            logger.warning("%s asked for a data connection to %s", self.connection.addr, host)
            raise ResponseError(501, "Rejected data connection to foreign address.")
        if port < 1024:
            logger.warning("%s asked for a data connection to port %d", self.connection.addr, port)
            raise ResponseError(501, "Rejected data connection to privileged port.")

        self._close_pasv_listener()
        self.active_address = (host, port)
        self.connection.send_response(200, "PORT command successful.")

    def create_data_socket(self) -> socket.socket:
        """Return a connected data socket for the mode negotiated last.

        Raises :class:`OSError` (including timeouts) when the connection cannot
        be made, and :class:`DataConnectionError` when neither PASV nor PORT was
        issued.
        """
        if self.pasv_listener is not None:
            # Stays reachable while accept() blocks so stop() can close it
            listener = self.pasv_listener
            try:
                data_conn, peer = listener.accept()
            finally:
                listener.close()
                if self.pasv_listener is listener:
                    self.pasv_listener = None
            logger.debug("Passive data connection from %s", peer)
        elif self.active_address is not None:
            data_conn = socket.create_connection(self.active_address, timeout=self.config.data_timeout)
            logger.debug("Active data connection to %s", self.active_address)
        else:
            raise DataConnectionError("Use PORT or PASV first.")
        data_conn.settimeout(self.config.data_timeout)
        return data_conn
