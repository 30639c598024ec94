# -*- coding: utf-8 -*-
"""Embeddable FTP server engine.

The host supplies a :class:`UserAuthenticator` (and through it a
:class:`FileSystem`); the engine runs the control connections, dispatches
commands and moves file data over passive or active data connections.

Example::

    from ftp_engine import FTPConfig, FTPServer

    server = FTPServer(config=FTPConfig(port=2121, root="./ftp_root"))
    server.serve_forever()
"""

from __future__ import annotations

from .api import ConnectionListener, FileEntry, FileSystem, UserAuthenticator
from .auth import NoOpAuthenticator, UserDatabaseAuthenticator
from .commands import CommandInfo, CommandRegistry, CommandShape
from .config import FTPConfig, UserInfo
from .connection import FTPConnection, SessionState
from .errors import DataConnectionError, FTPError, ResponseError, TransferAbortedError
from .filesystem import NativeFileSystem
from .server import FTPServer

__all__ = [
    "CommandInfo",
    "CommandRegistry",
    "CommandShape",
    "ConnectionListener",
    "DataConnectionError",
    "FTPConfig",
    "FTPConnection",
    "FTPError",
    "FTPServer",
    "FileEntry",
    "FileSystem",
    "NativeFileSystem",
    "NoOpAuthenticator",
    "ResponseError",
    "SessionState",
    "TransferAbortedError",
    "UserAuthenticator",
    "UserDatabaseAuthenticator",
    "UserInfo",
]
