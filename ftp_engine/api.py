# -*- coding: utf-8 -*-
"""Interfaces a host application implements to plug into the engine.

- :class:`UserAuthenticator` checks credentials and hands back the
  :class:`FileSystem` the session should use once logged in.
- :class:`FileSystem` is the virtual file tree the file commands work on.
  Paths are always absolute virtual POSIX paths such as ``/docs/a.txt``.
- :class:`ConnectionListener` receives session lifecycle notifications from
  the server.
"""

from __future__ import annotations

import abc
import posixpath
from dataclasses import dataclass
from typing import TYPE_CHECKING, BinaryIO, List, Optional, Tuple

if TYPE_CHECKING:
    from .connection import FTPConnection


@dataclass(frozen=True)
class FileEntry:
    name: str
    is_dir: bool
    size: int = 0
    modified: float = 0.0  # POSIX timestamp


class FileSystem(abc.ABC):
    """A virtual file system as seen by one authenticated session."""

    # Write commands are refused with 550 when this is set
    read_only: bool = False

    def resolve(self, cwd: str, path: str) -> str:
        """Turn ``path`` (absolute or relative to ``cwd``) into a normalized virtual path."""
        if not path:
            path = cwd
        elif not path.startswith("/"):
            path = posixpath.join(cwd, path)
        norm = posixpath.normpath(path)
        # normpath keeps a leading "//" and lets ".." climb out of "/"
        return "/" + norm.lstrip("/")

    @abc.abstractmethod
    def exists(self, path: str) -> bool:
        ...

    @abc.abstractmethod
    def is_dir(self, path: str) -> bool:
        ...

    @abc.abstractmethod
    def stat(self, path: str) -> FileEntry:
        ...

    @abc.abstractmethod
    def list_dir(self, path: str) -> List[FileEntry]:
        ...

    @abc.abstractmethod
    def open_read(self, path: str) -> BinaryIO:
        ...

    @abc.abstractmethod
    def open_write(self, path: str, append: bool = False) -> BinaryIO:
        ...

    @abc.abstractmethod
    def mkdir(self, path: str) -> None:
        ...

    @abc.abstractmethod
    def rmdir(self, path: str) -> None:
        ...

    @abc.abstractmethod
    def delete(self, path: str) -> None:
        ...

    @abc.abstractmethod
    def rename(self, source: str, destination: str) -> None:
        ...


class UserAuthenticator(abc.ABC):
    def needs_password(self, username: str) -> bool:
        """Return False to log ``username`` in on USER alone, without asking for PASS."""
        return True

    @abc.abstractmethod
    def authenticate(self, username: str, password: Optional[str]) -> Tuple[bool, Optional[FileSystem]]:
        """Check the credentials.

        Returns ``(True, file_system)`` on success and ``(False, None)``
        otherwise. ``password`` is None when :meth:`needs_password` said
        no password is required.
        """


class ConnectionListener:
    """Server-level hooks. Both methods are no-ops by default."""

    def on_connected(self, connection: "FTPConnection") -> None:
        """Called before the session starts reading commands.

        Commands registered here are visible to the very first command line.
        """

    def on_disconnected(self, connection: "FTPConnection") -> None:
        """Called once the session has been closed and removed from the server."""
