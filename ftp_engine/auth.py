# -*- coding: utf-8 -*-
"""Ready-made :class:`UserAuthenticator` implementations."""

from __future__ import annotations

from typing import Dict, Optional, Tuple

from .api import FileSystem, UserAuthenticator
from .config import UserInfo
from .filesystem import NativeFileSystem


class UserDatabaseAuthenticator(UserAuthenticator):
    """Checks USER/PASS against a fixed user table.

    Every user shares ``root``; users without ``w`` in their permission get a
    read-only view of it.
    """

    def __init__(self, users: Dict[str, UserInfo], root: str) -> None:
        self.users = users
        self.root = root

    def authenticate(self, username: str, password: Optional[str]) -> Tuple[bool, Optional[FileSystem]]:
        info = self.users.get(username)
        if info is None or password is None:
            return False, None
        if info.password != password:
            return False, None
        return True, NativeFileSystem(self.root, read_only=not info.writable)


class NoOpAuthenticator(UserAuthenticator):
    """Logs everybody in on USER alone and gives them the same file system."""

    def __init__(self, file_system: FileSystem) -> None:
        self.file_system = file_system

    def needs_password(self, username: str) -> bool:
        return False

    def authenticate(self, username: str, password: Optional[str]) -> Tuple[bool, Optional[FileSystem]]:
        return True, self.file_system
