# -*- coding: utf-8 -*-
"""Server configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict, Optional


@dataclass
class UserInfo:
    password: str
    perm: str = "rw"  # "r" or "rw"

    @property
    def writable(self) -> bool:
        return "w" in self.perm


@dataclass
class FTPConfig:
    host: str = "0.0.0.0"      # Listen on all interfaces
    port: int = 2121           # Control port (avoid 21 which may need root); 0 picks a free one
    root: str = os.path.abspath("./ftp_root")  # Directory served to the configured users
    users: Optional[Dict[str, UserInfo]] = None
    greeting: str = "FTP server ready"
    data_timeout: float = 30.0  # Bounds PASV accept / PORT connect and every data read/write
    idle_timeout: Optional[float] = None  # Close silent control connections after this many seconds
    backlog: int = 5

    def __post_init__(self) -> None:
        if self.users is None:
            # Default: one read-write user and one read-only user
            self.users = {
                "user": UserInfo(password="123456", perm="rw"),
                "guest": UserInfo(password="guest", perm="r"),
            }
        self.root = os.path.abspath(self.root)
        # Ensure root exists
        os.makedirs(self.root, exist_ok=True)
