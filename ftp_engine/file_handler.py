# -*- coding: utf-8 -*-
"""Directory and file commands, working on the session's :class:`FileSystem`.

- PWD / CWD / CDUP   : working directory
- LIST / NLST        : listings over the data connection
- RETR / STOR / APPE : download, upload, append
- MKD / RMD / DELE   : create / remove directory, delete file
- RNFR / RNTO        : rename
- SIZE               : file size

Every command here needs a logged-in user; the dispatcher enforces it.
"""

from __future__ import annotations

import posixpath
import time
from typing import TYPE_CHECKING, List, Optional

from .api import FileEntry, FileSystem
from .commands import CommandShape
from .errors import ResponseError

if TYPE_CHECKING:
    from .connection import FTPConnection

# Entries older than this show the year instead of the time, like ls -l
_RECENT = 180 * 24 * 3600


def format_list_line(entry: FileEntry, now: Optional[float] = None) -> str:
    if now is None:
        now = time.time()
    stamp = time.localtime(entry.modified)
    if abs(now - entry.modified) < _RECENT:
        date = time.strftime("%b %d %H:%M", stamp)
    else:
        date = time.strftime("%b %d  %Y", stamp)
    if entry.is_dir:
        return f"drwxr-xr-x 1 owner group {0:>12} {date} {entry.name}\r\n"
    return f"-rw-r--r-- 1 owner group {entry.size:>12} {date} {entry.name}\r\n"


class FileHandler:
    def __init__(self, connection: "FTPConnection") -> None:
        self.connection = connection
        self.file_system: Optional[FileSystem] = None
        self.cwd = "/"  # virtual working directory, always absolute
        self.rename_from: Optional[str] = None

    def set_file_system(self, fs: FileSystem) -> None:
        self.file_system = fs
        self.cwd = "/"
        self.rename_from = None

    def register_commands(self) -> None:
        con = self.connection
        single = CommandShape.SINGLE_ARG
        con.register_command("PWD", "PWD", self.pwd, shape=CommandShape.NO_ARGS)
        con.register_command("CWD", "CWD <path>", self.cwd_, shape=single)
        con.register_command("CDUP", "CDUP", self.cdup, shape=CommandShape.NO_ARGS)
        con.register_command("LIST", "LIST [path]", self.list)
        con.register_command("NLST", "NLST [path]", self.nlst)
        con.register_command("RETR", "RETR <file>", self.retr, shape=single)
        con.register_command("STOR", "STOR <file>", self.stor, shape=single)
        con.register_command("APPE", "APPE <file>", self.appe, shape=single)
        con.register_command("MKD", "MKD <directory>", self.mkd, shape=single)
        con.register_command("RMD", "RMD <directory>", self.rmd, shape=single)
        con.register_command("DELE", "DELE <file>", self.dele, shape=single)
        con.register_command("RNFR", "RNFR <file>", self.rnfr, shape=single)
        con.register_command("RNTO", "RNTO <file>", self.rnto, shape=single)
        con.register_command("SIZE", "SIZE <file>", self.size, shape=single)

    # ---------- Utility helpers ----------
    @property
    def fs(self) -> FileSystem:
        if self.file_system is None:
            raise ResponseError(530, "Needs authentication")
        return self.file_system

    def resolve(self, path: str) -> str:
        return self.fs.resolve(self.cwd, path)

    def ensure_write_perm(self) -> None:
        if self.fs.read_only:
            raise ResponseError(550, "Permission denied.")

    def _require_file(self, path: str) -> None:
        if not self.fs.exists(path) or self.fs.is_dir(path):
            raise ResponseError(550, "File not found.")

    @staticmethod
    def _path_argument(args: List[str]) -> str:
        # Drop ls-style options such as "LIST -la"
        return " ".join(a for a in args[1:] if not a.startswith("-"))

    # ---------- Working directory ----------
    def pwd(self) -> None:
        # Reply format: 257 "/" is current directory
        self.connection.send_response(257, f'"{self.cwd}" is current directory')

    def cwd_(self, arg: str) -> None:
        target = self.resolve(arg or "/")
        if not self.fs.is_dir(target):
            raise ResponseError(550, "Failed to change directory.")
        self.cwd = target
        self.connection.send_response(250, "Directory successfully changed.")

    def cdup(self) -> None:
        self.cwd_("..")

    # ---------- Listings ----------
    def _entries(self, path: str) -> List[FileEntry]:
        if not self.fs.exists(path):
            raise ResponseError(550, "No such file or directory.")
        if self.fs.is_dir(path):
            return self.fs.list_dir(path)
        return [self.fs.stat(path)]

    def list(self, args: List[str]) -> None:
        entries = self._entries(self.resolve(self._path_argument(args)))
        now = time.time()
        data = "".join(format_list_line(entry, now) for entry in entries).encode("utf-8")
        self.connection.send_response(150, "Here comes the directory listing.")
        self.connection.send_data(data)
        self.connection.send_response(226, "Directory send OK.")

    def nlst(self, args: List[str]) -> None:
        entries = self._entries(self.resolve(self._path_argument(args)))
        data = "".join(f"{entry.name}\r\n" for entry in entries).encode("utf-8")
        self.connection.send_response(150, "Here comes the file list.")
        self.connection.send_data(data)
        self.connection.send_response(226, "Directory send OK.")

    # ---------- Transfers ----------
    def retr(self, arg: str) -> None:
        path = self.resolve(arg)
        self._require_file(path)
        stream = self.fs.open_read(path)
        mode = "ASCII" if self.connection.ascii_mode else "BINARY"
        self.connection.send_response(150, f"Opening {mode} mode data connection for {posixpath.basename(path)}.")
        self.connection.send_data(stream)
        self.connection.send_response(226, "Transfer complete.")

    def _store(self, arg: str, append: bool) -> None:
        self.ensure_write_perm()
        if not arg:
            raise ResponseError(501, "Missing the file name.")
        path = self.resolve(arg)
        if self.fs.is_dir(path):
            raise ResponseError(550, "Cannot overwrite a directory.")
        stream = self.fs.open_write(path, append=append)
        self.connection.send_response(150, "Ok to send data.")
        self.connection.receive_data(stream)
        self.connection.send_response(226, "Transfer complete.")

    def stor(self, arg: str) -> None:
        self._store(arg, append=False)

    def appe(self, arg: str) -> None:
        self._store(arg, append=True)

    # ---------- MKD / RMD / DELE / RNFR / RNTO ----------
    def mkd(self, arg: str) -> None:
        self.ensure_write_perm()
        path = self.resolve(arg)
        if self.fs.exists(path):
            raise ResponseError(550, "Directory already exists.")
        self.fs.mkdir(path)
        self.connection.send_response(257, f'"{path}" directory created.')

    def rmd(self, arg: str) -> None:
        self.ensure_write_perm()
        path = self.resolve(arg)
        if path == "/":
            raise ResponseError(550, "Cannot remove the root directory.")
        if not self.fs.is_dir(path):
            raise ResponseError(550, "Not a directory.")
        if self.fs.list_dir(path):
            raise ResponseError(550, "Directory not empty.")
        self.fs.rmdir(path)
        self.connection.send_response(250, "Remove directory operation successful.")

    def dele(self, arg: str) -> None:
        self.ensure_write_perm()
        path = self.resolve(arg)
        self._require_file(path)
        self.fs.delete(path)
        self.connection.send_response(250, "Delete operation successful.")

    def rnfr(self, arg: str) -> None:
        self.ensure_write_perm()
        path = self.resolve(arg)
        if not self.fs.exists(path):
            self.rename_from = None
            raise ResponseError(550, "File not found.")
        self.rename_from = path
        self.connection.send_response(350, "File exists, ready for destination name.")

    def rnto(self, arg: str) -> None:
        if not self.rename_from:
            raise ResponseError(503, "Bad sequence of commands.")
        source, self.rename_from = self.rename_from, None
        self.ensure_write_perm()
        self.fs.rename(source, self.resolve(arg))
        self.connection.send_response(250, "Rename successful.")

    def size(self, arg: str) -> None:
        path = self.resolve(arg)
        self._require_file(path)
        self.connection.send_response(213, str(self.fs.stat(path).size))
