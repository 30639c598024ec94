# -*- coding: utf-8 -*-
"""Local-disk :class:`FileSystem` rooted at a directory.

Every virtual path maps below ``root``; ``..`` can never climb above it.
"""

from __future__ import annotations

import os
from typing import BinaryIO, List

from .api import FileEntry, FileSystem


class NativeFileSystem(FileSystem):
    def __init__(self, root: str, read_only: bool = False) -> None:
        self.root = os.path.abspath(root)
        self.read_only = read_only

    # Map FTP virtual path (starting with /) to real filesystem path
    def to_real_path(self, path: str) -> str:
        norm = self.resolve("/", path)
        real = os.path.abspath(os.path.join(self.root, norm.lstrip("/")))
        # Ensure we stay under root
        if real != self.root and not real.startswith(self.root + os.sep):
            return self.root
        return real

    def _entry(self, real: str, name: str) -> FileEntry:
        st = os.stat(real)
        is_dir = os.path.isdir(real)
        return FileEntry(name=name, is_dir=is_dir, size=0 if is_dir else st.st_size, modified=st.st_mtime)

    def exists(self, path: str) -> bool:
        return os.path.exists(self.to_real_path(path))

    def is_dir(self, path: str) -> bool:
        return os.path.isdir(self.to_real_path(path))

    def stat(self, path: str) -> FileEntry:
        real = self.to_real_path(path)
        return self._entry(real, os.path.basename(real) if real != self.root else "/")

    def list_dir(self, path: str) -> List[FileEntry]:
        real = self.to_real_path(path)
        entries = []
        for name in sorted(os.listdir(real)):
            try:
                entries.append(self._entry(os.path.join(real, name), name))
            except FileNotFoundError:
                # Removed between listdir() and stat()
                continue
        return entries

    def open_read(self, path: str) -> BinaryIO:
        return open(self.to_real_path(path), "rb")

    def open_write(self, path: str, append: bool = False) -> BinaryIO:
        real = self.to_real_path(path)
        os.makedirs(os.path.dirname(real), exist_ok=True)
        return open(real, "ab" if append else "wb")

    def mkdir(self, path: str) -> None:
        os.makedirs(self.to_real_path(path), exist_ok=True)

    def rmdir(self, path: str) -> None:
        os.rmdir(self.to_real_path(path))

    def delete(self, path: str) -> None:
        os.remove(self.to_real_path(path))

    def rename(self, source: str, destination: str) -> None:
        os.rename(self.to_real_path(source), self.to_real_path(destination))
