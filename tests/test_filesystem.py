"""NativeFileSystem path mapping and operations."""
from __future__ import annotations

import os
from pathlib import Path

import pytest

from ftp_engine import NativeFileSystem


@pytest.fixture
def fs(tmp_path: Path) -> NativeFileSystem:
    (tmp_path / "pub").mkdir()
    (tmp_path / "pub" / "readme.txt").write_bytes(b"hello")
    return NativeFileSystem(str(tmp_path))


def test_resolve(fs: NativeFileSystem) -> None:
    assert fs.resolve("/", "") == "/"
    assert fs.resolve("/pub", "") == "/pub"
    assert fs.resolve("/pub", "a.txt") == "/pub/a.txt"
    assert fs.resolve("/pub", "/etc/passwd") == "/etc/passwd"
    assert fs.resolve("/pub", "..") == "/"
    assert fs.resolve("/", "../../x") == "/x"
    assert fs.resolve("/", "//double") == "/double"


def test_paths_stay_under_root(fs: NativeFileSystem, tmp_path: Path) -> None:
    assert fs.to_real_path("/") == str(tmp_path)
    assert fs.to_real_path("/../../etc/passwd") == os.path.join(str(tmp_path), "etc", "passwd")
    assert fs.to_real_path("/pub/readme.txt") == str(tmp_path / "pub" / "readme.txt")


def test_listing_and_stat(fs: NativeFileSystem) -> None:
    entries = fs.list_dir("/")
    assert [(e.name, e.is_dir) for e in entries] == [("pub", True)]

    entry = fs.stat("/pub/readme.txt")
    assert entry.name == "readme.txt"
    assert entry.size == 5
    assert not entry.is_dir
    assert fs.is_dir("/pub")
    assert fs.exists("/pub/readme.txt")
    assert not fs.exists("/missing")


def test_read_write_rename_delete(fs: NativeFileSystem, tmp_path: Path) -> None:
    with fs.open_write("/new/dir/file.bin") as out:
        out.write(b"abc")
    with fs.open_write("/new/dir/file.bin", append=True) as out:
        out.write(b"def")
    with fs.open_read("/new/dir/file.bin") as src:
        assert src.read() == b"abcdef"

    fs.rename("/new/dir/file.bin", "/new/moved.bin")
    assert (tmp_path / "new" / "moved.bin").exists()
    fs.delete("/new/moved.bin")
    fs.rmdir("/new/dir")
    fs.mkdir("/made")
    assert fs.is_dir("/made")


def test_missing_file_raises_file_not_found(fs: NativeFileSystem) -> None:
    with pytest.raises(FileNotFoundError):
        fs.open_read("/nope.txt")
    with pytest.raises(FileNotFoundError):
        fs.list_dir("/nope")
