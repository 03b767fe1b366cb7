"""Host filesystem helpers that behave well with container bind mounts."""

from __future__ import annotations

import os
import posixpath
import shutil
import stat
import sys
import tempfile

__all__ = ["temp_dir", "is_abs", "copy", "copy_file"]


def temp_dir(dir: str = "", prefix: str = "") -> str:
    """Create a temporary directory, returning a mountable path on macOS."""
    name = tempfile.mkdtemp(prefix=prefix, dir=dir or None)
    # on macOS $TMPDIR is typically under /var/..., which is not mountable
    if sys.platform == "darwin" and name.startswith("/var/"):
        name = os.path.join("/private", name.lstrip("/"))
    return name


def is_abs(host_path: str) -> bool:
    """Report whether host_path is absolute, treating POSIX paths as absolute everywhere."""
    return posixpath.isabs(host_path) or os.path.isabs(host_path)


def copy(src: str, dst: str) -> None:
    """Recursively copy src to dst, keeping modes and dereferencing symlinks."""
    info = os.lstat(src)
    os.makedirs(os.path.dirname(dst) or ".", exist_ok=True)
    _copy(src, dst, info)


def _copy(src: str, dst: str, info: os.stat_result) -> None:
    if stat.S_ISLNK(info.st_mode):
        _copy_symlink(src, dst)
    elif stat.S_ISDIR(info.st_mode):
        _copy_dir(src, dst, info)
    else:
        _copy_file(src, dst, info)


def copy_file(src: str, dst: str) -> None:
    """Copy the file src to dst, keeping its mode."""
    _copy_file(src, dst, os.stat(src))


def _copy_file(src: str, dst: str, info: os.stat_result) -> None:
    with open(src, "rb") as source:
        fd = os.open(dst, os.O_RDWR | os.O_CREAT | os.O_TRUNC, stat.S_IMODE(info.st_mode))
        with os.fdopen(fd, "wb") as target:
            shutil.copyfileobj(source, target)
            target.flush()
            os.fsync(target.fileno())


def _copy_symlink(src: str, dst: str) -> None:
    real_src = os.path.realpath(src, strict=True)
    _copy(real_src, dst, os.lstat(real_src))


def _copy_dir(src: str, dst: str, info: os.stat_result) -> None:
    os.makedirs(dst, mode=stat.S_IMODE(info.st_mode), exist_ok=True)
    for name in sorted(os.listdir(src)):
        entry_src = os.path.join(src, name)
        entry_dst = os.path.join(dst, name)
        _copy(entry_src, entry_dst, os.lstat(entry_src))