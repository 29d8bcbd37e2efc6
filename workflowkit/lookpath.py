"""Search for executables along a PATH-style list of directories."""

from __future__ import annotations

import ntpath
import os
import posixpath
import stat
from typing import Callable, Optional

Getenv = Callable[[str], Optional[str]]

_NOT_FOUND_UNIX = "executable file not found in $PATH"
_NOT_FOUND_WINDOWS = "executable file not found in %PATH%"
_NOT_FOUND_PLAN9 = "executable file not found in $path"
_DEFAULT_WINDOWS_EXTS = [".com", ".exe", ".bat", ".cmd"]


class ExecutableNotFoundError(Exception):
    """No executable was found for ``name``; ``cause`` says why."""

    def __init__(self, name: str, cause: Exception) -> None:
        super().__init__(str(cause))
        self.name = name
        self.cause = cause

    def __str__(self) -> str:
        return str(self.cause)


def _env(getenv: Getenv | None) -> Callable[[str], str]:
    if getenv is None:
        return lambda name: os.environ.get(name, "")
    return lambda name: getenv(name) or ""


def _find_executable_posix(file: str) -> None:
    """Raise OSError unless ``file`` is a non-directory with an execute bit set."""
    mode = os.stat(file).st_mode
    if not stat.S_ISDIR(mode) and mode & 0o111:
        return
    raise PermissionError("permission denied")


def _posix_join(directory: str, file: str) -> str:
    return posixpath.normpath(posixpath.join(directory, file))


def look_path_unix(file: str, getenv: Getenv | None = None) -> str:
    """Find ``file`` in ``PATH``; a name containing '/' is checked directly."""
    env = _env(getenv)
    if "/" in file:
        try:
            _find_executable_posix(file)
        except OSError as err:
            raise ExecutableNotFoundError(file, err) from err
        return file
    path = env("PATH")
    for directory in path.split(":") if path else []:
        # An empty element means the current directory, as in Unix shells.
        candidate = _posix_join(directory or ".", file)
        try:
            _find_executable_posix(candidate)
        except OSError:
            continue
        return candidate
    raise ExecutableNotFoundError(file, FileNotFoundError(_NOT_FOUND_UNIX))


def look_path_plan9(file: str, getenv: Getenv | None = None) -> str:
    """Find ``file`` in ``path``; names starting with '/', '#', './' or '../' are checked directly."""
    env = _env(getenv)
    if file.startswith(("/", "#", "./", "../")):
        try:
            _find_executable_posix(file)
        except OSError as err:
            raise ExecutableNotFoundError(file, err) from err
        return file
    path = env("path")
    for directory in path.split("\0") if path else []:
        candidate = _posix_join(directory, file)
        try:
            _find_executable_posix(candidate)
        except OSError:
            continue
        return candidate
    raise ExecutableNotFoundError(file, FileNotFoundError(_NOT_FOUND_PLAN9))


def _check_stat(file: str) -> None:
    if os.path.isdir(file):
        raise PermissionError("permission denied")
    os.stat(file)


def _has_ext(file: str) -> bool:
    dot = file.rfind(".")
    if dot < 0:
        return False
    return max(file.rfind(sep) for sep in ":\\/") < dot


def _stat_ok(file: str) -> bool:
    try:
        _check_stat(file)
    except OSError:
        return False
    return True


def _find_executable_windows(file: str, exts: list[str]) -> str:
    if not exts:
        _check_stat(file)
        return file
    if _has_ext(file) and _stat_ok(file):
        return file
    for ext in exts:
        candidate = file + ext
        if _stat_ok(candidate):
            return candidate
    raise FileNotFoundError("file does not exist")


def _split_list_windows(path: str) -> list[str]:
    if not path:
        return []
    items: list[str] = []
    current: list[str] = []
    quoted = False
    for ch in path:
        if ch == '"':
            quoted = not quoted
        elif ch == ";" and not quoted:
            items.append("".join(current))
            current = []
        else:
            current.append(ch)
    items.append("".join(current))
    return items


def _windows_join(directory: str, file: str) -> str:
    return ntpath.normpath(ntpath.join(directory, file))


def _windows_exts(pathext: str) -> list[str]:
    if not pathext:
        return list(_DEFAULT_WINDOWS_EXTS)
    exts = []
    for ext in pathext.lower().split(";"):
        if not ext:
            continue
        exts.append(ext if ext.startswith(".") else "." + ext)
    return exts


def look_path_windows(file: str, getenv: Getenv | None = None) -> str:
    """Find ``file`` in the current directory and ``path``, trying the ``PATHEXT`` extensions."""
    env = _env(getenv)
    exts = _windows_exts(env("PATHEXT"))
    if any(sep in file for sep in ":\\/"):
        try:
            return _find_executable_windows(file, exts)
        except OSError as err:
            raise ExecutableNotFoundError(file, err) from err
    try:
        return _find_executable_windows(_windows_join(".", file), exts)
    except OSError:
        pass
    for directory in _split_list_windows(env("path")):
        try:
            return _find_executable_windows(_windows_join(directory, file), exts)
        except OSError:
            continue
    raise ExecutableNotFoundError(file, FileNotFoundError(_NOT_FOUND_WINDOWS))


def look_path(file: str, getenv: Getenv | None = None) -> str:
    """Find ``file`` with the search rules of the running platform."""
    if os.name == "nt":
        return look_path_windows(file, getenv)
    return look_path_unix(file, getenv)