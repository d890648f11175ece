"""Locating executables on a search path, following each platform's rules."""

from __future__ import annotations

import os
import stat
import sys
from typing import Callable, Optional

Getenv = Callable[[str], str]

_NOT_FOUND_UNIX = "executable file not found in $PATH"
_NOT_FOUND_PLAN9 = "executable file not found in $path"
_NOT_FOUND_WINDOWS = "executable file not found in %PATH%"

_PLAN9_DIRECT_PREFIXES = ("/", "#", "./", "../")
_WINDOWS_DEFAULT_EXTS = [".com", ".exe", ".bat", ".cmd"]
_WINDOWS_PATH_CHARS = ":\\/"


class LookPathError(Exception):
    """An executable could not be located; ``err`` holds the cause."""

    def __init__(self, name: str, err: BaseException) -> None:
        super().__init__(name, err)
        self.name = name
        self.err = err

    def __str__(self) -> str:
        return str(self.err)


def _default_getenv(name: str) -> str:
    return os.environ.get(name, "")


def _join(directory: str, file: str) -> str:
    return os.path.normpath(os.path.join(directory, file))


def _split_list(path: str) -> list[str]:
    return path.split(os.pathsep) if path else []


def _find_executable_posix(file: str) -> None:
    """Raise OSError unless ``file`` is a non-directory with an execute bit."""
    mode = os.stat(file).st_mode
    if not stat.S_ISDIR(mode) and mode & 0o111:
        return
    raise PermissionError("permission denied")


def look_path_unix(file: str, getenv: Optional[Getenv] = None) -> str:
    """Find ``file`` on ``PATH``; a name containing '/' is checked directly."""
    getenv = getenv or _default_getenv
    if "/" in file:
        try:
            _find_executable_posix(file)
        except OSError as exc:
            raise LookPathError(file, exc) from exc
        return file
    for directory in _split_list(getenv("PATH")):
        candidate = _join(directory or ".", file)
        try:
            _find_executable_posix(candidate)
        except OSError:
            continue
        return candidate
    raise LookPathError(file, FileNotFoundError(_NOT_FOUND_UNIX))


def look_path_plan9(file: str, getenv: Optional[Getenv] = None) -> str:
    """Find ``file`` on ``path``; names starting with /, #, ./ or ../ are checked directly."""
    getenv = getenv or _default_getenv
    if file.startswith(_PLAN9_DIRECT_PREFIXES):
        try:
            _find_executable_posix(file)
        except OSError as exc:
            raise LookPathError(file, exc) from exc
        return file
    for directory in _split_list(getenv("path")):
        candidate = _join(directory, file)
        try:
            _find_executable_posix(candidate)
        except OSError:
            continue
        return candidate
    raise LookPathError(file, FileNotFoundError(_NOT_FOUND_PLAN9))


def _check_stat(file: str) -> None:
    if stat.S_ISDIR(os.stat(file).st_mode):
        raise PermissionError("permission denied")


def _has_ext(file: str) -> bool:
    dot = file.rfind(".")
    if dot < 0:
        return False
    return max(file.rfind(c) for c in _WINDOWS_PATH_CHARS) < dot


def _find_executable_windows(file: str, exts: list[str]) -> str:
    if not exts:
        _check_stat(file)
        return file
    if _has_ext(file):
        try:
            _check_stat(file)
        except OSError:
            pass
        else:
            return file
    for ext in exts:
        candidate = file + ext
        try:
            _check_stat(candidate)
        except OSError:
            continue
        return candidate
    raise FileNotFoundError("file does not exist")


def _windows_exts(pathext: str) -> list[str]:
    if not pathext:
        return list(_WINDOWS_DEFAULT_EXTS)
    return [
        ext if ext.startswith(".") else "." + ext
        for ext in pathext.lower().split(";")
        if ext
    ]


def look_path_windows(file: str, getenv: Optional[Getenv] = None) -> str:
    """Find ``file`` in the current directory, then on ``path``, trying ``PATHEXT`` extensions."""
    getenv = getenv or _default_getenv
    exts = _windows_exts(getenv("PATHEXT"))

    if any(c in file for c in _WINDOWS_PATH_CHARS):
        try:
            return _find_executable_windows(file, exts)
        except OSError as exc:
            raise LookPathError(file, exc) from exc

    try:
        return _find_executable_windows(_join(".", file), exts)
    except OSError:
        pass
    for directory in _split_list(getenv("path")):
        try:
            return _find_executable_windows(_join(directory, file), exts)
        except OSError:
            continue
    raise LookPathError(file, FileNotFoundError(_NOT_FOUND_WINDOWS))


def look_path(file: str, getenv: Optional[Getenv] = None) -> str:
    """Find an executable using the conventions of the running platform."""
    if sys.platform in ("emscripten", "wasi"):
        # No processes can be started here, so nothing is executable.
        raise LookPathError(file, FileNotFoundError(_NOT_FOUND_UNIX))
    if os.name == "nt":
        return look_path_windows(file, getenv)
    if sys.platform.startswith("plan9"):
        return look_path_plan9(file, getenv)
    return look_path_unix(file, getenv)