"""!
@brief Read-only registry probes.
@details Thin ``winreg`` wrappers used to decide whether a product code is
still registered before asking ``msiexec`` to remove it. On hosts without
``winreg`` every probe reports the key as absent.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

try:  # pragma: no cover - exercised through mocks on non-Windows platforms.
    import winreg
except ImportError:  # pragma: no cover - handled gracefully during tests.
    winreg = None  # type: ignore[assignment]


def _ensure_winreg() -> None:
    if winreg is None:  # pragma: no cover - simplifies non-Windows test runs.
        raise FileNotFoundError("Windows registry APIs are unavailable on this platform")


@contextmanager
def open_key(root: int, path: str) -> Iterator[Any]:
    """!
    @brief Context manager that mirrors ``winreg.OpenKey`` for read access
    while ensuring handles are closed correctly.
    """

    _ensure_winreg()
    handle = winreg.OpenKey(root, path, 0, winreg.KEY_READ)  # type: ignore[union-attr]
    try:
        yield handle
    finally:
        winreg.CloseKey(handle)  # type: ignore[union-attr]


def key_exists(root: int, path: str) -> bool:
    """!
    @brief Determine whether the given key exists.
    """

    try:
        with open_key(root, path):
            return True
    except OSError:
        return False


def hive_name(root: int) -> str:
    """!
    @brief Provide a friendly identifier for a registry hive.
    """

    mapping = {
        getattr(winreg, "HKEY_LOCAL_MACHINE", 0x80000002): "HKLM",
        getattr(winreg, "HKEY_CURRENT_USER", 0x80000001): "HKCU",
        getattr(winreg, "HKEY_CLASSES_ROOT", 0x80000000): "HKCR",
    }
    return mapping.get(root, hex(root))


__all__ = ["hive_name", "key_exists", "open_key"]
