"""!
@brief Registry probe tests using a fake ``winreg`` module.
"""

from __future__ import annotations

import pathlib
import sys
from types import SimpleNamespace
from typing import List

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from app_deploy import constants, registry_tools  # noqa: E402


def _fake_winreg(existing: set, closed: List[object]) -> SimpleNamespace:
    def _open(root, path, reserved, access):  # type: ignore[no-untyped-def]
        if (root, path) not in existing:
            raise FileNotFoundError(path)
        return (root, path)

    return SimpleNamespace(
        HKEY_LOCAL_MACHINE=constants.HKLM,
        HKEY_CURRENT_USER=0x80000001,
        HKEY_CLASSES_ROOT=constants.HKCR,
        KEY_READ=0x20019,
        OpenKey=_open,
        CloseKey=closed.append,
    )


def test_key_exists_opens_and_closes_handle(monkeypatch) -> None:
    closed: List[object] = []
    path = r"SOFTWARE\Microsoft\Windows\CurrentVersion\Uninstall\{A}"
    monkeypatch.setattr(registry_tools, "winreg", _fake_winreg({(constants.HKLM, path)}, closed))

    assert registry_tools.key_exists(constants.HKLM, path) is True
    assert closed == [(constants.HKLM, path)]
    assert registry_tools.key_exists(constants.HKLM, path + "x") is False


def test_key_exists_without_winreg(monkeypatch) -> None:
    monkeypatch.setattr(registry_tools, "winreg", None)

    assert registry_tools.key_exists(constants.HKLM, r"SOFTWARE\Anything") is False


def test_hive_name() -> None:
    assert registry_tools.hive_name(constants.HKLM) == "HKLM"
    assert registry_tools.hive_name(constants.HKCR) == "HKCR"
    assert registry_tools.hive_name(0x1234) == "0x1234"
