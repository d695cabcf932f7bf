"""!
@brief Running-application discovery and termination tests.
"""

from __future__ import annotations

import pathlib
import subprocess
import sys
from types import SimpleNamespace
from typing import List

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from app_deploy import processes  # noqa: E402

_TASKLIST = "\n".join(
    [
        '"System Idle Process","0","Services","0","8 K"',
        '"STATS.EXE","4120","Console","1","120,000 K"',
        '"statsvr.exe","4188","Services","0","40,000 K"',
        '"stats.exe","5120","Console","2","118,000 K"',
        '"explorer.exe","2212","Console","1","90,000 K"',
    ]
)


def test_find_running_matches_case_insensitively(monkeypatch) -> None:
    commands: List[List[str]] = []

    def _fake_run(command, **kwargs):  # type: ignore[no-untyped-def]
        commands.append(command)
        return SimpleNamespace(returncode=0, stdout=_TASKLIST, stderr="")

    monkeypatch.setattr(processes.subprocess, "run", _fake_run)

    running = processes.find_running(["stats", "statsvr.exe", "winword.exe"])

    assert running == ["stats.exe", "statsvr.exe"]
    assert commands == [["tasklist.exe", "/FO", "CSV", "/NH"]]


def test_find_running_supports_wildcards(monkeypatch) -> None:
    monkeypatch.setattr(
        processes.subprocess,
        "run",
        lambda command, **kwargs: SimpleNamespace(returncode=0, stdout=_TASKLIST, stderr=""),
    )

    assert processes.find_running(["stat*.exe"]) == ["stats.exe", "statsvr.exe"]


def test_find_running_without_targets_skips_tasklist(monkeypatch) -> None:
    def _fail(*args, **kwargs):  # type: ignore[no-untyped-def]
        raise AssertionError("tasklist must not run")

    monkeypatch.setattr(processes.subprocess, "run", _fail)

    assert processes.find_running(["", "  "]) == []


def test_find_running_tolerates_tasklist_failures(monkeypatch) -> None:
    monkeypatch.setattr(
        processes.subprocess,
        "run",
        lambda command, **kwargs: SimpleNamespace(returncode=1, stdout="", stderr="denied"),
    )
    assert processes.find_running(["stats.exe"]) == []

    def _timeout(command, **kwargs):  # type: ignore[no-untyped-def]
        raise subprocess.TimeoutExpired(command, kwargs.get("timeout"))

    monkeypatch.setattr(processes.subprocess, "run", _timeout)
    assert processes.find_running(["stats.exe"]) == []


def test_close_applications_invokes_taskkill(monkeypatch) -> None:
    commands: List[List[str]] = []

    def _fake_run(command, **kwargs):  # type: ignore[no-untyped-def]
        commands.append(command)
        return SimpleNamespace(returncode=0 if command[2] == "stats.exe" else 128, stdout="", stderr="")

    monkeypatch.setattr(processes.subprocess, "run", _fake_run)

    processes.close_applications(["Stats.exe", "statsvr", "stats.exe"])

    assert commands == [
        ["taskkill.exe", "/IM", "stats.exe", "/F", "/T"],
        ["taskkill.exe", "/IM", "statsvr.exe", "/F", "/T"],
    ]
