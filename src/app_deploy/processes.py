"""!
@brief Running-application discovery and termination.
@details The welcome step needs to know which of the application's
executables are running and to stop them before files are replaced. Both
helpers shell out to ``tasklist``/``taskkill`` and exit quietly on hosts where
those utilities are unavailable.
"""
from __future__ import annotations

import fnmatch
import subprocess
from typing import Iterable, List

from . import logging_ext


def _normalise_names(names: Iterable[str]) -> List[str]:
    normalised: List[str] = []
    for raw in names:
        name = str(raw).strip().lower()
        if not name:
            continue
        if "." not in name and "*" not in name:
            name = f"{name}.exe"
        if name not in normalised:
            normalised.append(name)
    return normalised


def find_running(names: Iterable[str], *, timeout: int = 30) -> List[str]:
    """!
    @brief Return the running image names that match ``names``.
    @details Patterns such as ``stat*.exe`` are matched with :mod:`fnmatch`.
    Names without an extension gain ``.exe``.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()

    patterns = _normalise_names(names)
    if not patterns:
        return []

    try:
        listing = subprocess.run(
            ["tasklist.exe", "/FO", "CSV", "/NH"],
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError:  # pragma: no cover - non-Windows test environment.
        human_logger.debug("tasklist.exe unavailable; assuming no target applications are running")
        return []
    except subprocess.TimeoutExpired as exc:
        human_logger.warning("Timed out enumerating running processes")
        machine_logger.warning(
            "process_enumeration_timeout",
            extra={
                "event": "process_enumeration_timeout",
                "stdout": exc.stdout,
                "stderr": exc.stderr,
            },
        )
        return []

    if listing.returncode != 0:
        human_logger.debug("tasklist returned %s; assuming nothing is running", listing.returncode)
        return []

    running: List[str] = []
    for line in listing.stdout.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        image = stripped.split(",", 1)[0].strip().strip('"').lower()
        if not image:
            continue
        if any(fnmatch.fnmatch(image, pattern) for pattern in patterns) and image not in running:
            running.append(image)

    machine_logger.info(
        "process_scan",
        extra={"event": "process_scan", "targets": patterns, "running": running},
    )
    return running


def close_applications(names: Iterable[str], *, timeout: int = 30) -> None:
    """!
    @brief Force-stop every process whose image name is in ``names``.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()

    processes = _normalise_names(names)
    if not processes:
        human_logger.debug("No applications supplied for termination.")
        return

    human_logger.info("Closing %d running application(s).", len(processes))
    for process in processes:
        command = ["taskkill.exe", "/IM", process, "/F", "/T"]
        machine_logger.info(
            "terminate_process_plan",
            extra={
                "event": "terminate_process_plan",
                "process_name": process,
                "command": command,
            },
        )
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=False,
            )
        except FileNotFoundError:  # pragma: no cover - non-Windows fallback.
            human_logger.debug("taskkill.exe is unavailable; skipping termination for %s", process)
            continue
        except subprocess.TimeoutExpired as exc:
            human_logger.warning("Timed out attempting to stop %s", process)
            machine_logger.warning(
                "terminate_process_timeout",
                extra={
                    "event": "terminate_process_timeout",
                    "process_name": process,
                    "stdout": exc.stdout,
                    "stderr": exc.stderr,
                },
            )
            continue

        event = "terminate_process_success" if result.returncode == 0 else "terminate_process_result"
        if result.returncode == 0:
            human_logger.info("Closed %s", process)
        else:
            human_logger.debug(
                "taskkill exited with %s for %s: %s", result.returncode, process, result.stderr.strip()
            )
        machine_logger.info(
            event,
            extra={
                "event": event,
                "process_name": process,
                "return_code": result.returncode,
                "stdout": result.stdout,
                "stderr": result.stderr,
            },
        )


__all__ = ["close_applications", "find_running"]
