"""!
@brief Shared subprocess execution helpers.
@details Provides a consistent wrapper around :func:`subprocess.run` that
records structured telemetry for command invocations, including execution
plans, durations, and failure metadata. Child processes receive an environment
stripped of Python virtual environment artefacts plus any overrides the
toolkit configured (for example the PowerShell execution policy). Tokens
marked secret are masked in every log record.
"""
from __future__ import annotations

import os
import subprocess
import time
from dataclasses import dataclass
from typing import Iterable, List, Mapping, MutableMapping, Sequence

from . import logging_ext

REDACTED = "********"

_SANITIZE_BLOCKLIST = {
    "PYTHONPATH",
    "PYTHONHOME",
    "PYTHONWARNINGS",
    "VIRTUAL_ENV",
    "PIP_REQUIRE_VIRTUALENV",
    "CONDA_PREFIX",
    "CONDA_DEFAULT_ENV",
    "PYENV_VERSION",
    "POETRY_ACTIVE",
    "__PYVENV_LAUNCHER__",
}

_GLOBAL_TIMEOUT: float | None = None


@dataclass
class CommandResult:
    """!
    @brief Outcome metadata returned by :func:`run_command`.
    @details ``skipped`` is ``True`` when dry-run mode bypassed the subprocess.
    ``timed_out`` is ``True`` when the command exceeded the requested timeout.
    """

    command: Sequence[str]
    returncode: int
    stdout: str
    stderr: str
    duration: float
    skipped: bool = False
    timed_out: bool = False
    error: str | None = None


def set_global_timeout(timeout_seconds: float | int | None) -> None:
    """!
    @brief Apply a global timeout cap for all subprocess calls.
    @details :func:`run_command` uses the smaller of the caller's timeout and
    this cap so the CLI ``--timeout`` flag bounds every step.
    """

    global _GLOBAL_TIMEOUT
    if timeout_seconds is None:
        _GLOBAL_TIMEOUT = None
        return
    try:
        parsed = float(timeout_seconds)
    except (TypeError, ValueError):
        _GLOBAL_TIMEOUT = None
    else:
        _GLOBAL_TIMEOUT = parsed if parsed > 0 else None


def _resolve_timeout(requested: float | int | None) -> float | int | None:
    if _GLOBAL_TIMEOUT is None:
        return requested
    if requested is None:
        return _GLOBAL_TIMEOUT
    return min(_GLOBAL_TIMEOUT, requested)


def sanitize_environment(
    *,
    base_env: Mapping[str, str] | None = None,
    extra: Mapping[str, str] | None = None,
) -> MutableMapping[str, str]:
    """!
    @brief Produce a subprocess environment stripped of virtualenv artefacts.
    @param base_env Source mapping; defaults to :data:`os.environ`.
    @param extra Overrides applied after sanitisation.
    """

    source = os.environ if base_env is None else base_env
    environment: MutableMapping[str, str] = {
        str(k): str(v) for k, v in source.items() if v is not None
    }
    for key in _SANITIZE_BLOCKLIST:
        environment.pop(key, None)
    if extra:
        for key, value in extra.items():
            environment[str(key)] = str(value)
    return environment


def redact(command: Sequence[str], secrets: Iterable[str] | None) -> List[str]:
    """!
    @brief Replace every occurrence of ``secrets`` inside ``command`` tokens.
    """

    masked = [str(part) for part in command]
    for secret in secrets or ():
        if not secret:
            continue
        masked = [part.replace(secret, REDACTED) for part in masked]
    return masked


def run_command(
    command: Sequence[str],
    *,
    event: str,
    timeout: int | float | None = None,
    dry_run: bool = False,
    human_message: str | None = None,
    extra: Mapping[str, object] | None = None,
    env_overrides: Mapping[str, str] | None = None,
    secrets: Iterable[str] | None = None,
) -> CommandResult:
    """!
    @brief Execute ``command`` while emitting structured telemetry records.
    @details Logs a ``*_plan`` event prior to invocation and a ``*_result``
    event once the process exits (or a ``*_timeout``/``*_missing``/``*_error``
    failure). Launch failures are reported through the result, never raised.
    @param command Command sequence to execute.
    @param event Base event identifier recorded in machine logs.
    @param timeout Optional timeout in seconds for the subprocess.
    @param dry_run When ``True`` skip execution and return a ``skipped`` result.
    @param human_message Optional message logged to the human channel before
    execution.
    @param extra Mapping merged into machine log ``extra`` payloads.
    @param env_overrides Variables layered over the sanitised environment.
    @param secrets Substrings masked in every logged copy of the command.
    @returns :class:`CommandResult` describing the observed outcome.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()

    command_list = [str(part) for part in command]
    secret_list = [secret for secret in (secrets or ()) if secret]
    logged_command = redact(command_list, secret_list)
    effective_timeout = _resolve_timeout(timeout)

    def _meta(suffix: str, **payload: object) -> dict:
        metadata: MutableMapping[str, object] = {
            "event": f"{event}_{suffix}",
            "command": logged_command,
        }
        metadata.update(payload)
        if extra:
            metadata.update(extra)
        return dict(metadata)

    machine_logger.info(f"{event}_plan", extra=_meta("plan", timeout=effective_timeout))

    if dry_run:
        if human_message:
            human_logger.info("%s [dry-run]", human_message)
        else:
            human_logger.info("Dry-run: would execute %s", " ".join(logged_command))
        machine_logger.info(f"{event}_dry_run", extra=_meta("dry_run"))
        return CommandResult(
            command=logged_command,
            returncode=0,
            stdout="",
            stderr="",
            duration=0.0,
            skipped=True,
        )

    if human_message:
        human_logger.info(human_message)

    start = time.monotonic()
    try:
        completed = subprocess.run(  # noqa: S603 - intentional command execution
            command_list,
            capture_output=True,
            text=True,
            timeout=effective_timeout,
            check=False,
            env=sanitize_environment(extra=env_overrides),
        )
    except FileNotFoundError as exc:
        duration = time.monotonic() - start
        human_logger.error("Command not found: %s", command_list[0])
        machine_logger.error(
            f"{event}_missing", extra=_meta("missing", duration=duration, error=str(exc))
        )
        return CommandResult(
            command=logged_command,
            returncode=127,
            stdout="",
            stderr="",
            duration=duration,
            error=str(exc),
        )
    except subprocess.TimeoutExpired as exc:
        duration = time.monotonic() - start
        human_logger.error("Command timed out after %.1fs: %s", duration, command_list[0])
        machine_logger.error(
            f"{event}_timeout",
            extra=_meta(
                "timeout",
                duration=duration,
                stdout=str(exc.stdout or ""),
                stderr=str(exc.stderr or ""),
            ),
        )
        return CommandResult(
            command=logged_command,
            returncode=1,
            stdout=str(exc.stdout or ""),
            stderr=str(exc.stderr or ""),
            duration=duration,
            timed_out=True,
            error="timeout",
        )
    except OSError as exc:
        duration = time.monotonic() - start
        human_logger.error("Failed to execute %s: %s", command_list[0], exc)
        machine_logger.error(
            f"{event}_error", extra=_meta("error", duration=duration, error=str(exc))
        )
        return CommandResult(
            command=logged_command,
            returncode=1,
            stdout="",
            stderr="",
            duration=duration,
            error=str(exc),
        )

    duration = time.monotonic() - start
    machine_logger.info(
        f"{event}_result",
        extra=_meta(
            "result",
            return_code=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
            duration=duration,
        ),
    )

    if completed.returncode != 0:
        human_logger.warning("Command %s exited with %s", command_list[0], completed.returncode)

    return CommandResult(
        command=logged_command,
        returncode=completed.returncode,
        stdout=completed.stdout,
        stderr=completed.stderr,
        duration=duration,
    )
