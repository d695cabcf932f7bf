"""!
@brief Default toolkit built on ``msiexec``, ``tasklist``/``taskkill`` and the console.
@details Implements :class:`app_deploy.toolkit.Toolkit` for a Windows host.
Prompts and notices are plain console text and are suppressed entirely when
the interaction level is ``Silent`` or ``NonInteractive``; in those modes the
welcome step closes target applications without asking. Every operation is
mirrored to the human and machine log channels configured by
:mod:`app_deploy.logging_ext`.
"""
from __future__ import annotations

import os
import pathlib
import sys
import traceback
from typing import Callable, Dict, Optional, Sequence, TextIO

from . import (
    command_runner,
    confirm,
    constants,
    fs_tools,
    logging_ext,
    msi,
    processes,
)
from .manifest import DeploymentManifest
from .models import DeploymentMode, DeploymentRequest, InteractionLevel, PackageAction
from .toolkit import DeploymentDeferred, Severity, Toolkit, ToolkitError

_SEVERITY_LEVELS = {
    Severity.INFO: "info",
    Severity.WARNING: "warning",
    Severity.ERROR: "error",
}

EXECUTION_POLICY_VARIABLE = "PSExecutionPolicyPreference"


class NativeToolkit(Toolkit):
    """!
    @brief Console and ``msiexec`` implementation of the toolkit contract.
    """

    def __init__(
        self,
        request: DeploymentRequest,
        manifest: DeploymentManifest,
        *,
        dry_run: bool = False,
        input_func: Callable[[str], str] | None = None,
        interactive: bool | None = None,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
    ) -> None:
        self.request = request
        self.manifest = manifest
        self.dry_run = dry_run
        self._input_func = input_func
        self._interactive = interactive
        self._stdout = stdout
        self._stderr = stderr
        self._env_overrides: Dict[str, str] = {}
        self._terminal_server_mode = False
        self._human = logging_ext.get_human_logger()
        self._machine = logging_ext.get_machine_logger()

    # ------------------------------------------------------------------
    # Output helpers
    # ------------------------------------------------------------------

    def _out(self) -> TextIO:
        return self._stdout if self._stdout is not None else sys.stdout

    def _err(self) -> TextIO:
        return self._stderr if self._stderr is not None else sys.stderr

    def _action_word(self) -> str:
        return "uninstallation" if self.request.mode is DeploymentMode.UNINSTALL else "installation"

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    def set_execution_policy(self, policy: str) -> None:
        if policy not in constants.EXECUTION_POLICIES:
            raise ToolkitError(f"Unknown execution policy {policy!r}")
        self._env_overrides[EXECUTION_POLICY_VARIABLE] = policy
        self._machine.info(
            "execution_policy",
            extra={"event": "execution_policy", "policy": policy},
        )

    def set_terminal_server_mode(self, enabled: bool) -> None:
        if os.name != "nt":
            self._human.info("Terminal server install mode is only available on Windows; skipping.")
            return
        if enabled == self._terminal_server_mode:
            return
        command = ["change.exe", "user", "/install" if enabled else "/execute"]
        result = command_runner.run_command(
            command,
            event="terminal_server_mode",
            timeout=60,
            dry_run=self.dry_run,
            human_message="Switching terminal server to %s mode" % ("install" if enabled else "execute"),
            env_overrides=self._env_overrides,
        )
        if result.returncode != 0:
            raise ToolkitError(
                f"change.exe user {command[-1]} failed with exit code {result.returncode}"
            )
        self._terminal_server_mode = enabled

    # ------------------------------------------------------------------
    # User interface
    # ------------------------------------------------------------------

    def show_welcome(
        self,
        *,
        close_targets: Sequence[str],
        interaction: InteractionLevel,
        check_disk_space: bool = False,
        persist_prompt: bool = False,
        countdown_seconds: int | None = None,
    ) -> None:
        self._machine.info(
            "welcome",
            extra={
                "event": "welcome",
                "close_targets": list(close_targets),
                "interaction": interaction.value,
                "check_disk_space": check_disk_space,
                "persist_prompt": persist_prompt,
                "countdown_seconds": countdown_seconds,
            },
        )

        if check_disk_space:
            self._check_disk_space(interaction)

        running = processes.find_running(close_targets)
        if not running:
            return

        if interaction.suppresses_ui:
            self._human.info("Closing %s without prompting (%s mode).", ", ".join(running), interaction.value)
        else:
            accepted = confirm.request_close_confirmation(
                running,
                action=self._action_word(),
                countdown_seconds=countdown_seconds,
                persist=persist_prompt,
                input_func=self._input_func,
                interactive=self._interactive,
            )
            if not accepted:
                self._human.warning("User deferred the %s.", self._action_word())
                raise DeploymentDeferred(
                    f"The {self._action_word()} was deferred while {', '.join(running)} were running"
                )

        if self.dry_run:
            self._human.info("Dry-run: would close %s", ", ".join(running))
            return
        processes.close_applications(running)

    def _check_disk_space(self, interaction: InteractionLevel) -> None:
        required = self.manifest.required_disk_space_mb or fs_tools.directory_size_mb(
            self.manifest.files_dir
        )
        drive = fs_tools.get_system_drive()
        available = fs_tools.free_space_mb(drive)
        self._machine.info(
            "disk_space",
            extra={
                "event": "disk_space",
                "drive": str(drive),
                "required_mb": required,
                "available_mb": available,
            },
        )
        if available >= required:
            return
        message = (
            f"{required} MB of free space is required on {drive} but only "
            f"{available} MB is available."
        )
        self._human.error("Insufficient disk space: %s", message)
        if not interaction.suppresses_ui:
            print(f"Not enough disk space: {message}", file=self._err())
        raise DeploymentDeferred(message)

    def show_progress(self, *, interaction: InteractionLevel, message: str | None = None) -> None:
        text = message or f"{self._action_word().capitalize()} in progress. Please wait..."
        self._human.info(text)
        self._machine.info(
            "progress",
            extra={"event": "progress", "text": text, "interaction": interaction.value},
        )
        if not interaction.suppresses_ui:
            print(f"[{self.manifest.descriptor.label}] {text}", file=self._out())

    def show_completion_notice(self, message: str, *, interaction: InteractionLevel) -> None:
        text = message or f"{self._action_word().capitalize()} complete."
        self._human.info(text)
        if not interaction.suppresses_ui:
            print(f"[{self.manifest.descriptor.label}] {text}", file=self._out())

    def show_error_dialog(
        self, text: str, *, interaction: InteractionLevel, icon: str = "Stop"
    ) -> None:
        self._machine.info(
            "error_dialog",
            extra={"event": "error_dialog", "icon": icon, "interaction": interaction.value},
        )
        if interaction.suppresses_ui:
            return
        stream = self._err()
        print(f"[{icon}] {self.manifest.descriptor.label}", file=stream)
        print(text, file=stream)

    # ------------------------------------------------------------------
    # Package execution
    # ------------------------------------------------------------------

    def _msi_log_path(self, action: PackageAction) -> Optional[pathlib.Path]:
        if not self.request.logging_enabled:
            return None
        directory = logging_ext.get_log_directory()
        if directory is None:
            return None
        return directory / f"{logging_ext.get_log_name()}_{action.value}_MSI.log"

    def execute_package_operation(
        self,
        action: PackageAction,
        target: str,
        *,
        parameters: Sequence[str] = (),
        transform: str | None = None,
        secure_parameters: bool = False,
        passthru: bool = True,
    ) -> int:
        result = msi.execute(
            action,
            target,
            parameters=parameters,
            transform=transform,
            secure_parameters=secure_parameters,
            log_path=self._msi_log_path(PackageAction.parse(action)),
            dry_run=self.dry_run,
            env_overrides=self._env_overrides,
        )
        code = int(result.returncode)
        if code == constants.EXIT_CODE_REBOOT_REQUIRED:
            self._human.info("%s of %s requires a reboot.", PackageAction.parse(action).value, target)
        if passthru:
            return code
        if code not in (constants.EXIT_CODE_SUCCESS, constants.EXIT_CODE_REBOOT_REQUIRED):
            raise ToolkitError(f"{PackageAction.parse(action).value} of {target} failed with exit code {code}")
        return code

    # ------------------------------------------------------------------
    # Logging and termination
    # ------------------------------------------------------------------

    def log(self, message: str, severity: Severity = Severity.INFO, source: str = "") -> None:
        level = _SEVERITY_LEVELS.get(Severity(severity), "info")
        text = f"[{source}] {message}" if source else message
        getattr(self._human, level)(text)
        self._machine.info(
            "toolkit_log",
            extra={
                "event": "toolkit_log",
                "severity": int(severity),
                "source": source,
                "text": message,
            },
        )

    def resolve_last_error(self, error: BaseException) -> str:
        return "".join(traceback.format_exception(type(error), error, error.__traceback__)).rstrip()

    def finalize(self, exit_code: int) -> int:
        try:
            if self._terminal_server_mode:
                self.set_terminal_server_mode(False)
        except ToolkitError as exc:
            self._human.warning("Failed to leave terminal server install mode: %s", exc)

        if exit_code in (constants.EXIT_CODE_SUCCESS, constants.EXIT_CODE_REBOOT_REQUIRED):
            self._human.info(
                "%s %s completed with exit code %s.",
                self.manifest.descriptor.label,
                self._action_word(),
                exit_code,
            )
        else:
            self._human.error(
                "%s %s completed with exit code %s.",
                self.manifest.descriptor.label,
                self._action_word(),
                exit_code,
            )
        self._machine.info(
            "run_end",
            extra={
                "event": "run_end",
                "exit_code": exit_code,
                "mode": self.request.mode.value,
                "interaction": self.request.interaction.value,
            },
        )
        logging_ext.shutdown_logging()
        return exit_code


def create_toolkit(
    request: DeploymentRequest,
    manifest: DeploymentManifest,
    **options: object,
) -> NativeToolkit:
    """!
    @brief Toolkit factory looked up by :func:`app_deploy.toolkit.load_toolkit`.
    """

    return NativeToolkit(request, manifest, **options)  # type: ignore[arg-type]


__all__ = ["EXECUTION_POLICY_VARIABLE", "NativeToolkit", "create_toolkit"]
