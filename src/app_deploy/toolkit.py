"""!
@brief Contract between the orchestrator and the deployment toolkit.
@details The orchestrator never touches processes, dialogs, or log files
itself; it asks a :class:`Toolkit` to do so. Toolkits are loaded by module
name so a site can swap in its own implementation. A toolkit module exposes a
``create_toolkit(request, manifest, **options)`` factory returning a
:class:`Toolkit` instance.
"""
from __future__ import annotations

import abc
import importlib
from enum import IntEnum
from typing import Any, Callable, Sequence

from . import constants
from .models import InteractionLevel, PackageAction

TOOLKIT_FACTORY_NAME = "create_toolkit"

ToolkitFactory = Callable[..., "Toolkit"]


class Severity(IntEnum):
    """!
    @brief Log severities accepted by :meth:`Toolkit.log`.
    """

    INFO = 1
    WARNING = 2
    ERROR = 3


class ToolkitError(RuntimeError):
    """!
    @brief Base class for errors raised by or about a toolkit.
    """


class ToolkitLoadError(ToolkitError):
    """!
    @brief Raised when a toolkit module cannot be imported or has no factory.
    """


class DeploymentDeferred(ToolkitError):
    """!
    @brief Raised by a toolkit when the deployment must stop without failing.
    @details Typical causes are the user declining to close applications or
    too little free disk space. ``exit_code`` defaults to
    :data:`constants.EXIT_CODE_USER_DEFERRED`.
    """

    def __init__(self, message: str, *, exit_code: int = constants.EXIT_CODE_USER_DEFERRED) -> None:
        super().__init__(message)
        self.exit_code = exit_code


class Toolkit(abc.ABC):
    """!
    @brief Operations the orchestrator consumes.
    @details Every UI operation receives the caller's interaction level
    unchanged; it is the toolkit's job to stay quiet when the level is
    ``Silent`` or ``NonInteractive``.
    """

    @abc.abstractmethod
    def set_execution_policy(self, policy: str) -> None:
        """!
        @brief Apply the script execution policy for child processes of this run.
        """

    @abc.abstractmethod
    def set_terminal_server_mode(self, enabled: bool) -> None:
        """!
        @brief Switch a Remote Desktop Session Host into (or out of) install mode.
        """

    @abc.abstractmethod
    def show_welcome(
        self,
        *,
        close_targets: Sequence[str],
        interaction: InteractionLevel,
        check_disk_space: bool = False,
        persist_prompt: bool = False,
        countdown_seconds: int | None = None,
    ) -> None:
        """!
        @brief Ask the user to close ``close_targets`` and run pre-flight checks.
        @throws DeploymentDeferred When the deployment must not continue.
        """

    @abc.abstractmethod
    def show_progress(self, *, interaction: InteractionLevel, message: str | None = None) -> None:
        """!
        @brief Tell the user the deployment is in progress.
        """

    @abc.abstractmethod
    def show_completion_notice(self, message: str, *, interaction: InteractionLevel) -> None:
        """!
        @brief Tell the user the deployment finished.
        """

    @abc.abstractmethod
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
        """!
        @brief Install a package or remove a product and return its result code.
        @details With ``passthru`` the installer's code is returned as-is;
        otherwise only ``0`` (or the reboot sentinel) is returned and failures
        raise :class:`ToolkitError`.
        """

    @abc.abstractmethod
    def finalize(self, exit_code: int) -> int:
        """!
        @brief Clean up and return the process exit status for ``exit_code``.
        """

    @abc.abstractmethod
    def log(self, message: str, severity: Severity = Severity.INFO, source: str = "") -> None:
        """!
        @brief Write ``message`` to the deployment log.
        """

    @abc.abstractmethod
    def show_error_dialog(
        self, text: str, *, interaction: InteractionLevel, icon: str = "Stop"
    ) -> None:
        """!
        @brief Show a blocking error message to the user.
        """

    @abc.abstractmethod
    def resolve_last_error(self, error: BaseException) -> str:
        """!
        @brief Render ``error`` as a diagnostic string suitable for logs.
        """


def load_toolkit(module_name: str) -> ToolkitFactory:
    """!
    @brief Import ``module_name`` and return its toolkit factory.
    @throws ToolkitLoadError When the module cannot be imported or lacks a
    callable ``create_toolkit``.
    """

    name = str(module_name or "").strip()
    if not name:
        raise ToolkitLoadError("No toolkit module configured")
    try:
        module: Any = importlib.import_module(name)
    except ImportError as exc:
        raise ToolkitLoadError(f"Unable to import toolkit module {name!r}: {exc}") from exc
    factory = getattr(module, TOOLKIT_FACTORY_NAME, None)
    if not callable(factory):
        raise ToolkitLoadError(
            f"Toolkit module {name!r} does not define a callable {TOOLKIT_FACTORY_NAME}()"
        )
    return factory


__all__ = [
    "DeploymentDeferred",
    "Severity",
    "Toolkit",
    "ToolkitError",
    "ToolkitFactory",
    "ToolkitLoadError",
    "load_toolkit",
]
