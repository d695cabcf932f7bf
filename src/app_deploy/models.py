"""!
@brief Core data types shared by the CLI, the orchestrator, and toolkits.
@details The request captures what the caller asked for, the descriptor
names the application being deployed, and the result types carry the
accumulated exit code through every phase so no process-wide state is needed.
"""
from __future__ import annotations

import dataclasses
from enum import Enum
from typing import Tuple, Union

from . import constants


class _CaseInsensitiveEnum(str, Enum):
    """!
    @brief String enum whose members can be looked up case-insensitively.
    """

    @classmethod
    def parse(cls, value: object) -> "_CaseInsensitiveEnum":
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        choices = ", ".join(member.value for member in cls)
        raise ValueError(f"Unknown {cls.__name__} {value!r}; expected one of: {choices}")


class DeploymentMode(_CaseInsensitiveEnum):
    """!
    @brief Which branch of the phase sequence to run.
    """

    INSTALL = "Install"
    UNINSTALL = "Uninstall"


class InteractionLevel(_CaseInsensitiveEnum):
    """!
    @brief How much the toolkit may interact with the logged-on user.
    """

    INTERACTIVE = "Interactive"
    SILENT = "Silent"
    NON_INTERACTIVE = "NonInteractive"

    @property
    def suppresses_ui(self) -> bool:
        return self is not InteractionLevel.INTERACTIVE


class PackageAction(_CaseInsensitiveEnum):
    """!
    @brief Operation requested from the toolkit's package executor.
    """

    INSTALL = "Install"
    UNINSTALL = "Uninstall"


@dataclasses.dataclass(frozen=True)
class DeploymentRequest:
    """!
    @brief Immutable description of a single deployment run.
    @details String values for ``mode`` and ``interaction`` are accepted in any
    letter case and coerced to their enums; anything else raises
    ``ValueError``.
    """

    mode: DeploymentMode = DeploymentMode.INSTALL
    interaction: InteractionLevel = InteractionLevel.INTERACTIVE
    allow_reboot_passthrough: bool = False
    terminal_server_mode: bool = False
    logging_enabled: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "mode", DeploymentMode.parse(self.mode))
        object.__setattr__(self, "interaction", InteractionLevel.parse(self.interaction))
        for name in ("allow_reboot_passthrough", "terminal_server_mode", "logging_enabled"):
            value = getattr(self, name)
            if not isinstance(value, bool):
                raise ValueError(f"{name} must be a boolean, not {type(value).__name__}")


@dataclasses.dataclass(frozen=True)
class ApplicationDescriptor:
    """!
    @brief Static metadata naming the deployed application.
    """

    vendor: str
    name: str
    version: str
    architecture: str = ""
    locale: str = ""
    revision: str = ""

    @property
    def label(self) -> str:
        return " ".join(part for part in (self.vendor, self.name, self.version) if part)

    def log_name(self, mode: DeploymentMode) -> str:
        """!
        @brief Build the log file base name, e.g. ``Contoso_StatisticsSuite_29.0.1_x64_EN_01_Install``.
        """

        parts = [
            self.vendor,
            self.name,
            self.version,
            self.architecture,
            self.locale,
            self.revision,
            DeploymentMode.parse(mode).value,
        ]
        return "_".join(part.replace(" ", "") for part in parts if part)


@dataclasses.dataclass(frozen=True)
class StepRecord:
    """!
    @brief Result code reported by one package operation.
    """

    name: str
    target: str
    return_code: int


@dataclasses.dataclass(frozen=True)
class DeploymentResult:
    """!
    @brief Exit code accumulator threaded through every phase.
    @details ``record`` keeps a history of package operations and notes pending
    reboots; ``fold`` applies the exit code rule: a non-zero code other than
    the reboot sentinel replaces the current exit code.
    """

    exit_code: int = constants.EXIT_CODE_SUCCESS
    reboot_required: bool = False
    steps: Tuple[StepRecord, ...] = ()

    def record(self, name: str, target: str, return_code: int) -> "DeploymentResult":
        step = StepRecord(name=name, target=target, return_code=int(return_code))
        return dataclasses.replace(
            self,
            reboot_required=self.reboot_required
            or step.return_code == constants.EXIT_CODE_REBOOT_REQUIRED,
            steps=self.steps + (step,),
        )

    def fold(self, return_code: int | None) -> "DeploymentResult":
        if return_code is None:
            return self
        code = int(return_code)
        if code in (constants.EXIT_CODE_SUCCESS, constants.EXIT_CODE_REBOOT_REQUIRED):
            return self
        return dataclasses.replace(self, exit_code=code)


@dataclasses.dataclass(frozen=True)
class DeploymentFailure:
    """!
    @brief Outcome of a run that stopped before completing its phases.
    """

    exit_code: int
    message: str
    error: BaseException | None = None
    steps: Tuple[StepRecord, ...] = ()


DeploymentOutcome = Union[DeploymentResult, DeploymentFailure]


__all__ = [
    "ApplicationDescriptor",
    "DeploymentFailure",
    "DeploymentMode",
    "DeploymentOutcome",
    "DeploymentRequest",
    "DeploymentResult",
    "InteractionLevel",
    "PackageAction",
    "StepRecord",
]
