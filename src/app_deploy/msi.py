"""!
@brief Windows Installer command composition and execution.
@details Builds ``msiexec`` command lines for installing a package (with an
optional transform) and for removing a product by code or by package path,
probes the registry so products that are already gone are skipped, and runs
the command through :mod:`app_deploy.command_runner` so telemetry stays
uniform. No retries are attempted; the caller decides what a non-zero code
means.
"""
from __future__ import annotations

import pathlib
from typing import Iterable, List, Mapping, Sequence

from . import command_runner, constants, logging_ext, registry_tools
from .guid_utils import compress_guid, is_valid_guid, normalize_guid
from .models import PackageAction

MSIEXEC = "msiexec.exe"

MSIEXEC_TIMEOUT = 3600
"""!
@brief Maximum seconds to wait for a single ``msiexec`` invocation.
"""


def is_product_code(target: str) -> bool:
    return is_valid_guid(str(target))


def is_product_installed(product_code: str) -> bool:
    """!
    @brief Report whether ``product_code`` is still registered with Windows Installer.
    @details Checks the 64-bit and 32-bit uninstall roots and the packed key
    under ``HKCR\\Installer\\Products``.
    """

    normalized = normalize_guid(product_code)
    handles = [(hive, f"{base}\\{normalized}") for hive, base in constants.MSI_UNINSTALL_ROOTS]
    hive, base = constants.MSI_INSTALLER_PRODUCTS_ROOT
    handles.append((hive, f"{base}\\{compress_guid(normalized)}"))

    for hive, path in handles:
        if registry_tools.key_exists(hive, path):
            logging_ext.get_human_logger().debug(
                "%s registered at %s\\%s", normalized, registry_tools.hive_name(hive), path
            )
            return True
    return False


def build_install_command(
    package_path: str | pathlib.Path,
    *,
    transform: str | pathlib.Path | None = None,
    parameters: Sequence[str] = (),
    log_path: str | pathlib.Path | None = None,
) -> List[str]:
    """!
    @brief Compose ``msiexec /i`` for ``package_path``.
    """

    package = str(package_path).strip()
    if not package:
        raise ValueError("package_path must be non-empty")
    command = [MSIEXEC, "/i", package]
    if transform:
        command.append(f"TRANSFORMS={transform}")
    command.extend(str(part) for part in parameters if str(part).strip())
    if log_path:
        command.extend(["/L*v", str(log_path)])
    return command


def build_uninstall_command(
    target: str | pathlib.Path,
    *,
    parameters: Sequence[str] = (),
    log_path: str | pathlib.Path | None = None,
) -> List[str]:
    """!
    @brief Compose ``msiexec /x`` for a product code or a package path.
    @throws ValueError If ``target`` is empty.
    """

    text = str(target).strip()
    if not text:
        raise ValueError("target must be a product code or package path")
    identifier = normalize_guid(text) if is_product_code(text) else text
    command = [MSIEXEC, "/x", identifier]
    command.extend(str(part) for part in parameters if str(part).strip())
    if log_path:
        command.extend(["/L*v", str(log_path)])
    return command


def execute(
    action: PackageAction | str,
    target: str | pathlib.Path,
    *,
    parameters: Sequence[str] = (),
    transform: str | pathlib.Path | None = None,
    secure_parameters: bool = False,
    log_path: str | pathlib.Path | None = None,
    dry_run: bool = False,
    env_overrides: Mapping[str, str] | None = None,
) -> command_runner.CommandResult:
    """!
    @brief Run one Windows Installer operation and return its outcome.
    @details Removing a product code that is no longer registered is skipped
    with a ``0`` result, matching what ``msiexec`` reports for a clean
    removal. With ``secure_parameters`` the parameter tokens are masked in
    every log record.
    @param action :class:`PackageAction` or its string value.
    @param target Package path for installs; product code or package path for
    removals.
    """

    human_logger = logging_ext.get_human_logger()
    machine_logger = logging_ext.get_machine_logger()
    resolved_action = PackageAction.parse(action)
    target_text = str(target).strip()

    if resolved_action is PackageAction.INSTALL:
        command = build_install_command(
            target_text, transform=transform, parameters=parameters, log_path=log_path
        )
        message = f"Installing {target_text}"
    else:
        if is_product_code(target_text):
            target_text = normalize_guid(target_text)
            if not dry_run and not is_product_installed(target_text):
                human_logger.info("%s is not installed; skipping msiexec.", target_text)
                machine_logger.info(
                    "msi_not_installed",
                    extra={"event": "msi_not_installed", "product_code": target_text},
                )
                return command_runner.CommandResult(
                    command=[],
                    returncode=constants.EXIT_CODE_SUCCESS,
                    stdout="",
                    stderr="",
                    duration=0.0,
                    skipped=True,
                )
        command = build_uninstall_command(target_text, parameters=parameters, log_path=log_path)
        message = f"Removing {target_text}"

    secrets: Iterable[str] = list(parameters) if secure_parameters else ()
    return command_runner.run_command(
        command,
        event=f"msi_{resolved_action.value.lower()}",
        timeout=MSIEXEC_TIMEOUT,
        dry_run=dry_run,
        human_message=message,
        extra={"action": resolved_action.value, "target": target_text},
        env_overrides=env_overrides,
        secrets=secrets,
    )


__all__ = [
    "MSIEXEC",
    "MSIEXEC_TIMEOUT",
    "build_install_command",
    "build_uninstall_command",
    "execute",
    "is_product_code",
    "is_product_installed",
]
