"""!
@brief Phased install/uninstall sequence.
@details Each branch runs three phase functions (pre, main, post). A phase
receives the current :class:`DeploymentResult` and returns the next one, so
the exit code is carried explicitly from phase to phase. :func:`run` turns
any fault into a :class:`DeploymentFailure` instead of raising, and
:func:`deploy` hands the final exit code to the toolkit's ``finalize``.
"""
from __future__ import annotations

from typing import Callable, Optional, Sequence, Tuple

from . import constants, fs_tools, logging_ext
from .manifest import DeploymentManifest, LegacyResultPolicy
from .models import (
    DeploymentFailure,
    DeploymentMode,
    DeploymentOutcome,
    DeploymentRequest,
    DeploymentResult,
    PackageAction,
)
from .toolkit import DeploymentDeferred, Severity, Toolkit

Phase = Callable[[DeploymentRequest, Toolkit, DeploymentManifest, DeploymentResult], DeploymentResult]

LOG_SOURCE = "app-deploy"


# ---------------------------------------------------------------------------
# Install branch
# ---------------------------------------------------------------------------


def pre_install(
    request: DeploymentRequest,
    toolkit: Toolkit,
    manifest: DeploymentManifest,
    result: DeploymentResult,
) -> DeploymentResult:
    toolkit.show_welcome(
        close_targets=manifest.close_targets,
        check_disk_space=manifest.check_disk_space,
        persist_prompt=manifest.persist_prompt,
        interaction=request.interaction,
    )
    toolkit.show_progress(interaction=request.interaction)
    return result


def remove_legacy_products(
    request: DeploymentRequest,
    toolkit: Toolkit,
    manifest: DeploymentManifest,
    result: DeploymentResult,
) -> DeploymentResult:
    """!
    @brief Remove every earlier release before the current one is installed.
    @details Every removal runs even when an earlier one failed. Only one code
    is folded into the exit code: the last removal's under
    :attr:`LegacyResultPolicy.LAST`, or the first failing removal's under
    :attr:`LegacyResultPolicy.FIRST_FAILURE`.
    """

    codes: list[int] = []
    for product_code in manifest.legacy_product_codes:
        return_code = toolkit.execute_package_operation(
            PackageAction.UNINSTALL,
            product_code,
            parameters=manifest.removal_parameters,
            passthru=True,
        )
        codes.append(return_code)
        result = result.record("legacy-removal", product_code, return_code)

    return result.fold(_select_legacy_code(codes, manifest.legacy_result_policy))


def _select_legacy_code(codes: Sequence[int], policy: LegacyResultPolicy) -> Optional[int]:
    if not codes:
        return None
    if policy is LegacyResultPolicy.FIRST_FAILURE:
        return next(
            (
                code
                for code in codes
                if code not in (constants.EXIT_CODE_SUCCESS, constants.EXIT_CODE_REBOOT_REQUIRED)
            ),
            constants.EXIT_CODE_SUCCESS,
        )
    return codes[-1]


def install_package(
    request: DeploymentRequest,
    toolkit: Toolkit,
    manifest: DeploymentManifest,
    result: DeploymentResult,
) -> DeploymentResult:
    if manifest.install is None:
        package, transform = fs_tools.discover_package(manifest.files_dir)
        parameters: Tuple[str, ...] = constants.ZERO_CONFIG_INSTALL_PARAMETERS
    else:
        package, transform = manifest.install.package_path, manifest.install.transform
        parameters = manifest.install.parameters.render()

    return_code = toolkit.execute_package_operation(
        PackageAction.INSTALL,
        str(package),
        transform=str(transform) if transform else None,
        parameters=parameters,
        secure_parameters=manifest.secure_parameters,
        passthru=True,
    )
    result = result.record("install", str(package), return_code)
    if manifest.fold_install_result:
        result = result.fold(return_code)
    return result


def main_install(
    request: DeploymentRequest,
    toolkit: Toolkit,
    manifest: DeploymentManifest,
    result: DeploymentResult,
) -> DeploymentResult:
    result = remove_legacy_products(request, toolkit, manifest, result)
    return install_package(request, toolkit, manifest, result)


def post_install(
    request: DeploymentRequest,
    toolkit: Toolkit,
    manifest: DeploymentManifest,
    result: DeploymentResult,
) -> DeploymentResult:
    if manifest.zero_config:
        toolkit.show_completion_notice(manifest.completion_message, interaction=request.interaction)
    return result


# ---------------------------------------------------------------------------
# Uninstall branch
# ---------------------------------------------------------------------------


def pre_uninstall(
    request: DeploymentRequest,
    toolkit: Toolkit,
    manifest: DeploymentManifest,
    result: DeploymentResult,
) -> DeploymentResult:
    toolkit.show_welcome(
        close_targets=manifest.close_targets,
        countdown_seconds=manifest.uninstall_countdown_seconds,
        interaction=request.interaction,
    )
    toolkit.show_progress(interaction=request.interaction)
    return result


def main_uninstall(
    request: DeploymentRequest,
    toolkit: Toolkit,
    manifest: DeploymentManifest,
    result: DeploymentResult,
) -> DeploymentResult:
    target = manifest.uninstall_product_code
    if target is None:
        package, _ = fs_tools.discover_package(manifest.files_dir)
        target = str(package)

    return_code = toolkit.execute_package_operation(
        PackageAction.UNINSTALL,
        target,
        parameters=manifest.removal_parameters,
        passthru=True,
    )
    return result.record("uninstall", target, return_code).fold(return_code)


def post_uninstall(
    request: DeploymentRequest,
    toolkit: Toolkit,
    manifest: DeploymentManifest,
    result: DeploymentResult,
) -> DeploymentResult:
    return result


INSTALL_PHASES: Tuple[Tuple[str, Phase], ...] = (
    ("pre-install", pre_install),
    ("install", main_install),
    ("post-install", post_install),
)

UNINSTALL_PHASES: Tuple[Tuple[str, Phase], ...] = (
    ("pre-uninstall", pre_uninstall),
    ("uninstall", main_uninstall),
    ("post-uninstall", post_uninstall),
)


def phases_for(mode: DeploymentMode) -> Tuple[Tuple[str, Phase], ...]:
    return UNINSTALL_PHASES if mode is DeploymentMode.UNINSTALL else INSTALL_PHASES


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def _report_failure(
    request: DeploymentRequest,
    toolkit: Toolkit,
    manifest: DeploymentManifest,
    exc: BaseException,
) -> str:
    """!
    @brief Log and display an in-phase fault through the toolkit.
    @details A toolkit that fails while reporting does not stop the run from
    finalizing; the fault is then written to the human log with its ``repr``.
    @returns The message recorded for the failure.
    """

    heading = f"{manifest.descriptor.label} {request.mode.value} failed."
    try:
        message = f"{heading}\n\n{toolkit.resolve_last_error(exc)}"
        toolkit.log(message, Severity.ERROR, LOG_SOURCE)
        toolkit.show_error_dialog(message, interaction=request.interaction, icon="Stop")
    except Exception as report_exc:
        message = f"{heading}\n\n{exc!r}"
        logging_ext.get_human_logger().error(
            "%s (error reporting failed: %r)", message, report_exc
        )
    return message


def run(
    request: DeploymentRequest,
    toolkit: Toolkit,
    manifest: DeploymentManifest,
) -> DeploymentOutcome:
    """!
    @brief Execute the phase sequence for ``request``.
    @details Never raises for faults inside the sequence. A
    :class:`DeploymentDeferred` becomes a failure carrying its own exit code.
    Any other exception is logged once through the toolkit, shown once in an
    error dialog, and reported with :data:`constants.EXIT_CODE_SCRIPT_FAILURE`.
    @returns :class:`DeploymentResult` on completion, otherwise
    :class:`DeploymentFailure`.
    """

    machine_logger = logging_ext.get_machine_logger()
    human_logger = logging_ext.get_human_logger()
    result = DeploymentResult()

    machine_logger.info(
        "deployment_start",
        extra={
            "event": "deployment_start",
            "mode": request.mode.value,
            "interaction": request.interaction.value,
            "application": manifest.descriptor.label,
            "zero_config": manifest.zero_config,
        },
    )

    try:
        toolkit.set_execution_policy(manifest.execution_policy)
        if request.terminal_server_mode:
            toolkit.set_terminal_server_mode(True)

        for name, phase in phases_for(request.mode):
            human_logger.info("Phase %s started.", name)
            result = phase(request, toolkit, manifest, result)
            machine_logger.info(
                "phase_complete",
                extra={"event": "phase_complete", "phase": name, "exit_code": result.exit_code},
            )
    except DeploymentDeferred as exc:
        human_logger.warning("Deployment deferred: %s", exc)
        return DeploymentFailure(
            exit_code=exc.exit_code,
            message=str(exc),
            error=exc,
            steps=result.steps,
        )
    except Exception as exc:
        message = _report_failure(request, toolkit, manifest, exc)
        return DeploymentFailure(
            exit_code=constants.EXIT_CODE_SCRIPT_FAILURE,
            message=message,
            error=exc,
            steps=result.steps,
        )

    return result


def exit_code_for(outcome: DeploymentOutcome, request: DeploymentRequest) -> int:
    """!
    @brief Map an outcome to the process exit status.
    @details A clean result with a pending reboot becomes ``3010`` only when
    reboot passthrough was requested.
    """

    if isinstance(outcome, DeploymentFailure):
        return outcome.exit_code
    if (
        outcome.exit_code == constants.EXIT_CODE_SUCCESS
        and outcome.reboot_required
        and request.allow_reboot_passthrough
    ):
        return constants.EXIT_CODE_REBOOT_REQUIRED
    return outcome.exit_code


def deploy(
    request: DeploymentRequest,
    toolkit: Toolkit,
    manifest: DeploymentManifest,
) -> int:
    """!
    @brief Run the deployment and finalize it through the toolkit.
    @returns The exit status returned by ``toolkit.finalize``.
    @details Finalization runs even when the run itself raises, in which case
    the script failure code is reported.
    """

    exit_code = constants.EXIT_CODE_SCRIPT_FAILURE
    try:
        outcome = run(request, toolkit, manifest)
        exit_code = exit_code_for(outcome, request)
    except Exception:
        logging_ext.get_human_logger().exception("Deployment aborted outside a phase.")
    return toolkit.finalize(exit_code)


__all__ = [
    "INSTALL_PHASES",
    "UNINSTALL_PHASES",
    "deploy",
    "exit_code_for",
    "install_package",
    "main_install",
    "main_uninstall",
    "phases_for",
    "post_install",
    "post_uninstall",
    "pre_install",
    "pre_uninstall",
    "remove_legacy_products",
    "run",
]
