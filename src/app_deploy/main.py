"""!
@brief Primary entry point for the app-deploy CLI.
@details Parses the deployment parameters, loads the toolkit module and the
deployment manifest, configures logging, and hands control to
:func:`app_deploy.orchestrator.deploy`. Initialisation failures are reported
on stderr with exit code 60008 before any phase runs.
"""
from __future__ import annotations

import argparse
import os
import pathlib
import sys
from typing import Iterable, Optional

from . import (
    command_runner,
    constants,
    fs_tools,
    logging_ext,
    orchestrator,
    version,
)
from .manifest import DeploymentManifest, ManifestError, load_manifest
from .models import DeploymentMode, DeploymentRequest, InteractionLevel
from .toolkit import ToolkitLoadError, load_toolkit


def _choice(enum_type):  # type: ignore[no-untyped-def]
    """!
    @brief argparse ``type=`` callable accepting enum values in any letter case.
    """

    def _parse(value: str):  # type: ignore[no-untyped-def]
        try:
            return enum_type.parse(value)
        except ValueError as exc:
            raise argparse.ArgumentTypeError(str(exc)) from exc

    _parse.__name__ = enum_type.__name__
    return _parse


def build_arg_parser() -> argparse.ArgumentParser:
    """!
    @brief Create the top-level argument parser.
    """

    parser = argparse.ArgumentParser(
        prog="app-deploy",
        description="Install or uninstall the packaged application in Pre/Main/Post phases.",
        add_help=True,
    )
    metadata = version.build_info()
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"{metadata['version']} ({metadata['build']})",
    )

    deployment = parser.add_argument_group("Deployment")
    deployment.add_argument(
        "-t",
        "--deployment-type",
        type=_choice(DeploymentMode),
        default=DeploymentMode.INSTALL,
        metavar="{Install,Uninstall}",
        help="Deployment to perform (default: Install).",
    )
    deployment.add_argument(
        "-m",
        "--deploy-mode",
        type=_choice(InteractionLevel),
        default=InteractionLevel.INTERACTIVE,
        metavar="{Interactive,Silent,NonInteractive}",
        help="How much the deployment may interact with the user (default: Interactive).",
    )
    deployment.add_argument(
        "--allow-reboot-passthru",
        action="store_true",
        help="Return 3010 instead of 0 when a step reports that a reboot is required.",
    )
    deployment.add_argument(
        "--terminal-server-mode",
        action="store_true",
        help="Switch a Remote Desktop Session Host to install mode for the duration of the run.",
    )
    deployment.add_argument(
        "--disable-logging",
        action="store_true",
        help="Do not write log files.",
    )

    runtime = parser.add_argument_group("Runtime")
    runtime.add_argument("--config", metavar="FILE", help="JSON manifest overriding the built-in package settings.")
    runtime.add_argument("--logdir", metavar="DIR", help="Directory for human/JSONL log output.")
    runtime.add_argument(
        "--toolkit",
        metavar="MODULE",
        help=(
            "Python module providing create_toolkit() "
            f"(default: ${constants.TOOLKIT_ENVIRONMENT_VARIABLE} or {constants.DEFAULT_TOOLKIT_MODULE})."
        ),
    )
    runtime.add_argument("--dry-run", action="store_true", help="Log installer commands without executing them.")
    runtime.add_argument("--timeout", metavar="SEC", type=int, help="Upper bound in seconds for each external command.")
    runtime.add_argument("--json", action="store_true", help="Mirror structured events to stdout.")
    return parser


def build_request(args: argparse.Namespace) -> DeploymentRequest:
    """!
    @brief Translate parsed CLI arguments into a :class:`DeploymentRequest`.
    """

    return DeploymentRequest(
        mode=args.deployment_type,
        interaction=args.deploy_mode,
        allow_reboot_passthrough=bool(args.allow_reboot_passthru),
        terminal_server_mode=bool(args.terminal_server_mode),
        logging_enabled=not bool(args.disable_logging),
    )


def _resolve_toolkit_module(candidate: Optional[str]) -> str:
    if candidate:
        return candidate
    return os.environ.get(constants.TOOLKIT_ENVIRONMENT_VARIABLE) or constants.DEFAULT_TOOLKIT_MODULE


def _resolve_log_directory(candidate: Optional[str]) -> pathlib.Path:
    """!
    @brief Determine the log directory, falling back to the platform default.
    """

    if candidate:
        return pathlib.Path(candidate).expanduser().resolve()
    return fs_tools.get_default_log_directory().expanduser()


def _bootstrap_logging(
    args: argparse.Namespace, request: DeploymentRequest, manifest: DeploymentManifest
) -> None:
    log_name = manifest.descriptor.log_name(request.mode)
    logdir = _resolve_log_directory(args.logdir) if request.logging_enabled else None
    logging_ext.setup_logging(logdir, log_name=log_name, json_to_stdout=bool(args.json))


def _report_startup_failure(message: str) -> int:
    print(f"Error: {message}", file=sys.stderr)
    return constants.EXIT_CODE_TOOLKIT_LOAD_FAILURE


def main(argv: Optional[Iterable[str]] = None) -> int:
    """!
    @brief Entry point invoked by the ``app-deploy`` console script.
    @returns Process exit code integer.
    """

    parser = build_arg_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    request = build_request(args)

    try:
        factory = load_toolkit(_resolve_toolkit_module(args.toolkit))
    except ToolkitLoadError as exc:
        return _report_startup_failure(str(exc))

    try:
        manifest = load_manifest(args.config)
    except ManifestError as exc:
        return _report_startup_failure(str(exc))

    try:
        _bootstrap_logging(args, request, manifest)
    except OSError as exc:
        return _report_startup_failure(f"Unable to initialise logging: {exc}")

    command_runner.set_global_timeout(args.timeout)
    logging_ext.get_machine_logger().info(
        "startup",
        extra={
            "event": "startup",
            "mode": request.mode.value,
            "interaction": request.interaction.value,
            "dry_run": bool(args.dry_run),
            "allow_reboot_passthrough": request.allow_reboot_passthrough,
            "terminal_server_mode": request.terminal_server_mode,
        },
    )

    try:
        toolkit = factory(request, manifest, dry_run=bool(args.dry_run))
    except Exception as exc:
        return _report_startup_failure(f"Toolkit initialisation failed: {exc}")
    return orchestrator.deploy(request, toolkit, manifest)


if __name__ == "__main__":  # pragma: no cover - for manual execution
    sys.exit(main())
