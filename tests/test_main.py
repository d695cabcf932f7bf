"""!
@brief CLI entry point tests.
@details Covers argument parsing, toolkit and manifest start-up failures, and
an end-to-end dry run through the native toolkit.
"""

from __future__ import annotations

import json
import logging
import pathlib
import sys
import types

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from app_deploy import command_runner, constants, logging_ext, main, processes  # noqa: E402
from app_deploy.models import DeploymentMode, InteractionLevel  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_state(monkeypatch) -> None:
    monkeypatch.delenv(constants.TOOLKIT_ENVIRONMENT_VARIABLE, raising=False)
    yield
    command_runner.set_global_timeout(None)
    for name in (logging_ext.HUMAN_LOGGER_NAME, logging_ext.MACHINE_LOGGER_NAME):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        for flt in list(logger.filters):
            logger.removeFilter(flt)


def _install_fake_toolkit(monkeypatch, name: str, calls: list) -> None:
    """!
    @brief Register an importable module whose factory records its arguments.
    """

    class _Toolkit:
        def __init__(self, request, manifest, **options) -> None:  # type: ignore[no-untyped-def]
            calls.append((request, manifest, options))

    module = types.ModuleType(name)
    module.create_toolkit = _Toolkit  # type: ignore[attr-defined]
    monkeypatch.setitem(sys.modules, name, module)


def test_parser_defaults() -> None:
    args = main.build_arg_parser().parse_args([])
    request = main.build_request(args)

    assert request.mode is DeploymentMode.INSTALL
    assert request.interaction is InteractionLevel.INTERACTIVE
    assert request.allow_reboot_passthrough is False
    assert request.terminal_server_mode is False
    assert request.logging_enabled is True


def test_parser_accepts_any_letter_case() -> None:
    args = main.build_arg_parser().parse_args(
        [
            "-t",
            "uninstall",
            "-m",
            "NONINTERACTIVE",
            "--allow-reboot-passthru",
            "--terminal-server-mode",
            "--disable-logging",
        ]
    )
    request = main.build_request(args)

    assert request.mode is DeploymentMode.UNINSTALL
    assert request.interaction is InteractionLevel.NON_INTERACTIVE
    assert request.allow_reboot_passthrough is True
    assert request.terminal_server_mode is True
    assert request.logging_enabled is False


def test_parser_rejects_unknown_mode(capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main.build_arg_parser().parse_args(["--deploy-mode", "Loud"])

    assert excinfo.value.code == 2
    assert "Interactive" in capsys.readouterr().err


def test_missing_toolkit_module_returns_load_failure(monkeypatch, capsys) -> None:
    """!
    @brief An unimportable toolkit stops the run with 60008 before any phase.
    """

    deploy_calls: list = []
    monkeypatch.setattr(main.orchestrator, "deploy", lambda *args: deploy_calls.append(args) or 0)

    exit_code = main.main(["--toolkit", "nonexistent_module_xyz", "--disable-logging"])

    assert exit_code == constants.EXIT_CODE_TOOLKIT_LOAD_FAILURE
    assert deploy_calls == []
    assert "nonexistent_module_xyz" in capsys.readouterr().err


def test_toolkit_module_without_factory_returns_load_failure(monkeypatch) -> None:
    monkeypatch.setitem(sys.modules, "empty_toolkit_mod", types.ModuleType("empty_toolkit_mod"))

    assert main.main(["--toolkit", "empty_toolkit_mod"]) == constants.EXIT_CODE_TOOLKIT_LOAD_FAILURE


def test_toolkit_module_from_environment(monkeypatch) -> None:
    calls: list = []
    _install_fake_toolkit(monkeypatch, "env_toolkit_mod", calls)
    monkeypatch.setenv(constants.TOOLKIT_ENVIRONMENT_VARIABLE, "env_toolkit_mod")
    monkeypatch.setattr(main.orchestrator, "deploy", lambda request, toolkit, manifest: 0)

    assert main.main(["--disable-logging", "--dry-run"]) == 0
    assert len(calls) == 1
    assert calls[0][2] == {"dry_run": True}


def test_invalid_manifest_returns_load_failure(tmp_path, monkeypatch, capsys) -> None:
    config = tmp_path / "deploy.json"
    config.write_text(json.dumps({"legacy_product_codes": ["not-a-guid"]}), encoding="utf-8")
    calls: list = []
    _install_fake_toolkit(monkeypatch, "fake_toolkit_mod", calls)

    exit_code = main.main(["--toolkit", "fake_toolkit_mod", "--config", str(config)])

    assert exit_code == constants.EXIT_CODE_TOOLKIT_LOAD_FAILURE
    assert calls == []
    assert "legacy_product_codes" in capsys.readouterr().err


def test_missing_manifest_file_returns_load_failure(tmp_path) -> None:
    exit_code = main.main(["--config", str(tmp_path / "absent.json"), "--disable-logging"])

    assert exit_code == constants.EXIT_CODE_TOOLKIT_LOAD_FAILURE


def test_factory_failure_returns_load_failure(monkeypatch) -> None:
    def _broken(request, manifest, **options):  # type: ignore[no-untyped-def]
        raise RuntimeError("no display")

    module = types.ModuleType("broken_toolkit_mod")
    module.create_toolkit = _broken  # type: ignore[attr-defined]
    monkeypatch.setitem(sys.modules, "broken_toolkit_mod", module)

    exit_code = main.main(["--toolkit", "broken_toolkit_mod", "--disable-logging"])

    assert exit_code == constants.EXIT_CODE_TOOLKIT_LOAD_FAILURE


def test_dry_run_install_end_to_end(tmp_path, monkeypatch) -> None:
    """!
    @brief A silent dry run installs nothing and writes both log files.
    """

    monkeypatch.setattr(processes, "find_running", lambda names, **kwargs: [])
    logdir = tmp_path / "logs"

    exit_code = main.main(
        ["--dry-run", "-m", "Silent", "--logdir", str(logdir), "--timeout", "30"]
    )

    assert exit_code == constants.EXIT_CODE_SUCCESS
    log_name = "Contoso_StatisticsSuite_29.0.1_x64_EN_01_Install"
    human_log = logdir / f"{log_name}.log"
    machine_log = logdir / f"{log_name}.jsonl"
    assert human_log.exists()
    assert machine_log.exists()

    events = [
        json.loads(line)["event"]
        for line in machine_log.read_text(encoding="utf-8").splitlines()
        if line.strip()
    ]
    assert events[0] == "run_start"
    assert "startup" in events
    assert events.count("msi_uninstall_dry_run") == len(constants.LEGACY_PRODUCT_CODES)
    assert events.count("msi_install_dry_run") == 1
    assert events[-1] == "run_end"


def test_disable_logging_creates_no_files(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(processes, "find_running", lambda names, **kwargs: [])
    logdir = tmp_path / "logs"

    exit_code = main.main(
        ["--dry-run", "-t", "Uninstall", "-m", "Silent", "--disable-logging", "--logdir", str(logdir)]
    )

    assert exit_code == constants.EXIT_CODE_SUCCESS
    assert not logdir.exists()
