"""!
@brief Structured logging helpers for app-deploy.
@details Implements the dual-stream pipeline: a rotating human-readable text
log and a rotating JSONL telemetry log, both named after the application and
deployment type. Startup metadata sourced from :mod:`app_deploy.version` is
recorded so deployment tooling can correlate log bundles. When logging is
disabled both channels receive a ``NullHandler`` and no files are created.
"""
from __future__ import annotations

import datetime as _dt
import json
import logging
import sys
import uuid
from logging import handlers
from pathlib import Path
from typing import Dict, Iterable, Mapping, Tuple

from . import version

HUMAN_LOGGER_NAME = "app_deploy.human"
"""!
@brief Logger name for human-readable output.
"""

MACHINE_LOGGER_NAME = "app_deploy.machine"
"""!
@brief Logger name for JSONL telemetry output.
"""

DEFAULT_LOG_NAME = "app-deploy"

_STANDARD_RECORD_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "message",
        "asctime",
        "channel",
    }
)

_CURRENT_LOG_DIRECTORY: Path | None = None
_CURRENT_LOG_NAME: str = DEFAULT_LOG_NAME
_RUN_METADATA: Dict[str, object] | None = None


class _ChannelFilter(logging.Filter):
    """!
    @brief Inject a fixed ``channel`` attribute on log records.
    """

    def __init__(self, channel: str) -> None:
        super().__init__()
        self._channel = channel

    def filter(self, record: logging.LogRecord) -> bool:
        record.channel = self._channel
        return True


class _JsonLineFormatter(logging.Formatter):
    """!
    @brief Format ``LogRecord`` instances as single-line JSON objects.
    @details Standard metadata (timestamp, level, logger, message, channel) is
    merged with any ``extra`` attributes supplied by the caller. Values that
    are not JSON serializable are coerced to their ``repr``.
    """

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - concise override
        moment = _dt.datetime.fromtimestamp(record.created, tz=_dt.timezone.utc)
        payload: Dict[str, object] = {
            "timestamp": moment.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "channel": getattr(record, "channel", "machine"),
        }
        payload.update(_extract_extras(record))
        try:
            return json.dumps(payload, ensure_ascii=False)
        except TypeError:
            sanitized = {key: _coerce_json(value) for key, value in payload.items()}
            return json.dumps(sanitized, ensure_ascii=False)


def _extract_extras(record: logging.LogRecord) -> Dict[str, object]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_RECORD_KEYS
    }


def _coerce_json(value: object) -> object:
    try:
        json.dumps(value)
    except TypeError:
        return repr(value)
    return value


def _configure_logger(
    logger: logging.Logger,
    formatter: logging.Formatter | None,
    handlers_to_add: Iterable[logging.Handler],
) -> None:
    """!
    @brief Reset a logger and attach the supplied handlers.
    """

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for flt in list(logger.filters):
        logger.removeFilter(flt)
    for handler in handlers_to_add:
        if formatter is not None:
            handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.propagate = False


def setup_logging(
    root_dir: Path | None,
    *,
    log_name: str = DEFAULT_LOG_NAME,
    json_to_stdout: bool = False,
    level: int = logging.INFO,
) -> Tuple[logging.Logger, logging.Logger]:
    """!
    @brief Set up human and machine loggers.
    @details Returns the human-readable and structured loggers. With a
    ``root_dir`` the directory is created and ``<log_name>.log`` plus
    ``<log_name>.jsonl`` rotate at 1 MiB with five backups. ``root_dir=None``
    disables file logging entirely; ``json_to_stdout`` still mirrors the
    machine channel to stdout.
    """

    global _CURRENT_LOG_DIRECTORY, _CURRENT_LOG_NAME

    _CURRENT_LOG_NAME = log_name
    human_logger = logging.getLogger(HUMAN_LOGGER_NAME)
    machine_logger = logging.getLogger(MACHINE_LOGGER_NAME)
    human_logger.setLevel(level)
    machine_logger.setLevel(level)

    human_formatter = logging.Formatter(
        "%(asctime)s %(levelname)-8s [%(channel)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    machine_formatter = _JsonLineFormatter()

    human_handlers: list[logging.Handler] = []
    machine_handlers: list[logging.Handler] = []

    if root_dir is not None:
        root_dir = Path(root_dir)
        root_dir.mkdir(parents=True, exist_ok=True)
        _CURRENT_LOG_DIRECTORY = root_dir
        human_handlers.append(
            handlers.RotatingFileHandler(
                root_dir / f"{log_name}.log",
                maxBytes=1_048_576,
                backupCount=5,
                encoding="utf-8",
            )
        )
        machine_handlers.append(
            handlers.RotatingFileHandler(
                root_dir / f"{log_name}.jsonl",
                maxBytes=1_048_576,
                backupCount=5,
                encoding="utf-8",
            )
        )
    else:
        _CURRENT_LOG_DIRECTORY = None
        human_handlers.append(logging.NullHandler())

    if json_to_stdout:
        machine_handlers.append(logging.StreamHandler(stream=sys.stdout))
    if not machine_handlers:
        machine_handlers.append(logging.NullHandler())

    _configure_logger(human_logger, human_formatter, human_handlers)
    _configure_logger(machine_logger, machine_formatter, machine_handlers)

    human_logger.addFilter(_ChannelFilter("human"))
    machine_logger.addFilter(_ChannelFilter("machine"))

    _emit_run_metadata(human_logger, machine_logger)

    return human_logger, machine_logger


def shutdown_logging() -> None:
    """!
    @brief Flush and close every handler attached to the app-deploy loggers.
    """

    for name in (HUMAN_LOGGER_NAME, MACHINE_LOGGER_NAME):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            handler.flush()
            handler.close()
            logger.removeHandler(handler)


def get_human_logger() -> logging.Logger:
    """!
    @brief Retrieve the configured human-readable logger.
    """

    return logging.getLogger(HUMAN_LOGGER_NAME)


def get_machine_logger() -> logging.Logger:
    """!
    @brief Retrieve the configured machine/JSON logger.
    """

    return logging.getLogger(MACHINE_LOGGER_NAME)


def get_log_directory() -> Path | None:
    """!
    @brief Return the configured log directory, or ``None`` when file logging is off.
    """

    return _CURRENT_LOG_DIRECTORY


def get_log_name() -> str:
    return _CURRENT_LOG_NAME


def get_run_metadata() -> Mapping[str, object] | None:
    """!
    @brief Return the most recent run metadata payload.
    @details Contains ``run_id`` (UUID4 hex), ``timestamp`` in ISO-8601 UTC,
    version/build identifiers, the interpreter version, and the log directory.
    """

    return dict(_RUN_METADATA) if _RUN_METADATA is not None else None


def _emit_run_metadata(human_logger: logging.Logger, machine_logger: logging.Logger) -> None:
    global _RUN_METADATA

    moment = _dt.datetime.now(tz=_dt.timezone.utc)
    _RUN_METADATA = {
        "run_id": uuid.uuid4().hex,
        "timestamp": moment.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        "version": version.__version__,
        "build": version.__build__,
        "python": sys.version.split()[0],
        "logdir": str(_CURRENT_LOG_DIRECTORY) if _CURRENT_LOG_DIRECTORY else None,
    }

    human_logger.info(
        "app-deploy %s (%s) starting, run %s",
        version.__version__,
        version.__build__,
        _RUN_METADATA["run_id"],
    )
    if _CURRENT_LOG_DIRECTORY is not None:
        human_logger.info("Logs directory: %s", _CURRENT_LOG_DIRECTORY)

    machine_logger.info("run_start", extra={"event": "run_start", "run": dict(_RUN_METADATA)})
