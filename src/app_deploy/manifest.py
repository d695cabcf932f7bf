"""!
@brief Deployment manifest: every literal the orchestrator is parameterised by.
@details The built-in defaults describe the packaged application. A JSON file
passed through ``--config`` overrides any subset of them. Validation happens
when the manifest is built so the orchestrator never sees a malformed product
code, an unknown licensing mode, or a missing package path.
"""
from __future__ import annotations

import dataclasses
import json
import pathlib
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from . import constants
from .guid_utils import GuidError, normalize_guid
from .models import ApplicationDescriptor


class ManifestError(ValueError):
    """!
    @brief Raised when a manifest file cannot be read or fails validation.
    """


class LegacyResultPolicy(str, Enum):
    """!
    @brief Which legacy-removal result code is folded into the exit code.
    @details ``LAST`` keeps the long-standing behaviour of checking only the
    final removal. ``FIRST_FAILURE`` folds the first failing removal instead.
    """

    LAST = "last"
    FIRST_FAILURE = "first-failure"


@dataclasses.dataclass(frozen=True)
class InstallParameters:
    """!
    @brief Explicit set of properties passed to ``msiexec /i``.
    @details ``render`` produces the argument tokens in a stable order: silent
    flags, ``COMPANYNAME``, licensing properties, then any extra properties.
    Each ``NAME=value`` pair stays one argument so values containing spaces
    are quoted as a whole when the command line is built.
    """

    silent_flags: Tuple[str, ...] = constants.DEFAULT_SILENT_FLAGS
    company_name: str = constants.DEFAULT_COMPANY_NAME
    license_type: str = constants.DEFAULT_LICENSE_TYPE
    license_server: str = constants.DEFAULT_LICENSE_SERVER
    properties: Tuple[Tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        if self.license_type not in constants.LICENSE_TYPES:
            raise ManifestError(
                "license_type must be one of: " + ", ".join(constants.LICENSE_TYPES)
            )
        if self.license_type == "Network" and not self.license_server.strip():
            raise ManifestError("Network licensing requires a license_server address")
        for key, _ in self.properties:
            if not key or not key.replace("_", "").isalnum() or key.upper() != key:
                raise ManifestError(f"MSI property names must be upper-case identifiers: {key!r}")

    def render(self) -> Tuple[str, ...]:
        tokens = list(self.silent_flags)
        if self.company_name:
            tokens.append(f"COMPANYNAME={self.company_name}")
        tokens.append(f"LICENSETYPE={self.license_type}")
        if self.license_type == "Network":
            tokens.append(f"LSHOST={self.license_server}")
        tokens.extend(f"{key}={value}" for key, value in self.properties)
        return tuple(tokens)


@dataclasses.dataclass(frozen=True)
class InstallPackage:
    """!
    @brief The MSI installed on the Install branch and its locale transform.
    """

    package_path: pathlib.Path
    transform: Optional[pathlib.Path] = None
    parameters: InstallParameters = dataclasses.field(default_factory=InstallParameters)


@dataclasses.dataclass(frozen=True)
class DeploymentManifest:
    """!
    @brief Validated configuration consumed by the orchestrator and the toolkit.
    @details ``install`` is ``None`` on the Zero-Config path, where the toolkit
    discovers the single package in ``files_dir`` instead.
    """

    descriptor: ApplicationDescriptor
    legacy_product_codes: Tuple[str, ...]
    install: Optional[InstallPackage]
    uninstall_product_code: Optional[str]
    files_dir: pathlib.Path
    close_targets: Tuple[str, ...] = constants.CLOSE_TARGETS
    uninstall_countdown_seconds: int = constants.UNINSTALL_COUNTDOWN_SECONDS
    persist_prompt: bool = True
    check_disk_space: bool = True
    required_disk_space_mb: int = 0
    removal_parameters: Tuple[str, ...] = constants.REMOVAL_PARAMETERS
    legacy_result_policy: LegacyResultPolicy = LegacyResultPolicy.LAST
    fold_install_result: bool = False
    completion_message: str = ""
    execution_policy: str = constants.DEFAULT_EXECUTION_POLICY
    secure_parameters: bool = False

    @property
    def zero_config(self) -> bool:
        return self.install is None


_TOP_LEVEL_KEYS = {
    "descriptor",
    "legacy_product_codes",
    "install",
    "uninstall_product_code",
    "files_dir",
    "close_targets",
    "uninstall_countdown_seconds",
    "persist_prompt",
    "check_disk_space",
    "required_disk_space_mb",
    "removal_parameters",
    "legacy_result_policy",
    "fold_install_result",
    "completion_message",
    "execution_policy",
    "secure_parameters",
}

_DEFAULT_INSTALL: Dict[str, Any] = {
    "package_path": constants.DEFAULT_PACKAGE_PATH,
    "transform": constants.DEFAULT_TRANSFORM,
    "parameters": {},
}


def default_manifest(base_dir: pathlib.Path | None = None) -> DeploymentManifest:
    """!
    @brief Build the manifest for the packaged application without any overrides.
    """

    return build_manifest({}, base_dir=base_dir)


def load_manifest(config_path: str | pathlib.Path | None) -> DeploymentManifest:
    """!
    @brief Load a JSON manifest file and merge it over the built-in defaults.
    @param config_path Path to the JSON file, or ``None`` for defaults only.
    @returns Validated :class:`DeploymentManifest`.
    @throws ManifestError If the file is missing, unreadable, not a JSON
    object, or fails validation.
    """

    if not config_path:
        return default_manifest()

    path = pathlib.Path(config_path).expanduser().resolve()
    if not path.exists():
        raise ManifestError(f"Manifest file not found: {path}")

    try:
        with open(path, encoding="utf-8") as handle:
            data = json.load(handle)
    except json.JSONDecodeError as exc:
        raise ManifestError(f"Invalid JSON in manifest file: {path}\n{exc}") from exc
    except OSError as exc:
        raise ManifestError(f"Cannot read manifest file: {path}\n{exc}") from exc

    if not isinstance(data, dict):
        raise ManifestError(f"Manifest file must contain a JSON object: {path}")
    return build_manifest(data, base_dir=path.parent)


def build_manifest(
    data: Mapping[str, Any], *, base_dir: pathlib.Path | None = None
) -> DeploymentManifest:
    """!
    @brief Validate ``data`` and merge it over the defaults.
    @details Relative ``files_dir`` values resolve against ``base_dir`` (the
    manifest's directory, or the working directory for defaults). Relative
    package and transform paths resolve against ``files_dir``.
    """

    unknown = sorted(set(data) - _TOP_LEVEL_KEYS)
    if unknown:
        raise ManifestError("Unknown manifest keys: " + ", ".join(unknown))

    base = pathlib.Path(base_dir) if base_dir is not None else pathlib.Path.cwd()
    files_dir = _resolve(base, _string(data, "files_dir", constants.DEFAULT_FILES_DIRECTORY))

    descriptor_data = dict(constants.DEFAULT_DESCRIPTOR)
    raw_descriptor = data.get("descriptor", {})
    if not isinstance(raw_descriptor, Mapping):
        raise ManifestError("descriptor must be an object")
    unknown_descriptor = sorted(set(raw_descriptor) - set(descriptor_data))
    if unknown_descriptor:
        raise ManifestError("Unknown descriptor keys: " + ", ".join(unknown_descriptor))
    descriptor_data.update({key: str(value) for key, value in raw_descriptor.items()})
    descriptor = ApplicationDescriptor(**descriptor_data)

    legacy_codes = tuple(
        _product_code(code, "legacy_product_codes")
        for code in _string_list(data, "legacy_product_codes", constants.LEGACY_PRODUCT_CODES)
    )

    install = _build_install(data.get("install", _DEFAULT_INSTALL), files_dir)

    raw_uninstall = data.get("uninstall_product_code", constants.UNINSTALL_PRODUCT_CODE)
    uninstall_code = (
        _product_code(raw_uninstall, "uninstall_product_code") if raw_uninstall else None
    )
    if install is not None and uninstall_code is None:
        raise ManifestError("uninstall_product_code is required unless install is null (Zero-Config)")

    countdown = _integer(
        data, "uninstall_countdown_seconds", constants.UNINSTALL_COUNTDOWN_SECONDS, minimum=1
    )
    required_space = _integer(data, "required_disk_space_mb", 0)

    try:
        policy = LegacyResultPolicy(_string(data, "legacy_result_policy", LegacyResultPolicy.LAST.value))
    except ValueError as exc:
        raise ManifestError(
            "legacy_result_policy must be one of: "
            + ", ".join(item.value for item in LegacyResultPolicy)
        ) from exc

    execution_policy = _string(data, "execution_policy", constants.DEFAULT_EXECUTION_POLICY)
    if execution_policy not in constants.EXECUTION_POLICIES:
        raise ManifestError(
            "execution_policy must be one of: " + ", ".join(constants.EXECUTION_POLICIES)
        )

    return DeploymentManifest(
        descriptor=descriptor,
        legacy_product_codes=legacy_codes,
        install=install,
        uninstall_product_code=uninstall_code,
        files_dir=files_dir,
        close_targets=_string_list(data, "close_targets", constants.CLOSE_TARGETS),
        uninstall_countdown_seconds=countdown,
        persist_prompt=_boolean(data, "persist_prompt", True),
        check_disk_space=_boolean(data, "check_disk_space", True),
        required_disk_space_mb=required_space,
        removal_parameters=_string_list(data, "removal_parameters", constants.REMOVAL_PARAMETERS),
        legacy_result_policy=policy,
        fold_install_result=_boolean(data, "fold_install_result", False),
        completion_message=_string(data, "completion_message", ""),
        execution_policy=execution_policy,
        secure_parameters=_boolean(data, "secure_parameters", False),
    )


def _build_install(raw: object, files_dir: pathlib.Path) -> Optional[InstallPackage]:
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raise ManifestError("install must be an object or null")
    unknown = sorted(set(raw) - {"package_path", "transform", "parameters"})
    if unknown:
        raise ManifestError("Unknown install keys: " + ", ".join(unknown))

    merged = dict(_DEFAULT_INSTALL)
    merged.update(raw)
    package_path = str(merged.get("package_path") or "").strip()
    if not package_path:
        raise ManifestError("install.package_path must be a non-empty path")
    transform = str(merged.get("transform") or "").strip()

    raw_parameters = merged.get("parameters") or {}
    if not isinstance(raw_parameters, Mapping):
        raise ManifestError("install.parameters must be an object")
    unknown_parameters = sorted(
        set(raw_parameters)
        - {"silent_flags", "company_name", "license_type", "license_server", "properties"}
    )
    if unknown_parameters:
        raise ManifestError("Unknown install.parameters keys: " + ", ".join(unknown_parameters))

    raw_properties = raw_parameters.get("properties", {})
    if not isinstance(raw_properties, Mapping):
        raise ManifestError("install.parameters.properties must be an object")

    parameters = InstallParameters(
        silent_flags=_string_list(raw_parameters, "silent_flags", constants.DEFAULT_SILENT_FLAGS),
        company_name=_string(raw_parameters, "company_name", constants.DEFAULT_COMPANY_NAME),
        license_type=_string(raw_parameters, "license_type", constants.DEFAULT_LICENSE_TYPE),
        license_server=_string(raw_parameters, "license_server", constants.DEFAULT_LICENSE_SERVER),
        properties=tuple((str(key), str(value)) for key, value in raw_properties.items()),
    )
    return InstallPackage(
        package_path=_resolve(files_dir, package_path),
        transform=_resolve(files_dir, transform) if transform else None,
        parameters=parameters,
    )


def _resolve(base: pathlib.Path, raw: str) -> pathlib.Path:
    candidate = pathlib.Path(raw).expanduser()
    if candidate.is_absolute():
        return candidate
    return base / candidate


def _product_code(raw: object, field: str) -> str:
    try:
        return normalize_guid(str(raw))
    except GuidError as exc:
        raise ManifestError(f"{field}: {exc}") from exc


def _string(data: Mapping[str, Any], key: str, default: str) -> str:
    value = data.get(key, default)
    if value is None:
        return default
    if not isinstance(value, str):
        raise ManifestError(f"{key} must be a string")
    return value


def _string_list(data: Mapping[str, Any], key: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    value = data.get(key, default)
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ManifestError(f"{key} must be a list of strings")
    items = tuple(str(item).strip() for item in value)
    if any(not item for item in items):
        raise ManifestError(f"{key} must not contain empty entries")
    return items


def _boolean(data: Mapping[str, Any], key: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ManifestError(f"{key} must be true or false")
    return value


def _integer(data: Mapping[str, Any], key: str, default: int, *, minimum: int = 0) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        bound = "a non-negative integer" if minimum == 0 else f"an integer of at least {minimum}"
        raise ManifestError(f"{key} must be {bound}")
    return value


__all__ = [
    "DeploymentManifest",
    "InstallPackage",
    "InstallParameters",
    "LegacyResultPolicy",
    "ManifestError",
    "build_manifest",
    "default_manifest",
    "load_manifest",
]
