"""!
@brief Filesystem helpers: log location, disk space, package discovery.
"""
from __future__ import annotations

import os
import pathlib
import shutil
from typing import Iterable, Optional, Tuple


class PackageDiscoveryError(FileNotFoundError):
    """!
    @brief Raised when the Zero-Config path cannot identify exactly one package.
    """


def get_default_log_directory() -> pathlib.Path:
    """!
    @brief Return the default directory for deployment logs.
    @details ``%SystemRoot%\\Logs\\Software`` on Windows, otherwise
    ``~/.app-deploy/logs``.
    """

    if os.name == "nt":
        system_root = os.environ.get("SystemRoot") or os.environ.get("WINDIR") or r"C:\Windows"
        return pathlib.Path(system_root) / "Logs" / "Software"
    return pathlib.Path.home() / ".app-deploy" / "logs"


def get_system_drive() -> pathlib.Path:
    """!
    @brief Return the root of the drive software installs to.
    """

    if os.name == "nt":
        drive = os.environ.get("SystemDrive", "C:")
        return pathlib.Path(f"{drive}\\")
    return pathlib.Path(pathlib.Path.cwd().anchor or "/")


def free_space_mb(path: pathlib.Path | str) -> int:
    """!
    @brief Free space in whole megabytes on the volume holding ``path``.
    """

    return int(shutil.disk_usage(str(path)).free // (1024 * 1024))


def directory_size_mb(path: pathlib.Path | str) -> int:
    """!
    @brief Total size of the files beneath ``path``, rounded up to megabytes.
    @details Missing directories count as zero.
    """

    root = pathlib.Path(path)
    if not root.is_dir():
        return 0
    total = 0
    for candidate in root.rglob("*"):
        try:
            if candidate.is_file():
                total += candidate.stat().st_size
        except OSError:
            continue
    return -(-total // (1024 * 1024))


def _single(candidates: Iterable[pathlib.Path]) -> Tuple[int, Optional[pathlib.Path]]:
    found = sorted(candidates)
    return len(found), (found[0] if len(found) == 1 else None)


def discover_package(files_dir: pathlib.Path | str) -> Tuple[pathlib.Path, Optional[pathlib.Path]]:
    """!
    @brief Locate the single ``.msi`` (and optional ``.mst``) in ``files_dir``.
    @returns ``(package_path, transform_path_or_None)``. A transform is only
    returned when exactly one ``.mst`` file sits beside the package.
    @throws PackageDiscoveryError When zero or several packages are present.
    """

    directory = pathlib.Path(files_dir)
    if not directory.is_dir():
        raise PackageDiscoveryError(f"Package directory not found: {directory}")

    count, package = _single(p for p in directory.iterdir() if p.suffix.lower() == ".msi")
    if package is None:
        raise PackageDiscoveryError(
            f"Expected exactly one .msi in {directory}, found {count}"
        )
    _, transform = _single(p for p in directory.iterdir() if p.suffix.lower() == ".mst")
    return package, transform


__all__ = [
    "PackageDiscoveryError",
    "directory_size_mb",
    "discover_package",
    "free_space_mb",
    "get_default_log_directory",
    "get_system_drive",
]
