"""!
@brief Tests for filesystem helper utilities.
@details Validates package discovery, disk space helpers, and default
directory resolution implemented in :mod:`app_deploy.fs_tools`.
"""

from __future__ import annotations

import pathlib
import sys
from types import SimpleNamespace

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from app_deploy import fs_tools  # noqa: E402


def test_discover_package_returns_msi_and_transform(tmp_path) -> None:
    """!
    @brief A single package and a single transform are both returned.
    """

    (tmp_path / "app.MSI").write_bytes(b"")
    (tmp_path / "1033.mst").write_bytes(b"")
    (tmp_path / "readme.txt").write_text("x", encoding="utf-8")

    package, transform = fs_tools.discover_package(tmp_path)

    assert package == tmp_path / "app.MSI"
    assert transform == tmp_path / "1033.mst"


def test_discover_package_ignores_ambiguous_transforms(tmp_path) -> None:
    (tmp_path / "app.msi").write_bytes(b"")
    (tmp_path / "1033.mst").write_bytes(b"")
    (tmp_path / "1031.mst").write_bytes(b"")

    package, transform = fs_tools.discover_package(tmp_path)

    assert package == tmp_path / "app.msi"
    assert transform is None


@pytest.mark.parametrize("count", [0, 2])
def test_discover_package_requires_exactly_one_msi(tmp_path, count: int) -> None:
    for index in range(count):
        (tmp_path / f"app{index}.msi").write_bytes(b"")

    with pytest.raises(fs_tools.PackageDiscoveryError, match=f"found {count}"):
        fs_tools.discover_package(tmp_path)


def test_discover_package_missing_directory(tmp_path) -> None:
    with pytest.raises(fs_tools.PackageDiscoveryError, match="not found"):
        fs_tools.discover_package(tmp_path / "Files")


def test_directory_size_rounds_up(tmp_path) -> None:
    nested = tmp_path / "Files" / "support"
    nested.mkdir(parents=True)
    (nested / "data.bin").write_bytes(b"\0" * 1024)
    (tmp_path / "Files" / "app.msi").write_bytes(b"\0" * (1024 * 1024))

    assert fs_tools.directory_size_mb(tmp_path / "Files") == 2
    assert fs_tools.directory_size_mb(tmp_path / "missing") == 0


def test_free_space_uses_disk_usage(monkeypatch) -> None:
    monkeypatch.setattr(
        fs_tools.shutil,
        "disk_usage",
        lambda path: SimpleNamespace(total=0, used=0, free=5 * 1024 * 1024 + 10),
    )

    assert fs_tools.free_space_mb("/") == 5


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX default location")
def test_default_log_directory_posix(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(fs_tools.pathlib.Path, "home", classmethod(lambda cls: tmp_path))

    assert fs_tools.get_default_log_directory() == tmp_path / ".app-deploy" / "logs"
