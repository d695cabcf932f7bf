"""!
@brief Tests for GUID manipulation utilities.
@details Validates normalisation of administrator-supplied product codes and
the compression algorithm used for ``Installer\\Products`` key names.
"""

from __future__ import annotations

import pathlib
import sys

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from app_deploy.guid_utils import (  # noqa: E402
    GuidError,
    compress_guid,
    is_valid_guid,
    normalize_guid,
)


class TestGuidValidation:
    """Tests for GUID format validation."""

    def test_is_valid_guid_with_braces(self) -> None:
        """Standard GUID with braces should be valid."""
        assert is_valid_guid("{00000000-0000-0000-0000-000000000000}")
        assert is_valid_guid("{FFFFFFFF-FFFF-FFFF-FFFF-FFFFFFFFFFFF}")

    def test_is_valid_guid_without_braces_or_hyphens(self) -> None:
        assert is_valid_guid("12345678-1234-1234-1234-123456789ABC")
        assert is_valid_guid("12345678123412341234123456789ABC")

    def test_is_valid_guid_rejects_garbage(self) -> None:
        assert not is_valid_guid("")
        assert not is_valid_guid("{1234}")
        assert not is_valid_guid("C:\\Files\\app.msi")
        assert not is_valid_guid("{GGGGGGGG-0000-0000-0000-000000000000}")


class TestNormalizeGuid:
    """Tests for canonical product code formatting."""

    def test_upper_cases_and_adds_braces(self) -> None:
        assert (
            normalize_guid("7c2e9a14-8f36-4d1b-9e05-b3a6d48c1f27")
            == "{7C2E9A14-8F36-4D1B-9E05-B3A6D48C1F27}"
        )

    def test_strips_whitespace_and_nul_padding(self) -> None:
        assert (
            normalize_guid("  {7C2E9A14-8F36-4D1B-9E05-B3A6D48C1F27}\0")
            == "{7C2E9A14-8F36-4D1B-9E05-B3A6D48C1F27}"
        )

    def test_invalid_raises(self) -> None:
        with pytest.raises(GuidError):
            normalize_guid("not-a-guid")

    def test_guid_error_is_value_error(self) -> None:
        assert issubclass(GuidError, ValueError)


class TestCompressGuid:
    """Tests for the packed registry form."""

    def test_known_value(self) -> None:
        assert (
            compress_guid("{90160000-0011-0000-0000-0000000FF1CE}")
            == "00006109110000000000000000F01FEC"
        )

    def test_lower_case_input(self) -> None:
        assert compress_guid("{90160000-0011-0000-0000-0000000ff1ce}") == compress_guid(
            "{90160000-0011-0000-0000-0000000FF1CE}"
        )

    def test_invalid_raises(self) -> None:
        with pytest.raises(GuidError):
            compress_guid("{1234}")
