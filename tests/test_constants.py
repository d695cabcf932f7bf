"""!
@brief Sanity checks for the static deployment data.
"""

from __future__ import annotations

import pathlib
import sys

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from app_deploy import constants, version  # noqa: E402
from app_deploy.guid_utils import normalize_guid  # noqa: E402


def test_exit_codes_are_distinct() -> None:
    codes = {
        constants.EXIT_CODE_SUCCESS,
        constants.EXIT_CODE_REBOOT_REQUIRED,
        constants.EXIT_CODE_USER_DEFERRED,
        constants.EXIT_CODE_SCRIPT_FAILURE,
        constants.EXIT_CODE_TOOLKIT_LOAD_FAILURE,
    }
    assert codes == {0, 3010, 1618, 60001, 60008}


def test_product_codes_are_canonical() -> None:
    for code in (*constants.LEGACY_PRODUCT_CODES, constants.UNINSTALL_PRODUCT_CODE):
        assert normalize_guid(code) == code
    assert constants.UNINSTALL_PRODUCT_CODE not in constants.LEGACY_PRODUCT_CODES
    assert len(set(constants.LEGACY_PRODUCT_CODES)) == len(constants.LEGACY_PRODUCT_CODES)


def test_removal_parameters_are_quiet_and_suppress_reboot() -> None:
    assert "/qn" in constants.REMOVAL_PARAMETERS
    assert "REBOOT=ReallySuppress" in constants.REMOVAL_PARAMETERS
    assert "REBOOT=ReallySuppress" in constants.DEFAULT_SILENT_FLAGS


def test_default_execution_policy_is_known() -> None:
    assert constants.DEFAULT_EXECUTION_POLICY in constants.EXECUTION_POLICIES
    assert constants.DEFAULT_LICENSE_TYPE in constants.LICENSE_TYPES


def test_installer_locations_use_machine_hives() -> None:
    hives = {hive for hive, _ in constants.MSI_UNINSTALL_ROOTS}
    assert hives == {constants.HKLM}
    assert constants.MSI_INSTALLER_PRODUCTS_ROOT[0] == constants.HKCR


def test_build_info_reports_packaged_version() -> None:
    info = version.build_info()
    assert info["version"] == version.__version__
    assert info["version"].count(".") == 2
    assert info["build"] == version.__build__
