"""!
@brief Static data for app-deploy.
@details Centralises exit codes, the default application descriptor, the
legacy product codes removed before installation, installer literals and the
registry locations used to probe installed products so the orchestrator and the
toolkit work from a single, versioned source of truth.
"""
from __future__ import annotations

from typing import Dict, Tuple

try:  # pragma: no cover - Windows registry handles are optional on test hosts.
    import winreg
except ImportError:  # pragma: no cover - non-Windows hosts use the documented values.
    winreg = None  # type: ignore[assignment]


if winreg is not None:  # pragma: no branch - deterministic assignments.
    HKLM = winreg.HKEY_LOCAL_MACHINE
    HKCR = winreg.HKEY_CLASSES_ROOT
else:  # pragma: no cover - exercised implicitly in non-Windows CI.
    HKLM = 0x80000002
    HKCR = 0x80000000


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_CODE_SUCCESS = 0
"""!
@brief Deployment completed without errors.
"""

EXIT_CODE_REBOOT_REQUIRED = 3010
"""!
@brief Windows Installer success code signalling that a reboot is pending.
"""

EXIT_CODE_USER_DEFERRED = 1618
"""!
@brief Returned when the operator defers or a prerequisite check postpones the run.
"""

EXIT_CODE_SCRIPT_FAILURE = 60001
"""!
@brief Sentinel for any unhandled fault raised while a phase executes.
"""

EXIT_CODE_TOOLKIT_LOAD_FAILURE = 60008
"""!
@brief Sentinel for toolkit or manifest initialisation failures.
"""

# ---------------------------------------------------------------------------
# Default application package
# ---------------------------------------------------------------------------

DEFAULT_DESCRIPTOR: Dict[str, str] = {
    "vendor": "Contoso",
    "name": "Statistics Suite",
    "version": "29.0.1",
    "architecture": "x64",
    "locale": "EN",
    "revision": "01",
}

LEGACY_PRODUCT_CODES: Tuple[str, ...] = (
    # 26.0
    "{5B6A0D73-6C38-4C5C-9A52-2D3F8E1B7C40}",
    # 27.0
    "{A0C4E2F1-3B7D-4E89-8C16-7F52D9B3A614}",
    # 28.0
    "{E37F1C92-5D4A-4B60-A8E3-19C6B2F07D58}",
    # 28.0.1 fix pack
    "{0D9B6E45-A21C-4F73-B58D-C4E7193A62FB}",
)

UNINSTALL_PRODUCT_CODE = "{7C2E9A14-8F36-4D1B-9E05-B3A6D48C1F27}"

DEFAULT_PACKAGE_PATH = "Contoso Statistics Suite 29 x64.msi"
DEFAULT_TRANSFORM = "1033.mst"
DEFAULT_FILES_DIRECTORY = "Files"

DEFAULT_SILENT_FLAGS: Tuple[str, ...] = ("/qn", "ALLUSERS=1", "REBOOT=ReallySuppress")
DEFAULT_COMPANY_NAME = "Contoso University"
DEFAULT_LICENSE_TYPE = "Network"
DEFAULT_LICENSE_SERVER = "lic01.contoso.edu"

LICENSE_TYPES: Tuple[str, ...] = ("Network", "Authorized", "Site")

REMOVAL_PARAMETERS: Tuple[str, ...] = ("/qn", "REBOOT=ReallySuppress", "IGNOREDEPENDENCIES=ALL")
"""!
@brief ``msiexec /x`` arguments forcing a quiet, dependency-agnostic removal.
"""

ZERO_CONFIG_INSTALL_PARAMETERS: Tuple[str, ...] = ("/qn", "REBOOT=ReallySuppress")

CLOSE_TARGETS: Tuple[str, ...] = ("stats.exe", "statsvr.exe")

UNINSTALL_COUNTDOWN_SECONDS = 60

DEFAULT_EXECUTION_POLICY = "Bypass"

EXECUTION_POLICIES: Tuple[str, ...] = (
    "AllSigned",
    "Bypass",
    "Default",
    "RemoteSigned",
    "Restricted",
    "Undefined",
    "Unrestricted",
)

DEFAULT_TOOLKIT_MODULE = "app_deploy.native_toolkit"
TOOLKIT_ENVIRONMENT_VARIABLE = "APP_DEPLOY_TOOLKIT"

# ---------------------------------------------------------------------------
# Windows Installer registry locations
# ---------------------------------------------------------------------------

MSI_UNINSTALL_ROOTS: Tuple[Tuple[int, str], ...] = (
    (HKLM, r"SOFTWARE\Microsoft\Windows\CurrentVersion\Uninstall"),
    (HKLM, r"SOFTWARE\WOW6432Node\Microsoft\Windows\CurrentVersion\Uninstall"),
)

MSI_INSTALLER_PRODUCTS_ROOT: Tuple[int, str] = (HKCR, r"Installer\Products")
