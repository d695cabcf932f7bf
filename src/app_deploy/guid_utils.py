"""!
@brief GUID helpers for Windows Installer product codes.
@details Product codes arrive from the manifest in whatever shape an
administrator typed them. These helpers validate them, bring them into the
``{XXXXXXXX-XXXX-XXXX-XXXX-XXXXXXXXXXXX}`` form ``msiexec`` expects, and
produce the compressed (packed) form Windows Installer uses as the key name
under ``HKCR\\Installer\\Products``.
"""

from __future__ import annotations

import re
from typing import Final

# Standard GUID pattern: {XXXXXXXX-XXXX-XXXX-XXXX-XXXXXXXXXXXX}
_GUID_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^\{?([0-9A-Fa-f]{8})-?([0-9A-Fa-f]{4})-?([0-9A-Fa-f]{4})-?"
    r"([0-9A-Fa-f]{4})-?([0-9A-Fa-f]{12})\}?$"
)


class GuidError(ValueError):
    """!
    @brief Raised when a product code cannot be parsed as a GUID.
    """


def _swap_pairs(s: str) -> str:
    """!
    @brief Swap the two characters of every pair, e.g. ``"ABCD"`` -> ``"BADC"``.
    """
    return "".join(s[i + 1] + s[i] for i in range(0, len(s), 2))


def is_valid_guid(guid: str) -> bool:
    """!
    @brief Check if a string is a GUID, with or without braces and hyphens.
    """
    return _GUID_PATTERN.match(guid.strip()) is not None


def normalize_guid(guid: str) -> str:
    """!
    @brief Normalize a GUID to upper-case braced form.
    @param guid GUID with or without braces/hyphens; surrounding whitespace and
    NUL padding are ignored.
    @return ``{XXXXXXXX-XXXX-XXXX-XXXX-XXXXXXXXXXXX}``
    @throws GuidError If the input is not a valid GUID.
    """
    token = str(guid).strip().strip("\0")
    match = _GUID_PATTERN.match(token)
    if not match:
        raise GuidError(f"Invalid GUID format: {guid!r}")
    g1, g2, g3, g4, g5 = match.groups()
    return f"{{{g1}-{g2}-{g3}-{g4}-{g5}}}".upper()


def compress_guid(guid: str) -> str:
    """!
    @brief Convert a GUID to the 32-character packed form used in the registry.
    @throws GuidError If the input is not a valid GUID.

    @details The first three groups are reversed character by character and
    the remaining sixteen characters have each pair swapped:

    - Input:  ``{90160000-0011-0000-0000-0000000FF1CE}``
    - Output: ``00006109110000000000000000F01FEC``
    """
    match = _GUID_PATTERN.match(guid.strip())
    if not match:
        raise GuidError(f"Invalid GUID format: {guid!r}")
    g1, g2, g3, g4, g5 = (group.upper() for group in match.groups())
    return g1[::-1] + g2[::-1] + g3[::-1] + _swap_pairs(g4) + _swap_pairs(g5)


__all__ = ["GuidError", "compress_guid", "is_valid_guid", "normalize_guid"]
