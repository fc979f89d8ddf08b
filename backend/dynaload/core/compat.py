"""Cache artifact format compatibility."""
from __future__ import annotations

from typing import Optional

from packaging.specifiers import SpecifierSet
from packaging.version import InvalidVersion, Version

# Artifact layout written by this release, and the range it can replay.
ARTIFACT_FORMAT = "1.0"
SUPPORTED_FORMATS = ">=1.0,<2.0"

_SUPPORTED = SpecifierSet(SUPPORTED_FORMATS)


def artifact_format_supported(fmt: Optional[str]) -> bool:
    if not fmt:
        return False
    try:
        return Version(fmt) in _SUPPORTED
    except InvalidVersion:
        return False


def is_dev_build(value: Optional[str]) -> bool:
    """True for source checkouts and dev/local builds.

    Artifacts written by a different release only warn for release builds;
    dev builds change version on every commit.
    """
    if not value:
        return False
    try:
        parsed = Version(value)
    except InvalidVersion:
        return True
    return parsed.is_devrelease or parsed.local is not None or parsed.release == (0, 0, 0)
