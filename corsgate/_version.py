"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Corsgate, a product of Garudex Labs

Version information for Corsgate.

Source checkouts read the VERSION file next to the package; installed
wheels fall back to the distribution metadata.
"""

from importlib import metadata
from pathlib import Path


def get_version() -> str:
    """
    Resolve the Corsgate version.

    Returns:
        str: The version string (e.g., "0.1.0"), or "unknown"
    """
    version_file = Path(__file__).parent.parent / "VERSION"
    if version_file.exists():
        return version_file.read_text().strip()
    try:
        return metadata.version("corsgate")
    except metadata.PackageNotFoundError:
        return "unknown"


__version__ = get_version()
