"""phpIPAM Docker installer package."""

from __future__ import annotations

import os
from importlib.metadata import PackageNotFoundError, version

DISTRIBUTION_NAME = "ipam-installer"


def _installed_version() -> str:
	override = os.getenv("IPAM_INSTALLER_BUILD_VERSION")
	if override:
		return override
	try:
		return version(DISTRIBUTION_NAME)
	except PackageNotFoundError:
		# Running from a source checkout without an install
		return "0.0.0+unknown"


__version__ = _installed_version()
