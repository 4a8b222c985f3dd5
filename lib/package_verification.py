#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# ****************************************************************************************************************************************************
# * BSD 3-Clause License
# *
# * Copyright (c) 2025, Mana Battery
# * All rights reserved.
# *
# * Redistribution and use in source and binary forms, with or without modification, are permitted provided that the following conditions are met:
# *
# * 1. Redistributions of source code must retain the above copyright notice, this list of conditions and the following disclaimer.
# * 2. Redistributions in binary form must reproduce the above copyright notice, this list of conditions and the following disclaimer in the
# *    documentation and/or other materials provided with the distribution.
# * 3. Neither the name of the copyright holder nor the names of its contributors may be used to endorse or promote products derived from this
# *    software without specific prior written permission.
# *
# * THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS" AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO,
# * THE IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR
# * CONTRIBUTORS BE LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO,
# * PROCUREMENT OF SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF
# * LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE,
# * EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.
# ****************************************************************************************************************************************************
"""Runtime dependency check behind --check-packages.

Minimum versions are based on Ubuntu 24.04 LTS or actual code requirements,
whichever is higher.
"""

import logging
from dataclasses import dataclass
from importlib.metadata import version, PackageNotFoundError
from typing import Dict, List, Optional

from packaging.version import parse

from lib.color_utils import print_error, print_success

logger = logging.getLogger(__name__)

# Package version requirements (minimum versions)
PACKAGE_REQUIREMENTS: Dict[str, str] = {
    "packaging": "24.0",  # Ubuntu 24.04 LTS (required for this module itself)
    "colorama": "0.4.6",  # Ubuntu 24.04 LTS (colored output)
}


@dataclass(frozen=True)
class PackageStatus:
    """Installed state of one runtime dependency.

    Attributes:
        name: Distribution name on PyPI
        required: Minimum version
        installed: Installed version, None when missing
    """

    name: str
    required: str
    installed: Optional[str]

    @property
    def ok(self) -> bool:
        return self.installed is not None and parse(self.installed) >= parse(self.required)

    def describe(self) -> str:
        if self.installed is None:
            return f"{self.name} not installed"
        if not self.ok:
            return f"{self.name} {self.installed} (need >={self.required})"
        return f"{self.name} {self.installed}"


def check_package_version(package_name: str, min_version: Optional[str] = None) -> PackageStatus:
    """Look up the installed version of a package.

    Args:
        package_name: PyPI package name (e.g., 'colorama')
        min_version: Minimum version (default: the PACKAGE_REQUIREMENTS entry)

    Raises:
        ValueError: If no minimum version is known for the package
    """
    if min_version is None:
        min_version = PACKAGE_REQUIREMENTS.get(package_name)
        if min_version is None:
            raise ValueError(f"No version requirement specified for {package_name}")

    try:
        installed: Optional[str] = version(package_name)
    except PackageNotFoundError:
        installed = None
    logger.debug("%s: installed %s, required >=%s", package_name, installed, min_version)
    return PackageStatus(name=package_name, required=min_version, installed=installed)


def check_all_packages() -> bool:
    """Check all runtime packages and print one status line per package.

    Returns:
        True if every package is installed at a sufficient version
    """
    print("compdbEdit Package Verification")
    print("=" * 40)

    statuses: List[PackageStatus] = [check_package_version(name, required) for name, required in PACKAGE_REQUIREMENTS.items()]
    for status in statuses:
        if status.ok:
            print_success(status.describe(), prefix=False)
        else:
            print_error(status.describe(), prefix=False)

    print("=" * 40)
    failed = [status for status in statuses if not status.ok]
    if not failed:
        print_success("All required packages are available", prefix=False)
        return True

    print_error("Some required packages are missing or too old", prefix=False)
    requirements = " ".join(f"'{status.name}>={status.required}'" for status in failed)
    print(f"Install missing packages with:\n  pip install {requirements}")
    return False
