# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Client for the Habitat package manager (the `hab` and `hab-studio` binaries).
"""
import logging
from pathlib import Path
from typing import Optional

from ..errors import InstallError, NotInstalledError, StowError
from ..UTILS.command_runner import CommandError, run_command

logger = logging.getLogger(__name__)


class HabPackageManager:
    """
    Installs packages and locates their install directories via `hab pkg`.
    """

    def __init__(self, hab_binary: str = "hab", studio_binary: str = "hab-studio"):
        """
        Args:
            hab_binary: Path or name of the hab executable.
            studio_binary: Path or name of the hab-studio executable.
        """
        self.hab_binary = hab_binary
        self.studio_binary = studio_binary
        self._tool_version: Optional[str] = None

    def install(self, ref: str) -> None:
        """
        Installs a package. Installing an already installed package is a no-op.

        Raises:
            InstallError: If hab fails to install the package.
        """
        logger.debug("Installing package %s", ref)
        try:
            run_command([self.hab_binary, "pkg", "install", ref])
        except CommandError as e:
            raise InstallError(f"Failed to install {ref}: {e.output or e}") from e

    def path_for(self, ref: str) -> Path:
        """
        Gets the install directory of a package.

        Raises:
            NotInstalledError: If the package is not installed locally.
        """
        try:
            output = run_command([self.hab_binary, "pkg", "path", ref]).strip()
        except CommandError as e:
            raise NotInstalledError(f"Package {ref} is not installed") from e
        if not output:
            raise NotInstalledError(f"Package {ref} is not installed")
        return Path(output)

    def tool_version(self) -> str:
        """
        Version of the hab binary, e.g. '0.19.0' for 'hab 0.19.0/20170306014521'.
        """
        if self._tool_version is None:
            try:
                output = run_command([self.hab_binary, "--version"]).strip()
            except CommandError as e:
                raise StowError(f"Unable to determine the hab version: {e}") from e
            fields = output.split()
            if len(fields) < 2:
                raise StowError(f"Unexpected output from '{self.hab_binary} --version': {output!r}")
            self._tool_version = fields[1].split("/")[0]
        return self._tool_version

    def studio_new(self, rootfs: Path) -> None:
        """
        Materializes a minimal Habitat root filesystem at `rootfs`.

        Raises:
            InstallError: If hab-studio cannot create the filesystem.
        """
        logger.info("Creating Habitat base filesystem in %s", rootfs)
        try:
            run_command(
                [self.studio_binary, "-r", str(rootfs), "-t", "baseimage", "new"],
                env={"PKGS": "", "NO_MOUNT": "1"},
                capture=False,
            )
        except CommandError as e:
            raise InstallError(f"hab-studio failed to create {rootfs}: {e.output or e}") from e
