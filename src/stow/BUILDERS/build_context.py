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
Ephemeral, isolated Docker build contexts, one per layer build.
"""

import logging
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional

from ..errors import BuildError

logger = logging.getLogger(__name__)

ARTIFACT_PATTERN = "*.hart"
MANIFEST_NAME = "Dockerfile"


class BuildContext:
    """
    A temporary directory holding exactly one layer's build inputs.

    Use as a context manager: the directory is created on entry and removed
    on exit, whether the build succeeded or raised. Package artifacts left
    at the top level of the context are moved to the artifact cache first
    so they outlive the context.
    """

    def __init__(self, artifact_cache: Path, prefix: str = "stow-"):
        """
        Args:
            artifact_cache: Host directory that keeps .hart files after cleanup.
            prefix: Prefix of the temporary directory name.
        """
        self.artifact_cache = Path(artifact_cache)
        self.prefix = prefix
        self._path: Optional[Path] = None

    @property
    def path(self) -> Path:
        if self._path is None:
            raise RuntimeError("Build context is not active")
        return self._path

    @property
    def manifest_path(self) -> Path:
        return self.path / MANIFEST_NAME

    def __enter__(self) -> "BuildContext":
        try:
            self._path = Path(tempfile.mkdtemp(prefix=self.prefix))
        except OSError as e:
            raise BuildError(f"Unable to create build context: {e}") from e
        logger.debug("Created build context %s", self._path)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def release(self) -> None:
        """
        Saves stray artifacts and deletes the context. Safe to call twice.
        """
        if self._path is None:
            return
        path, self._path = self._path, None
        try:
            self._preserve_artifacts(path)
        finally:
            shutil.rmtree(path, ignore_errors=True)
            logger.debug("Removed build context %s", path)

    def write_manifest(self, content: str) -> Path:
        """Writes the Dockerfile for this layer."""
        self.manifest_path.write_text(content)
        return self.manifest_path

    def copy_artifacts(self) -> List[str]:
        """
        Copies every cached .hart artifact into the context root.

        Returns:
            Names of the copied files.
        """
        copied = []
        for artifact in sorted(self.artifact_cache.glob(ARTIFACT_PATTERN)):
            shutil.copy2(artifact, self.path / artifact.name)
            copied.append(artifact.name)
        return copied

    def copy_file(self, source: Path) -> str:
        """Copies a single file into the context root and returns its name."""
        source = Path(source)
        shutil.copy2(source, self.path / source.name)
        return source.name

    def copy_keys(self, key_cache: Path) -> Path:
        """
        Copies origin keys into a `keys/` directory in the context.
        The directory always exists so manifests can COPY from it.
        """
        keys_dir = self.path / "keys"
        keys_dir.mkdir(exist_ok=True)
        key_cache = Path(key_cache)
        if key_cache.is_dir():
            for key in key_cache.iterdir():
                if key.is_file():
                    shutil.copy2(key, keys_dir / key.name)
        return keys_dir

    def _preserve_artifacts(self, path: Path) -> None:
        artifacts = list(path.glob(ARTIFACT_PATTERN))
        if not artifacts:
            return
        self.artifact_cache.mkdir(parents=True, exist_ok=True)
        for artifact in artifacts:
            shutil.move(str(artifact), str(self.artifact_cache / artifact.name))
