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
Client for the Docker CLI: existence checks, builds, tags and pushes.
"""
import logging
from pathlib import Path
from typing import Union

from ..errors import BuildError, PushError
from ..REGISTRY.image_tag import ImageTag
from ..UTILS.command_runner import CommandError, run_command

logger = logging.getLogger(__name__)

TagLike = Union[ImageTag, str]


class DockerClient:
    """
    Thin wrapper over the `docker` binary used as the image builder.
    """

    def __init__(self, docker_binary: str = "docker", squash: bool = True):
        """
        Args:
            docker_binary: Path or name of the docker executable.
            squash: Squash each build into a single filesystem layer.
        """
        self.docker_binary = docker_binary
        self.squash = squash

    def exists(self, tag: TagLike) -> bool:
        """
        Check whether a tag is present in the local image index.
        Read-only; a failing query is treated as absent.
        """
        try:
            output = run_command([self.docker_binary, "images", "-q", str(tag)])
        except CommandError as e:
            logger.debug("Image query for %s failed: %s", tag, e)
            return False
        return bool(output.strip())

    def build(self, context: Union[Path, str], manifest: Union[Path, str], tag: TagLike) -> None:
        """
        Build an image from a context directory and Dockerfile.

        Raises:
            BuildError: If docker fails the build.
        """
        command = [self.docker_binary, "build", "--force-rm", "--no-cache"]
        if self.squash:
            command.append("--squash")
        command += ["-f", str(manifest), "-t", str(tag), str(context)]

        logger.info("Building %s", tag)
        try:
            run_command(command, capture=False)
        except CommandError as e:
            raise BuildError(f"docker build of {tag} failed: {e}") from e

    def tag(self, source: TagLike, dest: TagLike) -> None:
        """
        Add a tag to an existing image.

        Raises:
            BuildError: If docker cannot tag the image.
        """
        logger.debug("Tagging %s as %s", source, dest)
        try:
            run_command([self.docker_binary, "tag", str(source), str(dest)])
        except CommandError as e:
            raise BuildError(f"docker tag {source} {dest} failed: {e.output or e}") from e

    def push(self, tag: TagLike) -> None:
        """
        Push a tag to its registry.

        Raises:
            PushError: If the push fails.
        """
        logger.info("Pushing %s", tag)
        try:
            run_command([self.docker_binary, "push", str(tag)], capture=False)
        except CommandError as e:
            raise PushError(f"docker push {tag} failed: {e}") from e
