"""
Publishing of built tags to the configured registry.
"""
import logging
from typing import Sequence

from .image_tag import ImageTag

logger = logging.getLogger(__name__)


class Publisher:
    """
    Pushes the shared dependency and application tags once a build succeeded.
    """
    def __init__(self, docker, registry_display: str = "public (docker.io)"):
        """
        :param docker: Client exposing push(tag).
        :param registry_display: Registry name used in log output.
        """
        self.docker = docker
        self.registry_display = registry_display

    def publish(self, tags: Sequence[ImageTag], enabled: bool) -> int:
        """
        Pushes every tag, in order, when publishing is enabled.

        A failed push propagates immediately; images already built locally
        are left as they are.

        :param tags: Tags to push.
        :param enabled: Whether --push (or DOCKER_PUSH) was given.
        :return: Number of tags pushed.
        :raises PushError: If the registry rejects a push.
        """
        if not enabled:
            return 0

        logger.info(">> pushing to registry: %s", self.registry_display)
        for tag in tags:
            self.docker.push(tag)
        return len(tags)
