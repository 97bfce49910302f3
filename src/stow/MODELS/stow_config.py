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
Runtime configuration for a stow invocation.

Every environment-derived default is read exactly once, here, into an
immutable StowConfig which is then passed explicitly to each component.
"""
import logging
import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

from ..errors import ConfigurationError

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def _parse_flag(name: str, value: Optional[str], default: bool) -> bool:
    """Interprets an environment flag such as DOCKER_PUSH=1."""
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean flag (0/1), got {value!r}")


def _parse_level(name: str, value: str) -> str:
    """Normalises a log level name such as 'info', rejecting unknown ones."""
    level = value.strip().upper()
    # getLevelName maps known names to their numeric level
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigurationError(f"{name} must be a logging level name, got {value!r}")
    return level


class StowConfig(BaseModel):
    """
    Immutable settings shared by every stage of an image build.

    Environment Variables:
        FS_ROOT: Root of the filesystem (chroot or separate mount). Default: ""
        HAB_ROOT_PATH: Habitat install root. Default: $FS_ROOT/hab
        DOCKER_REGISTRY_URL: Prefix for every image tag. Default: "" (public registry)
        DOCKER_PUSH: Push the built tags. Default: 0
        DOCKER_SLIM: Strip unused files from every layer. Default: 0
        DOCKER_SQUASH: Squash each layer build into one filesystem layer. Default: 1
        DEBUG: Verbose logging and manifest dumps. Default: unset
        STOW_LOG_LEVEL: Log level when DEBUG is unset. Default: INFO
    """
    model_config = ConfigDict(frozen=True)

    fs_root: str = ""
    hab_root_path: str = "/hab"
    registry_url: str = ""
    push: bool = False
    slim: bool = False
    squash: bool = True
    debug: bool = False
    log_level: str = "INFO"

    # Fixed by the Habitat supervisor and its service user
    supervisor_port: int = 9631
    service_uid: int = 42
    service_gid: int = 42
    base_runtime_path: str = "core/habitat_base"
    shared_deps_name: str = "shared_deps_base"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None,
                 dotenv_path: Optional[str] = None) -> "StowConfig":
        """
        Builds the configuration from environment variables.

        A .env file is loaded first when reading the real process environment;
        variables already set in the process take precedence over it.

        :param environ: Mapping to read instead of os.environ.
        :param dotenv_path: Explicit .env file to load.
        :return: A frozen StowConfig.
        :raises ConfigurationError: If a flag variable is not a boolean.
        """
        if environ is None:
            load_dotenv(dotenv_path=dotenv_path, override=False)
            environ = os.environ

        fs_root = environ.get("FS_ROOT", "")
        hab_root_path = environ.get("HAB_ROOT_PATH") or f"{fs_root}/hab"
        debug = bool(environ.get("DEBUG"))

        return cls(
            fs_root=fs_root,
            hab_root_path=hab_root_path,
            registry_url=environ.get("DOCKER_REGISTRY_URL", ""),
            push=_parse_flag("DOCKER_PUSH", environ.get("DOCKER_PUSH"), False),
            slim=_parse_flag("DOCKER_SLIM", environ.get("DOCKER_SLIM"), False),
            squash=_parse_flag("DOCKER_SQUASH", environ.get("DOCKER_SQUASH"), True),
            debug=debug,
            log_level="DEBUG" if debug else _parse_level(
                "STOW_LOG_LEVEL", environ.get("STOW_LOG_LEVEL", "INFO")),
        )

    def with_overrides(self, registry_url: Optional[str] = None,
                       push: bool = False, slim: bool = False) -> "StowConfig":
        """
        Applies command line flags on top of the environment configuration.

        Flags can only switch push/slim on; an unset --repo keeps the
        environment's registry.
        """
        update = {"push": self.push or push, "slim": self.slim or slim}
        if registry_url is not None:
            update["registry_url"] = registry_url
        return self.model_copy(update=update)

    @property
    def artifact_cache(self) -> Path:
        """Host directory holding local .hart package artifacts."""
        return Path(self.hab_root_path) / "cache" / "artifacts"

    @property
    def key_cache(self) -> Path:
        """Host directory holding origin signing keys."""
        return Path(self.hab_root_path) / "cache" / "keys"

    @property
    def slim_suffix(self) -> str:
        return "-slim" if self.slim else ""

    @property
    def registry_display(self) -> str:
        return self.registry_url or "public (docker.io)"
