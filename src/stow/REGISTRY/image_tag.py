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
Image tag value type.
Renders Docker tags like 'core/habitat_base:0.19.0' or
'docker.private.com:443/core/nginx:1.11.10-20170215235242'.
"""

from typing import Optional
from dataclasses import dataclass, replace


@dataclass(frozen=True)
class ImageTag:
    """
    A Docker image tag split into its parts.

    Examples:
        - ImageTag(None, "core/habitat_base", "0.19.0") -> core/habitat_base:0.19.0
        - ImageTag("registry:443", "core/nginx", "latest") -> registry:443/core/nginx:latest
    """

    registry_prefix: Optional[str]
    path: str
    label: str

    def __post_init__(self):
        if not self.path:
            raise ValueError("Image tag path must not be empty")
        if not self.label:
            raise ValueError("Image tag label must not be empty")
        # Normalise "host:443/" and "" so rendering never doubles or dangles a slash
        prefix = (self.registry_prefix or "").rstrip("/") or None
        object.__setattr__(self, "registry_prefix", prefix)

    @property
    def repository(self) -> str:
        """Tag without its label, e.g. 'registry:443/core/nginx'."""
        if self.registry_prefix:
            return f"{self.registry_prefix}/{self.path}"
        return self.path

    def render(self) -> str:
        """Get the full tag as passed to docker."""
        return f"{self.repository}:{self.label}"

    def with_label(self, label: str) -> "ImageTag":
        """Same repository, different label."""
        return replace(self, label=label)

    def __str__(self) -> str:
        return self.render()

    def __repr__(self) -> str:
        return f"ImageTag({self.render()})"
