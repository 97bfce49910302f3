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
Dockerfile templates for the three image layers.
"""
import logging
from typing import Dict, Optional, Sequence

from jinja2 import Environment, StrictUndefined

from ..MODELS.package_identity import PackageIdentity
from ..MODELS.stow_config import StowConfig
from ..REGISTRY.image_tag import ImageTag

logger = logging.getLogger(__name__)

# Paths inside the images; every Habitat image is rooted at /hab
IMAGE_HAB_ROOT = "/hab"

SLIM_STEP = """ls /hab/pkgs/core > /tmp/.slim_shady_deps \\
    && hab pkg install chetan/slimshady \\
    && hab pkg exec chetan/slimshady slimshady \\
    && hab pkg exec chetan/slimshady slimshady --uninstall \\
    && rm -rf /hab/pkgs/chetan/slimshady /tmp/.slim_shady_deps"""

BASE_RUNTIME_TEMPLATE = """FROM scratch
ENV {% for key, value in environment.items() %}{{ key }}={{ value }}{% if not loop.last %} {% endif %}{% endfor %}
WORKDIR /
ADD rootfs /
RUN {{ slim_step }} \\
    && rm -f {{ hab_root }}/cache/artifacts/*
"""

SHARED_DEPS_TEMPLATE = """FROM {{ base_tag }}

{% if include_artifacts %}COPY *.hart {{ hab_root }}/cache/artifacts/
{% endif %}COPY keys/ {{ hab_root }}/cache/keys/

RUN hab pkg install {{ deps | join(' ') }} \\
    && {{ slim_step }} \\
    && rm -f {{ hab_root }}/cache/artifacts/* \\
    && rm -f {{ hab_root }}/cache/keys/*.key
"""

APPLICATION_TEMPLATE = """FROM {{ shared_deps_tag }}

COPY {{ artifact }} /tmp/
COPY keys/ {{ hab_root }}/cache/keys/

RUN hab pkg install /tmp/{{ artifact }} \\
    && rm -f /tmp/{{ artifact }} \\
    && {{ slim_step }} \\
    && rm -f {{ hab_root }}/cache/artifacts/* \\
    && echo "{{ ident }}" > /.hab_pkg \\
    && mkdir -p {{ svc_dir }}/data \\
                {{ svc_dir }}/config \\
    && chown -R {{ uid }}:{{ gid }} {{ svc_dir }} \\
    && rm -f {{ hab_root }}/cache/keys/*.key

VOLUME {{ svc_dir }}/data {{ svc_dir }}/config
EXPOSE {{ ports | join(' ') }}
ENTRYPOINT {{ entrypoint | tojson }}
CMD {{ command | tojson }}
"""


class ManifestRenderer:
    """
    Renders the Dockerfile for each layer from the shared configuration.
    """

    def __init__(self, config: StowConfig):
        """
        Initializes the renderer.

        :param config: Supplies slim mode, ports and the service user.
        """
        self.config = config
        env = Environment(undefined=StrictUndefined, keep_trailing_newline=True)
        self.base_runtime_template = env.from_string(BASE_RUNTIME_TEMPLATE)
        self.shared_deps_template = env.from_string(SHARED_DEPS_TEMPLATE)
        self.application_template = env.from_string(APPLICATION_TEMPLATE)

    @property
    def slim_step(self) -> str:
        return SLIM_STEP if self.config.slim else "true"

    def render_base_runtime(self, environment: Dict[str, str]) -> str:
        """
        Dockerfile for the base runtime layer built from scratch.

        :param environment: Variables exported by the rootfs init script.
        """
        return self._log(self.base_runtime_template.render(
            environment=environment,
            slim_step=self.slim_step,
            hab_root=IMAGE_HAB_ROOT,
        ))

    def render_shared_deps(self, base_tag: ImageTag, deps: Sequence[str],
                           include_artifacts: bool) -> str:
        """
        Dockerfile installing the shared dependencies over the base runtime.

        :param base_tag: The base runtime image.
        :param deps: Dependencies to install; must not be empty.
        :param include_artifacts: Whether local .hart files were copied into the context.
        """
        return self._log(self.shared_deps_template.render(
            base_tag=base_tag.render(),
            deps=list(deps),
            include_artifacts=include_artifacts,
            slim_step=self.slim_step,
            hab_root=IMAGE_HAB_ROOT,
        ))

    def render_application(self,
                           shared_deps_tag: ImageTag,
                           identity: PackageIdentity,
                           package_ref: str,
                           artifact: str,
                           ports: Optional[Sequence[int]] = None) -> str:
        """
        Dockerfile for the application layer.

        :param shared_deps_tag: Effective shared dependency image.
        :param identity: The package being installed.
        :param package_ref: Reference passed to the supervisor on start.
        :param artifact: File name of the package's .hart in the context.
        :param ports: Ports declared by the package, exposed after the supervisor port.
        """
        exposed = [self.config.supervisor_port] + list(ports or [])
        return self._log(self.application_template.render(
            shared_deps_tag=shared_deps_tag.render(),
            artifact=artifact,
            slim_step=self.slim_step,
            hab_root=IMAGE_HAB_ROOT,
            ident=identity.ident,
            svc_dir=f"{IMAGE_HAB_ROOT}/svc/{identity.name}",
            uid=self.config.service_uid,
            gid=self.config.service_gid,
            ports=exposed,
            entrypoint=["/init.sh"],
            command=["start", package_ref],
        ))

    def _log(self, manifest: str) -> str:
        if self.config.debug:
            logger.debug("Rendered Dockerfile:\n%s", manifest)
        return manifest
