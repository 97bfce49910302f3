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
Front door for a single stow invocation: resolve, plan, assemble, publish.
"""
import logging
from typing import Optional

from ..BUILDERS.cache_key import derive_cache_key
from ..BUILDERS.docker_client import DockerClient
from ..BUILDERS.layer_assembler import LayerAssembler
from ..errors import ConfigurationError
from ..MODELS.layer_plan import AssemblyResult, LayerTags
from ..MODELS.stow_config import StowConfig
from ..PACKAGES.dependency_collector import DependencyCollector
from ..PACKAGES.metadata_resolver import MetadataResolver
from ..PACKAGES.package_manager import HabPackageManager
from ..REGISTRY.publisher import Publisher

logger = logging.getLogger(__name__)


class StowOrchestrator:
    """
    Builds (and optionally pushes) the layered image for one package.
    """
    def __init__(self,
                 config: StowConfig,
                 package_manager: Optional[HabPackageManager] = None,
                 docker: Optional[DockerClient] = None):
        """
        Initializes the orchestrator.

        :param config: Configuration shared by every component.
        :param package_manager: Package manager client, hab by default.
        :param docker: Image builder client, docker by default.
        """
        self.config = config
        self.package_manager = package_manager or HabPackageManager()
        self.docker = docker or DockerClient(squash=config.squash)
        self.resolver = MetadataResolver(self.package_manager)
        self.collector = DependencyCollector(self.package_manager)
        self.publisher = Publisher(self.docker, config.registry_display)

    def plan(self, package_ref: str) -> LayerAssembler:
        """
        Resolves the package and computes its tags without building anything
        besides installing missing packages.

        :param package_ref: Package reference, e.g. 'core/nginx'.
        :return: An assembler positioned at its first layer.
        :raises ConfigurationError: If no package reference is given.
        :raises PackageNotFoundError: If the package cannot be resolved.
        """
        if not package_ref:
            raise ConfigurationError("You must specify one or more Habitat packages to Dockerize.")

        identity, path = self.resolver.resolve(package_ref)
        deps = self.collector.collect([package_ref])
        tool_version = self.package_manager.tool_version()
        cache_key = derive_cache_key(tool_version, deps)
        tags = LayerTags.for_package(self.config, identity, cache_key, tool_version)
        logger.info("Packaging %s as %s (deps key %s, %d deps)",
                    self.resolver.name(package_ref), identity, cache_key, len(deps))

        return LayerAssembler(
            config=self.config,
            docker=self.docker,
            package_manager=self.package_manager,
            tags=tags,
            identity=identity,
            package_ref=package_ref,
            deps=deps,
            ports=self.resolver.declared_ports(path),
        )

    def run(self, package_ref: str) -> AssemblyResult:
        """
        Builds every layer for the package, then publishes if enabled.

        :param package_ref: Package reference, e.g. 'core/nginx'.
        :return: The effective tags and per-layer outcomes.
        """
        result = self.plan(package_ref).assemble()
        self.publisher.publish(result.tags.publish_tags(), self.config.push)
        return result
