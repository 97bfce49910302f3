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
Assembly of the three image layers: base runtime, shared dependencies and
application, built strictly in that order.

Existence checks are advisory. Two invocations racing on the same cache key
may both build the shared layer; tagging is idempotent so the loser only
wastes work.
"""
import logging
from pathlib import Path
from typing import Callable, Dict, Optional, Sequence

from ..errors import ArtifactNotFoundError, BuildError
from ..MODELS.layer_plan import AssemblyResult, LayerOutcome, LayerState, LayerTags
from ..MODELS.package_identity import PackageIdentity
from ..MODELS.stow_config import StowConfig
from ..PACKAGES.package_manager import HabPackageManager
from ..PARSERS.env_parser import EnvParser
from .build_context import BuildContext
from .docker_client import DockerClient
from .manifests import ManifestRenderer

logger = logging.getLogger(__name__)


def runtime_environment(rootfs: Path) -> Dict[str, str]:
    """
    Environment for the base runtime image, taken from the PATH exported by
    the rootfs init script.

    :raises BuildError: If the rootfs has no init.sh or it exports no PATH.
    """
    init_script = Path(rootfs) / "init.sh"
    if not init_script.is_file():
        raise BuildError(f"Base filesystem is missing {init_script}")
    exports = EnvParser.parse(init_script)
    if "PATH" not in exports:
        raise BuildError(f"{init_script} does not export PATH")
    return {"PATH": exports["PATH"]}


class LayerAssembler:
    """
    Builds the layers of one package image as a small state machine:
    PENDING_BASE -> PENDING_SHARED -> PENDING_APP -> DONE.

    Each call to step() makes exactly one skip/alias/build decision and
    records it, so every transition can be exercised on its own.
    """

    def __init__(self,
                 config: StowConfig,
                 docker: DockerClient,
                 package_manager: HabPackageManager,
                 tags: LayerTags,
                 identity: PackageIdentity,
                 package_ref: str,
                 deps: Sequence[str],
                 ports: Sequence[int] = (),
                 context_factory: Optional[Callable[[], BuildContext]] = None):
        """
        :param config: Shared invocation settings.
        :param docker: Image builder and existence oracle.
        :param package_manager: Used to materialize the base filesystem.
        :param tags: Tags computed for this package.
        :param identity: Identity of the package being packaged.
        :param package_ref: Reference the final image starts.
        :param deps: Canonical dependency set for the shared layer.
        :param ports: Ports declared by the package.
        :param context_factory: Creates a fresh BuildContext per layer.
        """
        self.config = config
        self.docker = docker
        self.package_manager = package_manager
        self.tags = tags
        self.identity = identity
        self.package_ref = package_ref
        self.deps = tuple(deps)
        self.ports = tuple(ports)
        self.renderer = ManifestRenderer(config)
        self.context_factory = context_factory or (
            lambda: BuildContext(config.artifact_cache, prefix=f"stow-{identity.name}-")
        )
        self.state = LayerState.PENDING_BASE
        self.outcomes: Dict[LayerState, LayerOutcome] = {}

    def assemble(self) -> AssemblyResult:
        """
        Runs every remaining transition.

        :return: The effective tags and the outcome of each layer.
        :raises StowError: On the first failing layer; later layers are not attempted.
        """
        while self.state != LayerState.DONE:
            self.step()
        return AssemblyResult(tags=self.tags, outcomes=dict(self.outcomes))

    def step(self) -> LayerState:
        """
        Performs the transition out of the current state.

        :return: The new state.
        """
        handlers = {
            LayerState.PENDING_BASE: (self._base_runtime_layer, LayerState.PENDING_SHARED),
            LayerState.PENDING_SHARED: (self._shared_deps_layer, LayerState.PENDING_APP),
            LayerState.PENDING_APP: (self._application_layer, LayerState.DONE),
        }
        if self.state not in handlers:
            raise RuntimeError("All layers have already been assembled")

        handler, next_state = handlers[self.state]
        self.outcomes[self.state] = handler()
        self.state = next_state
        return self.state

    def _base_runtime_layer(self) -> LayerOutcome:
        label = ">> hab base image"
        tag = self.tags.base_runtime
        if self.docker.exists(tag):
            logger.info("%s: %s already built; skipping rebuild", label, tag)
            return LayerOutcome.SKIPPED

        logger.info("%s: building...", label)
        with self.context_factory() as context:
            rootfs = context.path / "rootfs"
            self.package_manager.studio_new(rootfs)
            manifest = context.write_manifest(
                self.renderer.render_base_runtime(runtime_environment(rootfs))
            )
            self.docker.build(context.path, manifest, tag)

        logger.info("%s: built %s", label, tag)
        return LayerOutcome.BUILT

    def _shared_deps_layer(self) -> LayerOutcome:
        label = ">> app deps image"
        tag = self.tags.shared_deps
        alias = self.tags.shared_deps_alias

        if self.docker.exists(tag):
            logger.info("%s: %s already built; skipping rebuild", label, tag)
            return LayerOutcome.SKIPPED

        if self.docker.exists(alias):
            logger.info("%s: %s already built; skipping rebuild", label, alias)
            self.docker.tag(alias, tag)
            # Downstream layers build from the shared image directly
            self.tags = self.tags.with_shared_deps(alias)
            return LayerOutcome.ALIASED

        if not self.deps:
            logger.info("%s: no deps, skipping build (just tagging)", label)
            self.docker.tag(self.tags.base_runtime, tag)
            self.docker.tag(tag, alias)
            return LayerOutcome.PASSED_THROUGH

        logger.info("%s: building...", label)
        with self.context_factory() as context:
            artifacts = context.copy_artifacts()
            context.copy_keys(self.config.key_cache)
            manifest = context.write_manifest(self.renderer.render_shared_deps(
                self.tags.base_runtime, self.deps, include_artifacts=bool(artifacts)
            ))
            self.docker.build(context.path, manifest, tag)
        self.docker.tag(tag, alias)

        logger.info("%s: built %s and %s", label, tag, alias)
        return LayerOutcome.BUILT

    def _application_layer(self) -> LayerOutcome:
        label = ">> app image"
        logger.info("%s: building...", label)

        with self.context_factory() as context:
            artifact = context.copy_file(self._find_artifact())
            context.copy_keys(self.config.key_cache)
            manifest = context.write_manifest(self.renderer.render_application(
                self.tags.shared_deps, self.identity, self.package_ref, artifact, self.ports
            ))
            self.docker.build(context.path, manifest, self.tags.run)
        self.docker.tag(self.tags.run, self.tags.run_latest)

        logger.info("%s: built %s and %s", label, self.tags.run, self.tags.run_latest)
        return LayerOutcome.BUILT

    def _find_artifact(self) -> Path:
        pattern = f"{self.identity.artifact_prefix}-*.hart"
        matches = sorted(self.config.artifact_cache.glob(pattern))
        if not matches:
            raise ArtifactNotFoundError(
                f"No artifact matching {pattern} in {self.config.artifact_cache}"
            )
        # Newest build target wins when several exist for one release
        return matches[-1]
