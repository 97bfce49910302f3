"""
Models for the three-layer image plan: tags, assembler states and outcomes.
"""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List

from .package_identity import PackageIdentity
from .stow_config import StowConfig
from ..REGISTRY.image_tag import ImageTag


class LayerState(str, Enum):
    """
    Position of the layer assembler. Layers are built strictly in this order.
    """
    PENDING_BASE = "pending-base"
    PENDING_SHARED = "pending-shared"
    PENDING_APP = "pending-app"
    DONE = "done"


class LayerOutcome(str, Enum):
    """
    What the assembler decided for a single layer.
    """
    SKIPPED = "skipped"              # tag already present locally
    ALIASED = "aliased"              # reused the shared alias image
    PASSED_THROUGH = "passed-through"  # no dependencies, retagged the base runtime
    BUILT = "built"


@dataclass(frozen=True)
class LayerTags:
    """
    Every tag a single invocation reads or writes.
    """
    base_runtime: ImageTag
    shared_deps: ImageTag
    shared_deps_alias: ImageTag
    run: ImageTag
    run_latest: ImageTag

    @classmethod
    def for_package(cls,
                    config: StowConfig,
                    identity: PackageIdentity,
                    cache_key: str,
                    tool_version: str) -> "LayerTags":
        """
        Computes the tags for a package build.

        :param config: Supplies the registry prefix and slim suffix.
        :param identity: The package being packaged.
        :param cache_key: Key derived from the package's dependency set.
        :param tool_version: Version of the hab binary building the layers.
        """
        prefix = config.registry_url or None
        slim = config.slim_suffix
        run = ImageTag(prefix, identity.ident, identity.version_tag)
        return cls(
            base_runtime=ImageTag(prefix, config.base_runtime_path, f"{tool_version}{slim}"),
            shared_deps=ImageTag(prefix, f"{identity.ident}_base", f"{cache_key}{slim}"),
            shared_deps_alias=ImageTag(
                prefix, f"{identity.origin}/{config.shared_deps_name}", f"{cache_key}{slim}"
            ),
            run=run,
            run_latest=run.with_label("latest"),
        )

    def with_shared_deps(self, tag: ImageTag) -> "LayerTags":
        """Rebinds the shared dependency tag, used when an alias image is reused."""
        return replace(self, shared_deps=tag)

    def publish_tags(self) -> List[ImageTag]:
        """Tags pushed to the registry, in push order."""
        return [self.shared_deps, self.shared_deps_alias, self.run, self.run_latest]


@dataclass
class AssemblyResult:
    """
    Effective tags after assembly plus the decision taken for each layer.
    """
    tags: LayerTags
    outcomes: Dict[LayerState, LayerOutcome] = field(default_factory=dict)
