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
Unit tests for the layer assembler state machine.
"""
import pytest

from stow.BUILDERS.build_context import BuildContext
from stow.BUILDERS.cache_key import derive_cache_key
from stow.BUILDERS.layer_assembler import LayerAssembler, runtime_environment
from stow.errors import ArtifactNotFoundError, BuildError
from stow.MODELS.layer_plan import LayerOutcome, LayerState, LayerTags
from stow.PACKAGES.dependency_collector import DependencyCollector
from stow.PACKAGES.metadata_resolver import MetadataResolver


def make_assembler(config, docker, package_manager, ref="acme/base", contexts=None):
    resolver = MetadataResolver(package_manager)
    identity, path = resolver.resolve(ref)
    deps = DependencyCollector(package_manager).collect([ref])
    key = derive_cache_key(package_manager.tool_version(), deps)
    tags = LayerTags.for_package(config, identity, key, package_manager.tool_version())

    def factory():
        context = BuildContext(config.artifact_cache)
        if contexts is not None:
            contexts.append(context)
        return context

    return LayerAssembler(
        config=config,
        docker=docker,
        package_manager=package_manager,
        tags=tags,
        identity=identity,
        package_ref=ref,
        deps=deps,
        ports=resolver.declared_ports(path),
        context_factory=factory,
    )


class TestStateMachine:
    """Tests for state transitions."""

    def test_steps_in_order(self, config, docker, package_manager):
        assembler = make_assembler(config, docker, package_manager)
        assert assembler.state == LayerState.PENDING_BASE
        assert assembler.step() == LayerState.PENDING_SHARED
        assert docker.built_tags == ["core/habitat_base:1.0"]
        assert assembler.step() == LayerState.PENDING_APP
        assert assembler.step() == LayerState.DONE
        with pytest.raises(RuntimeError):
            assembler.step()

    def test_fresh_build(self, config, docker, package_manager):
        """Test a cold cache builds all three layers."""
        result = make_assembler(config, docker, package_manager).assemble()
        tags = result.tags
        assert docker.built_tags == [
            tags.base_runtime.render(), tags.shared_deps.render(), tags.run.render()
        ]
        assert result.outcomes == {
            LayerState.PENDING_BASE: LayerOutcome.BUILT,
            LayerState.PENDING_SHARED: LayerOutcome.BUILT,
            LayerState.PENDING_APP: LayerOutcome.BUILT,
        }
        assert docker.images[tags.shared_deps_alias.render()] == docker.images[tags.shared_deps.render()]
        assert docker.images[tags.run_latest.render()] == docker.images[tags.run.render()]
        assert tags.run.render() == "acme/base:1.2.0-20170101000000"


class TestCaching:
    """Tests for skip, alias and pass-through decisions."""

    def test_cache_hit_skips_build(self, config, docker, package_manager):
        """Test existing base and shared tags are never rebuilt."""
        first = make_assembler(config, docker, package_manager).assemble()
        docker.builds.clear()

        second = make_assembler(config, docker, package_manager).assemble()
        assert docker.built_tags == [first.tags.run.render()]
        assert second.outcomes[LayerState.PENDING_BASE] == LayerOutcome.SKIPPED
        assert second.outcomes[LayerState.PENDING_SHARED] == LayerOutcome.SKIPPED
        assert package_manager.studio_calls and len(package_manager.studio_calls) == 1

    def test_alias_convergence(self, config, docker, package_manager):
        """Test a second package with equal deps reuses the shared image."""
        first = make_assembler(config, docker, package_manager, "acme/base").assemble()
        docker.builds.clear()

        second = make_assembler(config, docker, package_manager, "acme/other").assemble()
        assert second.outcomes[LayerState.PENDING_SHARED] == LayerOutcome.ALIASED
        assert second.tags.shared_deps == first.tags.shared_deps_alias
        assert docker.built_tags == [second.tags.run.render()]
        assert docker.images["acme/other_base:" + first.tags.shared_deps.label] == \
            docker.images[first.tags.shared_deps.render()]
        assert docker.builds[0]["manifest"].startswith(
            f"FROM {first.tags.shared_deps_alias.render()}\n"
        )

    def test_empty_deps_pass_through(self, config, docker, package_manager):
        """Test no deps means the shared tags point at the base runtime."""
        result = make_assembler(config, docker, package_manager, "acme/lonely").assemble()
        tags = result.tags
        assert result.outcomes[LayerState.PENDING_SHARED] == LayerOutcome.PASSED_THROUGH
        assert docker.built_tags == [tags.base_runtime.render(), tags.run.render()]
        base_image = docker.images[tags.base_runtime.render()]
        assert docker.images[tags.shared_deps.render()] == base_image
        assert docker.images[tags.shared_deps_alias.render()] == base_image


class TestFailures:
    """Tests for abort and cleanup behaviour."""

    def test_contexts_removed_after_success(self, config, docker, package_manager):
        contexts = []
        make_assembler(config, docker, package_manager, contexts=contexts).assemble()
        assert len(contexts) == 3
        assert len({b["context"] for b in docker.builds}) == 3
        for build in docker.builds:
            assert not build["context"].exists()

    def test_base_failure_aborts(self, config, docker, package_manager):
        """Test layers 2 and 3 are never attempted after a base failure."""
        docker.fail_builds = {"core/habitat_base:1.0"}
        assembler = make_assembler(config, docker, package_manager)
        with pytest.raises(BuildError):
            assembler.assemble()
        assert docker.built_tags == ["core/habitat_base:1.0"]
        assert docker.tags == []
        assert assembler.state == LayerState.PENDING_BASE
        assert not docker.builds[0]["context"].exists()

    def test_shared_failure_keeps_base(self, config, docker, package_manager):
        assembler = make_assembler(config, docker, package_manager)
        docker.fail_builds = {assembler.tags.shared_deps.render()}
        with pytest.raises(BuildError):
            assembler.assemble()
        assert docker.exists(assembler.tags.base_runtime)
        assert not docker.exists(assembler.tags.shared_deps_alias)
        assert not docker.exists(assembler.tags.run)

    def test_missing_artifact(self, config, docker, package_manager):
        for artifact in config.artifact_cache.glob("acme-base-*.hart"):
            artifact.unlink()
        contexts = []
        assembler = make_assembler(config, docker, package_manager, contexts=contexts)
        with pytest.raises(ArtifactNotFoundError):
            assembler.assemble()
        assert assembler.state == LayerState.PENDING_APP
        assert all(context._path is None for context in contexts)
        assert not docker.exists(assembler.tags.run)


class TestLayerInputs:
    """Tests for what each layer's context contains."""

    def test_shared_context_has_artifacts_and_keys(self, config, docker, package_manager):
        make_assembler(config, docker, package_manager).assemble()
        shared = docker.builds[1]
        assert "keys" in shared["files"]
        assert "acme-base-1.2.0-20170101000000-x86_64-linux.hart" in shared["files"]
        assert "RUN hab pkg install core/x core/y" in shared["manifest"]

    def test_application_manifest(self, config, docker, package_manager):
        result = make_assembler(config, docker, package_manager).assemble()
        app = docker.builds[2]
        assert app["manifest"].startswith(f"FROM {result.tags.shared_deps.render()}\n")
        assert "EXPOSE 9631 8080" in app["manifest"]
        assert 'CMD ["start", "acme/base"]' in app["manifest"]
        # Artifacts copied into a context are returned to the cache on cleanup
        assert (config.artifact_cache / "acme-base-1.2.0-20170101000000-x86_64-linux.hart").exists()


def test_runtime_environment(tmp_path):
    (tmp_path / "init.sh").write_text("export PATH=/hab/bin:/bin\nexport HOME=/root\n")
    assert runtime_environment(tmp_path) == {"PATH": "/hab/bin:/bin"}


def test_runtime_environment_missing(tmp_path):
    with pytest.raises(BuildError):
        runtime_environment(tmp_path)
