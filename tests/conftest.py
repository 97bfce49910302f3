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
Shared fixtures: in-memory stand-ins for the hab and docker collaborators.
"""
from pathlib import Path

import pytest

from stow.errors import BuildError, InstallError, NotInstalledError, PushError
from stow.MODELS.stow_config import StowConfig


class FakePackageManager:
    """Installs packages by writing their metadata files under a temp root."""

    def __init__(self, root: Path, packages: dict, tool_version: str = "1.0"):
        self.root = Path(root)
        self.packages = packages
        self.version = tool_version
        self.installed = set()
        self.install_calls = []
        self.studio_calls = []

    def install(self, ref):
        self.install_calls.append(ref)
        if ref not in self.packages:
            raise InstallError(f"Failed to install {ref}")
        meta = self.packages[ref]
        path = self.root / "pkgs" / ref
        path.mkdir(parents=True, exist_ok=True)
        (path / "IDENT").write_text(meta["ident"] + "\n")
        if meta.get("deps"):
            (path / "DEPS").write_text("\n".join(meta["deps"]) + "\n")
        if meta.get("exposes"):
            (path / "EXPOSES").write_text("\n".join(str(p) for p in meta["exposes"]) + "\n")
        self.installed.add(ref)

    def path_for(self, ref):
        if ref not in self.installed:
            raise NotInstalledError(f"Package {ref} is not installed")
        return self.root / "pkgs" / ref

    def tool_version(self):
        return self.version

    def studio_new(self, rootfs):
        self.studio_calls.append(Path(rootfs))
        Path(rootfs).mkdir(parents=True, exist_ok=True)
        (Path(rootfs) / "init.sh").write_text(
            "#!/bin/sh\nexport PATH=/hab/bin:/bin\nexec hab sup \"$@\"\n"
        )


class FakeDocker:
    """Local image index kept in a dict of tag -> image id."""

    def __init__(self, images=None, fail_builds=(), fail_pushes=()):
        self.images = dict(images or {})
        self.fail_builds = set(fail_builds)
        self.fail_pushes = set(fail_pushes)
        self.builds = []
        self.tags = []
        self.pushes = []
        self._next_id = 0

    def exists(self, tag):
        return str(tag) in self.images

    def build(self, context, manifest, tag):
        self.builds.append({
            "tag": str(tag),
            "context": Path(context),
            "manifest": Path(manifest).read_text(),
            "files": sorted(p.name for p in Path(context).iterdir()),
        })
        if str(tag) in self.fail_builds:
            raise BuildError(f"docker build of {tag} failed")
        self._next_id += 1
        self.images[str(tag)] = f"img{self._next_id}"

    def tag(self, source, dest):
        if str(source) not in self.images:
            raise BuildError(f"No such image: {source}")
        self.tags.append((str(source), str(dest)))
        self.images[str(dest)] = self.images[str(source)]

    def push(self, tag):
        if str(tag) in self.fail_pushes:
            raise PushError(f"docker push {tag} failed")
        self.pushes.append(str(tag))

    @property
    def built_tags(self):
        return [b["tag"] for b in self.builds]


PACKAGES = {
    "acme/base": {
        "ident": "acme/base/1.2.0/20170101000000",
        "deps": ["core/y", "core/x"],
        "exposes": [8080],
    },
    "acme/other": {
        "ident": "acme/other/0.3.1/20170202000000",
        "deps": ["core/x", "core/y", "core/x"],
    },
    "acme/lonely": {
        "ident": "acme/lonely/2.0.0/20170303000000",
    },
}


@pytest.fixture
def config(tmp_path):
    cfg = StowConfig(hab_root_path=str(tmp_path / "hab"))
    cfg.artifact_cache.mkdir(parents=True)
    cfg.key_cache.mkdir(parents=True)
    (cfg.key_cache / "acme-20170101.pub").write_text("public key")
    for meta in PACKAGES.values():
        prefix = meta["ident"].replace("/", "-")
        (cfg.artifact_cache / f"{prefix}-x86_64-linux.hart").write_text("hart")
    return cfg


@pytest.fixture
def package_manager(tmp_path):
    return FakePackageManager(tmp_path / "pkgroot", PACKAGES)


@pytest.fixture
def docker():
    return FakeDocker()
