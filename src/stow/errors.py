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
Exceptions raised while resolving packages and assembling images.
"""


class StowError(Exception):
    """Base class for every error that aborts a stow invocation."""


class ConfigurationError(StowError):
    """Missing or malformed input, detected before any side effect."""


class PackageNotFoundError(StowError):
    """The requested package could not be resolved to usable metadata."""


class MalformedMetadataError(PackageNotFoundError):
    """An installed package carries an unreadable IDENT or EXPOSES file."""


class InstallError(StowError):
    """The package manager failed to install a package."""


class NotInstalledError(StowError):
    """The package manager has no installed path for a package."""


class BuildError(StowError):
    """The image builder rejected or failed a layer build."""


class ArtifactNotFoundError(BuildError):
    """The local package artifact needed by the application layer is missing."""


class PushError(StowError):
    """Publishing a tag to the registry failed after a successful build."""
