"""
Resolution of a package reference to its identity and install path.
"""
import logging
from pathlib import Path
from typing import Tuple

from ..errors import (InstallError, MalformedMetadataError, NotInstalledError,
                      PackageNotFoundError)
from ..MODELS.package_identity import PackageIdentity
from .package_manager import HabPackageManager

logger = logging.getLogger(__name__)

IDENT_FILE = "IDENT"
EXPOSES_FILE = "EXPOSES"


class MetadataResolver:
    """
    Reads package metadata, installing the package first when it is missing.
    """
    def __init__(self, package_manager: HabPackageManager):
        """
        :param package_manager: Client used to install and locate packages.
        """
        self.package_manager = package_manager

    def resolve(self, ref: str) -> Tuple[PackageIdentity, Path]:
        """
        Resolves a package reference such as 'core/nginx'.

        :param ref: Package reference.
        :return: The package identity and its install directory.
        :raises PackageNotFoundError: If no metadata exists even after installing.
        """
        path = self._installed_path(ref)
        if path is None or not (path / IDENT_FILE).is_file():
            logger.info("Package %s not installed locally, installing", ref)
            try:
                self.package_manager.install(ref)
            except InstallError as e:
                raise PackageNotFoundError(f"Package {ref} could not be installed: {e}") from e
            path = self._installed_path(ref)

        if path is None or not (path / IDENT_FILE).is_file():
            raise PackageNotFoundError(f"Package {ref} has no {IDENT_FILE} metadata after install")

        ident_file = path / IDENT_FILE
        try:
            identity = PackageIdentity.parse(ident_file.read_text())
        except ValueError as e:
            raise MalformedMetadataError(f"{ident_file}: {e}") from e

        logger.debug("Resolved %s to %s at %s", ref, identity, path)
        return identity, path

    def declared_ports(self, path: Path) -> Tuple[int, ...]:
        """
        Ports the package declares in its EXPOSES file, empty if it has none.

        :raises MalformedMetadataError: If the file holds a non-numeric entry.
        """
        expose_file = Path(path) / EXPOSES_FILE
        if not expose_file.is_file():
            return ()
        ports = []
        for token in expose_file.read_text().split():
            if not token.isdigit():
                raise MalformedMetadataError(f"{expose_file}: invalid port {token!r}")
            ports.append(int(token))
        return tuple(ports)

    @staticmethod
    def name(ref: str) -> str:
        """Last path segment of a reference: 'core/nginx' -> 'nginx'."""
        return ref.rstrip("/").split("/")[-1]

    def _installed_path(self, ref: str):
        try:
            return self.package_manager.path_for(ref)
        except NotInstalledError:
            return None
