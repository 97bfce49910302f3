"""
Collection of the dependency set shared by a package's base layer.
"""
import logging
from pathlib import Path
from typing import Iterable, Set, Tuple

from .package_manager import HabPackageManager

logger = logging.getLogger(__name__)

DEPS_FILE = "DEPS"

DependencySet = Tuple[str, ...]


class DependencyCollector:
    """
    Unions the DEPS lists of one or more seed packages into a canonical,
    sorted and deduplicated dependency set.
    """
    def __init__(self, package_manager: HabPackageManager):
        """
        :param package_manager: Client used to install and locate packages.
        """
        self.package_manager = package_manager

    def collect(self, seeds: Iterable[str]) -> DependencySet:
        """
        Computes the dependency set for the given seeds.

        The result only depends on the set of seeds and their declared
        dependencies, never on ordering or repetition.

        :param seeds: Package references whose dependencies are collected.
        :return: Sorted tuple of unique dependency references.
        :raises InstallError: If a seed cannot be installed.
        """
        deps: Set[str] = set()
        for seed in seeds:
            self.package_manager.install(seed)
            deps.update(self._read_deps(self.package_manager.path_for(seed)))

        collected = tuple(sorted(deps))
        logger.debug("Collected %d base dependencies: %s", len(collected), " ".join(collected))
        return collected

    @staticmethod
    def _read_deps(path: Path) -> Set[str]:
        # No DEPS file means the package has no dependencies
        deps_file = Path(path) / DEPS_FILE
        if not deps_file.is_file():
            return set()
        return {line.strip() for line in deps_file.read_text().splitlines() if line.strip()}
