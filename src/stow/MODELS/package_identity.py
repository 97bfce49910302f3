"""
Models describing a resolved Habitat package.
"""
from pydantic import BaseModel, ConfigDict


class PackageIdentity(BaseModel):
    """
    Fully qualified identity of an installed package, as read from its IDENT file.
    """
    model_config = ConfigDict(frozen=True)

    origin: str
    name: str
    version: str
    release: str

    @classmethod
    def parse(cls, content: str) -> "PackageIdentity":
        """
        Parses an IDENT record such as ``core/nginx/1.11.10/20170215235242``.

        :raises ValueError: If the record does not have exactly four non-empty fields.
        """
        parts = content.strip().split("/")
        if len(parts) != 4 or not all(parts):
            raise ValueError(f"Malformed package identifier: {content.strip()!r}")
        origin, name, version, release = parts
        return cls(origin=origin, name=name, version=version, release=release)

    @property
    def ident(self) -> str:
        return f"{self.origin}/{self.name}"

    @property
    def version_tag(self) -> str:
        return f"{self.version}-{self.release}"

    @property
    def artifact_prefix(self) -> str:
        """File name prefix of this package's local .hart artifact."""
        return f"{self.origin}-{self.name}-{self.version}-{self.release}"

    def __str__(self) -> str:
        return f"{self.ident}/{self.version}/{self.release}"
