"""
Cache keys for shared dependency layers.
"""
import hashlib
from typing import Sequence

CACHE_KEY_LENGTH = 16


def derive_cache_key(tool_version: str, deps: Sequence[str]) -> str:
    """
    Derives the short content hash identifying a dependency set.

    Two builds with the same dependency set under the same tool version get
    the same key, which is what lets unrelated packages share one image.

    :param tool_version: Version of the hab binary building the layer.
    :param deps: Dependency set; re-canonicalized so ordering and duplicates never matter.
    :return: First 16 hex characters of the SHA-256 digest.

    Example:
        >>> derive_cache_key("1.0", ["core/x", "core/y"]) == \\
        ...     hashlib.sha256(b"1.0core/x core/y").hexdigest()[:16]
        True
    """
    payload = tool_version + " ".join(sorted(set(deps)))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:CACHE_KEY_LENGTH]
