"""Version hashing for canonical capability strings."""

from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass
from typing import ClassVar, Dict, Optional

__all__ = [
    "DEFAULT_HASH_METHOD",
    "HashError",
    "compute_hash",
    "hashlib_name",
    "is_supported",
]

DEFAULT_HASH_METHOD = "sha-1"

# IANA hash names as used in the caps ``hash`` attribute.
_HASHLIB_NAMES: Dict[str, str] = {
    "md5": "md5",
    "sha-1": "sha1",
    "sha-224": "sha224",
    "sha-256": "sha256",
    "sha-384": "sha384",
    "sha-512": "sha512",
}


@dataclass(slots=True)
class HashError(RuntimeError):
    """Raised when a version cannot be computed."""

    algorithm: str
    reason: str = "unsupported-algorithm"

    UNSUPPORTED_ALGORITHM: ClassVar[str] = "unsupported-algorithm"

    def __str__(self) -> str:
        return f"{self.reason}: {self.algorithm}"


def hashlib_name(method: str) -> Optional[str]:
    return _HASHLIB_NAMES.get((method or "").strip().lower())


def is_supported(method: str) -> bool:
    name = hashlib_name(method)
    return name is not None and name in hashlib.algorithms_available


def compute_hash(canonical: str, method: str = DEFAULT_HASH_METHOD) -> str:
    """Digest the UTF-8 bytes of *canonical* and return it Base64 encoded."""

    name = hashlib_name(method)
    if name is None:
        raise HashError(method, HashError.UNSUPPORTED_ALGORITHM)
    try:
        digest = hashlib.new(name, canonical.encode("utf-8")).digest()
    except ValueError as exc:
        # e.g. md5 on a FIPS restricted build
        raise HashError(method, HashError.UNSUPPORTED_ALGORITHM) from exc
    return base64.b64encode(digest).decode("ascii")
