"""Interface of the optional durable mirror of the node cache."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Iterable, Protocol, Tuple

from .descriptor import Descriptor

__all__ = ["ConfigurationError", "PersistentCache"]


class PersistentCache(Protocol):
    """Durable storage for ``node#ver`` -> descriptor entries.

    ``add_entry_persistent`` may write asynchronously or in batches.
    ``replay`` is called once, when the cache is registered, and returns the
    stored entries so the in-memory cache can be rehydrated; it must not
    call back into the node cache.
    """

    def add_entry_persistent(self, node: str, descriptor: Descriptor) -> None: ...

    def replay(self) -> Iterable[Tuple[str, Descriptor]]: ...


@dataclass(slots=True)
class ConfigurationError(RuntimeError):
    """Raised for invalid startup wiring."""

    reason: str
    detail: str = ""

    ALREADY_SET: ClassVar[str] = "already-set"

    def __str__(self) -> str:
        if self.detail:
            return f"{self.reason}: {self.detail}"
        return self.reason
