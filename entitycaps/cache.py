"""Node and peer caches for entity capabilities."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Optional, Union

from .config import DEFAULT_NODE
from .descriptor import Descriptor
from .logging import get_logger
from .persistence import ConfigurationError, PersistentCache

__all__ = ["CapsKey", "NodeCache", "PeerCache"]


@dataclass(frozen=True, slots=True)
class CapsKey:
    """``node#ver`` cache key."""

    base_node: str
    version: str

    def __str__(self) -> str:
        return f"{self.base_node}#{self.version}"


NodeKey = Union[CapsKey, str]


class NodeCache:
    """Process-wide mapping of ``node#ver`` to resolved descriptors.

    One instance is created at startup and handed to every
    :class:`~entitycaps.manager.EntityCapsManager`.  Reads and writes are
    internally synchronised; entries are only ever added.
    """

    def __init__(
        self,
        base_node: str = DEFAULT_NODE,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._entries: Dict[str, Descriptor] = {}
        self._lock = threading.Lock()
        self._persistent: Optional[PersistentCache] = None
        self._base_node = base_node
        self._log = logger or get_logger("cache")

    @property
    def base_node(self) -> str:
        return self._base_node

    @base_node.setter
    def base_node(self, node: str) -> None:
        with self._lock:
            self._base_node = node

    def put(self, key: NodeKey, descriptor: Descriptor) -> None:
        node = str(key)
        descriptor = descriptor.without_envelope()
        with self._lock:
            self._entries[node] = descriptor
            persistent = self._persistent
        if persistent is None:
            return
        try:
            persistent.add_entry_persistent(node, descriptor)
        except Exception:
            self._log.exception("caps_persist node=%s status=failed", node)

    def get(self, key: Optional[NodeKey]) -> Optional[Descriptor]:
        if not key:
            return None
        with self._lock:
            return self._entries.get(str(key))

    def set_persistent_cache(self, cache: PersistentCache) -> None:
        """Register *cache* and rehydrate from it; allowed exactly once."""

        with self._lock:
            if self._persistent is not None:
                raise ConfigurationError(
                    ConfigurationError.ALREADY_SET,
                    "entity caps persistent cache was already set",
                )
            replayed = 0
            for node, descriptor in cache.replay():
                self._entries[str(node)] = descriptor.without_envelope()
                replayed += 1
            self._persistent = cache
        self._log.info("caps_persist status=registered replayed=%d", replayed)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return str(key) in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class PeerCache:
    """Per-session mapping of peer address to the ``node#ver`` it advertised.

    Session peers are keyed by full address (with resource), link-local and
    server peers by bare address or domain.
    """

    def __init__(
        self,
        node_cache: NodeCache,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._node_cache = node_cache
        self._nodes: Dict[str, str] = {}
        self._lock = threading.Lock()
        self._log = logger or get_logger("cache.peers")

    def set_peer_node(self, peer_id: Optional[str], node: Optional[NodeKey]) -> None:
        if not peer_id or not node:
            self._log.debug("caps_peer ignored peer=%r node=%r", peer_id, node)
            return
        with self._lock:
            self._nodes[peer_id] = str(node)

    def remove_peer_node(self, peer_id: Optional[str]) -> None:
        if not peer_id:
            return
        with self._lock:
            self._nodes.pop(peer_id, None)

    def get_peer_node(self, peer_id: Optional[str]) -> Optional[str]:
        if not peer_id:
            return None
        with self._lock:
            return self._nodes.get(peer_id)

    def get_descriptor_for_peer(self, peer_id: Optional[str]) -> Optional[Descriptor]:
        node = self.get_peer_node(peer_id)
        if node is None:
            return None
        return self._node_cache.get(node)

    def __len__(self) -> int:
        with self._lock:
            return len(self._nodes)
