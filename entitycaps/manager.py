"""Entity capabilities orchestration."""

from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional, Protocol

from .cache import CapsKey, NodeCache, NodeKey, PeerCache
from .canonical import canonicalize_capabilities
from .descriptor import CapabilitySet, Descriptor
from .hashing import DEFAULT_HASH_METHOD, HashError, compute_hash
from .logging import get_logger
from .persistence import PersistentCache
from .presence import CAPS_NAMESPACE, CapsExtension, PresenceConnection, PresenceListener

__all__ = [
    "CAPS_FEATURE",
    "CapsVerListener",
    "DiscoveryManager",
    "EntityCapsManager",
]

CAPS_FEATURE = CAPS_NAMESPACE

CapsVerListener = Callable[[str], None]


class DiscoveryManager(Protocol):
    """Service discovery layer the manager announces its feature to."""

    def add_feature(self, feature: str) -> None: ...


class EntityCapsManager:
    """Keep track of our own caps version and of the peers' caps nodes.

    One manager exists per session.  The :class:`NodeCache` passed in is
    shared by all managers of the process.  Version state and listeners are
    guarded by a single re-entrant lock so that a recompute and its
    notifications cannot interleave with :meth:`add_listener`.
    """

    def __init__(
        self,
        discovery: Optional[DiscoveryManager],
        node_cache: NodeCache,
        *,
        hash_method: str = DEFAULT_HASH_METHOD,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._node_cache = node_cache
        self._hash_method = hash_method
        self._log = logger or get_logger("manager")
        self._peers = PeerCache(node_cache, logger=self._log.getChild("peers"))
        self._lock = threading.RLock()
        self._listeners: List[CapsVerListener] = []
        self._current_version: Optional[str] = None
        self._last_error: Optional[HashError] = None
        if discovery is not None:
            discovery.add_feature(CAPS_FEATURE)

    # ------------------------------------------------------------------
    @property
    def node_cache(self) -> NodeCache:
        return self._node_cache

    @property
    def peer_cache(self) -> PeerCache:
        return self._peers

    @property
    def node(self) -> str:
        return self._node_cache.base_node

    def set_node(self, node: str) -> None:
        self._node_cache.base_node = node

    def get_caps_version(self) -> Optional[str]:
        with self._lock:
            return self._current_version

    @property
    def last_error(self) -> Optional[HashError]:
        """Error of the most recent recompute, ``None`` after a success."""

        with self._lock:
            return self._last_error

    def caps_extension(self) -> Optional[CapsExtension]:
        """Caps element for our own outgoing presence, if a version is known."""

        with self._lock:
            version = self._current_version
        if version is None:
            return None
        return CapsExtension(self.node, version, self._hash_method)

    # ------------------------------------------------------------------
    def calculate_version(self, caps: CapabilitySet) -> str:
        """Return the version for *caps* without touching any state."""

        return compute_hash(canonicalize_capabilities(caps), self._hash_method)

    def recompute_version(self, descriptor: Descriptor) -> Optional[str]:
        """Hash our own *descriptor*, cache it and notify the listeners.

        If the hash cannot be computed the current version is cleared,
        :attr:`last_error` is set and no listener is called.
        """

        with self._lock:
            try:
                version = self.calculate_version(descriptor)
            except HashError as exc:
                self._current_version = None
                self._last_error = exc
                self._log.error(
                    "caps_version node=%s status=failed error=%s", self.node, exc
                )
                return None
            self.set_current_caps_version(descriptor, version)
            return version

    def set_current_caps_version(self, descriptor: Descriptor, version: str) -> None:
        with self._lock:
            self._current_version = version
            self._last_error = None
            self._node_cache.put(CapsKey(self.node, version), descriptor)
            self._log.info(
                "caps_version node=%s ver=%s listeners=%d",
                self.node,
                version,
                len(self._listeners),
            )
            self._notify(version)

    # ------------------------------------------------------------------
    def add_listener(self, listener: CapsVerListener) -> None:
        """Register *listener*; it is called at once if a version is known."""

        with self._lock:
            if listener in self._listeners:
                return
            self._listeners.append(listener)
            if self._current_version is not None:
                self._call_listener(listener, self._current_version)

    def remove_listener(self, listener: CapsVerListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _notify(self, version: str) -> None:
        for listener in list(self._listeners):
            self._call_listener(listener, version)

    def _call_listener(self, listener: CapsVerListener, version: str) -> None:
        try:
            listener(version)
        except Exception:
            self._log.exception("caps_version listener=%r status=failed", listener)

    # ------------------------------------------------------------------
    def on_peer_advertisement(self, peer_id: Optional[str], node: Optional[NodeKey]) -> None:
        """Record the ``node#ver`` *peer_id* advertised in its presence."""

        self._peers.set_peer_node(peer_id, node)

    def remove_peer_node(self, peer_id: Optional[str]) -> None:
        self._peers.remove_peer_node(peer_id)

    def get_node_version_by_peer(self, peer_id: Optional[str]) -> Optional[str]:
        return self._peers.get_peer_node(peer_id)

    def lookup(self, peer_id: Optional[str]) -> Optional[Descriptor]:
        return self._peers.get_descriptor_for_peer(peer_id)

    def get_descriptor_by_node(self, node: Optional[NodeKey]) -> Optional[Descriptor]:
        return self._node_cache.get(node)

    def add_descriptor_by_node(self, node: NodeKey, descriptor: Descriptor) -> None:
        """Store a resolved remote descriptor, e.g. after a disco#info query."""

        self._node_cache.put(node, descriptor)

    def set_persistent_cache(self, cache: PersistentCache) -> None:
        self._node_cache.set_persistent_cache(cache)

    def attach(self, connection: PresenceConnection) -> PresenceListener:
        """Have *connection* deliver caps-carrying presences to this manager."""

        listener = PresenceListener(self)
        connection.add_presence_listener(listener)
        return listener
