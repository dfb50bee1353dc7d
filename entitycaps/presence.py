"""Caps presence extension and the delivery callback for peer presences."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional, Protocol

from .cache import CapsKey
from .hashing import DEFAULT_HASH_METHOD
from .logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .manager import EntityCapsManager

__all__ = [
    "CAPS_NAMESPACE",
    "CapsExtension",
    "PresenceConnection",
    "PresenceListener",
]

CAPS_NAMESPACE = "http://jabber.org/protocol/caps"


@dataclass(frozen=True, slots=True)
class CapsExtension:
    """Contents of a ``<c xmlns='http://jabber.org/protocol/caps'/>`` element."""

    node: str
    ver: str
    hash: str = DEFAULT_HASH_METHOD
    ext: Optional[str] = None

    @property
    def caps_node(self) -> str:
        return str(self.key)

    @property
    def key(self) -> CapsKey:
        return CapsKey(self.node, self.ver)


PresenceCallback = Callable[..., None]


class PresenceConnection(Protocol):
    """Transport side that delivers presences carrying a caps element."""

    def add_presence_listener(self, callback: PresenceCallback) -> None: ...


class PresenceListener:
    """Feed peer presences into an :class:`EntityCapsManager`.

    Called as ``listener(peer_id, caps, available=True)``.  An unavailable
    presence withdraws whatever the peer advertised before.
    """

    def __init__(
        self,
        manager: "EntityCapsManager",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._manager = manager
        self._log = logger or get_logger("presence")

    def __call__(
        self,
        peer_id: Optional[str],
        caps: Optional[CapsExtension] = None,
        available: bool = True,
    ) -> None:
        if not available:
            self._manager.remove_peer_node(peer_id)
            self._log.debug("caps_presence peer=%s status=unavailable", peer_id)
            return
        if caps is None:
            return
        self._manager.on_peer_advertisement(peer_id, caps.caps_node)
        self._log.debug(
            "caps_presence peer=%s node=%s hash=%s", peer_id, caps.caps_node, caps.hash
        )
