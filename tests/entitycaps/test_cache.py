import logging
import threading
from typing import Dict, Iterable, List, Tuple

import pytest

from entitycaps.cache import CapsKey, NodeCache, PeerCache
from entitycaps.canonical import canonicalize_capabilities
from entitycaps.config import DEFAULT_NODE
from entitycaps.descriptor import Descriptor, Identity
from entitycaps.persistence import ConfigurationError


def _descriptor(**kwargs) -> Descriptor:
    return Descriptor(
        identity=Identity(type="pc", name="Test"),
        features=frozenset({"urn:a", "urn:b"}),
        **kwargs,
    )


class _MemoryStore:
    def __init__(self, entries: Iterable[Tuple[str, Descriptor]] = ()) -> None:
        self.stored: Dict[str, Descriptor] = dict(entries)
        self.writes: List[str] = []
        self.replays = 0

    def add_entry_persistent(self, node: str, descriptor: Descriptor) -> None:
        self.writes.append(node)
        self.stored[node] = descriptor

    def replay(self) -> Iterable[Tuple[str, Descriptor]]:
        self.replays += 1
        return list(self.stored.items())


class _BrokenStore(_MemoryStore):
    def add_entry_persistent(self, node: str, descriptor: Descriptor) -> None:
        raise OSError("disk full")


def test_caps_key_string_form():
    key = CapsKey("http://example.org/client", "abc=")
    assert str(key) == "http://example.org/client#abc="
    assert key == CapsKey("http://example.org/client", "abc=")


def test_node_cache_roundtrip_strips_envelope():
    cache = NodeCache()
    original = _descriptor(sender="a@b/c", recipient="d@e", packet_id="id1")
    key = CapsKey(cache.base_node, "ver=")
    cache.put(key, original)

    stored = cache.get(key)
    assert stored is not None
    assert stored.sender is None and stored.recipient is None and stored.packet_id is None
    assert canonicalize_capabilities(stored) == canonicalize_capabilities(original)
    assert cache.get(str(key)) is stored
    assert str(key) in cache
    assert len(cache) == 1


def test_node_cache_missing_entries():
    cache = NodeCache()
    assert cache.get("http://nowhere#x") is None
    assert cache.get(None) is None
    assert cache.get("") is None


def test_node_cache_base_node_default_and_update():
    cache = NodeCache()
    assert cache.base_node == DEFAULT_NODE
    cache.base_node = "http://example.org/caps"
    assert cache.base_node == "http://example.org/caps"


def test_persistent_cache_replayed_once_and_written_through():
    replayed = _descriptor(packet_id="old")
    store = _MemoryStore([("http://n#old=", replayed)])
    cache = NodeCache()
    cache.set_persistent_cache(store)

    assert store.replays == 1
    assert cache.get("http://n#old=") == replayed.without_envelope()
    assert store.writes == []

    cache.put("http://n#new=", _descriptor())
    assert store.writes == ["http://n#new="]


def test_persistent_cache_can_only_be_set_once():
    cache = NodeCache()
    cache.set_persistent_cache(_MemoryStore())
    second = _MemoryStore()
    with pytest.raises(ConfigurationError) as excinfo:
        cache.set_persistent_cache(second)
    assert excinfo.value.reason == ConfigurationError.ALREADY_SET
    assert second.replays == 0


def test_failed_replay_does_not_register():
    class _BadReplay(_MemoryStore):
        def replay(self):
            raise OSError("corrupt store")

    cache = NodeCache()
    with pytest.raises(OSError):
        cache.set_persistent_cache(_BadReplay())
    retry = _MemoryStore()
    cache.set_persistent_cache(retry)
    assert retry.replays == 1


def test_persistent_write_failure_keeps_memory_entry(caplog):
    cache = NodeCache()
    cache.set_persistent_cache(_BrokenStore())
    caplog.set_level(logging.ERROR)

    cache.put("http://n#v=", _descriptor())

    assert cache.get("http://n#v=") is not None
    assert any("caps_persist" in record.message for record in caplog.records)


def test_peer_cache_chains_to_node_cache():
    nodes = NodeCache()
    peers = PeerCache(nodes)
    descriptor = _descriptor()
    nodes.put("http://n#v=", descriptor)

    peers.set_peer_node("alice@example.org/home", "http://n#v=")
    assert peers.get_peer_node("alice@example.org/home") == "http://n#v="
    assert peers.get_descriptor_for_peer("alice@example.org/home") == descriptor
    assert peers.get_descriptor_for_peer("bob@example.org/work") is None

    peers.set_peer_node("bob@example.org/work", "http://n#unknown=")
    assert peers.get_descriptor_for_peer("bob@example.org/work") is None
    assert len(peers) == 2


def test_peer_cache_ignores_missing_identifiers():
    peers = PeerCache(NodeCache())
    peers.set_peer_node(None, "http://n#v=")
    peers.set_peer_node("alice@example.org/home", None)
    peers.set_peer_node("", "http://n#v=")
    peers.remove_peer_node(None)
    assert len(peers) == 0
    assert peers.get_peer_node(None) is None


def test_peer_cache_remove_is_idempotent():
    peers = PeerCache(NodeCache())
    peers.set_peer_node("a@x/r", CapsKey("http://n", "v="))
    assert peers.get_peer_node("a@x/r") == "http://n#v="
    peers.remove_peer_node("a@x/r")
    peers.remove_peer_node("a@x/r")
    assert peers.get_peer_node("a@x/r") is None
    assert len(peers) == 0


def test_node_cache_concurrent_put_get():
    cache = NodeCache()
    workers = 8
    per_worker = 200
    errors: List[str] = []
    start = threading.Barrier(workers)

    def _session(index: int) -> None:
        start.wait()
        for n in range(per_worker):
            node = f"http://n{index}#v{n}="
            descriptor = Descriptor(
                identity=Identity(type="pc", name=f"s{index}"),
                features=frozenset({f"urn:{index}:{n}"}),
            )
            cache.put(node, descriptor)
            if cache.get(node) != descriptor:
                errors.append(node)
            cache.get(f"http://n{(index + 1) % workers}#v{n}=")

    threads = [threading.Thread(target=_session, args=(i,)) for i in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10.0)

    assert errors == []
    assert len(cache) == workers * per_worker
    for index in range(workers):
        for n in range(per_worker):
            stored = cache.get(f"http://n{index}#v{n}=")
            assert stored is not None
            assert stored.identity.name == f"s{index}"
            assert stored.features == frozenset({f"urn:{index}:{n}"})
