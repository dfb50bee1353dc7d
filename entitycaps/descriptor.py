"""Service discovery descriptors consumed by the caps hashing code."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from typing import FrozenSet, Iterable, Iterator, List, Optional, Protocol, Tuple, Union

__all__ = [
    "CapabilitySet",
    "DataForm",
    "Descriptor",
    "ExtendedData",
    "FormField",
    "Identity",
]


@dataclass(frozen=True, slots=True)
class Identity:
    """Identity of an entity (``category/type/name``)."""

    type: Optional[str] = None
    name: Optional[str] = None
    category: str = "client"


@dataclass(frozen=True, slots=True)
class FormField:
    """A single field of an extended disco form."""

    variable: str
    values: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", tuple(self.values))


class DataForm:
    """Extended service discovery data (XEP-0128).

    Forms can be shared with code that keeps adding fields; readers that need
    a consistent view hold :attr:`lock` while traversing.
    """

    def __init__(self, fields: Iterable[FormField] = ()) -> None:
        self.lock = threading.RLock()
        self._fields: List[FormField] = list(fields)

    def add_field(self, form_field: FormField) -> None:
        with self.lock:
            self._fields.append(form_field)

    def fields(self) -> List[FormField]:
        with self.lock:
            return list(self._fields)

    def snapshot(self) -> Tuple[FormField, ...]:
        with self.lock:
            return tuple(self._fields)

    def __iter__(self) -> Iterator[FormField]:
        return iter(self.fields())

    def __len__(self) -> int:
        with self.lock:
            return len(self._fields)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DataForm):
            return NotImplemented
        return self.fields() == other.fields()

    def __repr__(self) -> str:
        return f"DataForm({self.fields()!r})"


# A live, shared form or an immutable snapshot of one.
ExtendedData = Union[DataForm, Tuple[FormField, ...]]


class CapabilitySet(Protocol):
    """Anything able to enumerate its identity, features and extended data."""

    def capabilities(self) -> Tuple[Identity, Iterable[str], Optional[ExtendedData]]: ...


@dataclass(frozen=True, slots=True)
class Descriptor:
    """Disco#info result of one entity.

    A :class:`DataForm` passed as ``extended_data`` is copied into a tuple on
    construction, so later changes to the form never reach the descriptor.
    ``sender``, ``recipient`` and ``packet_id`` belong to the transport
    envelope the descriptor arrived in and are dropped before caching.
    """

    identity: Identity = field(default_factory=Identity)
    features: FrozenSet[str] = frozenset()
    extended_data: Optional[Tuple[FormField, ...]] = None
    sender: Optional[str] = None
    recipient: Optional[str] = None
    packet_id: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "features", frozenset(self.features or ()))
        form = self.extended_data
        if isinstance(form, DataForm):
            object.__setattr__(self, "extended_data", form.snapshot())
        elif form is not None:
            object.__setattr__(self, "extended_data", tuple(form))

    def capabilities(self) -> Tuple[Identity, FrozenSet[str], Optional[Tuple[FormField, ...]]]:
        return self.identity, self.features, self.extended_data

    @property
    def has_envelope(self) -> bool:
        return any(v is not None for v in (self.sender, self.recipient, self.packet_id))

    def without_envelope(self) -> "Descriptor":
        if not self.has_envelope:
            return self
        return replace(self, sender=None, recipient=None, packet_id=None)
