"""Canonical verification string for entity capabilities (XEP-0115 §5.1).

The string is built from the identity, the sorted feature set and the
sorted extended form fields, every element terminated by ``<``.  Peers
compare hashes of this string, so the order below must not change.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

from .descriptor import CapabilitySet, DataForm, ExtendedData, FormField

__all__ = [
    "FORM_TYPE",
    "IDENTITY_CATEGORY",
    "canonicalize",
    "canonicalize_capabilities",
]

FORM_TYPE = "FORM_TYPE"
IDENTITY_CATEGORY = "client"
SEPARATOR = "<"


def _sorted_values(values: Iterable[str]) -> str:
    # str ordering is code point ordering, identical to UTF-8 byte ordering.
    return "".join(value + SEPARATOR for value in sorted(set(values)))


def _split_form(form: ExtendedData) -> Tuple[Optional[FormField], List[FormField]]:
    if isinstance(form, DataForm):
        with form.lock:
            fields = form.snapshot()
    else:
        fields = tuple(form)

    form_type: Optional[FormField] = None
    others: Dict[str, FormField] = {}
    for form_field in fields:
        if form_field.variable == FORM_TYPE:
            form_type = form_field
        else:
            # first field of a repeated variable wins
            others.setdefault(form_field.variable, form_field)
    return form_type, [others[variable] for variable in sorted(others)]


def canonicalize(
    identity_type: Optional[str],
    identity_name: Optional[str],
    features: Optional[Iterable[str]],
    extended_data: Optional[ExtendedData] = None,
) -> str:
    """Return the verification string for the given capabilities.

    Missing identity parts are rendered as empty strings, so an entity with
    neither type nor name yields ``"client///<"``.
    """

    parts = [
        f"{IDENTITY_CATEGORY}/{identity_type or ''}//{identity_name or ''}{SEPARATOR}",
        _sorted_values(features or ()),
    ]

    if extended_data is not None:
        form_type, others = _split_form(extended_data)
        if form_type is not None:
            parts.append(_sorted_values(form_type.values))
        for form_field in others:
            parts.append(form_field.variable + SEPARATOR)
            parts.append(_sorted_values(form_field.values))

    return "".join(parts)


def canonicalize_capabilities(caps: CapabilitySet) -> str:
    identity, features, extended_data = caps.capabilities()
    return canonicalize(identity.type, identity.name, features, extended_data)
