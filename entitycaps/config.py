"""Environment driven configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .hashing import DEFAULT_HASH_METHOD, is_supported
from .logging import get_logger

__all__ = ["CapsConfig", "DEFAULT_NODE", "load_config"]

DEFAULT_NODE = "http://www.igniterealtime.org/projects/smack/"

_log = get_logger("config")


@dataclass(slots=True)
class CapsConfig:
    """Settings for an entity capabilities setup."""

    node: str = DEFAULT_NODE
    hash_method: str = DEFAULT_HASH_METHOD
    identity_type: str = "pc"
    identity_name: str = "entitycaps"


def _coerce_str(value: Optional[str], default: str) -> str:
    if value is None:
        return default
    value = value.strip()
    return value or default


def _coerce_hash(value: Optional[str], default: str) -> str:
    resolved = _coerce_str(value, default).lower()
    if not is_supported(resolved):
        _log.warning("Unsupported hash method %r; using %s", value, default)
        return default
    return resolved


def load_config(environ: Optional[Mapping[str, str]] = None) -> CapsConfig:
    """Build a :class:`CapsConfig` from ``ENTITYCAPS_*`` variables."""

    env = os.environ if environ is None else environ
    defaults = CapsConfig()
    return CapsConfig(
        node=_coerce_str(env.get("ENTITYCAPS_NODE"), defaults.node),
        hash_method=_coerce_hash(env.get("ENTITYCAPS_HASH"), defaults.hash_method),
        identity_type=_coerce_str(
            env.get("ENTITYCAPS_IDENTITY_TYPE"), defaults.identity_type
        ),
        identity_name=_coerce_str(
            env.get("ENTITYCAPS_IDENTITY_NAME"), defaults.identity_name
        ),
    )
