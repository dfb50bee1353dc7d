"""Entity capabilities (XEP-0115) hashing and caching."""

__all__ = [
    "cache",
    "canonical",
    "config",
    "descriptor",
    "hashing",
    "logging",
    "manager",
    "persistence",
    "presence",
]
