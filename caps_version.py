"""Command line tool printing the entity caps ``node#ver`` for a feature set."""

from __future__ import annotations

import argparse
import sys
from typing import Dict, List, Sequence, Tuple

from entitycaps.cache import CapsKey
from entitycaps.canonical import canonicalize_capabilities
from entitycaps.config import CapsConfig, load_config
from entitycaps.descriptor import DataForm, Descriptor, FormField, Identity
from entitycaps.hashing import HashError, compute_hash
from entitycaps.logging import configure_logging


def _form_field(raw: str) -> Tuple[str, str]:
    variable, sep, value = raw.partition("=")
    if not sep or not variable:
        raise argparse.ArgumentTypeError(f"expected VAR=VALUE, got {raw!r}")
    return variable, value


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""

    parser = argparse.ArgumentParser(
        description="Compute the XEP-0115 capabilities version of an entity"
    )
    parser.add_argument("--type", dest="identity_type", default=None, help="Identity type")
    parser.add_argument("--name", dest="identity_name", default=None, help="Identity name")
    parser.add_argument(
        "--feature",
        dest="features",
        action="append",
        default=[],
        help="Feature namespace (repeatable)",
    )
    parser.add_argument(
        "--field",
        dest="fields",
        type=_form_field,
        action="append",
        default=[],
        metavar="VAR=VALUE",
        help="Extended form field value (repeatable)",
    )
    parser.add_argument("--node", default=None, help="Base node URI")
    parser.add_argument("--hash", dest="hash_method", default=None, help="Hash method")
    parser.add_argument(
        "--show-canonical",
        action="store_true",
        help="Print the canonical string before the version",
    )
    parser.add_argument("--log-level", default=None, help="Logging level")
    return parser.parse_args(argv)


def build_descriptor(args: argparse.Namespace, config: CapsConfig | None = None) -> Descriptor:
    config = config or load_config()
    grouped: Dict[str, List[str]] = {}
    for variable, value in args.fields:
        grouped.setdefault(variable, []).append(value)
    extended = None
    if grouped:
        extended = DataForm(FormField(var, tuple(values)) for var, values in grouped.items())
    return Descriptor(
        identity=Identity(
            type=args.identity_type or config.identity_type,
            name=args.identity_name or config.identity_name,
        ),
        features=frozenset(args.features),
        extended_data=extended,
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Print ``node#ver`` for the capabilities given on the command line."""

    args = parse_args(argv)
    if args.log_level:
        configure_logging(args.log_level, use_queue=False)
    config = load_config()
    descriptor = build_descriptor(args, config)
    canonical = canonicalize_capabilities(descriptor)
    if args.show_canonical:
        print(canonical)
    try:
        version = compute_hash(canonical, args.hash_method or config.hash_method)
    except HashError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    print(CapsKey(args.node or config.node, version))
    return 0


if __name__ == "__main__":  # pragma: no cover - convenience wrapper
    raise SystemExit(main())
