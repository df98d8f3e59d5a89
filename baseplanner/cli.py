"""Command-line access to share strings.

Usage:
    python -m baseplanner decode <share-string>        # design JSON to stdout
    python -m baseplanner encode design.json           # share string to stdout
    python -m baseplanner encode design.json --base-url https://example.org/
    python -m baseplanner stats <share-string>         # piece and material totals

``-`` in place of a share string or file reads it from stdin.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from .engine.errors import DecodeFailure
from .engine.types import DesignState
from .frontend import codec
from .frontend.session import PlannerSession

logger = logging.getLogger(__name__)


def _read_arg(value: str) -> str:
    if value == "-":
        return sys.stdin.read().strip()
    return value


def _load_json(path: str) -> dict:
    if path == "-":
        return json.load(sys.stdin)
    with open(path) as f:
        return json.load(f)


def cmd_decode(args) -> int:
    state = codec.decode(_read_arg(args.payload))
    print(json.dumps(state.to_dict(), indent=args.indent))
    return 0


def cmd_encode(args) -> int:
    state = DesignState.from_dict(_load_json(args.file))
    if args.base_url:
        url, fits = codec.share_url(args.base_url, state)
        print(url)
        if not fits:
            logger.warning("Share link is %d characters, too long to embed", len(url))
    else:
        print(codec.encode(state))
    return 0


def cmd_stats(args) -> int:
    state = codec.decode(_read_arg(args.payload))
    bom = PlannerSession(state).bill_of_materials()
    print(f"Pieces: {bom.total_pieces}")
    for kind, count in sorted(bom.pieces.items()):
        print(f"  {kind}: {count}")
    print("Materials:")
    for material, amount in sorted(bom.materials.items()):
        print(f"  {material}: {amount}")
    floors = state.floors_with_content()
    print(f"Floors: {', '.join(str(f) for f in floors) or 'none'}")
    if state.settings.fief_mode:
        print(
            f"Fief: {state.settings.fief_type}, "
            f"{len(state.claimed_areas)} claimed, "
            f"{state.stakes_inventory} stakes left"
        )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="baseplanner",
        description="Decode, encode and inspect base planner share strings",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("decode", help="Print a share string as design JSON")
    p.add_argument("payload", help="Share string, or - for stdin")
    p.add_argument(
        "--indent", type=int, default=2, help="JSON indent (default: 2)"
    )
    p.set_defaults(func=cmd_decode)

    p = sub.add_parser("encode", help="Compress design JSON to a share string")
    p.add_argument("file", help="Design JSON file, or - for stdin")
    p.add_argument(
        "--base-url",
        default=None,
        help="Print a full share link using this base URL",
    )
    p.set_defaults(func=cmd_encode)

    p = sub.add_parser("stats", help="Summarise the design in a share string")
    p.add_argument("payload", help="Share string, or - for stdin")
    p.set_defaults(func=cmd_stats)
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except DecodeFailure as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    except (OSError, json.JSONDecodeError) as e:
        print(f"error: cannot read design: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"error: invalid design: {e}", file=sys.stderr)
        return 1
