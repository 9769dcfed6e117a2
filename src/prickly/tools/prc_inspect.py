"""Batch utilities for param files: snapshot export/import, round-trip checks
and searches.

Examples::

    prc-inspect dump fighter_param.prc fighter_param.json
    prc-inspect build fighter_param.json fighter_param.prc
    prc-inspect verify *.prc
    prc-inspect find fighter_param.prc "walk_speed" --labels ParamLabels.csv
"""

from __future__ import annotations

import argparse
import logging
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from ..param.decoder import decode
from ..param.display import format_path, format_value
from ..param.editor import find, name_matches, value_matches
from ..param.encoder import encode
from ..param.errors import ParamError
from ..param.files import open_param, save_param
from ..param.labels import LabelMap, load_labels
from ..param.nodes import get_node
from ..param.snapshot import load_snapshot, write_snapshot

logger = logging.getLogger(__name__)

PROG = "prc-inspect"


@dataclass
class VerifyResult:
    path: Path
    ok: bool
    detail: str = ""

    def render(self) -> str:
        status = "ok" if self.ok else "FAIL"
        line = f"{status:<4} {self.path}"
        if self.detail:
            line = f"{line}: {self.detail}"
        return line


def _first_difference(left: bytes, right: bytes) -> int:
    for offset, (a, b) in enumerate(zip(left, right)):
        if a != b:
            return offset
    return min(len(left), len(right))


def verify_file(path: Path) -> VerifyResult:
    """Decode *path*, re-encode it and compare the bytes."""

    try:
        data = path.read_bytes()
        reencoded = encode(decode(data))
    except (ParamError, OSError) as exc:
        return VerifyResult(path, False, str(exc))
    if reencoded == data:
        return VerifyResult(path, True)
    offset = _first_difference(data, reencoded)
    return VerifyResult(
        path,
        False,
        f"re-encoded bytes differ at {offset:#x} ({len(data)} -> {len(reencoded)} bytes)",
    )


def find_lines(path: Path, pattern: str, *, values: bool, labels: Optional[LabelMap]) -> List[str]:
    root = open_param(path)
    predicate = value_matches(pattern, labels) if values else name_matches(pattern, labels)
    lines = []
    for match in find(root, predicate):
        node = get_node(root, match)
        lines.append(f"{format_path(match, labels)} = {format_value(node, labels)}")
    return lines


def _labels_for(args: argparse.Namespace, open_file: Optional[Path]) -> LabelMap:
    return load_labels(open_file=open_file, explicit=args.labels)


def _cmd_dump(args: argparse.Namespace) -> int:
    root = open_param(args.file)
    write_snapshot(args.output, root, _labels_for(args, args.file))
    print(f"Wrote {args.output}")
    return 0


def _cmd_build(args: argparse.Namespace) -> int:
    root = load_snapshot(args.snapshot, _labels_for(args, args.snapshot))
    written = save_param(args.output, root)
    print(f"Wrote {args.output} ({written} bytes)")
    return 0


def _cmd_verify(args: argparse.Namespace) -> int:
    failures = 0
    for path in args.files:
        result = verify_file(path)
        print(result.render())
        failures += not result.ok
    if failures:
        logger.info("%d of %d files failed verification", failures, len(args.files))
    return 1 if failures else 0


def _cmd_find(args: argparse.Namespace) -> int:
    lines = find_lines(
        args.file, args.pattern, values=args.values, labels=_labels_for(args, args.file)
    )
    for line in lines:
        print(line)
    return 0 if lines else 1


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Inspect, verify and convert param files",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--labels", type=Path, default=None, help="Label table (ParamLabels.csv)")
    common.add_argument("--verbose", action="store_true", help="Enable informational logging")
    commands = parser.add_subparsers(dest="command", required=True)

    dump = commands.add_parser("dump", parents=[common], help="Export a param file to a JSON or msgpack snapshot")
    dump.add_argument("file", type=Path)
    dump.add_argument("output", type=Path, help="Snapshot path (.json, .msgpack or .mpk)")
    dump.set_defaults(handler=_cmd_dump)

    build = commands.add_parser("build", parents=[common], help="Encode a snapshot back into a param file")
    build.add_argument("snapshot", type=Path)
    build.add_argument("output", type=Path)
    build.set_defaults(handler=_cmd_build)

    verify = commands.add_parser("verify", parents=[common], help="Check that files re-encode byte for byte")
    verify.add_argument("files", type=Path, nargs="+")
    verify.set_defaults(handler=_cmd_verify)

    search = commands.add_parser("find", parents=[common], help="List params whose name (or value) matches a regex")
    search.add_argument("file", type=Path)
    search.add_argument("pattern")
    search.add_argument("--values", action="store_true", help="Match against values instead of names")
    search.set_defaults(handler=_cmd_find)

    return parser.parse_args(argv)


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_args(list(argv) if argv is not None else None)
    if args.verbose:
        logging.basicConfig(level=logging.INFO)
    try:
        return args.handler(args)
    except (ParamError, OSError, re.error) as exc:
        print(f"{PROG}: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
