"""Entry point for the ``prickly`` interactive param editor."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Optional

from ..param.editor import ParamEditor
from ..param.errors import ParamError
from ..param.labels import default_program_dir, load_labels

LABELS_ENV = "PRICKLY_LABELS"
VERBOSE_ENV = "PRICKLY_VERBOSE"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EditorSettings:
    """Resolved command line and environment settings."""

    file: Optional[Path] = None
    label_path: Optional[Path] = None
    program_dir: Optional[Path] = None
    log_file: Optional[Path] = None
    verbose: bool = False


def _env_flag(value: Optional[str]) -> bool:
    return bool(value) and value.strip().lower() not in {"0", "false", "no", "off"}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="prickly",
        description="Browse and edit binary param files",
    )
    parser.add_argument("file", nargs="?", type=Path, help="Param file to open on start")
    parser.add_argument(
        "--labels",
        type=Path,
        help=f"Label table to use instead of searching for ParamLabels.csv (env: {LABELS_ENV})",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        help="Write log output to this file; the full-screen editor hides stderr",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help=f"Log at debug level (env: {VERBOSE_ENV}=1)",
    )
    return parser


def resolve_settings(
    argv: Optional[Iterable[str]] = None, environ: Optional[Mapping[str, str]] = None
) -> EditorSettings:
    environ = os.environ if environ is None else environ
    args = _build_parser().parse_args(list(argv) if argv is not None else None)
    label_path = args.labels
    if label_path is None and environ.get(LABELS_ENV):
        label_path = Path(environ[LABELS_ENV])
    return EditorSettings(
        file=args.file.expanduser() if args.file is not None else None,
        label_path=label_path.expanduser() if label_path is not None else None,
        program_dir=default_program_dir(),
        log_file=args.log_file,
        verbose=args.verbose or _env_flag(environ.get(VERBOSE_ENV)),
    )


def _configure_logging(settings: EditorSettings) -> None:
    level = logging.DEBUG if settings.verbose else logging.INFO
    if settings.log_file is not None:
        logging.basicConfig(
            level=level,
            filename=str(settings.log_file),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    elif settings.verbose:
        logging.basicConfig(level=level)


def load_editor(settings: EditorSettings) -> Optional[ParamEditor]:
    if settings.file is None:
        return None
    labels = load_labels(
        open_file=settings.file, program_dir=settings.program_dir, explicit=settings.label_path
    )
    return ParamEditor.open(settings.file, labels=labels)


def main(argv: Optional[Iterable[str]] = None) -> int:
    settings = resolve_settings(argv)
    _configure_logging(settings)

    try:
        editor = load_editor(settings)
    except (ParamError, OSError) as exc:
        print(f"prickly: {exc}", file=sys.stderr)
        return 1

    from .prickly_tui import ParamTUI

    tui = ParamTUI(editor, label_path=settings.label_path, program_dir=settings.program_dir)
    try:
        tui.run()
    except KeyboardInterrupt:  # pragma: no cover - interactive exit
        pass
    logger.info("prickly exited")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
