"""Whole-file load and save of param files."""

from __future__ import annotations

import logging
from pathlib import Path

from .decoder import decode
from .encoder import encode
from .nodes import ParamStruct

logger = logging.getLogger(__name__)


def open_param(path: Path) -> ParamStruct:
    path = Path(path)
    with path.open("rb") as fh:
        data = fh.read()
    root = decode(data)
    logger.info("Opened %s (%d bytes, %d root fields)", path, len(data), len(root))
    return root


def save_param(path: Path, root: ParamStruct) -> int:
    """Encode *root* and write it to *path*; returns the number of bytes written.

    Encoding finishes before the file is opened, so an
    :class:`~prickly.param.errors.EncodeError` leaves an existing file intact.
    """

    path = Path(path)
    payload = encode(root)
    with path.open("wb") as fh:
        fh.write(payload)
    logger.info("Saved %s (%d bytes)", path, len(payload))
    return len(payload)


__all__ = ["open_param", "save_param"]
