"""Read-only label tables that map Identifiers to display names.

Labels are display-only; nothing in here affects encoding. Tables are CSV files
named ``ParamLabels.csv`` holding ``0x0123456789,label_name`` rows.
"""

from __future__ import annotations

import csv
import logging
import sys
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from .errors import InvalidValue, NameTooLong
from .hash40 import Hash40, hash40

LABELS_FILENAME = "ParamLabels.csv"

logger = logging.getLogger(__name__)


class HashStatus(Enum):
    """How a piece of hash input text was interpreted."""

    HASH = "hash"
    LABEL_EXISTS = "label-exists"
    LABEL_NOT_EXISTS = "label-not-exists"
    INVALID = "invalid"


class LabelMap:
    """Two-way Identifier <-> label table."""

    def __init__(self, labels: Optional[Mapping[int, str]] = None, *, source: Optional[Path] = None) -> None:
        self._labels: Dict[Hash40, str] = {}
        self._hashes: Dict[str, Hash40] = {}
        self.source = source
        for key, label in (labels or {}).items():
            self.add(key, label)

    @classmethod
    def read_custom_labels(cls, path: Path) -> "LabelMap":
        """Load a label CSV. Malformed rows are skipped."""

        labels = cls(source=path)
        with path.open("r", encoding="utf-8", newline="") as fh:
            for line_number, row in enumerate(csv.reader(fh), start=1):
                if not row or not row[0].strip():
                    continue
                if len(row) < 2:
                    logger.debug("%s:%d: skipping row without a label", path, line_number)
                    continue
                try:
                    key = Hash40.from_hex_str(row[0])
                except ValueError:
                    logger.debug("%s:%d: skipping row with bad hash %r", path, line_number, row[0])
                    continue
                labels.add(key, ",".join(row[1:]).strip())
        logger.info("Loaded %d labels from %s", len(labels), path)
        return labels

    def add(self, key: int, label: str) -> None:
        key = Hash40(key)
        self._labels[key] = label
        self._hashes.setdefault(label, key)

    def resolve(self, key: int) -> Optional[str]:
        return self._labels.get(key)

    def hash_of(self, label: str) -> Optional[Hash40]:
        return self._hashes.get(label)

    def sorted_labels(self) -> List[str]:
        return sorted(self._hashes)

    def __len__(self) -> int:
        return len(self._labels)

    def __contains__(self, key: object) -> bool:
        return key in self._labels

    def __iter__(self) -> Iterator[Tuple[Hash40, str]]:
        return iter(self._labels.items())


def default_program_dir() -> Path:
    """Directory of the running program, used as the last label search root."""

    argv0 = sys.argv[0] if sys.argv and sys.argv[0] else ""
    if argv0:
        return Path(argv0).resolve().parent
    return Path.cwd()


def label_search_paths(
    open_file: Optional[Path] = None,
    program_dir: Optional[Path] = None,
    explicit: Optional[Path] = None,
) -> List[Path]:
    """Candidate label tables in precedence order."""

    candidates: List[Path] = []
    if explicit is not None:
        candidates.append(Path(explicit).expanduser())
    if open_file is not None:
        candidates.append(Path(open_file).expanduser().resolve().parent / LABELS_FILENAME)
    candidates.append((program_dir or default_program_dir()) / LABELS_FILENAME)
    unique: List[Path] = []
    for candidate in candidates:
        if candidate not in unique:
            unique.append(candidate)
    return unique


def _first_existing(paths: Iterable[Path]) -> Optional[Path]:
    for path in paths:
        if path.is_file():
            return path
    return None


def load_labels(
    open_file: Optional[Path] = None,
    program_dir: Optional[Path] = None,
    explicit: Optional[Path] = None,
) -> LabelMap:
    """Load the first label table found; an empty map when none exists."""

    candidates = label_search_paths(open_file, program_dir, explicit)
    path = _first_existing(candidates)
    if path is None:
        logger.info("No label table found (searched: %s)", ", ".join(str(p) for p in candidates))
        return LabelMap()
    try:
        return LabelMap.read_custom_labels(path)
    except UnicodeDecodeError as exc:
        logger.warning("Ignoring label table %s: not UTF-8 (%s)", path, exc)
        return LabelMap()


def format_hash(key: int, labels: Optional[LabelMap] = None) -> str:
    label = labels.resolve(key) if labels is not None else None
    return label if label is not None else str(Hash40(key))


def hash_status(text: str, labels: Optional[LabelMap] = None) -> HashStatus:
    """Classify hash input without raising, for live input feedback."""

    value = text.strip()
    if value.lower().startswith("0x"):
        try:
            Hash40.from_hex_str(value)
        except ValueError:
            return HashStatus.INVALID
        return HashStatus.HASH
    if labels is not None and labels.hash_of(value) is not None:
        return HashStatus.LABEL_EXISTS
    if len(value.encode("utf-8")) > 0xFF:
        return HashStatus.INVALID
    return HashStatus.LABEL_NOT_EXISTS


def parse_hash(text: str, labels: Optional[LabelMap] = None) -> Tuple[Hash40, HashStatus]:
    """Turn hash input into an Identifier.

    ``0x`` hex is taken literally, a known label maps to its Identifier and any
    other text is hashed as a new name.
    """

    status = hash_status(text, labels)
    value = text.strip()
    if status is HashStatus.INVALID:
        raise InvalidValue(f"{value!r} is neither a valid hash literal nor a hashable name")
    if status is HashStatus.HASH:
        return Hash40.from_hex_str(value), status
    if status is HashStatus.LABEL_EXISTS:
        return labels.hash_of(value), status
    try:
        return hash40(value), status
    except NameTooLong as exc:  # pragma: no cover - guarded by hash_status
        raise InvalidValue(str(exc)) from exc


__all__ = [
    "HashStatus",
    "LABELS_FILENAME",
    "LabelMap",
    "default_program_dir",
    "format_hash",
    "hash_status",
    "label_search_paths",
    "load_labels",
    "parse_hash",
]
