"""Exception hierarchy shared by the param codec and the tree editor.

Three families matter to callers:

* :class:`DecodeError` is fatal to one load attempt; the file stays unopened.
* :class:`EditError` is recoverable; the tree is left exactly as it was.
* :class:`EncodeError` means an edit produced a state the format cannot
  represent. It is a programming-contract failure but is still raised rather
  than emitting corrupt bytes.
"""

from __future__ import annotations


class ParamError(RuntimeError):
    """Base class for every error raised by :mod:`prickly.param`."""


class NameTooLong(ParamError, ValueError):
    """Raised when a name does not fit the 8-bit length tag of an Identifier."""


# ---------------------------------------------------------------------------
# Decoding


class DecodeError(ParamError):
    """Raised when a byte buffer is not a valid param file."""


class BadMagic(DecodeError):
    """Raised when the file does not start with the param magic."""


class UnsupportedVersion(DecodeError):
    """Raised when the magic matches but the format revision is unknown."""


class TruncatedInput(DecodeError):
    """Raised when a read runs past the end of the buffer."""


class UnknownType(DecodeError):
    """Raised when a type tag byte does not name a known node kind."""


class DanglingReference(DecodeError):
    """Raised when a hash index, shape offset or string offset is out of range."""


class MalformedInput(DecodeError):
    """Raised for structural violations such as unsorted struct keys."""


# ---------------------------------------------------------------------------
# Editing


class EditError(ParamError):
    """Raised when an edit is rejected. The tree is left unchanged."""


class DuplicateKey(EditError):
    """Raised when inserting a struct field whose Identifier already exists."""


class NotFound(EditError):
    """Raised when a struct field or path component does not exist."""


class TypeMismatch(EditError):
    """Raised when a value's kind differs from the node or list it targets."""


class IncompatibleTypes(EditError):
    """Raised when a conversion or adjustment is not defined for a kind."""


class IndexOutOfBounds(EditError, IndexError):
    """Raised when a list index lies outside the list."""


class InvalidValue(EditError, ValueError):
    """Raised when a scalar payload does not fit its kind."""


# ---------------------------------------------------------------------------
# Encoding


class EncodeError(ParamError):
    """Raised when a tree cannot be encoded."""


class InvariantViolation(EncodeError):
    """Raised when a tree breaks a format invariant the editor should enforce."""


# ---------------------------------------------------------------------------
# Snapshots


class SnapshotFormatError(ParamError, ValueError):
    """Raised when a snapshot file is unreadable or uses an unknown suffix."""


__all__ = [
    "BadMagic",
    "DanglingReference",
    "DecodeError",
    "DuplicateKey",
    "EditError",
    "EncodeError",
    "IncompatibleTypes",
    "IndexOutOfBounds",
    "InvalidValue",
    "InvariantViolation",
    "MalformedInput",
    "NameTooLong",
    "NotFound",
    "ParamError",
    "SnapshotFormatError",
    "TruncatedInput",
    "TypeMismatch",
    "UnknownType",
    "UnsupportedVersion",
]
