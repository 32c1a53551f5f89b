# === NAVMAP v1 ===
# {
#   "module": "BeaconKit.errors",
#   "purpose": "Error catalog and exception hierarchy for BEACON parsing",
#   "sections": [
#     {"id": "codes", "name": "Error Codes", "anchor": "COD", "kind": "api"},
#     {"id": "records", "name": "Document Error Records", "anchor": "REC", "kind": "api"},
#     {"id": "misuse", "name": "Caller Misuse Errors", "anchor": "MIS", "kind": "api"},
#     {"id": "line", "name": "Per-Line Errors", "anchor": "LIN", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Exception hierarchy and error catalog shared across BEACON parsing.

Failures fall into two disjoint groups. Caller misuse (an invalid meta field
passed to :meth:`BeaconKit.meta.MetaFields.set`, a handler that is not
callable) is raised immediately. Document errors (malformed lines, invalid
URIs, integrity mismatches) are collected by the parser session as
:class:`DocumentError` records and never escape as exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

__all__ = [
    "ErrorCode",
    "DocumentError",
    "BeaconError",
    "MetaFieldError",
    "InvalidMetaName",
    "InvalidMetaValue",
    "HandlerUsageError",
    "LineError",
    "ConfigError",
    "CollectionError",
]

# ============================================================================
# Error Codes (COD)
# ============================================================================


class ErrorCode(str, Enum):
    """Canonical codes for document errors reported by a parser session."""

    # Source errors
    OPEN_FAILED = "OPEN_FAILED"  # Source could not be opened
    READ_FAILED = "READ_FAILED"  # Line supplier raised while reading

    # Meta block errors
    INVALID_META = "INVALID_META"  # Meta line rejected by the field store

    # Tokenizer errors
    TOO_MANY_PARTS = "TOO_MANY_PARTS"
    PART_CONTAINS_DELIMITER = "PART_CONTAINS_DELIMITER"
    UNEXPECTED_EXTRA_PART = "UNEXPECTED_EXTRA_PART"

    # Expansion errors
    SOURCE_NOT_URI = "SOURCE_NOT_URI"
    TARGET_NOT_URI = "TARGET_NOT_URI"

    # Handler errors
    LINK_HANDLER_FAILED = "LINK_HANDLER_FAILED"

    # Integrity errors (end of document)
    COUNT_MISMATCH = "COUNT_MISMATCH"
    EXAMPLES_NOT_FOUND = "EXAMPLES_NOT_FOUND"


# ============================================================================
# Document Error Records (REC)
# ============================================================================


@dataclass(frozen=True)
class DocumentError:
    """One document error as seen by the error channel.

    ``raw_line`` is empty for document-level errors such as open failures or
    integrity mismatches.
    """

    code: ErrorCode
    message: str
    line_number: int = 0
    raw_line: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    def as_tuple(self) -> tuple[str, int, str]:
        """Return the ``(message, line_number, raw_line)`` error channel triple."""

        return (self.message, self.line_number, self.raw_line)


# ============================================================================
# Caller Misuse Errors (MIS)
# ============================================================================


class BeaconError(RuntimeError):
    """Base exception for BEACON parsing, serialization, and storage failures."""


class MetaFieldError(BeaconError):
    """Raised when a meta field cannot be set."""


class InvalidMetaName(MetaFieldError):
    """Raised when a meta field name is not made of letters, ``_`` or ``-``."""

    def __init__(self, name: str) -> None:
        super().__init__(f'invalid meta name: "{name}"')
        self.name = name


class InvalidMetaValue(MetaFieldError):
    """Raised when a known meta field rejects its value."""

    def __init__(self, field_name: str, reason: str) -> None:
        super().__init__(reason)
        self.field = field_name
        self.reason = reason


class HandlerUsageError(BeaconError, TypeError):
    """Raised when an error or link handler is not callable."""


class ConfigError(BeaconError):
    """Raised when a settings file cannot be loaded or validated."""


class CollectionError(BeaconError):
    """Raised when a named collection operation cannot be completed."""


# ============================================================================
# Per-Line Errors (LIN)
# ============================================================================


class LineError(BeaconError):
    """Tokenizer or expander rejection of a single record.

    Raised by the pure per-line functions and converted into a
    :class:`DocumentError` by the parser session.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)
