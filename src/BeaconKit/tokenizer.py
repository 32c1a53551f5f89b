"""Split one BEACON link line into its four positional fields.

A line carries up to four ``|``-delimited parts: source, label, description,
and target. When no ``TARGET``/``TARGETPREFIX`` is declared the target column
is optional and is recognised by being URI-shaped, so ``a|b`` may mean
"source and label" or "source and target" depending on ``b``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from .errors import ErrorCode, LineError
from .uri import is_valid_uri

__all__ = [
    "DELIMITER",
    "Record",
    "EMPTY_RECORD",
    "TokenizerOptions",
    "tokenize",
    "tokenize_parts",
]

DELIMITER = "|"
MAX_PARTS = 4


@dataclass(frozen=True)
class Record:
    """Raw (unexpanded) fields of one link line."""

    source: str = ""
    label: str = ""
    description: str = ""
    target: str = ""

    @property
    def is_empty(self) -> bool:
        """Whether this record stands for a blank line that should be skipped."""

        return self.source == ""


EMPTY_RECORD = Record()


@dataclass(frozen=True)
class TokenizerOptions:
    """Tie-break configuration for untemplated lines.

    ``uri_target_min_parts`` is the minimum number of parts (source included)
    a line must have before its last part is considered as a target
    candidate. With the default of 2, ``a|http://x`` yields a target; with 3,
    the same line yields a label.
    """

    uri_target_min_parts: int = 2

    def __post_init__(self) -> None:
        if not 1 <= self.uri_target_min_parts <= MAX_PARTS:
            raise ValueError("uri_target_min_parts must be between 1 and 4")


_DEFAULT_OPTIONS = TokenizerOptions()


def tokenize(
    line: str,
    *,
    templated_target: bool = False,
    options: Optional[TokenizerOptions] = None,
) -> Record:
    """Tokenize ``line`` into a :class:`Record`.

    Args:
        line: Raw input line; surrounding whitespace of each part is ignored.
            Empty fields at the end of the line are dropped.
        templated_target: ``True`` when a ``TARGET`` or ``TARGETPREFIX`` meta
            field is active. Parts are then assigned strictly by position.
        options: Tie-break configuration; defaults to :class:`TokenizerOptions`.

    Returns:
        The parsed record, or :data:`EMPTY_RECORD` for blank lines.

    Raises:
        LineError: For lines with too many parts or a part that cannot be
            assigned to any column.

    Examples:
        >>> tokenize("qid2|u:ri")
        Record(source='qid2', label='', description='', target='u:ri')
        >>> tokenize("qid|label|description", templated_target=True)
        Record(source='qid', label='label', description='description', target='')
    """

    parts = line.split(DELIMITER)
    # trailing empty fields carry no column
    while parts and parts[-1] == "":
        parts.pop()
    return tokenize_parts(parts, templated_target=templated_target, options=options)


def tokenize_parts(
    parts: Sequence[str],
    *,
    templated_target: bool = False,
    options: Optional[TokenizerOptions] = None,
) -> Record:
    """Assign already split ``parts`` to record fields.

    This is the construction path for callers holding separate values (for
    example rows read back from storage); unlike :func:`tokenize` it can see
    values that still contain the delimiter and rejects them.
    """

    opts = options or _DEFAULT_OPTIONS
    remaining: List[str] = [part.strip() for part in parts]
    count = len(remaining)
    if count == 0 or remaining[0] == "":
        return EMPTY_RECORD
    if count > MAX_PARTS:
        raise LineError(
            ErrorCode.TOO_MANY_PARTS,
            f"found too many parts (>{MAX_PARTS}), divided by '{DELIMITER}' characters",
            {"parts": count},
        )
    for part in remaining:
        if DELIMITER in part:
            raise LineError(
                ErrorCode.PART_CONTAINS_DELIMITER,
                f"link part must not contain '{DELIMITER}'",
                {"value": part},
            )

    source = remaining.pop(0)
    label = description = target = ""

    if templated_target:
        if remaining:
            label = remaining.pop(0)
        if remaining:
            description = remaining.pop(0)
        if remaining:
            target = remaining.pop(0)
    else:
        if count >= opts.uri_target_min_parts and remaining and is_valid_uri(remaining[-1]):
            target = remaining.pop()
        if remaining:
            label = remaining.pop(0)
        if remaining:
            description = remaining.pop(0)

    if remaining:
        raise LineError(
            ErrorCode.UNEXPECTED_EXTRA_PART,
            "URI part has not valid URI form",
            {"value": remaining[0]},
        )
    return Record(source=source, label=label, description=description, target=target)
