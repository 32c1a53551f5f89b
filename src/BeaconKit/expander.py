"""Expand abbreviated records into full source and target URIs.

``PREFIX`` is prepended to the source; the target comes from a ``TARGET``
template (``{ID}`` and ``{LABEL}`` placeholders), from ``TARGETPREFIX`` plus
the raw target, or from the raw target itself. Expansion is pure: the pending
examples bookkeeping is returned to the caller by :func:`settle_examples`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, FrozenSet, Tuple

from .errors import ErrorCode, LineError
from .meta import MetaFields
from .tokenizer import Record
from .uri import is_valid_uri, percent_encode

__all__ = ["ExpandedLink", "expand", "settle_examples"]


@dataclass(frozen=True)
class ExpandedLink:
    """A record together with its fully resolved source and target URIs."""

    source: str
    label: str
    description: str
    target: str
    full_source: str
    full_target: str

    @property
    def record(self) -> Record:
        """The raw record this link was expanded from."""

        return Record(self.source, self.label, self.description, self.target)

    def as_tuple(self) -> Tuple[str, str, str, str, str, str]:
        """Return the six values passed to link handlers."""

        return (
            self.source,
            self.label,
            self.description,
            self.target,
            self.full_source,
            self.full_target,
        )


def expand(record: Record, meta: MetaFields) -> ExpandedLink:
    """Resolve ``record`` against the ``PREFIX``/``TARGET``/``TARGETPREFIX`` of ``meta``.

    Raises:
        LineError: ``SOURCE_NOT_URI`` or ``TARGET_NOT_URI`` when the expanded
            identifier is not a syntactically valid URI.

    Examples:
        >>> meta = MetaFields({"PREFIX": "http://example.org/", "TARGET": "http://foo.org/{LABEL}"})
        >>> expand(Record("x", "c:d"), meta).full_target
        'http://foo.org/c%3Ad'
    """

    prefix = meta.get("PREFIX")
    full_source = prefix + record.source if prefix is not None else record.source
    if not is_valid_uri(full_source):
        raise LineError(
            ErrorCode.SOURCE_NOT_URI,
            "source is not a valid URI",
            {"value": full_source},
        )

    template = meta.get("TARGET")
    target_prefix = meta.get("TARGETPREFIX")
    if template is not None:
        full_target = template.replace("{ID}", record.source).replace(
            "{LABEL}", percent_encode(record.label)
        )
    elif target_prefix is not None:
        full_target = target_prefix + record.target
    else:
        full_target = record.target
    if not is_valid_uri(full_target):
        raise LineError(
            ErrorCode.TARGET_NOT_URI,
            "target is not a valid URI",
            {"value": full_target},
        )

    return ExpandedLink(
        source=record.source,
        label=record.label,
        description=record.description,
        target=record.target,
        full_source=full_source,
        full_target=full_target,
    )


def settle_examples(pending: AbstractSet[str], link: ExpandedLink) -> FrozenSet[str]:
    """Return ``pending`` without the raw and expanded source of ``link``."""

    if not pending:
        return frozenset()
    return frozenset(pending) - {link.source, link.full_source}
