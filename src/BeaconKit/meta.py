# === NAVMAP v1 ===
# {
#   "module": "BeaconKit.meta",
#   "purpose": "Validated store for BEACON meta fields and their canonical serialization",
#   "sections": [
#     {"id": "grammar", "name": "Meta Line Grammar", "anchor": "GRM", "kind": "infra"},
#     {"id": "validators", "name": "Field Validators", "anchor": "VAL", "kind": "infra"},
#     {"id": "store", "name": "MetaFields", "anchor": "class-metafields", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Validated store for the ``#NAME: value`` header block of a BEACON document.

Known fields are checked and normalised through a lookup table of validator
functions; unknown fields are stored as opaque strings. Two fields carry
derived expectations that the parser verifies once the document has been
read completely: ``COUNT`` (the declared number of links) and ``EXAMPLES``
(identifiers that must appear as link sources).
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, Mapping, Optional, Tuple

from .errors import InvalidMetaName, InvalidMetaValue
from .uri import is_valid_uri

__all__ = [
    "META_FIELD_ORDER",
    "MetaFields",
    "parse_meta_line",
]

# ============================================================================
# Meta Line Grammar (GRM)
# ============================================================================

META_FIELD_ORDER: Tuple[str, ...] = (
    "FORMAT",
    "PREFIX",
    "TARGET",
    "TARGETPREFIX",
    "FEED",
    "CONTACT",
    "INSTITUTION",
    "DESCRIPTION",
    "TIMESTAMP",
    "UPDATE",
    "REVISIT",
    "MESSAGE",
    "ONEMESSAGE",
    "SOMEMESSAGE",
    "REMARK",
)
_TRAILING_FIELDS: Tuple[str, ...] = ("EXAMPLES", "COUNT")

_META_LINE = re.compile(r"^#([^:=\s]+)(\s*[:=]?\s*|\s+)(.*)$")
_META_NAME = re.compile(r"^\s*([a-zA-Z_-]+)\s*$")


def parse_meta_line(line: str) -> Optional[Tuple[str, str]]:
    """Split a ``#NAME: value`` line into ``(name, value)``.

    The separator may be ``:``, ``=``, or plain whitespace. Returns ``None``
    when ``line`` is not a meta line.

    Examples:
        >>> parse_meta_line("#PREFIX: http://example.org/")
        ('PREFIX', 'http://example.org/')
        >>> parse_meta_line("#COUNT 12")
        ('COUNT', '12')
        >>> parse_meta_line("abc|def") is None
        True
    """

    match = _META_LINE.match(line)
    if match is None:
        return None
    return match.group(1), match.group(3)


# ============================================================================
# Field Validators (VAL)
# ============================================================================

Validator = Callable[[str, Mapping[str, str]], Optional[str]]

_FORMAT = re.compile(r"^([A-Z]+-)?BEACON$")
_FEED = re.compile(
    r"^http(s)?://[a-z0-9-]+(.[a-z0-9-]+)*(:[0-9]+)?(/[^#|]*)?(\?[^#|]*)?$",
    re.IGNORECASE,
)
_PLACEHOLDER = re.compile(r"\{(id|label)\}", re.IGNORECASE)
_EPOCH = re.compile(r"^[0-9]+$")
_ISO_DATETIME = re.compile(r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})Z?$")
_DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S"


def _check_format(value: str, fields: Mapping[str, str]) -> str:
    if not _FORMAT.match(value):
        raise InvalidMetaValue("FORMAT", "Invalid FORMAT, must be BEACON or end with -BEACON")
    return value


def _check_uri_field(name: str) -> Validator:
    def _check(value: str, fields: Mapping[str, str]) -> str:
        if not is_valid_uri(value):
            raise InvalidMetaValue(name, f"{name} meta value must be a URI")
        return value

    return _check


def _check_prefix(value: str, fields: Mapping[str, str]) -> str:
    return _check_uri_field("PREFIX")(value, fields)


def _check_targetprefix(value: str, fields: Mapping[str, str]) -> str:
    if "TARGET" in fields:
        raise InvalidMetaValue("TARGETPREFIX", "TARGETPREFIX cannot be combined with TARGET")
    return _check_uri_field("TARGETPREFIX")(value, fields)


def _check_target(value: str, fields: Mapping[str, str]) -> str:
    if "TARGETPREFIX" in fields:
        raise InvalidMetaValue("TARGET", "TARGET cannot be combined with TARGETPREFIX")
    template = _PLACEHOLDER.sub(lambda match: "{" + match.group(1).upper() + "}", value)
    if "{ID}" not in template and "{LABEL}" not in template:
        template += "{ID}"
    if not is_valid_uri(template.replace("{ID}", "").replace("{LABEL}", "")):
        raise InvalidMetaValue("TARGET", "TARGET meta value must be a URI pattern")
    return template


def _check_feed(value: str, fields: Mapping[str, str]) -> str:
    if not _FEED.match(value):
        raise InvalidMetaValue("FEED", "FEED meta value must be a HTTP/HTTPS URL")
    return value


def _check_datetime(name: str) -> Validator:
    def _check(value: str, fields: Mapping[str, str]) -> str:
        reason = f"{name} meta value must be of form YYYY-MM-DDTHH:MM:SS"
        if _EPOCH.match(value):
            try:
                moment = datetime.fromtimestamp(int(value), tz=timezone.utc)
            except (OverflowError, OSError, ValueError) as exc:
                raise InvalidMetaValue(name, reason) from exc
            return moment.strftime(_DATETIME_FORMAT)
        match = _ISO_DATETIME.match(value)
        if match is None:
            raise InvalidMetaValue(name, reason)
        try:
            moment = datetime.strptime(match.group(1), _DATETIME_FORMAT)
        except ValueError as exc:
            raise InvalidMetaValue(name, reason) from exc
        return moment.strftime(_DATETIME_FORMAT)

    return _check


def _check_examples(value: str, fields: Mapping[str, str]) -> Optional[str]:
    examples = [part.strip() for part in value.split("|")]
    joined = "|".join(example for example in examples if example)
    return joined or None


def _check_count(value: str, fields: Mapping[str, str]) -> str:
    if not value.isdigit():
        raise InvalidMetaValue("COUNT", "COUNT meta value must be a non-negative integer")
    return str(int(value))


_VALIDATORS: Dict[str, Validator] = {
    "FORMAT": _check_format,
    "PREFIX": _check_prefix,
    "TARGET": _check_target,
    "TARGETPREFIX": _check_targetprefix,
    "FEED": _check_feed,
    "REVISIT": _check_datetime("REVISIT"),
    "TIMESTAMP": _check_datetime("TIMESTAMP"),
    "EXAMPLES": _check_examples,
    "COUNT": _check_count,
}


def _store_opaque(value: str, fields: Mapping[str, str]) -> str:
    return value


# ============================================================================
# MetaFields
# ============================================================================


def _sort_key(name: str) -> Tuple[int, int, str]:
    if name in META_FIELD_ORDER:
        return (0, META_FIELD_ORDER.index(name), name)
    if name in _TRAILING_FIELDS:
        return (2, _TRAILING_FIELDS.index(name), name)
    return (1, 0, name)


class MetaFields:
    """Meta field set of one BEACON document.

    ``FORMAT`` is always present. Every mutation goes through :meth:`set`,
    which raises :class:`~BeaconKit.errors.InvalidMetaName` or
    :class:`~BeaconKit.errors.InvalidMetaValue` on caller misuse.

    Examples:
        >>> meta = MetaFields()
        >>> meta.set("prefix", "http://example.org/")
        'http://example.org/'
        >>> print(meta.serialize(), end="")
        #FORMAT: BEACON
        #PREFIX: http://example.org/
    """

    def __init__(self, fields: Optional[Mapping[str, str]] = None) -> None:
        self._fields: Dict[str, str] = {"FORMAT": "BEACON"}
        self._examples: Tuple[str, ...] = ()
        self._expected_count: Optional[int] = None
        if fields:
            self.update(fields)

    @classmethod
    def from_text(cls, text: str) -> "MetaFields":
        """Build a store from the ``#NAME: value`` lines of ``text``.

        Lines that are not meta lines are ignored.
        """

        meta = cls()
        for line in text.split("\n"):
            parsed = parse_meta_line(line.strip())
            if parsed is not None:
                meta.set(*parsed)
        return meta

    # -- reading -----------------------------------------------------------

    def get(self, name: str) -> Optional[str]:
        """Return the value of ``name`` (case and surrounding whitespace ignored)."""

        return self._fields.get(name.strip().upper())

    def get_all(self) -> Dict[str, str]:
        """Return a snapshot of all fields in canonical order."""

        return {name: self._fields[name] for name in sorted(self._fields, key=_sort_key)}

    @property
    def examples(self) -> Tuple[str, ...]:
        """Identifiers declared by the ``EXAMPLES`` field."""

        return self._examples

    @property
    def expected_count(self) -> Optional[int]:
        """Number of links declared by the ``COUNT`` field, if any."""

        return self._expected_count

    @property
    def templated_target(self) -> bool:
        """Whether a ``TARGET`` template or a ``TARGETPREFIX`` is active."""

        return "TARGET" in self._fields or "TARGETPREFIX" in self._fields

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.strip().upper() in self._fields

    def __iter__(self) -> Iterator[str]:
        return iter(self.get_all())

    def __len__(self) -> int:
        return len(self._fields)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MetaFields):
            return NotImplemented
        return self._fields == other._fields

    def __repr__(self) -> str:
        return f"MetaFields({self.get_all()!r})"

    # -- writing -----------------------------------------------------------

    def set(self, name: str, value: object) -> Optional[str]:
        """Validate and store one field.

        Args:
            name: Field name made of letters, ``_`` or ``-``; upper-cased.
            value: Field value; trimmed with newlines removed. An empty value
                unsets the field.

        Returns:
            The normalised value that was stored, or ``None`` if the field is
            now unset.

        Raises:
            InvalidMetaName: If ``name`` is not a valid field name.
            InvalidMetaValue: If a known field rejects ``value`` or an attempt
                is made to unset ``FORMAT``.
        """

        match = _META_NAME.match(name) if isinstance(name, str) else None
        if match is None:
            raise InvalidMetaName(str(name))
        key = match.group(1).upper()
        text = "" if value is None else str(value)
        text = text.replace("\r", "").replace("\n", "").strip()

        if text == "":
            if key == "FORMAT":
                raise InvalidMetaValue("FORMAT", "You cannot unset meta field #FORMAT")
            self._unset(key)
            return None

        validator = _VALIDATORS.get(key, _store_opaque)
        normalized = validator(text, self._fields)
        if normalized is None:
            self._unset(key)
            return None
        self._fields[key] = normalized
        self._refresh_derived(key)
        return normalized

    def update(self, fields: Mapping[str, object]) -> None:
        """Set several fields in iteration order."""

        for name, value in fields.items():
            self.set(name, value)

    def _unset(self, key: str) -> None:
        self._fields.pop(key, None)
        self._refresh_derived(key)

    def _refresh_derived(self, key: str) -> None:
        if key == "EXAMPLES":
            stored = self._fields.get("EXAMPLES")
            self._examples = tuple(stored.split("|")) if stored else ()
        elif key == "COUNT":
            stored = self._fields.get("COUNT")
            self._expected_count = int(stored) if stored is not None else None

    # -- serialization -----------------------------------------------------

    def serialize(self) -> str:
        """Render all fields as ``#NAME: value`` lines in canonical order."""

        lines = [f"#{name}: {value}\n" for name, value in self.get_all().items()]
        return "".join(lines)
