"""Syntactic URI checks used for sources, targets, and URI-valued meta fields.

The validator follows the RFC 3986 generic syntax without touching the
network: only unreserved, reserved, and percent-escaped characters are
allowed, a scheme is mandatory, and the authority/path combination must be
well formed. It is called at least once per record, so everything is built
on precompiled expressions.
"""

from __future__ import annotations

import re
from urllib.parse import quote

__all__ = ["is_valid_uri", "percent_encode", "split_uri"]

_ALLOWED_CHARS = re.compile(r"^[A-Za-z0-9:/?#\[\]@!$&'()*+,;=.\-_~%]*$")
_BROKEN_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_SCHEME = re.compile(r"^[a-z][a-z0-9+.\-]*$", re.IGNORECASE)

# Appendix B of RFC 3986.
_URI_PARTS = re.compile(
    r"^(?:(?P<scheme>[^:/?#]+):)?"
    r"(?://(?P<authority>[^/?#]*))?"
    r"(?P<path>[^?#]*)"
    r"(?:\?(?P<query>[^#]*))?"
    r"(?:#(?P<fragment>.*))?$",
    re.DOTALL,
)


def split_uri(value: str) -> tuple[str | None, str | None, str, str | None, str | None]:
    """Split ``value`` into ``(scheme, authority, path, query, fragment)``.

    Absent components are returned as ``None``; the path is always a string.
    """

    match = _URI_PARTS.match(value)
    if match is None:
        raise ValueError(f"cannot split {value!r} into URI components")
    return (
        match.group("scheme"),
        match.group("authority"),
        match.group("path"),
        match.group("query"),
        match.group("fragment"),
    )


def is_valid_uri(value: object) -> bool:
    """Return ``True`` when ``value`` is a syntactically valid URI.

    Args:
        value: Candidate identifier. Non-string values are never URIs.

    Returns:
        ``True`` if the string passes the character, escape, scheme, and
        authority/path checks.

    Examples:
        >>> is_valid_uri("http://example.org/x")
        True
        >>> is_valid_uri("u:ri")
        True
        >>> is_valid_uri("no scheme")
        False
    """

    if not isinstance(value, str) or not value:
        return False
    if not _ALLOWED_CHARS.match(value):
        return False
    if _BROKEN_ESCAPE.search(value):
        return False

    scheme, authority, path, _query, _fragment = split_uri(value)
    if not scheme or not _SCHEME.match(scheme):
        return False
    if authority:
        if path and not path.startswith("/"):
            return False
    elif path.startswith("//"):
        return False
    return True


def percent_encode(value: str) -> str:
    """Percent-encode every character outside the RFC 3986 unreserved set.

    Examples:
        >>> percent_encode("c:d")
        'c%3Ad'
    """

    return quote(value, safe="")
