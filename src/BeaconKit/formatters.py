"""Formatting helpers turning links and parse errors into text.

:func:`format_link` writes one link back in condensed BEACON form, dropping
empty trailing columns wherever the result stays unambiguous. The table
helpers render aligned ASCII tables for the CLI.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple

from .errors import DocumentError
from .expander import ExpandedLink
from .uri import is_valid_uri

__all__ = [
    "LINK_TABLE_HEADERS",
    "ERROR_TABLE_HEADERS",
    "format_link",
    "format_links",
    "format_table",
    "format_link_rows",
    "format_error_rows",
]

LINK_TABLE_HEADERS: Tuple[str, ...] = ("source", "label", "description", "target")
ERROR_TABLE_HEADERS: Tuple[str, ...] = ("line", "code", "message")


def format_link(*values: str) -> str:
    """Serialize ``(source, label, description, target)`` as a condensed line.

    ``|`` characters inside the values are removed. An empty string is
    returned unless exactly four values with a non-empty source are given.

    Examples:
        >>> format_link("a", "", "", "http://example.org/")
        'a|http://example.org/'
        >>> format_link("a", "b", "", "")
        'a|b'
        >>> format_link("a", "", "c", "x")
        'a||c|x'
    """

    parts: List[str] = [str(value).replace("|", "") for value in values]
    if len(parts) != 4 or parts[0] == "":
        return ""

    if is_valid_uri(parts[3]):
        uri = parts.pop()
        if parts[2] == "":
            parts.pop()
            if parts[1] == "":
                parts.pop()
        parts.append(uri)
    elif parts[3] == "":
        parts.pop()
        if parts[2] == "":
            parts.pop()
            if parts[1] == "":
                parts.pop()
    return "|".join(parts)


def format_links(links: Iterable[ExpandedLink]) -> str:
    """Serialize links one per line, newline-terminated."""

    return "".join(
        format_link(link.source, link.label, link.description, link.target) + "\n"
        for link in links
    )


def format_table(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
    """Render an ASCII table with padded columns and header separator.

    Args:
        headers: Ordered column headers rendered on the first row.
        rows: Row data that should be left-aligned within the computed widths.

    Returns:
        Multiline string containing the table body and separator.
    """

    column_widths = [len(header) for header in headers]
    for row in rows:
        for index, cell in enumerate(row):
            column_widths[index] = max(column_widths[index], len(cell))

    def _format_row(values: Sequence[str]) -> str:
        return " | ".join(value.ljust(column_widths[index]) for index, value in enumerate(values))

    separator = "-+-".join("-" * width for width in column_widths)
    lines = [_format_row(headers), separator]
    lines.extend(_format_row(row) for row in rows)
    return "\n".join(lines)


def format_link_rows(links: Iterable[ExpandedLink]) -> List[Tuple[str, str, str, str]]:
    """Convert expanded links into ``(source, label, description, target)`` rows."""

    return [
        (link.full_source, link.label, link.description, link.full_target) for link in links
    ]


def format_error_rows(errors: Iterable[DocumentError]) -> List[Tuple[str, str, str]]:
    """Convert document errors into ``(line, code, message)`` rows."""

    return [(str(error.line_number), error.code.value, error.message) for error in errors]
