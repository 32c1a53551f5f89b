# === NAVMAP v1 ===
# {
#   "module": "BeaconKit.engine",
#   "purpose": "Streaming BEACON document parser with push and pull consumption",
#   "sections": [
#     {"id": "linesource", "name": "LineSource", "anchor": "class-linesource", "kind": "class"},
#     {"id": "open-source", "name": "open_source", "anchor": "function-open-source", "kind": "function"},
#     {"id": "parsephase", "name": "ParsePhase", "anchor": "class-parsephase", "kind": "class"},
#     {"id": "beaconparser", "name": "BeaconParser", "anchor": "class-beaconparser", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Streaming parser for BEACON link-dump documents.

A :class:`BeaconParser` session is bound to one source at a time. Binding
reads the meta block immediately and keeps the first link line as lookahead;
links are then consumed either in push mode (:meth:`BeaconParser.run`
invokes a link handler for every valid link) or in pull mode
(:meth:`BeaconParser.next_link` and iteration). Both modes share the same
per-line step and the same error accounting:

- document errors never raise; they are counted, remembered as
  :attr:`BeaconParser.last_error`, logged, and passed to the error handler;
- caller misuse (for example a handler that is not callable) raises.

Once the input is exhausted the session checks the declared ``COUNT`` and
``EXAMPLES`` against what was actually parsed.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, Iterator, Optional, Union

from .errors import (
    DocumentError,
    ErrorCode,
    HandlerUsageError,
    LineError,
    MetaFieldError,
)
from .expander import ExpandedLink, expand, settle_examples
from .meta import MetaFields, parse_meta_line
from .tokenizer import TokenizerOptions, tokenize

__all__ = [
    "ErrorHandler",
    "LinkHandler",
    "LineSource",
    "ParsePhase",
    "BeaconParser",
    "open_source",
]

logger = logging.getLogger(__name__)

ErrorHandler = Callable[[str, int, str], Any]
LinkHandler = Callable[[str, str, str, str, str, str], Any]

_BOM = "\ufeff"


# ============================================================================
# Line Sources
# ============================================================================


class LineSource:
    """Pull-style line supplier returning ``None`` at end of input.

    Args:
        read: Zero-argument callable returning the next line or ``None``.
        close: Optional callable releasing the underlying resource.
        name: Human-readable description used in log messages.
    """

    def __init__(
        self,
        read: Callable[[], Optional[str]],
        *,
        close: Optional[Callable[[], None]] = None,
        name: str = "<lines>",
    ) -> None:
        self._read = read
        self._close = close
        self.name = name

    @classmethod
    def from_text(cls, text: str) -> "LineSource":
        """Read lines from an in-memory document."""

        lines = text.split("\n")
        if lines and lines[-1] == "":
            lines.pop()
        return cls.from_iterable(lines, name="<string>")

    @classmethod
    def from_path(cls, path: Union[str, "os.PathLike[str]"], *, encoding: str = "utf-8") -> "LineSource":
        """Open ``path`` for reading.

        Raises:
            OSError: If the file cannot be opened.
        """

        handle = open(Path(path), "r", encoding=encoding)
        return cls.from_stream(handle, name=str(path))

    @classmethod
    def from_stream(cls, stream: Any, *, name: Optional[str] = None) -> "LineSource":
        """Read lines from a text stream; the stream is closed with the source."""

        def _read() -> Optional[str]:
            line = stream.readline()
            return line if line else None

        return cls(_read, close=stream.close, name=name or getattr(stream, "name", "<stream>"))

    @classmethod
    def from_callable(cls, supplier: Callable[[], Optional[str]]) -> "LineSource":
        """Read lines from ``supplier`` until it returns ``None``."""

        return cls(supplier, name=getattr(supplier, "__name__", "<callable>"))

    @classmethod
    def from_iterable(cls, lines: Iterable[str], *, name: str = "<iterable>") -> "LineSource":
        """Read lines from any iterable of strings."""

        iterator = iter(lines)
        return cls(lambda: next(iterator, None), name=name)

    def readline(self) -> Optional[str]:
        """Return the next line, or ``None`` once the input is exhausted."""

        return self._read()

    def close(self) -> None:
        """Release the underlying resource, if any."""

        if self._close is not None:
            close, self._close = self._close, None
            close()


SourceLike = Union[LineSource, str, "os.PathLike[str]", Callable[[], Optional[str]], Iterable[str]]


def open_source(source: SourceLike, *, encoding: str = "utf-8") -> LineSource:
    """Coerce ``source`` into a :class:`LineSource`.

    Strings and path-like objects are file names. Use
    :meth:`LineSource.from_text` or :meth:`BeaconParser.from_string` for
    in-memory documents.

    Raises:
        OSError: If a file cannot be opened.
        TypeError: If ``source`` is of an unsupported type.
    """

    if isinstance(source, LineSource):
        return source
    if isinstance(source, (str, os.PathLike)):
        return LineSource.from_path(source, encoding=encoding)
    if hasattr(source, "readline"):
        return LineSource.from_stream(source)
    if callable(source):
        return LineSource.from_callable(source)
    if isinstance(source, Iterable) and not isinstance(source, (bytes, bytearray)):
        return LineSource.from_iterable(source)
    raise TypeError(f"Unknown input {type(source).__name__}")


# ============================================================================
# Parser Session
# ============================================================================


class ParsePhase(str, Enum):
    """Lifecycle of one document within a parser session."""

    START = "start"
    META = "meta"
    LINKS = "links"
    DONE = "done"


def _check_handler(name: str, handler: Any) -> None:
    if handler is not None and not callable(handler):
        raise HandlerUsageError(f"{name} handler must be callable")


class BeaconParser:
    """Parser session for one BEACON document at a time.

    Args:
        source: Optional source to bind immediately (see :func:`open_source`).
        on_error: Called as ``on_error(message, line_number, raw_line)`` for
            every document error.
        on_link: Called as ``on_link(source, label, description, target,
            full_source, full_target)`` for every valid link.
        options: Tokenizer tie-break configuration.
        encoding: Encoding used when ``source`` is a file name.

    Raises:
        HandlerUsageError: If a handler is given but not callable.

    Examples:
        >>> parser = BeaconParser.from_string("#PREFIX: http://example.org/\\nx|http://example.com/")
        >>> [link.full_source for link in parser]
        ['http://example.org/x']
        >>> parser.error_count
        0
    """

    def __init__(
        self,
        source: Optional[SourceLike] = None,
        *,
        on_error: Optional[ErrorHandler] = None,
        on_link: Optional[LinkHandler] = None,
        options: Optional[TokenizerOptions] = None,
        encoding: str = "utf-8",
    ) -> None:
        self._on_error: Optional[ErrorHandler] = None
        self._on_link: Optional[LinkHandler] = None
        self._set_handlers(on_error, on_link)
        self.options = options or TokenizerOptions()
        self.encoding = encoding
        self._source: Optional[LineSource] = None
        self._reset()
        if source is not None:
            self.open(source)

    @classmethod
    def from_string(cls, text: str, **kwargs: Any) -> "BeaconParser":
        """Create a session bound to the in-memory document ``text``."""

        return cls(LineSource.from_text(text), **kwargs)

    # -- session state -----------------------------------------------------

    def _reset(self) -> None:
        self.meta = MetaFields()
        self._phase = ParsePhase.START
        self._line_number = 0
        self._lookahead: Optional[str] = None
        self._exhausted = False
        self._error_count = 0
        self._last_error: Optional[DocumentError] = None
        self._link_count = 0
        self._last_link: Optional[ExpandedLink] = None
        self._pending_examples: FrozenSet[str] = frozenset()

    def _set_handlers(self, on_error: Optional[ErrorHandler], on_link: Optional[LinkHandler]) -> None:
        _check_handler("error", on_error)
        _check_handler("link", on_link)
        if on_error is not None:
            self._on_error = on_error
        if on_link is not None:
            self._on_link = on_link

    @property
    def phase(self) -> ParsePhase:
        """Current lifecycle phase of the bound document."""

        return self._phase

    @property
    def line_number(self) -> int:
        """Number of lines consumed so far."""

        return self._line_number

    @property
    def error_count(self) -> int:
        """Number of document errors reported since the source was bound."""

        return self._error_count

    @property
    def last_error(self) -> Optional[DocumentError]:
        """Most recent document error, if any."""

        return self._last_error

    @property
    def link_count(self) -> int:
        """Number of valid links parsed so far, including ones a handler rejected."""

        return self._link_count

    @property
    def last_link(self) -> Optional[ExpandedLink]:
        """Most recent successfully expanded link."""

        return self._last_link

    @property
    def expected_count(self) -> Optional[int]:
        """Link count declared by the ``COUNT`` meta field."""

        return self.meta.expected_count

    @property
    def pending_examples(self) -> FrozenSet[str]:
        """Declared examples not matched by any link yet."""

        if self._phase in (ParsePhase.START, ParsePhase.META):
            return frozenset(self.meta.examples)
        return self._pending_examples

    @property
    def succeeded(self) -> bool:
        """``True`` while no document error has been reported."""

        return self._error_count == 0

    def serialize_meta(self) -> str:
        """Return the canonical ``#NAME: value`` block of the bound document."""

        return self.meta.serialize()

    # -- binding -----------------------------------------------------------

    def open(
        self,
        source: SourceLike,
        *,
        on_error: Optional[ErrorHandler] = None,
        on_link: Optional[LinkHandler] = None,
    ) -> "BeaconParser":
        """Bind the session to ``source`` and read its meta block.

        All state of a previously bound document is discarded. Failing to open
        the source is reported as an ``OPEN_FAILED`` document error and ends
        the document without reading any line.
        """

        self._set_handlers(on_error, on_link)
        self.close()
        self._reset()
        try:
            self._source = open_source(source, encoding=self.encoding)
        except OSError as exc:
            reason = exc.strerror or str(exc)
            self._fail_open(f"Failed to open {source}: {reason}")
            return self
        except TypeError as exc:
            self._fail_open(str(exc))
            return self
        logger.debug("bound BEACON source %s", self._source.name)
        self._read_meta()
        return self

    def _fail_open(self, message: str) -> None:
        self._exhausted = True
        self._phase = ParsePhase.DONE
        self._handle_error(ErrorCode.OPEN_FAILED, message, 0, "")

    def close(self) -> None:
        """Release the bound source without running integrity checks."""

        if self._source is not None:
            source, self._source = self._source, None
            source.close()
        self._exhausted = True

    def __enter__(self) -> "BeaconParser":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -- reading -----------------------------------------------------------

    def _read_line(self) -> Optional[str]:
        if self._source is None or self._exhausted:
            return None
        try:
            line = self._source.readline()
        except Exception as exc:  # supplier failures are document errors
            name = self._source.name
            self.close()
            self._handle_error(
                ErrorCode.READ_FAILED,
                f"failed to read from {name}: {exc}",
                self._line_number,
                "",
                {"exception": type(exc).__name__},
            )
            return None
        if line is None:
            self.close()
            return None
        return line.rstrip("\r\n")

    def _read_meta(self) -> None:
        self._phase = ParsePhase.META
        first = True
        while True:
            line = self._read_line()
            if line is None:
                return
            if first:
                first = False
                if line.startswith(_BOM):
                    line = line[len(_BOM):]
            stripped = line.strip()
            if stripped == "":
                self._line_number += 1
                continue
            parsed = parse_meta_line(stripped)
            if parsed is None:
                self._lookahead = line
                return
            self._line_number += 1
            try:
                self.meta.set(*parsed)
            except MetaFieldError as exc:
                self._handle_error(
                    ErrorCode.INVALID_META,
                    str(exc),
                    self._line_number,
                    line,
                    {"field": parsed[0]},
                )

    def _take_line(self) -> Optional[str]:
        if self._lookahead is not None:
            line, self._lookahead = self._lookahead, None
            return line
        return self._read_line()

    # -- link phase --------------------------------------------------------

    def _begin_links(self) -> None:
        self._phase = ParsePhase.LINKS
        self._link_count = 0
        self._pending_examples = frozenset(self.meta.examples)
        logger.debug(
            "meta block finished after %d lines with %d fields",
            self._line_number,
            len(self.meta),
        )

    def _process_line(self, line: str) -> Optional[ExpandedLink]:
        self._line_number += 1
        try:
            record = tokenize(line, templated_target=self.meta.templated_target, options=self.options)
            if record.is_empty:
                return None
            link = expand(record, self.meta)
        except LineError as exc:
            self._handle_error(exc.code, exc.message, self._line_number, line, exc.details)
            return None

        self._link_count += 1
        self._last_link = link
        self._pending_examples = settle_examples(self._pending_examples, link)
        if self._on_link is not None:
            try:
                self._on_link(*link.as_tuple())
            except Exception as exc:  # a failing handler never aborts the stream
                self._handle_error(
                    ErrorCode.LINK_HANDLER_FAILED,
                    f"link handler failed: {exc}",
                    self._line_number,
                    line,
                    {"exception": type(exc).__name__},
                )
        return link

    def _finish(self) -> None:
        self._phase = ParsePhase.DONE
        expected = self.meta.expected_count
        if expected is not None and expected != self._link_count:
            self._handle_error(
                ErrorCode.COUNT_MISMATCH,
                f"expected {expected} links, but got {self._link_count}",
                0,
                "",
                {"expected": expected, "actual": self._link_count},
            )
        if self._pending_examples:
            remaining = sorted(self._pending_examples)
            self._handle_error(
                ErrorCode.EXAMPLES_NOT_FOUND,
                "examples not found: " + "|".join(remaining),
                0,
                "",
                {"remaining": remaining},
            )
        logger.info(
            "parsed %d links from %d lines with %d errors",
            self._link_count,
            self._line_number,
            self._error_count,
        )

    def next_link(self) -> Optional[ExpandedLink]:
        """Return the next valid link, or ``None`` at end of input.

        Blank and invalid lines are skipped; errors and handler calls still
        happen for them. Reaching the end runs the integrity checks once;
        later calls keep returning ``None``.
        """

        if self._phase is ParsePhase.DONE:
            return None
        if self._phase is not ParsePhase.LINKS:
            self._begin_links()
        while True:
            line = self._take_line()
            if line is None:
                self._finish()
                return None
            link = self._process_line(line)
            if link is not None:
                return link

    def __iter__(self) -> Iterator[ExpandedLink]:
        while True:
            link = self.next_link()
            if link is None:
                return
            yield link

    def run(
        self,
        source: Optional[SourceLike] = None,
        *,
        on_error: Optional[ErrorHandler] = None,
        on_link: Optional[LinkHandler] = None,
    ) -> bool:
        """Parse all remaining links, optionally from a new ``source``.

        Returns:
            ``True`` if no document error occurred.
        """

        if source is not None:
            self.open(source, on_error=on_error, on_link=on_link)
        else:
            self._set_handlers(on_error, on_link)
        while self.next_link() is not None:
            pass
        return self._error_count == 0

    # -- errors ------------------------------------------------------------

    def _handle_error(
        self,
        code: ErrorCode,
        message: str,
        line_number: int,
        raw_line: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error = DocumentError(
            code=code,
            message=message,
            line_number=line_number,
            raw_line=raw_line,
            details=dict(details or {}),
        )
        self._error_count += 1
        self._last_error = error
        logger.info(
            "%s at line %d: %s",
            code.value,
            line_number,
            message,
            extra={"stage": "parse", "extra_fields": {"code": code.value, "line": line_number}},
        )
        if self._on_error is not None:
            self._on_error(*error.as_tuple())
