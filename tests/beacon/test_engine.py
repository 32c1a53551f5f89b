# === NAVMAP v1 ===
# {
#   "module": "tests.beacon.test_engine",
#   "purpose": "Parser session lifecycle, error accounting, and integrity checks",
#   "sections": [
#     {"id": "helpers", "name": "Helpers", "anchor": "HLP", "kind": "infra"},
#     {"id": "sources", "name": "Line Sources", "anchor": "SRC", "kind": "tests"},
#     {"id": "parsing", "name": "Push and Pull Parsing", "anchor": "PAR", "kind": "tests"},
#     {"id": "errors", "name": "Document Errors", "anchor": "ERR", "kind": "tests"},
#     {"id": "integrity", "name": "Integrity Checks", "anchor": "INT", "kind": "tests"}
#   ]
# }
# === /NAVMAP ===

"""Parser session lifecycle, error accounting, and integrity checks.

Exercises both driving styles of :class:`BeaconParser` (``run`` with a link
handler and pull iteration via ``next_link``), every document error code, and
the end-of-document checks for ``COUNT`` and ``EXAMPLES``.
"""

from __future__ import annotations

import io
from typing import List, Optional

import pytest

from BeaconKit.engine import BeaconParser, LineSource, ParsePhase, open_source
from BeaconKit.errors import ErrorCode, HandlerUsageError

EXAMPLE_DOCUMENT = """#FORMAT: BEACON
#PREFIX: http://example.org/
#TARGET: http://example.com/{ID}
qid|label|description
qid2|u:ri
"""

# --- Helpers ---


class _ErrorCodes:
    """Error handler that remembers the codes reported by ``parser``."""

    def __init__(self) -> None:
        self.parser: Optional[BeaconParser] = None
        self.codes: List[ErrorCode] = []
        self.calls: List[tuple] = []

    def __call__(self, message: str, line_number: int, raw_line: str) -> None:
        assert self.parser is not None and self.parser.last_error is not None
        self.codes.append(self.parser.last_error.code)
        self.calls.append((message, line_number, raw_line))


def _parse(text: str, **kwargs) -> tuple:
    handler = _ErrorCodes()
    parser = BeaconParser(**kwargs)
    handler.parser = parser
    parser.open(LineSource.from_text(text), on_error=handler)
    links = list(parser)
    return parser, links, handler


# --- Line Sources ---


def test_open_source_dispatch(tmp_path) -> None:
    path = tmp_path / "doc.txt"
    path.write_text("u:a|u:b\n", encoding="utf-8")
    for candidate in (path, str(path)):
        source = open_source(candidate)
        assert source.readline() == "u:a|u:b\n"
        source.close()
    assert open_source(io.StringIO("x\n")).readline() == "x\n"
    assert open_source(["one", "two"]).readline() == "one"
    assert open_source(lambda: "line").readline() == "line"
    source = LineSource.from_text("a")
    assert open_source(source) is source


def test_open_source_rejects_unknown_types() -> None:
    with pytest.raises(TypeError, match="Unknown input"):
        open_source(42)  # type: ignore[arg-type]


def test_line_source_reports_end_with_none() -> None:
    source = LineSource.from_iterable(["a"])
    assert source.readline() == "a"
    assert source.readline() is None
    assert source.readline() is None


def test_stream_source_is_closed_with_session() -> None:
    stream = io.StringIO("u:a|u:b\n")
    parser = BeaconParser(stream)
    assert parser.run() is True
    assert stream.closed


# --- Push and Pull Parsing ---


def test_example_document_push_mode() -> None:
    seen: List[tuple] = []
    parser = BeaconParser.from_string(EXAMPLE_DOCUMENT)
    assert parser.run(on_link=lambda *values: seen.append(values)) is True
    assert seen == [
        ("qid", "label", "description", "", "http://example.org/qid", "http://example.com/qid"),
        ("qid2", "u:ri", "", "", "http://example.org/qid2", "http://example.com/qid2"),
    ]
    assert parser.link_count == 2
    assert parser.error_count == 0
    assert parser.succeeded
    assert parser.phase is ParsePhase.DONE
    assert parser.last_link is not None and parser.last_link.source == "qid2"


def test_example_document_pull_mode() -> None:
    parser = BeaconParser.from_string(EXAMPLE_DOCUMENT)
    assert parser.phase is ParsePhase.META
    first = parser.next_link()
    assert first is not None and first.full_target == "http://example.com/qid"
    assert parser.phase is ParsePhase.LINKS
    second = parser.next_link()
    assert second is not None and second.label == "u:ri"
    assert parser.next_link() is None
    assert parser.next_link() is None
    assert parser.phase is ParsePhase.DONE


def test_meta_is_available_before_links() -> None:
    parser = BeaconParser.from_string(EXAMPLE_DOCUMENT)
    assert parser.meta.get("PREFIX") == "http://example.org/"
    assert parser.link_count == 0
    assert parser.line_number == 3
    assert parser.serialize_meta() == (
        "#FORMAT: BEACON\n#PREFIX: http://example.org/\n#TARGET: http://example.com/{ID}\n"
    )


def test_session_without_source_starts_idle() -> None:
    parser = BeaconParser()
    assert parser.phase is ParsePhase.START
    assert parser.next_link() is None
    assert parser.error_count == 0


def test_parse_from_file(beacon_file) -> None:
    path = beacon_file("#COUNT: 1\nhttp://a.org/x|http://b.org/y\n")
    with BeaconParser(path) as parser:
        links = list(parser)
    assert [link.full_target for link in links] == ["http://b.org/y"]
    assert parser.error_count == 0


def test_rebinding_resets_state() -> None:
    parser, _links, _handler = _parse("#COUNT: 5\nu:a|u:b\n")
    assert parser.error_count == 1
    parser.open(LineSource.from_text("#DESCRIPTION: second\nu:c|u:d\n"))
    assert parser.error_count == 0
    assert parser.last_error is None
    assert parser.expected_count is None
    assert parser.meta.get("DESCRIPTION") == "second"
    assert parser.run() is True
    assert parser.link_count == 1


def test_run_with_new_source_rebinds() -> None:
    parser = BeaconParser.from_string("x\n")
    assert parser.run(LineSource.from_text("u:a|u:b\n")) is True
    assert parser.link_count == 1


def test_blank_lines_and_crlf_are_skipped() -> None:
    parser = BeaconParser(io.StringIO("#COUNT: 2\r\n\r\nu:a|u:b\r\n   \r\nu:c|u:d\r\n"))
    links = list(parser)
    assert [link.source for link in links] == ["u:a", "u:c"]
    assert parser.error_count == 0
    assert parser.line_number == 5


def test_text_splits_on_newlines_only() -> None:
    text = "u:a|label\x85more|u:b\r\nu:c|form\x0cfeed x|u:d\n"
    parser, links, handler = _parse(text)
    assert handler.codes == []
    assert [(link.label, link.target) for link in links] == [
        ("label\x85more", "u:b"),
        ("form\x0cfeed x", "u:d"),
    ]
    streamed = list(BeaconParser(io.StringIO(text)))
    assert [link.as_tuple() for link in streamed] == [link.as_tuple() for link in links]


def test_byte_order_mark_is_ignored() -> None:
    parser = BeaconParser.from_string("\ufeff#PREFIX: http://example.org/\nx|http://t.org/\n")
    assert parser.meta.get("PREFIX") == "http://example.org/"
    assert [link.full_source for link in parser] == ["http://example.org/x"]


def test_meta_lines_after_links_are_link_lines() -> None:
    parser, links, handler = _parse("u:a|u:b\n#COUNT: 1\n")
    assert len(links) == 1
    assert handler.codes == [ErrorCode.SOURCE_NOT_URI]
    assert parser.expected_count is None


def test_pending_examples_shrink_while_parsing() -> None:
    parser = BeaconParser.from_string("#EXAMPLES: u:a|u:c\nu:a|u:b\nu:c|u:d\n")
    assert parser.pending_examples == frozenset({"u:a", "u:c"})
    parser.next_link()
    assert parser.pending_examples == frozenset({"u:c"})
    parser.next_link()
    assert parser.pending_examples == frozenset()


def test_min_parts_option_reaches_tokenizer() -> None:
    from BeaconKit.tokenizer import TokenizerOptions

    parser, links, handler = _parse("u:a|u:b\n", options=TokenizerOptions(uri_target_min_parts=3))
    assert links == []
    assert handler.codes == [ErrorCode.TARGET_NOT_URI]


# --- Document Errors ---


def test_invalid_lines_are_reported_and_skipped() -> None:
    text = "#PREFIX: http://example.org/\n\na|b|c|d|e\nx|http://t.org/\n"
    parser, links, handler = _parse(text)
    assert handler.calls == [
        ("found too many parts (>4), divided by '|' characters", 3, "a|b|c|d|e"),
    ]
    assert [link.source for link in links] == ["x"]
    assert parser.error_count == 1
    assert parser.last_error is not None
    assert parser.last_error.code is ErrorCode.TOO_MANY_PARTS
    assert parser.last_error.details == {"parts": 5}
    assert parser.run() is False


def test_extra_part_and_uri_errors() -> None:
    text = "u:a|b|c|not-uri\nnot uri|u:t\nu:a|no-target\n"
    _parser, links, handler = _parse(text)
    assert links == []
    assert handler.codes == [
        ErrorCode.UNEXPECTED_EXTRA_PART,
        ErrorCode.SOURCE_NOT_URI,
        ErrorCode.TARGET_NOT_URI,
    ]
    assert [call[1] for call in handler.calls] == [1, 2, 3]


def test_invalid_meta_is_reported_and_parsing_continues() -> None:
    text = "#PREFIX: not a uri\n#COUNT: 1\nhttp://a.org/x|http://t.org/\n"
    parser, links, handler = _parse(text)
    assert handler.codes == [ErrorCode.INVALID_META]
    assert handler.calls[0][1:] == (1, "#PREFIX: not a uri")
    assert parser.last_error is not None and parser.last_error.details == {"field": "PREFIX"}
    assert parser.expected_count == 1
    assert len(links) == 1
    assert parser.error_count == 1


def test_failing_link_handler_does_not_stop_parsing() -> None:
    seen: List[str] = []

    def on_link(source, label, description, target, full_source, full_target):
        seen.append(source)
        if source == "u:b":
            raise ValueError("boom")

    handler = _ErrorCodes()
    parser = BeaconParser(on_error=handler)
    handler.parser = parser
    parser.open(LineSource.from_text("#COUNT: 3\nu:a|u:t\nu:b|u:t\nu:c|u:t\n"), on_link=on_link)
    assert parser.run() is False
    assert seen == ["u:a", "u:b", "u:c"]
    assert handler.codes == [ErrorCode.LINK_HANDLER_FAILED]
    assert handler.calls == [("link handler failed: boom", 3, "u:b|u:t")]
    assert parser.link_count == 3


def test_open_failure_ends_document(tmp_path, error_log) -> None:
    errors, record = error_log
    missing = tmp_path / "missing.txt"
    parser = BeaconParser(missing, on_error=record)
    assert parser.phase is ParsePhase.DONE
    assert len(errors) == 1
    message, line_number, raw_line = errors[0]
    assert message.startswith(f"Failed to open {missing}")
    assert (line_number, raw_line) == (0, "")
    assert parser.next_link() is None
    assert parser.run() is False
    assert parser.error_count == 1
    assert parser.last_error is not None and parser.last_error.code is ErrorCode.OPEN_FAILED


def test_unknown_source_type_is_an_open_failure() -> None:
    parser = BeaconParser(42)  # type: ignore[arg-type]
    assert parser.error_count == 1
    assert parser.last_error is not None
    assert parser.last_error.code is ErrorCode.OPEN_FAILED
    assert "Unknown input int" in parser.last_error.message


def test_failing_supplier_is_a_read_error() -> None:
    lines = iter(["u:a|u:b\n"])

    def supplier():
        line = next(lines, None)
        if line is None:
            raise OSError("disk gone")
        return line

    handler = _ErrorCodes()
    parser = BeaconParser(on_error=handler)
    handler.parser = parser
    parser.open(supplier)
    links = list(parser)
    assert [link.source for link in links] == ["u:a"]
    assert handler.codes == [ErrorCode.READ_FAILED]
    message, line_number, raw_line = handler.calls[0]
    assert message == "failed to read from supplier: disk gone"
    assert (line_number, raw_line) == (1, "")
    assert parser.phase is ParsePhase.DONE


def test_handlers_must_be_callable() -> None:
    with pytest.raises(HandlerUsageError):
        BeaconParser(on_link="print")  # type: ignore[arg-type]
    parser = BeaconParser()
    with pytest.raises(TypeError):
        parser.run(on_error=42)  # type: ignore[arg-type]


def test_errors_are_queryable_without_handler() -> None:
    parser = BeaconParser.from_string("u:a|u:b\nbad line|u:t\nu:c|u:d\n")
    assert parser.run() is False
    assert parser.error_count == 1
    assert parser.link_count == 2
    assert parser.last_link is not None and parser.last_link.source == "u:c"
    assert parser.last_error is not None and parser.last_error.line_number == 2


# --- Integrity Checks ---


@pytest.mark.parametrize(("declared", "actual"), [(0, 0), (2, 2), (3, 1), (1, 3), (0, 2)])
def test_count_check(declared: int, actual: int) -> None:
    body = "".join(f"u:s{index}|u:t\n" for index in range(actual))
    parser, links, handler = _parse(f"#COUNT: {declared}\n{body}")
    assert len(links) == actual
    if declared == actual:
        assert handler.codes == []
    else:
        assert handler.codes == [ErrorCode.COUNT_MISMATCH]
        assert handler.calls == [(f"expected {declared} links, but got {actual}", 0, "")]
        assert parser.last_error is not None
        assert parser.last_error.details == {"expected": declared, "actual": actual}


def test_count_ignores_invalid_lines() -> None:
    _parser, _links, handler = _parse("#COUNT: 2\nu:a|u:b\nnope\nu:c|u:d\n")
    assert handler.codes == [ErrorCode.SOURCE_NOT_URI]


def test_integrity_checks_run_once_in_pull_mode() -> None:
    parser = BeaconParser.from_string("#COUNT: 2\nu:a|u:b\n")
    while parser.next_link() is not None:
        pass
    for _ in range(3):
        assert parser.next_link() is None
    assert parser.error_count == 1


def test_closing_early_skips_integrity_checks() -> None:
    parser = BeaconParser.from_string("#COUNT: 2\nu:a|u:b\nu:c|u:d\n")
    assert parser.next_link() is not None
    parser.close()
    assert parser.error_count == 0


def test_missing_examples_are_reported_once() -> None:
    text = "#PREFIX: http://example.org/\n#EXAMPLES: a|b\na|http://t.org/\n"
    parser, _links, handler = _parse(text)
    assert handler.codes == [ErrorCode.EXAMPLES_NOT_FOUND]
    assert handler.calls == [("examples not found: b", 0, "")]
    assert parser.last_error is not None
    assert parser.last_error.details == {"remaining": ["b"]}


def test_examples_match_expanded_sources() -> None:
    text = "#PREFIX: http://example.org/\n#EXAMPLES: http://example.org/a\na|http://t.org/\n"
    parser, _links, handler = _parse(text)
    assert handler.codes == []
    assert parser.succeeded


def test_count_and_examples_errors_are_both_reported() -> None:
    _parser, _links, handler = _parse("#EXAMPLES: u:x|u:y\n#COUNT: 3\nu:a|u:b\n")
    assert handler.codes == [ErrorCode.COUNT_MISMATCH, ErrorCode.EXAMPLES_NOT_FOUND]
    assert handler.calls[1][0] == "examples not found: u:x|u:y"
