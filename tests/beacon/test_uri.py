# === NAVMAP v1 ===
# {
#   "module": "tests.beacon.test_uri",
#   "purpose": "Syntactic URI validation and percent-encoding",
#   "sections": [
#     {"id": "tests", "name": "Test Cases", "anchor": "TST", "kind": "tests"}
#   ]
# }
# === /NAVMAP ===

"""Syntactic URI validation and percent-encoding."""

from __future__ import annotations

import pytest

from BeaconKit.uri import is_valid_uri, percent_encode, split_uri

# --- Test Cases ---


@pytest.mark.parametrize(
    "value",
    [
        "http://example.org/x",
        "https://example.org:8080/a/b?c=d#e",
        "u:ri",
        "x:",
        "urn:isbn:0451450523",
        "file:///tmp/data.txt",
        "http://example.org",
        "mailto:someone@example.org",
        "a:b%2F",
        "tag:example.org,2024:item~1",
    ],
)
def test_valid_uris(value: str) -> None:
    assert is_valid_uri(value) is True


@pytest.mark.parametrize(
    "value",
    [
        "",
        "abc",
        "no scheme",
        "1http:x",
        "http://exa mple.org/",
        "a:b%2",
        "a:b%zz",
        "ht<tp:x",
        "a:b|c",
        "ümlaut:x",
    ],
)
def test_invalid_uris(value: str) -> None:
    assert is_valid_uri(value) is False


def test_authority_requires_absolute_path() -> None:
    assert is_valid_uri("http://host/path") is True
    assert is_valid_uri("a://host") is True
    # an empty authority cannot be followed by another "//"
    assert is_valid_uri("a:////x") is False


@pytest.mark.parametrize("value", [None, 42, b"http://x", ["u:ri"]])
def test_non_strings_are_not_uris(value: object) -> None:
    assert is_valid_uri(value) is False


def test_split_uri_components() -> None:
    assert split_uri("http://h/p?q#f") == ("http", "h", "/p", "q", "f")
    assert split_uri("u:ri") == ("u", None, "ri", None, None)
    assert split_uri("relative/path") == (None, None, "relative/path", None, None)


@pytest.mark.parametrize(
    "value, parts",
    [
        ("", (None, None, "", None, None)),
        ("?#", (None, None, "", "", "")),
        ("a\nb", (None, None, "a\nb", None, None)),
    ],
)
def test_split_uri_accepts_any_string(value: str, parts: tuple) -> None:
    assert split_uri(value) == parts


@pytest.mark.parametrize(
    ("raw", "encoded"),
    [
        ("x", "x"),
        ("c:d", "c%3Ad"),
        ("a b", "a%20b"),
        ("a/b", "a%2Fb"),
        ("ä", "%C3%A4"),
        ("A-z_0.9~", "A-z_0.9~"),
        ("", ""),
    ],
)
def test_percent_encode(raw: str, encoded: str) -> None:
    assert percent_encode(raw) == encoded
