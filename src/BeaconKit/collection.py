# === NAVMAP v1 ===
# {
#   "module": "BeaconKit.collection",
#   "purpose": "SQLite store of named BEACON documents",
#   "sections": [
#     {"id": "storedbeacon", "name": "StoredBeacon", "anchor": "class-storedbeacon", "kind": "class"},
#     {"id": "beaconcollection", "name": "BeaconCollection", "anchor": "class-beaconcollection", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""SQLite store of named BEACON documents.

A collection maps names to parsed documents: the meta fields are stored as a
JSON object and the raw link records as rows. ``insert`` works as an upsert,
so storing a document under an existing name replaces it.

Usage:
    with BeaconCollection(Path("beacons.sqlite")) as collection:
        collection.insert("gnd", Path("gnd.txt").read_text())
        stored = collection.get("gnd")
"""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from .engine import BeaconParser
from .errors import CollectionError
from .formatters import format_link
from .meta import MetaFields
from .tokenizer import Record

__all__ = ["StoredBeacon", "BeaconCollection"]

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS beacons (
  id INTEGER PRIMARY KEY,
  name TEXT NOT NULL UNIQUE,
  meta TEXT NOT NULL,
  updated TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS links (
  beacon_id INTEGER NOT NULL REFERENCES beacons(id) ON DELETE CASCADE,
  position INTEGER NOT NULL,
  source TEXT NOT NULL,
  label TEXT NOT NULL,
  description TEXT NOT NULL,
  target TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_links_beacon ON links(beacon_id, position);
"""


@dataclass(frozen=True)
class StoredBeacon:
    """A named document read back from a collection."""

    name: str
    meta: Dict[str, str]
    links: Tuple[Record, ...]
    updated: str = ""

    def to_text(self) -> str:
        """Render the stored document in BEACON format.

        Under TARGET or TARGETPREFIX columns are read by position, so links are
        written with every column up to the last non-empty one.
        """

        meta = MetaFields(self.meta)
        render = _format_positional if meta.templated_target else _format_condensed
        return meta.serialize() + "".join(render(link) + "\n" for link in self.links)

    def parser(self, **kwargs: object) -> BeaconParser:
        """Return a parser session over the stored document."""

        return BeaconParser.from_string(self.to_text(), **kwargs)  # type: ignore[arg-type]


def _format_condensed(link: Record) -> str:
    return format_link(link.source, link.label, link.description, link.target)


def _format_positional(link: Record) -> str:
    columns = [link.source, link.label, link.description, link.target]
    while len(columns) > 1 and columns[-1] == "":
        columns.pop()
    return "|".join(columns)


class BeaconCollection:
    """Named BEACON documents kept in a SQLite database.

    Args:
        db_path: Database file, created on first use; ``":memory:"`` keeps the
            collection in memory.
    """

    def __init__(self, db_path: Union[Path, str] = ":memory:") -> None:
        if str(db_path) != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.db_path = db_path
        self._conn = sqlite3.connect(str(db_path))
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._conn.executescript(_SCHEMA)

    def close(self) -> None:
        """Close the database connection."""

        self._conn.close()

    def __enter__(self) -> "BeaconCollection":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @staticmethod
    def _check_name(name: str) -> str:
        cleaned = name.strip() if isinstance(name, str) else ""
        if not cleaned:
            raise CollectionError("collection names must be non-empty strings")
        return cleaned

    def insert(self, name: str, document: Union[BeaconParser, str]) -> int:
        """Store ``document`` under ``name``, replacing any previous document.

        Args:
            name: Collection key.
            document: BEACON text or a bound parser whose remaining links are
                consumed.

        Returns:
            Number of links stored.

        Raises:
            CollectionError: If the name is empty or the document has errors.
        """

        key = self._check_name(name)
        parser = BeaconParser.from_string(document) if isinstance(document, str) else document
        links = list(parser)
        if parser.error_count:
            error = parser.last_error
            detail = f": {error.message} (line {error.line_number})" if error else ""
            raise CollectionError(
                f"refusing to store {key!r} with {parser.error_count} errors{detail}"
            )

        updated = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        with self._conn:
            self._conn.execute("DELETE FROM beacons WHERE name = ?", (key,))
            cursor = self._conn.execute(
                "INSERT INTO beacons (name, meta, updated) VALUES (?, ?, ?)",
                (key, json.dumps(parser.meta.get_all()), updated),
            )
            beacon_id = cursor.lastrowid
            self._conn.executemany(
                "INSERT INTO links (beacon_id, position, source, label, description, target)"
                " VALUES (?, ?, ?, ?, ?, ?)",
                [
                    (beacon_id, position, link.source, link.label, link.description, link.target)
                    for position, link in enumerate(links)
                ],
            )
        logger.info("stored collection %s with %d links", key, len(links))
        return len(links)

    def get(self, name: str) -> Optional[StoredBeacon]:
        """Return the document stored under ``name``, or ``None``."""

        key = self._check_name(name)
        row = self._conn.execute(
            "SELECT id, meta, updated FROM beacons WHERE name = ?", (key,)
        ).fetchone()
        if row is None:
            return None
        rows = self._conn.execute(
            "SELECT source, label, description, target FROM links"
            " WHERE beacon_id = ? ORDER BY position",
            (row["id"],),
        ).fetchall()
        links = tuple(
            Record(item["source"], item["label"], item["description"], item["target"])
            for item in rows
        )
        return StoredBeacon(name=key, meta=json.loads(row["meta"]), links=links, updated=row["updated"])

    def remove(self, name: str) -> bool:
        """Delete the document stored under ``name``; return whether it existed."""

        key = self._check_name(name)
        with self._conn:
            cursor = self._conn.execute("DELETE FROM beacons WHERE name = ?", (key,))
        removed = cursor.rowcount > 0
        if removed:
            logger.info("removed collection %s", key)
        return removed

    def list(self, **meta: str) -> List[str]:
        """Return stored names, optionally only those whose meta fields match ``meta``.

        Field names are compared case-insensitively, values exactly.
        """

        wanted = {key.upper(): value for key, value in meta.items()}
        names: List[str] = []
        for row in self._conn.execute("SELECT name, meta FROM beacons ORDER BY name"):
            fields = json.loads(row["meta"])
            if all(fields.get(key) == value for key, value in wanted.items()):
                names.append(row["name"])
        return names
