"""Export manifest and public API surface.

This module defines which names ``BeaconKit`` exposes lazily at package level
and the manifest consumed by documentation tooling.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

__all__ = [
    "ExportSpec",
    "EXPORT_MAP",
    "EXPORTS",
    "PUBLIC_API_MANIFEST",
]


@dataclass(frozen=True)
class ExportSpec:
    """Specification for an exported symbol."""

    name: str
    """Name of the symbol."""

    module: str
    """Module where the symbol is defined."""

    attribute: str = ""
    """Attribute name inside ``module``; defaults to ``name``."""

    include_in_manifest: bool = True
    """Whether to include this symbol in the public API manifest."""

    doc: str = ""
    """Short documentation string."""

    @property
    def target(self) -> str:
        """Attribute looked up in :attr:`module`."""

        return self.attribute or self.name


_PACKAGE = "BeaconKit"

# Core API specs
_CORE_SPECS = [
    ExportSpec("BeaconParser", f"{_PACKAGE}.engine", doc="Streaming BEACON parser session"),
    ExportSpec("LineSource", f"{_PACKAGE}.engine", doc="Pull-style line supplier"),
    ExportSpec("ParsePhase", f"{_PACKAGE}.engine", doc="Parser session lifecycle"),
    ExportSpec("MetaFields", f"{_PACKAGE}.meta", doc="Validated meta field store"),
    ExportSpec("Record", f"{_PACKAGE}.tokenizer", doc="Raw link record"),
    ExportSpec("TokenizerOptions", f"{_PACKAGE}.tokenizer", doc="Tokenizer tie-break options"),
    ExportSpec("tokenize", f"{_PACKAGE}.tokenizer", doc="Split a link line into a record"),
    ExportSpec("ExpandedLink", f"{_PACKAGE}.expander", doc="Record with resolved URIs"),
    ExportSpec("expand", f"{_PACKAGE}.expander", doc="Resolve a record against meta fields"),
    ExportSpec("is_valid_uri", f"{_PACKAGE}.uri", doc="RFC 3986 syntax check"),
    ExportSpec("format_link", f"{_PACKAGE}.formatters", doc="Condensed link serialization"),
    ExportSpec("BeaconCollection", f"{_PACKAGE}.collection", doc="SQLite store of named documents"),
    ExportSpec("ErrorCode", f"{_PACKAGE}.errors", doc="Document error codes"),
    ExportSpec("DocumentError", f"{_PACKAGE}.errors", doc="Document error record"),
    ExportSpec("BeaconError", f"{_PACKAGE}.errors", doc="Base exception"),
    ExportSpec("InvalidMetaName", f"{_PACKAGE}.errors", doc="Rejected meta field name"),
    ExportSpec("InvalidMetaValue", f"{_PACKAGE}.errors", doc="Rejected meta field value"),
    ExportSpec("cli_main", f"{_PACKAGE}.cli", doc="Main CLI entry point"),
]

# Export list
EXPORTS: list[ExportSpec] = _CORE_SPECS

# Export map: symbol name -> spec
EXPORT_MAP: dict[str, ExportSpec] = {spec.name: spec for spec in EXPORTS}

# Public API manifest
PUBLIC_API_MANIFEST: dict[str, Any] = {
    "version": "1.0.0",
    "modules": sorted({spec.module for spec in EXPORTS}),
    "symbols": [spec.name for spec in EXPORTS if spec.include_in_manifest],
}
