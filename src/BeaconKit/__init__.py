# === NAVMAP v1 ===
# {
#   "module": "BeaconKit",
#   "purpose": "Package initialization for BeaconKit",
#   "sections": [
#     {
#       "id": "getattr",
#       "name": "__getattr__",
#       "anchor": "function-getattr",
#       "kind": "function"
#     },
#     {
#       "id": "dir",
#       "name": "__dir__",
#       "anchor": "function-dir",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Public API for the BeaconKit link-dump parser.

This facade exposes the BEACON parser session, the meta field store, the
tokenizer and expander functions, link serialization, and the SQLite
collection store. Names are imported lazily so that importing the package
does not pull in the CLI stack.
"""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any

from .exports import EXPORT_MAP, EXPORTS, PUBLIC_API_MANIFEST

__version__ = "0.10.0"

_PUBLIC_EXPORTS = tuple(spec.name for spec in EXPORTS if spec.include_in_manifest)

__all__ = [*_PUBLIC_EXPORTS, "PUBLIC_API_MANIFEST", "__version__"]

if TYPE_CHECKING:  # pragma: no cover - import for static analysis only
    from .cli import cli_main
    from .collection import BeaconCollection
    from .engine import BeaconParser, LineSource, ParsePhase
    from .errors import BeaconError, DocumentError, ErrorCode, InvalidMetaName, InvalidMetaValue
    from .expander import ExpandedLink, expand
    from .formatters import format_link
    from .meta import MetaFields
    from .tokenizer import Record, TokenizerOptions, tokenize
    from .uri import is_valid_uri


def __getattr__(name: str) -> Any:
    """Lazily import API exports."""

    spec = EXPORT_MAP.get(name)
    if spec is not None and spec.name in _PUBLIC_EXPORTS:
        module = import_module(spec.module)
        value = getattr(module, spec.target)
        globals()[name] = value
        return value
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


def __dir__() -> list[str]:
    """Expose lazily-populated attributes in ``dir()`` results."""

    return sorted(set(globals()) | set(__all__))
