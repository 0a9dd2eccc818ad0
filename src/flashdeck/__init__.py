"""flashdeck: card and deck data engine for vocabulary study."""

from __future__ import annotations

import re
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

from .gateway import MemoryGateway, PersistenceGateway, SqliteGateway
from .models import Card, CardEntry, CardStatus, Deck, MergeStrategy
from .store import DeckStore, ImportResult

__all__ = [
    "Card",
    "CardEntry",
    "CardStatus",
    "Deck",
    "DeckStore",
    "ImportResult",
    "MemoryGateway",
    "MergeStrategy",
    "PersistenceGateway",
    "SqliteGateway",
    "__version__",
]

_VERSION_LINE = re.compile(r'^version\s*=\s*"([^"]+)"\s*$')


def _version_from_pyproject() -> str | None:
    """Read [project].version from a source checkout, if there is one."""
    for base in Path(__file__).resolve().parents:
        pyproject = base / "pyproject.toml"
        if not pyproject.exists():
            continue
        section = None
        for line in pyproject.read_text(encoding="utf-8").splitlines():
            stripped = line.strip()
            if stripped.startswith("["):
                section = stripped
            elif section == "[project]" and (match := _VERSION_LINE.match(stripped)):
                return match.group(1)
    return None


def _resolve_version() -> str:
    local = _version_from_pyproject()
    if local is not None:
        return local
    try:
        return version("flashdeck")
    except PackageNotFoundError:
        return "0+unknown"


__version__ = _resolve_version()
