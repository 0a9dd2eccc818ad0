import tomllib
from pathlib import Path

import flashdeck


def _project_version() -> str:
    pyproject = Path(__file__).resolve().parents[1] / "pyproject.toml"
    data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
    return str(data["project"]["version"])


def test_package_version_matches_pyproject() -> None:
    assert flashdeck.__version__ == _project_version()


def test_public_api_exports_store_and_models() -> None:
    for name in ("DeckStore", "Card", "Deck", "CardEntry", "MemoryGateway", "SqliteGateway"):
        assert name in flashdeck.__all__
        assert hasattr(flashdeck, name)
