from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure the project root is importable when running `pytest` via its entrypoint,
# where `sys.path[0]` may not be the repo root.
_PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

import reportlab  # noqa: E402
import requests  # noqa: E402

from font_loader import FontCache, FontLoader, default_font_cache  # noqa: E402
from settings import Settings  # noqa: E402

VERA_TTF = Path(reportlab.__file__).resolve().parent / "fonts" / "Vera.ttf"


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = "", content: bytes = b"") -> None:
        self.status_code = status_code
        self.text = text
        self.content = content

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400


class FakeSession:
    """Stand-in for requests.Session: url prefix -> FakeResponse or exception."""

    def __init__(self, routes: dict | None = None) -> None:
        self.routes = routes or {}
        self.calls: list[tuple[str, dict]] = []

    def get(self, url: str, **kwargs):
        self.calls.append((url, kwargs))
        for prefix, outcome in self.routes.items():
            if url.startswith(prefix):
                if isinstance(outcome, Exception):
                    raise outcome
                return outcome
        raise requests.ConnectionError(f"no route for {url}")


@pytest.fixture(autouse=True)
def _reset_default_font_cache():
    default_font_cache.clear()
    yield
    default_font_cache.clear()


@pytest.fixture
def vera_bytes() -> bytes:
    return VERA_TTF.read_bytes()


@pytest.fixture
def fonts_dir(tmp_path: Path) -> Path:
    path = tmp_path / "fonts"
    path.mkdir()
    return path


@pytest.fixture
def settings(fonts_dir: Path) -> Settings:
    return Settings(fonts_dir=fonts_dir, remote_fonts_enabled=False)


@pytest.fixture
def font_cache() -> FontCache:
    return FontCache()


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def loader(settings: Settings, font_cache: FontCache, fake_session: FakeSession) -> FontLoader:
    return FontLoader(settings, font_cache, session=fake_session)
