"""
Tests for font_loader - standard fonts, bundled files, Google Fonts and fallback.
"""

import pytest
import requests

from conftest import FakeResponse, FakeSession
from errors import FontResolutionError
from font_loader import (
    FontCache,
    FontKey,
    FontLoader,
    decompose_standard_font,
    extract_font_url,
    font_key,
    standard_font_name,
)
from settings import Settings

CSS_URL = "https://fonts.googleapis.com/css2"
FONT_FILE_URL = "https://fonts.gstatic.com/s/greatvibes/v19/RWmMoKWR9v4ksMfaWd_JN-XC.ttf"
GREAT_VIBES_CSS = f"""
/* latin */
@font-face {{
  font-family: 'Great Vibes';
  font-style: normal;
  font-weight: 400;
  src: url({FONT_FILE_URL}) format('truetype');
}}
"""


@pytest.fixture
def remote_settings(fonts_dir):
    return Settings(fonts_dir=fonts_dir, remote_fonts_enabled=True, font_fetch_timeout=3.0)


# =============================================================================
# Tests: standard font names
# =============================================================================

class TestStandardFonts:
    @pytest.mark.parametrize(
        "family,bold,italic,expected",
        [
            ("Helvetica", False, False, "Helvetica"),
            ("Helvetica", True, False, "Helvetica-Bold"),
            ("Helvetica", True, True, "Helvetica-BoldOblique"),
            ("Times-Roman", False, True, "Times-Italic"),
            ("Times New Roman", True, False, "Times-Bold"),
            ("Courier-Bold", False, True, "Courier-BoldOblique"),
            ("arial", False, False, "Helvetica"),
        ],
    )
    def test_variant_selection(self, family, bold, italic, expected):
        assert standard_font_name(FontKey(family, bold, italic)) == expected

    def test_custom_family_is_not_standard(self):
        assert standard_font_name(FontKey("Great Vibes")) is None

    def test_decompose(self):
        assert decompose_standard_font("Times-BoldItalic") == ("Times-Roman", True, True)
        assert decompose_standard_font("Comic Sans") is None

    def test_empty_family_defaults_to_helvetica(self):
        assert font_key("  ") == FontKey("Helvetica", False, False)
        assert font_key(None, bold=True) == FontKey("Helvetica", True, False)

    def test_resolve_standard_does_no_io(self, loader, fake_session):
        font = loader.resolve("Helvetica", bold=True)
        assert font.name == "Helvetica-Bold"
        assert font.source == "standard"
        assert fake_session.calls == []
        assert font.width("Hello", 12) > 0


# =============================================================================
# Tests: CSS parsing
# =============================================================================

class TestExtractFontUrl:
    def test_prefers_ttf_url(self):
        css = "src: url(https://x/a.woff2) format('woff2'); src: url(https://x/b.ttf);"
        assert extract_font_url(css) == "https://x/b.ttf"

    def test_any_url_when_no_ttf(self):
        assert extract_font_url("src: url('https://x/a.woff2');") == "https://x/a.woff2"

    def test_no_url(self):
        assert extract_font_url("body { color: red; }") is None
        assert extract_font_url("") is None

    def test_google_stylesheet(self):
        assert extract_font_url(GREAT_VIBES_CSS) == FONT_FILE_URL


# =============================================================================
# Tests: bundled / local font files
# =============================================================================

class TestLocalFonts:
    def test_resolves_font_file_by_family_name(self, loader, fonts_dir, vera_bytes):
        (fonts_dir / "CertificateSerif-Regular.ttf").write_bytes(vera_bytes)

        font = loader.resolve("Certificate Serif")

        assert font.source == "local"
        assert font.name == "CertificateSerif"
        assert font.width("Jane Doe", 24) > 0
        assert loader.cache.get("local:Certificate Serif") == vera_bytes

    def test_missing_bundled_file_is_remembered(self, loader, font_cache):
        assert loader.load_local_bytes("Great Vibes") is None
        assert font_cache.has_failed("Great Vibes")
        assert font_cache.stats() == {"cached": 0, "failed": 1}

    def test_unknown_family_without_file(self, loader):
        with pytest.raises(FontResolutionError):
            loader.load_font_bytes("Nonexistent Family")

    def test_invalid_font_data_falls_back(self, loader, fonts_dir):
        (fonts_dir / "BrokenFace.ttf").write_bytes(b"definitely not a font")

        font = loader.resolve("Broken Face")

        assert font.source == "fallback"
        assert font.name == "Helvetica"
        assert font.family == "Broken Face"

    def test_configured_fallback_font(self, fonts_dir):
        settings = Settings(fonts_dir=fonts_dir, remote_fonts_enabled=False, fallback_font="Times-Roman")
        loader = FontLoader(settings, FontCache(), session=FakeSession())

        font = loader.resolve("Unknown Script")

        assert font.name == "Times-Roman"
        assert font.source == "fallback"

    def test_available_families_lists_extra_files(self, loader, fonts_dir, vera_bytes):
        (fonts_dir / "HouseStyle.ttf").write_bytes(vera_bytes)

        families = loader.available_families()

        assert families[:3] == ["Helvetica", "Times-Roman", "Courier"]
        assert "Great Vibes" in families
        assert "HouseStyle" in families
        assert len(families) == len(set(families))

    def test_preload_bundled_with_empty_directory(self, loader):
        assert loader.preload_bundled() == 0


# =============================================================================
# Tests: Google Fonts
# =============================================================================

class TestRemoteFonts:
    def test_downloads_and_caches(self, remote_settings, font_cache, vera_bytes):
        session = FakeSession({
            CSS_URL: FakeResponse(text=GREAT_VIBES_CSS),
            "https://fonts.gstatic.com/": FakeResponse(content=vera_bytes),
        })
        loader = FontLoader(remote_settings, font_cache, session=session)

        font = loader.resolve("Great Vibes")

        assert font.source == "google"
        assert font.name == "GreatVibes"
        css_call, file_call = session.calls
        assert css_call[0] == f"{CSS_URL}?family=Great+Vibes&display=swap"
        assert "User-Agent" in css_call[1]["headers"]
        assert css_call[1]["timeout"] == 3.0
        assert file_call[0] == FONT_FILE_URL
        assert font_cache.get("google:Great Vibes") == vera_bytes

        # A second loader sharing the cache goes to the network no more.
        second_session = FakeSession()
        FontLoader(remote_settings, font_cache, session=second_session).resolve("Great Vibes")
        assert second_session.calls == []

    def test_network_error_falls_back(self, remote_settings, font_cache):
        session = FakeSession({CSS_URL: requests.Timeout("read timed out")})
        loader = FontLoader(remote_settings, font_cache, session=session)

        font = loader.resolve("Pacifico")

        assert font.source == "fallback"
        assert font.name == "Helvetica"
        assert font_cache.get("google:Pacifico") is None

    def test_css_error_status_falls_back(self, remote_settings, font_cache):
        session = FakeSession({CSS_URL: FakeResponse(status_code=500)})
        loader = FontLoader(remote_settings, font_cache, session=session)

        assert loader.fetch_remote_bytes("Caveat") is None
        assert len(session.calls) == 1

    def test_css_without_url(self, remote_settings, font_cache):
        session = FakeSession({CSS_URL: FakeResponse(text="/* empty */")})
        loader = FontLoader(remote_settings, font_cache, session=session)

        assert loader.fetch_remote_bytes("Sacramento") is None

    def test_family_outside_catalog_is_not_fetched(self, remote_settings, font_cache):
        session = FakeSession()
        loader = FontLoader(remote_settings, font_cache, session=session)

        assert loader.fetch_remote_bytes("Some Private Font") is None
        assert session.calls == []

    def test_disabled_remote_fonts(self, loader, fake_session):
        assert loader.fetch_remote_bytes("Great Vibes") is None
        assert fake_session.calls == []


class TestFontCache:
    def test_put_get_clear(self):
        cache = FontCache()
        cache.put("local:A", b"abc")
        cache.mark_failed("B")

        assert cache.get("local:A") == b"abc"
        assert cache.has_failed("B")
        assert cache.stats() == {"cached": 1, "failed": 1}

        cache.clear()
        assert cache.get("local:A") is None
        assert not cache.has_failed("B")
