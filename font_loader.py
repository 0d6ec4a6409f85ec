import io
import logging
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import NamedTuple

import requests
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont

from errors import FontResolutionError
from settings import Settings, get_settings

logger = logging.getLogger(__name__)


class StandardFamily(NamedTuple):
    regular: str
    bold: str
    italic: str
    bold_italic: str

    def variant(self, bold: bool, italic: bool) -> str:
        if bold and italic:
            return self.bold_italic
        if bold:
            return self.bold
        if italic:
            return self.italic
        return self.regular


# Built into every PDF reader, no embedding or I/O needed.
STANDARD_FAMILIES: dict[str, StandardFamily] = {
    "Helvetica": StandardFamily(
        "Helvetica", "Helvetica-Bold", "Helvetica-Oblique", "Helvetica-BoldOblique"
    ),
    "Times-Roman": StandardFamily(
        "Times-Roman", "Times-Bold", "Times-Italic", "Times-BoldItalic"
    ),
    "Courier": StandardFamily(
        "Courier", "Courier-Bold", "Courier-Oblique", "Courier-BoldOblique"
    ),
}

_FAMILY_ALIASES = {
    "times": "Times-Roman",
    "timesnewroman": "Times-Roman",
    "couriernew": "Courier",
    "arial": "Helvetica",
}

# Fonts shipped in the fonts directory (see settings.fonts_dir).
BUNDLED_FONTS: dict[str, str] = {
    "Pinyon Script": "PinyonScript-Regular.ttf",
    "Great Vibes": "GreatVibes-Regular.ttf",
    "Dancing Script": "DancingScript-Regular.ttf",
    "Sacramento": "Sacramento-Regular.ttf",
    "Pacifico": "Pacifico-Regular.ttf",
    "Caveat": "Caveat-Regular.ttf",
}

# Family name -> Google Fonts css2 API family parameter.
GOOGLE_FONT_FAMILIES: dict[str, str] = {
    "Pinyon Script": "Pinyon+Script",
    "Great Vibes": "Great+Vibes",
    "Dancing Script": "Dancing+Script",
    "Sacramento": "Sacramento",
    "Pacifico": "Pacifico",
    "Caveat": "Caveat",
}

_TTF_URL_RE = re.compile(r"url\(([^)]+\.ttf[^)]*)\)", re.IGNORECASE)
_ANY_URL_RE = re.compile(r"url\(([^)]+)\)", re.IGNORECASE)


def _normalize_font_name(name: str) -> str:
    return "".join(ch for ch in name.lower() if ch.isalnum())


def _build_variant_index() -> dict[str, tuple[str, bool, bool]]:
    index: dict[str, tuple[str, bool, bool]] = {}
    for family, names in STANDARD_FAMILIES.items():
        index[_normalize_font_name(names.regular)] = (family, False, False)
        index[_normalize_font_name(names.bold)] = (family, True, False)
        index[_normalize_font_name(names.italic)] = (family, False, True)
        index[_normalize_font_name(names.bold_italic)] = (family, True, True)
    for alias, family in _FAMILY_ALIASES.items():
        index.setdefault(alias, (family, False, False))
    return index


_STANDARD_VARIANTS = _build_variant_index()


class FontKey(NamedTuple):
    family: str
    bold: bool = False
    italic: bool = False


def font_key(family: str | None, bold: bool = False, italic: bool = False) -> FontKey:
    name = (family or "").strip() or "Helvetica"
    return FontKey(name, bool(bold), bool(italic))


def decompose_standard_font(font_name: str) -> tuple[str, bool, bool] | None:
    """Split e.g. 'Times-BoldItalic' into ('Times-Roman', True, True)."""
    return _STANDARD_VARIANTS.get(_normalize_font_name(font_name))


def standard_font_name(key: FontKey) -> str | None:
    decomposed = decompose_standard_font(key.family)
    if decomposed is None:
        return None
    family, base_bold, base_italic = decomposed
    return STANDARD_FAMILIES[family].variant(base_bold or key.bold, base_italic or key.italic)


def extract_font_url(css: str) -> str | None:
    """Pull the first font file url out of a @font-face stylesheet.

    Prefers a .ttf url, otherwise takes whatever url() comes first.
    """
    if not css:
        return None
    match = _TTF_URL_RE.search(css) or _ANY_URL_RE.search(css)
    if not match:
        return None
    url = match.group(1).strip().strip("'\"").strip()
    return url or None


class FontBytes(NamedTuple):
    data: bytes
    source: str


@dataclass(frozen=True)
class EmbeddedFont:
    family: str
    name: str
    source: str

    def width(self, text: str, size: float) -> float:
        return pdfmetrics.stringWidth(text, self.name, size)


class FontCache:
    """Process-wide store for downloaded/read font payloads.

    Keys are 'local:<family>' or 'google:<family>'. Entries are immutable once
    stored; families that failed to load from disk are remembered until
    clear() is called.
    """

    def __init__(self) -> None:
        self._bytes: dict[str, bytes] = {}
        self._failed: set[str] = set()
        self._lock = threading.Lock()

    def get(self, key: str) -> bytes | None:
        return self._bytes.get(key)

    def put(self, key: str, data: bytes) -> None:
        with self._lock:
            self._bytes[key] = data

    def mark_failed(self, family: str) -> None:
        with self._lock:
            self._failed.add(family)

    def has_failed(self, family: str) -> bool:
        return family in self._failed

    def clear(self) -> None:
        with self._lock:
            self._bytes.clear()
            self._failed.clear()

    def stats(self) -> dict[str, int]:
        return {"cached": len(self._bytes), "failed": len(self._failed)}


default_font_cache = FontCache()


class FontLoader:
    """Resolve a font family to something the canvas can draw with.

    Order: standard PDF fonts, bundled font files, Google Fonts, then the
    configured fallback font. resolve() never raises for a bad family name.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        cache: FontCache | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.cache = cache if cache is not None else default_font_cache
        self.session = session or requests.Session()

    def local_font_path(self, family: str) -> Path | None:
        fonts_dir = Path(self.settings.fonts_dir)
        filename = BUNDLED_FONTS.get(family)
        if filename:
            return fonts_dir / filename
        if not fonts_dir.exists():
            return None
        wanted = _normalize_font_name(family)
        for pattern in ("*.ttf", "*.otf"):
            for font_file in sorted(fonts_dir.glob(pattern)):
                stem = _normalize_font_name(font_file.stem)
                if stem == wanted or stem == wanted + "regular":
                    return font_file
        return None

    def load_local_bytes(self, family: str) -> bytes | None:
        cache_key = f"local:{family}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached
        if self.cache.has_failed(family):
            return None

        path = self.local_font_path(family)
        if path is None:
            return None
        try:
            data = path.read_bytes()
        except OSError as exc:
            logger.warning("Bundled font '%s' could not be read from %s: %s", family, path, exc)
            self.cache.mark_failed(family)
            return None

        self.cache.put(cache_key, data)
        logger.debug("Loaded bundled font '%s' from %s", family, path)
        return data

    def fetch_remote_bytes(self, family: str) -> bytes | None:
        if not self.settings.remote_fonts_enabled:
            return None
        api_name = GOOGLE_FONT_FAMILIES.get(family)
        if not api_name:
            return None

        cache_key = f"google:{family}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        css_url = f"{self.settings.font_css_url}?family={api_name}&display=swap"
        timeout = self.settings.font_fetch_timeout
        try:
            css_res = self.session.get(
                css_url,
                headers={"User-Agent": self.settings.font_user_agent},
                timeout=timeout,
            )
            if not css_res.ok:
                logger.warning("Google Fonts CSS request for '%s' returned %s", family, css_res.status_code)
                return None

            font_url = extract_font_url(css_res.text)
            if not font_url:
                logger.warning("No font url found in Google Fonts CSS for '%s'", family)
                return None

            font_res = self.session.get(font_url, timeout=timeout)
            if not font_res.ok:
                logger.warning("Font download for '%s' returned %s", family, font_res.status_code)
                return None
        except requests.RequestException as exc:
            logger.warning("Failed to fetch Google Font '%s': %s", family, exc)
            return None

        data = font_res.content
        self.cache.put(cache_key, data)
        return data

    def load_font_bytes(self, family: str) -> FontBytes:
        local = self.load_local_bytes(family)
        if local:
            return FontBytes(local, "local")
        remote = self.fetch_remote_bytes(family)
        if remote:
            return FontBytes(remote, "google")
        raise FontResolutionError(family, "not a standard font, not bundled and not downloadable")

    def _register_truetype(self, family: str, data: bytes) -> str:
        font_name = "".join(ch for ch in family if ch.isalnum()) or "CustomFont"
        if font_name in pdfmetrics.getRegisteredFontNames():
            return font_name
        try:
            pdfmetrics.registerFont(TTFont(font_name, io.BytesIO(data)))
        except Exception as exc:
            raise FontResolutionError(family, f"invalid font data ({exc})") from exc
        logger.debug("Registered TrueType font '%s' as %s", family, font_name)
        return font_name

    def fallback_font(self, family: str | None = None) -> EmbeddedFont:
        name = standard_font_name(font_key(self.settings.fallback_font)) or "Helvetica"
        return EmbeddedFont(family or name, name, "fallback")

    def resolve(self, family: str | None, bold: bool = False, italic: bool = False) -> EmbeddedFont:
        key = font_key(family, bold, italic)

        standard = standard_font_name(key)
        if standard:
            return EmbeddedFont(key.family, standard, "standard")

        # Custom families keep their single face; no synthetic bold/italic.
        try:
            loaded = self.load_font_bytes(key.family)
            name = self._register_truetype(key.family, loaded.data)
        except FontResolutionError as exc:
            logger.warning("%s. Falling back to '%s'.", exc, self.settings.fallback_font)
            return self.fallback_font(key.family)
        return EmbeddedFont(key.family, name, loaded.source)

    def available_families(self) -> list[str]:
        families = list(STANDARD_FAMILIES)
        families.extend(BUNDLED_FONTS)
        if self.settings.remote_fonts_enabled:
            families.extend(GOOGLE_FONT_FAMILIES)
        fonts_dir = Path(self.settings.fonts_dir)
        if fonts_dir.exists():
            bundled_files = set(BUNDLED_FONTS.values())
            for pattern in ("*.ttf", "*.otf"):
                for font_file in fonts_dir.glob(pattern):
                    if font_file.name not in bundled_files:
                        families.append(font_file.stem)
        return list(dict.fromkeys(families))

    def preload_bundled(self) -> int:
        loaded = 0
        for family in BUNDLED_FONTS:
            if self.load_local_bytes(family):
                loaded += 1
        return loaded
