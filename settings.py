import logging
import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

ROOT_DIR = Path(__file__).resolve().parent

# This User-Agent makes the Google Fonts CSS endpoint answer with TTF urls
# instead of woff2, which reportlab cannot embed.
DEFAULT_FONT_USER_AGENT = "Mozilla/5.0 (compatible; pdf-generator) AppleWebKit/537.36"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.environ.get(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings(BaseModel):
    fonts_dir: Path = ROOT_DIR / "fonts"
    max_batch_size: int = Field(default=50, ge=1)
    remote_fonts_enabled: bool = True
    font_css_url: str = "https://fonts.googleapis.com/css2"
    font_user_agent: str = DEFAULT_FONT_USER_AGENT
    font_fetch_timeout: float = 10.0
    fallback_font: str = "Helvetica"
    log_level: str = "INFO"
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://127.0.0.1:5173"]
    )
    jwt_secret: str = ""
    supabase_url: str = ""

    @property
    def auth_enabled(self) -> bool:
        return bool(self.jwt_secret or self.supabase_url)

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            fonts_dir=Path(os.environ.get("CERTGEN_FONTS_DIR", str(defaults.fonts_dir))),
            max_batch_size=int(os.environ.get("CERTGEN_MAX_BATCH_SIZE", defaults.max_batch_size)),
            remote_fonts_enabled=_env_bool("CERTGEN_REMOTE_FONTS", defaults.remote_fonts_enabled),
            font_css_url=os.environ.get("CERTGEN_FONT_CSS_URL", defaults.font_css_url),
            font_user_agent=os.environ.get("CERTGEN_FONT_USER_AGENT", defaults.font_user_agent),
            font_fetch_timeout=float(
                os.environ.get("CERTGEN_FONT_FETCH_TIMEOUT", defaults.font_fetch_timeout)
            ),
            fallback_font=os.environ.get("CERTGEN_FALLBACK_FONT", defaults.fallback_font),
            log_level=os.environ.get("CERTGEN_LOG_LEVEL", defaults.log_level),
            cors_origins=_env_list("CERTGEN_CORS_ORIGINS", defaults.cors_origins),
            jwt_secret=os.environ.get("SUPABASE_JWT_SECRET", ""),
            supabase_url=os.environ.get("SUPABASE_URL", "").rstrip("/"),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # .env must be loaded before the first read of os.environ.
    load_dotenv()
    return Settings.from_env()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
