# runehelp/config.py

import logging
import os
from dataclasses import dataclass

from runehelp.parser import TEXT_LAYOUTS

DEFAULT_DB_PATH = "data/runehelp.db"
DEFAULT_HISCORES_URL = (
    "https://secure.runescape.com/m=hiscore_oldschool/index_lite.json?player={player}"
)
DEFAULT_HISCORES_LEGACY_URL = (
    "https://secure.runescape.com/m=hiscore_oldschool/index_lite.ws?player={player}"
)
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    db_path: str = DEFAULT_DB_PATH
    hiscores_url: str = DEFAULT_HISCORES_URL
    hiscores_legacy_url: str = DEFAULT_HISCORES_LEGACY_URL
    hiscores_format: str = "json"
    hiscores_text_layout: str = "live"
    http_timeout_seconds: float = 10.0
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 3000

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from RUNEHELP_* environment variables."""
        hiscores_format = os.environ.get("RUNEHELP_HISCORES_FORMAT", "json").strip().lower()
        if hiscores_format not in ("json", "text"):
            raise ValueError(
                f"RUNEHELP_HISCORES_FORMAT must be 'json' or 'text', got '{hiscores_format}'"
            )
        text_layout = os.environ.get("RUNEHELP_HISCORES_TEXT_LAYOUT", "live").strip().lower()
        if text_layout not in TEXT_LAYOUTS:
            raise ValueError(
                f"RUNEHELP_HISCORES_TEXT_LAYOUT must be one of {sorted(TEXT_LAYOUTS)}, got '{text_layout}'"
            )
        try:
            timeout = float(os.environ.get("RUNEHELP_HTTP_TIMEOUT", "10"))
            port = int(os.environ.get("RUNEHELP_PORT", "3000"))
        except ValueError as e:
            raise ValueError(f"Invalid numeric setting: {e}")

        return cls(
            db_path=os.environ.get("RUNEHELP_DB_PATH", DEFAULT_DB_PATH),
            hiscores_url=os.environ.get("RUNEHELP_HISCORES_URL", DEFAULT_HISCORES_URL),
            hiscores_legacy_url=os.environ.get(
                "RUNEHELP_HISCORES_LEGACY_URL", DEFAULT_HISCORES_LEGACY_URL
            ),
            hiscores_format=hiscores_format,
            hiscores_text_layout=text_layout,
            http_timeout_seconds=timeout,
            log_level=os.environ.get("RUNEHELP_LOG_LEVEL", "INFO").upper(),
            host=os.environ.get("RUNEHELP_HOST", "127.0.0.1"),
            port=port,
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
