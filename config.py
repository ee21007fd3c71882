import sys
from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

DEFAULT_CHECK_URL = "http://validator.w3.org/check"
DEFAULT_JQUERY_URL = "http://ajax.googleapis.com/ajax/libs/jquery/1.3.2/jquery.min.js"


class Settings(BaseSettings):
    # --- W3C Markup Validation -------------------------------------
    ENABLED: bool = True                       # False → il middleware non fa nulla
    CHECK_URL: str = DEFAULT_CHECK_URL         # endpoint del W3C Markup Validation Service
    JQUERY_URL: str = DEFAULT_JQUERY_URL       # jQuery caricato dal browser per il box
    CHECK_TIMEOUT: Optional[float] = 30.0      # secondi; None = default del trasporto
    MAX_CACHED_RESULTS: int = 20               # risultati consultabili via /view-...-result-<id>

    # --- Altri parametri -------------------------------------------
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True                      # False → output console leggibile (sviluppo)

    # -------------------------------------------------------------
    # Validator per pulire raw env (rimuove spazi, newlines e commenti)
    @field_validator("CHECK_URL", "JQUERY_URL", "LOG_LEVEL", mode="before")
    @classmethod
    def _clean_str_fields(cls, v):
        if isinstance(v, str):
            # rimuove commenti dopo # e spazi
            return v.split(' #')[0].replace("\n", "").strip()
        return v

    @field_validator("ENABLED", "LOG_JSON", "MAX_CACHED_RESULTS", mode="before")
    @classmethod
    def _clean_scalar_fields(cls, v):
        if isinstance(v, str):
            # rimuove commenti dopo # e spazi
            return v.split('#')[0].strip()
        return v

    @field_validator("CHECK_TIMEOUT", mode="before")
    @classmethod
    def _parse_timeout(cls, v):
        if isinstance(v, str):
            raw = v.split('#')[0].strip()
            return None if raw.lower() in ("", "none") else float(raw)
        return v
    # -------------------------------------------------------------

    class Config:
        # trova la cartella in cui è stato scompattato il bundle
        BASE_DIR = Path(getattr(sys, "_MEIPASS", Path(__file__).resolve().parent))
        env_file = BASE_DIR / ".env"
        env_file_encoding = "utf-8"


# Instanzia le impostazioni
settings = Settings()
