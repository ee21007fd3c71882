"""
utils.logging
=============
Configura structlog (JSON su stdout oppure console leggibile in sviluppo)
+ handler fallback per librerie che usano logging standard (uvicorn, urllib3).

Il middleware lega `path` al contesto (structlog.contextvars) per ogni
richiesta intercettata: tutti gli eventi di quella richiesta lo riportano.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

_JSON_KWARGS: dict[str, Any] = {
    "ensure_ascii": False,
    "indent": None,
    "separators": (",", ":"),
    "sort_keys": False,
    "default": str,
}


def configure(level: str | int = "INFO", json: bool = True) -> None:
    """
    Inizializza `logging` e `structlog`.
    Call una volta all'avvio (server.py).
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    logging.basicConfig(
        level=level,
        stream=sys.stdout,
        format="%(message)s",          # il formato reale lo decide structlog
    )

    renderer: Any = (
        structlog.processors.JSONRenderer(**_JSON_KWARGS)
        if json
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        processors=[
            structlog.contextvars.merge_contextvars,  # path della richiesta
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,   # eccezioni → key exc_info
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "markup_validation") -> Any:
    """
    Restituisce un logger structlog configurato con il nome specificato.
    """
    return structlog.get_logger(name)
