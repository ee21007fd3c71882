# ────────────────────────────────────────────────────────────────
# server.py – sezione import, settings, logging, app, /metrics
# ────────────────────────────────────────────────────────────────
from __future__ import annotations

# ========== Librerie standard ==========
from typing import cast

# ========== Terze parti ==========
from fastapi import APIRouter, FastAPI, Request, status
from fastapi.responses import HTMLResponse, JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

# ========== Import locali ==========
from config import Settings
from middleware import MarkupValidationMiddleware
from utils.logging import configure as configure_logging  # funzione creata in utils/logging.py
from utils.logging import get_logger

# ========== Impostazioni & logging ==========
settings = Settings()

# Inizializza structlog (JSON su stdout) e ottieni il logger
configure_logging(settings.LOG_LEVEL, json=settings.LOG_JSON)

log = get_logger("markup_validation")

# ========== FastAPI app ==========
app = FastAPI(
    title="W3C Markup Validation",
    description="Valida le pagine HTML renderizzate con il W3C Markup Validation Service",
    version="1.0.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)

# ========== Prometheus /metrics ==========
Instrumentator().instrument(app).expose(app, include_in_schema=False)


# ─── API routes ──────────────────────────────────────────────────

from api import api_router  # oggetto APIRouter definito in api.py

app.include_router(cast(APIRouter, api_router))        # mypy sa che è un APIRouter


# =====  PAGINA DI PROVA  =====
# "/" termina con "/" → viene intercettata e validata
DEMO_PAGE = """<!DOCTYPE HTML PUBLIC "-//W3C//DTD HTML 4.01//EN" "http://www.w3.org/TR/html4/strict.dtd">
<html>
<head><title>W3C Markup Validation</title></head>
<body>
<h1>W3C Markup Validation</h1>
<p>Questa pagina viene inviata al W3C validator: l'esito compare nel box in alto a destra.</p>
</body>
</html>
"""


@app.get("/", include_in_schema=False, response_class=HTMLResponse)
async def frontend():
    return DEMO_PAGE
# =====================================

# Validazione W3C di tutte le pagine HTML
app.add_middleware(MarkupValidationMiddleware, settings=settings)

# Gestore eccezioni per eccezioni non catturate
@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Global exception handler for uncaught exceptions"""
    log.error("unhandled_exception", path=request.url.path, error=str(exc), exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An unexpected error occurred. Please try again later."}
    )
