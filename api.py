"""
api.py  –  endpoint di servizio
-------------------------------
Flussi esposti (prefisso /api):

* GET  /
    Nome e versione del servizio, più la configurazione del validatore.

* GET  /health
    Health-check basilare (nessuna chiamata al W3C validator).

Le pagine di risultato (/view-w3c-markup-validation-result-<id>) non
passano da qui: le serve direttamente MarkupValidationMiddleware.
"""

import os
from datetime import datetime, timezone

from fastapi import APIRouter, status

from config import settings

api_router = APIRouter(prefix="/api")

# ------------------------------------------------------------------ #
# ROOT (info versione)
# ------------------------------------------------------------------ #
@api_router.get("/", status_code=status.HTTP_200_OK)
async def root():
    return {
        "message": "W3C Markup Validation",
        "version": "1.0.0",
        "enabled": settings.ENABLED,
        "check_url": settings.CHECK_URL,
    }


# ------------------------------------------------------------------ #
# HEALTH CHECK
# ------------------------------------------------------------------ #
@api_router.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "build": os.getenv("APP_BUILD", "dev"),
    }
