# middleware.py
"""
MarkupValidationMiddleware  –  middleware ASGI per FastAPI / Starlette
----------------------------------------------------------------------
Per ogni richiesta HTTP:

* /…/view-w3c-markup-validation-result-<id>
    Serve la pagina del W3C validator salvata in cache (mai intercettata).
    404 se l'id non è più nella cache.

* tutte le altre
    La risposta passa da un TeeResponse: il client riceve tutto in tempo
    reale, il middleware tiene una copia e, alla chiusura, valida l'HTML e
    aggiunge il box con l'esito.

Il lavoro sul TeeResponse gira nel threadpool di Starlette (la chiamata al
validatore è bloccante); i messaggi ASGI tornano all'event loop con
anyio.from_thread.run.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from functools import partial
from typing import Any, Optional

import anyio.from_thread
import structlog
from starlette.concurrency import run_in_threadpool
from starlette.responses import PlainTextResponse, Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from config import Settings, settings as default_settings
from errors import CacheMiss
from models import ValidationResult
from services.inspector import MarkupInspector
from services.response import AsgiResponse, TeeResponse
from services.validation.client import W3cMarkupValidator
from utils.local_store import ResultCache
from utils.logging import get_logger

log = get_logger("markup_validation")

VIEW_RESULT_RE = re.compile(r"view-w3c-markup-validation-result-(\d+)$")
RESULT_CONTENT_TYPE = "text/html; charset=UTF-8"

# marker per non intercettare due volte la stessa richiesta
_GUARD = "inside markup_validation middleware"


def looks_like_html(path: str) -> bool:
    """Euristica sul path: la risposta è probabilmente una pagina HTML."""
    return path.endswith(("/", ".html", ".htm"))


class MarkupValidationMiddleware:
    def __init__(
        self,
        app: ASGIApp,
        settings: Optional[Settings] = None,
        *,
        validator: Optional[W3cMarkupValidator] = None,
        cache: Optional[ResultCache[ValidationResult]] = None,
        pre_process: Optional[Callable[[str], str]] = None,
    ):
        self.app = app
        self.settings = settings or default_settings
        self.enabled = self.settings.ENABLED
        if not self.enabled:
            return

        self.cache = cache if cache is not None else ResultCache(self.settings.MAX_CACHED_RESULTS)
        self.inspector = MarkupInspector(
            validator or W3cMarkupValidator(self.settings.CHECK_URL, timeout=self.settings.CHECK_TIMEOUT),
            self.cache,
            jquery_url=self.settings.JQUERY_URL,
            pre_process=pre_process,
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not self.enabled:
            await self.app(scope, receive, send)
            return

        state = scope.setdefault("state", {})
        if state.get(_GUARD):
            await self.app(scope, receive, send)
            return
        state[_GUARD] = True

        path: str = scope["path"]
        m = VIEW_RESULT_RE.search(path)
        if m:
            await self._serve_result(int(m.group(1)), scope, receive, send)
            return

        with structlog.contextvars.bound_contextvars(path=path):
            await self._intercept(path, scope, receive, send)

    # ------------------------------------------------------------------ #
    async def _serve_result(self, result_id: int, scope: Scope, receive: Receive, send: Send) -> None:
        response: Response
        try:
            result = self.cache.get(result_id)
        except CacheMiss as exc:
            log.warning("validation_result_not_in_cache", result_id=result_id)
            response = PlainTextResponse(str(exc), status_code=404)
        else:
            log.info("validation_result_served", result_id=result_id)
            response = Response(result.result_page, media_type=RESULT_CONTENT_TYPE)
        await response(scope, receive, send)

    async def _intercept(self, path: str, scope: Scope, receive: Receive, send: Send) -> None:
        real = AsgiResponse(partial(anyio.from_thread.run, send))
        tee = TeeResponse(real, is_html=looks_like_html(path), inspector=self.inspector)

        started = False

        async def tee_send(message: Message) -> None:
            nonlocal started
            started = started or message["type"] == "http.response.start"
            await run_in_threadpool(_replay, tee, message)

        await self.app(scope, receive, tee_send)
        if started:
            # rete di sicurezza: l'app potrebbe non aver mai chiuso lo stream
            await run_in_threadpool(_finish, tee, real)


def _replay(tee: TeeResponse, message: dict[str, Any]) -> None:
    """Ripete un messaggio ASGI dell'app come operazioni sul TeeResponse."""
    if message["type"] == "http.response.start":
        tee.status_code = message["status"]
        for name, value in message.get("headers", []):
            tee.add_header(name.decode("latin-1"), value.decode("latin-1"))
    elif message["type"] == "http.response.body":
        stream = tee.get_output_stream()
        body = message.get("body", b"")
        if body:
            stream.write(body)
        if message.get("more_body", False):
            # risposte in streaming: ogni chunk arriva subito al client
            stream.flush()
        else:
            stream.close()


def _finish(tee: TeeResponse, real: AsgiResponse) -> None:
    tee.before_close()
    if not real.is_closed:
        real.close()
