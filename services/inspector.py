"""
MarkupInspector
===============
Cosa viene aggiunto in coda a una pagina HTML completa:

1. `bootstrap`        → carica jQuery (se manca) e crea il box di stato
                        "W3C Markup Validation is running ..."
2. `status_script()`  → valida l'HTML e colora il box:
                        verde (#55B05A) valida, rosso (#D23D24) non valida,
                        rosso con il messaggio d'errore se la validazione fallisce.

Il risultato viene salvato nella cache e linkato come
/view-w3c-markup-validation-result-<id>.
"""

from __future__ import annotations

import html as html_lib
from collections.abc import Callable
from typing import Optional

from config import DEFAULT_JQUERY_URL
from errors import ResponseContractError
from models import ValidationFailure, ValidationOutcome, ValidationResult
from services.validation.client import W3cMarkupValidator
from utils.local_store import ResultCache
from utils.logging import get_logger
from utils.metrics import VALIDATION_RESULT
from utils.text import normalize_space

log = get_logger("markup_validation")

VIEW_RESULT_PATH = "/view-w3c-markup-validation-result-"

VALID_COLOR = "#55B05A"
INVALID_COLOR = "#D23D24"

_BOX = "#w3c-markup-validation-box"

_BOOTSTRAP_TEMPLATE = """
<script type="text/javascript">
    if (typeof jQuery == 'undefined') {
        document.body.appendChild(document.createElement('script')).src = '%(jquery_url)s';
    }
</script>
<script type="text/javascript">
     setTimeout(function() {
        jQuery('body').append('<div id="w3c-markup-validation-box" style="z-index:10000;position:fixed;top:33px;right:33px;width:250px;border:3px solid yellow;padding:3px;background-color:white;opacity:0.75"><p style="position:absolute;top:3px;right:5px;margin:0;border:0;padding:0;background-color:white"><a href="javascript:closeW3cValidationBox()" style="font-family:sans-serif;font-size:small;font-weight:bold;text-decoration:none;color:black">X</a></p><p style="margin:0;border:0;padding:0;padding-right:1.5em;font-family:sans-serif;font-size:small;font-weight:normal;text-decoration:none;color:black;background-color:white">W3C Markup Validation is running ...</p></div>');
    }, 100);
    function closeW3cValidationBox() { jQuery('#w3c-markup-validation-box').hide(); }
</script>
"""

_LINK_TEMPLATE = (
    '<p style="margin:0;border:0;padding:0"><a href="%(href)s" '
    'style="font-family:sans-serif;font-size:small;font-weight:normal;'
    'text-decoration:none;color:blue" target="_blank">View Result</a></p>'
)


def _js_string(text: str) -> str:
    """Escape per una stringa JS tra apici singoli dentro un <script>."""
    return text.replace("\\", "\\\\").replace("'", "\\'").replace("</", "<\\/")


def _script(*lines: str) -> str:
    body = "".join(f"        {line}\n" for line in lines)
    return (
        '<script type="text/javascript">\n'
        "    setTimeout(function() {\n"
        f"{body}"
        "    }, 100);\n"
        "</script>\n"
    )


def _colorize(border: str, background: str) -> str:
    return (
        f"jQuery('{_BOX}').css('border-color', '{border}')"
        f".css('background-color', '{background}')"
        f".find('*').css('background-color', '{background}');"
    )


def render_result_script(result: ValidationResult, result_id: int) -> str:
    background = VALID_COLOR if result.is_valid else INVALID_COLOR
    link = _LINK_TEMPLATE % {"href": f"{VIEW_RESULT_PATH}{result_id}"}
    return _script(
        f"jQuery('{_BOX} p:eq(1)').html('{_js_string(result.message)}');",
        f"jQuery('{_BOX}').append('{_js_string(link)}');",
        _colorize("green" if result.is_valid else "red", background),
    )


def render_failure_script(failure: ValidationFailure) -> str:
    message = html_lib.escape(normalize_space(failure.message) or "", quote=False)
    return _script(
        f"jQuery('{_BOX} p:eq(1)').html('W3C Markup Validation failed: {_js_string(message)}');",
        _colorize("red", INVALID_COLOR),
    )


# ------------------------------------------------------------------ #
class MarkupInspector:
    def __init__(
        self,
        validator: W3cMarkupValidator,
        cache: ResultCache[ValidationResult],
        jquery_url: str = DEFAULT_JQUERY_URL,
        pre_process: Optional[Callable[[str], str]] = None,
    ):
        self.validator = validator
        self.cache = cache
        self.jquery_url = jquery_url
        self._pre_process = pre_process
        self.bootstrap = _BOOTSTRAP_TEMPLATE % {"jquery_url": _js_string(jquery_url)}

    def pre_process_html(self, html: str) -> str:
        """
        Modifica l'HTML prima dell'invio al validatore.
        Sovrascrivibile in una sottoclasse oppure via `pre_process`.
        """
        if self._pre_process is None:
            return html
        return self._pre_process(html)

    def validate(self, html: str) -> tuple[ValidationOutcome, Optional[int]]:
        """
        Esegue pre-process e validazione remota. Qualsiasi errore (hook o
        validatore) diventa un ValidationFailure senza id in cache; il
        successo viene salvato in cache e ritorna il suo id.
        Le violazioni del contratto della risposta non vengono intercettate.
        """
        try:
            result = self.validator.validate(self.pre_process_html(html))
        except ResponseContractError:
            raise
        except Exception as exc:
            log.warning("markup_validation_failed", error=str(exc), error_type=type(exc).__name__)
            VALIDATION_RESULT.labels(status="error").inc()
            return ValidationFailure(message=str(exc)), None

        result_id = self.cache.put(result)
        VALIDATION_RESULT.labels(status="ok" if result.is_valid else "ko").inc()
        log.info(
            "markup_validation_completed",
            result_id=result_id,
            is_valid=result.is_valid,
            message=result.message,
        )
        return result, result_id

    def status_script(self, html: str) -> str:
        outcome, result_id = self.validate(html)
        if isinstance(outcome, ValidationFailure):
            return render_failure_script(outcome)
        if result_id is None:
            raise RuntimeError("risultato di validazione senza id in cache")
        return render_result_script(outcome, result_id)
