"""
Client del W3C Markup Validation Service.

Una chiamata a validate() = una POST multipart sincrona, senza retry
(eventuali retry sono affare del chiamante).

La requests.Session è condivisa da tutte le richieste del processo:
viene creata una sola volta, alla prima validazione. Il pool di
connessioni di urllib3 è thread-safe; l'unico stato non thread-safe della
Session è il cookie jar, che qui è disabilitato.
"""

from __future__ import annotations

from http.cookiejar import DefaultCookiePolicy
from threading import Lock

import requests
from requests.adapters import HTTPAdapter

from config import DEFAULT_CHECK_URL
from errors import TransportError, UpstreamError
from models import ValidationResult
from utils.logging import get_logger

log = get_logger("markup_validation")

# Campi fissi del form: prefill HTML 4.01, messaggi in sequenza
# (group=0), mostra sorgente (ss=1), output verboso (verbose=1).
_FORM_FIELDS: dict[str, str] = {
    "prefill": "0",
    "doctype": "Inline",
    "prefill_doctype": "html401",
    "group": "0",
    "ss": "1",
    "verbose": "1",
}


class W3cMarkupValidator:
    def __init__(
        self,
        check_url: str = DEFAULT_CHECK_URL,
        timeout: float | None = None,
        session: requests.Session | None = None,
        pool_maxsize: int = 10,
    ):
        self.check_url = check_url
        self.timeout = timeout
        self.pool_maxsize = pool_maxsize
        self._session = session
        self._session_lock = Lock()

    # ------------------------------------------------------------------ #
    @property
    def path_prefix(self) -> str:
        """http://validator.w3.org/check → http://validator.w3.org/"""
        return self.check_url[: self.check_url.rfind("/") + 1]

    def _get_session(self) -> requests.Session:
        if self._session is None:
            with self._session_lock:
                if self._session is None:
                    session = requests.Session()
                    session.cookies.set_policy(DefaultCookiePolicy(allowed_domains=[]))
                    adapter = HTTPAdapter(pool_maxsize=self.pool_maxsize)
                    session.mount("http://", adapter)
                    session.mount("https://", adapter)
                    self._session = session
        return self._session

    def close(self) -> None:
        with self._session_lock:
            if self._session is not None:
                self._session.close()
                self._session = None

    # ------------------------------------------------------------------ #
    def validate(self, html: str) -> ValidationResult:
        """
        Valida un documento HTML completo.

        Raises:
            UpstreamError: il validatore ha risposto con status != 200
            TransportError: errore di rete / protocollo
            MalformedResponse: la pagina di risposta non contiene l'esito
        """
        files = {"fragment": (None, html.encode("utf-8"), "text/html; charset=UTF-8")}
        files.update({name: (None, value) for name, value in _FORM_FIELDS.items()})

        try:
            # il with rilascia la connessione su ogni percorso d'uscita
            with self._get_session().post(
                self.check_url, files=files, timeout=self.timeout
            ) as res:
                if res.status_code != 200:
                    raise UpstreamError(self.check_url, res.status_code)
                result_page = self._absolutize(res.text)
        except requests.RequestException as exc:
            raise TransportError(self.check_url, exc) from exc

        result = ValidationResult.from_page(result_page)
        log.debug("w3c_check_done", check_url=self.check_url, is_valid=result.is_valid)
        return result

    def _absolutize(self, page: str) -> str:
        """Rende assoluti i link relativi della pagina del validatore."""
        prefix = self.path_prefix
        return (
            page.replace('"./', '"' + prefix)
            .replace('src="images/', 'src="' + prefix + "images/")
            .replace(
                '<script type="text/javascript" src="loadexplanation.js">',
                '<script type="text/javascript" src="' + prefix + 'loadexplanation.js">',
            )
        )
