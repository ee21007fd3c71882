# errors.py
"""
Eccezioni del middleware di validazione markup.

Due famiglie:

* MarkupValidationError   → la chiamata al W3C validator è fallita.
  Viene catturata al momento del finalize e trasformata in un box rosso,
  non interrompe mai la risposta.

* ResponseContractError   → l'applicazione ha violato il contratto della
  risposta (stream + writer, write dopo close, reset dopo commit).
  Non viene mai catturata: deve emergere subito.

CacheMiss è a parte: l'id richiesto non è (più) nella cache dei risultati.
"""
from __future__ import annotations


# ------------------------------------------------------------------ #
# Errori della chiamata al validatore
# ------------------------------------------------------------------ #
class MarkupValidationError(Exception):
    """Base per ogni fallimento della validazione remota."""


class MalformedResponse(MarkupValidationError):
    """La pagina restituita dal validatore non contiene il marker atteso."""


class UpstreamError(MarkupValidationError):
    def __init__(self, check_url: str, status: int):
        super().__init__(f"{check_url} responded with {status}")
        self.check_url = check_url
        self.status = status


class TransportError(MarkupValidationError):
    def __init__(self, check_url: str, cause: BaseException):
        super().__init__(f"{check_url} not reachable: {cause}")
        self.check_url = check_url
        self.cause = cause


# ------------------------------------------------------------------ #
# Violazioni del contratto della risposta
# ------------------------------------------------------------------ #
class ResponseContractError(RuntimeError):
    """Errore di programmazione nell'applicazione che scrive la risposta."""


class ModeConflict(ResponseContractError):
    """get_output_stream() e get_writer() usati sulla stessa risposta."""


class WriteAfterClose(ResponseContractError):
    """Scrittura su stream/writer dopo close()."""


class ResponseCommitted(ResponseContractError):
    """Operazione non più possibile: header già inviati al client."""


# ------------------------------------------------------------------ #
# Cache dei risultati
# ------------------------------------------------------------------ #
class CacheMiss(LookupError):
    def __init__(self, result_id: int):
        super().__init__(f"W3C Markup Validation Result {result_id} is not in cache (any more).")
        self.result_id = result_id
