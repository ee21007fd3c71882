"""
TeeResponse
===========
Decoratore di una HttpResponse: tutto quello che l'applicazione scrive
arriva al client E resta in un buffer in memoria. Quando l'applicazione
chiude lo stream/writer, prima della chiusura reale:

1. l'HTML bufferizzato viene validato (MarkupInspector)
2. in coda alla pagina vengono aggiunti il box di stato e lo script
   con l'esito, che passano dallo stesso stream ma NON finiscono nel buffer.

Regole del contratto:

* stream binario OPPURE writer di caratteri, deciso dalla prima
  acquisizione; l'altro → ModeConflict
* nessuna scrittura dopo close() → WriteAfterClose
* finalize (before_close) al massimo una volta per risposta
* Content-Length non viene inoltrato per le pagine HTML: la lunghezza
  finale non è nota finché non si aggiunge il box
"""

from __future__ import annotations

import itertools
import traceback
from enum import Enum
from typing import TYPE_CHECKING, NamedTuple, Optional, Union

from errors import ModeConflict, WriteAfterClose
from utils.logging import get_logger

from .contract import HttpResponse, OutputStream, TextWriter, check_bounds

if TYPE_CHECKING:
    from services.inspector import MarkupInspector

log = get_logger("markup_validation")

# id progressivo di ogni acquisizione/chiusura, usato nei messaggi d'errore
_call_ids = itertools.count(1)


class ExchangeState(Enum):
    FRESH = "fresh"
    STREAM_ACQUIRED = "get_output_stream()"
    WRITER_ACQUIRED = "get_writer()"
    CLOSED = "close()"


class CallSite(NamedTuple):
    call_id: int
    state: ExchangeState
    location: str

    @classmethod
    def capture(cls, state: ExchangeState) -> "CallSite":
        # frame del chiamante di get_output_stream()/get_writer()/close()
        caller = traceback.extract_stack(limit=3)[0]
        return cls(next(_call_ids), state, f"{caller.filename}:{caller.lineno} in {caller.name}")

    def __str__(self) -> str:
        return f"{self.state.value} (call #{self.call_id}) at {self.location}"


# ------------------------------------------------------------------ #
class _TeeBase:
    def __init__(self, response: "TeeResponse"):
        self._response = response
        self._closed_at: Optional[CallSite] = None

    @property
    def closed(self) -> bool:
        return self._closed_at is not None

    def _check_open(self) -> None:
        if self._closed_at is not None:
            raise WriteAfterClose(
                f"Can't write after close() has been called, close() was called here: {self._closed_at}"
            )

    def close(self) -> None:
        if self._closed_at is None:
            self._response.before_close()
            self._close_target()
            self._closed_at = CallSite.capture(ExchangeState.CLOSED)
            self._response._closed(self._closed_at)

    # implementati dalle sottoclassi
    def _close_target(self) -> None:
        raise NotImplementedError

    def _append(self, text: str) -> None:
        raise NotImplementedError

    def _reset_buffer(self) -> None:
        raise NotImplementedError

    @property
    def captured_size(self) -> int:
        raise NotImplementedError


class TeeOutputStream(_TeeBase):
    """Scrive sullo stream reale e in un bytearray."""

    def __init__(self, response: "TeeResponse", stream: OutputStream):
        super().__init__(response)
        self._stream = stream
        self._buffer = bytearray()

    def write(self, data: bytes, offset: int = 0, length: Optional[int] = None) -> None:
        self._check_open()
        length = check_bounds(len(data), offset, length)
        if length == 0:
            return
        self._response._before_write()
        chunk = bytes(memoryview(data)[offset:offset + length])
        self._buffer += chunk
        self._stream.write(chunk)

    def write_byte(self, value: int) -> None:
        self._check_open()
        self._response._before_write()
        self._buffer.append(value)
        self._stream.write_byte(value)

    def flush(self) -> None:
        self._stream.flush()

    def captured(self, encoding: str) -> str:
        return self._buffer.decode(encoding, errors="replace")

    @property
    def captured_size(self) -> int:
        return len(self._buffer)

    def _close_target(self) -> None:
        self._stream.close()

    def _append(self, text: str) -> None:
        # passa dallo stream reale ma non dal buffer
        self._check_open()
        self._stream.write(text.encode(self._response.character_encoding, errors="xmlcharrefreplace"))
        self._stream.flush()

    def _reset_buffer(self) -> None:
        self._buffer.clear()


class TeeWriter(_TeeBase):
    """Scrive sul writer reale e in una lista di chunk."""

    def __init__(self, response: "TeeResponse", writer: TextWriter):
        super().__init__(response)
        self._writer = writer
        self._chunks: list[str] = []
        self._size = 0

    def write(self, text: str, offset: int = 0, length: Optional[int] = None) -> None:
        self._check_open()
        length = check_bounds(len(text), offset, length)
        if length == 0:
            return
        self._response._before_write()
        chunk = text[offset:offset + length]
        self._keep(chunk)
        self._writer.write(chunk)

    def write_char(self, char: str) -> None:
        self._check_open()
        if len(char) != 1:
            raise ValueError(f"write_char() expects a single character, got {len(char)}")
        self._response._before_write()
        self._keep(char)
        self._writer.write_char(char)

    def newline(self) -> None:
        self._check_open()
        self._response._before_write()
        self._keep("\n")
        self._writer.newline()

    def flush(self) -> None:
        self._writer.flush()

    def captured(self) -> str:
        return "".join(self._chunks)

    @property
    def captured_size(self) -> int:
        return self._size

    def _keep(self, chunk: str) -> None:
        self._chunks.append(chunk)
        self._size += len(chunk)

    def _close_target(self) -> None:
        self._writer.close()

    def _append(self, text: str) -> None:
        self._check_open()
        self._writer.write(text)
        self._writer.flush()

    def _reset_buffer(self) -> None:
        self._chunks.clear()
        self._size = 0


# ------------------------------------------------------------------ #
class TeeResponse:
    def __init__(
        self,
        response: HttpResponse,
        *,
        is_html: bool,
        inspector: "MarkupInspector",
    ):
        self._response = response
        self.is_html = is_html
        self._inspector = inspector
        self._stream: Optional[TeeOutputStream] = None
        self._writer: Optional[TeeWriter] = None
        self._acquired_at: Optional[CallSite] = None
        self._closed_at: Optional[CallSite] = None
        self._content_length: Optional[int] = None
        self._finalized = False

    # ---------- operazioni inoltrate ----------------------------------
    @property
    def status_code(self) -> int:
        return self._response.status_code

    @status_code.setter
    def status_code(self, value: int) -> None:
        self._response.status_code = value

    @property
    def content_type(self) -> Optional[str]:
        return self._response.content_type

    @content_type.setter
    def content_type(self, value: Optional[str]) -> None:
        self._response.content_type = value

    @property
    def character_encoding(self) -> str:
        return self._response.character_encoding

    @property
    def is_committed(self) -> bool:
        return self._response.is_committed

    # ---------- operazioni intercettate -------------------------------
    @property
    def content_length(self) -> Optional[int]:
        return self._content_length

    @content_length.setter
    def content_length(self, value: Optional[int]) -> None:
        # inoltrato (o no) alla prima scrittura, vedi _before_write()
        self._content_length = value

    def add_header(self, name: str, value: str) -> None:
        key = name.lower()
        if key == "content-length":
            self.content_length = int(value)
        elif key == "content-type":
            self.content_type = value
        else:
            self._response.add_header(name, value)

    @property
    def state(self) -> ExchangeState:
        if self._closed_at is not None:
            return ExchangeState.CLOSED
        if self._acquired_at is not None:
            return self._acquired_at.state
        return ExchangeState.FRESH

    def get_output_stream(self) -> TeeOutputStream:
        if self._writer is not None:
            raise ModeConflict(
                f"Method get_writer() has already been called here: {self._acquired_at}"
            )
        if self._stream is None:
            self._acquired_at = CallSite.capture(ExchangeState.STREAM_ACQUIRED)
            self._stream = TeeOutputStream(self, self._response.get_output_stream())
        return self._stream

    def get_writer(self) -> TeeWriter:
        if self._stream is not None:
            raise ModeConflict(
                f"Method get_output_stream() has already been called here: {self._acquired_at}"
            )
        if self._writer is None:
            self._acquired_at = CallSite.capture(ExchangeState.WRITER_ACQUIRED)
            self._writer = TeeWriter(self, self._response.get_writer())
        return self._writer

    def reset_buffer(self) -> None:
        self._response.reset_buffer()
        if self._tee is not None:
            self._tee._reset_buffer()

    def reset(self) -> None:
        self._response.reset()
        self._content_length = None
        if self._tee is not None:
            self._tee._reset_buffer()

    # ---------- buffer ------------------------------------------------
    @property
    def _tee(self) -> Union[TeeOutputStream, TeeWriter, None]:
        return self._stream if self._stream is not None else self._writer

    def captured_html(self) -> Optional[str]:
        """Contenuto scritto finora dall'applicazione (None se nulla è stato acquisito)."""
        if self._stream is not None:
            return self._stream.captured(self.character_encoding)
        if self._writer is not None:
            return self._writer.captured()
        return None

    # ---------- hook chiamati da stream/writer ------------------------
    def _before_write(self) -> None:
        # il content type può essere impostato dopo la costruzione
        content_type = self._response.content_type
        if content_type is not None:
            self.is_html = content_type.startswith("text/html")
        if not self.is_html and self._content_length is not None:
            self._response.content_length = self._content_length

    def _closed(self, site: CallSite) -> None:
        self._closed_at = site

    def before_close(self) -> None:
        """
        Finalize: eseguito una sola volta, sia da close() che dal
        middleware a fine catena.
        """
        if self._finalized:
            return
        self._finalized = True

        tee = self._tee
        if not self.is_html or tee is None or tee.captured_size == 0:
            return

        html = self.captured_html() or ""
        # solo pagine complete, i frammenti HTML non vengono validati
        if not html.strip().lower().endswith("</html>"):
            log.debug("markup_validation_skipped", reason="fragment", size=len(html))
            return

        tee._append(self._inspector.bootstrap)
        tee._append(self._inspector.status_script(html))
