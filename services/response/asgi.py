"""
Risposta "reale" sopra ASGI.

Accumula il body in un buffer di `buffer_size` byte e trasforma le
scritture in messaggi ASGI passati a `emit`:

    commit (primo flush / buffer pieno / close) → http.response.start
    flush / buffer pieno                        → http.response.body  more_body=True
    close                                       → http.response.body  more_body=False

Dopo il commit status e header non si possono più cambiare (le modifiche
vengono ignorate) e reset_buffer() lancia ResponseCommitted.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Optional

from errors import ModeConflict, ResponseCommitted, WriteAfterClose
from utils.logging import get_logger

from .contract import check_bounds

log = get_logger("markup_validation")

Message = dict[str, Any]
Emit = Callable[[Message], None]

DEFAULT_ENCODING = "utf-8"


class AsgiResponse:
    def __init__(self, emit: Emit, buffer_size: int = 8192):
        self._emit = emit
        self.buffer_size = buffer_size
        self.status_code = 200
        self._headers: list[tuple[str, str]] = []
        self._content_type: Optional[str] = None
        self._content_length: Optional[int] = None
        self._body = bytearray()
        self._committed = False
        self._closed = False
        self._stream: Optional[_AsgiOutputStream] = None
        self._writer: Optional[_AsgiWriter] = None

    # ---------- header ------------------------------------------------
    @property
    def content_type(self) -> Optional[str]:
        return self._content_type

    @content_type.setter
    def content_type(self, value: Optional[str]) -> None:
        if self._committed:
            log.debug("header_ignored_after_commit", header="content-type")
            return
        self._content_type = value

    @property
    def content_length(self) -> Optional[int]:
        return self._content_length

    @content_length.setter
    def content_length(self, value: Optional[int]) -> None:
        if self._committed:
            log.debug("header_ignored_after_commit", header="content-length")
            return
        self._content_length = value

    @property
    def character_encoding(self) -> str:
        """charset dichiarato nel content type, altrimenti utf-8."""
        for param in (self._content_type or "").split(";")[1:]:
            key, _, value = param.partition("=")
            if key.strip().lower() == "charset" and value.strip():
                return value.strip().strip('"')
        return DEFAULT_ENCODING

    @property
    def is_committed(self) -> bool:
        return self._committed

    @property
    def is_closed(self) -> bool:
        return self._closed

    def add_header(self, name: str, value: str) -> None:
        key = name.lower()
        if key == "content-type":
            self.content_type = value
        elif key == "content-length":
            self.content_length = int(value)
        elif self._committed:
            log.debug("header_ignored_after_commit", header=key)
        else:
            self._headers.append((name, value))

    # ---------- output ------------------------------------------------
    def get_output_stream(self) -> "_AsgiOutputStream":
        if self._writer is not None:
            raise ModeConflict("get_writer() has already been called for this response")
        if self._stream is None:
            self._stream = _AsgiOutputStream(self)
        return self._stream

    def get_writer(self) -> "_AsgiWriter":
        if self._stream is not None:
            raise ModeConflict("get_output_stream() has already been called for this response")
        if self._writer is None:
            self._writer = _AsgiWriter(self)
        return self._writer

    def reset_buffer(self) -> None:
        if self._committed:
            raise ResponseCommitted("Can't reset the buffer: the response is already committed")
        self._body.clear()

    def reset(self) -> None:
        self.reset_buffer()
        self.status_code = 200
        self._headers.clear()
        self._content_type = None
        self._content_length = None

    def close(self) -> None:
        """Chiude la risposta (idempotente): commit + ultimo body."""
        if self._closed:
            return
        self._commit()
        self._emit({"type": "http.response.body", "body": bytes(self._body), "more_body": False})
        self._body.clear()
        self._closed = True

    # ---------- interni -----------------------------------------------
    def _write(self, data: bytes) -> None:
        if self._closed:
            raise WriteAfterClose("Can't write after the response has been closed")
        self._body.extend(data)
        if len(self._body) >= self.buffer_size:
            self._flush()

    def _flush(self) -> None:
        self._commit()
        if self._body:
            self._emit({"type": "http.response.body", "body": bytes(self._body), "more_body": True})
            self._body.clear()

    def _commit(self) -> None:
        if self._committed:
            return
        headers = [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in self._headers]
        if self._content_type is not None:
            headers.append((b"content-type", self._content_type.encode("latin-1")))
        if self._content_length is not None:
            headers.append((b"content-length", str(self._content_length).encode("latin-1")))
        self._emit({"type": "http.response.start", "status": self.status_code, "headers": headers})
        self._committed = True


class _AsgiOutputStream:
    def __init__(self, response: AsgiResponse):
        self._response = response

    def write(self, data: bytes, offset: int = 0, length: Optional[int] = None) -> None:
        length = check_bounds(len(data), offset, length)
        self._response._write(bytes(memoryview(data)[offset:offset + length]))

    def write_byte(self, value: int) -> None:
        self._response._write(bytes((value,)))

    def flush(self) -> None:
        self._response._flush()

    def close(self) -> None:
        self._response.close()


class _AsgiWriter:
    def __init__(self, response: AsgiResponse):
        self._response = response

    def write(self, text: str, offset: int = 0, length: Optional[int] = None) -> None:
        length = check_bounds(len(text), offset, length)
        chunk = text[offset:offset + length]
        self._response._write(chunk.encode(self._response.character_encoding, errors="xmlcharrefreplace"))

    def write_char(self, char: str) -> None:
        self.write(char[:1])

    def newline(self) -> None:
        self.write("\n")

    def flush(self) -> None:
        self._response._flush()

    def close(self) -> None:
        self._response.close()
