"""
Contratto della risposta HTTP vista dall'applicazione.

È la superficie che il server mette a disposizione di chi scrive una
risposta: uno stream binario OPPURE un writer di caratteri (mai entrambi),
più content type, content length, charset e reset del buffer.
AsgiResponse la implementa sopra ASGI, TeeResponse la decora.
"""

from __future__ import annotations

from typing import Optional, Protocol


class OutputStream(Protocol):
    def write(self, data: bytes, offset: int = 0, length: Optional[int] = None) -> None: ...
    def write_byte(self, value: int) -> None: ...
    def flush(self) -> None: ...
    def close(self) -> None: ...


class TextWriter(Protocol):
    def write(self, text: str, offset: int = 0, length: Optional[int] = None) -> None: ...
    def write_char(self, char: str) -> None: ...
    def newline(self) -> None: ...
    def flush(self) -> None: ...
    def close(self) -> None: ...


class HttpResponse(Protocol):
    status_code: int

    @property
    def content_type(self) -> Optional[str]: ...
    @content_type.setter
    def content_type(self, value: Optional[str]) -> None: ...

    @property
    def content_length(self) -> Optional[int]: ...
    @content_length.setter
    def content_length(self, value: Optional[int]) -> None: ...

    @property
    def character_encoding(self) -> str: ...

    @property
    def is_committed(self) -> bool: ...

    def add_header(self, name: str, value: str) -> None: ...
    def get_output_stream(self) -> OutputStream: ...
    def get_writer(self) -> TextWriter: ...
    def reset_buffer(self) -> None: ...
    def reset(self) -> None: ...


def check_bounds(size: int, offset: int, length: Optional[int]) -> int:
    """Valida offset/length su un dato di `size` elementi, ritorna length."""
    if length is None:
        length = size - offset
    if offset < 0 or length < 0 or offset + length > size:
        raise IndexError(f"offset={offset}, length={length} fuori da 0..{size}")
    return length
