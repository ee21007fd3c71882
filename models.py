# models.py
"""
Modelli pydantic: esito di una validazione W3C.

ValidationResult   → il validatore ha risposto con una pagina valida/invalida
ValidationFailure  → la chiamata al validatore è fallita (rete, HTTP, parsing)
"""
from __future__ import annotations

import re
from typing import Union

from pydantic import BaseModel, ConfigDict

from errors import MalformedResponse
from utils.text import normalize_space

# <h2 class="valid">This Page Is Valid ...</h2>  (prima occorrenza, anche su più righe)
MESSAGE_PATTERN = re.compile(r'<h2[^>]+class="(valid|invalid)">(.*?)</h2>', re.DOTALL)


class ValidationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_valid: bool
    # "This Page Is Valid ..." oppure "This page is <strong>not</strong> Valid ..."
    message: str
    # pagina HTML completa del validatore, servita poi tale e quale
    result_page: str

    @classmethod
    def from_page(cls, result_page: str) -> "ValidationResult":
        """
        Ricava esito e messaggio dalla pagina del validatore.
        Lancia MalformedResponse se il marker class="valid|invalid" manca.
        """
        m = MESSAGE_PATTERN.search(result_page)
        if not m:
            raise MalformedResponse(
                f"Did not find {MESSAGE_PATTERN.pattern} in {result_page}"
            )
        return cls(
            is_valid=m.group(1) == "valid",
            message=normalize_space(m.group(2)) or "",
            result_page=result_page,
        )

    def __str__(self) -> str:
        return f"{type(self).__name__}: {self.message}"


class ValidationFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


ValidationOutcome = Union[ValidationResult, ValidationFailure]
