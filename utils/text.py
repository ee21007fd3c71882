# utils/text.py
"""
Normalizzazione del testo per i messaggi mostrati all'utente
(box di stato, messaggi d'errore del validatore).
"""
from __future__ import annotations

import re

# qualsiasi sequenza di whitespace (spazi, tab, newline, NBSP, ...)
_WS_RE = re.compile(r"\s+")


def normalize_space(text: str | None) -> str | None:
    """
    • sequenze di whitespace → spazio singolo
    • nessuno spazio iniziale/finale
    None resta None.
    """
    if text is None:
        return None
    return _WS_RE.sub(" ", text).strip()
