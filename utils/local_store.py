# utils/local_store.py
"""
Mini-store in-memory dei risultati di validazione: ring buffer thread-safe.

Ogni risultato riceve un id crescente; lo slot è `id % capacity`, quindi i
risultati vecchi vengono sovrascritti e la memoria resta limitata.
Un id è leggibile solo finché non è stato sovrascritto:

    next_id - capacity <= id < next_id

Fuori da questa finestra get() lancia CacheMiss (mai un risultato sbagliato).
"""
from __future__ import annotations

from threading import Lock
from typing import Any, Generic, TypeVar

from errors import CacheMiss

T = TypeVar("T")

_EMPTY: Any = object()

MAX_CACHED_RESULTS = 20


class ResultCache(Generic[T]):
    def __init__(self, capacity: int = MAX_CACHED_RESULTS, first_id: int = 1):
        if capacity < 1:
            raise ValueError("capacity deve essere >= 1")
        self.capacity = capacity
        self._slots: list[T] = [_EMPTY] * capacity
        self._next_id = first_id
        self._first_id = first_id
        self._lock = Lock()

    def put(self, value: T) -> int:
        """Salva `value` e restituisce il suo id."""
        with self._lock:
            result_id = self._next_id
            self._slots[result_id % self.capacity] = value
            self._next_id += 1
        return result_id

    def get(self, result_id: int) -> T:
        with self._lock:
            lowest = max(self._first_id, self._next_id - self.capacity)
            if not lowest <= result_id < self._next_id:
                raise CacheMiss(result_id)
            return self._slots[result_id % self.capacity]

    @property
    def next_id(self) -> int:
        with self._lock:
            return self._next_id
