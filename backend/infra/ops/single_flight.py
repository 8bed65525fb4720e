"""Initialisation "single-flight" pour les connexions externes paresseuses.

Le premier appelant crée un `Future` et exécute la fabrique; les appelants concurrents attendent ce
même `Future` au lieu de sonder un drapeau booléen. Un échec n'est pas mis en cache: l'appel suivant
retente l'initialisation.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from concurrent.futures import Future
from typing import Generic, TypeVar

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """Exécute `factory` une seule fois pour tous les appelants concurrents."""

    def __init__(self, factory: Callable[[], T]) -> None:
        self._factory = factory
        self._lock = threading.Lock()
        self._future: Future[T] | None = None

    @property
    def ready(self) -> bool:
        """True si une initialisation a réussi."""
        fut = self._future
        return fut is not None and fut.done() and fut.exception() is None

    def get(self, timeout: float | None = None) -> T:
        """Retourne la valeur initialisée (en la créant si nécessaire)."""
        with self._lock:
            fut = self._future
            owner = fut is None
            if fut is None:
                fut = Future()
                self._future = fut
        if owner:
            try:
                value = self._factory()
            except Exception as exc:
                with self._lock:
                    self._future = None
                fut.set_exception(exc)
                raise
            fut.set_result(value)
        return fut.result(timeout)
