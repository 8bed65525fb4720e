"""Registre des providers d'hébergement.

Les providers sont ajoutés par enregistrement d'une fabrique (`register(name, factory)`), jamais
par un aiguillage central: un nouveau provider ne modifie ni le coordinateur ni les routes.
"""

from __future__ import annotations

import threading
from collections.abc import Callable

from backend.domain.errors import ValidationError
from backend.infra.providers.base import ProviderAdapter

ProviderFactory = Callable[[], ProviderAdapter]


class ProviderRegistry:
    """Associe un nom de provider (insensible à la casse) à un adaptateur.

    Les adaptateurs sont instanciés à la première demande puis réutilisés (client HTTP
    partagé).
    """

    def __init__(self) -> None:
        self._factories: dict[str, ProviderFactory] = {}
        self._instances: dict[str, ProviderAdapter] = {}
        self._lock = threading.Lock()

    @staticmethod
    def normalize(name: str | None) -> str:
        return (name or "").strip().lower()

    def register(self, name: str, factory: ProviderFactory) -> None:
        key = self.normalize(name)
        if not key:
            raise ValueError("provider name must not be empty")
        with self._lock:
            self._factories[key] = factory
            self._instances.pop(key, None)

    def names(self) -> list[str]:
        return sorted(self._factories)

    def get(self, name: str | None) -> ProviderAdapter:
        """Retourne l'adaptateur du provider, `ValidationError` s'il est inconnu."""
        key = self.normalize(name)
        with self._lock:
            adapter = self._instances.get(key)
            if adapter is not None:
                return adapter
            factory = self._factories.get(key)
            if factory is None:
                raise ValidationError(f"Unsupported deployment provider: {name}")
            adapter = factory()
            self._instances[key] = adapter
            return adapter

    def target_ips(self, name: str | None) -> frozenset[str]:
        """Adresses A attendues pour le provider (vide si inconnu)."""
        try:
            return self.get(name).target_ips
        except ValidationError:
            return frozenset()
