"""
Taxonomie des erreurs du sous-système révisions/déploiements.

- Erreurs synchrones (avant la bascule DEPLOYING): remontées à l'appelant.
- Erreurs asynchrones (`ProviderError`, `DeploymentTimeoutError`): capturées dans la tâche
  détachée, persistées dans `last_deployment.error`, jamais relancées.
"""

from __future__ import annotations


class DeploymentError(Exception):
    """Erreur de base du domaine."""


class ConfigurationError(DeploymentError):
    """Identifiants de provider absents ou configuration invalide."""


class ValidationError(DeploymentError):
    """Pré-condition métier non satisfaite (aucun changement d'état)."""


class DeploymentInProgressError(ValidationError):
    """Conflit d'état: un déploiement est déjà en cours pour ce projet."""


class NotFoundError(DeploymentError):
    """Projet ou révision introuvable."""


class ProviderError(DeploymentError):
    """Réponse en échec de l'API du provider (corps amont conservé)."""

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class DeploymentTimeoutError(DeploymentError):
    """Nombre maximal de sondages atteint sans état terminal."""
