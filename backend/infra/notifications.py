"""Notifications de résultat de déploiement (canal secondaire, best-effort).

Le contenu/format des messages est du ressort du collaborateur; ce module ne fait que transmettre
le résultat. Les appels sont lancés sans attente par le coordinateur: une erreur ici est journalisée
et n'influence jamais l'état du déploiement.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx
import structlog

from backend.domain.entities import Project

log = structlog.get_logger(__name__)


class Notifier(ABC):
    """Interface de notification du propriétaire d'un projet."""

    @abstractmethod
    def notify_deployment_result(self, user: str, project: Project, result: dict[str, Any]) -> None:
        """Signale le résultat (`status`, `provider`, `url`, `error`...) à `user`."""
        ...


class LogNotifier(Notifier):
    """Notifier par défaut: trace structurée uniquement."""

    def notify_deployment_result(self, user: str, project: Project, result: dict[str, Any]) -> None:
        log.info(
            "deployment_notification",
            user=user,
            project_id=project.id,
            status=result.get("status"),
            provider=result.get("provider"),
            url=result.get("url"),
        )


class WebhookNotifier(Notifier):
    """POST JSON vers un webhook (ex: service d'e-mails transactionnels)."""

    def __init__(self, url: str, timeout_s: float = 5.0, client: httpx.Client | None = None):
        self.url = url
        self._client = client or httpx.Client(timeout=httpx.Timeout(timeout_s))

    def notify_deployment_result(self, user: str, project: Project, result: dict[str, Any]) -> None:
        payload = {
            "event": "deployment.result",
            "user": user,
            "project": {"id": project.id, "name": project.name, "slug": project.slug},
            "result": result,
        }
        resp = self._client.post(self.url, json=payload)
        resp.raise_for_status()
