"""
Tâches Celery des déploiements.

Exécute la partie détachée d'un déploiement (envoi au provider, sondage, réécriture) dans un
worker. Le projet est rechargé depuis le dépôt par le coordinateur: seuls des identifiants et des
options sérialisables transitent par le broker.
"""

from __future__ import annotations

from typing import Any

from backend.app.celery_app import celery_app
from backend.core.container import container


@celery_app.task(name="backend.tasks.run_deployment")
def run_deployment_task(
    project_id: str,
    provider: str,
    options: dict[str, Any] | None,
    actor: str,
) -> str:
    # Pas d'autoretry; une redistribution (acks tardifs) reprend le sondage sans renvoi
    return container.deployments.run_deployment(project_id, provider, options, actor)
