"""
Module: celery_app.

But: Initialiser l’instance Celery (exécuteur optionnel des tâches de déploiement,
`DEPLOY_EXECUTOR=celery`) et charger la config runtime.
Notes:
- Aucun secret loggé.
- Le mode par défaut (threads) n'instancie jamais de worker.
- Chaque processus worker configure structlog comme l'API.
"""

from celery import Celery
from celery.signals import worker_process_init

from backend.core.container import container
from backend.core.logging import setup_logging

celery_app = Celery(
    "sitebuilder",
    broker=container.settings.CELERY_BROKER_URL,
    backend=container.settings.CELERY_RESULT_BACKEND,
    include=["backend.tasks.deploy_tasks"],
)
# Load configuration from module (timeouts, acks, prefetch)
celery_app.config_from_object("backend.app.celeryconfig")
celery_app.conf.task_routes = {"backend.tasks.*": {"queue": "deployments"}}


@worker_process_init.connect
def _configure_worker_logging(**_kwargs) -> None:
    setup_logging()


__all__ = ["celery_app"]
