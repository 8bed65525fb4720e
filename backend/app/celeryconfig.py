"""Configuration centralisée Celery pour les tâches de déploiement.

Une tâche de déploiement sonde le provider jusqu'à `DEPLOY_POLL_INTERVAL_S *
DEPLOY_POLL_MAX_ATTEMPTS` secondes (300 s par défaut): la limite dure laisse une marge au-delà.
"""

from __future__ import annotations

# Acks tardifs: une tâche interrompue par la perte du worker est redistribuée; elle reprend le
# sondage du déploiement amont déjà enregistré sur le projet
task_acks_late = True
task_reject_on_worker_lost = True
worker_prefetch_multiplier = 1
task_soft_time_limit = 420  # secondes
task_time_limit = 480  # secondes
broker_pool_limit = 10

task_serializer = "json"
accept_content = ["json"]
result_expires = 3600
