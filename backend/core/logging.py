"""Configuration de logging basée sur structlog.

Objectif du module
------------------
- Fournir des logs structurés lisibles en développement.
- Fusionner le contexte de requête (request_id) posé par le middleware.
"""

import logging
import sys

import structlog


def setup_logging(level: int = logging.DEBUG) -> None:
    """Configure structlog pour produire des logs détaillés et filtrables.

    Le contexte lié via `structlog.contextvars` (request id, projet) est ajouté à chaque
    événement, y compris ceux émis par les tâches de déploiement détachées.
    """
    timestamper = structlog.processors.TimeStamper(fmt="ISO")
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            timestamper,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )
