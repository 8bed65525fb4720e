"""
Application principale FastAPI.

Ce module assemble tous les composants de l'application : middlewares, gestion des erreurs,
routes et métriques du service de publication de sites.

Responsabilités du module:
- Initialiser le logging structuré
- Construire l'application FastAPI avec son titre/debug
- Ajouter les middlewares (request id, métriques)
- Monter les routers (santé, projets, métriques)
"""

from __future__ import annotations

from fastapi import FastAPI

from backend.api.routes_health import router as health_router
from backend.api.routes_projects import router as projects_router
from backend.apigw.errors import install_error_handlers
from backend.app.metrics import PrometheusMiddleware, metrics_router
from backend.core.container import container
from backend.core.logging import setup_logging
from backend.middlewares.request_id import RequestIDMiddleware


def create_app() -> FastAPI:
    """
    Construit et retourne l'application FastAPI prête à l'usage.

    Étapes:
    - Configure le logging structuré (structlog)
    - Lit les paramètres d'exécution
    - Ajoute les middlewares de traçabilité et de métriques
    - Enregistre les gestionnaires d'erreurs (enveloppes standard)
    - Publie les routes de santé, de projets et de métriques
    """
    setup_logging()
    settings = container.settings
    app = FastAPI(title=settings.APP_NAME, debug=settings.APP_DEBUG)
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(RequestIDMiddleware)
    install_error_handlers(app)
    app.include_router(health_router)
    app.include_router(projects_router)
    app.include_router(metrics_router)
    return app


app = create_app()
