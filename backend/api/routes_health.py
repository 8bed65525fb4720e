"""
Endpoint de santé de l'API de déploiement.

`/health` résume le stockage des projets, l'exécuteur des jobs de déploiement et, pour chaque
provider enregistré, la présence d'un jeton. L'API reste `ok` sans jeton: seul le déploiement
vers ce provider est refusé (503).
"""

from fastapi import APIRouter

from backend.core.container import container
from backend.domain.errors import ConfigurationError

router = APIRouter(tags=["health"])


def _provider_readiness() -> dict[str, bool]:
    readiness = {}
    for name in container.providers.names():
        try:
            container.providers.get(name).ensure_configured()
            readiness[name] = True
        except ConfigurationError:
            readiness[name] = False
    return readiness


@router.get("/health")
def health():
    return {
        "status": "ok",
        "storage": getattr(container, "storage_backend", "unknown"),
        "deploy_executor": container.settings.DEPLOY_EXECUTOR,
        "providers": _provider_readiness(),
    }
