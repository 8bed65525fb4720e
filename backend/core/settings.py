"""Définition et chargement des paramètres de configuration applicative.

Objectif du module
------------------
- Centraliser les paramètres (env/.env) via Pydantic Settings
- Résoudre le fichier `.env` à utiliser selon la stratégie: ENV_FILE > .env.{APP_ENV} > .env
"""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Détermination du fichier .env à utiliser avec priorité:
# 1) ENV_FILE (chemin explicite)
# 2) .env.{APP_ENV} si présent
# 3) .env (défaut)
_cwd = Path.cwd()
_env_file_from_env = os.getenv("ENV_FILE")
if _env_file_from_env:
    _ENV_FILE_PATH = _env_file_from_env
else:
    _app_env = os.getenv("APP_ENV", "dev")
    _candidate_specific = _cwd / f".env.{_app_env}"
    _candidate_default = _cwd / ".env"
    if _candidate_specific.exists():
        _ENV_FILE_PATH = _candidate_specific
    else:
        _ENV_FILE_PATH = _candidate_default


class Settings(BaseSettings):
    """Modèle de configuration chargé depuis l'environnement et .env."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE_PATH,
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
    )
    APP_NAME: str = "sitebuilder-backend"
    APP_ENV: str = "dev"
    APP_DEBUG: bool = True
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 8000
    # URL publique de l'API (balise analytics des sites publiés)
    API_URL: str = "http://localhost:8000"
    # Domaine des sous-domaines gratuits (ex: monsite.evolyte.app)
    PLATFORM_DOMAIN: str = "evolyte.app"

    REDIS_URL: str | None = None
    REQUIRE_REDIS: bool = False
    # JWT/Auth
    JWT_SECRET: str = "dev-secret-change-me-before-production-use"
    JWT_ALG: str = "HS256"
    JWT_EXPIRES_MIN: int = 60

    # Providers d'hébergement
    VERCEL_API_TOKEN: str | None = None
    VERCEL_TEAM_ID: str | None = None
    NETLIFY_API_TOKEN: str | None = None
    PROVIDER_HTTP_TIMEOUT_S: float = 15.0

    # Orchestration des déploiements
    DEPLOY_DEFAULT_PROVIDER: str = "vercel"
    DEPLOY_POLL_INTERVAL_S: float = 5.0
    DEPLOY_POLL_MAX_ATTEMPTS: int = 60
    DEPLOY_EXECUTOR: str = "thread"  # "thread" | "celery"

    # Notifications (webhook optionnel, sinon simple log)
    NOTIFY_WEBHOOK_URL: str | None = None

    CELERY_BROKER_URL: str = "redis://redis:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://redis:6379/1"

    # Vault/Sécurité
    VAULT_ENABLED: bool = False


def get_settings() -> Settings:
    """Construit et retourne la configuration de l'application."""
    return Settings()
