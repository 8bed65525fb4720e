"""
Tests pour la résolution des variables d'environnement.

Ce module teste le chargement des paramètres de déploiement à partir de fichiers .env
personnalisés et la priorité de l'environnement.
"""

from __future__ import annotations

import importlib
from pathlib import Path


def _reload_settings():
    settings_mod = importlib.import_module("backend.core.settings")
    return importlib.reload(settings_mod)


def test_settings_reads_env_file(tmp_path: Path, monkeypatch) -> None:
    """Les valeurs d'un fichier désigné par ENV_FILE sont chargées."""
    env = tmp_path / ".env.custom"
    env.write_text(
        "DEPLOY_POLL_INTERVAL_S=2.5\nDEPLOY_POLL_MAX_ATTEMPTS=7\nDEPLOY_DEFAULT_PROVIDER=netlify\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("ENV_FILE", str(env))
    try:
        s = _reload_settings().get_settings()
        assert s.DEPLOY_POLL_INTERVAL_S == 2.5
        assert s.DEPLOY_POLL_MAX_ATTEMPTS == 7
        assert s.DEPLOY_DEFAULT_PROVIDER == "netlify"
    finally:
        monkeypatch.delenv("ENV_FILE")
        _reload_settings()


def test_environment_overrides_defaults(monkeypatch) -> None:
    monkeypatch.setenv("DEPLOY_EXECUTOR", "celery")
    monkeypatch.setenv("PLATFORM_DOMAIN", "sites.example.net")
    from backend.core.settings import get_settings

    s = get_settings()
    assert s.DEPLOY_EXECUTOR == "celery"
    assert s.PLATFORM_DOMAIN == "sites.example.net"
    assert s.DEPLOY_POLL_INTERVAL_S == 5.0
    assert s.DEPLOY_POLL_MAX_ATTEMPTS == 60
