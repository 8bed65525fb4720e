"""
Client Vault pour les jetons d'API des providers d'hébergement.

Les jetons (`VERCEL_API_TOKEN`, `NETLIFY_API_TOKEN`, ...) sont lus dans Vault quand il est activé;
sinon le conteneur retombe sur l'environnement puis sur les settings.
"""

from __future__ import annotations

import os


def provider_token_key(provider: str) -> str:
    """Nom de secret conventionnel d'un provider: `<PROVIDER>_API_TOKEN`."""
    return f"{provider.strip().upper()}_API_TOKEN"


class VaultClient:
    """
    Client Vault minimal avec fallback mock.

    - Ne journalise jamais de valeurs de secrets.
    - Les variables `VAULT_MOCK_<KEY>` simulent Vault en tests/dev.
    """

    def __init__(self, enabled: bool | None = None) -> None:
        self._url = os.getenv("VAULT_ADDR", "")
        self._token = os.getenv("VAULT_TOKEN", "")
        if enabled is None:
            env_val = (os.getenv("VAULT_ENABLED") or "").strip().lower()
            self._enabled = env_val in {"1", "true", "yes"}
        else:
            self._enabled = bool(enabled)

    @property
    def enabled(self) -> bool:  # pragma: no cover - trivial
        return self._enabled

    def get_secret(self, key: str) -> str:
        """
        Récupère un secret par clé.

        Ordre:
        1) si Vault désactivé → "".
        2) mock `VAULT_MOCK_<KEY>` (ex: `VAULT_MOCK_VERCEL_API_TOKEN`).
        3) sinon "" (aucun backend réel branché).
        """
        if not self._enabled:
            return ""
        mock_val = os.getenv(f"VAULT_MOCK_{key}")
        if mock_val:
            return mock_val
        return ""
