"""
Conteneur d'injection de dépendances et configuration application.

Instancie les composants centraux (settings, dépôt de projets, registre des providers, services de
révision/déploiement/vérification DNS) et expose un singleton `container` utilisé par le reste de
l'application.
"""

import os

from backend.core.settings import get_settings
from backend.domain.deployment import DeploymentCoordinator, thread_spawner
from backend.domain.domain_verifier import DomainVerifier
from backend.domain.revisions import RevisionStore
from backend.infra.notifications import LogNotifier, WebhookNotifier
from backend.infra.providers.netlify import NetlifyAdapter
from backend.infra.providers.registry import ProviderRegistry
from backend.infra.providers.vercel import VercelAdapter
from backend.infra.repositories import InMemoryProjectRepo, RedisProjectRepo
from backend.infra.secrets.vault_client import VaultClient, provider_token_key


def celery_spawner(func, *args) -> None:
    """Envoie la tâche détachée à un worker Celery.

    `func` n'est pas transmise: le worker exécute `run_deployment` de son propre conteneur avec
    les mêmes arguments (sérialisables).
    """
    # import local: celery_app importe le conteneur
    from backend.tasks.deploy_tasks import run_deployment_task

    run_deployment_task.delay(*args)


class Container:
    def __init__(self):
        self.settings = get_settings()
        # Secrets/Vault
        self.vault = VaultClient(enabled=getattr(self.settings, "VAULT_ENABLED", False))
        if self.settings.REDIS_URL:
            try:
                repo = RedisProjectRepo(self.settings.REDIS_URL)
                repo.client  # connexion + ping immédiats
                self.project_repo = repo
                self.storage_backend = "redis"
            except Exception as err:
                if getattr(self.settings, "REQUIRE_REDIS", False):
                    raise RuntimeError("Redis required but unavailable") from err
                self.project_repo = InMemoryProjectRepo()
                self.storage_backend = "memory-fallback"
        else:
            if getattr(self.settings, "REQUIRE_REDIS", False):
                raise RuntimeError("Redis required but REDIS_URL not set")
            self.project_repo = InMemoryProjectRepo()
            self.storage_backend = "memory"

        self.providers = ProviderRegistry()
        self.providers.register("vercel", self._make_vercel)
        self.providers.register("netlify", self._make_netlify)

        if self.settings.NOTIFY_WEBHOOK_URL:
            self.notifier = WebhookNotifier(self.settings.NOTIFY_WEBHOOK_URL)
        else:
            self.notifier = LogNotifier()

        self.revisions = RevisionStore(self.project_repo)
        self.domain_verifier = DomainVerifier(self.providers.target_ips)
        executor = (self.settings.DEPLOY_EXECUTOR or "thread").strip().lower()
        self.deployments = DeploymentCoordinator(
            self.project_repo,
            self.providers,
            self.notifier,
            default_provider=self.settings.DEPLOY_DEFAULT_PROVIDER,
            poll_interval_s=self.settings.DEPLOY_POLL_INTERVAL_S,
            max_attempts=self.settings.DEPLOY_POLL_MAX_ATTEMPTS,
            platform_domain=self.settings.PLATFORM_DOMAIN,
            spawn=celery_spawner if executor == "celery" else thread_spawner,
        )

    def _make_vercel(self) -> VercelAdapter:
        return VercelAdapter(
            self.resolve_secret(provider_token_key("vercel")),
            team_id=self.settings.VERCEL_TEAM_ID,
            api_url=self.settings.API_URL,
            timeout_s=self.settings.PROVIDER_HTTP_TIMEOUT_S,
        )

    def _make_netlify(self) -> NetlifyAdapter:
        return NetlifyAdapter(
            self.resolve_secret(provider_token_key("netlify")),
            api_url=self.settings.API_URL,
            timeout_s=self.settings.PROVIDER_HTTP_TIMEOUT_S,
        )

    def resolve_secret(self, key: str) -> str:
        """Instance-level secret resolution: Vault → env → settings.

        Ne journalise jamais la valeur du secret.
        """
        if getattr(self, "vault", None) and self.vault.enabled:
            val = self.vault.get_secret(key)
            if val:
                return val
        env_val = os.getenv(key)
        if env_val:
            return env_val
        return getattr(self.settings, key, "") or ""


container = Container()
