"""Configuration de test pour pytest avec gestion des chemins.

Ce module ajoute la racine du projet au sys.path et fournit les fixtures communes: dépôt mémoire,
registre de providers factices, coordinateur synchrone et jetons d'accès.
"""

import os
import sys

import pytest

# Ensure project root is on sys.path so that
# imports like `from backend...` resolve.
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

# Le conteneur global est construit à l'import: pas de Redis ni de Vault en tests
os.environ.pop("REDIS_URL", None)
os.environ["REQUIRE_REDIS"] = "false"
os.environ["VAULT_ENABLED"] = "false"

from backend.domain.auth import create_access_token  # noqa: E402
from backend.domain.deployment import DeploymentCoordinator  # noqa: E402
from backend.infra.providers.registry import ProviderRegistry  # noqa: E402
from backend.infra.repositories import InMemoryProjectRepo  # noqa: E402
from tests.fakes import FakeAdapter, RecordingNotifier, inline_spawn  # noqa: E402


@pytest.fixture
def repo() -> InMemoryProjectRepo:
    return InMemoryProjectRepo()


@pytest.fixture
def fake_adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def registry(fake_adapter: FakeAdapter) -> ProviderRegistry:
    reg = ProviderRegistry()
    reg.register("vercel", lambda: fake_adapter)
    return reg


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def coordinator(repo, registry, notifier) -> DeploymentCoordinator:
    """Coordinateur entièrement synchrone (tâche et notifications exécutées en ligne)."""
    return DeploymentCoordinator(
        repo,
        registry,
        notifier,
        poll_interval_s=0.0,
        max_attempts=3,
        spawn=inline_spawn,
        notify_spawn=inline_spawn,
        sleep=lambda _s: None,
    )


@pytest.fixture
def make_token():
    """Fabrique de bearer tokens signés avec la configuration du conteneur."""
    from backend.core.container import container

    def _make(sub: str = "u1", email: str = "u1@example.com", role: str = "CLIENT") -> dict:
        token = create_access_token(
            container.settings.JWT_SECRET,
            container.settings.JWT_ALG,
            container.settings.JWT_EXPIRES_MIN,
            {"sub": sub, "email": email, "role": role},
        )
        return {"Authorization": f"Bearer {token}"}

    return _make
