"""
Fakes pour les tests unitaires.

Adaptateur de provider scriptable, notifier enregistreur et exécuteur synchrone, pour tester
l'orchestration sans réseau ni threads.
"""

from __future__ import annotations

from typing import Any

from backend.domain.entities import Project
from backend.domain.errors import ProviderError
from backend.infra.notifications import Notifier
from backend.infra.providers.base import (
    DeployOptions,
    DeployResult,
    ProviderAdapter,
    StatusResult,
)


def inline_spawn(func, *args: Any) -> None:
    """Exécute la tâche "détachée" immédiatement, dans le thread appelant."""
    func(*args)


class FakeAdapter(ProviderAdapter):
    """
    Adaptateur factice.

    `states` est la séquence d'états renvoyée par les sondages successifs; le dernier état est
    répété si le sondage continue.
    """

    name = "vercel"
    base_url = "https://fake.provider.local"
    target_ips = frozenset({"76.76.21.21"})

    def __init__(
        self,
        states: list[str] | None = None,
        url: str = "https://demo.example",
        build_time_ms: int = 1200,
        token: str = "tok",
    ) -> None:
        super().__init__(token)
        self.states = list(states or ["READY"])
        self.url = url
        self.build_time_ms = build_time_ms
        self.deploy_error: Exception | None = None
        self.before_poll = None
        self.deploy_calls: list[tuple[str, DeployOptions]] = []
        self.poll_calls: list[str] = []
        self.cancel_calls: list[str] = []

    def deploy(self, project: Project, options: DeployOptions) -> DeployResult:
        self.ensure_configured()
        self.deploy_calls.append((project.id, options))
        if self.deploy_error is not None:
            raise self.deploy_error
        return DeployResult(deployment_id="dpl_1", url=self.url, state="BUILDING")

    def poll_status(self, deployment_id: str) -> StatusResult:
        if self.before_poll is not None:
            self.before_poll()
        self.poll_calls.append(deployment_id)
        idx = min(len(self.poll_calls) - 1, len(self.states) - 1)
        state = self.states[idx]
        return StatusResult(
            state=state,
            url=self.url,
            build_time_ms=self.build_time_ms if state == "READY" else 0,
        )

    def cancel(self, deployment_id: str) -> bool:
        self.cancel_calls.append(deployment_id)
        return True


class FailingAdapter(FakeAdapter):
    """Adaptateur dont l'envoi échoue avec une erreur amont."""

    def __init__(self, message: str = "quota exceeded", status_code: int = 402) -> None:
        super().__init__()
        self.deploy_error = ProviderError(message, status_code=status_code)


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.calls: list[tuple[str, str, dict[str, Any]]] = []

    def notify_deployment_result(self, user: str, project: Project, result: dict[str, Any]) -> None:
        self.calls.append((user, project.id, result))
