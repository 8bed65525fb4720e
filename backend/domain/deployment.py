"""
Orchestration des déploiements.

Déroulé d'un déploiement:
1. vérification synchrone des pré-conditions (aucun changement d'état en cas de refus);
2. bascule synchrone en DEPLOYING, persistée avant de rendre la main à l'appelant;
3. tâche détachée: envoi au provider puis sondage borné jusqu'à un état terminal;
4. réécriture "à frais": la mise à jour finale s'applique atomiquement au dernier état persisté
   (`repo.update`), seuls `deployment`, `domain.deployment_url`, `stats.deployments` et la
   promotion de cycle de vie sont modifiés. Les éditions côté requête passent par
   `repo.save_edits`, qui ne réécrit jamais ces champs.

Toute erreur survenant après la bascule est journalisée et persistée dans
`last_deployment.error`, jamais relancée.
"""

from __future__ import annotations

import contextvars
import threading
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from typing import Any

import structlog

from backend.app.metrics import (
    DEPLOYMENT_DURATION,
    DEPLOYMENT_POLLS_TOTAL,
    DEPLOYMENTS_IN_FLIGHT,
    DEPLOYMENTS_TOTAL,
    NOTIFICATIONS_TOTAL,
)
from backend.domain.entities import (
    DeploymentStatus,
    LastDeployment,
    Project,
    ProjectStatus,
    utcnow,
)
from backend.domain.errors import (
    DeploymentInProgressError,
    DeploymentTimeoutError,
    NotFoundError,
    ValidationError,
)
from backend.infra.notifications import LogNotifier, Notifier
from backend.infra.providers.base import (
    TERMINAL_STATES,
    DeployOptions,
    DeployResult,
    StatusResult,
)
from backend.infra.providers.registry import ProviderRegistry

log = structlog.get_logger(__name__)

Spawner = Callable[..., Any]

REASON_NO_REVISION = "No revision available"
REASON_NO_DOMAIN = "No domain configured"
REASON_IN_PROGRESS = "Deployment already in progress"


@dataclass
class DeployCheck:
    allowed: bool
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class DeployAck:
    """Accusé de réception renvoyé dès la bascule en DEPLOYING."""

    status: str
    provider: str
    estimated_time: str
    project_id: str
    version: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def thread_spawner(func: Callable[..., Any], *args: Any) -> threading.Thread:
    """Lance `func(*args)` dans un thread daemon (le processus n'attend pas sa fin).

    Le contexte structlog courant (request id) est recopié dans le thread.
    """
    ctx = contextvars.copy_context()
    t = threading.Thread(target=ctx.run, args=(func, *args), name="deploy-job", daemon=True)
    t.start()
    return t


class DeploymentCoordinator:
    """Machine à états NOT_DEPLOYED → DEPLOYING → DEPLOYED | FAILED.

    Paramètres:
    - repo: dépôt exposant `find_by_id` / `update` (écriture atomique sur le dernier état).
    - providers: registre des adaptateurs.
    - notifier: canal de notification du propriétaire.
    - default_provider: provider utilisé quand ni la requête ni le projet n'en fixent un.
    - poll_interval_s / max_attempts: cadence et borne du sondage.
    - platform_domain: domaine des sous-domaines plateforme (URL canonique).
    - spawn: exécute la tâche détachée (`spawn(func, *args)`), thread daemon par défaut.
    - notify_spawn: exécute l'envoi de notification (même contrat que `spawn`).
    - sleep: attente entre deux sondages (injectable pour les tests).
    """

    def __init__(
        self,
        repo,
        providers: ProviderRegistry,
        notifier: Notifier | None = None,
        *,
        default_provider: str = "vercel",
        poll_interval_s: float = 5.0,
        max_attempts: int = 60,
        platform_domain: str = "evolyte.app",
        spawn: Spawner | None = None,
        notify_spawn: Spawner | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.repo = repo
        self.providers = providers
        self.notifier = notifier or LogNotifier()
        self.default_provider = default_provider
        self.poll_interval_s = poll_interval_s
        self.max_attempts = max_attempts
        self.platform_domain = platform_domain
        self._spawn = spawn or thread_spawner
        self._notify_spawn = notify_spawn or thread_spawner
        self._sleep = sleep

    # ---- pré-conditions ----------------------------------------------------------------------

    def can_deploy(self, project: Project) -> DeployCheck:
        """Révision présente, domaine configuré, aucun déploiement en cours."""
        if not project.revisions:
            return DeployCheck(False, REASON_NO_REVISION)
        if not project.domain.subdomain and not project.domain.custom_domain:
            return DeployCheck(False, REASON_NO_DOMAIN)
        if project.deployment.status == DeploymentStatus.DEPLOYING:
            return DeployCheck(False, REASON_IN_PROGRESS)
        return DeployCheck(True)

    def _load(self, project_or_id: Project | str) -> Project:
        if isinstance(project_or_id, Project):
            return project_or_id
        project = self.repo.find_by_id(project_or_id)
        if project is None:
            raise NotFoundError(f"project_not_found: {project_or_id}")
        return project

    def resolve_provider(self, project: Project, requested: str | None = None) -> str:
        """Requête → provider du projet → provider par défaut."""
        return ProviderRegistry.normalize(
            requested or project.deployment.provider or self.default_provider
        )

    # ---- phase synchrone ---------------------------------------------------------------------

    def deploy(
        self,
        project: Project | str,
        actor: str,
        provider: str | None = None,
        options: DeployOptions | dict[str, Any] | None = None,
    ) -> DeployAck:
        """Valide, bascule en DEPLOYING puis délègue le travail à une tâche détachée.

        Lève `NotFoundError`, `ValidationError` (`DeploymentInProgressError` si un déploiement
        est déjà en cours) ou `ConfigurationError`; dans ces cas aucun état n'est modifié.
        """
        project = self._load(project)
        check = self.can_deploy(project)
        if not check.allowed:
            if check.reason == REASON_IN_PROGRESS:
                raise DeploymentInProgressError(check.reason)
            raise ValidationError(check.reason or "Deployment not allowed")

        provider_name = self.resolve_provider(project, provider)
        adapter = self.providers.get(provider_name)
        adapter.ensure_configured()
        opts = options if isinstance(options, DeployOptions) else DeployOptions.from_mapping(options)

        def _flip(latest: Project) -> None:
            # re-vérifié sur l'état persisté: deux requêtes simultanées ne basculent pas toutes deux
            if latest.deployment.status == DeploymentStatus.DEPLOYING:
                raise DeploymentInProgressError(REASON_IN_PROGRESS)
            latest.deployment.status = DeploymentStatus.DEPLOYING
            latest.deployment.last_deployment = LastDeployment(
                deployed_at=utcnow(),
                deployed_by=actor,
                version=latest.current_revision or "",
                provider=provider_name,
            )

        flipped = self.repo.update(project.id, _flip)
        if flipped is None:
            raise NotFoundError(f"project_not_found: {project.id}")
        project.deployment = flipped.deployment
        log.info(
            "deployment_started",
            project_id=project.id,
            provider=provider_name,
            version=project.current_revision,
            actor=actor,
        )

        ack = DeployAck(
            status=DeploymentStatus.DEPLOYING.value,
            provider=provider_name,
            estimated_time=f"up to {int(self.poll_interval_s * self.max_attempts)}s",
            project_id=project.id,
            version=project.current_revision,
        )
        try:
            self._spawn(self.run_deployment, project.id, provider_name, opts.to_dict(), actor)
        except Exception as exc:
            log.error("deployment_dispatch_failed", project_id=project.id, error=str(exc))
            self._record_failure(project.id, provider_name, f"Dispatch failed: {exc}", None)
        return ack

    # ---- tâche détachée ----------------------------------------------------------------------

    def run_deployment(
        self,
        project_id: str,
        provider: str,
        options: dict[str, Any] | None,
        actor: str,
    ) -> str:
        """Corps de la tâche détachée. Retourne l'état final persisté (ou "skipped")."""
        bound = log.bind(project_id=project_id, provider=provider)
        start = time.perf_counter()
        DEPLOYMENTS_IN_FLIGHT.inc()
        try:
            project = self.repo.find_by_id(project_id)
            if project is None:
                bound.warning("deployment_project_vanished")
                return "skipped"
            if project.deployment.status != DeploymentStatus.DEPLOYING:
                bound.info("deployment_job_stale", status=project.deployment.status.value)
                return "skipped"
            result: DeployResult | None = None
            try:
                adapter = self.providers.get(provider)
                result = self._dispatched(project)
                if result is None:
                    result = adapter.deploy(project, DeployOptions.from_mapping(options))
                    bound.info(
                        "deployment_dispatched",
                        deployment_id=result.deployment_id,
                        state=result.state,
                    )
                    self._record_dispatch(project_id, result)
                else:
                    # tâche redistribuée (perte du worker): on reprend le sondage sans renvoi
                    bound.info("deployment_resumed", deployment_id=result.deployment_id)
                final = self._await_terminal(adapter, provider, result)
            except Exception as exc:
                bound.warning("deployment_error", error=str(exc), error_type=type(exc).__name__)
                self._record_failure(
                    project_id,
                    provider,
                    str(exc),
                    result.deployment_id if result else None,
                )
                return DeploymentStatus.FAILED.value

            if final.state == "READY":
                self._record_success(project_id, provider, result, final)
                return DeploymentStatus.DEPLOYED.value
            self._record_failure(
                project_id,
                provider,
                f"Deployment failed with status: {final.state}",
                result.deployment_id,
            )
            return DeploymentStatus.FAILED.value
        except Exception:
            bound.exception("deployment_job_crashed")
            return DeploymentStatus.FAILED.value
        finally:
            DEPLOYMENTS_IN_FLIGHT.dec()
            DEPLOYMENT_DURATION.labels(provider).observe(time.perf_counter() - start)

    @staticmethod
    def _dispatched(project: Project) -> DeployResult | None:
        """Déploiement amont déjà créé pour cette bascule, s'il existe."""
        last = project.deployment.last_deployment
        if last is None or not last.deployment_id:
            return None
        return DeployResult(deployment_id=last.deployment_id, url=last.url, state="BUILDING")

    def _await_terminal(self, adapter, provider: str, result: DeployResult) -> StatusResult:
        """Sonde le provider jusqu'à un état terminal ou jusqu'à `max_attempts` sondages.

        Le dépassement n'annule pas le déploiement côté provider.
        """
        if result.state in TERMINAL_STATES:
            return StatusResult(state=result.state, url=result.url)
        for attempt in range(1, self.max_attempts + 1):
            self._sleep(self.poll_interval_s)
            status = adapter.poll_status(result.deployment_id)
            DEPLOYMENT_POLLS_TOTAL.labels(provider, status.state).inc()
            log.debug(
                "deployment_polled",
                deployment_id=result.deployment_id,
                attempt=attempt,
                state=status.state,
            )
            if status.state in TERMINAL_STATES:
                if not status.url:
                    status.url = result.url
                return status
        raise DeploymentTimeoutError("Deployment timeout: took too long to complete")

    # ---- réécritures "à frais" ---------------------------------------------------------------

    def _record_dispatch(self, project_id: str, result: DeployResult) -> None:
        """Mémorise l'identifiant amont (annulation et reprise possibles pendant le sondage)."""

        def _apply(project: Project) -> None:
            last = project.deployment.last_deployment
            if last is not None:
                last.deployment_id = result.deployment_id
            project.deployment.provider_refs.update(result.provider_refs)

        self.repo.update(project_id, _apply)

    def _record_success(
        self,
        project_id: str,
        provider: str,
        result: DeployResult,
        final: StatusResult,
    ) -> None:
        def _apply(project: Project) -> None:
            dep = project.deployment
            dep.status = DeploymentStatus.DEPLOYED
            dep.provider = provider
            dep.provider_refs.update(result.provider_refs)
            last = dep.last_deployment or LastDeployment(
                deployed_at=utcnow(), deployed_by="", version=project.current_revision or ""
            )
            last.provider = provider
            last.url = final.url
            last.build_time_ms = final.build_time_ms
            last.deployment_id = result.deployment_id
            last.error = None
            dep.last_deployment = last
            project.domain.deployment_url = final.url
            project.stats.deployments += 1
            if project.status == ProjectStatus.COMPLETED:
                project.status = ProjectStatus.DEPLOYED
                project.launched_at = utcnow()

        project = self.repo.update(project_id, _apply)
        if project is None:
            log.warning("deployment_project_vanished", project_id=project_id)
            return

        DEPLOYMENTS_TOTAL.labels(provider, "deployed").inc()
        log.info(
            "deployment_succeeded",
            project_id=project_id,
            provider=provider,
            deployment_id=result.deployment_id,
            url=final.url,
            build_time_ms=final.build_time_ms,
        )
        self._notify(
            project,
            {
                "status": DeploymentStatus.DEPLOYED.value,
                "provider": provider,
                "url": final.url,
                "deployment_id": result.deployment_id,
                "build_time_ms": final.build_time_ms,
                "version": project.deployment.last_deployment.version,
            },
        )

    def _record_failure(
        self,
        project_id: str,
        provider: str,
        error: str,
        deployment_id: str | None,
    ) -> None:
        def _apply(project: Project) -> None:
            dep = project.deployment
            dep.status = DeploymentStatus.FAILED
            last = dep.last_deployment or LastDeployment(
                deployed_at=utcnow(), deployed_by="", version=project.current_revision or ""
            )
            last.provider = provider
            last.error = error
            if deployment_id:
                last.deployment_id = deployment_id
            dep.last_deployment = last

        project = self.repo.update(project_id, _apply)
        if project is None:
            log.warning("deployment_project_vanished", project_id=project_id)
            return

        DEPLOYMENTS_TOTAL.labels(provider, "failed").inc()
        log.warning(
            "deployment_failed",
            project_id=project_id,
            provider=provider,
            deployment_id=deployment_id,
            error=error,
        )
        self._notify(
            project,
            {
                "status": DeploymentStatus.FAILED.value,
                "provider": provider,
                "error": error,
                "deployment_id": deployment_id,
                "version": project.deployment.last_deployment.version,
            },
        )

    # ---- notifications -----------------------------------------------------------------------

    def _notify(self, project: Project, result: dict[str, Any]) -> None:
        try:
            self._notify_spawn(self._send_notification, project.owner, project, result)
        except Exception as exc:
            log.warning("notification_dispatch_failed", project_id=project.id, error=str(exc))

    def _send_notification(self, user: str, project: Project, result: dict[str, Any]) -> None:
        try:
            self.notifier.notify_deployment_result(user, project, result)
            NOTIFICATIONS_TOTAL.labels("sent").inc()
        except Exception as exc:
            NOTIFICATIONS_TOTAL.labels("error").inc()
            log.warning("notification_failed", project_id=project.id, error=str(exc))

    # ---- opérations annexes ------------------------------------------------------------------

    def cancel(self, project_id: Project | str, deployment_id: str) -> bool:
        """Demande l'annulation amont; la tâche observera ensuite CANCELED → FAILED."""
        project = self._load(project_id)
        last = project.deployment.last_deployment
        provider = self.resolve_provider(project, last.provider if last else None)
        adapter = self.providers.get(provider)
        adapter.ensure_configured()
        canceled = adapter.cancel(deployment_id)
        log.info(
            "deployment_cancel_requested",
            project_id=project.id,
            provider=provider,
            deployment_id=deployment_id,
            canceled=canceled,
        )
        return canceled

    def status(self, project_id: Project | str) -> dict[str, Any]:
        """Vue de l'état de déploiement pour le sondage côté client."""
        project = self._load(project_id)
        return {
            "deployment": project.deployment,
            "url": project.get_url(self.platform_domain),
            "can_deploy": self.can_deploy(project).allowed,
        }
