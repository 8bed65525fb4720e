"""
Routes des projets: création/édition, révisions, domaine et déploiement.

Ce module regroupe les endpoints `/api/v1/projects`. Les erreurs du domaine remontent telles
quelles et sont traduites en enveloppes par `backend.apigw.errors`.
"""

import re
import secrets

import structlog
from fastapi import APIRouter, Depends, Response

from backend.api.deps import get_current_user, load_project
from backend.api.schemas import (
    CancelResponse,
    DeployRequest,
    DeploymentStatusResponse,
    DeployResponse,
    DomainRequest,
    DomainResponse,
    DomainVerifyResponse,
    ProjectCreateRequest,
    ProjectUpdateRequest,
    RevisionListResponse,
)
from backend.apigw.errors import ErrorCodes, conflict, forbidden
from backend.core.container import container
from backend.core.http_constants import HTTP_ACCEPTED, HTTP_CREATED
from backend.domain.domain_verifier import DomainVerifier
from backend.domain.entities import (
    ContentConfig,
    CustomDomain,
    DeploymentStatus,
    DnsRecord,
    Project,
    ProjectContent,
    SeoConfig,
    User,
    utcnow,
)
from backend.domain.errors import ValidationError
from backend.infra.providers.base import DeployOptions

router = APIRouter(prefix="/api/v1/projects", tags=["projects"])
log = structlog.get_logger(__name__)
current_user_dep = Depends(get_current_user)

# Rôles autorisés à déployer sans être éditeur du projet
_DEPLOY_ROLES = {"WORKER", "ADMIN", "SUPER_ADMIN"}


def _slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.strip().lower()).strip("-")
    return slug or "site"


def _require_view(project: Project, user: User) -> None:
    if not project.can_view(user.id):
        raise forbidden("Access denied")


def _require_edit(project: Project, user: User) -> None:
    if not project.can_edit(user.id):
        raise forbidden("Edit permission required")


def _require_owner(project: Project, user: User) -> None:
    if project.owner != user.id:
        raise forbidden("Only the owner can configure the domain")


def _require_deploy(project: Project, user: User) -> None:
    if not project.can_edit(user.id) and user.role not in _DEPLOY_ROLES:
        raise forbidden("Deploy permission required")


def _ensure_subdomain_free(subdomain: str, project_id: str | None) -> None:
    existing = container.project_repo.find_by_subdomain(subdomain)
    if existing is not None and existing.id != project_id:
        raise conflict(
            "Subdomain already in use", details={"reason": ErrorCodes.SUBDOMAIN_TAKEN}
        )


@router.post("", response_model=Project, status_code=HTTP_CREATED)
def create_project(payload: ProjectCreateRequest, user: User = current_user_dep):
    """
    Crée un projet et sa révision initiale.

    Paramètres:
    - payload: `ProjectCreateRequest` (nom, template, contenu initial, sous-domaine).

    Retour:
    - le `Project` persisté (révision "0.1" active).
    """
    if payload.subdomain:
        _ensure_subdomain_free(payload.subdomain, None)
    content = payload.content or ProjectContent(
        config=ContentConfig(seo=SeoConfig(title=payload.name, description=payload.description))
    )
    project = Project(
        name=payload.name,
        slug=payload.slug or _slugify(payload.name),
        description=payload.description,
        owner=user.id,
        visibility=payload.visibility,
        template=payload.template,
        content=content,
    )
    project.domain.subdomain = payload.subdomain
    container.revisions.create_revision(project, None, user.id, "Version initiale")
    log.info("project_created", project_id=project.id, owner=user.id)
    return project


@router.get("/{project_id}", response_model=Project)
def get_project(project_id: str, user: User = current_user_dep):
    project = load_project(project_id)
    _require_view(project, user)
    return project


@router.patch("/{project_id}", response_model=Project)
def update_project(
    project_id: str, payload: ProjectUpdateRequest, user: User = current_user_dep
):
    """
    Met à jour les champs de base; un contenu fourni crée une nouvelle révision.

    Les clés de `content` remplacent celles du contenu vivant, sauf `config` qui est fusionnée.
    """
    project = load_project(project_id)
    _require_edit(project, user)
    if payload.name:
        project.name = payload.name
    if payload.description is not None:
        project.description = payload.description
    if payload.status:
        project.status = payload.status
    if payload.visibility:
        project.visibility = payload.visibility

    if payload.content:
        merged = project.content.model_dump()
        for key, value in payload.content.items():
            if key == "config" and isinstance(value, dict):
                merged["config"] = {**merged["config"], **value}
            else:
                merged[key] = value
        container.revisions.create_revision(
            project, merged, user.id, payload.changes or "Content update"
        )
    else:
        project.updated_at = utcnow()
        container.project_repo.save_edits(project)
    return project


@router.post("/{project_id}/visit", status_code=204)
def track_visit(project_id: str):
    """Balise analytics des sites publiés (publique)."""
    load_project(project_id)

    def _count(latest: Project) -> None:
        latest.stats.total_visits += 1
        latest.stats.last_visit = utcnow()

    container.project_repo.update(project_id, _count)
    return Response(status_code=204)


@router.get("/{project_id}/revisions", response_model=RevisionListResponse)
def list_revisions(project_id: str, user: User = current_user_dep):
    project = load_project(project_id)
    _require_view(project, user)
    return container.revisions.list_revisions(project)


@router.post("/{project_id}/revisions/{revision_id}/restore", response_model=Project)
def restore_revision(project_id: str, revision_id: str, user: User = current_user_dep):
    """Restaure une révision (le contenu vivant redevient l'instantané ciblé)."""
    project = load_project(project_id)
    _require_edit(project, user)
    container.revisions.restore_revision(project, revision_id)
    return project


@router.put("/{project_id}/domain", response_model=DomainResponse)
def configure_domain(project_id: str, payload: DomainRequest, user: User = current_user_dep):
    """
    Configure le sous-domaine plateforme et/ou un domaine personnalisé.

    Un sous-domaine déjà utilisé par un autre projet donne 409. Un domaine personnalisé repart
    non vérifié avec les enregistrements DNS attendus (A vers le provider, CNAME `www`).
    """
    project = load_project(project_id)
    _require_owner(project, user)
    if payload.subdomain:
        _ensure_subdomain_free(payload.subdomain, project.id)
        project.domain.subdomain = payload.subdomain
    if payload.custom_domain:
        provider = container.deployments.resolve_provider(project)
        target_ips = sorted(container.providers.target_ips(provider))
        records = [
            DnsRecord(type="CNAME", name="www", value=f"cname.{container.settings.PLATFORM_DOMAIN}")
        ]
        if target_ips:
            records.insert(0, DnsRecord(type="A", name="@", value=target_ips[0]))
        project.domain.custom_domain = CustomDomain(
            domain=payload.custom_domain.strip().lower(),
            verification_token=secrets.token_hex(16),
            dns_records=records,
        )
    project.updated_at = utcnow()
    container.project_repo.save_edits(project)
    return DomainResponse(
        domain=project.domain, url=project.get_url(container.settings.PLATFORM_DOMAIN)
    )


@router.post("/{project_id}/domain/verify", response_model=DomainVerifyResponse)
def verify_domain(project_id: str, user: User = current_user_dep):
    """Vérifie les enregistrements A du domaine personnalisé (jamais d'erreur DNS remontée)."""
    project = load_project(project_id)
    _require_owner(project, user)
    custom = project.domain.custom_domain
    if custom is None:
        raise ValidationError("No custom domain configured")
    provider = container.deployments.resolve_provider(project)
    result = container.domain_verifier.verify(custom.domain, provider)
    DomainVerifier.apply(project, result)
    container.project_repo.save_edits(project)
    return DomainVerifyResponse(
        verified=result.verified,
        message="Domain verified" if result.verified else (result.message or "Domain not verified"),
        domain=project.domain,
        verification=result.model_dump(),
    )


@router.post("/{project_id}/deploy", response_model=DeployResponse, status_code=HTTP_ACCEPTED)
def deploy_project(
    project_id: str, payload: DeployRequest | None = None, user: User = current_user_dep
):
    """
    Lance un déploiement et rend la main immédiatement (état DEPLOYING).

    Retour: `{status, provider, estimatedTime}`; l'issue se lit sur `GET .../deployment`.
    """
    payload = payload or DeployRequest()
    project = load_project(project_id)
    _require_deploy(project, user)
    options = DeployOptions(
        production=payload.production,
        build_command=payload.build_command,
        output_directory=payload.output_directory,
    )
    ack = container.deployments.deploy(project, user.id, payload.provider, options)
    return ack.to_dict()


@router.get("/{project_id}/deployment", response_model=DeploymentStatusResponse)
def get_deployment_status(project_id: str, user: User = current_user_dep):
    project = load_project(project_id)
    _require_view(project, user)
    return container.deployments.status(project)


@router.post(
    "/{project_id}/deployment/{deployment_id}/cancel", response_model=CancelResponse
)
def cancel_deployment(project_id: str, deployment_id: str, user: User = current_user_dep):
    """Demande l'annulation amont d'un déploiement en cours."""
    project = load_project(project_id)
    _require_deploy(project, user)
    if project.deployment.status != DeploymentStatus.DEPLOYING:
        raise conflict("No deployment in progress")
    last = project.deployment.last_deployment
    if last is not None and last.deployment_id and last.deployment_id != deployment_id:
        raise conflict("Deployment id does not match the running deployment", details={"deployment_id": last.deployment_id})
    canceled = container.deployments.cancel(project, deployment_id)
    return CancelResponse(deployment_id=deployment_id, canceled=canceled)
