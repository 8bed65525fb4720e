# Schémas Pydantic exposés par l'API (requêtes et réponses).

from typing import Any, Literal

from pydantic import BaseModel, Field

from backend.domain.entities import (
    DeploymentState,
    DomainConfig,
    ProjectContent,
    ProjectStatus,
    Revision,
    TemplateRef,
)


class ProjectCreateRequest(BaseModel):
    """Création d'un projet.

    Champs:
    - name: nom affiché (sert aussi de slug si `slug` est absent)
    - template: référence du template d'origine
    - content: contenu initial (sinon contenu vide avec SEO dérivé du nom)
    - subdomain: sous-domaine plateforme réservé dès la création
    """

    name: str = Field(min_length=1, max_length=100)
    slug: str | None = None
    description: str = Field(default="", max_length=500)
    template: TemplateRef = Field(default_factory=TemplateRef)
    content: ProjectContent | None = None
    subdomain: str | None = None
    visibility: Literal["public", "private", "password_protected"] = "public"


class ProjectUpdateRequest(BaseModel):
    """Mise à jour partielle; un `content` fourni crée une nouvelle révision."""

    name: str | None = None
    description: str | None = None
    status: ProjectStatus | None = None
    visibility: Literal["public", "private", "password_protected"] | None = None
    content: dict[str, Any] | None = None
    changes: str | None = None


class DomainRequest(BaseModel):
    subdomain: str | None = Field(default=None, pattern=r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$")
    custom_domain: str | None = None


class DeployRequest(BaseModel):
    provider: str | None = None
    production: bool = True
    build_command: str | None = None
    output_directory: str | None = None


class DeployResponse(BaseModel):
    """Accusé de déploiement (l'état final s'obtient par sondage)."""

    status: str
    provider: str
    estimated_time: str = Field(serialization_alias="estimatedTime")
    project_id: str
    version: str | None = None


class DeploymentStatusResponse(BaseModel):
    deployment: DeploymentState
    url: str | None = None
    can_deploy: bool = Field(serialization_alias="canDeploy")


class RevisionListResponse(BaseModel):
    revisions: list[Revision]
    current_revision: str | None = None


class DomainResponse(BaseModel):
    domain: DomainConfig
    url: str | None = None


class DomainVerifyResponse(BaseModel):
    verified: bool
    message: str
    domain: DomainConfig
    verification: dict[str, Any]


class CancelResponse(BaseModel):
    deployment_id: str
    canceled: bool
