"""
Entités du domaine métier.

Ce module définit l'agrégat `Project` (unité de persistance) et ses sous-objets: contenu éditable,
révisions, configuration de domaine et état de déploiement.
"""

import uuid
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    """Horodatage UTC timezone-aware."""
    return datetime.now(UTC)


class ProjectStatus(StrEnum):
    """Cycle de vie d'un projet côté agence."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    REVIEW = "REVIEW"
    COMPLETED = "COMPLETED"
    DEPLOYED = "DEPLOYED"
    MAINTENANCE = "MAINTENANCE"
    ARCHIVED = "ARCHIVED"


class DeploymentStatus(StrEnum):
    """États de la machine à états de déploiement."""

    NOT_DEPLOYED = "NOT_DEPLOYED"
    DEPLOYING = "DEPLOYING"
    DEPLOYED = "DEPLOYED"
    FAILED = "FAILED"


TemplateType = Literal["static", "react", "nextjs", "vue"]
UserRole = Literal["SUPER_ADMIN", "ADMIN", "PROJECT_MANAGER", "WORKER", "CLIENT"]


class User(BaseModel):
    """Acteur authentifié (identité extraite du token)."""

    id: str
    email: str
    role: UserRole = "CLIENT"


class TemplateRef(BaseModel):
    """Référence dénormalisée vers le template d'origine."""

    id: str = ""
    name: str = ""
    type: TemplateType = "static"


class SeoConfig(BaseModel):
    title: str | None = None
    description: str | None = None
    keywords: list[str] = Field(default_factory=list)
    og_image: str | None = None
    favicon: str | None = None


class ContentConfig(BaseModel):
    colors: dict[str, str] = Field(default_factory=dict)
    fonts: dict[str, str] = Field(default_factory=dict)
    seo: SeoConfig = Field(default_factory=SeoConfig)


class ContentBlock(BaseModel):
    """Valeurs personnalisées d'un bloc éditable du template."""

    block_id: str
    fields: dict[str, Any] = Field(default_factory=dict)


class Page(BaseModel):
    name: str = ""
    slug: str = ""
    title: str = ""
    content: dict[str, Any] = Field(default_factory=dict)
    is_published: bool = False


class Asset(BaseModel):
    name: str
    type: Literal["image", "video", "document", "font"] = "image"
    url: str
    size: int = 0
    uploaded_at: datetime = Field(default_factory=utcnow)


class ProjectContent(BaseModel):
    """Contenu éditable d'un projet (ce que capture une révision)."""

    blocks: list[ContentBlock] = Field(default_factory=list)
    config: ContentConfig = Field(default_factory=ContentConfig)
    pages: list[Page] = Field(default_factory=list)
    assets: list[Asset] = Field(default_factory=list)
    custom_css: str | None = None
    custom_js: str | None = None


class Revision(BaseModel):
    """Instantané immuable du contenu à un instant donné.

    `snapshot` est une copie profonde du contenu: aucune édition ultérieure du contenu vivant ne
    doit la modifier.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    version: str
    created_at: datetime = Field(default_factory=utcnow)
    created_by: str
    changes: str = ""
    snapshot: ProjectContent
    is_active: bool = False


class DnsRecord(BaseModel):
    type: Literal["A", "CNAME", "TXT"]
    name: str
    value: str
    verified: bool = False


class CustomDomain(BaseModel):
    domain: str
    verified: bool = False
    verification_token: str | None = None
    dns_records: list[DnsRecord] = Field(default_factory=list)
    ssl_enabled: bool = False


class DomainConfig(BaseModel):
    subdomain: str | None = None
    custom_domain: CustomDomain | None = None
    deployment_url: str | None = None


class LastDeployment(BaseModel):
    """Trace de la dernière tentative de déploiement."""

    deployed_at: datetime
    deployed_by: str
    version: str
    provider: str | None = None
    build_time_ms: int = 0
    url: str | None = None
    deployment_id: str | None = None
    error: str | None = None


class DeploymentState(BaseModel):
    """Sous-objet modifié exclusivement par le `DeploymentCoordinator`."""

    status: DeploymentStatus = DeploymentStatus.NOT_DEPLOYED
    provider: str | None = None
    last_deployment: LastDeployment | None = None
    # Identifiants propres à un provider, conservés entre déploiements (ex: site Netlify)
    provider_refs: dict[str, str] = Field(default_factory=dict)


class Collaborator(BaseModel):
    user: str
    role: Literal["EDITOR", "VIEWER"] = "VIEWER"
    added_at: datetime = Field(default_factory=utcnow)
    added_by: str | None = None


class ProjectStats(BaseModel):
    total_visits: int = 0
    unique_visitors: int = 0
    last_visit: datetime | None = None
    total_edits: int = 0
    deployments: int = 0


class Project(BaseModel):
    """Agrégat racine, persisté comme un document unique."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    slug: str
    description: str = ""
    owner: str
    status: ProjectStatus = ProjectStatus.PENDING
    visibility: Literal["public", "private", "password_protected"] = "public"
    template: TemplateRef = Field(default_factory=TemplateRef)
    content: ProjectContent = Field(default_factory=ProjectContent)
    domain: DomainConfig = Field(default_factory=DomainConfig)
    deployment: DeploymentState = Field(default_factory=DeploymentState)
    revisions: list[Revision] = Field(default_factory=list)
    current_revision: str | None = None
    collaborators: list[Collaborator] = Field(default_factory=list)
    stats: ProjectStats = Field(default_factory=ProjectStats)
    launched_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def can_edit(self, user_id: str) -> bool:
        """Propriétaire ou collaborateur EDITOR."""
        if self.owner == user_id:
            return True
        return any(c.user == user_id and c.role == "EDITOR" for c in self.collaborators)

    def can_view(self, user_id: str) -> bool:
        """Projet public, propriétaire ou collaborateur quelconque."""
        if self.visibility == "public" or self.owner == user_id:
            return True
        return any(c.user == user_id for c in self.collaborators)

    def adopt_deployment_state(self, latest: "Project") -> None:
        """Reprend de `latest` les champs écrits par le coordinateur et la balise de visite.

        Appelé juste avant la sauvegarde d'une édition: l'état de déploiement, l'URL publiée, le
        compteur de déploiements, les visites et la promotion COMPLETED → DEPLOYED ne sont jamais
        réécrits depuis une copie chargée en début de requête.
        """
        self.deployment = latest.deployment.model_copy(deep=True)
        self.domain.deployment_url = latest.domain.deployment_url
        self.stats.deployments = latest.stats.deployments
        self.stats.total_visits = latest.stats.total_visits
        self.stats.last_visit = latest.stats.last_visit
        self.launched_at = latest.launched_at
        if latest.status == ProjectStatus.DEPLOYED and self.status == ProjectStatus.COMPLETED:
            self.status = ProjectStatus.DEPLOYED

    def get_url(self, platform_domain: str) -> str | None:
        """URL canonique: domaine personnalisé vérifié, sinon sous-domaine plateforme."""
        custom = self.domain.custom_domain
        if custom and custom.domain and custom.verified:
            return f"https://{custom.domain}"
        if self.domain.subdomain:
            return f"https://{self.domain.subdomain}.{platform_domain}"
        return None
