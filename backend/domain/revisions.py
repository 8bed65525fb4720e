"""
Historique des révisions d'un projet.

Le `RevisionStore` gère une liste ordonnée, en ajout seul, d'instantanés du contenu avec un unique
pointeur "actif". Les instantanés sont des copies profondes (sémantique valeur): ni une édition du
contenu vivant ni une restauration ne peuvent les altérer.
"""

from __future__ import annotations

from typing import Any

import structlog

from backend.domain.entities import Project, ProjectContent, Revision, utcnow
from backend.domain.errors import NotFoundError

log = structlog.get_logger(__name__)


def version_label(n: int) -> str:
    """Libellé de la n-ième révision: `floor(n/10).(n mod 10)`.

    Ce n'est pas une version sémantique: 1 → "0.1", 9 → "0.9", 10 → "1.0", 11 → "1.1".
    Comportement historique conservé tel quel.
    """
    return f"{n // 10}.{n % 10}"


class RevisionStore:
    """Service de création/restauration de révisions.

    Paramètres:
    - repo: dépôt de projets exposant `save_edits(project)` (l'état de déploiement stocké est
      conservé).
    """

    def __init__(self, repo):
        self.repo = repo

    def create_revision(
        self,
        project: Project,
        content: ProjectContent | dict[str, Any] | None,
        actor: str,
        description: str = "",
    ) -> Revision:
        """Ajoute une révision active capturant le contenu vivant.

        Si `content` est fourni il devient le contenu vivant avant capture. Toutes les révisions
        existantes sont désactivées, la nouvelle devient l'unique active et `current_revision`
        pointe sur son libellé. Seule la persistance peut échouer.
        """
        if content is not None:
            project.content = ProjectContent.model_validate(
                content.model_dump() if isinstance(content, ProjectContent) else content
            )
        label = version_label(len(project.revisions) + 1)
        for rev in project.revisions:
            rev.is_active = False
        revision = Revision(
            version=label,
            created_by=actor,
            changes=description,
            snapshot=project.content.model_copy(deep=True),
            is_active=True,
        )
        project.revisions.append(revision)
        project.current_revision = label
        project.stats.total_edits += 1
        project.updated_at = utcnow()
        self.repo.save_edits(project)
        log.info(
            "revision_created",
            project_id=project.id,
            version=label,
            revision_id=revision.id,
            actor=actor,
        )
        return revision

    def restore_revision(self, project: Project, revision_id: str) -> Revision:
        """Recopie l'instantané ciblé dans le contenu vivant et le rend actif.

        Les révisions intermédiaires sont conservées. Lève `NotFoundError` si l'id est inconnu.
        """
        target = next((r for r in project.revisions if r.id == revision_id), None)
        if target is None:
            raise NotFoundError(f"revision_not_found: {revision_id}")
        project.content = target.snapshot.model_copy(deep=True)
        for rev in project.revisions:
            rev.is_active = rev.id == target.id
        project.current_revision = target.version
        project.updated_at = utcnow()
        self.repo.save_edits(project)
        log.info(
            "revision_restored",
            project_id=project.id,
            version=target.version,
            revision_id=target.id,
        )
        return target

    def get_active(self, project: Project) -> Revision | None:
        """Retourne la révision active, ou None si l'historique est vide."""
        return next((r for r in project.revisions if r.is_active), None)

    def list_revisions(self, project: Project) -> dict[str, Any]:
        """Historique complet et libellé courant."""
        return {
            "revisions": list(project.revisions),
            "current_revision": project.current_revision,
        }
