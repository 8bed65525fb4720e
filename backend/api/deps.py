"""Dépendances partagées pour les routes de l'API.

- `get_current_user`: identité de l'acteur extraite du bearer JWT.
- `load_project`: chargement d'un projet ou 404.
"""

from fastapi import Header

from backend.apigw.errors import not_found, unauthorized
from backend.core.container import container
from backend.domain.auth import decode_token
from backend.domain.entities import Project, User


def get_current_user(authorization: str = Header(None)) -> User:
    """Extrait et valide l'utilisateur courant à partir du token d'autorisation."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise unauthorized("missing_token")
    token = authorization.split(" ", 1)[1]
    data = decode_token(token, container.settings.JWT_SECRET, container.settings.JWT_ALG)
    if not data:
        raise unauthorized("invalid_token")
    return User(id=data.sub, email=data.email, role=data.role)


def load_project(project_id: str) -> Project:
    project = container.project_repo.find_by_id(project_id)
    if project is None:
        raise not_found("Project not found")
    return project
