"""Adaptateur Netlify (API v1, déploiement par empreintes de fichiers).

Flux de déploiement:
1. Création du site au premier déploiement (`POST /sites`), réutilisé ensuite via
   `deployment.provider_refs["netlify_site_id"]`.
2. `POST /sites/{site}/deploys` avec `{files: {"/chemin": sha1}}`.
3. Téléversement des seuls fichiers listés dans `required`
   (`PUT /deploys/{id}/files/{chemin}`).
"""

from __future__ import annotations

import hashlib

from backend.domain.entities import Project
from backend.domain.errors import ProviderError
from backend.domain.files_generator import generate_project_files, project_slug
from backend.infra.providers.base import (
    DeployOptions,
    DeployResult,
    ProviderAdapter,
    ProviderState,
    StatusResult,
)

SITE_REF_KEY = "netlify_site_id"

_STATES: dict[str, ProviderState] = {
    "ready": "READY",
    "error": "ERROR",
    "rejected": "ERROR",
    "canceled": "CANCELED",
    "cancelled": "CANCELED",
}


def normalize_netlify_state(raw: str | None) -> ProviderState:
    """new/uploading/uploaded/processing/building/enqueued (et inconnus) -> BUILDING."""
    return _STATES.get((raw or "").lower(), "BUILDING")


def _sha1(data: str) -> str:
    return hashlib.sha1(data.encode("utf-8")).hexdigest()  # noqa: S324 - imposé par l'API


class NetlifyAdapter(ProviderAdapter):
    """Déploiements Netlify (site créé à la volée, upload différentiel)."""

    name = "netlify"
    base_url = "https://api.netlify.com/api/v1"
    target_ips = frozenset({"75.2.60.5"})

    def _create_site(self, project: Project) -> str:
        custom = project.domain.custom_domain
        resp = self._request(
            "POST",
            "/sites",
            action="create_site",
            json={
                "name": project_slug(project),
                "custom_domain": custom.domain if custom else None,
            },
        )
        site_id = str(resp.json()["id"])
        self._log.info("netlify_site_created", project_id=project.id, site_id=site_id)
        return site_id

    def deploy(self, project: Project, options: DeployOptions) -> DeployResult:
        self.ensure_configured()
        site_id = project.deployment.provider_refs.get(SITE_REF_KEY) or self._create_site(project)
        files = generate_project_files(project, self.api_url)
        digests = {f"/{path}": _sha1(data) for path, data in files.items()}

        resp = self._request(
            "POST",
            f"/sites/{site_id}/deploys",
            action="deploy",
            json={"files": digests, "draft": not options.production},
        )
        data = resp.json()
        deployment_id = str(data["id"])
        required = set(data.get("required") or [])
        for path, body in files.items():
            if digests[f"/{path}"] not in required:
                continue
            self._request(
                "PUT",
                f"/deploys/{deployment_id}/files/{path}",
                action="upload",
                content=body.encode("utf-8"),
                headers={"Content-Type": "application/octet-stream"},
            )
        self._log.info(
            "netlify_deployment_created",
            project_id=project.id,
            deployment_id=deployment_id,
            uploaded=len(required),
        )
        return DeployResult(
            deployment_id=deployment_id,
            url=data.get("ssl_url") or data.get("url"),
            state=normalize_netlify_state(data.get("state")),
            provider_refs={SITE_REF_KEY: str(data.get("site_id") or site_id)},
        )

    def poll_status(self, deployment_id: str) -> StatusResult:
        resp = self._request("GET", f"/deploys/{deployment_id}", action="status")
        data = resp.json()
        return StatusResult(
            state=normalize_netlify_state(data.get("state")),
            url=data.get("ssl_url") or data.get("url"),
            build_time_ms=int(float(data.get("deploy_time") or 0) * 1000),
        )

    def cancel(self, deployment_id: str) -> bool:
        try:
            self._request("POST", f"/deploys/{deployment_id}/cancel", action="cancel")
        except ProviderError as exc:
            self._log.warning(
                "netlify_cancel_failed", deployment_id=deployment_id, error=str(exc)
            )
            return False
        self._log.info("netlify_deployment_canceled", deployment_id=deployment_id)
        return True
