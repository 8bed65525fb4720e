"""Adaptateur Vercel (API REST v13).

Variables utilisées (via le conteneur): `VERCEL_API_TOKEN`, `VERCEL_TEAM_ID` (optionnel).

- deploy: `POST /v13/deployments` avec les fichiers inline (`[{file, data}]`).
- status: `GET /v13/deployments/{id}`.
- cancel: `PATCH /v13/deployments/{id}/cancel`.
"""

from __future__ import annotations

import time

import httpx

from backend.domain.entities import Project
from backend.domain.errors import ProviderError
from backend.domain.files_generator import generate_project_files, project_slug
from backend.infra.providers.base import (
    DeployOptions,
    DeployResult,
    ProviderAdapter,
    ProviderState,
    StatusResult,
    https_url,
)

_FRAMEWORKS = {"nextjs": "nextjs", "react": "create-react-app", "vue": "vue"}
_STATES: dict[str, ProviderState] = {
    "READY": "READY",
    "ERROR": "ERROR",
    "CANCELED": "CANCELED",
}


def normalize_vercel_state(raw: str | None) -> ProviderState:
    """QUEUED/INITIALIZING/BUILDING (et inconnus) -> BUILDING."""
    return _STATES.get((raw or "").upper(), "BUILDING")


class VercelAdapter(ProviderAdapter):
    """Déploiements Vercel (fichiers inline, framework déduit du type de template)."""

    name = "vercel"
    base_url = "https://api.vercel.com"
    target_ips = frozenset({"76.76.21.21"})

    def __init__(
        self,
        token: str | None,
        *,
        team_id: str | None = None,
        api_url: str = "http://localhost:8000",
        client: httpx.Client | None = None,
        timeout_s: float = 15.0,
    ) -> None:
        super().__init__(token, api_url=api_url, client=client, timeout_s=timeout_s)
        self.team_id = team_id or None

    def _params(self) -> dict[str, str] | None:
        return {"teamId": self.team_id} if self.team_id else None

    def _payload(self, project: Project, options: DeployOptions) -> dict:
        files = generate_project_files(project, self.api_url)
        template_type = project.template.type
        is_static = template_type == "static"
        build_command = options.build_command or (None if is_static else "npm run build")
        return {
            "name": project_slug(project),
            "files": [{"file": path, "data": data} for path, data in files.items()],
            "projectSettings": {
                "framework": _FRAMEWORKS.get(template_type),
                "buildCommand": build_command,
                "outputDirectory": options.output_directory or (None if is_static else "dist"),
                "installCommand": None if is_static else "npm install",
            },
            "target": "production" if options.production else "preview",
        }

    def deploy(self, project: Project, options: DeployOptions) -> DeployResult:
        self.ensure_configured()
        self._log.info("vercel_deploy_start", project_id=project.id, name=project_slug(project))
        resp = self._request(
            "POST",
            "/v13/deployments",
            action="deploy",
            json=self._payload(project, options),
            params=self._params(),
        )
        data = resp.json()
        result = DeployResult(
            deployment_id=str(data["id"]),
            url=https_url(data.get("url")),
            state=normalize_vercel_state(data.get("readyState") or data.get("state")),
        )
        self._log.info(
            "vercel_deployment_created",
            project_id=project.id,
            deployment_id=result.deployment_id,
            url=result.url,
        )
        return result

    def poll_status(self, deployment_id: str) -> StatusResult:
        resp = self._request(
            "GET", f"/v13/deployments/{deployment_id}", action="status", params=self._params()
        )
        data = resp.json()
        building_at = data.get("buildingAt")
        ready_at = data.get("ready")
        if building_at and ready_at:
            build_time_ms = int(ready_at) - int(building_at)
        elif building_at:
            build_time_ms = int(time.time() * 1000) - int(building_at)
        else:
            build_time_ms = 0
        return StatusResult(
            state=normalize_vercel_state(data.get("readyState") or data.get("state")),
            url=https_url(data.get("url")),
            build_time_ms=max(0, build_time_ms),
        )

    def cancel(self, deployment_id: str) -> bool:
        try:
            self._request(
                "PATCH",
                f"/v13/deployments/{deployment_id}/cancel",
                action="cancel",
                params=self._params(),
            )
        except ProviderError as exc:
            self._log.warning(
                "vercel_cancel_failed", deployment_id=deployment_id, error=str(exc)
            )
            return False
        self._log.info("vercel_deployment_canceled", deployment_id=deployment_id)
        return True
