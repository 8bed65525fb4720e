"""Interface commune des adaptateurs de providers d'hébergement.

Un adaptateur encapsule l'API deploy/status/cancel d'un provider et normalise ses réponses:
- `deploy` -> `DeployResult{deployment_id, url, state}`
- `poll_status` -> `StatusResult{state, url, build_time_ms}`
- `cancel` -> bool

États normalisés: BUILDING, READY, ERROR, CANCELED.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import Any, Literal

import httpx
import structlog

from backend.core.http_constants import HTTP_SUCCESS_MAX, HTTP_SUCCESS_MIN
from backend.domain.entities import Project
from backend.domain.errors import ConfigurationError, ProviderError

ProviderState = Literal["BUILDING", "READY", "ERROR", "CANCELED"]
TERMINAL_STATES: frozenset[str] = frozenset({"READY", "ERROR", "CANCELED"})


@dataclass
class DeployOptions:
    """Options de déploiement transmises par l'appelant."""

    production: bool = True
    build_command: str | None = None
    output_directory: str | None = None

    @classmethod
    def from_mapping(cls, data: dict[str, Any] | None) -> DeployOptions:
        data = data or {}
        return cls(
            production=data.get("production", True) is not False,
            build_command=data.get("build_command"),
            output_directory=data.get("output_directory"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class DeployResult:
    deployment_id: str
    url: str | None
    state: ProviderState
    # Identifiants à conserver sur le projet (ex: site Netlify créé à la volée)
    provider_refs: dict[str, str] = field(default_factory=dict)


@dataclass
class StatusResult:
    state: ProviderState
    url: str | None = None
    build_time_ms: int = 0


def https_url(url: str | None) -> str | None:
    """Préfixe `https://` quand le provider renvoie un hôte nu."""
    if not url:
        return None
    return url if url.startswith(("http://", "https://")) else f"https://{url}"


def _upstream_message(resp: httpx.Response, default: str) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text or default
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if data.get("message"):
            return str(data["message"])
    return default


class ProviderAdapter(ABC):
    """Capacité deploy/status/cancel d'un provider, indépendante de son API.

    Attributs de classe:
    - name: identifiant de registre (minuscules).
    - base_url: racine de l'API HTTPS du provider.
    - target_ips: adresses A attendues pour un domaine personnalisé.
    """

    name: str = ""
    base_url: str = ""
    target_ips: frozenset[str] = frozenset()

    def __init__(
        self,
        token: str | None,
        *,
        api_url: str = "http://localhost:8000",
        client: httpx.Client | None = None,
        timeout_s: float = 15.0,
    ) -> None:
        self.token = token or ""
        self.api_url = api_url
        self._client = client
        self._timeout_s = timeout_s
        self._log = structlog.get_logger(__name__).bind(component=f"{self.name}_adapter")

    @property
    def client(self) -> httpx.Client:
        """Client HTTP réutilisable (timeouts/pool), créé à la première utilisation."""
        if self._client is None:
            timeout = httpx.Timeout(self._timeout_s)
            limits = httpx.Limits(max_keepalive_connections=10, max_connections=20)
            self._client = httpx.Client(timeout=timeout, limits=limits)
        return self._client

    def ensure_configured(self) -> None:
        """Lève `ConfigurationError` si le jeton d'API est absent."""
        if not self.token:
            raise ConfigurationError(f"{self.name.upper()}_API_TOKEN not configured")

    def _request(
        self,
        method: str,
        path: str,
        *,
        action: str,
        json: Any = None,
        content: bytes | None = None,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Appel authentifié (bearer); toute réponse hors 2xx devient `ProviderError`."""
        self.ensure_configured()
        all_headers = {"Authorization": f"Bearer {self.token}"}
        if headers:
            all_headers.update(headers)
        try:
            resp = self.client.request(
                method,
                f"{self.base_url}{path}",
                json=json,
                content=content,
                params=params,
                headers=all_headers,
            )
        except httpx.HTTPError as exc:
            raise ProviderError(f"{self.name} {action} failed: {exc}") from exc
        if not HTTP_SUCCESS_MIN <= resp.status_code < HTTP_SUCCESS_MAX:
            message = _upstream_message(resp, f"{self.name} {action} failed")
            self._log.warning(
                "provider_http_error", action=action, status_code=resp.status_code
            )
            raise ProviderError(message, status_code=resp.status_code, body=resp.text)
        return resp

    @abstractmethod
    def deploy(self, project: Project, options: DeployOptions) -> DeployResult:
        """Construit la charge utile depuis les fichiers générés et crée le déploiement."""
        raise NotImplementedError

    @abstractmethod
    def poll_status(self, deployment_id: str) -> StatusResult:
        """Lit l'état courant d'un déploiement (état normalisé)."""
        raise NotImplementedError

    @abstractmethod
    def cancel(self, deployment_id: str) -> bool:
        """Demande l'annulation d'un déploiement en cours."""
        raise NotImplementedError
