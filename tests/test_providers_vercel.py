"""Tests de l'adaptateur Vercel contre une API simulée (httpx.MockTransport)."""

from __future__ import annotations

import json

import httpx
import pytest

from backend.domain.entities import Project, TemplateRef
from backend.domain.errors import ConfigurationError, ProviderError
from backend.infra.providers.base import DeployOptions
from backend.infra.providers.vercel import VercelAdapter, normalize_vercel_state


def _adapter(handler, token: str = "vc-token", team_id: str | None = None) -> VercelAdapter:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return VercelAdapter(token, team_id=team_id, api_url="https://api.test", client=client)


def _project(template_type: str = "static") -> Project:
    project = Project(
        name="Demo Site",
        slug="demo-site",
        owner="u1",
        template=TemplateRef(id="t1", name="Landing", type=template_type),
    )
    project.content.custom_css = "body{}"
    return project


@pytest.mark.parametrize(
    ("raw", "state"),
    [
        ("QUEUED", "BUILDING"),
        ("INITIALIZING", "BUILDING"),
        ("BUILDING", "BUILDING"),
        ("READY", "READY"),
        ("ERROR", "ERROR"),
        ("CANCELED", "CANCELED"),
        (None, "BUILDING"),
    ],
)
def test_state_normalization(raw, state) -> None:
    assert normalize_vercel_state(raw) == state


def test_deploy_posts_files_with_bearer_token() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["auth"] = request.headers["Authorization"]
        seen["team"] = request.url.params.get("teamId")
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200, json={"id": "dpl_abc", "url": "demo-site.vercel.app", "readyState": "QUEUED"}
        )

    result = _adapter(handler, team_id="team_1").deploy(_project(), DeployOptions())

    assert result.deployment_id == "dpl_abc"
    assert result.url == "https://demo-site.vercel.app"
    assert result.state == "BUILDING"
    assert seen["method"] == "POST"
    assert seen["path"] == "/v13/deployments"
    assert seen["auth"] == "Bearer vc-token"
    assert seen["team"] == "team_1"
    body = seen["body"]
    assert body["name"] == "demo-site"
    assert body["target"] == "production"
    assert {f["file"] for f in body["files"]} == {"index.html", "styles.css"}
    assert body["projectSettings"]["framework"] is None
    assert body["projectSettings"]["buildCommand"] is None


def test_deploy_react_preview_settings() -> None:
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured.update(json.loads(request.content))
        return httpx.Response(200, json={"id": "dpl_1", "url": "x.vercel.app"})

    _adapter(handler).deploy(_project("react"), DeployOptions(production=False))

    assert captured["target"] == "preview"
    settings = captured["projectSettings"]
    assert settings["framework"] == "create-react-app"
    assert settings["buildCommand"] == "npm run build"
    assert settings["installCommand"] == "npm install"
    assert "package.json" in {f["file"] for f in captured["files"]}


def test_non_2xx_raises_provider_error_with_upstream_message() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"error": {"code": "forbidden", "message": "Not authorized"}})

    with pytest.raises(ProviderError) as exc:
        _adapter(handler).deploy(_project(), DeployOptions())
    assert exc.value.status_code == 403
    assert str(exc.value) == "Not authorized"
    assert "forbidden" in exc.value.body


def test_transport_error_becomes_provider_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    with pytest.raises(ProviderError):
        _adapter(handler).poll_status("dpl_1")


def test_missing_token_raises_configuration_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - jamais appelé
        raise AssertionError("no request expected")

    adapter = _adapter(handler, token="")
    with pytest.raises(ConfigurationError):
        adapter.deploy(_project(), DeployOptions())


def test_poll_status_computes_build_time() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v13/deployments/dpl_1"
        return httpx.Response(
            200,
            json={"readyState": "READY", "url": "demo.vercel.app", "buildingAt": 1000, "ready": 4500},
        )

    status = _adapter(handler).poll_status("dpl_1")
    assert status.state == "READY"
    assert status.url == "https://demo.vercel.app"
    assert status.build_time_ms == 3500


def test_cancel_returns_false_on_upstream_error() -> None:
    def ok(request: httpx.Request) -> httpx.Response:
        assert request.method == "PATCH"
        assert request.url.path == "/v13/deployments/dpl_1/cancel"
        return httpx.Response(200, json={"state": "CANCELED"})

    def ko(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"error": {"message": "not found"}})

    assert _adapter(ok).cancel("dpl_1") is True
    assert _adapter(ko).cancel("dpl_1") is False
