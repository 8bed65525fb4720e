"""Tests HTTP des routes projets (révisions, domaine, déploiement) via TestClient."""

from __future__ import annotations

from typing import Any

import pytest
from fastapi.testclient import TestClient

from backend.app.main import app
from backend.core.container import container
from backend.core.http_constants import (
    HTTP_ACCEPTED,
    HTTP_BAD_REQUEST,
    HTTP_CONFLICT,
    HTTP_CREATED,
    HTTP_FORBIDDEN,
    HTTP_NOT_FOUND,
    HTTP_OK,
    HTTP_SERVICE_UNAVAILABLE,
    HTTP_UNAUTHORIZED,
)
from backend.domain.deployment import DeploymentCoordinator
from backend.domain.domain_verifier import DomainVerifier
from backend.domain.entities import DeploymentStatus
from backend.domain.revisions import RevisionStore
from tests.fakes import FakeAdapter

BASE = "/api/v1/projects"


@pytest.fixture
def client(monkeypatch: Any, repo, registry, coordinator) -> TestClient:
    monkeypatch.setattr(container, "project_repo", repo)
    monkeypatch.setattr(container, "revisions", RevisionStore(repo))
    monkeypatch.setattr(container, "providers", registry)
    monkeypatch.setattr(container, "deployments", coordinator)
    monkeypatch.setattr(
        container, "domain_verifier", DomainVerifier(registry.target_ips, resolver=lambda d: [])
    )
    return TestClient(app)


def _create(client: TestClient, headers: dict, **extra) -> dict:
    body = {"name": "Demo Site", "subdomain": "demo", **extra}
    r = client.post(BASE, json=body, headers=headers)
    assert r.status_code == HTTP_CREATED, r.text
    return r.json()


def test_requires_bearer_token(client: TestClient) -> None:
    r = client.post(BASE, json={"name": "x"})
    assert r.status_code == HTTP_UNAUTHORIZED
    assert r.json()["code"] == "UNAUTHORIZED"


def test_demo_subdomain_end_to_end(client: TestClient, make_token, fake_adapter) -> None:
    owner = make_token("owner-1")
    project = _create(client, owner)
    assert project["current_revision"] == "0.1"
    assert project["slug"] == "demo-site"

    r = client.post(f"{BASE}/{project['id']}/deploy", json={}, headers=owner)
    assert r.status_code == HTTP_ACCEPTED
    ack = r.json()
    assert ack["status"] == "DEPLOYING"
    assert ack["provider"] == "vercel"
    assert "estimatedTime" in ack

    r = client.get(f"{BASE}/{project['id']}/deployment", headers=owner)
    assert r.status_code == HTTP_OK
    data = r.json()
    assert data["deployment"]["status"] == "DEPLOYED"
    assert data["deployment"]["last_deployment"]["url"] == "https://demo.example"
    assert data["url"] == "https://demo.evolyte.app"
    assert data["canDeploy"] is True
    assert container.project_repo.find_by_id(project["id"]).stats.deployments == 1
    assert len(fake_adapter.deploy_calls) == 1


def test_subdomain_conflict(client: TestClient, make_token) -> None:
    _create(client, make_token("owner-1"))
    other = make_token("owner-2", "o2@example.com")
    r = client.post(BASE, json={"name": "Other", "subdomain": "demo"}, headers=other)
    assert r.status_code == HTTP_CONFLICT

    mine = _create(client, other, subdomain="mine")
    r = client.put(f"{BASE}/{mine['id']}/domain", json={"subdomain": "demo"}, headers=other)
    assert r.status_code == HTTP_CONFLICT


def test_domain_configuration_is_owner_only(client: TestClient, make_token) -> None:
    project = _create(client, make_token("owner-1"))
    r = client.put(
        f"{BASE}/{project['id']}/domain",
        json={"custom_domain": "Shop.Example.org"},
        headers=make_token("intruder", "x@example.com"),
    )
    assert r.status_code == HTTP_FORBIDDEN


def test_custom_domain_records_and_failed_verification(client: TestClient, make_token) -> None:
    owner = make_token("owner-1")
    project = _create(client, owner)
    r = client.put(
        f"{BASE}/{project['id']}/domain", json={"custom_domain": "Shop.Example.org"}, headers=owner
    )
    assert r.status_code == HTTP_OK
    custom = r.json()["domain"]["custom_domain"]
    assert custom["domain"] == "shop.example.org"
    assert custom["verified"] is False
    assert custom["verification_token"]
    assert [(d["type"], d["value"]) for d in custom["dns_records"]] == [
        ("A", "76.76.21.21"),
        ("CNAME", "cname.evolyte.app"),
    ]

    r = client.post(f"{BASE}/{project['id']}/domain/verify", headers=owner)
    assert r.status_code == HTTP_OK
    body = r.json()
    assert body["verified"] is False
    assert body["verification"]["message"] == "No A record found for domain"


def test_verify_without_custom_domain_is_bad_request(client: TestClient, make_token) -> None:
    owner = make_token("owner-1")
    project = _create(client, owner)
    r = client.post(f"{BASE}/{project['id']}/domain/verify", headers=owner)
    assert r.status_code == HTTP_BAD_REQUEST
    assert r.json()["code"] == "VALIDATION_ERROR"


def test_content_update_creates_revision_and_restore(client: TestClient, make_token) -> None:
    owner = make_token("owner-1")
    project = _create(client, owner)
    pid = project["id"]

    r = client.patch(
        f"{BASE}/{pid}",
        json={"content": {"custom_css": "h1{color:red}"}, "changes": "red titles"},
        headers=owner,
    )
    assert r.status_code == HTTP_OK
    assert r.json()["current_revision"] == "0.2"
    assert r.json()["content"]["config"]["seo"]["title"] == "Demo Site"

    r = client.get(f"{BASE}/{pid}/revisions", headers=owner)
    revisions = r.json()["revisions"]
    assert [rev["version"] for rev in revisions] == ["0.1", "0.2"]

    r = client.post(f"{BASE}/{pid}/revisions/{revisions[0]['id']}/restore", headers=owner)
    assert r.status_code == HTTP_OK
    assert r.json()["current_revision"] == "0.1"
    assert r.json()["content"]["custom_css"] is None

    r = client.post(f"{BASE}/{pid}/revisions/unknown/restore", headers=owner)
    assert r.status_code == HTTP_NOT_FOUND


def test_viewer_cannot_edit_private_project(client: TestClient, make_token) -> None:
    owner = make_token("owner-1")
    project = _create(client, owner, visibility="private")
    stranger = make_token("stranger", "s@example.com")
    assert client.get(f"{BASE}/{project['id']}", headers=stranger).status_code == HTTP_FORBIDDEN
    r = client.patch(f"{BASE}/{project['id']}", json={"name": "x"}, headers=stranger)
    assert r.status_code == HTTP_FORBIDDEN


def test_worker_role_may_deploy(client: TestClient, make_token) -> None:
    project = _create(client, make_token("owner-1"))
    worker = make_token("w1", "w1@example.com", role="WORKER")
    r = client.post(f"{BASE}/{project['id']}/deploy", headers=worker)
    assert r.status_code == HTTP_ACCEPTED


def test_deploy_conflict_when_already_deploying(client: TestClient, make_token) -> None:
    owner = make_token("owner-1")
    project = _create(client, owner)
    stored = container.project_repo.find_by_id(project["id"])
    stored.deployment.status = DeploymentStatus.DEPLOYING
    container.project_repo.save(stored)

    r = client.post(f"{BASE}/{project['id']}/deploy", json={}, headers=owner)
    assert r.status_code == HTTP_CONFLICT
    assert r.json()["code"] == "CONFLICT"


def test_deploy_without_domain_is_bad_request(client: TestClient, make_token) -> None:
    owner = make_token("owner-1")
    r = client.post(BASE, json={"name": "No domain"}, headers=owner)
    r = client.post(f"{BASE}/{r.json()['id']}/deploy", json={}, headers=owner)
    assert r.status_code == HTTP_BAD_REQUEST


def test_unconfigured_provider_is_service_unavailable(
    client: TestClient, make_token, registry
) -> None:
    registry.register("vercel", lambda: FakeAdapter(token=""))
    owner = make_token("owner-1")
    project = _create(client, owner)
    r = client.post(f"{BASE}/{project['id']}/deploy", json={}, headers=owner)
    assert r.status_code == HTTP_SERVICE_UNAVAILABLE
    assert r.json()["code"] == "PROVIDER_NOT_CONFIGURED"
    stored = container.project_repo.find_by_id(project["id"])
    assert stored.deployment.status == DeploymentStatus.NOT_DEPLOYED


def test_cancel_running_deployment(client: TestClient, make_token, fake_adapter) -> None:
    owner = make_token("owner-1")
    project = _create(client, owner)
    url = f"{BASE}/{project['id']}/deployment/dpl_1/cancel"
    assert client.post(url, headers=owner).status_code == HTTP_CONFLICT

    stored = container.project_repo.find_by_id(project["id"])
    stored.deployment.status = DeploymentStatus.DEPLOYING
    container.project_repo.save(stored)
    r = client.post(url, headers=owner)
    assert r.status_code == HTTP_OK
    assert r.json() == {"deployment_id": "dpl_1", "canceled": True}
    assert fake_adapter.cancel_calls == ["dpl_1"]


def test_visit_beacon_counts_visits(client: TestClient, make_token) -> None:
    project = _create(client, make_token("owner-1"))
    assert client.post(f"{BASE}/{project['id']}/visit").status_code == 204
    assert container.project_repo.find_by_id(project["id"]).stats.total_visits == 1


def test_deployment_result_survives_verify_request_overlapping_the_job(
    client: TestClient, make_token, monkeypatch: Any, repo, registry, notifier
) -> None:
    pending: list[tuple] = []
    coordinator = DeploymentCoordinator(
        repo,
        registry,
        notifier,
        poll_interval_s=0.0,
        spawn=lambda func, *args: pending.append((func, args)),
        notify_spawn=lambda func, *args: func(*args),
        sleep=lambda _s: None,
    )

    def _resolve_while_job_finishes(domain: str) -> list[str]:
        # la requête a déjà chargé le projet: le job se termine avant sa sauvegarde
        while pending:
            func, args = pending.pop()
            func(*args)
        return ["76.76.21.21"]

    monkeypatch.setattr(container, "deployments", coordinator)
    monkeypatch.setattr(
        container,
        "domain_verifier",
        DomainVerifier(registry.target_ips, resolver=_resolve_while_job_finishes),
    )
    owner = make_token("owner-1")
    project = _create(client, owner)
    client.put(f"{BASE}/{project['id']}/domain", json={"custom_domain": "shop.example.org"}, headers=owner)
    assert client.post(f"{BASE}/{project['id']}/deploy", json={}, headers=owner).status_code == HTTP_ACCEPTED
    assert len(pending) == 1

    r = client.post(f"{BASE}/{project['id']}/domain/verify", headers=owner)
    assert r.status_code == HTTP_OK
    assert r.json()["verified"] is True

    stored = container.project_repo.find_by_id(project["id"])
    assert stored.deployment.status == DeploymentStatus.DEPLOYED
    assert stored.deployment.last_deployment.url == "https://demo.example"
    assert stored.stats.deployments == 1
    assert stored.domain.deployment_url == "https://demo.example"
    assert stored.domain.custom_domain.verified is True
    assert coordinator.can_deploy(stored).allowed is True


def test_visit_beacon_does_not_overwrite_deployment_state(
    client: TestClient, make_token, coordinator
) -> None:
    owner = make_token("owner-1")
    project = _create(client, owner)
    client.post(f"{BASE}/{project['id']}/deploy", json={}, headers=owner)
    assert client.post(f"{BASE}/{project['id']}/visit").status_code == 204

    stored = container.project_repo.find_by_id(project["id"])
    assert stored.deployment.status == DeploymentStatus.DEPLOYED
    assert stored.stats.total_visits == 1
    assert stored.stats.deployments == 1
