"""
Métriques Prometheus pour l'application.

Ce module définit les métriques HTTP et celles du sous-système de déploiement (tentatives par
provider, durées, déploiements en vol, vérifications de domaine).
"""

import time

from fastapi import APIRouter, Request
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

metrics_router = APIRouter()

REQUEST_COUNT = Counter(
    "http_requests_total", "Total HTTP requests", ["method", "route", "status"]
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds", "Latency of HTTP requests", ["route"]
)

# Deployment orchestration
DEPLOYMENTS_TOTAL = Counter(
    "deployments_total",
    "Deployment outcomes by provider",
    ["provider", "result"],
)
DEPLOYMENT_DURATION = Histogram(
    "deployment_duration_seconds",
    "Wall time of detached deployment jobs (dispatch + polling)",
    ["provider"],
    buckets=[5, 15, 30, 60, 120, 180, 300, 600],
)
DEPLOYMENTS_IN_FLIGHT = Gauge(
    "deployments_in_flight",
    "Detached deployment jobs currently running in this process",
)
DEPLOYMENT_POLLS_TOTAL = Counter(
    "deployment_polls_total",
    "Provider status polls",
    ["provider", "state"],
)
DOMAIN_VERIFICATIONS_TOTAL = Counter(
    "domain_verifications_total",
    "Custom domain DNS verifications",
    ["provider", "result"],
)
NOTIFICATIONS_TOTAL = Counter(
    "deployment_notifications_total",
    "Deployment result notifications",
    ["result"],
)


@metrics_router.get("/metrics")
def metrics():
    """
    Expose les métriques Prometheus au format texte.

    Returns:
        Response: Réponse HTTP contenant les métriques au format Prometheus.
    """
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    Middleware Prometheus pour mesurer les métriques HTTP.

    Le label `route` utilise le gabarit de route (ex: `/projects/{project_id}/deploy`) quand il
    est connu, pour borner la cardinalité.
    """

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response: Response = await call_next(request)
        route_obj = request.scope.get("route")
        route = getattr(route_obj, "path", None) or request.scope.get("path", "unknown")
        REQUEST_COUNT.labels(request.method, route, str(response.status_code)).inc()
        REQUEST_LATENCY.labels(route).observe(time.perf_counter() - start)
        return response
