"""
Vérification DNS des domaines personnalisés.

Un domaine est vérifié dès qu'au moins un de ses enregistrements A pointe vers une adresse connue
du provider. Un domaine mal configuré est un cas attendu: la résolution en échec donne
`verified=False` avec un message de diagnostic, jamais une exception.
"""

from __future__ import annotations

from collections.abc import Callable

import structlog
from pydantic import BaseModel, Field

from backend.app.metrics import DOMAIN_VERIFICATIONS_TOTAL
from backend.domain.entities import Project
from backend.infra.dns import resolve_a_records

log = structlog.get_logger(__name__)


class DomainVerification(BaseModel):
    """Résultat d'une vérification DNS."""

    verified: bool
    provider: str
    records: list[str] = Field(default_factory=list)
    message: str | None = None
    error: str | None = None


class DomainVerifier:
    """Compare les enregistrements A d'un domaine aux cibles du provider.

    Paramètres:
    - target_ips_for: fonction nom de provider -> ensemble d'IP attendues
      (typiquement `ProviderRegistry.target_ips`).
    - resolver: fonction domaine -> liste d'IPv4 (lève `OSError` en cas d'échec).
    """

    def __init__(
        self,
        target_ips_for: Callable[[str], frozenset[str]],
        resolver: Callable[[str], list[str]] = resolve_a_records,
    ) -> None:
        self._target_ips_for = target_ips_for
        self._resolve = resolver

    def verify(self, domain: str, provider: str) -> DomainVerification:
        """Résout `domain` et calcule l'intersection avec les IP du provider."""
        expected = self._target_ips_for(provider)
        try:
            records = list(self._resolve(domain))
        except (OSError, UnicodeError) as exc:
            log.info("domain_resolution_failed", domain=domain, provider=provider, error=str(exc))
            DOMAIN_VERIFICATIONS_TOTAL.labels(provider, "unresolved").inc()
            return DomainVerification(
                verified=False,
                provider=provider,
                error=str(exc),
                message="DNS records not found or domain not configured",
            )

        if set(records) & expected:
            log.info("domain_verified", domain=domain, provider=provider, records=records)
            DOMAIN_VERIFICATIONS_TOTAL.labels(provider, "verified").inc()
            return DomainVerification(verified=True, provider=provider, records=records)

        DOMAIN_VERIFICATIONS_TOTAL.labels(provider, "mismatch").inc()
        message = (
            "No A record found for domain"
            if not records
            else "DNS not pointing to correct provider"
        )
        log.info("domain_not_verified", domain=domain, provider=provider, records=records)
        return DomainVerification(
            verified=False, provider=provider, records=records, message=message
        )

    @staticmethod
    def apply(project: Project, result: DomainVerification) -> None:
        """Reporte le résultat sur `domain.custom_domain` (drapeaux de vérification)."""
        custom = project.domain.custom_domain
        if custom is None:
            return
        custom.verified = result.verified
        for record in custom.dns_records:
            record.verified = result.verified
