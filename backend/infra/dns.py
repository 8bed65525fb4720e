"""Résolution DNS (enregistrements A) pour la vérification des domaines personnalisés."""

from __future__ import annotations

import socket


def resolve_a_records(domain: str) -> list[str]:
    """Retourne les adresses IPv4 du domaine, triées et dédupliquées.

    Lève `OSError` (`socket.gaierror`) si le nom ne résout pas.
    """
    _, _, addresses = socket.gethostbyname_ex(domain)
    return sorted(set(addresses))
