"""
Dépôts de projets (persistance de l'agrégat `Project`).

Contrat: `find_by_id(project_id)` / `save(project)`, plus `find_by_subdomain` pour l'unicité des
sous-domaines. Chaque lecture renvoie une copie indépendante de l'état persisté: le rechargement
"à frais" d'un projet ne partage jamais d'objets avec une copie en mémoire.

Deux écritures atomiques (lecture-modification-écriture sur le document stocké) complètent
`save`, qui écrase le document entier:
- `update(project_id, mutate)`: applique `mutate` au dernier état persisté. Utilisé par le
  coordinateur de déploiement et la balise de visite.
- `save_edits(project)`: persiste une édition faite sur une copie chargée en début de requête,
  en reprenant du dernier état persisté les champs qui ne lui appartiennent pas
  (`Project.adopt_deployment_state`).
"""

import json
import threading
from collections.abc import Callable
from typing import Any

import redis
import structlog

from backend.domain.entities import Project
from backend.infra.ops.single_flight import SingleFlight

log = structlog.get_logger(__name__)

# Reçoit le dernier état persisté (None si absent), renvoie le document à écrire (None: rien)
Builder = Callable[[Project | None], Project | None]


def _mutating(mutate: Callable[[Project], None]) -> Builder:
    def build(latest: Project | None) -> Project | None:
        if latest is None:
            return None
        mutate(latest)
        return latest

    return build


def _merging(project: Project) -> Builder:
    def build(latest: Project | None) -> Project:
        if latest is not None:
            project.adopt_deployment_state(latest)
        return project

    return build


class InMemoryProjectRepo:
    """
    Dépôt de projets en mémoire (utilisé pour dev/tests).

    Stocke des documents JSON sérialisés, comme un vrai store documentaire.
    """

    def __init__(self):
        """Initialise une base mémoire vide."""
        self._db: dict[str, str] = {}
        self._lock = threading.Lock()

    def save(self, project: Project) -> Project:
        """Enregistre/écrase le document du projet et le renvoie."""
        doc = project.model_dump_json()
        with self._lock:
            self._db[project.id] = doc
        return project

    def _transact(self, project_id: str, build: Builder) -> Project | None:
        with self._lock:
            raw = self._db.get(project_id)
            latest = Project.model_validate_json(raw) if raw else None
            project = build(latest)
            if project is not None:
                self._db[project_id] = project.model_dump_json()
        return project

    def update(self, project_id: str, mutate: Callable[[Project], None]) -> Project | None:
        """Applique `mutate` au dernier état persisté; None si le projet n'existe pas."""
        return self._transact(project_id, _mutating(mutate))

    def save_edits(self, project: Project) -> Project:
        """Persiste l'édition sans réécrire l'état de déploiement stocké."""
        return self._transact(project.id, _merging(project))

    def find_by_id(self, project_id: str) -> Project | None:
        """Retourne une copie fraîche du projet, ou None s'il est absent."""
        with self._lock:
            raw = self._db.get(project_id)
        return Project.model_validate_json(raw) if raw else None

    def find_by_subdomain(self, subdomain: str) -> Project | None:
        """Recherche un projet par sous-domaine (scan simple)."""
        with self._lock:
            docs = list(self._db.values())
        for raw in docs:
            data: dict[str, Any] = json.loads(raw)
            if (data.get("domain") or {}).get("subdomain") == subdomain:
                return Project.model_validate(data)
        return None


class RedisProjectRepo:
    """Dépôt de projets adossé à Redis (clé: `project:{id}`, index `project:idx:subdomain`).

    La connexion est établie paresseusement, une seule fois même sous appels concurrents. Les
    écritures atomiques utilisent WATCH/MULTI et recommencent si le document a changé entre la
    lecture et l'écriture.
    """

    idx_key = "project:idx:subdomain"

    def __init__(self, url: str):
        """Prépare la connexion Redis à partir de l'URL fournie."""
        self.url = url
        self._conn: SingleFlight[redis.Redis] = SingleFlight(self._connect)

    def _connect(self) -> redis.Redis:
        client = redis.Redis.from_url(self.url, decode_responses=True)
        client.ping()
        log.info("redis_project_repo_connected")
        return client

    @property
    def client(self) -> redis.Redis:
        return self._conn.get()

    @staticmethod
    def _key(project_id: str) -> str:
        return f"project:{project_id}"

    def _write(self, pipe, project: Project) -> None:
        pipe.set(self._key(project.id), project.model_dump_json())
        if project.domain.subdomain:
            pipe.hset(self.idx_key, project.domain.subdomain, project.id)

    def save(self, project: Project) -> Project:
        """Sérialise en JSON et met à jour l'index des sous-domaines."""
        pipe = self.client.pipeline()
        self._write(pipe, project)
        pipe.execute()
        return project

    def _transact(self, project_id: str, build: Builder) -> Project | None:
        key = self._key(project_id)
        with self.client.pipeline() as pipe:
            while True:
                try:
                    pipe.watch(key)
                    raw = pipe.get(key)
                    latest = Project.model_validate_json(raw) if raw else None
                    project = build(latest)
                    if project is None:
                        pipe.unwatch()
                        return None
                    pipe.multi()
                    self._write(pipe, project)
                    pipe.execute()
                    return project
                except redis.WatchError:
                    log.debug("redis_project_write_retry", project_id=project_id)

    def update(self, project_id: str, mutate: Callable[[Project], None]) -> Project | None:
        """Applique `mutate` au dernier état persisté; None si le projet n'existe pas."""
        return self._transact(project_id, _mutating(mutate))

    def save_edits(self, project: Project) -> Project:
        """Persiste l'édition sans réécrire l'état de déploiement stocké."""
        return self._transact(project.id, _merging(project))

    def find_by_id(self, project_id: str) -> Project | None:
        """Charge et désérialise `project:{id}`, si présent."""
        raw = self.client.get(self._key(project_id))
        return Project.model_validate_json(raw) if raw else None

    def find_by_subdomain(self, subdomain: str) -> Project | None:
        """Recherche via l'index; ignore les entrées d'index périmées."""
        project_id = self.client.hget(self.idx_key, subdomain)
        if not project_id:
            return None
        project = self.find_by_id(project_id)
        if project is None or project.domain.subdomain != subdomain:
            return None
        return project
