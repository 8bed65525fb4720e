"""
Génération des fichiers déployables d'un projet.

Transformation pure contenu structuré → `{chemin: texte}`: aucun accès réseau ni disque, sortie
déterministe pour un même projet (l'ordre des clés est stable).
"""

from __future__ import annotations

import copy
import json
import re
from html import escape

from backend.domain.entities import Page, Project

_FRAMEWORK_PACKAGES: dict[str, dict] = {
    "react": {
        "scripts": {"start": "react-scripts start", "build": "react-scripts build"},
        "dependencies": {
            "react": "^18.2.0",
            "react-dom": "^18.2.0",
            "react-scripts": "^5.0.1",
        },
    },
    "nextjs": {
        "scripts": {"dev": "next dev", "build": "next build", "start": "next start"},
        "dependencies": {"next": "^14.0.0", "react": "^18.2.0", "react-dom": "^18.2.0"},
    },
}


def project_slug(project: Project) -> str:
    """Nom technique du site côté provider (slug, sinon nom normalisé)."""
    if project.slug:
        return project.slug
    return re.sub(r"\s+", "-", project.name.strip().lower())


def _page_body(project: Project, page: Page | None) -> str:
    html = (page.content.get("html") if page else None) or ""
    if html:
        return str(html)
    name = escape(project.name)
    return f"<h1>{name}</h1><p>Welcome to {name}</p>"


def _render_document(project: Project, page: Page | None, api_url: str, asset_prefix: str) -> str:
    seo = project.content.config.seo
    title = escape(seo.title or (page.title if page and page.title else "") or project.name)
    head = [
        '<meta charset="UTF-8">',
        '<meta name="viewport" content="width=device-width, initial-scale=1.0">',
        f"<title>{title}</title>",
        f'<meta name="description" content="{escape(seo.description or "")}">',
        f'<meta name="keywords" content="{escape(", ".join(seo.keywords))}">',
    ]
    if seo.og_image:
        head.append(f'<meta property="og:image" content="{escape(seo.og_image)}">')
    if seo.favicon:
        head.append(f'<link rel="icon" href="{escape(seo.favicon)}">')
    if project.content.custom_css:
        head.append(f'<link rel="stylesheet" href="{asset_prefix}styles.css">')

    body = [_page_body(project, page)]
    if project.content.custom_js:
        body.append(f'<script src="{asset_prefix}script.js"></script>')
    visit_url = f"{api_url.rstrip('/')}/api/v1/projects/{project.id}/visit"
    body.append(
        "<script>\n"
        f"  fetch({json.dumps(visit_url)}, {{\n"
        "    method: 'POST',\n"
        "    headers: { 'Content-Type': 'application/json' }\n"
        "  });\n"
        "</script>"
    )

    nl = "\n  "
    return (
        "<!DOCTYPE html>\n"
        '<html lang="fr">\n'
        "<head>\n"
        f"  {nl.join(head)}\n"
        "</head>\n"
        "<body>\n"
        f"  {nl.join(body)}\n"
        "</body>\n"
        "</html>\n"
    )


def generate_package_json(project: Project) -> dict:
    """Manifeste `package.json` pour les templates à base de composants."""
    base: dict = {"name": project_slug(project), "version": "1.0.0", "private": True}
    extra = _FRAMEWORK_PACKAGES.get(project.template.type)
    if extra:
        base.update(copy.deepcopy(extra))
    return base


def generate_project_files(project: Project, api_url: str) -> dict[str, str]:
    """Produit la carte des fichiers à publier.

    Paramètres:
    - project: agrégat projet (seul `content`, `template`, `name`/`slug`/`id` sont lus).
    - api_url: base de l'API pour la balise de visite analytics.

    Retour: `index.html`, puis `styles.css` / `script.js` si présents, `package.json` pour les
    templates react/nextjs et `{slug}/index.html` pour chaque page supplémentaire publiée.
    """
    pages = project.content.pages
    main_page = pages[0] if pages else None
    files: dict[str, str] = {"index.html": _render_document(project, main_page, api_url, "")}

    if project.content.custom_css:
        files["styles.css"] = project.content.custom_css
    if project.content.custom_js:
        files["script.js"] = project.content.custom_js
    if project.template.type in _FRAMEWORK_PACKAGES:
        files["package.json"] = json.dumps(generate_package_json(project), indent=2)

    for page in pages[1:]:
        slug = page.slug.strip("/")
        if not page.is_published or not slug:
            continue
        prefix = "../" * (slug.count("/") + 1)
        files[f"{slug}/index.html"] = _render_document(project, page, api_url, prefix)
    return files
