"""Tests de la génération des fichiers déployables."""

from __future__ import annotations

import json

from backend.domain.entities import Page, Project, SeoConfig, TemplateRef
from backend.domain.files_generator import generate_project_files


def _project(**kwargs) -> Project:
    project = Project(id="p1", name="Café <Demo>", slug="cafe-demo", owner="u1", **kwargs)
    project.content.config.seo = SeoConfig(
        title="Café & Co", description='Le "meilleur" café', keywords=["café", "bio"]
    )
    return project


def test_static_project_minimal_files() -> None:
    files = generate_project_files(_project(), "https://api.example.com/")

    assert set(files) == {"index.html"}
    html = files["index.html"]
    assert "<title>Café &amp; Co</title>" in html
    assert 'content="Le &quot;meilleur&quot; café"' in html
    assert 'content="café, bio"' in html
    assert "<h1>Café &lt;Demo&gt;</h1>" in html
    assert '"https://api.example.com/api/v1/projects/p1/visit"' in html


def test_custom_assets_and_first_page_html() -> None:
    project = _project()
    project.content.custom_css = "h1 { color: red; }"
    project.content.custom_js = "console.log(1)"
    project.content.pages = [Page(name="home", slug="", content={"html": "<main>Hi</main>"})]

    files = generate_project_files(project, "https://api.example.com")

    assert files["styles.css"] == "h1 { color: red; }"
    assert files["script.js"] == "console.log(1)"
    assert "<main>Hi</main>" in files["index.html"]
    assert '<link rel="stylesheet" href="styles.css">' in files["index.html"]
    assert '<script src="script.js"></script>' in files["index.html"]


def test_react_template_gets_package_json() -> None:
    files = generate_project_files(
        _project(template=TemplateRef(type="react")), "https://api.example.com"
    )
    manifest = json.loads(files["package.json"])
    assert manifest["name"] == "cafe-demo"
    assert "react-scripts" in manifest["dependencies"]


def test_published_extra_pages_are_rendered() -> None:
    project = _project()
    project.content.custom_css = "body{}"
    project.content.pages = [
        Page(name="home", slug="home"),
        Page(name="about", slug="about", title="About", is_published=True, content={"html": "<p>About</p>"}),
        Page(name="draft", slug="draft", is_published=False),
    ]

    files = generate_project_files(project, "https://api.example.com")

    assert "about/index.html" in files
    assert "draft/index.html" not in files
    assert '<link rel="stylesheet" href="../styles.css">' in files["about/index.html"]


def test_output_is_deterministic() -> None:
    project = _project()
    assert generate_project_files(project, "https://a") == generate_project_files(project, "https://a")
