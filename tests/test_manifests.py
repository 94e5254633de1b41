"""Tests for dependency manifest parsing."""

import json

from infracity.worker.manifests import (
    get_parser,
    is_parseable_manifest,
    parse_manifest,
)


class TestPackageJson:
    """package.json is reduced to name/scripts/dependency maps."""

    def test_parses_all_dependency_groups(self):
        text = json.dumps(
            {
                "name": "widgets",
                "scripts": {"dev": "next dev", "test": "vitest"},
                "dependencies": {"react": "^18.2.0", "zod": "*"},
                "devDependencies": {"typescript": "5.4.0"},
                "peerDependencies": {"react-dom": ">=18"},
                "private": True,
            }
        )
        manifest = parse_manifest("package.json", text)

        assert manifest.name == "widgets"
        assert manifest.scripts == {"dev": "next dev", "test": "vitest"}
        assert manifest.dependencies == {"react": "^18.2.0", "zod": "*"}
        assert manifest.dev_dependencies == {"typescript": "5.4.0"}
        assert manifest.peer_dependencies == {"react-dom": ">=18"}
        assert manifest.dependency_names() == ["react", "zod", "typescript", "react-dom"]

    def test_to_dict_uses_manifest_key_names(self):
        manifest = parse_manifest("web/package.json", '{"dependencies": {"vue": "3"}}')
        data = manifest.to_dict()

        assert set(data) == {
            "name",
            "scripts",
            "dependencies",
            "devDependencies",
            "peerDependencies",
        }
        assert data["dependencies"] == {"vue": "3"}

    def test_malformed_json_returns_none(self):
        assert parse_manifest("package.json", "{not json") is None

    def test_non_object_root_returns_none(self):
        assert parse_manifest("package.json", "[1, 2, 3]") is None


class TestPythonManifests:
    """pyproject.toml, requirements*.txt and Pipfile."""

    def test_pyproject_pep621(self):
        text = """
[project]
name = "svc"
dependencies = ["fastapi>=0.110", "uvicorn[standard]", "tomli; python_version < '3.11'"]

[project.optional-dependencies]
test = ["pytest>=8"]

[project.scripts]
svc = "svc.cli:app"
"""
        manifest = parse_manifest("pyproject.toml", text)

        assert manifest.name == "svc"
        assert manifest.dependencies == {"fastapi": ">=0.110", "uvicorn": "*", "tomli": "*"}
        assert manifest.dev_dependencies == {"pytest": ">=8"}
        assert manifest.scripts == {"svc": "svc.cli:app"}

    def test_pyproject_poetry_groups(self):
        text = """
[tool.poetry]
name = "legacy"

[tool.poetry.dependencies]
python = "^3.11"
django = "^5.0"
requests = { version = "2.31.0", extras = ["socks"] }

[tool.poetry.group.dev.dependencies]
black = "*"
"""
        manifest = parse_manifest("pyproject.toml", text)

        assert manifest.name == "legacy"
        assert manifest.dependencies == {"django": "^5.0", "requests": "2.31.0"}
        assert manifest.dev_dependencies == {"black": "*"}

    def test_requirements_skips_comments_and_options(self):
        text = "# pinned\n-r base.txt\nflask==3.0.0  # web\n\nredis\n--index-url https://x\n"
        manifest = parse_manifest("requirements-dev.txt", text)

        assert manifest.dependencies == {"flask": "==3.0.0", "redis": "*"}

    def test_pipfile(self):
        text = '[packages]\nrequests = "*"\n\n[dev-packages]\npytest = ">=8"\n'
        manifest = parse_manifest("Pipfile", text)

        assert manifest.dependencies == {"requests": "*"}
        assert manifest.dev_dependencies == {"pytest": ">=8"}

    def test_invalid_toml_returns_none(self):
        assert parse_manifest("pyproject.toml", "[project\nname=") is None


class TestOtherEcosystems:
    def test_cargo(self):
        text = '[package]\nname = "cli"\n\n[dependencies]\nserde = { version = "1.0" }\ntokio = "1"\n'
        manifest = parse_manifest("Cargo.toml", text)

        assert manifest.name == "cli"
        assert manifest.dependencies == {"serde": "1.0", "tokio": "1"}

    def test_go_mod(self):
        text = (
            "module github.com/acme/api\n\n"
            "go 1.22\n\n"
            "require github.com/google/uuid v1.6.0\n"
            "require (\n"
            "\tgithub.com/gin-gonic/gin v1.9.1\n"
            "\tgolang.org/x/text v0.14.0 // indirect\n"
            ")\n"
        )
        manifest = parse_manifest("go.mod", text)

        assert manifest.name == "github.com/acme/api"
        assert manifest.dependencies == {
            "github.com/google/uuid": "v1.6.0",
            "github.com/gin-gonic/gin": "v1.9.1",
            "golang.org/x/text": "v0.14.0",
        }

    def test_composer(self):
        text = json.dumps({"name": "acme/site", "require": {"laravel/framework": "^11.0"}})
        manifest = parse_manifest("composer.json", text)

        assert manifest.dependencies == {"laravel/framework": "^11.0"}


class TestParserLookup:
    def test_lookup_is_case_insensitive_on_basename(self):
        assert get_parser("apps/web/Package.json") is not None
        assert is_parseable_manifest("requirements.txt")
        assert is_parseable_manifest("requirements/prod.txt") is False
        assert is_parseable_manifest("README.md") is False

    def test_unsupported_file_returns_none(self):
        assert parse_manifest("Dockerfile", "FROM python:3.12") is None
