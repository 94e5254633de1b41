"""
Dependency manifest parsing.

Each supported manifest is reduced to the same normalized shape so the
classifier sees one structure regardless of ecosystem:

    {"name": ..., "scripts": {...}, "dependencies": {...},
     "devDependencies": {...}, "peerDependencies": {...}}
"""
from __future__ import annotations

import json
import logging
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class ParsedManifest:
    """Normalized view of a dependency manifest."""

    source: str
    name: Optional[str] = None
    scripts: Dict[str, str] = field(default_factory=dict)
    dependencies: Dict[str, str] = field(default_factory=dict)
    dev_dependencies: Dict[str, str] = field(default_factory=dict)
    peer_dependencies: Dict[str, str] = field(default_factory=dict)

    def dependency_names(self) -> List[str]:
        names: List[str] = []
        for group in (self.dependencies, self.dev_dependencies, self.peer_dependencies):
            for name in group:
                if name not in names:
                    names.append(name)
        return names

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "scripts": self.scripts,
            "dependencies": self.dependencies,
            "devDependencies": self.dev_dependencies,
            "peerDependencies": self.peer_dependencies,
        }


def _str_map(value: Any) -> Dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(k): _version_of(v) for k, v in value.items()}


def _version_of(spec: Any) -> str:
    if isinstance(spec, str):
        return spec or "*"
    if isinstance(spec, dict):
        version = spec.get("version")
        if version:
            return str(version)
        for key in ("git", "path", "url"):
            if spec.get(key):
                return f"{key}:{spec[key]}"
        return "*"
    if spec is None:
        return "*"
    return str(spec)


_PEP508_NAME = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)(\[[^\]]*\])?\s*(.*)$")


def _parse_pep508(dep: str) -> Optional[tuple[str, str]]:
    dep = dep.split(";", 1)[0].strip()
    match = _PEP508_NAME.match(dep)
    if not match:
        return None
    version = match.group(3).strip() or "*"
    return match.group(1), version


def _parse_package_json(path: str, text: str) -> ParsedManifest:
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("package.json root is not an object")
    name = data.get("name")
    return ParsedManifest(
        source=path,
        name=name if isinstance(name, str) else None,
        scripts=_str_map(data.get("scripts")),
        dependencies=_str_map(data.get("dependencies")),
        dev_dependencies=_str_map(data.get("devDependencies")),
        peer_dependencies=_str_map(data.get("peerDependencies")),
    )


def _parse_composer_json(path: str, text: str) -> ParsedManifest:
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError("composer.json root is not an object")
    return ParsedManifest(
        source=path,
        name=data.get("name") if isinstance(data.get("name"), str) else None,
        scripts={k: json.dumps(v) if not isinstance(v, str) else v
                 for k, v in (data.get("scripts") or {}).items()},
        dependencies=_str_map(data.get("require")),
        dev_dependencies=_str_map(data.get("require-dev")),
    )


def _parse_pyproject(path: str, text: str) -> ParsedManifest:
    data = tomllib.loads(text)
    project = data.get("project", {})
    poetry = data.get("tool", {}).get("poetry", {})

    manifest = ParsedManifest(source=path, name=project.get("name") or poetry.get("name"))
    manifest.scripts = {str(k): str(v) for k, v in (project.get("scripts") or {}).items()}

    for dep in project.get("dependencies", []):
        parsed = _parse_pep508(dep)
        if parsed:
            manifest.dependencies[parsed[0]] = parsed[1]
    for deps in (project.get("optional-dependencies") or {}).values():
        for dep in deps:
            parsed = _parse_pep508(dep)
            if parsed:
                manifest.dev_dependencies[parsed[0]] = parsed[1]

    for name, spec in (poetry.get("dependencies") or {}).items():
        if name.lower() == "python":
            continue
        manifest.dependencies[name] = _version_of(spec)
    for name, spec in (poetry.get("dev-dependencies") or {}).items():
        manifest.dev_dependencies[name] = _version_of(spec)
    for group in (poetry.get("group") or {}).values():
        for name, spec in (group.get("dependencies") or {}).items():
            manifest.dev_dependencies[name] = _version_of(spec)

    return manifest


def _parse_requirements(path: str, text: str) -> ParsedManifest:
    manifest = ParsedManifest(source=path)
    for line in text.splitlines():
        line = line.split("#", 1)[0].strip()
        if not line or line.startswith("-"):
            continue
        parsed = _parse_pep508(line)
        if parsed:
            manifest.dependencies[parsed[0]] = parsed[1]
    return manifest


def _parse_pipfile(path: str, text: str) -> ParsedManifest:
    data = tomllib.loads(text)
    return ParsedManifest(
        source=path,
        scripts=_str_map(data.get("scripts")),
        dependencies=_str_map(data.get("packages")),
        dev_dependencies=_str_map(data.get("dev-packages")),
    )


def _parse_cargo(path: str, text: str) -> ParsedManifest:
    data = tomllib.loads(text)
    package = data.get("package", {})
    return ParsedManifest(
        source=path,
        name=package.get("name"),
        dependencies=_str_map(data.get("dependencies")),
        dev_dependencies=_str_map(data.get("dev-dependencies")),
    )


_GO_REQUIRE_LINE = re.compile(r"^\s*([^\s()]+)\s+(v[^\s]+)")


def _parse_go_mod(path: str, text: str) -> ParsedManifest:
    manifest = ParsedManifest(source=path)
    in_block = False
    for raw in text.splitlines():
        line = raw.split("//", 1)[0].strip()
        if not line:
            continue
        if line.startswith("module "):
            manifest.name = line[len("module "):].strip()
        elif line.startswith("require ("):
            in_block = True
        elif in_block and line == ")":
            in_block = False
        elif in_block or line.startswith("require "):
            match = _GO_REQUIRE_LINE.match(line[len("require "):] if not in_block else line)
            if match:
                manifest.dependencies[match.group(1)] = match.group(2)
    return manifest


Parser = Callable[[str, str], ParsedManifest]

_PARSERS: Dict[str, Parser] = {
    "package.json": _parse_package_json,
    "composer.json": _parse_composer_json,
    "pyproject.toml": _parse_pyproject,
    "pipfile": _parse_pipfile,
    "cargo.toml": _parse_cargo,
    "go.mod": _parse_go_mod,
}


def get_parser(path: str) -> Optional[Parser]:
    """Return the manifest parser for a relative path, if it is a parseable manifest."""
    basename = PurePosixPath(path).name.lower()
    if basename in _PARSERS:
        return _PARSERS[basename]
    if basename.startswith("requirements") and basename.endswith(".txt"):
        return _parse_requirements
    return None


def is_parseable_manifest(path: str) -> bool:
    return get_parser(path) is not None


def parse_manifest(path: str, text: str) -> Optional[ParsedManifest]:
    """Parse a manifest; returns None (and logs) if it is unsupported or malformed."""
    parser = get_parser(path)
    if parser is None:
        return None
    try:
        return parser(path, text)
    except (ValueError, TypeError, AttributeError, tomllib.TOMLDecodeError) as e:
        logger.warning(f"Failed to parse manifest {path}: {e}")
        return None
