"""
Evidence extraction for repository analysis.

Given the root of a freshly cloned repository, builds a bounded "evidence
pack": the highest-signal manifest, config and doc files, ranked by a fixed
priority table and truncated per file, plus the union of every dependency
name declared by any manifest in the tree.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from .manifests import is_parseable_manifest, parse_manifest

logger = logging.getLogger(__name__)

MAX_DEPTH = 6
MAX_EVIDENCE_FILES = 20

MANIFEST_CHAR_LIMIT = 12_000
DEFAULT_CHAR_LIMIT = 6_000
LOCKFILE_CHAR_LIMIT = 2_000

# Files larger than this are never read in full.
MAX_READ_BYTES = 512 * 1024

IGNORED_DIRS = frozenset(
    {
        ".git", ".hg", ".svn",
        "node_modules", "bower_components", "jspm_packages",
        "dist", "build", "out", ".next", ".nuxt", ".svelte-kit", ".output",
        "target", "vendor", "coverage", ".turbo", ".cache", ".parcel-cache",
        "__pycache__", ".venv", "venv", "env", ".tox", ".mypy_cache",
        ".pytest_cache", ".gradle", ".idea", ".terraform",
    }
)

PRIORITY_MANIFEST = 0
PRIORITY_README = 1
PRIORITY_FRAMEWORK = 2
PRIORITY_CI = 3
PRIORITY_BUILD = 4
PRIORITY_LOCKFILE = 5

# (match kind, pattern, priority). "name" matches the basename exactly,
# "suffix" the end of the basename, "prefix" the start of the basename and
# "contains" any part of the relative path. All comparisons are lowercase.
ALLOW_RULES: Tuple[Tuple[str, str, int], ...] = (
    # Primary manifests
    ("name", "package.json", PRIORITY_MANIFEST),
    ("name", "pyproject.toml", PRIORITY_MANIFEST),
    ("prefix", "requirements", PRIORITY_MANIFEST),
    ("name", "pipfile", PRIORITY_MANIFEST),
    ("name", "setup.py", PRIORITY_MANIFEST),
    ("name", "setup.cfg", PRIORITY_MANIFEST),
    ("name", "go.mod", PRIORITY_MANIFEST),
    ("name", "cargo.toml", PRIORITY_MANIFEST),
    ("name", "composer.json", PRIORITY_MANIFEST),
    ("name", "gemfile", PRIORITY_MANIFEST),
    ("name", "pom.xml", PRIORITY_MANIFEST),
    ("name", "build.gradle", PRIORITY_MANIFEST),
    ("name", "build.gradle.kts", PRIORITY_MANIFEST),
    ("name", "pubspec.yaml", PRIORITY_MANIFEST),
    ("name", "mix.exs", PRIORITY_MANIFEST),
    ("suffix", ".csproj", PRIORITY_MANIFEST),
    # Docs
    ("name", "readme.md", PRIORITY_README),
    ("name", "readme.rst", PRIORITY_README),
    ("name", "readme", PRIORITY_README),
    # Framework config
    ("prefix", "next.config.", PRIORITY_FRAMEWORK),
    ("prefix", "nuxt.config.", PRIORITY_FRAMEWORK),
    ("prefix", "vite.config.", PRIORITY_FRAMEWORK),
    ("prefix", "svelte.config.", PRIORITY_FRAMEWORK),
    ("prefix", "astro.config.", PRIORITY_FRAMEWORK),
    ("prefix", "remix.config.", PRIORITY_FRAMEWORK),
    ("prefix", "gatsby-config.", PRIORITY_FRAMEWORK),
    ("prefix", "vue.config.", PRIORITY_FRAMEWORK),
    ("prefix", "webpack.config.", PRIORITY_FRAMEWORK),
    ("prefix", "tailwind.config.", PRIORITY_FRAMEWORK),
    ("prefix", "postcss.config.", PRIORITY_FRAMEWORK),
    ("prefix", "drizzle.config.", PRIORITY_FRAMEWORK),
    ("prefix", "jest.config.", PRIORITY_FRAMEWORK),
    ("prefix", "vitest.config.", PRIORITY_FRAMEWORK),
    ("prefix", "playwright.config.", PRIORITY_FRAMEWORK),
    ("name", "angular.json", PRIORITY_FRAMEWORK),
    ("name", "tsconfig.json", PRIORITY_FRAMEWORK),
    ("name", "components.json", PRIORITY_FRAMEWORK),
    ("suffix", ".prisma", PRIORITY_FRAMEWORK),
    ("name", "manage.py", PRIORITY_FRAMEWORK),
    # CI/CD
    ("contains", ".github/workflows/", PRIORITY_CI),
    ("name", ".gitlab-ci.yml", PRIORITY_CI),
    ("contains", ".circleci/config.yml", PRIORITY_CI),
    ("name", "jenkinsfile", PRIORITY_CI),
    ("name", "azure-pipelines.yml", PRIORITY_CI),
    ("name", ".travis.yml", PRIORITY_CI),
    ("name", "bitbucket-pipelines.yml", PRIORITY_CI),
    # Build, env, containers, infra
    ("name", "dockerfile", PRIORITY_BUILD),
    ("suffix", ".dockerfile", PRIORITY_BUILD),
    ("prefix", "docker-compose", PRIORITY_BUILD),
    ("name", "compose.yml", PRIORITY_BUILD),
    ("name", "compose.yaml", PRIORITY_BUILD),
    ("name", ".env.example", PRIORITY_BUILD),
    ("name", ".env.sample", PRIORITY_BUILD),
    ("name", "makefile", PRIORITY_BUILD),
    ("name", "procfile", PRIORITY_BUILD),
    ("name", "vercel.json", PRIORITY_BUILD),
    ("name", "netlify.toml", PRIORITY_BUILD),
    ("name", "fly.toml", PRIORITY_BUILD),
    ("name", "render.yaml", PRIORITY_BUILD),
    ("name", "serverless.yml", PRIORITY_BUILD),
    ("name", "chart.yaml", PRIORITY_BUILD),
    ("suffix", ".tf", PRIORITY_BUILD),
    ("name", ".nvmrc", PRIORITY_BUILD),
    ("name", ".python-version", PRIORITY_BUILD),
    ("name", ".tool-versions", PRIORITY_BUILD),
    ("name", "turbo.json", PRIORITY_BUILD),
    ("name", "nx.json", PRIORITY_BUILD),
    # Lockfiles
    ("name", "package-lock.json", PRIORITY_LOCKFILE),
    ("name", "yarn.lock", PRIORITY_LOCKFILE),
    ("name", "pnpm-lock.yaml", PRIORITY_LOCKFILE),
    ("name", "poetry.lock", PRIORITY_LOCKFILE),
    ("name", "uv.lock", PRIORITY_LOCKFILE),
    ("name", "pipfile.lock", PRIORITY_LOCKFILE),
    ("name", "cargo.lock", PRIORITY_LOCKFILE),
    ("name", "go.sum", PRIORITY_LOCKFILE),
    ("name", "composer.lock", PRIORITY_LOCKFILE),
    ("name", "gemfile.lock", PRIORITY_LOCKFILE),
)


@dataclass
class EvidenceFile:
    """A file handed to the classifier."""

    file_path: str
    content: str
    priority: int
    truncated: bool = False


@dataclass
class EvidencePack:
    """Bounded, prioritized view of a repository."""

    found_paths: List[str] = field(default_factory=list)
    files: List[EvidenceFile] = field(default_factory=list)
    all_dependency_names: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.files

    def file_contents(self) -> Dict[str, str]:
        return {f.file_path: f.content for f in self.files}


def classify_path(rel_path: str) -> Optional[int]:
    """Return the priority of an allow-listed path, or None if not interesting.

    When several rules match, the most important (lowest) priority wins.
    """
    lowered = rel_path.replace("\\", "/").lower()
    basename = lowered.rsplit("/", 1)[-1]
    best: Optional[int] = None
    for kind, pattern, priority in ALLOW_RULES:
        if kind == "name":
            matched = basename == pattern
        elif kind == "suffix":
            matched = basename.endswith(pattern)
        elif kind == "prefix":
            matched = basename.startswith(pattern)
        else:
            matched = pattern in lowered
        if matched and (best is None or priority < best):
            best = priority
    # requirements* is only a manifest when it is a text file
    if best == PRIORITY_MANIFEST and basename.startswith("requirements"):
        if not basename.endswith((".txt", ".in")):
            return None
    return best


def walk_files(root: Path, max_depth: int = MAX_DEPTH) -> Iterator[str]:
    """Yield relative POSIX paths of files under root in deterministic order.

    Noise directories are pruned and recursion stops below ``max_depth``
    directory levels. Symlinks are not followed.
    """
    root = Path(root)

    def _walk(directory: Path, depth: int) -> Iterator[str]:
        try:
            entries = sorted(os.scandir(directory), key=lambda e: e.name)
        except OSError as e:
            logger.warning(f"Cannot list {directory}: {e}")
            return
        subdirs = []
        for entry in entries:
            if entry.is_symlink():
                continue
            if entry.is_dir(follow_symlinks=False):
                if entry.name.lower() not in IGNORED_DIRS:
                    subdirs.append(entry)
            elif entry.is_file(follow_symlinks=False):
                yield Path(entry.path).relative_to(root).as_posix()
        if depth >= max_depth:
            return
        for sub in subdirs:
            yield from _walk(Path(sub.path), depth + 1)

    yield from _walk(root, 0)


def rank_paths(paths: List[str]) -> List[Tuple[str, int]]:
    """Filter to allow-listed paths and sort by priority (stable)."""
    ranked = []
    for path in paths:
        priority = classify_path(path)
        if priority is not None:
            ranked.append((path, priority))
    # sorted() is stable: ties keep enumeration order
    return sorted(ranked, key=lambda item: item[1])


def char_limit_for(priority: int) -> int:
    if priority == PRIORITY_MANIFEST:
        return MANIFEST_CHAR_LIMIT
    if priority == PRIORITY_LOCKFILE:
        return LOCKFILE_CHAR_LIMIT
    return DEFAULT_CHAR_LIMIT


def truncate_text(text: str, limit: int) -> Tuple[str, bool]:
    """Cap text at ``limit`` characters, appending a visible marker when cut."""
    if len(text) <= limit:
        return text, False
    dropped = len(text) - limit
    return f"{text[:limit]}\n...[truncated {dropped} chars]", True


def read_text(path: Path) -> str:
    with open(path, "rb") as f:
        data = f.read(MAX_READ_BYTES)
    return data.decode("utf-8", errors="replace")


def extract_evidence(
    root: Path,
    max_files: int = MAX_EVIDENCE_FILES,
    max_depth: int = MAX_DEPTH,
) -> EvidencePack:
    """Build the evidence pack for a cloned repository.

    Args:
        root: Root directory of the clone
        max_files: Cap on files included in the pack
        max_depth: Directory recursion limit

    Returns:
        EvidencePack; ``files`` is empty if nothing recognizable was found
    """
    root = Path(root)
    all_paths = list(walk_files(root, max_depth=max_depth))
    ranked = rank_paths(all_paths)
    selected = ranked[:max_files]

    pack = EvidencePack()
    for rel_path, priority in selected:
        try:
            raw = read_text(root / rel_path)
        except OSError as e:
            logger.warning(f"Skipping unreadable evidence file {rel_path}: {e}")
            continue

        content = raw
        manifest = parse_manifest(rel_path, raw)
        if manifest is not None:
            content = json.dumps(manifest.to_dict(), indent=2, sort_keys=False)

        content, truncated = truncate_text(content, char_limit_for(priority))
        pack.files.append(
            EvidenceFile(
                file_path=rel_path,
                content=content,
                priority=priority,
                truncated=truncated,
            )
        )
        pack.found_paths.append(rel_path)

    pack.all_dependency_names = collect_dependency_names(root, all_paths)

    logger.info(
        f"Evidence pack: {len(pack.files)} of {len(ranked)} candidate files, "
        f"{len(pack.all_dependency_names)} declared dependencies"
    )
    return pack


def collect_dependency_names(root: Path, paths: List[str]) -> List[str]:
    """Union of dependency names declared by every parseable manifest in the tree."""
    names = set()
    for rel_path in paths:
        if not is_parseable_manifest(rel_path):
            continue
        try:
            manifest = parse_manifest(rel_path, read_text(Path(root) / rel_path))
        except OSError as e:
            logger.warning(f"Cannot read manifest {rel_path}: {e}")
            continue
        if manifest is not None:
            names.update(manifest.dependency_names())
    return sorted(names)
