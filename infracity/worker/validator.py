"""
Sanitizer for classifier output.

The classifier is unreliable, so its output is repaired wherever possible
and only structurally unusable components are dropped. After this step
every component has a valid type, a confidence in [0, 1], a bounded
description and at least one evidence entry whose file_path was actually
surfaced by the evidence extractor (or is the fallback manifest path).
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pydantic import ValidationError

from ..enums import ComponentType
from ..schemas.classification import ClassificationResponseV1

logger = logging.getLogger(__name__)

DESCRIPTION_MAX_CHARS = 500
SNIPPET_MAX_CHARS = 500
NAME_MAX_CHARS = 255
VERSION_MAX_CHARS = 100

NO_DESCRIPTION = "No description available."
FALLBACK_SNIPPET = "Detected via metadata"
DEFAULT_FALLBACK_PATH = "package.json"
PRIMARY_MANIFEST_SUFFIX = "package.json"

SENTINEL_PATHS = frozenset({"", "metadata", "unknown", "n/a", "na", "none", "null"})


@dataclass
class ValidatedEvidence:
    file_path: str
    snippet: str


@dataclass
class ValidatedComponent:
    name: str
    type: ComponentType
    confidence: float
    version: Optional[str] = None
    description: str = NO_DESCRIPTION
    evidence: List[ValidatedEvidence] = field(default_factory=list)


def choose_fallback_path(found_paths: Sequence[str]) -> str:
    """Pick the manifest that synthetic evidence points at.

    Prefers a discovered ``package.json``; otherwise the highest-ranked found
    path; otherwise the literal primary manifest name.
    """
    for path in found_paths:
        if path.lower().endswith(PRIMARY_MANIFEST_SUFFIX):
            return path
    if found_paths:
        return found_paths[0]
    return DEFAULT_FALLBACK_PATH


def _fallback_evidence(fallback_path: str) -> ValidatedEvidence:
    return ValidatedEvidence(file_path=fallback_path, snippet=FALLBACK_SNIPPET)


def _clean_name(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value[:NAME_MAX_CHARS] if value else None


def _clean_type(value: Any) -> Optional[ComponentType]:
    if isinstance(value, ComponentType):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    return ComponentType.coerce(value)


def _clean_confidence(value: Any) -> Optional[float]:
    # bool is an int subclass; true/false is not a confidence
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    if math.isnan(value) or math.isinf(value):
        return None
    return min(1.0, max(0.0, value))


def _clean_version(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value[:VERSION_MAX_CHARS] if value else None


def _clean_description(value: Any) -> str:
    if not isinstance(value, str):
        return NO_DESCRIPTION
    value = value.strip()
    if not value:
        return NO_DESCRIPTION
    return value[:DESCRIPTION_MAX_CHARS]


def _clean_evidence(
    value: Any, allowed: frozenset, fallback_path: str
) -> List[ValidatedEvidence]:
    items: List[ValidatedEvidence] = []
    seen = set()

    entries: Iterable[Any] = value if isinstance(value, list) else []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        raw_path = entry.get("file_path")
        path = raw_path.strip() if isinstance(raw_path, str) else ""
        snippet = entry.get("snippet")
        snippet = snippet.strip() if isinstance(snippet, str) else ""

        if path.lower() in SENTINEL_PATHS or path not in allowed:
            item = _fallback_evidence(fallback_path)
        else:
            item = ValidatedEvidence(
                file_path=path,
                snippet=(snippet or FALLBACK_SNIPPET)[:SNIPPET_MAX_CHARS],
            )

        key = (item.file_path, item.snippet)
        if key not in seen:
            seen.add(key)
            items.append(item)

    if not items:
        items.append(_fallback_evidence(fallback_path))
    return items


def sanitize_component(
    raw: Any, allowed: frozenset, fallback_path: str
) -> Optional[ValidatedComponent]:
    """Repair one candidate component, or return None if it is unusable."""
    if not isinstance(raw, dict):
        logger.warning(f"Dropping non-object component: {raw!r:.200}")
        return None

    name = _clean_name(raw.get("name"))
    component_type = _clean_type(raw.get("type"))
    confidence = _clean_confidence(raw.get("confidence"))
    if name is None or component_type is None or confidence is None:
        logger.warning(
            "Dropping malformed component "
            f"(name={raw.get('name')!r:.80}, type={raw.get('type')!r:.40}, "
            f"confidence={raw.get('confidence')!r:.20})"
        )
        return None

    return ValidatedComponent(
        name=name,
        type=component_type,
        confidence=confidence,
        version=_clean_version(raw.get("version")),
        description=_clean_description(raw.get("description")),
        evidence=_clean_evidence(raw.get("evidence"), allowed, fallback_path),
    )


def _as_candidates(raw_components: Any) -> List[Any]:
    """Strict parse first; fall back to treating every field as untrusted."""
    if not isinstance(raw_components, list):
        return []
    try:
        parsed = ClassificationResponseV1.model_validate({"components": raw_components})
    except ValidationError as e:
        logger.info(
            f"Classifier output failed strict validation ({e.error_count()} errors); "
            "sanitizing field by field"
        )
        return list(raw_components)
    return [component.model_dump(mode="json") for component in parsed.components]


def validate_components(
    raw_components: Any, found_paths: Sequence[str]
) -> List[ValidatedComponent]:
    """Enforce the component/evidence contract on classifier output.

    Args:
        raw_components: Component list as returned by the classifier
        found_paths: Paths the evidence extractor surfaced for this job

    Returns:
        Components safe to persist (possibly empty)
    """
    fallback_path = choose_fallback_path(found_paths)
    allowed = frozenset(found_paths)

    validated: List[ValidatedComponent] = []
    dropped = 0
    for raw in _as_candidates(raw_components):
        component = sanitize_component(raw, allowed, fallback_path)
        if component is None:
            dropped += 1
            continue
        validated.append(component)

    if dropped:
        logger.warning(f"Dropped {dropped} malformed components")
    return validated


def summarize(components: Sequence[ValidatedComponent]) -> Dict[str, int]:
    """Count of validated components per type."""
    counts: Dict[str, int] = {}
    for component in components:
        counts[component.type.value] = counts.get(component.type.value, 0) + 1
    return counts
