"""Tests for classifier output sanitization."""

import math

from infracity.enums import ComponentType
from infracity.worker.validator import (
    DESCRIPTION_MAX_CHARS,
    FALLBACK_SNIPPET,
    NO_DESCRIPTION,
    choose_fallback_path,
    summarize,
    validate_components,
)

FOUND = ["apps/web/package.json", "README.md", "Dockerfile"]


def raw_component(**overrides):
    component = {
        "name": "react",
        "type": "library",
        "version": "18.2.0",
        "confidence": 0.95,
        "evidence": [{"file_path": "apps/web/package.json", "snippet": '"react": "18.2.0"'}],
        "description": "UI rendering library",
    }
    component.update(overrides)
    return component


class TestFallbackPath:
    def test_prefers_discovered_package_json(self):
        assert choose_fallback_path(["README.md", "web/package.json"]) == "web/package.json"

    def test_falls_back_to_first_found_path(self):
        assert choose_fallback_path(["pyproject.toml", "README.md"]) == "pyproject.toml"

    def test_default_when_nothing_found(self):
        assert choose_fallback_path([]) == "package.json"


class TestValidateComponents:
    """Repair-or-drop rules."""

    def test_valid_component_passes_through(self):
        [component] = validate_components([raw_component()], FOUND)

        assert component.name == "react"
        assert component.type is ComponentType.LIBRARY
        assert component.version == "18.2.0"
        assert component.confidence == 0.95
        assert component.evidence[0].file_path == "apps/web/package.json"

    def test_metadata_evidence_is_rewritten_to_manifest(self):
        raw = raw_component(
            name="zod",
            type="validation",
            evidence=[{"file_path": "metadata", "snippet": "zod"}],
        )
        [component] = validate_components([raw], FOUND)

        assert len(component.evidence) == 1
        assert component.evidence[0].file_path == "apps/web/package.json"
        assert component.evidence[0].snippet == FALLBACK_SNIPPET

    def test_unknown_paths_never_survive(self):
        raw = raw_component(
            evidence=[
                {"file_path": "src/made/up.ts", "snippet": "import x"},
                {"file_path": "Dockerfile", "snippet": "FROM node:20"},
            ]
        )
        [component] = validate_components([raw], FOUND)

        paths = {item.file_path for item in component.evidence}
        assert paths <= set(FOUND)
        assert "src/made/up.ts" not in paths

    def test_missing_evidence_gets_fallback(self):
        raw = raw_component()
        del raw["evidence"]
        [component] = validate_components([raw], ["pyproject.toml"])

        assert [(e.file_path, e.snippet) for e in component.evidence] == [
            ("pyproject.toml", FALLBACK_SNIPPET)
        ]

    def test_duplicate_fallbacks_collapse(self):
        raw = raw_component(
            evidence=[{"file_path": "unknown", "snippet": ""}, {"file_path": "", "snippet": "x"}]
        )
        [component] = validate_components([raw], FOUND)
        assert len(component.evidence) == 1

    def test_confidence_is_clamped(self):
        high, low = validate_components(
            [raw_component(confidence=7), raw_component(name="vue", confidence=-0.5)], FOUND
        )
        assert high.confidence == 1.0
        assert low.confidence == 0.0

    def test_unusable_components_are_dropped(self):
        raw = [
            "not an object",
            raw_component(name=""),
            raw_component(name=None),
            raw_component(type=None),
            raw_component(confidence="high"),
            raw_component(confidence=True),
            raw_component(confidence=math.nan),
            raw_component(name="kept"),
        ]
        components = validate_components(raw, FOUND)
        assert [c.name for c in components] == ["kept"]

    def test_string_confidence_is_dropped_on_its_own(self):
        """A lone well-formed component must not have its confidence coerced."""
        assert validate_components([raw_component(confidence="0.9")], FOUND) == []

    def test_boolean_confidence_is_dropped_on_its_own(self):
        assert validate_components([raw_component(confidence=True)], FOUND) == []

    def test_string_confidence_is_dropped_among_valid_siblings(self):
        components = validate_components(
            [raw_component(name="vite"), raw_component(name="odd", confidence="0.9")],
            FOUND,
        )
        assert [c.name for c in components] == ["vite"]

    def test_integer_confidence_is_accepted(self):
        [component] = validate_components([raw_component(confidence=1)], FOUND)
        assert component.confidence == 1.0

    def test_unknown_type_is_bucketed_as_other(self):
        [component] = validate_components([raw_component(type="blockchain")], FOUND)
        assert component.type is ComponentType.OTHER

    def test_type_aliases_are_normalized(self):
        components = validate_components(
            [
                raw_component(name="actions", type="CI/CD"),
                raw_component(name="shadcn", type="UI-Component"),
            ],
            FOUND,
        )
        assert [c.type for c in components] == [ComponentType.CI_CD, ComponentType.UI_COMPONENT]

    def test_description_defaults_and_truncation(self):
        missing, long = validate_components(
            [
                raw_component(description=None),
                raw_component(name="vue", description="d" * (DESCRIPTION_MAX_CHARS + 50)),
            ],
            FOUND,
        )
        assert missing.description == NO_DESCRIPTION
        assert len(long.description) == DESCRIPTION_MAX_CHARS

    def test_numeric_version_is_stringified(self):
        [component] = validate_components([raw_component(version=3)], FOUND)
        assert component.version == "3"

    def test_non_list_input_gives_empty_result(self):
        assert validate_components({"components": []}, FOUND) == []
        assert validate_components(None, FOUND) == []


def test_summarize_counts_by_type():
    components = validate_components(
        [
            raw_component(),
            raw_component(name="vue"),
            raw_component(name="zod", type="validation"),
        ],
        FOUND,
    )
    assert summarize(components) == {"library": 2, "validation": 1}
