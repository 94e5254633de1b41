"""
Classification service wire contract.

Request:  {found_files, all_dependency_names, file_contents}
Response: {components: [{name, type, version|null, confidence,
                         evidence: [{file_path, snippet}], description?}]}
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..enums import ComponentType


class ClassificationRequest(BaseModel):
    """Evidence pack as sent to the classification service."""

    found_files: List[str]
    all_dependency_names: List[str] = Field(default_factory=list)
    file_contents: Dict[str, str] = Field(default_factory=dict)


class EvidenceItemV1(BaseModel):
    """Strict evidence entry."""

    model_config = ConfigDict(extra="forbid")

    file_path: str = Field(..., min_length=1)
    snippet: str


class ComponentV1(BaseModel):
    """Strict component entry."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    type: ComponentType
    version: Optional[str] = None
    confidence: float = Field(..., ge=0.0, le=1.0)
    evidence: List[EvidenceItemV1] = Field(..., min_length=1)
    description: Optional[str] = None

    @field_validator("confidence", mode="before")
    @classmethod
    def confidence_is_a_number(cls, value: Any) -> Any:
        # no coercion from strings or booleans
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("confidence must be a number")
        return value


class ClassificationResponseV1(BaseModel):
    """Strict response shape. Anything that fails this is sanitized field by field."""

    model_config = ConfigDict(extra="forbid")

    components: List[ComponentV1]


def response_json_schema() -> Dict[str, Any]:
    """JSON schema sent as the structured-output contract.

    Hand-written rather than derived from the pydantic models because strict
    structured-output modes require every property listed in ``required``.
    """
    evidence = {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "file_path": {"type": "string"},
            "snippet": {"type": "string"},
        },
        "required": ["file_path", "snippet"],
    }
    component = {
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "name": {"type": "string"},
            "type": {"type": "string", "enum": [t.value for t in ComponentType]},
            "version": {"type": ["string", "null"]},
            "confidence": {"type": "number"},
            "evidence": {"type": "array", "items": evidence},
            "description": {"type": ["string", "null"]},
        },
        "required": ["name", "type", "version", "confidence", "evidence", "description"],
    }
    return {
        "type": "object",
        "additionalProperties": False,
        "properties": {"components": {"type": "array", "items": component}},
        "required": ["components"],
    }
