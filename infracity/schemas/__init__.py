"""
Pydantic schemas for InfraCity.
"""

from .classification import (
    ClassificationRequest,
    ClassificationResponseV1,
    ComponentV1,
    EvidenceItemV1,
    response_json_schema,
)
from .repo_v1 import RepoCreateV1, TechDocIn

__all__ = [
    "ClassificationRequest",
    "ClassificationResponseV1",
    "ComponentV1",
    "EvidenceItemV1",
    "response_json_schema",
    "RepoCreateV1",
    "TechDocIn",
]
