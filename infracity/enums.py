"""
Canonical enums for InfraCity.

Classifier output and stored rows MUST map into these sets.
"""

from enum import Enum


class JobStatus(str, Enum):
    """Lifecycle of an analysis job."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED)


ACTIVE_JOB_STATUSES = (JobStatus.PENDING.value, JobStatus.RUNNING.value)


class ComponentType(str, Enum):
    """Kinds of detected technology components."""

    LANGUAGE = "language"
    FRAMEWORK = "framework"
    LIBRARY = "library"
    UI_COMPONENT = "ui_component"
    STATE_MANAGEMENT = "state_management"
    VALIDATION = "validation"
    ANIMATION = "animation"
    DATABASE = "database"
    CACHE = "cache"
    CI_CD = "ci_cd"
    TOOLING = "tooling"
    INFRA = "infra"
    TESTING = "testing"
    OTHER = "other"

    @classmethod
    def coerce(cls, value: str) -> "ComponentType":
        """Map a free-form type string onto the enum, bucketing unknowns as OTHER."""
        normalized = value.strip().lower().replace("-", "_").replace(" ", "_")
        if normalized in ("ci", "cicd", "ci/cd"):
            return cls.CI_CD
        try:
            return cls(normalized)
        except ValueError:
            return cls.OTHER
