"""
SQLAlchemy models for InfraCity.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List

from sqlalchemy import (
    Column, String, DateTime, Text, Enum, Float,
    Integer, ForeignKey, Index
)
from sqlalchemy.orm import relationship

from ..enums import ComponentType, JobStatus
from .base import Base

# Storage-level cap on evidence snippets.
SNIPPET_MAX_CHARS = 10_000
DESCRIPTION_MAX_CHARS = 500
ERROR_MESSAGE_MAX_CHARS = 5_000


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value) -> Any:
    return value.isoformat() if value else None


class RepoModel(Base):
    """A registered source repository, keyed by URL."""

    __tablename__ = "repos"

    id = Column(Integer, primary_key=True, autoincrement=True)
    url = Column(String(512), nullable=False, unique=True, index=True)
    owner = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    default_branch = Column(String(255), nullable=False, default="main")

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    jobs = relationship(
        "AnalysisJobModel",
        back_populates="repo",
        cascade="all, delete-orphan",
    )
    components = relationship(
        "DetectedComponentModel",
        back_populates="repo",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "url": self.url,
            "owner": self.owner,
            "name": self.name,
            "default_branch": self.default_branch,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class AnalysisJobModel(Base):
    """One asynchronous analysis run for a repository."""

    __tablename__ = "analysis_jobs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    repo_id = Column(
        Integer, ForeignKey("repos.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = Column(
        Enum(*[s.value for s in JobStatus], name="analysis_job_status"),
        nullable=False,
        default=JobStatus.PENDING.value,
        index=True,
    )
    progress = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
    finished_at = Column(DateTime(timezone=True), nullable=True)

    repo = relationship("RepoModel", back_populates="jobs")

    __table_args__ = (
        Index("ix_analysis_jobs_status_created", "status", "created_at"),
        Index("ix_analysis_jobs_repo_created", "repo_id", "created_at"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "repo_id": self.repo_id,
            "status": self.status,
            "progress": self.progress,
            "error_message": self.error_message,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "finished_at": _iso(self.finished_at),
        }


class DetectedComponentModel(Base):
    """A technology detected in a repository by its latest successful analysis."""

    __tablename__ = "detected_components"

    id = Column(Integer, primary_key=True, autoincrement=True)
    repo_id = Column(
        Integer, ForeignKey("repos.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    type = Column(
        Enum(*[t.value for t in ComponentType], name="component_type"),
        nullable=False,
        default=ComponentType.OTHER.value,
    )
    version = Column(String(100), nullable=True)
    confidence = Column(Float, nullable=False, default=0.0)
    description = Column(String(DESCRIPTION_MAX_CHARS), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    repo = relationship("RepoModel", back_populates="components")
    evidence = relationship(
        "EvidenceModel",
        back_populates="component",
        cascade="all, delete-orphan",
        order_by="EvidenceModel.id",
    )

    def to_dict(self, include_evidence: bool = True) -> Dict[str, Any]:
        """Convert model to dictionary."""
        data: Dict[str, Any] = {
            "id": self.id,
            "repo_id": self.repo_id,
            "name": self.name,
            "type": self.type,
            "version": self.version,
            "confidence": self.confidence,
            "description": self.description,
            "created_at": _iso(self.created_at),
        }
        if include_evidence:
            data["evidence"] = [e.to_dict() for e in self.evidence]
        return data


class EvidenceModel(Base):
    """Provenance for a detected component: a file path and a snippet from it."""

    __tablename__ = "evidence"

    id = Column(Integer, primary_key=True, autoincrement=True)
    component_id = Column(
        Integer,
        ForeignKey("detected_components.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_path = Column(String(1024), nullable=False)
    snippet = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    component = relationship("DetectedComponentModel", back_populates="evidence")

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "file_path": self.file_path,
            "snippet": self.snippet,
            "created_at": _iso(self.created_at),
        }


class TechDocModel(Base):
    """Documentation metadata for a known technology, maintained externally."""

    __tablename__ = "tech_docs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    documentation_url = Column(String(1024), nullable=True)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "documentation_url": self.documentation_url,
            "updated_at": _iso(self.updated_at),
        }


__all__: List[str] = [
    "RepoModel",
    "AnalysisJobModel",
    "DetectedComponentModel",
    "EvidenceModel",
    "TechDocModel",
]
