"""
Database package for InfraCity.
"""

from .base import Base, dispose_engine, get_db, get_engine, get_session_local
from .models import (
    AnalysisJobModel,
    DetectedComponentModel,
    EvidenceModel,
    RepoModel,
    TechDocModel,
)

__all__ = [
    "Base",
    "get_engine",
    "get_session_local",
    "get_db",
    "dispose_engine",
    "RepoModel",
    "AnalysisJobModel",
    "DetectedComponentModel",
    "EvidenceModel",
    "TechDocModel",
]
