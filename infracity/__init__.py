"""
InfraCity

Registers source repositories, analyzes them in a background worker and
records the technology components detected in each one with file-level
evidence.
"""

import importlib.metadata

try:
    __version__ = importlib.metadata.version("infracity")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0"

from .enums import ComponentType, JobStatus
from .errors import (
    AnalysisError,
    ClassificationError,
    CloneError,
    ExtractionError,
    PersistenceError,
    RegistrationError,
    RepositoryNotFoundError,
)

__all__ = [
    "ComponentType",
    "JobStatus",
    "AnalysisError",
    "ClassificationError",
    "CloneError",
    "ExtractionError",
    "PersistenceError",
    "RegistrationError",
    "RepositoryNotFoundError",
]
