"""
InfraCity worker - turns pending analysis jobs into detected components.

Usage:
    python -m infracity.worker

Components:
    - loop: Poll, claim, execute, persist, complete
    - executor: Clone → extract → classify → validate for one job
    - cloner: Shallow git clones
    - evidence: Bounded evidence pack extraction
    - manifests: Dependency manifest parsers
    - classifier: Structured-output classification client
    - validator: Sanitizer for classifier output
"""

from .classifier import Classifier, HttpClassifier
from .cloner import Cloner, GitCloner
from .evidence import EvidenceFile, EvidencePack, extract_evidence
from .executor import (
    AnalysisExecutor,
    ExecutionContext,
    ExecutionResult,
    get_executor,
)
from .loop import WorkerLoop, run_worker
from .validator import ValidatedComponent, ValidatedEvidence, validate_components

__all__ = [
    # Loop
    "WorkerLoop",
    "run_worker",
    # Executor
    "AnalysisExecutor",
    "ExecutionContext",
    "ExecutionResult",
    "get_executor",
    # Stages
    "Cloner",
    "GitCloner",
    "EvidenceFile",
    "EvidencePack",
    "extract_evidence",
    "Classifier",
    "HttpClassifier",
    "ValidatedComponent",
    "ValidatedEvidence",
    "validate_components",
]
