"""
Analysis executor for the InfraCity worker.

Runs the work of one analysis job inside a temporary directory owned by
the caller: clone → extract evidence → classify → validate. Persistence and
job status transitions stay in the worker loop.

Design: the cloner and classifier are injected so the loop never depends
on git or the network directly.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..config import Settings, get_settings
from ..errors import ExtractionError
from .classifier import Classifier, HttpClassifier
from .cloner import Cloner, GitCloner, redact_url
from .evidence import MAX_EVIDENCE_FILES, extract_evidence
from .validator import ValidatedComponent, summarize, validate_components

logger = logging.getLogger(__name__)

# Progress checkpoints (percent), reported in order.
PROGRESS_REPO_LOADED = 5
PROGRESS_CLONED = 15
PROGRESS_EXTRACTED = 30
PROGRESS_CLASSIFIED = 50
PROGRESS_VALIDATED = 75
PROGRESS_PERSISTED = 90

ProgressCallback = Callable[[int], Any]


@dataclass
class ExecutionContext:
    """Context passed to the executor for a job run."""

    job_id: int
    repo_id: int
    repo_url: str
    default_branch: str
    workdir: Path

    @property
    def clone_dir(self) -> Path:
        return self.workdir / "repo"


@dataclass
class ExecutionResult:
    """Validated output of a job run, ready to persist."""

    components: List[ValidatedComponent] = field(default_factory=list)
    found_paths: List[str] = field(default_factory=list)
    dependency_names: List[str] = field(default_factory=list)

    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None

    telemetry: Dict[str, Any] = field(default_factory=dict)


class AnalysisExecutor:
    """Clone, extract, classify and validate a repository."""

    name = "repo-analysis"
    version = "1.0.0"

    def __init__(
        self,
        cloner: Cloner,
        classifier: Classifier,
        max_files: int = MAX_EVIDENCE_FILES,
    ):
        self.cloner = cloner
        self.classifier = classifier
        self.max_files = max_files

    def execute(
        self,
        context: ExecutionContext,
        report_progress: Optional[ProgressCallback] = None,
    ) -> ExecutionResult:
        """Execute the analysis stages for one job.

        Args:
            context: Job, repository and working directory
            report_progress: Called with each progress checkpoint

        Returns:
            ExecutionResult with validated components

        Raises:
            CloneError, ExtractionError, ClassificationError
        """
        report = report_progress or (lambda _progress: None)
        started_at = datetime.now(timezone.utc)
        safe_url = redact_url(context.repo_url)

        self.cloner(context.repo_url, context.default_branch, context.clone_dir)
        report(PROGRESS_CLONED)

        pack = extract_evidence(context.clone_dir, max_files=self.max_files)
        if pack.is_empty:
            raise ExtractionError(
                f"No recognizable manifest, config or documentation files found in {safe_url}"
            )
        report(PROGRESS_EXTRACTED)

        raw_components = self.classifier.classify(pack)
        report(PROGRESS_CLASSIFIED)

        components = validate_components(raw_components, pack.found_paths)
        report(PROGRESS_VALIDATED)
        if not components:
            logger.warning(f"Job {context.job_id}: classifier produced no usable components")

        completed_at = datetime.now(timezone.utc)
        return ExecutionResult(
            components=components,
            found_paths=list(pack.found_paths),
            dependency_names=list(pack.all_dependency_names),
            started_at=started_at,
            completed_at=completed_at,
            duration_seconds=(completed_at - started_at).total_seconds(),
            telemetry={
                "executor": self.name,
                "executor_version": self.version,
                "files_selected": len(pack.files),
                "raw_components": len(raw_components),
                "components_by_type": summarize(components),
            },
        )


def get_executor(
    executor_type: str = "git", settings: Optional[Settings] = None
) -> AnalysisExecutor:
    """Factory function to get an executor by type.

    Raises:
        ValueError: If executor type is not supported
    """
    settings = settings or get_settings()
    if executor_type == "git":
        return AnalysisExecutor(
            cloner=GitCloner.from_settings(settings),
            classifier=HttpClassifier.from_settings(settings),
        )
    raise ValueError(f"Unsupported executor type: {executor_type}. Supported: git")
