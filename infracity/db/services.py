"""
Database services for InfraCity.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ..enums import ACTIVE_JOB_STATUSES, JobStatus
from ..errors import PersistenceError, RegistrationError
from .models import (
    ERROR_MESSAGE_MAX_CHARS,
    SNIPPET_MAX_CHARS,
    AnalysisJobModel,
    DetectedComponentModel,
    EvidenceModel,
    RepoModel,
    TechDocModel,
)

logger = structlog.get_logger(__name__)

# Progress value a job starts with once claimed.
CLAIMED_PROGRESS = 1


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Registration:
    """Outcome of registering a repository for analysis."""

    repo: RepoModel
    job: AnalysisJobModel
    created_job: bool


class RepoService:
    """Repository registry: idempotent upsert keyed by URL plus job enqueueing."""

    def __init__(self, db: Session):
        self.db = db

    def get_repo(self, repo_id: int) -> Optional[RepoModel]:
        """Get a repository by ID."""
        return self.db.get(RepoModel, repo_id)

    def get_repo_by_url(self, url: str) -> Optional[RepoModel]:
        """Get a repository by its URL."""
        return self.db.execute(
            select(RepoModel).where(RepoModel.url == url)
        ).scalar_one_or_none()

    def register(
        self,
        url: Optional[str],
        owner: Optional[str],
        name: Optional[str],
        default_branch: Optional[str] = None,
    ) -> Registration:
        """Create or update a repository and schedule an analysis job.

        Re-registering an existing URL bumps ``updated_at`` and keeps the
        original identity. When the repository already has a pending or
        running job, that job is returned and no new one is created.

        Raises:
            RegistrationError: if url, owner or name is missing or blank
        """
        url = (url or "").strip()
        owner = (owner or "").strip()
        name = (name or "").strip()
        if not url or not owner or not name:
            raise RegistrationError("Missing required fields: url, owner, name")
        branch = (default_branch or "").strip() or "main"

        repo = self.get_repo_by_url(url)
        if repo is None:
            repo = RepoModel(url=url, owner=owner, name=name, default_branch=branch)
            self.db.add(repo)
            try:
                self.db.flush()
            except IntegrityError:
                # registered concurrently under the same URL
                self.db.rollback()
                repo = self.get_repo_by_url(url)
                if repo is None:
                    raise
                logger.info("Repository registered concurrently", repo_id=repo.id)
                repo.updated_at = _now()
        else:
            repo.updated_at = _now()

        active = self.db.execute(
            select(AnalysisJobModel)
            .where(AnalysisJobModel.repo_id == repo.id)
            .where(AnalysisJobModel.status.in_(ACTIVE_JOB_STATUSES))
            .order_by(AnalysisJobModel.created_at.desc(), AnalysisJobModel.id.desc())
            .limit(1)
        ).scalar_one_or_none()

        if active is not None:
            self.db.commit()
            logger.info(
                "Analysis already scheduled",
                repo_id=repo.id,
                job_id=active.id,
                status=active.status,
            )
            return Registration(repo=repo, job=active, created_job=False)

        job = AnalysisJobModel(
            repo_id=repo.id, status=JobStatus.PENDING.value, progress=0
        )
        self.db.add(job)
        self.db.commit()
        self.db.refresh(repo)
        self.db.refresh(job)
        return Registration(repo=repo, job=job, created_job=True)

    def list_repos_with_latest_job(self) -> List[Dict[str, Any]]:
        """List all repositories, newest first, each with its most recent job."""
        repos = self.db.execute(
            select(RepoModel).order_by(RepoModel.created_at.desc(), RepoModel.id.desc())
        ).scalars().all()

        latest: Dict[int, AnalysisJobModel] = {}
        jobs = self.db.execute(
            select(AnalysisJobModel).order_by(
                AnalysisJobModel.created_at.asc(), AnalysisJobModel.id.asc()
            )
        ).scalars()
        for job in jobs:
            latest[job.repo_id] = job

        rows = []
        for repo in repos:
            row = repo.to_dict()
            job = latest.get(repo.id)
            row.update(
                {
                    "latest_job_id": job.id if job else None,
                    "latest_job_status": job.status if job else None,
                    "latest_job_progress": job.progress if job else None,
                    "latest_job_error": job.error_message if job else None,
                    "latest_job_created_at": (
                        job.created_at.isoformat() if job and job.created_at else None
                    ),
                    "latest_job_finished_at": (
                        job.finished_at.isoformat() if job and job.finished_at else None
                    ),
                }
            )
            rows.append(row)
        return rows


class JobService:
    """Service for the analysis job state machine."""

    def __init__(self, db: Session):
        self.db = db

    def get_job(self, job_id: int) -> Optional[AnalysisJobModel]:
        """Get a job by ID."""
        return self.db.get(AnalysisJobModel, job_id)

    def get_jobs_for_repo(self, repo_id: int) -> List[AnalysisJobModel]:
        """Job history for a repository, newest first."""
        return list(
            self.db.execute(
                select(AnalysisJobModel)
                .where(AnalysisJobModel.repo_id == repo_id)
                .order_by(
                    AnalysisJobModel.created_at.desc(), AnalysisJobModel.id.desc()
                )
            ).scalars()
        )

    def next_pending(self) -> Optional[AnalysisJobModel]:
        """Oldest pending job, or None."""
        return self.db.execute(
            select(AnalysisJobModel)
            .where(AnalysisJobModel.status == JobStatus.PENDING.value)
            .order_by(AnalysisJobModel.created_at.asc(), AnalysisJobModel.id.asc())
            .limit(1)
        ).scalar_one_or_none()

    def claim(self, job_id: int) -> bool:
        """Atomically move a job from pending to running.

        Only updates the row if it is still pending, so two pollers can never
        both own the same job. Returns False when the job was claimed elsewhere.
        """
        result = self.db.execute(
            update(AnalysisJobModel)
            .where(AnalysisJobModel.id == job_id)
            .where(AnalysisJobModel.status == JobStatus.PENDING.value)
            .values(
                status=JobStatus.RUNNING.value,
                progress=CLAIMED_PROGRESS,
                error_message=None,
                finished_at=None,
                updated_at=_now(),
            )
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount == 1

    def claim_next_pending(self) -> Optional[AnalysisJobModel]:
        """Find the oldest pending job and claim it.

        Returns:
            The claimed job (now running), or None if nothing was claimable
        """
        job = self.next_pending()
        if job is None:
            return None
        if not self.claim(job.id):
            logger.debug("Job claimed by another worker", job_id=job.id)
            return None
        self.db.refresh(job)
        return job

    def update_progress(self, job_id: int, progress: int) -> Optional[AnalysisJobModel]:
        """Advance a running job's progress. Never moves progress backwards.

        Terminal jobs are returned unchanged.
        """
        job = self.get_job(job_id)
        if job is None:
            return None
        if JobStatus(job.status).is_terminal:
            return job
        progress = max(0, min(100, int(progress)))
        if progress > (job.progress or 0):
            job.progress = progress
            job.updated_at = _now()
            self.db.commit()
        return job

    def mark_succeeded(self, job_id: int) -> Optional[AnalysisJobModel]:
        """Terminal transition running -> succeeded."""
        job = self.get_job(job_id)
        if job is None:
            return None
        now = _now()
        job.status = JobStatus.SUCCEEDED.value
        job.progress = 100
        job.error_message = None
        job.updated_at = now
        job.finished_at = now
        self.db.commit()
        return job

    def mark_failed(self, job_id: int, error_message: str) -> Optional[AnalysisJobModel]:
        """Terminal transition to failed with a bounded error message."""
        job = self.get_job(job_id)
        if job is None:
            return None
        now = _now()
        job.status = JobStatus.FAILED.value
        job.error_message = (error_message or "Unknown error")[:ERROR_MESSAGE_MAX_CHARS]
        job.updated_at = now
        job.finished_at = now
        self.db.commit()
        return job


class ComponentService:
    """Service for a repository's detected components and their evidence."""

    def __init__(self, db: Session):
        self.db = db

    def get_components(self, repo_id: int) -> List[DetectedComponentModel]:
        """Components for a repository, most confident first."""
        return list(
            self.db.execute(
                select(DetectedComponentModel)
                .options(selectinload(DetectedComponentModel.evidence))
                .where(DetectedComponentModel.repo_id == repo_id)
                .order_by(
                    DetectedComponentModel.confidence.desc(),
                    DetectedComponentModel.created_at.desc(),
                    DetectedComponentModel.id.asc(),
                )
            ).scalars()
        )

    def replace_components(self, repo_id: int, components: Sequence[Any]) -> int:
        """Replace a repository's whole component set in one transaction.

        ``components`` are validated components exposing ``name``, ``type``,
        ``version``, ``confidence``, ``description`` and ``evidence`` (a list of
        items with ``file_path`` and ``snippet``).

        Returns:
            Number of components written

        Raises:
            PersistenceError: if any statement fails; nothing is changed
        """
        try:
            old_ids = select(DetectedComponentModel.id).where(
                DetectedComponentModel.repo_id == repo_id
            )
            self.db.execute(
                delete(EvidenceModel)
                .where(EvidenceModel.component_id.in_(old_ids))
                .execution_options(synchronize_session=False)
            )
            self.db.execute(
                delete(DetectedComponentModel)
                .where(DetectedComponentModel.repo_id == repo_id)
                .execution_options(synchronize_session=False)
            )

            for component in components:
                row = DetectedComponentModel(
                    repo_id=repo_id,
                    name=component.name,
                    type=getattr(component.type, "value", component.type),
                    version=component.version,
                    confidence=component.confidence,
                    description=component.description,
                )
                row.evidence = [
                    EvidenceModel(
                        file_path=item.file_path,
                        snippet=item.snippet[:SNIPPET_MAX_CHARS],
                    )
                    for item in component.evidence
                ]
                self.db.add(row)

            self.db.commit()
        except Exception as e:
            self.db.rollback()
            raise PersistenceError(
                f"Failed to replace components for repo {repo_id}: {e}", cause=e
            ) from e

        self.db.expire_all()
        return len(components)


class TechDocService:
    """Service for the technology documentation catalog."""

    def __init__(self, db: Session):
        self.db = db

    def bulk_upsert(self, docs: Iterable[Dict[str, Any]]) -> int:
        """Insert or update docs by name in a single transaction."""
        count = 0
        try:
            for doc in docs:
                name = str(doc.get("name") or "").strip()
                if not name:
                    raise ValueError("Every tech doc needs a name")
                existing = self.db.execute(
                    select(TechDocModel).where(TechDocModel.name == name)
                ).scalar_one_or_none()
                if existing is None:
                    existing = TechDocModel(name=name)
                    self.db.add(existing)
                existing.description = doc.get("description")
                existing.documentation_url = doc.get("url")
                existing.updated_at = _now()
                self.db.flush()
                count += 1
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return count

    def get_all(self) -> List[TechDocModel]:
        return list(self.db.execute(select(TechDocModel)).scalars())

    @staticmethod
    def match(
        component_name: str, docs: Sequence[TechDocModel]
    ) -> Optional[TechDocModel]:
        """Fuzzy-match a component name to a doc entry.

        Exact (case-insensitive, trimmed) matches win; otherwise either name may
        contain the other. Longer doc names are preferred among equals.
        """
        target = component_name.strip().lower()
        if not target:
            return None

        best: Optional[Tuple[bool, int, TechDocModel]] = None
        for doc in docs:
            doc_name = doc.name.strip().lower()
            if not doc_name:
                continue
            exact = doc_name == target
            if not (exact or doc_name in target or target in doc_name):
                continue
            key = (exact, len(doc_name), doc)
            if best is None or key[:2] > best[:2]:
                best = key
        return best[2] if best else None
