"""
InfraCity worker loop - processes pending analysis jobs.

Flow:
1. Poll: Find the oldest job with status='pending'
2. Claim: Atomically update status to 'running'
3. Execute: clone → extract evidence → classify → validate
4. Persist: Replace the repository's component set in one transaction
5. Complete: Mark the job succeeded, or failed with a bounded message
6. Clean up: Remove the job's temporary directory on every exit path

Only one job runs at a time per worker.
"""
from __future__ import annotations

import logging
import shutil
import signal
import tempfile
import time
from pathlib import Path
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..config import get_settings
from ..db.base import dispose_engine, get_session_local
from ..db.models import AnalysisJobModel
from ..db.services import ComponentService, JobService, RepoService
from ..errors import AnalysisError, RepositoryNotFoundError, format_job_error
from .executor import (
    PROGRESS_PERSISTED,
    PROGRESS_REPO_LOADED,
    AnalysisExecutor,
    ExecutionContext,
    get_executor,
)

logger = logging.getLogger(__name__)


class WorkerLoop:
    """Single-consumer poller for analysis jobs."""

    def __init__(
        self,
        executor: Optional[AnalysisExecutor] = None,
        session_factory: Optional[Callable[[], Session]] = None,
        poll_interval: Optional[float] = None,
        work_dir: Optional[str] = None,
    ):
        """Initialize worker loop.

        Args:
            executor: Runs the analysis stages (default: git + HTTP classifier)
            session_factory: Creates database sessions (default: configured engine)
            poll_interval: Seconds to sleep when idle (default from config)
            work_dir: Parent directory for temporary clones
        """
        self.settings = get_settings()
        self.executor = executor or get_executor("git", self.settings)
        self.session_factory = session_factory or get_session_local()
        self.poll_interval = (
            poll_interval if poll_interval is not None else self.settings.worker_poll_interval
        )
        self.work_dir = work_dir or self.settings.work_dir
        self.running = False

        logger.info(
            f"Worker initialized: executor={self.executor.name}, "
            f"poll_interval={self.poll_interval}s"
        )

    def start(self) -> None:
        """Start the worker loop. Runs until stopped."""
        self.running = True
        logger.info("Worker starting...")

        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

        try:
            while self.running:
                try:
                    jobs_processed = self.run_once()
                    if jobs_processed == 0:
                        time.sleep(self.poll_interval)
                except Exception as e:
                    logger.exception(f"Error in worker loop: {e}")
                    # Sleep on error to avoid tight loop
                    time.sleep(self.poll_interval)
        finally:
            logger.info("Worker stopped")

    def stop(self) -> None:
        """Signal the worker to stop after the current job."""
        logger.info("Worker stopping...")
        self.running = False

    def _signal_handler(self, signum, frame) -> None:
        logger.info(f"Received signal {signum}, shutting down...")
        self.stop()

    def run_once(self) -> int:
        """Claim and fully process at most one pending job.

        Returns:
            Number of jobs processed (0 or 1)
        """
        db = self.session_factory()
        try:
            job = JobService(db).claim_next_pending()
            if job is None:
                return 0

            logger.info(f"Claimed job {job.id} for repo {job.repo_id}")
            self._process_job(db, job)
            return 1
        finally:
            db.close()

    def _process_job(self, db: Session, job: AnalysisJobModel) -> None:
        """Run a claimed job to a terminal state.

        Every failure becomes a ``failed`` job; the temporary directory is
        removed whatever happens.
        """
        job_id, repo_id = job.id, job.repo_id
        jobs = JobService(db)
        workdir: Optional[Path] = None

        try:
            repo = RepoService(db).get_repo(repo_id)
            if repo is None:
                raise RepositoryNotFoundError(f"Repository {repo_id} does not exist")
            jobs.update_progress(job_id, PROGRESS_REPO_LOADED)

            workdir = Path(tempfile.mkdtemp(prefix=f"infracity_job{job_id}_", dir=self.work_dir))
            context = ExecutionContext(
                job_id=job_id,
                repo_id=repo_id,
                repo_url=repo.url,
                default_branch=repo.default_branch or "main",
                workdir=workdir,
            )

            logger.info(f"Executing job {job_id} with {self.executor.name} executor")
            result = self.executor.execute(
                context, lambda progress: jobs.update_progress(job_id, progress)
            )

            written = ComponentService(db).replace_components(repo_id, result.components)
            jobs.update_progress(job_id, PROGRESS_PERSISTED)
            jobs.mark_succeeded(job_id)
            logger.info(
                f"Job {job_id} succeeded: {written} components persisted "
                f"from {len(result.dependency_names)} declared dependencies "
                f"in {result.duration_seconds or 0:.1f}s"
            )

        except AnalysisError as e:
            logger.error(f"Job {job_id} failed: {e.kind}: {e}")
            self._handle_failure(db, job_id, e)
        except Exception as e:
            logger.exception(f"Unexpected error processing job {job_id}: {e}")
            self._handle_failure(db, job_id, e)
        finally:
            if workdir is not None:
                shutil.rmtree(workdir, ignore_errors=True)

    def _handle_failure(self, db: Session, job_id: int, error: BaseException) -> None:
        """Record a terminal failure for a job."""
        db.rollback()
        JobService(db).mark_failed(job_id, format_job_error(error))


def run_worker(
    executor_type: str = "git",
    poll_interval: Optional[float] = None,
) -> None:
    """Run the worker loop.

    Args:
        executor_type: Type of executor to use
        poll_interval: Seconds between poll cycles when idle
    """
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    worker = WorkerLoop(
        executor=get_executor(executor_type, settings),
        poll_interval=poll_interval,
    )
    try:
        worker.start()
    finally:
        dispose_engine()
