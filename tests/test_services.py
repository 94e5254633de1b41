"""Tests for the database services."""

from types import SimpleNamespace
from unittest.mock import patch

import pytest
from sqlalchemy import func, select

from infracity.db.models import (
    AnalysisJobModel,
    DetectedComponentModel,
    EvidenceModel,
    RepoModel,
)
from infracity.db.services import ComponentService, JobService, RepoService, TechDocService
from infracity.enums import ComponentType
from infracity.errors import PersistenceError, RegistrationError

URL = "https://github.com/acme/widgets"


def count(db, model) -> int:
    return db.execute(select(func.count()).select_from(model)).scalar_one()


class TestRegister:
    """Repository registry behavior."""

    def test_creates_repo_and_pending_job(self, db):
        registration = RepoService(db).register(URL, "acme", "widgets")

        assert registration.created_job is True
        assert registration.repo.default_branch == "main"
        assert registration.job.status == "pending"
        assert registration.job.progress == 0
        assert registration.job.finished_at is None

    @pytest.mark.parametrize(
        "url,owner,name",
        [(None, "acme", "widgets"), (URL, "", "widgets"), (URL, "acme", "   ")],
    )
    def test_missing_fields_rejected_without_job(self, db, url, owner, name):
        with pytest.raises(RegistrationError, match="Missing required fields: url, owner, name"):
            RepoService(db).register(url, owner, name)

        assert count(db, RepoModel) == 0
        assert count(db, AnalysisJobModel) == 0

    def test_reregistration_updates_existing_repo(self, db, session_factory):
        service = RepoService(db)
        first = service.register(URL, "acme", "widgets")
        repo_id = first.repo.id
        JobService(db).mark_failed(first.job.id, "CloneFailed: nope")

        check = session_factory()
        before = check.get(RepoModel, repo_id).updated_at
        check.close()

        second = service.register(URL, "acme", "widgets")

        assert second.repo.id == repo_id
        assert second.created_job is True
        assert second.job.id != first.job.id
        assert count(db, RepoModel) == 1

        check = session_factory()
        assert check.get(RepoModel, repo_id).updated_at > before
        check.close()

    def test_active_job_is_reused(self, db):
        service = RepoService(db)
        first = service.register(URL, "acme", "widgets")
        second = service.register(URL, "acme", "widgets")

        assert second.created_job is False
        assert second.job.id == first.job.id
        assert count(db, AnalysisJobModel) == 1

        JobService(db).claim(first.job.id)
        third = service.register(URL, "acme", "widgets")
        assert third.created_job is False
        assert third.job.id == first.job.id

    def test_concurrent_registration_reuses_existing_repo(self, db):
        """A lookup that misses a row inserted by another request must not fail the call."""
        service = RepoService(db)
        first = service.register(URL, "acme", "widgets")
        lookup = service.get_repo_by_url
        calls = []

        def stale_then_real(url):
            calls.append(url)
            return None if len(calls) == 1 else lookup(url)

        with patch.object(service, "get_repo_by_url", side_effect=stale_then_real):
            second = service.register(URL, "acme", "widgets")

        assert len(calls) == 2
        assert second.repo.id == first.repo.id
        assert second.created_job is False
        assert second.job.id == first.job.id
        assert count(db, RepoModel) == 1
        assert count(db, AnalysisJobModel) == 1

    def test_list_includes_latest_job(self, db):
        service = RepoService(db)
        older = service.register("https://github.com/acme/old", "acme", "old")
        newer = service.register(URL, "acme", "widgets")
        JobService(db).mark_failed(older.job.id, "ExtractionFailed: empty")

        rows = service.list_repos_with_latest_job()

        assert [row["id"] for row in rows] == [newer.repo.id, older.repo.id]
        assert rows[0]["latest_job_status"] == "pending"
        assert rows[1]["latest_job_status"] == "failed"
        assert rows[1]["latest_job_error"] == "ExtractionFailed: empty"
        assert rows[1]["latest_job_finished_at"] is not None


class TestJobStateMachine:
    def test_claim_is_exclusive(self, db):
        job = RepoService(db).register(URL, "acme", "widgets").job
        jobs = JobService(db)

        assert jobs.claim(job.id) is True
        assert jobs.claim(job.id) is False

        db.refresh(job)
        assert job.status == "running"
        assert job.progress == 1

    def test_claim_next_pending_takes_oldest(self, db):
        service = RepoService(db)
        first = service.register("https://github.com/acme/a", "acme", "a").job
        service.register("https://github.com/acme/b", "acme", "b")

        claimed = JobService(db).claim_next_pending()
        assert claimed.id == first.id
        assert claimed.status == "running"

    def test_claim_next_pending_when_empty(self, db):
        assert JobService(db).claim_next_pending() is None

    def test_progress_never_moves_backwards(self, db):
        job = RepoService(db).register(URL, "acme", "widgets").job
        jobs = JobService(db)
        jobs.claim(job.id)

        jobs.update_progress(job.id, 50)
        jobs.update_progress(job.id, 30)
        assert jobs.get_job(job.id).progress == 50

        jobs.update_progress(job.id, 250)
        assert jobs.get_job(job.id).progress == 100

    def test_progress_ignored_after_terminal_state(self, db):
        service = RepoService(db)
        ok = service.register("https://github.com/acme/a", "acme", "a").job
        bad = service.register("https://github.com/acme/b", "acme", "b").job
        jobs = JobService(db)
        jobs.claim(bad.id)
        jobs.update_progress(bad.id, 30)
        jobs.mark_failed(bad.id, "CloneFailed: nope")
        jobs.mark_succeeded(ok.id)
        failed_at = jobs.get_job(bad.id).updated_at

        jobs.update_progress(bad.id, 90)
        jobs.update_progress(ok.id, 50)

        bad, ok = jobs.get_job(bad.id), jobs.get_job(ok.id)
        assert (bad.status, bad.progress) == ("failed", 30)
        assert bad.updated_at == failed_at
        assert (ok.status, ok.progress) == ("succeeded", 100)

    def test_terminal_states_set_finished_at(self, db):
        service = RepoService(db)
        ok = service.register("https://github.com/acme/a", "acme", "a").job
        bad = service.register("https://github.com/acme/b", "acme", "b").job
        jobs = JobService(db)

        jobs.mark_succeeded(ok.id)
        jobs.mark_failed(bad.id, "x" * 6000)

        ok, bad = jobs.get_job(ok.id), jobs.get_job(bad.id)
        assert (ok.status, ok.progress) == ("succeeded", 100)
        assert ok.finished_at is not None
        assert bad.status == "failed"
        assert bad.finished_at is not None
        assert len(bad.error_message) == 5000


class TestReplaceComponents:
    """Transactional replacement of a repository's component set."""

    def test_replaces_whole_set(self, db, make_component):
        repo = RepoService(db).register(URL, "acme", "widgets").repo
        service = ComponentService(db)

        service.replace_components(
            repo.id, [make_component("a"), make_component("b"), make_component("c")]
        )
        written = service.replace_components(
            repo.id, [make_component("zod", ComponentType.VALIDATION, 0.8)]
        )

        assert written == 1
        components = service.get_components(repo.id)
        assert [c.name for c in components] == ["zod"]
        assert components[0].type == "validation"
        assert count(db, EvidenceModel) == 1

    def test_ordering_by_confidence(self, db, make_component):
        repo = RepoService(db).register(URL, "acme", "widgets").repo
        service = ComponentService(db)
        service.replace_components(
            repo.id,
            [make_component("low", confidence=0.2), make_component("high", confidence=0.99)],
        )

        assert [c.name for c in service.get_components(repo.id)] == ["high", "low"]

    def test_failure_rolls_back_and_keeps_previous_set(self, db, make_component):
        repo = RepoService(db).register(URL, "acme", "widgets").repo
        service = ComponentService(db)
        service.replace_components(repo.id, [make_component("react")])

        broken = SimpleNamespace(
            name="bad",
            type=ComponentType.LIBRARY,
            version=None,
            confidence=0.5,
            description=None,
            evidence=[SimpleNamespace(file_path=None, snippet="x")],
        )
        with pytest.raises(PersistenceError) as excinfo:
            service.replace_components(repo.id, [make_component("vue"), broken])

        assert excinfo.value.kind == "PersistenceFailed"
        assert [c.name for c in service.get_components(repo.id)] == ["react"]
        assert count(db, DetectedComponentModel) == 1

    def test_snippets_are_capped(self, db, make_component):
        repo = RepoService(db).register(URL, "acme", "widgets").repo
        service = ComponentService(db)
        service.replace_components(repo.id, [make_component("big", snippet="s" * 20_000)])

        [component] = service.get_components(repo.id)
        assert len(component.evidence[0].snippet) == 10_000


class TestTechDocs:
    def test_bulk_upsert_by_name(self, db):
        service = TechDocService(db)
        assert service.bulk_upsert(
            [
                {"name": "React", "description": "UI", "url": "https://react.dev"},
                {"name": "Zod", "description": "Schemas", "url": "https://zod.dev"},
            ]
        ) == 2
        service.bulk_upsert([{"name": "React", "description": "Updated", "url": None}])

        docs = {doc.name: doc for doc in service.get_all()}
        assert len(docs) == 2
        assert docs["React"].description == "Updated"

    def test_bulk_upsert_is_all_or_nothing(self, db):
        service = TechDocService(db)
        with pytest.raises(ValueError):
            service.bulk_upsert([{"name": "React"}, {"description": "no name"}])
        assert service.get_all() == []

    def test_match_prefers_exact_then_longest(self, db):
        service = TechDocService(db)
        service.bulk_upsert(
            [
                {"name": "React", "url": "https://react.dev"},
                {"name": "React Router", "url": "https://reactrouter.com"},
                {"name": "Next.js", "url": "https://nextjs.org"},
            ]
        )
        docs = service.get_all()

        assert TechDocService.match(" react ", docs).name == "React"
        assert TechDocService.match("react-router-dom", docs).name == "React"
        assert TechDocService.match("React Router DOM", docs).name == "React Router"
        assert TechDocService.match("next", docs).name == "Next.js"
        assert TechDocService.match("vue", docs) is None
