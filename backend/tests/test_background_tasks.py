"""
Tests for admin scrape jobs: job records, progress mirroring,
cancellation and the worker entry point.
"""

import pytest
from datetime import datetime, timedelta

from eduvox.models.models import ScrapeJob, PathwayTemplate
from eduvox.schemas.scraping import ScrapeProgress
from eduvox.services.background_tasks import (
    apply_progress,
    cancel_job,
    cleanup_stale_jobs,
    create_scrape_job,
    get_active_job,
    job_to_dict,
    run_scrape_job,
)
from eduvox.services.pathway_generator import PathwayGenerator
from tests.mocks import FakeTextGenerator


PATHWAY_OPTIONS = {
    "countries": ["Canada"],
    "courses": ["Computer Science", "Data Science"],
    "academic_levels": ["Master"],
    "budget_ranges": ["Medium"],
    "nationalities": ["Indian"],
}


@pytest.fixture
def session_factory(db):
    """Hand the worker the test session; closing it must not end the test transaction"""
    class _Shared:
        def __getattr__(self, name):
            return getattr(db, name)

        def close(self):
            pass

    return lambda: _Shared()


class TestJobRecords:
    """Tests for job creation and progress"""

    @pytest.mark.unit
    def test_create_job(self, db, admin_user):
        """Test a new job is pending with zeroed counters"""
        job = create_scrape_job(db, "pathways", requested_by=admin_user.id, options={"limit": 5})

        assert job.status == "pending"
        assert job.options == {"limit": 5}
        assert get_active_job(db, "pathways").id == job.id

    @pytest.mark.unit
    def test_unknown_kind_rejected(self, db):
        """Test job kinds are validated"""
        with pytest.raises(ValueError):
            create_scrape_job(db, "planets")

    @pytest.mark.unit
    def test_apply_progress(self, db):
        """Test progress events are mirrored onto the row"""
        job = create_scrape_job(db, "universities")

        apply_progress(db, job.id, ScrapeProgress(status="running", total=4, completed=2, successful=1, skipped=1,
                                                  current_item="Duke University"))
        db.refresh(job)
        assert job.status == "running"
        assert job.started_at is not None
        assert job_to_dict(job)["progress_percent"] == 50.0

        apply_progress(db, job.id, ScrapeProgress(status="completed", total=4, completed=4, successful=3, skipped=1))
        db.refresh(job)
        assert job.status == "completed"
        assert job.completed_at is not None

    @pytest.mark.unit
    def test_cancel(self, db):
        """Test cancellation of running and finished jobs"""
        job = create_scrape_job(db, "universities")

        assert cancel_job(db, job.id) is True
        assert cancel_job(db, job.id) is False
        assert cancel_job(db, "missing") is False

    @pytest.mark.unit
    def test_cancelled_job_ignores_late_progress(self, db):
        """Test an in-flight item finishing does not undo a cancel"""
        job = create_scrape_job(db, "pathways")
        cancel_job(db, job.id)

        apply_progress(db, job.id, ScrapeProgress(status="running", total=2, completed=1, successful=1))

        db.refresh(job)
        assert job.status == "cancelled"

    @pytest.mark.unit
    def test_cleanup_stale_jobs(self, db):
        """Test old unfinished jobs are failed"""
        old = create_scrape_job(db, "pathways")
        old.created_at = datetime.utcnow() - timedelta(hours=30)
        db.commit()
        fresh = create_scrape_job(db, "universities")

        assert cleanup_stale_jobs(db, max_age_hours=24) == 1
        db.refresh(old)
        db.refresh(fresh)
        assert old.status == "failed"
        assert fresh.status == "pending"


class TestRunScrapeJob:
    """Tests for the worker entry point"""

    @pytest.mark.integration
    def test_pathway_job_runs_to_completion(self, db, session_factory, fake_generator):
        """Test the worker drains the scrape and records the result"""
        job = create_scrape_job(db, "pathways", options=PATHWAY_OPTIONS)

        run_scrape_job(job.id, generator=fake_generator, session_factory=session_factory, sleep=lambda s: None)

        db.refresh(job)
        assert job.status == "completed"
        assert job.successful == 2
        assert db.query(PathwayTemplate).count() == 2

    @pytest.mark.integration
    def test_limit_option_caps_profiles(self, db, session_factory, fake_generator):
        """Test the limit option"""
        job = create_scrape_job(db, "pathways", options={**PATHWAY_OPTIONS, "limit": 1})

        run_scrape_job(job.id, generator=fake_generator, session_factory=session_factory, sleep=lambda s: None)

        db.refresh(job)
        assert job.total == 1

    @pytest.mark.integration
    def test_cancelled_before_start_does_nothing(self, db, session_factory, fake_generator, fake_text_generator):
        """Test a job cancelled while queued never runs"""
        job = create_scrape_job(db, "pathways", options=PATHWAY_OPTIONS)
        cancel_job(db, job.id)

        run_scrape_job(job.id, generator=fake_generator, session_factory=session_factory)

        assert fake_text_generator.call_count == 0

    @pytest.mark.integration
    def test_item_failures_do_not_fail_the_job(self, db, session_factory):
        """Test per-item errors are recorded on a completed job"""
        job = create_scrape_job(db, "pathways", options=PATHWAY_OPTIONS)
        generator = PathwayGenerator(text_generator=FakeTextGenerator(error=RuntimeError("quota exceeded")))

        run_scrape_job(job.id, generator=generator, session_factory=session_factory, sleep=lambda s: None)

        db.refresh(job)
        assert job.status == "completed"
        assert job.failed == 2
        assert job.errors[0]["error"] == "quota exceeded"

    @pytest.mark.integration
    def test_university_job_uses_places_client(self, db, session_factory):
        """Test the universities job adds rows from the seed list"""
        class NoPlaces:
            def find_university(self, name, city, country):
                return None

        job = create_scrape_job(db, "universities")

        run_scrape_job(job.id, places=NoPlaces(), session_factory=session_factory, sleep=lambda s: None)

        db.refresh(job)
        assert job.status == "completed"
        assert job.successful == job.total
        assert db.query(ScrapeJob).filter(ScrapeJob.id == job.id).one().total > 30
