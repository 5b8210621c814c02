from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from applydesk.db import Job, JobNotification
from applydesk.services import job_scanner, notifications
from applydesk.services.applications import create_application
from applydesk.services.job_scanner import JobScanner, ScanInProgressError
from applydesk.tools.jsearch import JobListing, JobSearchError, JobSearchPage, JobSearchParams

pytestmark = pytest.mark.integration


def listing(job_id: str, title: str = "Backend Engineer", company: str = "Acme", **fields) -> JobListing:
    values = {"description": "Python and PostgreSQL services", "location": "Berlin, DE"}
    values.update(fields)
    return JobListing(source_job_id=job_id, source="jsearch", title=title, company=company, **values)


class FakeSearch:
    def __init__(self, jobs: list[JobListing] | None = None, error: str | None = None):
        self.jobs = jobs or []
        self.error = error
        self.calls: list[JobSearchParams] = []

    def search_jobs(self, params: JobSearchParams) -> JobSearchPage:
        self.calls.append(params)
        if self.error:
            raise JobSearchError(self.error)
        return JobSearchPage(
            jobs=self.jobs, total_results=len(self.jobs), current_page=1, has_more=False, source="fake"
        )


@pytest.fixture
def seeker(db: Session, make_user):
    user = make_user()
    user.profile.skills = [{"name": "Python"}, {"name": "PostgreSQL"}]
    user.profile.job_titles = ["Backend Engineer"]
    settings = notifications.get_or_create_settings(db, user.id)
    settings.job_titles = ["Backend Engineer"]
    db.commit()
    return user


def test_scan_filters_scores_and_notifies(db: Session, seeker, make_job) -> None:
    make_job(seeker, title="Data Engineer", company="Hooli")
    settings = notifications.get_or_create_settings(db, seeker.id)
    settings.excluded_companies = ["globex"]
    db.commit()
    search = FakeSearch(
        [
            listing("j1", description="Python and PostgreSQL services with a long description"),
            listing("j2", description="Python"),
            listing("j3", company="Globex Corp"),
            listing("j4", title="Office Manager", company="Initrode", description="Run the office"),
            listing("j5", title="Data Engineer", company="Hooli"),
        ]
    )

    result = JobScanner(search).scan_user(db, seeker.id)

    assert result.jobs_found == 4
    assert result.skipped == 3
    assert result.jobs_saved == 1
    assert result.notifications == 1
    assert result.applications == 0
    assert result.message.startswith("Found 4 jobs, saved 1")

    saved = db.query(Job).filter(Job.source_job_id == "j1").one()
    assert saved.processed is True
    assert saved.match_analysis["source"] == "keywords"
    assert db.query(Job).filter(Job.company == "Initrode").count() == 0
    assert db.query(JobNotification).one().job_id == saved.id
    assert notifications.get_or_create_settings(db, seeker.id).last_scan_at is not None

    assert [call.query for call in search.calls] == ["Backend Engineer"]
    assert search.calls[0].location is None
    assert search.calls[0].date_posted == "week"


def test_scan_searches_each_location(db: Session, seeker) -> None:
    settings = notifications.get_or_create_settings(db, seeker.id)
    settings.locations = ["Remote", "Berlin, Germany", "Paris"]
    db.commit()
    search = FakeSearch(
        [
            listing("r1", company="Remoteco", location="Anywhere", is_remote=True),
            listing("b1", company="Berlinco", location="Berlin, DE"),
            listing("p1", company="Parisco", location="Paris, FR"),
        ]
    )

    result = JobScanner(search).scan_user(db, seeker.id)

    assert [call.location for call in search.calls] == [None, "Berlin, Germany"]
    # Remote search keeps only remote jobs, the Berlin search only Berlin jobs
    assert result.jobs_found == 2
    assert {job.company for job in db.query(Job).all()} == {"Remoteco", "Berlinco"}


def test_should_skip_reasons(db: Session, seeker, make_job) -> None:
    settings = notifications.get_or_create_settings(db, seeker.id)
    settings.excluded_keywords = ["unpaid"]
    settings.require_salary_range = True
    db.commit()
    make_job(seeker, source_job_id="seen")
    create_application(db, seeker.id, job_title="Platform Engineer", company="Umbrella")

    def reason(job: JobListing) -> str | None:
        return job_scanner.should_skip(db, seeker.id, job, settings)

    assert reason(listing("seen", title="Other", company="Other")) == "already seen"
    assert reason(listing("x1", title="Platform Engineer", company="Umbrella")) == "already applied"
    assert reason(listing("x2", company="Stark", description="Unpaid internship")) == "excluded keyword"
    assert reason(listing("x3", company="Stark")) == "no salary range"
    assert reason(listing("x4", company="Stark", salary="USD 90,000 - 120,000")) is None


def test_deduplicate_keeps_longest_description() -> None:
    jobs = job_scanner.deduplicate(
        [
            listing("a", description="short"),
            listing("b", title="BACKEND ENGINEER", company="acme", description="a much longer description"),
            listing("c", company="Other"),
        ]
    )
    assert [job.source_job_id for job in jobs] == ["b", "c"]


def test_scan_without_titles_returns_message(db: Session, make_user) -> None:
    user = make_user()
    search = FakeSearch([listing("j1")])

    result = JobScanner(search).scan_user(db, user.id)

    assert "No job titles" in result.message
    assert search.calls == []


def test_scan_raises_when_every_search_fails(db: Session, seeker) -> None:
    with pytest.raises(JobSearchError, match="All 1 searches failed"):
        JobScanner(FakeSearch(error="quota exhausted")).scan_user(db, seeker.id)
    assert not job_scanner.is_scanning(seeker.id)


def test_concurrent_scan_is_rejected(db: Session, seeker) -> None:
    with job_scanner._scan_guard(seeker.id):
        assert job_scanner.is_scanning(seeker.id)
        with pytest.raises(ScanInProgressError):
            JobScanner(FakeSearch()).scan_user(db, seeker.id)
    assert not job_scanner.is_scanning(seeker.id)


def test_scan_enabled_users_counts_failures(db: Session, seeker, make_user, monkeypatch) -> None:
    other = make_user()
    for user in (seeker, other):
        notifications.get_or_create_settings(db, user.id).is_enabled = True
    db.commit()
    monkeypatch.setattr(job_scanner, "get_job_search_service", lambda: FakeSearch([listing("j1")]))

    totals = job_scanner.scan_enabled_users(db)

    # The second user has no titles, which is a finished scan with nothing saved
    assert totals == {"users": 2, "failed": 0, "jobs_saved": 1, "applications": 0}
