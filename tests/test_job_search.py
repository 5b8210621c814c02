from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import httpx
import pytest

from applydesk.tools import tavily_search
from applydesk.tools.job_search import JobSearchService
from applydesk.tools.jsearch import (
    JobListing,
    JobSearchError,
    JobSearchPage,
    JobSearchParams,
    JSearchClient,
    detect_job_source,
    format_location,
    format_salary,
)

pytestmark = pytest.mark.unit

RAW_JOB = {
    "job_id": "abc123",
    "employer_name": "Acme",
    "job_title": "Backend Engineer",
    "job_apply_link": "https://boards.greenhouse.io/acme/jobs/1",
    "job_description": "Python and PostgreSQL",
    "job_employment_type": "FULLTIME",
    "job_is_remote": True,
    "job_posted_at_datetime_utc": "2026-09-01T12:00:00.000Z",
    "job_city": "Berlin",
    "job_state": "BE",
    "job_country": "DE",
    "job_min_salary": 70000,
    "job_max_salary": 90000,
    "job_highlights": {"Qualifications": ["3+ years Python", "SQL"]},
}


def make_client(handler, **kwargs) -> JSearchClient:
    return JSearchClient("test-key", base_url="https://jsearch.test", transport=httpx.MockTransport(handler), **kwargs)


def test_search_sends_credentials_and_normalizes_listings() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"status": "OK", "data": [RAW_JOB]})

    page = make_client(handler).search_jobs(
        JobSearchParams(query="backend engineer", location="Berlin", employment_types=["FULL_TIME", "CONTRACT"])
    )

    request = seen[0]
    assert request.url.path == "/search"
    assert request.headers["X-RapidAPI-Key"] == "test-key"
    assert request.url.params["query"] == "backend engineer in Berlin"
    assert request.url.params["employment_types"] == "FULLTIME,CONTRACTOR"
    assert "country" not in request.url.params

    assert page.source == "jsearch"
    assert page.has_more is False
    job = page.jobs[0]
    assert job.source == "greenhouse"
    assert job.location == "Berlin, BE"
    assert job.salary == "$70,000 - $90,000"
    assert job.requirements == ["3+ years Python", "SQL"]
    assert job.posted_at is not None and job.posted_at.tzinfo is None


def test_http_error_becomes_job_search_error() -> None:
    client = make_client(lambda request: httpx.Response(429, text="Too many requests"))
    with pytest.raises(JobSearchError, match="429"):
        client.search_jobs(JobSearchParams(query="python"))


def test_missing_api_key_fails_without_a_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    client = JSearchClient("", base_url="https://jsearch.test", transport=httpx.MockTransport(handler))
    with pytest.raises(JobSearchError, match="JSEARCH_API_KEY"):
        client.search_jobs(JobSearchParams(query="python"))


def test_request_budget_is_enforced_per_minute() -> None:
    client = make_client(lambda request: httpx.Response(200, json={"data": []}), requests_per_minute=2)
    client.search_jobs(JobSearchParams(query="a"))
    client.search_jobs(JobSearchParams(query="b"))
    with pytest.raises(JobSearchError, match="rate limit"):
        client.search_jobs(JobSearchParams(query="c"))


def test_request_budget_holds_across_threads() -> None:
    client = make_client(lambda request: httpx.Response(200, json={"data": []}), requests_per_minute=50)
    start = threading.Barrier(8)

    def burst() -> int:
        start.wait()
        allowed = 0
        for _ in range(25):
            try:
                client._check_rate_limit()
            except JobSearchError:
                continue
            allowed += 1
        return allowed

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = [pool.submit(burst) for _ in range(8)]

    assert sum(r.result() for r in results) == 50
    assert len(client._recent) == 50


def test_job_details_are_cached() -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        assert request.url.params["job_id"] == "abc123"
        return httpx.Response(200, json={"data": [RAW_JOB]})

    client = make_client(handler)
    first = client.get_job_details("abc123")
    second = client.get_job_details("abc123")

    assert first is not None and first.title == "Backend Engineer"
    assert second == first
    assert calls["n"] == 1


def test_formatting_helpers() -> None:
    assert format_location(None, None, "DE") == "DE"
    assert format_salary(50000, None) == "From $50,000"
    assert format_salary(None, 60000) == "Up to $60,000"
    assert format_salary(None, None) is None
    assert detect_job_source("https://job-boards.greenhouse.io/x") == "GREENHOUSE"
    assert detect_job_source("https://jobs.lever.co/x") == "LEVER"
    assert detect_job_source("https://example.com") == "OTHER"


def test_service_falls_back_to_backup_source() -> None:
    backup_page = JobSearchPage(
        jobs=[JobListing(source_job_id="t1", source="tavily", title="Engineer", company="Initech")],
        total_results=1,
        current_page=1,
        has_more=False,
        source="tavily",
    )
    primary = make_client(lambda request: httpx.Response(500, text="boom"))
    service = JobSearchService(primary=primary, backup=lambda params: backup_page)

    assert service.search_jobs(JobSearchParams(query="engineer")).source == "tavily"


def test_service_reports_both_failures() -> None:
    def backup(params: JobSearchParams) -> JobSearchPage:
        raise JobSearchError("TAVILY_API_KEY not set")

    service = JobSearchService(primary=make_client(lambda request: httpx.Response(503)), backup=backup)
    with pytest.raises(JobSearchError, match="All job sources failed"):
        service.search_jobs(JobSearchParams(query="engineer"))


def test_tavily_results_are_mapped_to_listings(monkeypatch: pytest.MonkeyPatch) -> None:
    class FakeTavily:
        def search(self, **kwargs):
            assert kwargs["query"] == "data engineer jobs in Remote"
            return {
                "results": [
                    {
                        "url": "https://jobs.lever.co/initech/1",
                        "title": "Data Engineer at Initech",
                        "content": "Fully remote role building pipelines",
                    },
                    {"url": "https://www.example.org/careers", "title": "Analytics Engineer", "content": ""},
                ]
            }

    monkeypatch.setattr(tavily_search, "_get_client", lambda: FakeTavily())
    page = tavily_search.search_jobs(JobSearchParams(query="data engineer", location="Remote"))

    first, second = page.jobs
    assert (first.title, first.company, first.source, first.is_remote) == ("Data Engineer", "Initech", "lever", True)
    assert first.source_job_id.startswith("tavily_")
    assert (second.company, second.source) == ("example.org", "tavily")
