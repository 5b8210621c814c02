"""
JSearch (RapidAPI) job source.

Searches aggregated job board listings and normalizes them into
``JobListing`` records.
"""

import logging
import re
import threading
import time
from collections import deque
from datetime import datetime
from typing import Any, Literal

import httpx
from cachetools import TTLCache
from pydantic import BaseModel, Field, ValidationError

from applydesk.config import settings

logger = logging.getLogger(__name__)

_NOT_CACHED = object()

DatePosted = Literal["all", "today", "3days", "week", "month"]

EMPLOYMENT_TYPE_MAP = {
    "FULL_TIME": "FULLTIME",
    "PART_TIME": "PARTTIME",
    "CONTRACT": "CONTRACTOR",
    "FREELANCE": "CONTRACTOR",
    "INTERNSHIP": "INTERN",
}


class JobSearchError(Exception):
    """A job source could not return results."""


class JobListing(BaseModel):
    """A job posting normalized across sources."""

    source_job_id: str
    source: str
    title: str
    company: str
    description: str = ""
    url: str = ""
    location: str | None = None
    salary: str | None = None
    employment_type: str | None = None
    is_remote: bool = False
    posted_at: datetime | None = None
    requirements: list[str] = Field(default_factory=list)
    benefits: list[str] = Field(default_factory=list)


class JobSearchParams(BaseModel):
    query: str = Field(min_length=1)
    location: str | None = None
    country: str | None = None
    date_posted: DatePosted = "all"
    employment_types: list[str] = Field(default_factory=list)
    page: int = Field(default=1, ge=1)
    num_pages: int = Field(default=1, ge=1, le=3)


class JobSearchPage(BaseModel):
    jobs: list[JobListing]
    total_results: int
    current_page: int
    has_more: bool
    source: str


class _RawJob(BaseModel):
    """The subset of a JSearch listing we read."""

    job_id: str
    employer_name: str
    job_title: str
    job_apply_link: str = ""
    job_description: str = ""
    job_employment_type: str | None = None
    job_is_remote: bool = False
    job_posted_at_datetime_utc: str | None = None
    job_city: str | None = None
    job_state: str | None = None
    job_country: str | None = None
    job_min_salary: float | None = None
    job_max_salary: float | None = None
    job_required_skills: list[str] | None = None
    job_benefits: list[str] | None = None
    job_highlights: dict[str, list[str]] | None = None


class _RawResponse(BaseModel):
    status: str = "OK"
    data: list[_RawJob] = Field(default_factory=list)


def map_employment_type(value: str) -> str:
    return EMPLOYMENT_TYPE_MAP.get(value.upper(), "FULLTIME")


def format_location(city: str | None, state: str | None, country: str | None) -> str | None:
    if city and state:
        return f"{city}, {state}"
    return city or state or country


def format_salary(min_salary: float | None, max_salary: float | None) -> str | None:
    if min_salary and max_salary:
        return f"${min_salary:,.0f} - ${max_salary:,.0f}"
    if min_salary:
        return f"From ${min_salary:,.0f}"
    if max_salary:
        return f"Up to ${max_salary:,.0f}"
    return None


def detect_job_source(url: str) -> str:
    """Job board behind an apply link: INDEED, GREENHOUSE, LEVER or OTHER."""
    if not url:
        return "OTHER"
    normalized = url.lower()
    if "indeed.com" in normalized:
        return "INDEED"
    if re.search(r"(?:job-)?boards\.greenhouse\.io", normalized):
        return "GREENHOUSE"
    if "jobs.lever.co" in normalized:
        return "LEVER"
    return "OTHER"


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        return None


def _normalize(raw: _RawJob) -> JobListing:
    requirements = raw.job_required_skills or []
    if not requirements and raw.job_highlights:
        requirements = raw.job_highlights.get("Qualifications", [])[:15]
    return JobListing(
        source_job_id=raw.job_id,
        source=detect_job_source(raw.job_apply_link).lower(),
        title=raw.job_title,
        company=raw.employer_name,
        description=raw.job_description,
        url=raw.job_apply_link,
        location=format_location(raw.job_city, raw.job_state, raw.job_country),
        salary=format_salary(raw.job_min_salary, raw.job_max_salary),
        employment_type=raw.job_employment_type,
        is_remote=raw.job_is_remote,
        posted_at=_parse_datetime(raw.job_posted_at_datetime_utc),
        requirements=requirements,
        benefits=raw.job_benefits or [],
    )


class JSearchClient:
    """Thin client for the JSearch API with a per-process request budget."""

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str | None = None,
        requests_per_minute: int | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.jsearch_api_key
        self.base_url = (base_url or settings.jsearch_base_url).rstrip("/")
        self.requests_per_minute = requests_per_minute or settings.jsearch_requests_per_minute
        self._transport = transport
        self._recent: deque[float] = deque()
        self._details_cache: TTLCache = TTLCache(maxsize=256, ttl=3600)
        # Worker threads share one client
        self._lock = threading.Lock()

    def _check_rate_limit(self) -> None:
        with self._lock:
            now = time.monotonic()
            while self._recent and now - self._recent[0] > 60:
                self._recent.popleft()
            if len(self._recent) >= self.requests_per_minute:
                raise JobSearchError("JSearch rate limit reached, try again in a minute")
            self._recent.append(now)

    def _get(self, endpoint: str, params: dict[str, Any]) -> dict:
        if not self.api_key:
            raise JobSearchError("JSEARCH_API_KEY not set")
        self._check_rate_limit()

        headers = {
            "X-RapidAPI-Key": self.api_key,
            "X-RapidAPI-Host": settings.jsearch_host,
        }
        query = {k: v for k, v in params.items() if v is not None}
        try:
            with httpx.Client(timeout=settings.search_timeout, transport=self._transport) as client:
                response = client.get(f"{self.base_url}{endpoint}", headers=headers, params=query)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"JSearch {endpoint} HTTP error: {e.response.status_code} {e.response.text[:200]}")
            raise JobSearchError(f"JSearch API error: {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"JSearch {endpoint} request failed: {e}")
            raise JobSearchError(f"JSearch request failed: {e}") from e

    def search_jobs(self, params: JobSearchParams) -> JobSearchPage:
        query = params.query if not params.location else f"{params.query} in {params.location}"
        api_params: dict[str, Any] = {
            "query": query,
            "page": params.page,
            "num_pages": params.num_pages,
            "date_posted": params.date_posted,
            "country": params.country,
        }
        if params.employment_types:
            mapped = dict.fromkeys(map_employment_type(t) for t in params.employment_types)
            api_params["employment_types"] = ",".join(mapped)

        data = self._get("/search", api_params)
        try:
            raw = _RawResponse.model_validate(data)
        except ValidationError as e:
            raise JobSearchError(f"Unexpected JSearch response: {e.error_count()} errors") from e

        jobs = [_normalize(item) for item in raw.data]
        logger.info(f"JSearch '{query}' page {params.page}: {len(jobs)} jobs")
        return JobSearchPage(
            jobs=jobs,
            total_results=len(jobs),
            current_page=params.page,
            has_more=len(jobs) >= 10,
            source="jsearch",
        )

    def get_job_details(self, job_id: str) -> JobListing | None:
        with self._lock:
            cached = self._details_cache.get(job_id, _NOT_CACHED)
        if cached is not _NOT_CACHED:
            return cached

        data = self._get("/job-details", {"job_id": job_id})
        try:
            raw = _RawResponse.model_validate(data)
        except ValidationError as e:
            raise JobSearchError(f"Unexpected JSearch response: {e.error_count()} errors") from e

        listing = _normalize(raw.data[0]) if raw.data else None
        with self._lock:
            self._details_cache[job_id] = listing
        return listing
