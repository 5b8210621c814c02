"""
Job scanner.

Searches the job sources with a user's saved titles and locations, filters
out what they have seen or excluded, scores the rest and hands the matches
to the notification service.
"""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field

from sqlalchemy import or_
from sqlalchemy.orm import Session

from applydesk.agents import job_analyzer, job_matcher
from applydesk.agents.context import candidate_context, job_context
from applydesk.agents.llm import LLMError
from applydesk.config import settings as app_settings
from applydesk.db import Application, AutoApplySettings, Job, Profile, User, utcnow
from applydesk.services import notifications, plans
from applydesk.services.applications import count_applications_today
from applydesk.tools.job_search import JobSearchService, get_job_search_service
from applydesk.tools.jsearch import JobListing, JobSearchError, JobSearchParams

logger = logging.getLogger(__name__)

MAX_TITLES = 3
MAX_LOCATIONS = 2
REMOTE_WORDS = ("remote", "anywhere")

_active_scans: set[str] = set()
_active_lock = threading.Lock()


class ScanInProgressError(Exception):
    """A scan for this user is already running."""


@dataclass
class ScanResult:
    jobs_found: int = 0
    jobs_saved: int = 0
    notifications: int = 0
    applications: int = 0
    skipped: int = 0
    message: str = ""
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@contextmanager
def _scan_guard(user_id: str) -> Iterator[None]:
    with _active_lock:
        if user_id in _active_scans:
            raise ScanInProgressError("Job scanning already in progress")
        _active_scans.add(user_id)
    try:
        yield
    finally:
        with _active_lock:
            _active_scans.discard(user_id)


def is_scanning(user_id: str) -> bool:
    with _active_lock:
        return user_id in _active_scans


def _is_remote(location: str) -> bool:
    return location.strip().lower() in REMOTE_WORDS


def _matches_location(job: JobListing, wanted: str | None) -> bool:
    if wanted is None:
        return True
    if _is_remote(wanted):
        text = (job.location or "").lower()
        return job.is_remote or any(word in text for word in REMOTE_WORDS)
    if not job.location:
        return False
    job_location = job.location.lower()
    wanted = wanted.lower()
    return wanted in job_location or wanted.split(",")[0].strip() in job_location


def deduplicate(jobs: list[JobListing]) -> list[JobListing]:
    """One listing per company/title, keeping the longest description."""
    seen: dict[str, JobListing] = {}
    for job in jobs:
        key = f"{job.company.lower()}|{job.title.lower()}"
        existing = seen.get(key)
        if existing is None or len(job.description or "") > len(existing.description or ""):
            seen[key] = job
    return list(seen.values())


def should_skip(db: Session, user_id: str, job: JobListing, settings: AutoApplySettings) -> str | None:
    """Reason to skip a listing, or None to keep it."""
    existing = (
        db.query(Job.id)
        .filter(
            Job.user_id == user_id,
            or_(
                Job.source_job_id == job.source_job_id,
                (Job.title == job.title) & (Job.company == job.company),
            ),
        )
        .first()
    )
    if existing:
        return "already seen"

    applied = (
        db.query(Application.id)
        .filter(
            Application.user_id == user_id,
            Application.company == job.company,
            Application.job_title == job.title,
        )
        .first()
    )
    if applied:
        return "already applied"

    company = job.company.lower()
    if any(excluded.lower() in company for excluded in settings.excluded_companies or [] if excluded):
        return "excluded company"

    text = f"{job.title} {job.description or ''}".lower()
    if any(keyword.lower() in text for keyword in settings.excluded_keywords or [] if keyword):
        return "excluded keyword"

    if settings.require_salary_range and not job.salary:
        return "no salary range"
    return None


class JobScanner:
    """Runs scans for one user at a time per user."""

    def __init__(self, search: JobSearchService | None = None):
        self._search = search

    @property
    def search(self) -> JobSearchService:
        return self._search or get_job_search_service()

    def scan_user(self, db: Session, user_id: str) -> ScanResult:
        with _scan_guard(user_id):
            return self._scan(db, user_id)

    def _scan(self, db: Session, user_id: str) -> ScanResult:
        user = db.get(User, user_id)
        if user is None:
            raise ValueError(f"User {user_id} not found")

        settings = notifications.get_or_create_settings(db, user_id)
        profile = db.query(Profile).filter(Profile.user_id == user_id).first()
        candidate = candidate_context(db, user_id)
        result = ScanResult()

        daily_limit = min(settings.max_applications_per_day, app_settings.max_applications_per_day)
        left_today = max(0, daily_limit - count_applications_today(db, user_id))
        left_today = min(left_today, plans.check_auto_application_quota(user).remaining)

        titles = self._search_titles(settings, profile, candidate)
        if not titles:
            result.message = "No job titles to search for; add titles to your profile or scan settings"
            return result

        listings = self._fetch(settings, profile, titles, result)
        result.jobs_found = len(listings)

        for listing in listings:
            reason = should_skip(db, user_id, listing, settings)
            if reason:
                result.skipped += 1
                continue

            job = self._save(db, user_id, listing)
            analysis = job_matcher.score_job(candidate, job_context(job))
            job.match_score = analysis.match_score
            job.match_analysis = analysis.model_dump()
            job.processed = True

            if analysis.match_score < settings.notify_min_score:
                db.delete(job)
                db.commit()
                result.skipped += 1
                continue

            result.jobs_saved += 1
            action = notifications.handle_scored_job(db, user, job, settings, candidate, left_today)
            if action == "auto_apply":
                result.applications += 1
                left_today -= 1
            elif action == "notify":
                result.notifications += 1
            db.commit()

        settings.last_scan_at = utcnow()
        db.commit()
        result.message = (
            f"Found {result.jobs_found} jobs, saved {result.jobs_saved}, "
            f"{result.notifications} notifications, {result.applications} applications"
        )
        logger.info(f"[{user_id}] Scan finished: {result.message}")
        return result

    def _search_titles(self, settings: AutoApplySettings, profile: Profile | None, candidate: dict) -> list[str]:
        titles = list(settings.job_titles or []) or list(profile.job_titles if profile else [])
        if not titles and (candidate.get("skills") or candidate.get("summary")):
            try:
                titles = job_analyzer.find_relevant_job_titles(candidate)
            except LLMError as e:
                logger.warning(f"Could not suggest titles: {e}")
        return [t for t in titles if t][:MAX_TITLES]

    def _fetch(
        self,
        settings: AutoApplySettings,
        profile: Profile | None,
        titles: list[str],
        result: ScanResult,
    ) -> list[JobListing]:
        locations = list(settings.locations or []) or list(profile.preferred_locations if profile else [])
        wanted_locations: list[str | None] = list(locations[:MAX_LOCATIONS]) or [None]
        employment_types = list(profile.employment_types if profile else [])

        found: list[JobListing] = []
        attempts = 0
        for title in titles:
            for wanted in wanted_locations:
                attempts += 1
                params = JobSearchParams(
                    query=title,
                    location=None if wanted is None or _is_remote(wanted) else wanted,
                    date_posted="week",
                    employment_types=employment_types,
                )
                try:
                    page = self.search.search_jobs(params)
                except JobSearchError as e:
                    logger.warning(f"Search '{title}' / {wanted or 'any location'} failed: {e}")
                    result.errors.append(str(e))
                    continue
                found.extend(job for job in page.jobs if _matches_location(job, wanted))

        if attempts and len(result.errors) == attempts:
            raise JobSearchError(f"All {attempts} searches failed: {result.errors[-1]}")
        return deduplicate(found)

    def _save(self, db: Session, user_id: str, listing: JobListing) -> Job:
        job = Job(
            user_id=user_id,
            source=listing.source,
            source_job_id=listing.source_job_id,
            title=listing.title,
            company=listing.company,
            location=listing.location or "",
            description=listing.description,
            requirements=listing.requirements,
            salary=listing.salary,
            employment_type=listing.employment_type,
            apply_url=listing.url,
            is_remote=listing.is_remote,
            posted_at=listing.posted_at,
        )
        db.add(job)
        db.flush()
        return job


def scan_user(db: Session, user_id: str) -> ScanResult:
    return JobScanner().scan_user(db, user_id)


def scan_enabled_users(db: Session) -> dict[str, int]:
    """Scan every user with scanning switched on. One failure does not stop the rest."""
    user_ids = [
        row.user_id
        for row in db.query(AutoApplySettings.user_id).filter(AutoApplySettings.is_enabled.is_(True))
    ]
    totals = {"users": 0, "failed": 0, "jobs_saved": 0, "applications": 0}
    scanner = JobScanner()
    for user_id in user_ids:
        try:
            result = scanner.scan_user(db, user_id)
        except ScanInProgressError:
            logger.info(f"[{user_id}] Scan already running, skipped")
            continue
        except Exception as e:
            db.rollback()
            totals["failed"] += 1
            logger.error(f"[{user_id}] Automated scan failed: {e}")
            continue
        totals["users"] += 1
        totals["jobs_saved"] += result.jobs_saved
        totals["applications"] += result.applications
    logger.info(f"Automated scan finished: {totals}")
    return totals
