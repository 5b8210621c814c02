"""
Tavily backup job source.

Used when JSearch is down or out of quota. Web results are mapped to
``JobListing`` records on a best-effort basis.
"""

import hashlib
import logging
import re
from urllib.parse import urlparse

from tavily import TavilyClient

from applydesk.config import settings
from applydesk.tools.jsearch import JobListing, JobSearchError, JobSearchPage, JobSearchParams, detect_job_source

logger = logging.getLogger(__name__)

# Initialize client (lazy - only when API key is set)
_client: TavilyClient | None = None

JOB_BOARD_DOMAINS = [
    "linkedin.com",
    "indeed.com",
    "greenhouse.io",
    "lever.co",
    "glassdoor.com",
    "wellfound.com",
    "workable.com",
]

# "Senior Engineer - Acme Corp | LinkedIn", "Backend Developer at Acme"
_TITLE_SPLIT = re.compile(r"\s+(?:at|@|-|–|\|)\s+")


def _get_client() -> TavilyClient:
    """Get or create Tavily client."""
    global _client
    if _client is None:
        if not settings.tavily_api_key:
            raise JobSearchError("TAVILY_API_KEY not set")
        _client = TavilyClient(api_key=settings.tavily_api_key)
    return _client


def _split_title(raw_title: str, url: str) -> tuple[str, str]:
    parts = [p.strip() for p in _TITLE_SPLIT.split(raw_title) if p.strip()]
    title = parts[0] if parts else raw_title
    company = parts[1] if len(parts) > 1 else urlparse(url).netloc.removeprefix("www.")
    return title, company


def search_jobs(params: JobSearchParams) -> JobSearchPage:
    """Search job boards through Tavily."""
    query = f"{params.query} jobs"
    if params.location:
        query += f" in {params.location}"

    try:
        results = _get_client().search(
            query=query,
            max_results=10,
            include_domains=JOB_BOARD_DOMAINS,
        )
    except JobSearchError:
        raise
    except Exception as e:
        logger.error(f"Tavily search failed: {e}")
        raise JobSearchError(f"Tavily search error: {e}") from e

    jobs = []
    for r in results.get("results", []):
        url = r.get("url", "")
        title, company = _split_title(r.get("title", ""), url)
        if not title:
            continue
        content = r.get("content", "")
        board = detect_job_source(url)
        jobs.append(
            JobListing(
                source_job_id="tavily_" + hashlib.sha1(url.encode()).hexdigest()[:16],
                source="tavily" if board == "OTHER" else board.lower(),
                title=title,
                company=company,
                description=content,
                url=url,
                location=params.location,
                is_remote="remote" in f"{title} {content}".lower(),
            )
        )

    logger.info(f"Tavily '{query}': {len(jobs)} jobs")
    return JobSearchPage(jobs=jobs, total_results=len(jobs), current_page=1, has_more=False, source="tavily")
