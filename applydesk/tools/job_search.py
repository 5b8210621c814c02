"""Job search with primary/backup source failover."""

import logging
from collections.abc import Callable

from applydesk.tools import tavily_search
from applydesk.tools.jsearch import JobListing, JobSearchError, JobSearchPage, JobSearchParams, JSearchClient

logger = logging.getLogger(__name__)


class JobSearchService:
    """Queries JSearch first and Tavily when JSearch fails."""

    def __init__(
        self,
        primary: JSearchClient | None = None,
        backup: Callable[[JobSearchParams], JobSearchPage] | None = None,
    ):
        self.primary = primary or JSearchClient()
        self.backup = backup or tavily_search.search_jobs

    def search_jobs(self, params: JobSearchParams) -> JobSearchPage:
        try:
            return self.primary.search_jobs(params)
        except JobSearchError as primary_error:
            logger.warning(f"Primary job source failed, falling back to backup: {primary_error}")
            try:
                return self.backup(params)
            except JobSearchError as backup_error:
                raise JobSearchError(
                    f"All job sources failed (primary: {primary_error}; backup: {backup_error})"
                ) from backup_error

    def get_job_details(self, job_id: str) -> JobListing | None:
        # Backup source has no stable ids to look up
        return self.primary.get_job_details(job_id)


_service: JobSearchService | None = None


def get_job_search_service() -> JobSearchService:
    """Process-wide service so the JSearch request budget and cache are shared."""
    global _service
    if _service is None:
        _service = JobSearchService()
    return _service
