"""
Tools for ApplyDesk.

- jsearch: JSearch job listings API
- tavily_search: Backup job source via Tavily web search
- job_search: Failover between the two
- pdf_parser: Extract text from résumé PDFs
"""

from applydesk.tools.jsearch import JobListing, JobSearchError, JobSearchPage, JobSearchParams, detect_job_source
from applydesk.tools.pdf_parser import PdfParseError, parse_pdf

__all__ = [
    "JobListing",
    "JobSearchError",
    "JobSearchPage",
    "JobSearchParams",
    "detect_job_source",
    "parse_pdf",
    "PdfParseError",
]
