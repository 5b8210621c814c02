"""
Configuration management for ApplyDesk.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings from environment variables."""

    # LLM
    deepseek_api_key: str = ""
    llm_model: str = "deepseek-chat"

    # Job search APIs
    jsearch_api_key: str = ""
    jsearch_host: str = "jsearch.p.rapidapi.com"
    jsearch_base_url: str = "https://jsearch.p.rapidapi.com"
    jsearch_requests_per_minute: int = 60
    tavily_api_key: str = ""
    search_timeout: float = 30.0

    # Database
    database_url: str = ""

    # API
    cors_origins: str = "http://localhost:3000"
    cron_secret: str = ""
    rate_limit_enabled: bool = True

    # Queue worker
    queue_poll_interval: float = 2.0
    queue_batch_size: int = 10
    queue_max_concurrency: int = 10
    queue_job_timeout: float = 300.0
    queue_retention_days: int = 7
    queue_stalled_minutes: int = 30

    # Auto-apply
    max_applications_per_day: int = 10
    interview_question_count: int = 5

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra env vars


settings = Settings()
