"""Rate limiter shared by the routes that call paid APIs."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from applydesk.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)
