"""Shared slowapi rate limiter.  Storage defaults to memory; use Redis in production."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from fleetflow.config import settings

limiter = Limiter(key_func=get_remote_address, storage_uri=settings.rate_limit_storage_uri)
