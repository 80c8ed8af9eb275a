"""Shared rate limiter for API routes.

Lives outside ``app`` so routers can decorate endpoints without importing
the application module.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)
