"""
api/limiter.py -- Shared slowapi rate limiter instance.

Imported by api/main.py (to mount as middleware) and by the route modules
that apply per-route limits with @limiter.limit().

Order matters: @limiter.limit must sit directly on the function, below the
@router decorator. The router registers whatever object it is given, so a
limit applied above it wraps a copy FastAPI never calls.

A single shared instance keeps one in-memory counter store. Separate
instances per module would each count on their own and never trigger.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
