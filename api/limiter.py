"""
api/limiter.py -- Shared slowapi rate limiter instance.

api/main.py attaches it to app.state for SlowAPIMiddleware, and
api/routes/v1/auth.py applies the per-route login limit with @limiter.limit().
A single shared instance keeps one counter store; separate instances per
module would never trigger.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
