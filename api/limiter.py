"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in both api/main.py (to mount as middleware and register the 429
handler) and api/routes/auth.py (to apply the login limit with @limiter.limit()).

All routes must share this one instance so they share one counter store;
a limiter per module would count every module separately.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
