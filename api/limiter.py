"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in both api/main.py (to mount as middleware) and
api/routes/v1/accounts.py (to apply the token endpoint limit with
@limiter.limit()).

Using a single shared instance ensures all routes share the same in-memory
counter store. If this were instantiated in each module separately, each
module would get its own isolated counter and rate limits would never trigger.

Counters are per process. Behind several workers the effective limit is
OAUTH2_RATE_LIMIT times the worker count.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")

# Applied to POST /api/v1/oauth2 -- password and client-secret guessing.
OAUTH2_RATE_LIMIT = get_settings().oauth2_rate_limit
