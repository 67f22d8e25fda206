# mindful_kids/limiter.py
# Holds the shared rate limiter instance so routers can import it without
# a circular import through main.py.

from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import get_settings

PUBLIC_SUBMISSION_LIMIT = "10/15minutes"

limiter = Limiter(
    key_func=get_remote_address,
    enabled=get_settings().rate_limit_enabled,
)
