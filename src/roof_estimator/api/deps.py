"""
Shared FastAPI dependencies: services, rate limits and the admin check.
"""
import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, Response

from ..config.settings import get_settings
from ..services.estimate_service import EstimateService
from ..services.rate_limit import RateLimiter, RateLimitResult, get_client_ip, rate_limiter
from ..services.rules_service import RulesService
from ..services.settings_service import SettingsService
from ..services.supabase_client import get_supabase_client

logger = logging.getLogger(__name__)


class RateLimitExceeded(Exception):
    """Raised by the rate-limit dependency; rendered as a 429 response."""

    def __init__(self, result: RateLimitResult):
        super().__init__("Too many requests")
        self.result = result


@lru_cache
def get_rules_service() -> RulesService:
    return RulesService(get_supabase_client, rules_csv_path=get_settings().rules_csv)


@lru_cache
def get_settings_service() -> SettingsService:
    return SettingsService(get_supabase_client)


@lru_cache
def get_estimate_service() -> EstimateService:
    return EstimateService(get_supabase_client, get_rules_service())


def get_rate_limiter() -> RateLimiter:
    return rate_limiter


def rate_limited(limit_type: str = 'general'):
    """Dependency counting the request against ``limit_type`` for the client IP."""

    def check(request: Request, response: Response, limiter: RateLimiter = Depends(get_rate_limiter)) -> None:
        peer = request.client.host if request.client else None
        result = limiter.check(get_client_ip(request.headers, peer), limit_type)
        if not result.success:
            raise RateLimitExceeded(result)
        response.headers.update(result.headers())

    return check


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def require_admin(authorization: Optional[str] = Header(None)) -> dict:
    """Verify the bearer token and require an admin user."""
    token = _bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")

    client = get_supabase_client()
    try:
        response = client.auth.get_user(token)
    except Exception as e:
        logger.info("Rejected bearer token: %s", e)
        raise HTTPException(status_code=401, detail="Unauthorized")

    user = getattr(response, 'user', None)
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")

    role = (getattr(user, 'app_metadata', None) or {}).get('role')
    email = (getattr(user, 'email', None) or '').lower()
    if role != 'admin' and email not in get_settings().admin_emails:
        logger.warning("Non-admin user %s denied", email or getattr(user, 'id', '?'))
        raise HTTPException(status_code=403, detail="Forbidden")

    return {'id': getattr(user, 'id', None), 'email': email, 'role': role}
