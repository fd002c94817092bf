"""Request identity, admin access, and rate limiting.

Sign-in is handled by the hosted auth provider in front of this service; it
forwards the verified user id in the X-User-Id header. Moderation endpoints
additionally require the shared X-Admin-Token.
"""
import os
import hmac
import time
from typing import Optional
from collections import defaultdict

from fastapi import Header, HTTPException, Request

# --- Config ---
ADMIN_TOKEN = os.environ.get("NUNGDICT_ADMIN_TOKEN", "")

# --- Rate Limiting ---
RATE_LIMIT_REQUESTS = 30
RATE_LIMIT_WINDOW = 60
_rate_buckets: dict = defaultdict(list)
_rate_check_counter = 0


def get_rate_limit_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def rate_limit_check(ip: str) -> bool:
    now = time.time()
    cutoff = now - RATE_LIMIT_WINDOW
    _rate_buckets[ip] = [t for t in _rate_buckets[ip] if t > cutoff]
    if len(_rate_buckets[ip]) >= RATE_LIMIT_REQUESTS:
        return False
    _rate_buckets[ip].append(now)
    return True


def rate_limit_cleanup():
    global _rate_check_counter
    _rate_check_counter += 1
    if _rate_check_counter % 100 == 0:
        now = time.time()
        cutoff = now - RATE_LIMIT_WINDOW
        stale = [ip for ip, ts in _rate_buckets.items() if not ts or ts[-1] < cutoff]
        for ip in stale:
            del _rate_buckets[ip]


def enforce_rate_limit(request: Request):
    rate_limit_cleanup()
    if not rate_limit_check(get_rate_limit_key(request)):
        raise HTTPException(429, "Too many requests. Please wait a minute.")


# --- Identity ---

async def optional_user(x_user_id: Optional[str] = Header(default=None)) -> Optional[str]:
    """FastAPI dependency: the caller's user id, or None for anonymous viewers."""
    user_id = (x_user_id or "").strip()
    return user_id or None


async def require_user(x_user_id: Optional[str] = Header(default=None)) -> str:
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise HTTPException(401, "Not logged in")
    return user_id


async def require_admin(
    x_admin_token: Optional[str] = Header(default=None),
    x_user_id: Optional[str] = Header(default=None),
) -> str:
    """FastAPI dependency that validates the X-Admin-Token header.

    Returns the reviewer id recorded on moderation actions.
    """
    if not ADMIN_TOKEN or not x_admin_token or not hmac.compare_digest(x_admin_token, ADMIN_TOKEN):
        raise HTTPException(401, "Unauthorized")
    return (x_user_id or "").strip() or "admin"
