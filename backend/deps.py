import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends, HTTPException, Request

from auth import AuthenticationError, verify_access_token
from config import (
    AUTH_COOKIE,
    CATALOG_CACHE_TTL,
    GEMINI_IMAGE_MODEL,
    IMAGE_PROXY_DOMAINS,
    MOCKUP_RATE_LIMIT,
    STATISTICS_CACHE_TTL,
)
from gemini import GeminiImageClient
from image_proxy import ImageProxy
from maintenance import MaintenanceScheduler, retention_days_from_env
from mockup_pipeline import MockupPipeline
from rate_limiter import InMemoryRateLimiter
from remove_bg import RemoveBgClient
from response_cache import ResponseCache
from roles import has_permission
from storage import LocalStorage

# Load .env from root directory (parent of backend/)
root_env = Path(__file__).parent.parent / ".env"
load_dotenv(root_env)
load_dotenv()  # Also try local .env as fallback

# API Keys
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_AI_STUDIO_API_KEY")
if not GEMINI_API_KEY:
    print("WARNING: GEMINI_API_KEY not set. Mockups will not be AI-enhanced.")

REMOVE_BG_API_KEY = os.getenv("REMOVE_BG_API_KEY")
if not REMOVE_BG_API_KEY:
    print("WARNING: REMOVE_BG_API_KEY not set. Background removal is disabled.")

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "./uploads")
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
PROXY_DOMAINS = [
    d.strip() for d in os.getenv("IMAGE_PROXY_DOMAINS", ",".join(IMAGE_PROXY_DOMAINS)).split(",")
]

# Service singletons
gemini = GeminiImageClient(GEMINI_API_KEY or "", model=os.getenv("GEMINI_IMAGE_MODEL", GEMINI_IMAGE_MODEL))
remove_bg = RemoveBgClient(REMOVE_BG_API_KEY or "")
storage = LocalStorage(UPLOAD_DIR, PUBLIC_BASE_URL)
catalog_cache = ResponseCache(ttl_seconds=CATALOG_CACHE_TTL, max_entries=500)
statistics_cache = ResponseCache(ttl_seconds=STATISTICS_CACHE_TTL, max_entries=10)
image_proxy = ImageProxy(PROXY_DOMAINS)
mockup_rate_limiter = InMemoryRateLimiter(window_seconds=60, max_requests=MOCKUP_RATE_LIMIT)
mockup_pipeline = MockupPipeline(gemini, storage, remove_bg=remove_bg, logo_domains=PROXY_DOMAINS)
maintenance = MaintenanceScheduler(retention_days_from_env())


# --- Request authentication ---

@dataclass
class AuthUser:
    user_id: str
    email: str
    role: str
    session_id: Optional[str] = None


def _token_from_request(request: Request) -> Optional[str]:
    token = request.cookies.get(AUTH_COOKIE)
    if token:
        return token
    header = request.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip()
    return None


async def get_current_user(request: Request) -> AuthUser:
    """Authenticated admin from the auth-token cookie or a Bearer header."""
    token = _token_from_request(request)
    if not token:
        raise HTTPException(status_code=401, detail="Authentication required")
    try:
        payload = verify_access_token(token)
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail=str(e))
    return AuthUser(
        user_id=payload["userId"],
        email=payload["email"],
        role=payload["role"],
        session_id=payload.get("sessionId"),
    )


def require_permission(*permissions: str):
    """Dependency allowing users whose role has any of the given permissions."""

    async def dependency(user: AuthUser = Depends(get_current_user)) -> AuthUser:
        if not any(has_permission(user.role, p) for p in permissions):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return dependency


def require_any_role(*roles: str):
    async def dependency(user: AuthUser = Depends(get_current_user)) -> AuthUser:
        if user.role not in roles:
            raise HTTPException(status_code=403, detail="Insufficient role")
        return user

    return dependency
