"""Google OAuth 2.0 sign-in."""

import logging
import secrets
from typing import Optional
from urllib.parse import urlencode

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import AuthenticationError, UpstreamUnavailable
from app.models.user import User

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"


def callback_url() -> str:
    return f"{settings.SERVER_URL}{settings.API_PREFIX}/auth/google/callback"


def authorization_url(state: Optional[str] = None) -> str:
    """URL of Google's consent screen for this app."""
    if not settings.google_oauth_enabled:
        raise UpstreamUnavailable("Google sign-in is not configured")
    params = {
        "client_id": settings.GOOGLE_CLIENT_ID,
        "redirect_uri": callback_url(),
        "response_type": "code",
        "scope": "openid email profile",
        "state": state or secrets.token_urlsafe(16),
        "prompt": "select_account",
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


async def fetch_google_profile(code: str, http_client: Optional[httpx.AsyncClient] = None) -> dict:
    """Exchange an authorization code for the user's Google profile."""
    client = http_client or httpx.AsyncClient(timeout=10.0)
    try:
        token_response = await client.post(
            GOOGLE_TOKEN_URL,
            data={
                "code": code,
                "client_id": settings.GOOGLE_CLIENT_ID,
                "client_secret": settings.GOOGLE_CLIENT_SECRET,
                "redirect_uri": callback_url(),
                "grant_type": "authorization_code",
            },
        )
        token_response.raise_for_status()
        access_token = token_response.json().get("access_token")
        if not access_token:
            raise AuthenticationError("Google did not return an access token")

        profile_response = await client.get(
            GOOGLE_USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        profile_response.raise_for_status()
        profile = profile_response.json()
    except httpx.HTTPError as e:
        logger.warning(f"Google OAuth exchange failed: {e}")
        raise AuthenticationError("Google authentication failed")
    finally:
        if http_client is None:
            await client.aclose()

    if not profile.get("sub") or not profile.get("email"):
        raise AuthenticationError("Google profile is missing id or email")
    return profile


async def _free_username(db: AsyncSession, wanted: str) -> str:
    base = (wanted or "user").strip()[:40] or "user"
    candidate = base
    while True:
        result = await db.execute(select(User.id).where(User.username == candidate))
        if result.scalar_one_or_none() is None:
            return candidate
        candidate = f"{base}{secrets.randbelow(10000)}"


async def link_or_create_user(db: AsyncSession, profile: dict) -> tuple[User, bool]:
    """Find the user by Google id, then by email; create one otherwise.

    Returns (user, created).
    """
    google_id = profile["sub"]
    email = profile["email"].lower()

    result = await db.execute(select(User).where(User.google_id == google_id))
    user = result.scalar_one_or_none()
    if user:
        return user, False

    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user:
        user.google_id = google_id
        await db.flush()
        logger.info(f"Linked Google account to existing user {user.id}")
        return user, False

    user = User(
        username=await _free_username(db, profile.get("name") or email.split("@")[0]),
        email=email,
        google_id=google_id,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)
    logger.info(f"Created user {user.id} from Google sign-in")
    return user, True
