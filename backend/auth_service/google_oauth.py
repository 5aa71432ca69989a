"""
Google OAuth 2.0 authorization-code flow.

The `state` parameter is a short-lived JWT signed with the application secret,
so the callback can check it without a server-side session.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict
from urllib.parse import urlencode

import jwt
import requests

from backend import config

AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"
SCOPES = "openid email profile"
STATE_PURPOSE = "google-oauth-state"
STATE_EXPIRATION_MINUTES = 10


class GoogleAuthError(Exception):
    """Raised when any step of the Google sign-in fails."""


def create_state() -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "purpose": STATE_PURPOSE,
        "iat": now,
        "exp": now + timedelta(minutes=STATE_EXPIRATION_MINUTES),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def check_state(state: str) -> None:
    try:
        payload = jwt.decode(state or "", config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.PyJWTError as exc:
        raise GoogleAuthError("Invalid OAuth state") from exc
    if payload.get("purpose") != STATE_PURPOSE:
        raise GoogleAuthError("Invalid OAuth state")


def build_authorization_url() -> str:
    if not config.GOOGLE_CLIENT_ID:
        raise GoogleAuthError("Google sign-in is not configured")

    params = {
        "client_id": config.GOOGLE_CLIENT_ID,
        "redirect_uri": config.GOOGLE_REDIRECT_URI,
        "response_type": "code",
        "scope": SCOPES,
        "state": create_state(),
        "prompt": "select_account",
    }
    return f"{AUTHORIZE_URL}?{urlencode(params)}"


def fetch_profile(code: str) -> Dict[str, Any]:
    """
    Exchange an authorization code for the signed-in user's Google profile.

    Returns:
        dict: {"email", "name", "picture"}

    Raises:
        GoogleAuthError: On HTTP failure or a profile without an email.
    """
    try:
        token_resp = requests.post(
            TOKEN_URL,
            data={
                "code": code,
                "client_id": config.GOOGLE_CLIENT_ID,
                "client_secret": config.GOOGLE_CLIENT_SECRET,
                "redirect_uri": config.GOOGLE_REDIRECT_URI,
                "grant_type": "authorization_code",
            },
            timeout=config.GOOGLE_TIMEOUT_SECONDS,
        )
        token_resp.raise_for_status()
        access_token = token_resp.json().get("access_token")
        if not access_token:
            raise GoogleAuthError("Google did not return an access token")

        info_resp = requests.get(
            USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=config.GOOGLE_TIMEOUT_SECONDS,
        )
        info_resp.raise_for_status()
        info = info_resp.json()
    except (requests.RequestException, ValueError) as exc:
        raise GoogleAuthError("Google token exchange failed") from exc

    email = (info.get("email") or "").strip().lower()
    if not email:
        raise GoogleAuthError("Google profile has no email")

    return {
        "email": email,
        "name": info.get("name") or email.split("@", 1)[0],
        "picture": info.get("picture"),
    }
