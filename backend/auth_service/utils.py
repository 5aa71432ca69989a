"""
Shared authentication helpers.
Provides token creation, verification, and the request-level auth gate.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import jwt
from flask import Response, jsonify, request

from backend import config

NO_TOKEN_MESSAGE = "No token, authorization denied"
INVALID_TOKEN_MESSAGE = "Token is not valid"


class InvalidTokenError(Exception):
    """Raised when a token is malformed, tampered with, or expired."""


# --- JWT CREATION ---
def create_token(user_id: int, role: Optional[str] = None, expires_minutes: Optional[int] = None) -> str:
    """
    Generates a new JWT for a given user.

    Args:
        user_id (int): The unique ID of the user.
        role (str, optional): The role of the user (student, teacher).
        expires_minutes (int, optional): Overrides the configured lifetime.

    Returns:
        str: Encoded JWT string.
    """
    now = datetime.now(timezone.utc)
    lifetime = expires_minutes if expires_minutes is not None else config.TOKEN_EXPIRATION_MINUTES

    payload: Dict[str, Any] = {
        # PyJWT requires "sub" to be a string
        "sub": str(user_id),
        "exp": now + timedelta(minutes=lifetime),
        "iat": now,
    }
    if role:
        payload["role"] = role

    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


# --- JWT VALIDATION ---
def decode_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate a JWT.

    Returns:
        dict: {"user_id": int, "role": str | None}

    Raises:
        InvalidTokenError: For any signature, structure, or expiry problem.
    """
    try:
        payload = jwt.decode(
            token,
            config.JWT_SECRET,
            algorithms=[config.JWT_ALGORITHM],
            options={"require": ["exp", "sub"]},
        )
        user_id = int(payload["sub"])
    except (jwt.PyJWTError, KeyError, TypeError, ValueError) as exc:
        raise InvalidTokenError(INVALID_TOKEN_MESSAGE) from exc

    return {"user_id": user_id, "role": payload.get("role")}


def get_token_from_request() -> Optional[str]:
    """
    Read the bearer credential from the current request.

    The custom x-auth-token header wins; otherwise an
    "Authorization: Bearer <token>" header is used.
    """
    token = request.headers.get("x-auth-token", "").strip()
    if token:
        return token

    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        return auth.split(" ", 1)[1].strip() or None
    return None


def verify_token_from_request() -> Tuple[Optional[int], Optional[str], Optional[Response], Optional[int]]:
    """
    Verify the token attached to the current request.

    Returns:
        tuple: (user_id, role, error_response, status_code)
               If successful, error_response and status_code are None.
               If failed, user_id and role are None.
    """
    token = get_token_from_request()
    if not token:
        return None, None, jsonify({"error": NO_TOKEN_MESSAGE}), 401

    try:
        claims = decode_token(token)
    except InvalidTokenError:
        return None, None, jsonify({"error": INVALID_TOKEN_MESSAGE}), 401

    return claims["user_id"], claims["role"], None, None
