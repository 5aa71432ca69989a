"""
Authentication service route handlers.

Provides routes for:
- User registration
- User login
- Google sign-in (redirect + callback)

All JWT logic is delegated to `auth_service.utils`.
"""

import logging
import secrets
from typing import Tuple
from urllib.parse import urlencode

import psycopg2.errors
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from flask import Blueprint, Response, jsonify, redirect, request

from backend import config
from backend.auth_service import google_oauth
from backend.auth_service.policy import STUDENT, TEACHER, VALID_ROLES
from backend.auth_service.utils import create_token
from backend.database.db_connection import get_db
from backend.gateway.payload import BODY_NOT_OBJECT_MESSAGE, non_string_field, request_data

auth_bp = Blueprint("auth", __name__)
ph = PasswordHasher()

PASSWORD_MIN_LENGTH = 6
DASHBOARD_PAGES = {
    STUDENT: "dashboard.html",
    TEACHER: "teacher-profile.html",
}
LOGIN_PAGE = "login.html"


def frontend_url(page: str, **params: str) -> str:
    """Build a URL to one of the static frontend pages."""
    url = f"{config.FRONTEND_BASE_URL}/{page}"
    if params:
        url += f"?{urlencode(params)}"
    return url


# --- REQUEST LOGGING ---
@auth_bp.before_request
def before_request() -> None:
    logging.info(f"[Auth] Incoming {request.method} {request.path}")


@auth_bp.after_request
def after_request(response: Response) -> Response:
    logging.info(f"[Auth] Response {response.status}")
    return response


# --- REGISTER ---
@auth_bp.route("/register", methods=["POST"])
def register() -> Tuple[Response, int]:
    """
    Register a new user.

    Expects a JSON body with:
    - email (str): Unique email address.
    - password (str): Minimum 6 characters.
    - name (str, optional)
    - role (str, optional): "student" (default) or "teacher".

    Returns:
        201: Confirmation message.
        400: Missing fields, invalid input, or email already exists.
        500: Server-side error (hashing or database).
    """
    data = request_data()
    if data is None:
        return jsonify({"error": BODY_NOT_OBJECT_MESSAGE}), 400

    bad_field = non_string_field(data, ("email", "password", "name", "role"))
    if bad_field:
        return jsonify({"error": f"{bad_field} must be a string."}), 400

    email: str = (data.get("email") or "").strip().lower()
    password: str = data.get("password") or ""
    name = (data.get("name") or "").strip() or None
    role: str = (data.get("role") or STUDENT).strip().lower()

    if not email or not password:
        return jsonify({"error": "Email and password are required."}), 400
    if "@" not in email:
        return jsonify({"error": "A valid email is required."}), 400
    if len(password) < PASSWORD_MIN_LENGTH:
        return jsonify({"error": f"Password must be at least {PASSWORD_MIN_LENGTH} characters."}), 400
    if role not in VALID_ROLES:
        return jsonify({"error": f"role must be one of: {', '.join(VALID_ROLES)}"}), 400

    try:
        pw_hash = ph.hash(password)
    except Exception:
        logging.exception("[Auth] Password hashing failed")
        return jsonify({"error": "Password hashing failed"}), 500

    sql = """
        INSERT INTO users (email, password_hash, name, full_name, role)
        VALUES (%s, %s, %s, %s, %s)
        RETURNING user_id;
    """

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (email, pw_hash, name, name, role))
                user = cur.fetchone()
    except psycopg2.errors.UniqueViolation:
        return jsonify({"error": "Email already exists."}), 400
    except Exception:
        logging.exception("[Auth] Registration failed")
        return jsonify({"error": "Registration failed"}), 500

    logging.info(f"[Auth] Registered user {user['user_id']} as {role}")
    return jsonify({"message": "User registered successfully!"}), 201


# --- LOGIN ---
@auth_bp.route("/login", methods=["POST"])
def login() -> Tuple[Response, int]:
    """
    Authenticate a user and return a JWT.

    Expects a JSON body with:
    - email (str)
    - password (str)
    - role (str, optional): ignored; the stored role is authoritative.

    Returns:
        200: JSON with token, role, redirectTo and user_id.
        400: Missing or invalid credentials.
        500: Database error.
    """
    data = request_data()
    if data is None:
        return jsonify({"error": BODY_NOT_OBJECT_MESSAGE}), 400

    bad_field = non_string_field(data, ("email", "password", "role"))
    if bad_field:
        return jsonify({"error": f"{bad_field} must be a string."}), 400

    email: str = (data.get("email") or "").strip().lower()
    password: str = data.get("password") or ""
    requested_role = (data.get("role") or "").strip().lower()

    if not email or not password:
        return jsonify({"error": "Email and password are required."}), 400

    sql = "SELECT user_id, password_hash, role FROM users WHERE email = %s;"

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (email,))
                user = cur.fetchone()
    except Exception:
        logging.exception("[Auth] Login lookup failed")
        return jsonify({"error": "Login failed"}), 500

    if not user:
        return jsonify({"error": "Invalid credentials."}), 400

    try:
        ph.verify(user["password_hash"], password)
    except (VerificationError, InvalidHashError):
        return jsonify({"error": "Invalid credentials."}), 400

    role = user["role"]
    if requested_role and requested_role != role:
        logging.info(
            f"[Auth] User {user['user_id']} asked for role '{requested_role}', keeping stored role '{role}'"
        )

    token = create_token(user["user_id"], role)

    return jsonify({
        "token": token,
        "role": role,
        "redirectTo": DASHBOARD_PAGES.get(role, DASHBOARD_PAGES[STUDENT]),
        "user_id": user["user_id"],
    }), 200


# --- GOOGLE SIGN-IN ---
@auth_bp.route("/auth/google", methods=["GET"])
def google_login() -> Response:
    """
    Redirect the browser to Google's consent screen.
    """
    try:
        url = google_oauth.build_authorization_url()
    except google_oauth.GoogleAuthError as exc:
        logging.warning(f"[Auth] Google sign-in unavailable: {exc}")
        return redirect(frontend_url(LOGIN_PAGE, error="google_auth_failed"))
    return redirect(url)


@auth_bp.route("/auth/google/callback", methods=["GET"])
def google_callback() -> Response:
    """
    Complete Google sign-in.

    Creates the user on first sign-in (with an unusable random password) or
    refreshes their name and avatar, then redirects to the dashboard for their
    stored role with the token in the query string.
    """
    failure = redirect(frontend_url(LOGIN_PAGE, error="google_auth_failed"))

    if request.args.get("error") or not request.args.get("code"):
        return failure

    try:
        google_oauth.check_state(request.args.get("state", ""))
        profile = google_oauth.fetch_profile(request.args["code"])
    except google_oauth.GoogleAuthError as exc:
        logging.warning(f"[Auth] Google sign-in failed: {exc}")
        return failure

    sql = """
        INSERT INTO users (email, password_hash, name, full_name, profile_picture_url)
        VALUES (%s, %s, %s, %s, %s)
        ON CONFLICT (email)
        DO UPDATE SET
            name = EXCLUDED.name,
            profile_picture_url = EXCLUDED.profile_picture_url,
            updated_at = CURRENT_TIMESTAMP
        RETURNING user_id, role;
    """

    try:
        pw_hash = ph.hash(secrets.token_urlsafe(32))
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (
                    profile["email"],
                    pw_hash,
                    profile["name"],
                    profile["name"],
                    profile["picture"],
                ))
                user = cur.fetchone()
    except Exception:
        logging.exception("[Auth] Google user upsert failed")
        return failure

    token = create_token(user["user_id"], user["role"])
    return redirect(frontend_url(DASHBOARD_PAGES.get(user["role"], DASHBOARD_PAGES[STUDENT]), token=token))
