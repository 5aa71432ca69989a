"""
User profile routes.

Provides routes for:
- Current user retrieval (/api/users/me)
- Profile update with optional profile image / resume upload
- Teacher-only view of a student's public profile
"""

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

import psycopg2.errors
from flask import Blueprint, Response, jsonify, request
from psycopg2.extras import Json

from backend.auth_service import policy
from backend.auth_service.utils import verify_token_from_request
from backend.database.db_connection import get_db
from backend.database.rows import row_to_dict, with_camel_aliases
from backend.gateway.payload import BODY_NOT_OBJECT_MESSAGE, non_string_field, request_data
from backend.uploads.storage import UploadError, delete_upload, has_file, save_upload

users_bp = Blueprint("users", __name__)

BIO_MAX_LENGTH = 500
USERNAME_MAX_LENGTH = 50
NAME_MAX_LENGTH = 255
SOCIAL_LINK_KEYS = ("linkedin", "github", "portfolio", "twitter")

# Never includes password_hash
USER_COLUMNS = """
    user_id, email, name, full_name, username, role, bio, social_links,
    profile_picture_url, profile_image, resume_url, created_at, updated_at
"""

# Also returned in camelCase
USER_ALIASES = (
    "full_name", "profile_image", "profile_picture_url", "resume_url",
    "social_links", "created_at", "updated_at",
)

# request field -> column
TEXT_FIELDS = {
    "name": "name",
    "fullName": "full_name",
    "username": "username",
    "bio": "bio",
}


@users_bp.before_request
def before_request() -> None:
    logging.info(f"[Users] Incoming {request.method} {request.path}")


@users_bp.after_request
def after_request(response: Response) -> Response:
    logging.info(f"[Users] Response {response.status}")
    return response


def serialize_user(row: Any) -> Dict[str, Any]:
    return with_camel_aliases(row_to_dict(row), USER_ALIASES)


def parse_social_links(data: Dict[str, Any]) -> Optional[Dict[str, str]]:
    """
    Collect social links from either a `socialLinks` object (or its JSON
    string form) or the individual linkedin/github/portfolio/twitter fields.

    Returns None when no link was supplied.

    Raises:
        ValueError: If `socialLinks` is not a JSON object or a link is not a string.
    """
    links: Dict[str, str] = {}

    raw = data.get("socialLinks")
    if raw:
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except ValueError as exc:
                raise ValueError("socialLinks must be a JSON object") from exc
        if not isinstance(raw, dict):
            raise ValueError("socialLinks must be a JSON object")
        if non_string_field(raw, SOCIAL_LINK_KEYS):
            raise ValueError("Social links must be strings")
        for key in SOCIAL_LINK_KEYS:
            if key in raw:
                links[key] = (raw[key] or "").strip()

    if non_string_field(data, SOCIAL_LINK_KEYS):
        raise ValueError("Social links must be strings")
    for key in SOCIAL_LINK_KEYS:
        if key in data:
            links[key] = (data[key] or "").strip()

    return links or None


def validate_profile_fields(data: Dict[str, Any]) -> Tuple[Dict[str, Any], Optional[str]]:
    """
    Pick the updatable text columns out of the request.

    Returns:
        tuple: (columns, error_message). Empty strings clear a column.
    """
    bad_field = non_string_field(data, TEXT_FIELDS)
    if bad_field:
        return {}, f"{bad_field} must be a string."

    fields: Dict[str, Any] = {}
    for key, column in TEXT_FIELDS.items():
        if key in data:
            value = (data[key] or "").strip()
            fields[column] = value or None

    if len(fields.get("bio") or "") > BIO_MAX_LENGTH:
        return {}, f"Bio must be {BIO_MAX_LENGTH} characters or less."
    if len(fields.get("username") or "") > USERNAME_MAX_LENGTH:
        return {}, f"Username must be {USERNAME_MAX_LENGTH} characters or less."
    for column in ("name", "full_name"):
        if len(fields.get(column) or "") > NAME_MAX_LENGTH:
            return {}, f"Name must be {NAME_MAX_LENGTH} characters or less."

    return fields, None


# --- GET CURRENT USER ---
@users_bp.route("/api/users/me", methods=["GET"])
def get_current_user() -> Tuple[Response, int]:
    """
    Retrieve the current user's profile without the password hash.

    Returns:
        200: User profile object.
        401: Authentication failure.
        404: User not found in DB (edge case).
        500: Database error.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    sql = f"SELECT {USER_COLUMNS} FROM users WHERE user_id = %s;"

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (user_id,))
                user = cur.fetchone()
    except Exception:
        logging.exception("[Users] Could not retrieve user")
        return jsonify({"error": "Could not retrieve user"}), 500

    if not user:
        return jsonify({"error": "User not found"}), 404

    return jsonify(serialize_user(user)), 200


# --- UPDATE CURRENT USER ---
@users_bp.route("/api/users/me", methods=["PUT"])
@users_bp.route("/api/users/update-profile", methods=["PUT"])
def update_current_user() -> Tuple[Response, int]:
    """
    Update the current user's profile.

    Accepts multipart form data (or JSON without files):
    - name, fullName, username, bio
    - socialLinks (JSON object) or linkedin, github, portfolio, twitter
    - profileImage (file), resume (file)

    Returns:
        200: Updated user object.
        400: Invalid input, username taken, or no valid fields provided.
        401: Authentication failure.
        404: User not found.
        500: Update failed.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    data = request_data()
    if data is None:
        return jsonify({"error": BODY_NOT_OBJECT_MESSAGE}), 400

    fields, error = validate_profile_fields(data)
    if error:
        return jsonify({"error": error}), 400

    try:
        social_links = parse_social_links(data)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    image_file = request.files.get("profileImage")
    resume_file = request.files.get("resume")

    if not fields and social_links is None and not has_file(image_file) and not has_file(resume_file):
        return jsonify({"error": "No valid fields provided"}), 400

    saved: List[str] = []
    try:
        if has_file(image_file):
            fields["profile_image"] = save_upload(image_file, "profile_images")
            saved.append(fields["profile_image"])
        if has_file(resume_file):
            fields["resume_url"] = save_upload(resume_file, "resumes")
            saved.append(fields["resume_url"])
    except UploadError as exc:
        for ref in saved:
            delete_upload(ref)
        return jsonify({"error": str(exc)}), 400

    set_parts = [f"{column} = %s" for column in fields]
    values: List[Any] = list(fields.values())
    if social_links is not None:
        set_parts.append("social_links = social_links || %s::jsonb")
        values.append(Json(social_links))
    set_parts.append("updated_at = CURRENT_TIMESTAMP")
    values.append(user_id)

    sql = f"UPDATE users SET {', '.join(set_parts)} WHERE user_id = %s RETURNING {USER_COLUMNS};"

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT profile_image, resume_url FROM users WHERE user_id = %s FOR UPDATE;",
                    (user_id,),
                )
                previous = cur.fetchone()
                if not previous:
                    for ref in saved:
                        delete_upload(ref)
                    return jsonify({"error": "User not found"}), 404

                cur.execute(sql, values)
                updated_user = cur.fetchone()
    except psycopg2.errors.UniqueViolation:
        for ref in saved:
            delete_upload(ref)
        return jsonify({"error": "Username is already taken"}), 400
    except Exception:
        logging.exception("[Users] Profile update failed")
        for ref in saved:
            delete_upload(ref)
        return jsonify({"error": "Update failed"}), 500

    # Release files that were replaced
    for column in ("profile_image", "resume_url"):
        if column in fields and previous[column] and previous[column] != fields[column]:
            delete_upload(previous[column])

    return jsonify(serialize_user(updated_user)), 200


# --- STUDENT PROFILE (TEACHERS ONLY) ---
@users_bp.route("/api/students/<int:student_id>/profile", methods=["GET"])
def get_student_profile(student_id: int) -> Tuple[Response, int]:
    """
    Get a student's public profile.

    Returns:
        200: Profile object.
        401: Authentication failure.
        403: Caller is not a teacher.
        404: No student with that id.
        500: Database error.
    """
    user_id, role, err, code = verify_token_from_request()
    if err:
        return err, code

    err, code = policy.authorize(policy.STUDENT_PROFILE_VIEW, user_id, role)
    if err:
        return err, code

    sql = f"SELECT {USER_COLUMNS} FROM users WHERE user_id = %s AND role = %s;"

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (student_id, policy.STUDENT))
                profile = cur.fetchone()
    except Exception:
        logging.exception("[Users] Could not retrieve student profile")
        return jsonify({"error": "Failed to retrieve profile"}), 500

    if not profile:
        return jsonify({"error": "Student not found"}), 404

    return jsonify(serialize_user(profile)), 200
