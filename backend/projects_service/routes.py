"""
Projects service routes: create, list, read and delete projects, plus votes
and comments on them.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import psycopg2.errors
from flask import Blueprint, Response, jsonify, request

from backend.auth_service import policy
from backend.auth_service.utils import verify_token_from_request
from backend.database.db_connection import get_db
from backend.database.rows import row_to_dict, rows_to_dicts, with_camel_aliases
from backend.gateway.payload import BODY_NOT_OBJECT_MESSAGE, request_data
from backend.projects_service import votes
from backend.projects_service.validation import normalize_project_input, validate_comment_text
from backend.uploads.storage import UploadError, delete_upload, has_file, save_upload

projects_bp = Blueprint("projects", __name__)

# Owner columns are limited to name and avatar fields.
PROJECT_SELECT = """
    SELECT
        p.project_id, p.user_id, p.project_name, p.project_description,
        p.tech_used, p.project_url, p.github_url, p.screenshot_url, p.created_at,
        u.name AS owner_name, u.full_name AS owner_full_name,
        u.profile_image AS owner_profile_image,
        u.profile_picture_url AS owner_profile_picture_url,
        ARRAY(
            SELECT v.user_id FROM project_votes v
            WHERE v.project_id = p.project_id AND v.vote = 1
            ORDER BY v.user_id
        ) AS upvoted_by,
        ARRAY(
            SELECT v.user_id FROM project_votes v
            WHERE v.project_id = p.project_id AND v.vote = -1
            ORDER BY v.user_id
        ) AS downvoted_by,
        COALESCE((
            SELECT json_agg(json_build_object(
                'comment_id', c.comment_id,
                'user_id', c.user_id,
                'text', c.text,
                'created_at', c.created_at,
                'author_name', cu.name,
                'author_full_name', cu.full_name
            ) ORDER BY c.created_at, c.comment_id)
            FROM project_comments c
            JOIN users cu ON c.user_id = cu.user_id
            WHERE c.project_id = p.project_id
        ), '[]'::json) AS comments
    FROM projects p
    JOIN users u ON p.user_id = u.user_id
"""

NEWEST_FIRST = " ORDER BY p.created_at DESC, p.project_id DESC;"

COMMENTS_SQL = """
    SELECT
        c.comment_id, c.user_id, c.text, c.created_at,
        u.name AS author_name, u.full_name AS author_full_name
    FROM project_comments c
    JOIN users u ON c.user_id = u.user_id
    WHERE c.project_id = %s
    ORDER BY c.created_at, c.comment_id;
"""

PROJECT_EXISTS_SQL = "SELECT project_id FROM projects WHERE project_id = %s;"

# Also returned in camelCase
PROJECT_ALIASES = (
    "project_id", "project_name", "project_description", "tech_used", "project_url",
    "github_url", "screenshot_url", "created_at", "upvoted_by", "downvoted_by",
)
OWNER_ALIASES = ("user_id", "full_name", "profile_image", "profile_picture_url")
COMMENT_ALIASES = ("comment_id", "user_id", "created_at", "author_name", "author_full_name")
VOTE_ALIASES = ("project_id", "upvoted_by", "downvoted_by")


@projects_bp.before_request
def before_request() -> None:
    logging.info(f"[Projects] Incoming {request.method} {request.path}")


@projects_bp.after_request
def after_request(response: Response) -> Response:
    logging.info(f"[Projects] Response {response.status}")
    return response


def serialize_project(row: Any) -> Dict[str, Any]:
    """
    Shape a PROJECT_SELECT row for the client.

    Vote counts are derived from the voter sets. Fields are also returned in
    camelCase, and the legacy title, description, technology, liveUrl and
    imageUrl keys mirror the canonical fields.
    """
    data = row_to_dict(row)
    project = {
        "project_id": data["project_id"],
        "project_name": data["project_name"],
        "project_description": data["project_description"],
        "tech_used": data["tech_used"],
        "project_url": data["project_url"],
        "github_url": data["github_url"],
        "screenshot_url": data["screenshot_url"],
        "created_at": data["created_at"],
        "title": data["project_name"],
        "description": data["project_description"],
        "technology": data["tech_used"],
        "liveUrl": data["project_url"],
        "imageUrl": data["screenshot_url"],
        "user": with_camel_aliases({
            "user_id": data["user_id"],
            "name": data["owner_name"],
            "full_name": data["owner_full_name"],
            "profile_image": data["owner_profile_image"],
            "profile_picture_url": data["owner_profile_picture_url"],
        }, OWNER_ALIASES),
        "comments": [with_camel_aliases(dict(c), COMMENT_ALIASES) for c in data.get("comments") or []],
    }
    project.update(votes.summarize(data.get("upvoted_by"), data.get("downvoted_by")))
    return with_camel_aliases(project, PROJECT_ALIASES)


def _fetch_comments(cur: Any, project_id: int) -> List[Dict[str, Any]]:
    cur.execute(COMMENTS_SQL, (project_id,))
    return [with_camel_aliases(c, COMMENT_ALIASES) for c in rows_to_dicts(cur.fetchall())]


def _screenshot_file() -> Optional[Any]:
    for key in ("screenshot", "image"):
        if has_file(request.files.get(key)):
            return request.files[key]
    return None


# --- CREATE ---
@projects_bp.route("/api/projects", methods=["POST"])
def create_project() -> Tuple[Response, int]:
    """
    Create a project owned by the caller.

    Expects multipart form data with:
    - projectName (or legacy title)
    - projectDescription (or legacy description)
    - techUsed: one of the fixed technology categories
    - projectUrl: http(s) URL
    - githubUrl (optional): http(s) URL
    - screenshot (or image): image file, required

    Returns:
        201: Created project.
        400: Validation error, with per-field reasons.
        401: Authentication failure.
        500: Server error.
    """
    user_id, role, err, code = verify_token_from_request()
    if err:
        return err, code

    err, code = policy.authorize(policy.PROJECT_CREATE, user_id, role)
    if err:
        return err, code

    data = request_data()
    if data is None:
        return jsonify({"error": BODY_NOT_OBJECT_MESSAGE}), 400

    fields, errors = normalize_project_input(data)
    screenshot = _screenshot_file()
    if screenshot is None:
        errors["screenshot"] = "A screenshot image is required"

    if errors:
        return jsonify({"error": "Validation failed", "fields": errors}), 400

    try:
        screenshot_url = save_upload(screenshot, "screenshots")
    except UploadError as exc:
        return jsonify({"error": "Validation failed", "fields": {"screenshot": str(exc)}}), 400

    sql = """
        INSERT INTO projects (
            user_id, project_name, project_description, tech_used,
            project_url, github_url, screenshot_url
        ) VALUES (%s, %s, %s, %s, %s, %s, %s)
        RETURNING project_id;
    """

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (
                    user_id,
                    fields["project_name"],
                    fields["project_description"],
                    fields["tech_used"],
                    fields["project_url"],
                    fields["github_url"],
                    screenshot_url,
                ))
                project_id = cur.fetchone()["project_id"]

                cur.execute(PROJECT_SELECT + " WHERE p.project_id = %s;", (project_id,))
                project = serialize_project(cur.fetchone())
    except Exception:
        logging.exception("[Projects] Failed to create project")
        delete_upload(screenshot_url)
        return jsonify({"error": "Failed to create project"}), 500

    return jsonify(project), 201


# --- LIST OWN ---
@projects_bp.route("/api/projects", methods=["GET"])
def list_own_projects() -> Tuple[Response, int]:
    """
    Return the caller's projects, newest first.
    """
    user_id, role, err, code = verify_token_from_request()
    if err:
        return err, code

    err, code = policy.authorize(policy.PROJECT_LIST_OWN, user_id, role)
    if err:
        return err, code

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(PROJECT_SELECT + " WHERE p.user_id = %s" + NEWEST_FIRST, (user_id,))
                projects = [serialize_project(row) for row in cur.fetchall()]
    except Exception:
        logging.exception("[Projects] Failed to list projects")
        return jsonify({"error": "Failed to retrieve projects"}), 500

    return jsonify(projects), 200


# --- LIST COMMUNITY ---
@projects_bp.route("/api/projects/community", methods=["GET"])
@projects_bp.route("/api/projects/all", methods=["GET"])
def list_community_projects() -> Tuple[Response, int]:
    """
    Return every project from every user, newest first, with owner, votes and
    comments joined in.
    """
    _, _, err, code = verify_token_from_request()
    if err:
        return err, code

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(PROJECT_SELECT + NEWEST_FIRST)
                projects = [serialize_project(row) for row in cur.fetchall()]
    except Exception:
        logging.exception("[Projects] Failed to list community projects")
        return jsonify({"error": "Failed to retrieve projects"}), 500

    return jsonify(projects), 200


# --- GET ONE ---
@projects_bp.route("/api/projects/<int:project_id>", methods=["GET"])
def get_project(project_id: int) -> Tuple[Response, int]:
    """
    Get a single project by ID.

    Returns:
        200: Project object.
        404: Project not found.
    """
    _, _, err, code = verify_token_from_request()
    if err:
        return err, code

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(PROJECT_SELECT + " WHERE p.project_id = %s;", (project_id,))
                row = cur.fetchone()
    except Exception:
        logging.exception(f"[Projects] Failed to get project {project_id}")
        return jsonify({"error": "Failed to retrieve project"}), 500

    if not row:
        return jsonify({"error": "Project not found"}), 404

    return jsonify(serialize_project(row)), 200


# --- DELETE ---
@projects_bp.route("/api/projects/<int:project_id>", methods=["DELETE"])
def delete_project(project_id: int) -> Tuple[Response, int]:
    """
    Delete a project if the caller owns it, along with its screenshot file.
    Votes and comments go with it.

    Returns:
        200: Removal confirmation.
        403: Caller is not the owner; nothing is removed.
        404: Project not found.
    """
    user_id, role, err, code = verify_token_from_request()
    if err:
        return err, code

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT user_id, screenshot_url FROM projects WHERE project_id = %s FOR UPDATE;",
                    (project_id,),
                )
                project = cur.fetchone()
                if not project:
                    return jsonify({"error": "Project not found"}), 404

                err, code = policy.authorize(policy.PROJECT_DELETE, user_id, role, owner_id=project["user_id"])
                if err:
                    return err, code

                cur.execute("DELETE FROM projects WHERE project_id = %s;", (project_id,))
    except Exception:
        logging.exception(f"[Projects] Failed to delete project {project_id}")
        return jsonify({"error": "Failed to delete project"}), 500

    # Only after the row is gone
    delete_upload(project["screenshot_url"])

    return jsonify({"message": "Project removed"}), 200


# --- VOTES ---
def _vote(project_id: int, direction: str) -> Tuple[Response, int]:
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(PROJECT_EXISTS_SQL, (project_id,))
                if not cur.fetchone():
                    return jsonify({"error": "Project not found"}), 404

                vote = votes.apply_vote(cur, project_id, user_id, votes.DIRECTIONS[direction])
                summary = votes.vote_summary(cur, project_id)
    except psycopg2.errors.ForeignKeyViolation:
        # Project deleted between the existence check and the vote
        return jsonify({"error": "Project not found"}), 404
    except Exception:
        logging.exception(f"[Projects] Failed to {direction} project {project_id}")
        return jsonify({"error": "Failed to record vote"}), 500

    result = {"project_id": project_id, "state": votes.STATES[vote]}
    result.update(summary)
    return jsonify(with_camel_aliases(result, VOTE_ALIASES)), 200


@projects_bp.route("/api/projects/<int:project_id>/upvote", methods=["PUT", "POST"])
def upvote_project(project_id: int) -> Tuple[Response, int]:
    """
    Toggle the caller's upvote: neutral -> upvoted, upvoted -> neutral,
    downvoted -> upvoted.
    """
    return _vote(project_id, "upvote")


@projects_bp.route("/api/projects/<int:project_id>/downvote", methods=["PUT", "POST"])
def downvote_project(project_id: int) -> Tuple[Response, int]:
    """
    Toggle the caller's downvote; mirror image of upvote.
    """
    return _vote(project_id, "downvote")


# --- COMMENTS ---
@projects_bp.route("/api/projects/<int:project_id>/comment", methods=["POST"])
@projects_bp.route("/api/projects/<int:project_id>/comments", methods=["POST"])
def add_comment(project_id: int) -> Tuple[Response, int]:
    """
    Append a comment to a project. Teachers only.

    Expects JSON (or form data) with:
    - text (str): 1 to 1000 characters after trimming.

    Returns:
        201: The project's comments, oldest first.
        400: Empty or too long.
        403: Caller is not a teacher.
        404: Project not found.
    """
    user_id, role, err, code = verify_token_from_request()
    if err:
        return err, code

    err, code = policy.authorize(policy.COMMENT_CREATE, user_id, role)
    if err:
        return err, code

    data = request_data()
    if data is None:
        return jsonify({"error": BODY_NOT_OBJECT_MESSAGE}), 400

    text, error = validate_comment_text(data.get("text"))
    if error:
        return jsonify({"error": error}), 400

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(PROJECT_EXISTS_SQL, (project_id,))
                if not cur.fetchone():
                    return jsonify({"error": "Project not found"}), 404

                cur.execute(
                    "INSERT INTO project_comments (project_id, user_id, text) VALUES (%s, %s, %s);",
                    (project_id, user_id, text),
                )
                comments = _fetch_comments(cur, project_id)
    except psycopg2.errors.ForeignKeyViolation:
        return jsonify({"error": "Project not found"}), 404
    except Exception:
        logging.exception(f"[Projects] Failed to add comment to project {project_id}")
        return jsonify({"error": "Failed to add comment"}), 500

    return jsonify(comments), 201


@projects_bp.route("/api/projects/<int:project_id>/comment/<int:comment_id>", methods=["DELETE"])
@projects_bp.route("/api/projects/<int:project_id>/comments/<int:comment_id>", methods=["DELETE"])
def delete_comment(project_id: int, comment_id: int) -> Tuple[Response, int]:
    """
    Delete a comment. Only its author may do so.

    Returns:
        200: The remaining comments.
        403: Caller is not the author.
        404: Project or comment not found.
    """
    user_id, role, err, code = verify_token_from_request()
    if err:
        return err, code

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(PROJECT_EXISTS_SQL, (project_id,))
                if not cur.fetchone():
                    return jsonify({"error": "Project not found"}), 404

                cur.execute(
                    "SELECT user_id FROM project_comments WHERE comment_id = %s AND project_id = %s;",
                    (comment_id, project_id),
                )
                comment = cur.fetchone()
                if not comment:
                    return jsonify({"error": "Comment not found"}), 404

                err, code = policy.authorize(policy.COMMENT_DELETE, user_id, role, owner_id=comment["user_id"])
                if err:
                    return err, code

                cur.execute("DELETE FROM project_comments WHERE comment_id = %s;", (comment_id,))
                comments = _fetch_comments(cur, project_id)
    except Exception:
        logging.exception(f"[Projects] Failed to delete comment {comment_id}")
        return jsonify({"error": "Failed to delete comment"}), 500

    return jsonify(comments), 200
