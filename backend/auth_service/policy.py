"""
Role and ownership rules for every protected action.

Handlers ask `authorize()` instead of comparing roles themselves, so the
student/teacher capabilities live in one table.
"""

from typing import Dict, NamedTuple, Optional, Tuple

from flask import Response, jsonify

STUDENT = "student"
TEACHER = "teacher"
VALID_ROLES = (STUDENT, TEACHER)

# Actions
PROJECT_CREATE = "project:create"
PROJECT_LIST_OWN = "project:list-own"
PROJECT_DELETE = "project:delete"
COMMENT_CREATE = "comment:create"
COMMENT_DELETE = "comment:delete"
STUDENT_PROFILE_VIEW = "student-profile:view"


class Rule(NamedTuple):
    roles: Optional[Tuple[str, ...]]  # None means any authenticated role
    owner_only: bool
    message: str


RULES: Dict[str, Rule] = {
    PROJECT_CREATE: Rule(None, False, "Permission denied"),
    PROJECT_LIST_OWN: Rule(None, False, "Permission denied"),
    PROJECT_DELETE: Rule(None, True, "Only the project owner can delete this project"),
    COMMENT_CREATE: Rule((TEACHER,), False, "Only teachers can comment on projects"),
    COMMENT_DELETE: Rule(None, True, "Only the comment author can delete this comment"),
    STUDENT_PROFILE_VIEW: Rule((TEACHER,), False, "Only teachers can view student profiles"),
}


def is_allowed(action: str, user_id: Optional[int], role: Optional[str], owner_id: Optional[int] = None) -> bool:
    rule = RULES.get(action)
    if rule is None or user_id is None:
        return False
    if rule.roles is not None and role not in rule.roles:
        return False
    if rule.owner_only and (owner_id is None or int(owner_id) != int(user_id)):
        return False
    return True


def authorize(
    action: str,
    user_id: Optional[int],
    role: Optional[str],
    owner_id: Optional[int] = None,
) -> Tuple[Optional[Response], Optional[int]]:
    """
    Decide whether the caller may perform `action`.

    Args:
        action (str): One of the action constants above.
        user_id (int): Authenticated caller.
        role (str): Caller's role claim.
        owner_id (int, optional): Owner/author of the target, for owner-only actions.

    Returns:
        tuple: (error_response, status_code); both None when allowed.
    """
    if is_allowed(action, user_id, role, owner_id):
        return None, None

    rule = RULES.get(action)
    message = rule.message if rule else "Permission denied"
    return jsonify({"error": message}), 403
