"""
Input normalization for project submissions.

Older clients send `title`/`description`; newer ones send
`projectName`/`projectDescription`. Both are resolved here, once, into the
canonical column names so handlers never look at the aliases.
"""

from typing import Any, Dict, Tuple

PROJECT_NAME_MAX_LENGTH = 200
PROJECT_DESCRIPTION_MAX_LENGTH = 5000
COMMENT_MAX_LENGTH = 1000

TECH_CATEGORIES = [
    "web-development",
    "android-development",
    "ios-development",
    "ai-ml",
    "data-science",
    "blockchain",
    "game-development",
    "desktop-app",
    "devops",
    "cybersecurity",
    "iot",
    "other",
]

# canonical column -> accepted request keys, in priority order
FIELD_ALIASES = {
    "project_name": ("projectName", "title"),
    "project_description": ("projectDescription", "description"),
    "tech_used": ("techUsed", "technology"),
    "project_url": ("projectUrl", "liveUrl"),
    "github_url": ("githubUrl",),
}


def _first(data: Dict[str, Any], keys: Tuple[str, ...]) -> str:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def is_http_url(value: str) -> bool:
    return value.startswith(("http://", "https://")) and len(value) > len("https://")


def normalize_project_input(data: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, str]]:
    """
    Map request data onto project columns and validate it.

    Returns:
        tuple: (fields, errors). `errors` maps each bad request field to a
        reason and is empty when the input is valid.
    """
    fields = {column: _first(data, keys) for column, keys in FIELD_ALIASES.items()}
    errors: Dict[str, str] = {}

    if not fields["project_name"]:
        errors["projectName"] = "Project name is required"
    elif len(fields["project_name"]) > PROJECT_NAME_MAX_LENGTH:
        errors["projectName"] = f"Project name must be {PROJECT_NAME_MAX_LENGTH} characters or less"

    if not fields["project_description"]:
        errors["projectDescription"] = "Project description is required"
    elif len(fields["project_description"]) > PROJECT_DESCRIPTION_MAX_LENGTH:
        errors["projectDescription"] = (
            f"Project description must be {PROJECT_DESCRIPTION_MAX_LENGTH} characters or less"
        )

    if not fields["tech_used"]:
        errors["techUsed"] = "Technology category is required"
    elif fields["tech_used"] not in TECH_CATEGORIES:
        errors["techUsed"] = f"techUsed must be one of: {', '.join(TECH_CATEGORIES)}"

    if not fields["project_url"]:
        errors["projectUrl"] = "Project URL is required"
    elif not is_http_url(fields["project_url"]):
        errors["projectUrl"] = "Project URL must start with http:// or https://"

    if fields["github_url"] and not is_http_url(fields["github_url"]):
        errors["githubUrl"] = "GitHub URL must start with http:// or https://"
    fields["github_url"] = fields["github_url"] or None

    return fields, errors


def validate_comment_text(text: Any) -> Tuple[str, str]:
    """
    Returns:
        tuple: (clean_text, error_message); error_message is "" when valid.
    """
    if text is not None and not isinstance(text, str):
        return "", "Comment text must be a string"
    clean = (text or "").strip()
    if not clean:
        return "", "Comment text is required"
    if len(clean) > COMMENT_MAX_LENGTH:
        return "", f"Comment must be {COMMENT_MAX_LENGTH} characters or less"
    return clean, ""
