"""
Request body helpers shared by the blueprints.
"""

from typing import Any, Dict, Iterable, Optional

from flask import request

BODY_NOT_OBJECT_MESSAGE = "Request body must be a JSON object."


def request_data() -> Optional[Dict[str, Any]]:
    """
    Form fields if the request has any, otherwise the JSON body.

    Returns:
        dict: The submitted fields ({} when there is no body).
        None: The JSON body is not an object.
    """
    if request.form:
        return request.form.to_dict()

    data = request.get_json(silent=True)
    if data is None:
        return {}
    return data if isinstance(data, dict) else None


def non_string_field(data: Dict[str, Any], fields: Iterable[str]) -> Optional[str]:
    """Name of the first present field whose value is not a string, or None."""
    for field in fields:
        value = data.get(field)
        if value is not None and not isinstance(value, str):
            return field
    return None
