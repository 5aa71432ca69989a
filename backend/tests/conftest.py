import os
from unittest.mock import MagicMock

import pytest

# Ensure JWT_SECRET is set for tests before the config module is imported
os.environ["JWT_SECRET"] = "test_secret"

from backend.auth_service.utils import create_token  # noqa: E402
from backend.gateway.server import create_app  # noqa: E402

ROUTE_MODULES = [
    "backend.auth_service.routes",
    "backend.users_service.routes",
    "backend.projects_service.routes",
]


@pytest.fixture
def upload_dir(tmp_path, mocker):
    folder = tmp_path / "uploads"
    mocker.patch("backend.config.UPLOAD_FOLDER", str(folder))
    return folder


@pytest.fixture
def app(upload_dir):
    return create_app({"TESTING": True})


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def mock_db(mocker):
    """
    Mocks the database connection and cursor in every routes module.
    """
    mock_conn = MagicMock()
    mock_cursor = MagicMock()

    # Setup the context manager for connection; __exit__ must not swallow errors
    mock_conn.__enter__.return_value = mock_conn
    mock_conn.__exit__.return_value = None

    # Setup the context manager for cursor
    mock_cursor.__enter__.return_value = mock_cursor
    mock_cursor.__exit__.return_value = None

    # Connect cursor to connection
    mock_conn.cursor.return_value = mock_cursor

    for module in ROUTE_MODULES:
        mocker.patch(f"{module}.get_db", return_value=mock_conn)

    return mock_conn, mock_cursor


@pytest.fixture
def auth_headers():
    """
    Build request headers carrying a real token for the given user.
    """
    def _make(user_id=1, role="student", header="bearer"):
        token = create_token(user_id, role)
        if header == "x-auth-token":
            return {"x-auth-token": token}
        return {"Authorization": f"Bearer {token}"}

    return _make
