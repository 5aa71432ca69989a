import io

import pytest

from backend.tests.factories import make_project_row


def _project_form(**overrides):
    form = {
        "projectName": "Portfolio Site",
        "projectDescription": "My personal site",
        "techUsed": "web-development",
        "projectUrl": "https://example.com",
    }
    form.update(overrides)
    return form


def _with_screenshot(form, filename="shot.png"):
    form["screenshot"] = (io.BytesIO(b"\x89PNG fake image"), filename)
    return form


def test_create_project_success(client, mock_db, auth_headers, upload_dir):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.side_effect = [
        {"project_id": 7},  # RETURNING project_id
        make_project_row(),
    ]

    response = client.post(
        "/api/projects",
        data=_with_screenshot(_project_form()),
        headers=auth_headers(1, "student"),
        content_type="multipart/form-data",
    )

    assert response.status_code == 201
    data = response.get_json()
    assert data["project_id"] == 7
    assert data["title"] == data["project_name"] == "Portfolio Site"
    assert data["description"] == data["project_description"]
    assert data["upvotes"] == 0
    assert data["comments"] == []
    assert data["created_at"] == "2025-01-01T10:00:00+00:00"

    saved = list((upload_dir / "screenshots").iterdir())
    assert len(saved) == 1
    assert saved[0].name.endswith("_shot.png")

    insert_args, _ = mock_cursor.execute.call_args_list[0]
    assert "INSERT INTO projects" in insert_args[0]
    params = insert_args[1]
    assert params[0] == 1  # owner comes from the token
    assert params[3] == "web-development"
    assert params[5] is None  # githubUrl omitted
    assert params[6] == f"uploads/screenshots/{saved[0].name}"


def test_create_project_accepts_legacy_fields(client, mock_db, auth_headers, upload_dir):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.side_effect = [{"project_id": 8}, make_project_row(project_id=8)]

    form = {
        "title": "Old Client Project",
        "description": "Sent with legacy keys",
        "techUsed": "iot",
        "projectUrl": "http://device.local",
        "image": (io.BytesIO(b"img"), "legacy.jpg"),
    }
    response = client.post(
        "/api/projects", data=form, headers=auth_headers(), content_type="multipart/form-data"
    )

    assert response.status_code == 201
    params = mock_cursor.execute.call_args_list[0][0][1]
    assert params[1] == "Old Client Project"
    assert params[2] == "Sent with legacy keys"


def test_create_project_missing_fields(client, mock_db, auth_headers, upload_dir):
    _, mock_cursor = mock_db

    response = client.post(
        "/api/projects",
        data={"projectName": "Only a name"},
        headers=auth_headers(),
        content_type="multipart/form-data",
    )

    assert response.status_code == 400
    data = response.get_json()
    assert data["error"] == "Validation failed"
    assert set(data["fields"]) == {"projectDescription", "techUsed", "projectUrl", "screenshot"}
    mock_cursor.execute.assert_not_called()


def test_create_project_invalid_tech(client, mock_db, auth_headers, upload_dir):
    response = client.post(
        "/api/projects",
        data=_with_screenshot(_project_form(techUsed="basket-weaving")),
        headers=auth_headers(),
        content_type="multipart/form-data",
    )

    assert response.status_code == 400
    assert "techUsed" in response.get_json()["fields"]
    assert not (upload_dir / "screenshots").exists()


def test_create_project_rejects_non_image(client, mock_db, auth_headers, upload_dir):
    response = client.post(
        "/api/projects",
        data=_with_screenshot(_project_form(), filename="notes.txt"),
        headers=auth_headers(),
        content_type="multipart/form-data",
    )

    assert response.status_code == 400
    assert "screenshot" in response.get_json()["fields"]


def test_create_project_db_failure_removes_file(client, mock_db, auth_headers, upload_dir):
    _, mock_cursor = mock_db
    mock_cursor.execute.side_effect = Exception("DB Error")

    response = client.post(
        "/api/projects",
        data=_with_screenshot(_project_form()),
        headers=auth_headers(),
        content_type="multipart/form-data",
    )

    assert response.status_code == 500
    assert list((upload_dir / "screenshots").iterdir()) == []


def test_list_own_projects(client, mock_db, auth_headers):
    _, mock_cursor = mock_db
    mock_cursor.fetchall.return_value = [
        make_project_row(project_id=9, user_id=4),
        make_project_row(project_id=3, user_id=4),
    ]

    response = client.get("/api/projects", headers=auth_headers(4, "student"))

    assert response.status_code == 200
    assert [p["project_id"] for p in response.get_json()] == [9, 3]
    sql, params = mock_cursor.execute.call_args[0]
    assert "WHERE p.user_id = %s" in sql
    assert "ORDER BY p.created_at DESC" in sql
    assert params == (4,)


@pytest.mark.parametrize("path", ["/api/projects/community", "/api/projects/all"])
def test_list_community_projects(client, mock_db, auth_headers, path):
    _, mock_cursor = mock_db
    mock_cursor.fetchall.return_value = [
        make_project_row(
            project_id=2,
            user_id=5,
            upvoted_by=[1, 3],
            downvoted_by=[4],
            comments=[{"comment_id": 1, "user_id": 9, "text": "Nice", "author_name": "Prof"}],
        )
    ]

    response = client.get(path, headers=auth_headers(9, "teacher"))

    assert response.status_code == 200
    project = response.get_json()[0]
    assert project["upvotes"] == 2
    assert project["downvotes"] == 1
    assert project["upvoted_by"] == [1, 3]
    assert project["user"]["user_id"] == 5
    assert project["comments"][0]["text"] == "Nice"
    assert "password_hash" not in project["user"]


def test_get_project(client, mock_db, auth_headers):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = make_project_row(project_id=7)

    response = client.get("/api/projects/7", headers=auth_headers())

    assert response.status_code == 200
    assert response.get_json()["project_id"] == 7


def test_get_project_not_found(client, mock_db, auth_headers):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = None

    response = client.get("/api/projects/404", headers=auth_headers())

    assert response.status_code == 404
    assert response.get_json()["error"] == "Project not found"


def test_delete_project_not_owner(client, mock_db, auth_headers, upload_dir):
    _, mock_cursor = mock_db
    shots = upload_dir / "screenshots"
    shots.mkdir(parents=True)
    (shots / "keep.png").write_bytes(b"img")
    mock_cursor.fetchone.return_value = {"user_id": 2, "screenshot_url": "uploads/screenshots/keep.png"}

    response = client.delete("/api/projects/7", headers=auth_headers(1, "teacher"))

    assert response.status_code == 403
    assert response.get_json()["error"] == "Only the project owner can delete this project"
    assert (shots / "keep.png").exists()
    # Only the ownership lookup ran
    assert mock_cursor.execute.call_count == 1


def test_delete_project_owner(client, mock_db, auth_headers, upload_dir):
    _, mock_cursor = mock_db
    shots = upload_dir / "screenshots"
    shots.mkdir(parents=True)
    (shots / "gone.png").write_bytes(b"img")
    mock_cursor.fetchone.return_value = {"user_id": 1, "screenshot_url": "uploads/screenshots/gone.png"}

    response = client.delete("/api/projects/7", headers=auth_headers(1, "student"))

    assert response.status_code == 200
    assert response.get_json()["message"] == "Project removed"
    assert not (shots / "gone.png").exists()
    sql, params = mock_cursor.execute.call_args[0]
    assert sql.startswith("DELETE FROM projects")
    assert params == (7,)


def test_delete_project_not_found(client, mock_db, auth_headers):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = None

    response = client.delete("/api/projects/7", headers=auth_headers())

    assert response.status_code == 404


@pytest.mark.parametrize("method, path", [
    ("post", "/api/projects"),
    ("get", "/api/projects"),
    ("get", "/api/projects/community"),
    ("get", "/api/projects/1"),
    ("delete", "/api/projects/1"),
    ("put", "/api/projects/1/upvote"),
    ("put", "/api/projects/1/downvote"),
    ("post", "/api/projects/1/comment"),
    ("delete", "/api/projects/1/comment/1"),
])
def test_protected_routes_require_token(client, mock_db, method, path):
    _, mock_cursor = mock_db

    response = getattr(client, method)(path)

    assert response.status_code == 401
    assert response.get_json()["error"] == "No token, authorization denied"
    mock_cursor.execute.assert_not_called()


def test_protected_routes_reject_bad_token(client, mock_db):
    response = client.get("/api/projects", headers={"x-auth-token": "garbage"})

    assert response.status_code == 401
    assert response.get_json()["error"] == "Token is not valid"


# --- COMMENTS ---
def _comment_rows(*texts):
    return [
        {"comment_id": i + 1, "user_id": 9, "text": text, "created_at": None,
         "author_name": "Prof", "author_full_name": "Prof X"}
        for i, text in enumerate(texts)
    ]


def test_student_cannot_comment(client, mock_db, auth_headers):
    _, mock_cursor = mock_db

    response = client.post(
        "/api/projects/7/comment", json={"text": "hello"}, headers=auth_headers(1, "student")
    )

    assert response.status_code == 403
    assert response.get_json()["error"] == "Only teachers can comment on projects"
    mock_cursor.execute.assert_not_called()


@pytest.mark.parametrize("path", ["/api/projects/7/comment", "/api/projects/7/comments"])
def test_teacher_adds_comment(client, mock_db, auth_headers, path):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = {"project_id": 7}
    mock_cursor.fetchall.return_value = _comment_rows("first", "Great work")

    response = client.post(path, json={"text": "  Great work  "}, headers=auth_headers(9, "teacher"))

    assert response.status_code == 201
    assert [c["text"] for c in response.get_json()] == ["first", "Great work"]
    insert_args = mock_cursor.execute.call_args_list[1][0]
    assert insert_args[1] == (7, 9, "Great work")


def test_comment_at_length_limit_accepted(client, mock_db, auth_headers):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = {"project_id": 7}
    mock_cursor.fetchall.return_value = _comment_rows("x" * 1000)

    response = client.post(
        "/api/projects/7/comment", json={"text": "x" * 1000}, headers=auth_headers(9, "teacher")
    )

    assert response.status_code == 201


@pytest.mark.parametrize("text", ["x" * 1001, "", "   ", None])
def test_comment_text_rejected(client, mock_db, auth_headers, text):
    _, mock_cursor = mock_db

    response = client.post(
        "/api/projects/7/comment", json={"text": text}, headers=auth_headers(9, "teacher")
    )

    assert response.status_code == 400
    mock_cursor.execute.assert_not_called()


def test_comment_on_missing_project(client, mock_db, auth_headers):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = None

    response = client.post(
        "/api/projects/7/comment", json={"text": "hi"}, headers=auth_headers(9, "teacher")
    )

    assert response.status_code == 404


def test_delete_comment_not_author(client, mock_db, auth_headers):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.side_effect = [{"project_id": 7}, {"user_id": 10}]

    response = client.delete("/api/projects/7/comment/3", headers=auth_headers(9, "teacher"))

    assert response.status_code == 403
    assert response.get_json()["error"] == "Only the comment author can delete this comment"
    assert mock_cursor.execute.call_count == 2


def test_delete_comment_author(client, mock_db, auth_headers):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.side_effect = [{"project_id": 7}, {"user_id": 9}]
    mock_cursor.fetchall.return_value = _comment_rows("remaining")

    response = client.delete("/api/projects/7/comments/3", headers=auth_headers(9, "teacher"))

    assert response.status_code == 200
    assert [c["text"] for c in response.get_json()] == ["remaining"]
    delete_args = mock_cursor.execute.call_args_list[2][0]
    assert delete_args[0].startswith("DELETE FROM project_comments")
    assert delete_args[1] == (3,)


def test_delete_missing_comment(client, mock_db, auth_headers):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.side_effect = [{"project_id": 7}, None]

    response = client.delete("/api/projects/7/comment/3", headers=auth_headers(9, "teacher"))

    assert response.status_code == 404
    assert response.get_json()["error"] == "Comment not found"


def test_comment_rejects_non_object_body(client, mock_db, auth_headers):
    _, mock_cursor = mock_db

    response = client.post(
        "/api/projects/7/comments", json=["not", "an", "object"], headers=auth_headers(9, "teacher")
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "Request body must be a JSON object."
    mock_cursor.execute.assert_not_called()


@pytest.mark.parametrize("text", [["a"], 5, {"body": "hi"}])
def test_comment_text_must_be_string(client, mock_db, auth_headers, text):
    _, mock_cursor = mock_db

    response = client.post(
        "/api/projects/7/comment", json={"text": text}, headers=auth_headers(9, "teacher")
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "Comment text must be a string"
    mock_cursor.execute.assert_not_called()


def test_create_project_rejects_non_object_body(client, mock_db, auth_headers):
    response = client.post("/api/projects", json=[1, 2], headers=auth_headers())

    assert response.status_code == 400
    assert response.get_json()["error"] == "Request body must be a JSON object."


def test_create_project_non_string_fields_are_validation_errors(client, mock_db, auth_headers):
    response = client.post(
        "/api/projects",
        json={"projectName": ["x"], "projectDescription": 3, "techUsed": "iot", "projectUrl": "https://a.io"},
        headers=auth_headers(),
    )

    assert response.status_code == 400
    fields = response.get_json()["fields"]
    assert {"projectName", "projectDescription", "screenshot"} <= set(fields)


def test_project_payload_has_camel_case_keys(client, mock_db, auth_headers):
    _, mock_cursor = mock_db
    mock_cursor.fetchone.return_value = make_project_row(
        project_id=7,
        owner_profile_image="uploads/profile_images/a.png",
        upvoted_by=[2],
        comments=[{"comment_id": 1, "user_id": 9, "text": "Nice", "created_at": "2025-01-02T00:00:00+00:00"}],
    )

    response = client.get("/api/projects/7", headers=auth_headers())

    project = response.get_json()
    assert project["projectName"] == project["project_name"]
    assert project["techUsed"] == project["technology"] == "web-development"
    assert project["liveUrl"] == project["projectUrl"] == "https://example.com"
    assert project["screenshotUrl"] == project["imageUrl"]
    assert project["upvotedBy"] == [2]
    assert project["createdAt"] == "2025-01-01T10:00:00+00:00"
    assert project["user"]["profileImage"] == "uploads/profile_images/a.png"
    assert project["user"]["fullName"] == "Stu Dent"
    assert project["comments"][0]["createdAt"] == "2025-01-02T00:00:00+00:00"
