from campus_timetable.models.models import UserRole

from conftest import make_user

USERS = "/api/v1/users"


def _register(client, username="alice", email="alice@campus.edu", registration_number="REG-100"):
    return client.post(f"{USERS}/register", json={
        "username": username,
        "email": email,
        "password": "secret123",
        "registration_number": registration_number,
    })


def test_student_registration_issues_tokens(client):
    response = _register(client, username="Alice", email="Alice@Campus.edu")

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["user"]["role"] == "Student"
    assert data["user"]["username"] == "alice"
    assert data["user"]["email"] == "alice@campus.edu"
    assert data["token_type"] == "bearer"
    assert "refresh_token" in response.cookies

    profile = client.get(f"{USERS}/profile", headers={"Authorization": f"Bearer {data['access_token']}"})
    assert profile.json()["data"]["username"] == "alice"


def test_duplicate_registration(client):
    _register(client)

    response = _register(client, email="other@campus.edu")

    assert response.status_code == 409


def test_login_by_username_or_email(client, student):
    by_name = client.post(f"{USERS}/login", json={"username_or_email": "student", "password": "secret123"})
    by_email = client.post(f"{USERS}/login", json={"username_or_email": "STUDENT@campus.edu", "password": "secret123"})

    assert by_name.status_code == 200
    assert by_email.status_code == 200


def test_wrong_password(client, student):
    response = client.post(f"{USERS}/login", json={"username_or_email": "student", "password": "nope"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"


def test_role_specific_login(client, admin, student):
    assert client.post(f"{USERS}/admin/login", json={"username_or_email": "admin", "password": "secret123"}).status_code == 200
    assert client.post(f"{USERS}/admin/login", json={"username_or_email": "student", "password": "secret123"}).status_code == 401
    assert client.post(f"{USERS}/student/login", json={"username_or_email": "admin", "password": "secret123"}).status_code == 401


def test_refresh_rotates_and_revokes_old_token(client, student):
    login = client.post(f"{USERS}/login", json={"username_or_email": "student", "password": "secret123"})
    old_refresh = login.json()["data"]["refresh_token"]

    refreshed = client.post(f"{USERS}/refresh-token", json={"refresh_token": old_refresh})
    assert refreshed.status_code == 200

    assert refreshed.json()["data"]["refresh_token"] != old_refresh

    replay = client.post(f"{USERS}/refresh-token", json={"refresh_token": old_refresh})
    assert replay.status_code == 401
    assert replay.json()["detail"] == "Refresh token has been revoked"


def test_refresh_rejects_access_token(client, student_headers):
    access = student_headers["Authorization"].split()[1]

    response = client.post(f"{USERS}/refresh-token", json={"refresh_token": access})

    assert response.status_code == 401


def test_missing_and_invalid_tokens(client):
    missing = client.get(f"{USERS}/profile")
    invalid = client.get(f"{USERS}/profile", headers={"Authorization": "Bearer not-a-jwt"})

    assert missing.status_code == 401
    assert missing.json()["detail"] == "Unauthorized Request: Token missing"
    assert invalid.status_code == 401
    assert invalid.json()["detail"] == "Invalid or expired token."


def test_logout_clears_refresh_token(client, student, student_headers, db):
    client.post(f"{USERS}/login", json={"username_or_email": "student", "password": "secret123"})

    response = client.post(f"{USERS}/logout", headers=student_headers)

    assert response.status_code == 200
    db.refresh(student)
    assert student.refresh_token is None


def test_change_password(client, student_headers):
    wrong = client.post(f"{USERS}/change-password", json={"old_password": "bad", "new_password": "newsecret"},
                        headers=student_headers)
    changed = client.post(f"{USERS}/change-password", json={"old_password": "secret123", "new_password": "newsecret"},
                          headers=student_headers)

    assert wrong.status_code == 401
    assert changed.status_code == 200
    assert client.post(f"{USERS}/login", json={"username_or_email": "student", "password": "newsecret"}).status_code == 200


def test_update_profile(client, admin, student_headers):
    clash = client.patch(f"{USERS}/update-profile", json={"username": "admin"}, headers=student_headers)
    ok = client.patch(f"{USERS}/update-profile", json={"username": "Student2"}, headers=student_headers)

    assert clash.status_code == 409
    assert ok.json()["data"]["username"] == "student2"


def test_admin_creates_admin(client, admin_headers, student_headers):
    body = {"username": "second", "email": "second@campus.edu", "password": "secret123"}

    forbidden = client.post(f"{USERS}/admin/register", json=body, headers=student_headers)
    created = client.post(f"{USERS}/admin/register", json=body, headers=admin_headers)

    assert forbidden.status_code == 403
    assert created.status_code == 201
    assert created.json()["data"]["role"] == "Admin"


def test_last_admin_cannot_delete_account(client, admin_headers):
    response = client.delete(f"{USERS}/delete-account", headers=admin_headers)

    assert response.status_code == 400


def test_student_can_delete_account(client, student_headers):
    assert client.delete(f"{USERS}/delete-account", headers=student_headers).status_code == 200
    assert client.get(f"{USERS}/profile", headers=student_headers).json()["detail"] == "Invalid Access Token: User not found"


def test_dashboards(client, admin_headers, student_headers, db):
    make_user(db, "bob", UserRole.STUDENT, registration_number="REG-2")

    admin_view = client.get(f"{USERS}/admin-dashboard", headers=admin_headers)
    student_view = client.get(f"{USERS}/student-dashboard", headers=student_headers)

    assert admin_view.json()["data"]["total_students"] == 2
    assert student_view.json()["data"]["timetables"] == []
    assert client.get(f"{USERS}/admin-dashboard", headers=student_headers).status_code == 403
