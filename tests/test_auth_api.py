from conftest import PASSWORD, auth_header


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_login_success(client, admin):
    response = client.post("/api/auth/login", json={"email": "admin@example.com", "password": PASSWORD})
    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["user"]["id"] == admin.id
    assert data["user"]["role"] == "admin"
    assert "password_hash" not in data["user"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
    assert me.status_code == 200
    assert me.json()["email"] == "admin@example.com"


def test_login_wrong_password(client, admin):
    response = client.post("/api/auth/login", json={"email": "admin@example.com", "password": "nope-nope"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"


def test_login_unknown_user(client):
    response = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})
    assert response.status_code == 401


def test_me_requires_token(client):
    assert client.get("/api/auth/me").status_code == 401
    bad = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert bad.status_code == 401


def test_inactive_user_token_rejected(client, add_user):
    user = add_user(status="inactive")
    assert client.get("/api/auth/me", headers=auth_header(user)).status_code == 401


def test_invitation_flow(client, admin):
    invite = client.post("/api/users/invite", headers=auth_header(admin),
                         json={"email": "newbie@example.com", "first_name": "New", "last_name": "Bie"})
    assert invite.status_code == 201
    body = invite.json()
    assert body["user"]["status"] == "invited"
    assert body["invitation_code"] in body["invitation_link"]

    duplicate = client.post("/api/users/invite", headers=auth_header(admin), json={"email": "newbie@example.com"})
    assert duplicate.status_code == 409

    # invited users cannot log in yet
    early = client.post("/api/auth/login", json={"email": "newbie@example.com", "password": "whatever1"})
    assert early.status_code == 401

    accepted = client.post("/api/auth/accept-invitation", json={
        "email": "newbie@example.com",
        "invitation_code": body["invitation_code"],
        "password": "newbie-pass",
        "confirm_password": "newbie-pass",
    })
    assert accepted.status_code == 200
    assert accepted.json()["user"]["status"] == "active"

    login = client.post("/api/auth/login", json={"email": "newbie@example.com", "password": "newbie-pass"})
    assert login.status_code == 200


def test_accept_invitation_mismatched_passwords(client, admin):
    invite = client.post("/api/users/invite", headers=auth_header(admin), json={"email": "x@example.com"})
    response = client.post("/api/auth/accept-invitation", json={
        "email": "x@example.com",
        "invitation_code": invite.json()["invitation_code"],
        "password": "first-pass",
        "confirm_password": "second-pass",
    })
    assert response.status_code == 400
    assert response.json()["detail"] == "Passwords do not match"


def test_forgot_and_reset_password(client, student):
    forgot = client.post("/api/auth/forgot-password", json={"email": "student@example.com"})
    assert forgot.status_code == 200
    token = forgot.json()["reset_token"]
    assert token

    reset = client.post("/api/auth/reset-password",
                        json={"token": token, "password": "fresh-pass-1", "confirm_password": "fresh-pass-1"})
    assert reset.status_code == 200

    login = client.post("/api/auth/login", json={"email": "student@example.com", "password": "fresh-pass-1"})
    assert login.status_code == 200


def test_forgot_password_unknown_email(client):
    response = client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})
    assert response.status_code == 404


def test_user_admin_endpoints(client, admin, student):
    assert client.get("/api/users", headers=auth_header(student)).status_code == 403
    users = client.get("/api/users", headers=auth_header(admin))
    assert users.status_code == 200
    assert {u["email"] for u in users.json()} == {"admin@example.com", "student@example.com"}

    perms = client.patch(f"/api/users/{student.id}/permissions", headers=auth_header(admin),
                         json={"can_download_certificates": False})
    assert perms.status_code == 200
    assert perms.json()["permissions"] == {
        "can_access_courses": True,
        "can_take_exams": True,
        "can_download_certificates": False,
    }

    reset = client.post(f"/api/users/{student.id}/reset-password", headers=auth_header(admin))
    assert reset.status_code == 200
    new_password = reset.json()["password"]
    login = client.post("/api/auth/login", json={"email": "student@example.com", "password": new_password})
    assert login.status_code == 200

    toggled = client.post(f"/api/users/{student.id}/toggle-status", headers=auth_header(admin))
    assert toggled.json()["status"] == "inactive"
    assert client.get("/api/auth/me", headers=auth_header(student)).status_code == 401


def test_self_service_profile(client, admin, student):
    own = client.put(f"/api/users/{student.id}", headers=auth_header(student), json={"company": "Acme"})
    assert own.status_code == 200
    assert own.json()["company"] == "Acme"

    escalate = client.put(f"/api/users/{student.id}", headers=auth_header(student), json={"role": "admin"})
    assert escalate.status_code == 403

    other = client.put(f"/api/users/{admin.id}", headers=auth_header(student), json={"company": "x"})
    assert other.status_code == 403
    assert client.get(f"/api/users/{admin.id}", headers=auth_header(student)).status_code == 403

    changed = client.post(f"/api/users/{student.id}/change-password", headers=auth_header(student),
                          json={"current_password": PASSWORD, "new_password": "changed-pass",
                                "confirm_password": "changed-pass"})
    assert changed.status_code == 200
