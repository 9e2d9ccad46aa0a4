from conftest import PASSWORD, auth_headers


def register_school(client, name="Lincoln High", email="admin@lincoln.edu"):
    response = client.post(
        "/api/schools/register",
        json={
            "school_name": name,
            "admin_email": email,
            "admin_password": PASSWORD,
            "admin_full_name": "Ada Admin",
        },
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


def signup(client, email, full_name="Test User"):
    response = client.post(
        "/api/auth/signup",
        json={"email": email, "password": PASSWORD, "full_name": full_name},
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}
    assert client.get("/").json()["health"] == "/api/health"


def test_signup_login_and_me(client):
    profile = signup(client, "  Kim@Example.com ", "Kim Lee")
    assert profile["email"] == "kim@example.com"
    assert profile["user_type"] is None

    headers = auth_headers(client, "KIM@example.com")
    me = client.get("/api/auth/me", headers=headers).json()["data"]
    assert me["profile"]["full_name"] == "Kim Lee"
    assert me["role"] == {
        "role": "unassigned",
        "school_id": None,
        "is_supervisor": False,
        "capabilities": [],
    }


def test_auth_failures_use_error_envelope(client):
    signup(client, "kim@example.com")

    missing = client.get("/api/auth/me")
    assert missing.status_code == 401
    assert missing.json()["error"] == "Unauthorized"

    garbage = client.get("/api/auth/me", headers={"Authorization": "Bearer nope"})
    assert garbage.status_code == 401

    wrong = client.post(
        "/api/auth/login", json={"email": "kim@example.com", "password": "wrong-password"}
    )
    assert wrong.status_code == 401
    assert wrong.json() == {"error": "Unauthorized", "message": "Invalid email or password"}


def test_validation_errors_are_bad_requests(client):
    response = client.post(
        "/api/auth/signup", json={"email": "kim@example.com", "password": "short", "full_name": "K"}
    )
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "BadRequest"
    assert "password" in body["message"]

    bad_email = client.post(
        "/api/auth/signup",
        json={"email": "not-an-email", "password": PASSWORD, "full_name": "K"},
    )
    assert bad_email.status_code == 400


def test_unknown_route_is_not_found(client):
    response = client.get("/api/nowhere")
    assert response.status_code == 404
    assert response.json()["error"] == "NotFound"


def test_duplicate_registration_conflicts(client):
    register_school(client)
    response = client.post(
        "/api/schools/register",
        json={
            "school_name": "Another School",
            "admin_email": "ADMIN@lincoln.edu",
            "admin_password": PASSWORD,
            "admin_full_name": "Ada Again",
        },
    )
    assert response.status_code == 409
    assert response.json()["error"] == "Conflict"


def test_onboarding_flow(client):
    school = register_school(client)
    school_id = school["school_id"]
    admin = auth_headers(client, "admin@lincoln.edu")

    invitation = client.post(
        "/api/invitations/teachers",
        headers=admin,
        json={"school_id": school_id, "email": "jane@lincoln.edu"},
    )
    assert invitation.status_code == 201, invitation.text
    token = invitation.json()["data"]["invitation_token"]

    verification = client.get(f"/api/invitations/{token}").json()["data"]
    assert verification["valid"] is True
    assert verification["school_name"] == "Lincoln High"

    signup(client, "jane@lincoln.edu", "Jane Teacher")
    jane = auth_headers(client, "jane@lincoln.edu")
    accepted = client.post(f"/api/invitations/{token}/accept", headers=jane)
    assert accepted.json()["data"] == {"school_id": school_id, "role": "teacher"}

    role = client.get("/api/roles/me", headers=jane).json()["data"]
    assert role["role"] == "teacher"
    assert role["is_supervisor"] is False
    assert "approve_students" in role["capabilities"]
    assert "invite_teacher" not in role["capabilities"]

    registered = client.post(
        "/api/auth/register-student",
        json={
            "email": "sam@lincoln.edu",
            "password": PASSWORD,
            "full_name": "Sam Student",
            "school_code": school["school_code"].lower(),
        },
    )
    assert registered.status_code == 201, registered.text
    assert registered.json()["data"]["status"] == "pending"
    student_id = registered.json()["data"]["user_id"]

    pending = client.get(
        f"/api/schools/{school_id}/students", headers=jane, params={"status": "pending"}
    ).json()["data"]
    assert [s["email"] for s in pending] == ["sam@lincoln.edu"]

    approved = client.post(f"/api/students/{student_id}/approve", headers=jane)
    assert approved.json()["data"]["status"] == "active"

    teachers = client.get(f"/api/schools/{school_id}/teachers", headers=jane).json()["data"]
    assert sorted(t["email"] for t in teachers) == ["admin@lincoln.edu", "jane@lincoln.edu"]

    sam = auth_headers(client, "sam@lincoln.edu")
    log = client.post("/api/session-logs", headers=sam, json={"topic": "Biology"}).json()["data"]
    answer = client.post(
        "/api/chat/ask",
        headers=sam,
        json={"question": "What is photosynthesis?", "session_log_id": log["id"]},
    )
    assert answer.status_code == 200, answer.text
    assert answer.json()["data"]["answer"] == "Photosynthesis turns light into chemical energy."
    client.post(f"/api/session-logs/{log['id']}/end", headers=sam)

    summary = client.get(f"/api/schools/{school_id}/analytics", headers=jane).json()["data"]
    assert summary["session_count"] == 1
    assert summary["total_queries"] == 1
    assert summary["active_students"] == 1
    assert summary["top_topics"] == [{"topic": "Biology", "count": 1}]

    forbidden = client.get(f"/api/schools/{school_id}/analytics", headers=sam)
    assert forbidden.status_code == 403
    assert forbidden.json()["error"] == "Forbidden"

    revoked = client.delete(f"/api/students/{student_id}", headers=jane)
    assert revoked.status_code == 200
    assert client.get("/api/roles/me", headers=sam).json()["data"]["role"] == "unassigned"


def test_school_code_rate_limit(client):
    school = register_school(client)
    admin = auth_headers(client, "admin@lincoln.edu")
    url = f"/api/schools/{school['school_id']}/code"

    for _ in range(5):
        assert client.post(url, headers=admin).status_code == 201
    limited = client.post(url, headers=admin)
    assert limited.status_code == 429
    assert limited.json()["error"] == "RateLimited"

    current = client.get(url, headers=admin).json()["data"]
    assert current["code"] != school["school_code"]


def test_expired_invitation(client, clock):
    school = register_school(client)
    admin = auth_headers(client, "admin@lincoln.edu")
    token = client.post(
        "/api/invitations/teachers",
        headers=admin,
        json={"school_id": school["school_id"], "email": "jane@lincoln.edu"},
    ).json()["data"]["invitation_token"]

    clock.advance(days=8)
    signup(client, "jane@lincoln.edu")
    jane = auth_headers(client, "jane@lincoln.edu")

    assert client.get(f"/api/invitations/{token}").status_code == 410
    response = client.post(f"/api/invitations/{token}/accept", headers=jane)
    assert response.status_code == 410
    assert response.json()["error"] == "Expired"


def test_student_invite_requires_email_for_email_method(client):
    school = register_school(client)
    admin = auth_headers(client, "admin@lincoln.edu")
    response = client.post(
        "/api/invitations/students",
        headers=admin,
        json={"school_id": school["school_id"], "method": "email"},
    )
    assert response.status_code == 400

    code = client.post(
        "/api/invitations/students",
        headers=admin,
        json={"school_id": school["school_id"], "method": "code"},
    )
    assert code.status_code == 201
    assert len(code.json()["data"]["code"]) == 8


def test_chat_history_through_api(client):
    school = register_school(client)
    client.post(
        "/api/auth/register-student",
        json={
            "email": "sam@lincoln.edu",
            "password": PASSWORD,
            "full_name": "Sam Student",
            "school_code": school["school_code"],
        },
    )
    sam = auth_headers(client, "sam@lincoln.edu")

    saved = client.post("/api/chat/messages", headers=sam, json={"sender": "user", "content": "Hi"})
    assert saved.status_code == 201
    conversation_id = saved.json()["data"]["conversation_id"]

    conversations = client.get("/api/chat/conversations", headers=sam).json()["data"]
    assert conversations[0]["title"] == "New conversation on 2025-03-03"

    messages = client.get(
        f"/api/chat/conversations/{conversation_id}/messages", headers=sam
    ).json()["data"]
    assert [m["content"] for m in messages] == ["Hi"]


def test_cors_preflight(client):
    response = client.options(
        "/api/health",
        headers={
            "Origin": "https://app.example.com",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] in ("*", "https://app.example.com")


def test_supervisor_provisions_teacher(client):
    school = register_school(client)
    admin = auth_headers(client, "admin@lincoln.edu")
    url = f"/api/schools/{school['school_id']}/teachers"

    response = client.post(url, headers=admin, json={"email": "Mo@Lincoln.edu"})
    assert response.status_code == 201, response.text
    created = response.json()["data"]
    assert created["email"] == "mo@lincoln.edu"

    mo = auth_headers(client, "mo@lincoln.edu", created["temporary_password"])
    role = client.get("/api/auth/me", headers=mo).json()["data"]["role"]
    assert role["role"] == "teacher"
    assert role["is_supervisor"] is False

    forbidden = client.post(url, headers=mo, json={"email": "kai@lincoln.edu"})
    assert forbidden.status_code == 403
    duplicate = client.post(url, headers=admin, json={"email": "mo@lincoln.edu"})
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "Conflict"

    listed = client.get(url, headers=admin).json()["data"]
    assert sorted(t["email"] for t in listed) == ["admin@lincoln.edu", "mo@lincoln.edu"]
