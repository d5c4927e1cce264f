from conftest import auth_header


def _course_payload():
    return {
        "title": "Data Engineering",
        "description": "Pipelines end to end",
        "start_date": "2024-01-01",
        "instructor": {"id": "i9", "name": "Edgar Codd"},
        "chapters": [
            {"title": "Storage", "start_date": "2024-01-01", "duration": 60,
             "milestones": [{"title": "Read about storage"}]},
            {"title": "Batch", "start_date": "2024-01-08", "duration": 45,
             "milestones": [{"title": "Write a batch job"}]},
            {"title": "Streaming", "start_date": "2099-01-01", "start_time": "16:00", "duration": 30,
             "meeting": {"type": "meet", "url": "https://meet.example.com/abc"},
             "milestones": [{"title": "Attend the live session"}]},
        ],
    }


def test_learning_journey(client, admin, student):
    admin_headers = auth_header(admin)
    headers = auth_header(student)

    # 1. admin publishes a course
    created = client.post("/api/courses", json=_course_payload(), headers=admin_headers)
    assert created.status_code == 201
    course = created.json()
    cid = course["id"]
    assert client.post(f"/api/courses/{cid}/activate", headers=admin_headers).status_code == 200
    storage_ch, batch_ch, _ = course["chapters"]

    # 2. student enrolls
    enrolled = client.post(f"/api/courses/{cid}/enroll", headers=headers)
    assert enrolled.status_code == 200
    assert enrolled.json()["enrolled_count"] == 1

    dashboard = client.get("/api/me/dashboard", headers=headers).json()
    assert dashboard["active_courses"] == 1
    assert dashboard["study_minutes"] == 0
    assert dashboard["valid_certificates"] == 0
    assert [u["chapter_title"] for u in dashboard["upcoming"]] == ["Streaming"]
    assert dashboard["upcoming"][0]["meeting_url"] == "https://meet.example.com/abc"

    # 3. progress through the first chapter
    mid = storage_ch["milestones"][0]["id"]
    done = client.post(f"/api/courses/{cid}/chapters/{storage_ch['id']}/milestones/{mid}/complete",
                       headers=headers)
    assert done.status_code == 200
    assert client.get("/api/me/dashboard", headers=headers).json()["study_minutes"] == 60

    # 4. the future chapter cannot be completed yet
    future = course["chapters"][2]
    early = client.post(
        f"/api/courses/{cid}/chapters/{future['id']}/milestones/{future['milestones'][0]['id']}/complete",
        headers=headers)
    assert early.status_code == 403

    # 5. activity log, newest first
    activities = client.get("/api/activities", headers=headers).json()
    assert [a["type"] for a in activities] == ["chapter_completion", "milestone_completion", "enrollment"]
    assert activities[0]["message"] == 'Completed chapter "Storage" in Data Engineering'
    assert activities[-1]["message"] == 'Enrolled in "Data Engineering"'
    assert len(client.get("/api/activities?limit=1", headers=headers).json()) == 1

    # 6. notifications: the unfinished past chapter is flagged on every scan
    first = client.post("/api/notifications/generate", headers=headers).json()
    assert first["unread"] == 1
    assert first["items"][0]["type"] == "incomplete_chapter"
    assert first["items"][0]["chapter_id"] == batch_ch["id"]
    second = client.post("/api/notifications/generate", headers=headers).json()
    assert second["unread"] == 2

    read_one = client.post(f"/api/notifications/{second['items'][0]['id']}/read", headers=headers)
    assert read_one.status_code == 200
    assert read_one.json()["is_read"] is True
    assert client.get("/api/notifications", headers=headers).json()["unread"] == 1
    assert client.post("/api/notifications/read-all", headers=headers).json()["unread"] == 0
    assert client.post("/api/notifications/missing/read", headers=headers).status_code == 404
    assert client.delete("/api/notifications", headers=headers).status_code == 204
    assert client.get("/api/notifications", headers=headers).json() == {"items": [], "unread": 0}

    # 7. reset the activity log
    assert client.delete("/api/activities", headers=headers).status_code == 204
    assert client.get("/api/activities", headers=headers).json() == []

    # 8. leaving drops progress and the enrollment count
    left = client.post(f"/api/courses/{cid}/unenroll", headers=headers).json()
    assert left["enrolled_count"] == 0
    assert left["progress"] == 0
    assert [a["type"] for a in client.get("/api/activities", headers=headers).json()] == ["unenrollment"]


def test_notifications_are_private(client, admin, student):
    other_headers = auth_header(admin)
    assert client.get("/api/notifications", headers=auth_header(student)).json()["items"] == []
    assert client.get("/api/notifications", headers=other_headers).json()["items"] == []
    assert client.get("/api/notifications").status_code == 401


def test_metrics_endpoint(client, admin):
    client.get("/api/auth/me", headers=auth_header(admin))
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "http_requests_total" in response.text
    assert "lms_storage_operations_total" in response.text
