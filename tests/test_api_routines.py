def _create_variable(client, headers, name="Hydration", data_type="continuous", unit="ml"):
    resp = client.post("/api/variables/", json={"name": name, "data_type": data_type, "default_unit": unit}, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()


def _routine_payload(variable_id, weekdays=(1, 3, 5), times=("08:00", "20:00")):
    return {
        "name": "Daily basics",
        "variables": [
            {
                "variable_id": variable_id,
                "default_value": "250",
                "default_unit": "ml",
                "weekdays": list(weekdays),
                "times": [{"time": t, "name": ""} for t in times],
            }
        ],
    }


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/api/health").json()["backend"] == "ok"


def test_requires_auth(client):
    assert client.get("/api/routines/").status_code == 401
    bad = {"Authorization": "Bearer not-a-token"}
    assert client.get("/api/routines/", headers=bad).status_code == 401


def test_second_user_needs_admin_token(client, auth_headers):
    denied = client.post("/api/users/", json={"username": "mallory", "password": "x"})
    assert denied.status_code == 403
    ok = client.post("/api/users/", json={"username": "bob", "password": "x", "admin_token": "test-admin-token"})
    assert ok.status_code == 200
    assert client.post("/api/users/login", json={"username": "bob", "password": "nope"}).status_code == 401


def test_variable_slug_conflict(client, auth_headers):
    _create_variable(client, auth_headers, "Body Weight")
    dup = client.post("/api/variables/", json={"name": "body weight"}, headers=auth_headers)
    assert dup.status_code == 400
    bad_type = client.post("/api/variables/", json={"name": "Mood", "data_type": "emoji"}, headers=auth_headers)
    assert bad_type.status_code == 400


def test_routine_crud(client, auth_headers):
    var = _create_variable(client, auth_headers)
    created = client.post("/api/routines/", json=_routine_payload(var["id"]), headers=auth_headers)
    assert created.status_code == 200, created.text
    body = created.json()
    assert body["variables"][0]["weekdays"] == [1, 3, 5]
    assert [t["time"] for t in body["variables"][0]["times"]] == ["08:00", "20:00"]

    routine_id = body["id"]
    updated = client.put(
        f"/api/routines/{routine_id}",
        json={"name": "Renamed", "variables": _routine_payload(var["id"], weekdays=[2], times=["07:15"])["variables"]},
        headers=auth_headers,
    )
    assert updated.status_code == 200
    assert updated.json()["name"] == "Renamed"
    assert updated.json()["variables"][0]["times"] == [{"time": "07:15", "name": ""}]

    listed = client.get("/api/routines/", headers=auth_headers).json()
    assert [r["id"] for r in listed] == [routine_id]

    assert client.delete(f"/api/routines/{routine_id}/", headers=auth_headers).json() == {"status": "deleted"}
    assert client.delete(f"/api/routines/{routine_id}/", headers=auth_headers).status_code == 404


def test_routine_validation(client, auth_headers):
    var = _create_variable(client, auth_headers)
    cases = [
        _routine_payload(var["id"], weekdays=[]),
        _routine_payload(var["id"], weekdays=[0, 8]),
        _routine_payload(var["id"], times=[]),
        _routine_payload(var["id"], times=["8am"]),
        _routine_payload(var["id"], times=["08:00", "20:00", "8:00"]),
        _routine_payload(12345),
        {"name": "   ", "variables": _routine_payload(var["id"])["variables"]},
        {"name": "Empty", "variables": []},
    ]
    for payload in cases:
        resp = client.post("/api/routines/", json=payload, headers=auth_headers)
        assert resp.status_code == 400, payload
    blank_value = _routine_payload(var["id"])
    blank_value["variables"][0]["default_value"] = " "
    assert client.post("/api/routines/", json=blank_value, headers=auth_headers).status_code == 400
    for not_finite in ("nan", "inf", "1e400"):
        payload = _routine_payload(var["id"])
        payload["variables"][0]["default_value"] = not_finite
        assert client.post("/api/routines/", json=payload, headers=auth_headers).status_code == 400, not_finite


def test_plan_then_batch_log(client, auth_headers):
    var = _create_variable(client, auth_headers)
    client.post("/api/routines/", json=_routine_payload(var["id"]), headers=auth_headers)

    plan = client.post(
        "/api/routines/plan",
        json={"start_date": "2024-01-01", "end_date": "2024-01-07", "group_by": "date"},
        headers=auth_headers,
    )
    assert plan.status_code == 200, plan.text
    body = plan.json()
    assert body["count"] == 6
    assert [g["name"] for g in body["groups"]] == [
        "Monday, Jan 1, 2024",
        "Wednesday, Jan 3, 2024",
        "Friday, Jan 5, 2024",
    ]

    logs = body["logs"]
    logs[0]["enabled"] = False
    user_id = client.get("/api/users/me", headers=auth_headers).json()["id"]

    applied = client.post("/api/routines/batch-log", json={"userId": user_id, "logs": logs}, headers=auth_headers)
    assert applied.status_code == 200, applied.text
    assert applied.json()["created"] == 5
    assert applied.json()["skipped"] == 0

    logs[0]["enabled"] = True
    again = client.post("/api/routines/batch-log", json={"userId": user_id, "logs": logs}, headers=auth_headers).json()
    assert (again["created"], again["skipped"]) == (1, 5)
    assert again["message"] == "Created 1 logs, skipped 5 duplicates"

    stored = client.get("/api/logs/", params={"start": "2024-01-01", "end": "2024-01-07"}, headers=auth_headers).json()
    assert len(stored) == 6
    assert {row["source"] for row in stored} == {"routine"}


def test_batch_log_for_other_user_forbidden(client, auth_headers):
    resp = client.post("/api/routines/batch-log", json={"userId": 999, "logs": []}, headers=auth_headers)
    assert resp.status_code == 403


def test_plan_rejects_bad_input(client, auth_headers):
    bad_date = client.post("/api/routines/plan", json={"start_date": "2024-02-30", "end_date": "2024-03-01"}, headers=auth_headers)
    assert bad_date.status_code == 400
    too_long = client.post("/api/routines/plan", json={"start_date": "2020-01-01", "end_date": "2024-01-01"}, headers=auth_headers)
    assert too_long.status_code == 400
    bad_group = client.post(
        "/api/routines/plan",
        json={"start_date": "2024-01-01", "end_date": "2024-01-02", "group_by": "week"},
        headers=auth_headers,
    )
    assert bad_group.status_code == 400
    reversed_range = client.post("/api/routines/plan", json={"start_date": "2024-01-07", "end_date": "2024-01-01"}, headers=auth_headers)
    assert reversed_range.status_code == 200
    assert reversed_range.json()["logs"] == []


def test_auto_logs_endpoint(client, auth_headers):
    var = _create_variable(client, auth_headers)
    client.post("/api/routines/", json=_routine_payload(var["id"], weekdays=[1], times=["06:30"]), headers=auth_headers)
    resp = client.post("/api/routines/auto-logs", json={"targetDate": "2024-01-01"}, headers=auth_headers)
    assert resp.status_code == 200, resp.text
    assert resp.json()["summary"]["auto_logs_created"] == 1
    assert resp.json()["message"] == "Successfully created 1 auto-logs"


def _login(client, username, password="pw"):
    created = client.post("/api/users/", json={"username": username, "password": password, "admin_token": "test-admin-token"})
    assert created.status_code == 200, created.text
    token = client.post("/api/users/login", json={"username": username, "password": password}).json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


def test_auto_logs_only_touch_callers_routines(client, auth_headers):
    var = _create_variable(client, auth_headers)
    client.post("/api/routines/", json=_routine_payload(var["id"], weekdays=[1], times=["06:30"]), headers=auth_headers)
    eve = _login(client, "eve")

    resp = client.post("/api/routines/auto-logs", json={"targetDate": "2024-01-01"}, headers=eve)
    assert resp.status_code == 200, resp.text
    assert resp.json()["summary"]["auto_logs_created"] == 0
    assert resp.json()["details"] == []
    assert client.get("/api/logs/", headers=auth_headers).json() == []

    denied = client.post("/api/routines/auto-logs", json={"targetDate": "2024-01-01", "adminToken": "guess"}, headers=eve)
    assert denied.status_code == 403

    everyone = client.post("/api/routines/auto-logs", json={"targetDate": "2024-01-01", "adminToken": "test-admin-token"}, headers=eve)
    assert everyone.status_code == 200
    assert everyone.json()["summary"]["auto_logs_created"] == 1
    assert len(client.get("/api/logs/", headers=auth_headers).json()) == 1
