"""
HTTP-level tests: identity resolution and the error envelope.

Every DomainError reaches the client as
``{"error": <message>, "code": "ERR_…", "details"?: {...}}`` with the status
code its kind maps to.
"""

from ideahub.services.jwt_service import generate_access_token


def _h(user):
    return {"X-User-Id": str(user.id)}


# ── Health ───────────────────────────────────────────────────────────────


def test_health_needs_no_identity(client):
    res = client.get("/api/v1/health")
    assert res.status_code == 200
    assert res.get_json()["status"] == "ok"


def test_health_live_pings_database(client):
    res = client.get("/api/v1/health/live")
    assert res.status_code == 200
    assert res.get_json()["checks"]["database"]["status"] == "ok"


# ── Identity ─────────────────────────────────────────────────────────────


def test_missing_identity_is_401(client):
    res = client.get("/api/v1/ideas/mine")
    assert res.status_code == 401
    assert res.get_json()["code"] == "ERR_UNAUTHENTICATED"


def test_x_user_id_header_identifies_caller(client, author):
    res = client.get("/api/v1/ideas/mine", headers=_h(author))
    assert res.status_code == 200
    assert res.get_json() == []


def test_non_integer_x_user_id_is_401(client):
    res = client.get("/api/v1/ideas/mine", headers={"X-User-Id": "abc"})
    assert res.status_code == 401


def test_bearer_token_identifies_caller(client, author, idea_payload):
    token = generate_access_token(author.id)
    res = client.post("/api/v1/ideas", json=idea_payload(),
                      headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 201
    assert res.get_json()["data"]["owner_id"] == author.id


def test_invalid_bearer_token_is_401(client):
    res = client.get("/api/v1/ideas/mine", headers={"Authorization": "Bearer not.a.token"})
    assert res.status_code == 401
    assert res.get_json()["error"] == "Invalid token"


def test_x_user_id_ignored_when_auth_enabled(app, client, author):
    app.config["API_AUTH_ENABLED"] = True
    try:
        res = client.get("/api/v1/ideas/mine", headers=_h(author))
    finally:
        app.config["API_AUTH_ENABLED"] = False
    assert res.status_code == 401


# ── Error mapping ────────────────────────────────────────────────────────


def test_validation_error_is_422_with_details(client, author):
    res = client.post("/api/v1/ideas", json={"title": "Short"}, headers=_h(author))
    assert res.status_code == 422
    body = res.get_json()
    assert body["code"] == "ERR_VALIDATION_INVALID"
    assert "title" in body["details"]


def test_not_found_is_404(client, author):
    res = client.get("/api/v1/ideas/999", headers=_h(author))
    assert res.status_code == 404
    assert res.get_json()["code"] == "ERR_NOT_FOUND"


def test_unauthorized_is_403(client, author, collaborator, idea_payload):
    idea_id = client.post("/api/v1/ideas", json=idea_payload(), headers=_h(author)).get_json()["data"]["id"]
    res = client.delete(f"/api/v1/ideas/{idea_id}", headers=_h(collaborator))
    assert res.status_code == 403
    assert res.get_json()["code"] == "ERR_FORBIDDEN"


def test_not_eligible_is_403(client, author, idea_payload):
    idea_id = client.post("/api/v1/ideas", json=idea_payload(), headers=_h(author)).get_json()["data"]["id"]
    res = client.post(f"/api/v1/ideas/{idea_id}/submit", headers=_h(author))
    assert res.status_code == 403
    assert res.get_json()["code"] == "ERR_NOT_ELIGIBLE"


def test_conflict_is_409(client, author, collaborator, idea_payload):
    idea_id = client.post("/api/v1/ideas", json=idea_payload(), headers=_h(author)).get_json()["data"]["id"]
    url = f"/api/v1/collaboration/ideas/{idea_id}/requests"
    assert client.post(url, json={}, headers=_h(collaborator)).status_code == 201
    res = client.post(url, json={}, headers=_h(collaborator))
    assert res.status_code == 409
    assert res.get_json()["code"] == "ERR_CONFLICT_DUPLICATE"


def test_submit_flag_must_be_boolean(client, author, idea_payload):
    res = client.post("/api/v1/ideas", json=idea_payload(submit="yes"), headers=_h(author))
    assert res.status_code == 422


def test_unknown_route_is_json_404(client):
    res = client.get("/api/v1/nowhere")
    assert res.status_code == 404
    assert res.get_json()["error"] == "Not found"
