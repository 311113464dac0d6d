"""
End-to-end API walkthroughs over the test client.

    1. idea → SME review → DD approve → board review → DD approve
    2. collaboration request → proposal → accept → rollback
    3. challenge → submission → queue
"""

from datetime import datetime, timedelta, timezone

from ideahub.services.role_directory import Roles

REVIEW = "Clear problem framing, realistic costs and a credible rollout plan."
COMPILED = "Reviewers agree the proposal is sound and recommend it moves forward."


def _h(user):
    return {"X-User-Id": str(user.id)}


def _create_idea(client, user, payload):
    res = client.post("/api/v1/ideas", json=payload, headers=_h(user))
    assert res.status_code == 201, res.get_json()
    return res.get_json()["data"]["id"]


def test_idea_review_pipeline(client, author, sme, board, dd, idea_payload):
    idea_id = _create_idea(client, author, idea_payload())

    queue = client.get("/api/v1/reviews/idea/stage1/queue", headers=_h(sme)).get_json()
    assert [i["id"] for i in queue] == [idea_id]

    res = client.post(f"/api/v1/reviews/idea/{idea_id}", headers=_h(sme), json={
        "stage": "stage1", "recommendation": "approve", "comments": REVIEW,
    })
    assert res.status_code == 201

    pending = client.get("/api/v1/decisions/idea/stage1/pending", headers=_h(dd)).get_json()
    assert [p["id"] for p in pending] == [idea_id]

    res = client.post(f"/api/v1/decisions/idea/{idea_id}", headers=_h(dd), json={
        "stage": "stage1", "decision": "approve", "compiled_comments": COMPILED,
    })
    assert res.status_code == 201
    assert res.get_json()["data"]["new_status"] == "stage2_review"

    res = client.post(f"/api/v1/decisions/idea/{idea_id}", headers=_h(dd), json={
        "stage": "stage1", "decision": "approve", "compiled_comments": COMPILED,
    })
    assert res.status_code == 409
    assert res.get_json()["code"] == "ERR_ALREADY_DECIDED"

    client.post(f"/api/v1/reviews/idea/{idea_id}", headers=_h(board), json={
        "stage": "stage2", "recommendation": "approve", "comments": REVIEW,
    })
    res = client.post(f"/api/v1/decisions/idea/{idea_id}", headers=_h(dd), json={
        "stage": "stage2", "decision": "approve", "compiled_comments": COMPILED,
    })
    assert res.get_json()["data"]["new_status"] == "approved"

    idea = client.get(f"/api/v1/ideas/{idea_id}", headers=_h(author)).get_json()
    assert idea["status"] == "approved"
    assert idea["current_revision_number"] == 3

    history = client.get(f"/api/v1/decisions/idea/{idea_id}", headers=_h(author)).get_json()
    assert [d["stage"] for d in history] == ["stage1", "stage2"]


def test_decision_history_is_403_for_outsiders(client, author, sme, dd, make_user, idea_payload):
    outsider = make_user("outsider")
    idea_id = _create_idea(client, author, idea_payload())
    client.post(f"/api/v1/reviews/idea/{idea_id}", headers=_h(sme), json={
        "stage": "stage1", "recommendation": "revise", "comments": REVIEW,
    })
    client.post(f"/api/v1/decisions/idea/{idea_id}", headers=_h(dd), json={
        "stage": "stage1", "decision": "revise", "compiled_comments": COMPILED,
        "dd_comments": "Not for general circulation.",
    })

    res = client.get(f"/api/v1/decisions/idea/{idea_id}", headers=_h(outsider))
    assert res.status_code == 403
    assert res.get_json()["code"] == "ERR_FORBIDDEN"
    assert client.get(f"/api/v1/reviews/idea/{idea_id}", headers=_h(outsider)).status_code == 403


def test_reviewer_without_role_gets_403(client, author, board, idea_payload):
    idea_id = _create_idea(client, author, idea_payload())
    res = client.post(f"/api/v1/reviews/idea/{idea_id}", headers=_h(board), json={
        "stage": "stage1", "recommendation": "approve", "comments": REVIEW,
    })
    assert res.status_code == 403
    assert res.get_json()["code"] == "ERR_NOT_ELIGIBLE"


def test_collaboration_pipeline(client, author, collaborator, idea_payload):
    idea_id = _create_idea(client, author, idea_payload())
    original = client.get(f"/api/v1/ideas/{idea_id}", headers=_h(author)).get_json()["abstract"]

    res = client.post(f"/api/v1/collaboration/ideas/{idea_id}/requests",
                      json={"message": "Happy to help."}, headers=_h(collaborator))
    req_id = res.get_json()["data"]["id"]
    inbox = client.get("/api/v1/collaboration/requests/inbox", headers=_h(author)).get_json()
    assert [r["id"] for r in inbox] == [req_id]

    res = client.post(f"/api/v1/collaboration/requests/{req_id}/respond",
                      json={"action": "approve"}, headers=_h(author))
    assert res.get_json()["data"]["status"] == "approved"

    new_abstract = "Edited abstract " * 10
    res = client.post(f"/api/v1/collaboration/ideas/{idea_id}/proposals", headers=_h(collaborator), json={
        "proposed": {"abstract": new_abstract},
        "collaboration_notes": "Made the abstract punchier.",
        "change_summary": "Abstract rewrite",
    })
    assert res.status_code == 201
    proposal_id = res.get_json()["data"]["id"]

    res = client.post(f"/api/v1/collaboration/proposals/{proposal_id}/respond",
                      json={"action": "accept"}, headers=_h(author))
    assert res.get_json()["data"]["status"] == "accepted"

    versions = client.get(f"/api/v1/collaboration/ideas/{idea_id}/versions", headers=_h(author)).get_json()
    assert [v["version_number"] for v in versions] == [1]

    res = client.post(f"/api/v1/collaboration/ideas/{idea_id}/versions/1/rollback", headers=_h(author))
    assert res.status_code == 200
    assert res.get_json()["data"]["abstract"] == original

    manage = client.get(f"/api/v1/collaboration/ideas/{idea_id}/manage", headers=_h(author)).get_json()
    assert [v["version_number"] for v in manage["versions"]] == [2, 1]

    res = client.get(f"/api/v1/collaboration/ideas/{idea_id}/versions", headers=_h(collaborator))
    assert res.status_code == 403


def test_challenge_pipeline(client, author, dd, make_user):
    reviewer = make_user("challenge-sme", Roles.SME)
    deadline = (datetime.now(timezone.utc) + timedelta(days=10)).isoformat()
    res = client.post("/api/v1/challenges", headers=_h(dd), json={
        "title": "Quieter streets", "description": "Reduce traffic noise.", "deadline": deadline,
    })
    assert res.status_code == 201
    challenge_id = res.get_json()["data"]["id"]

    assert len(client.get("/api/v1/challenges?open=true", headers=_h(author)).get_json()) == 1

    res = client.post(f"/api/v1/challenges/{challenge_id}/submissions", headers=_h(author), json={
        "title": "Rubberised asphalt trial",
        "description": "Resurface two residential streets.",
        "motivation": "Measured 3 dB reduction elsewhere.",
        "original_disclaimer": "Own work.",
        "submit": True,
    })
    assert res.status_code == 201
    submission_id = res.get_json()["data"]["id"]

    queue = client.get("/api/v1/reviews/challenge/stage1/queue", headers=_h(reviewer)).get_json()
    assert [s["id"] for s in queue] == [submission_id]

    mine = client.get("/api/v1/challenges/submissions/mine", headers=_h(author)).get_json()
    assert mine[0]["status"] == "stage1_review"
