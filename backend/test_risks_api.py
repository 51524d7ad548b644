from unittest.mock import AsyncMock, MagicMock, patch

from bson import ObjectId

from database import DatabaseResult

NEW_RISK = {
    "riskId": "RISK-010",
    "raisedBy": "analyst",
    "threat": "Phishing",
    "vulnerability": "Untrained staff",
    "riskStatement": "Credential theft via phishing",
    "informationAsset": ["asset-1"],
    "likelihoodRating": "Likely",
    "consequenceRating": "Major",
    "impact": ["Confidentiality"],
}


def test_invalid_risk_id_is_rejected_before_lookup(client):
    with patch("risks.RiskDatabaseService.get_risk", new_callable=AsyncMock) as get_risk:
        response = client.get("/api/risks/RISK-ABC")

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid risk ID format. Expected format: RISK-XXX"}
    get_risk.assert_not_awaited()


def test_invalid_risk_id_in_body_is_a_400(client):
    response = client.post("/api/risks", json=dict(NEW_RISK, riskId="10"))
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid risk ID format. Expected format: RISK-XXX"


def test_create_persists_derived_rating(client, collections):
    collections.risks.insert_one.return_value = MagicMock(inserted_id=ObjectId())

    response = client.post("/api/risks", json=NEW_RISK)

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["riskRating"] == "Extreme"
    assert body["data"]["currentPhase"] == "Draft"
    assert collections.risks.insert_one.call_args[0][0]["riskRating"] == "Extreme"


def test_create_rejects_values_off_the_scale(client, collections):
    response = client.post("/api/risks", json=dict(NEW_RISK, likelihoodRating="Medium"))

    assert response.status_code == 422
    assert response.json()["success"] is False
    collections.risks.insert_one.assert_not_called()


def test_next_id_endpoint(client):
    result = DatabaseResult(True, "ok", {"nextRiskId": "RISK-004", "nextNumericId": 4})
    with patch("risks.RiskDatabaseService.get_next_risk_id", new=AsyncMock(return_value=result)):
        response = client.get("/api/risks/next-id")

    assert response.status_code == 200
    assert response.json()["data"] == {"nextRiskId": "RISK-004", "nextNumericId": 4}


def test_update_passes_only_sent_fields(client):
    result = DatabaseResult(True, "Risk updated successfully", {"riskId": "RISK-001", "informationAssetsChanged": False})
    with patch("risks.RiskDatabaseService.update_risk", new=AsyncMock(return_value=result)) as update_risk:
        response = client.put("/api/risks/RISK-001", json={"residualLikelihood": "Rare", "unknownField": 1})

    assert response.status_code == 200
    update_risk.assert_awaited_once_with("RISK-001", {"residualLikelihood": "Rare"})


def test_missing_risk_is_a_404(client, collections):
    response = client.get("/api/risks/RISK-404")
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Risk not found"}


def test_soa_controls_by_risk_validates_id(client):
    response = client.get("/api/soa-controls/by-risk/not-a-risk")
    assert response.status_code == 400


def test_soa_controls_are_listed_with_list_fields(client, collections):
    collections.soa_controls.find.return_value = MagicMock(
        sort=MagicMock(return_value=[{"id": "A.5.1", "justification": "Best Practice"}])
    )

    response = client.get("/api/compliance/soa")

    assert response.status_code == 200
    control = response.json()["data"][0]
    assert control["justification"] == ["Best Practice"]
    assert control["relatedRisks"] == []


def test_routes_require_authentication():
    from fastapi.testclient import TestClient
    from main import app

    response = TestClient(app).get("/api/risks")
    assert response.status_code == 401
    assert response.json()["success"] is False


def test_bad_risk_id_wins_over_other_validation_errors(client, collections):
    response = client.post("/api/risks", json=dict(NEW_RISK, riskId="risk-12a", likelihoodRating="Medium"))

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid risk ID format. Expected format: RISK-XXX"
    assert len(response.json()["details"]) == 2
    collections.risks.insert_one.assert_not_called()


def test_control_reference_routes(client):
    result = DatabaseResult(True, "Controls updated successfully", {"riskId": "RISK-001", "currentControlsReference": ["A.5.1"]})
    with patch(
        "risks.RiskDatabaseService.set_control_reference", new=AsyncMock(return_value=result)
    ) as set_control_reference:
        added = client.post("/api/risks/RISK-001/controls/currentControlsReference", json={"controlId": "A.5.1"})
        removed = client.delete("/api/risks/RISK-001/controls/applicableControlsAfterTreatment/A.8.2")

    assert added.status_code == 200
    assert removed.status_code == 200
    assert set_control_reference.await_args_list[0].args == ("RISK-001", "currentControlsReference", "A.5.1")
    assert set_control_reference.await_args_list[0].kwargs == {"selected": True}
    assert set_control_reference.await_args_list[1].args == ("RISK-001", "applicableControlsAfterTreatment", "A.8.2")
    assert set_control_reference.await_args_list[1].kwargs == {"selected": False}


def test_control_reference_rejects_unknown_list(client, collections):
    collections.risks.find_one.return_value = {"_id": ObjectId(), "riskId": "RISK-001"}

    response = client.post("/api/risks/RISK-001/controls/currentControls", json={"controlId": "A.5.1"})

    assert response.status_code == 400
    assert response.json()["error"] == "Unknown control reference list: currentControls"


def test_comment_routes_validate_risk_id(client):
    with patch("risks.CommentDatabaseService.list_comments", new_callable=AsyncMock) as list_comments:
        response = client.get("/api/risks/RISK/comments")

    assert response.status_code == 400
    list_comments.assert_not_awaited()


def test_comment_without_content_is_a_400(client, collections):
    response = client.post("/api/risks/RISK-001/comments", json={})

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Comment content is required"}
    collections.comments.insert_one.assert_not_called()


def test_comment_author_is_the_current_user(client, collections):
    collections.risks.find_one.return_value = {"_id": ObjectId(), "riskId": "RISK-001"}
    collections.comments.insert_one.return_value = MagicMock(inserted_id=ObjectId())

    response = client.post("/api/risks/RISK-001/comments", json={"content": "Escalate to SSC"})

    assert response.status_code == 201
    body = response.json()["data"]
    assert body["author"] == "analyst"
    assert body["content"] == "Escalate to SSC"
    assert body["replies"] == []


def test_reply_to_unknown_comment_is_a_404(client, collections):
    collections.comments.update_one.return_value = MagicMock(matched_count=0)

    response = client.post(f"/api/risks/RISK-001/comments/{ObjectId()}/replies", json={"content": "Agreed"})

    assert response.status_code == 404
    assert response.json()["error"] == "Comment not found"


def test_reply_without_content_is_a_400(client, collections):
    response = client.post(f"/api/risks/RISK-001/comments/{ObjectId()}/replies", json={"content": "  "})

    assert response.status_code == 400
    assert response.json()["error"] == "Reply content is required"
