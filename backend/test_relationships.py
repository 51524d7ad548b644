import pytest

from relationships import (
    RiskControlSelection,
    allowed_agenda_topics,
    as_list,
    build_agenda_item,
    can_add_treatment_to_workshop,
    check_treatment_eligibility,
    control_set_for,
    find_dangling_references,
    information_assets_changed,
    is_valid_soa_control_id,
    merge_minutes,
    normalize_information_assets,
    resolve_asset_names,
    validate_agenda_topic,
    validate_minutes_sections,
)


def test_only_approved_closure_blocks_agenda():
    assert can_add_treatment_to_workshop({"closureApproval": "Pending"})
    assert can_add_treatment_to_workshop({"closureApproval": "Rejected"})
    assert can_add_treatment_to_workshop({})
    assert not can_add_treatment_to_workshop({"closureApproval": "Approved"})


def test_check_treatment_eligibility_message():
    assert check_treatment_eligibility({"treatmentId": "TREAT-001-01", "closureApproval": "Pending"}) is None
    message = check_treatment_eligibility({"treatmentId": "TREAT-001-01", "closureApproval": "Approved"})
    assert "TREAT-001-01" in message


def test_information_assets_changed_ignores_order():
    assert not information_assets_changed(["a", "b", "c"], ["c", "a", "b"])
    assert information_assets_changed(["a", "b"], ["a", "b", "c"])
    assert information_assets_changed(["a"], [])
    assert not information_assets_changed(None, [])


def test_normalize_information_assets_shapes():
    assert normalize_information_assets("asset-1, asset-2,asset-1") == (["asset-1", "asset-2"], [])
    assert normalize_information_assets([{"id": "asset-1", "name": "HR"}, "asset-2"]) == (["asset-1", "asset-2"], [])
    ids, errors = normalize_information_assets([{"name": "no id"}])
    assert ids == [] and len(errors) == 1
    ids, errors = normalize_information_assets(42)
    assert ids == [] and "got int" in errors[0]


def test_find_dangling_references():
    assert find_dangling_references(["a", "z"], {"a", "b"}) == ["z"]
    assert find_dangling_references(["z"], set()) == []


def test_resolve_asset_names_falls_back_to_id():
    assets = {"asset-1": {"id": "asset-1", "informationAsset": "Payroll data"}}
    assert resolve_asset_names(["asset-1", "asset-9"], assets) == [
        {"id": "asset-1", "name": "Payroll data"},
        {"id": "asset-9", "name": "asset-9"},
    ]


def test_soa_control_ids():
    assert is_valid_soa_control_id("A.5.1")
    assert not is_valid_soa_control_id("A5.1")
    assert not is_valid_soa_control_id(None)
    assert control_set_for("A.8.24") == ("A.8", "Technological controls")
    assert control_set_for("A.9.1") is None


def test_as_list_coerces_scalars():
    assert as_list(None) == []
    assert as_list("Best Practice") == ["Best Practice"]
    assert as_list("RISK-001, RISK-002") == ["RISK-001", "RISK-002"]
    assert as_list(["A.5.1", " "]) == ["A.5.1"]


def test_control_lists_change_independently():
    selection = RiskControlSelection.from_document({
        "currentControls": "Firewall rules reviewed monthly",
        "currentControlsReference": "A.8.20",
        "applicableControlsAfterTreatment": ["A.8.20"],
    })
    updated = selection.with_control("currentControlsReference", "A.5.15")
    assert updated.currentControlsReference == ("A.8.20", "A.5.15")
    assert updated.applicableControlsAfterTreatment == ("A.8.20",)
    assert updated.currentControls == selection.currentControls

    removed = updated.without_control("applicableControlsAfterTreatment", "A.8.20")
    assert removed.applicableControlsAfterTreatment == ()
    assert removed.currentControlsReference == ("A.8.20", "A.5.15")
    assert removed.referenced_ids() == ["A.8.20", "A.5.15"]
    assert selection.with_control("currentControlsReference", "A.8.20") is selection


def test_control_selection_rejects_unknown_list():
    with pytest.raises(ValueError):
        RiskControlSelection().with_control("currentControls", "A.5.1")


def test_agenda_topics_follow_phase():
    assert allowed_agenda_topics("Treatment") == ("extensions", "closure")
    assert allowed_agenda_topics("monitoring") == ("extensions", "closure")
    assert allowed_agenda_topics("Draft") == ("newRisks",)
    assert validate_agenda_topic("newRisks", "Draft") is None
    assert "cannot be added to closure" in validate_agenda_topic("closure", "Draft")
    assert "cannot be added as new risks" in validate_agenda_topic("newRisks", "Treatment")
    assert validate_agenda_topic("other", "Draft").startswith("Invalid topic")


def test_merge_minutes_is_append_only():
    persisted = [dict(build_agenda_item("RISK-001", ["TREAT-001-01"]), outcome="Approved extension")]
    added = [build_agenda_item("RISK-002")]
    merged = merge_minutes(persisted, added)
    assert merged[0]["outcome"] == "Approved extension"
    assert [item["riskId"] for item in merged] == ["RISK-001", "RISK-002"]
    assert merge_minutes(merged, added) == merged


def test_merge_minutes_honours_explicit_removal():
    persisted = [build_agenda_item("RISK-001", ["TREAT-001-01"]), build_agenda_item("RISK-002")]
    edited = dict(persisted[0], actionsTaken="Reviewed")
    merged = merge_minutes(persisted, [edited], removed=[persisted[0]])
    assert merged == [persisted[1], edited]


def test_validate_minutes_sections():
    assert validate_minutes_sections({"closure": [build_agenda_item("RISK-001")]}) is None
    assert validate_minutes_sections({"closure": "nope"}) == "Closure must be an array"
    assert "valid riskId" in validate_minutes_sections({"newRisks": [{"riskId": ""}]})
    assert "outcome must be a string" in validate_minutes_sections(
        {"extensions": [{"riskId": "RISK-001", "outcome": 3}]}
    )
