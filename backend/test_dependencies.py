import logging

import pytest
from fastapi import HTTPException

from database import DatabaseResult
from dependencies import get_env_int, get_env_list, raise_for_result, require_risk_id


def test_get_env_int_reads_and_falls_back(monkeypatch, caplog):
    monkeypatch.setenv("MITRE_CACHE_SECONDS", "600")
    assert get_env_int("MITRE_CACHE_SECONDS", 86400) == 600

    monkeypatch.setenv("MITRE_CACHE_SECONDS", "ten minutes")
    with caplog.at_level(logging.WARNING, logger="dependencies"):
        assert get_env_int("MITRE_CACHE_SECONDS", 86400) == 86400
    assert "MITRE_CACHE_SECONDS='ten minutes' is not an integer" in caplog.text

    monkeypatch.delenv("MITRE_CACHE_SECONDS")
    assert get_env_int("MITRE_CACHE_SECONDS", 86400) == 86400


def test_get_env_list_splits_on_commas(monkeypatch):
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "http://a.test, ,http://b.test")
    assert get_env_list("CORS_ALLOW_ORIGINS", ["*"]) == ["http://a.test", "http://b.test"]


def test_require_risk_id():
    assert require_risk_id("risk-007") == "risk-007"
    with pytest.raises(HTTPException) as excinfo:
        require_risk_id("RISK")
    assert excinfo.value.status_code == 400


def test_raise_for_result_uses_result_status():
    with pytest.raises(HTTPException) as excinfo:
        raise_for_result(DatabaseResult(False, "Risk not found", status_code=404))
    assert excinfo.value.status_code == 404
    assert excinfo.value.detail == "Risk not found"
