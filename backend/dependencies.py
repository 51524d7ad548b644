import logging
import os

import requests
from fastapi import HTTPException
from dotenv import load_dotenv

from risk_ids import INVALID_RISK_ID_MESSAGE, validate_risk_id

load_dotenv()

logger = logging.getLogger(__name__)

SERVICE_NAME = os.getenv("SERVICE_NAME", "isms-risk-register")
SERVICE_VERSION = "1.0.0"


def get_env_int(name: str, default: int) -> int:
    """Read an integer setting, falling back to the default on bad input"""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("%s=%r is not an integer, using %s", name, raw, default)
        return default


def get_env_list(name: str, default: list) -> list:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def get_http_session() -> requests.Session:
    """Shared outbound HTTP session with the service's identifying headers"""
    session = requests.Session()
    session.headers.update({
        "User-Agent": f"{SERVICE_NAME}/{SERVICE_VERSION}",
        "Accept": "application/json",
    })
    return session


def require_risk_id(value) -> str:
    """Validated risk id from a path or query parameter, else HTTP 400"""
    risk_id = validate_risk_id(value)
    if risk_id is None:
        raise HTTPException(status_code=400, detail=INVALID_RISK_ID_MESSAGE)
    return risk_id


def raise_for_result(result):
    """Turn a failed DatabaseResult into the matching HTTP error"""
    if not result.success:
        raise HTTPException(status_code=result.status_code or 400, detail=result.message)
    return result
