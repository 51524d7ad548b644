import re
from typing import Iterable, List, Optional, Union

RISK_ID_PATTERN = re.compile(r"^RISK-(\d+)$", re.IGNORECASE)
INVALID_RISK_ID_MESSAGE = "Invalid risk ID format. Expected format: RISK-XXX"
FALLBACK_RISK_ID = "RISK-001"


def validate_risk_id(value: Union[str, List[str], None]) -> Optional[str]:
    """Return the trimmed risk id, or None when it is not RISK-<digits>"""
    if not value:
        return None
    candidate = value[0] if isinstance(value, (list, tuple)) else value
    if not isinstance(candidate, str):
        return None
    candidate = candidate.strip()
    if not candidate or not RISK_ID_PATTERN.match(candidate):
        return None
    return candidate


def risk_number(risk_id: Optional[str]) -> Optional[int]:
    if not isinstance(risk_id, str):
        return None
    match = RISK_ID_PATTERN.match(risk_id.strip())
    if not match:
        return None
    return int(match.group(1))


def format_risk_id(number: int) -> str:
    return f"RISK-{number:03d}"


def next_risk_id(existing_ids: Iterable[str]) -> str:
    """Next sequential id after the highest numeric suffix in use"""
    numbers = [n for n in (risk_number(risk_id) for risk_id in existing_ids) if n is not None]
    if not numbers:
        return FALLBACK_RISK_ID
    return format_risk_id(max(numbers) + 1)


def treatment_id_for(risk_id: str, sequence: int) -> str:
    number = risk_number(risk_id)
    prefix = f"{number:03d}" if number is not None else risk_id
    return f"TREAT-{prefix}-{sequence:02d}"
