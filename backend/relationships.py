"""Rules linking risks, treatments, workshops, SOA controls and information
assets. None of these links are enforced by MongoDB; every write path goes
through the helpers here instead."""

import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

TREATMENT_PENDING = "Pending"
TREATMENT_APPROVED = "Approved"
TREATMENT_REJECTED = "Rejected"
TREATMENT_STATUSES = [TREATMENT_PENDING, TREATMENT_APPROVED, TREATMENT_REJECTED]

EXTENSION_PENDING_APPROVAL = "Pending Approval"

AGENDA_TOPICS = ("extensions", "closure", "newRisks")
TREATMENT_TOPICS = ("extensions", "closure")
TOPIC_LABELS = {"extensions": "Extensions", "closure": "Closure", "newRisks": "New Risks"}

WORKSHOP_STATUSES = [
    "Pending Agenda",
    "Planned",
    "Scheduled",
    "Finalising Meeting Minutes",
    "Completed",
]
AGENDA_EDITABLE_STATUSES = ("Planned", "Scheduled", "Pending Agenda")
SECURITY_STEERING_COMMITTEES = [
    "Core Systems Engineering",
    "Software Engineering",
    "IP Engineering",
]

# Phases whose risks are discussed as extensions/closure rather than new risks
TREATMENT_PHASES = ("treatment", "monitoring")

SOA_CONTROL_ID_PATTERN = re.compile(r"^A\.(\d+)\.(\d+)$")
CONTROL_SETS = {
    "A.5": "Organisational controls",
    "A.6": "People controls",
    "A.7": "Physical controls",
    "A.8": "Technological controls",
}

CONTROL_LIST_FIELDS = ("currentControls", "currentControlsReference", "applicableControlsAfterTreatment")


# Treatments and workshops

def can_add_treatment_to_workshop(treatment: Dict[str, Any]) -> bool:
    return (treatment or {}).get("closureApproval") != TREATMENT_APPROVED


def check_treatment_eligibility(treatment: Dict[str, Any]) -> Optional[str]:
    """Return a user-facing reason when the treatment cannot go on an agenda."""
    if can_add_treatment_to_workshop(treatment):
        return None
    treatment_id = treatment.get("treatmentId", "")
    return (
        f"Treatment {treatment_id} already has approved closure and cannot be added "
        "to a workshop agenda."
    )


def allowed_agenda_topics(phase: Optional[str]) -> Tuple[str, ...]:
    if (phase or "").strip().lower() in TREATMENT_PHASES:
        return TREATMENT_TOPICS
    return ("newRisks",)


def validate_agenda_topic(topic: str, phase: Optional[str]) -> Optional[str]:
    if topic not in AGENDA_TOPICS:
        return f"Invalid topic. Must be one of: {', '.join(AGENDA_TOPICS)}"
    if topic in allowed_agenda_topics(phase):
        return None
    if topic in TREATMENT_TOPICS:
        return (
            f'Risks in "{phase}" phase cannot be added to {topic}. '
            "Only Treatment and Monitoring phase risks are allowed."
        )
    return f'Risks in "{phase}" phase cannot be added as new risks.'


def build_agenda_item(risk_id: str, selected_treatments: Optional[Iterable[str]] = None) -> Dict[str, Any]:
    return {
        "riskId": risk_id,
        "selectedTreatments": list(selected_treatments or []),
        "actionsTaken": "",
        "toDo": "",
        "outcome": "",
    }


def _item_key(item: Dict[str, Any]) -> Tuple[str, Tuple[str, ...]]:
    return item.get("riskId", ""), tuple(item.get("selectedTreatments") or [])


def merge_minutes(
    persisted: Sequence[Dict[str, Any]],
    added: Sequence[Dict[str, Any]],
    removed: Iterable[Dict[str, Any]] = (),
) -> List[Dict[str, Any]]:
    """Append newly added minute items after the persisted ones.

    Persisted items are kept as-is unless they were explicitly removed. An
    added item identical to a persisted one replaces nothing and is not
    appended twice.
    """
    removed_keys = {_item_key(item) for item in removed}
    merged = [dict(item) for item in persisted if _item_key(item) not in removed_keys]
    existing = [dict(item) for item in merged]
    for item in added:
        if dict(item) in existing:
            continue
        merged.append(dict(item))
        existing.append(dict(item))
    return merged


def validate_minutes_sections(payload: Dict[str, Any]) -> Optional[str]:
    """Check the three minute sections of a workshop payload."""
    for topic in AGENDA_TOPICS:
        section = payload.get(topic)
        if section is None:
            continue
        label = TOPIC_LABELS[topic]
        if not isinstance(section, list):
            return f"{label} must be an array"
        for index, item in enumerate(section, start=1):
            prefix = f"{label} item {index}"
            if not isinstance(item, dict) or not isinstance(item.get("riskId"), str) or not item.get("riskId"):
                return f"{prefix}: Each item must have a valid riskId string"
            for text_field in ("actionsTaken", "toDo", "outcome"):
                value = item.get(text_field)
                if value and not isinstance(value, str):
                    return f"{prefix}: {text_field} must be a string"
    return None


# Information assets

def information_assets_changed(original: Optional[Iterable[str]], updated: Optional[Iterable[str]]) -> bool:
    return sorted(original or []) != sorted(updated or [])


def normalize_information_assets(value: Any) -> Tuple[List[str], List[str]]:
    """Coerce stored asset references into a de-duplicated list of ids.

    Returns (ids, errors).
    """
    errors: List[str] = []
    if value is None:
        return [], errors

    if isinstance(value, str):
        candidates = [part.strip() for part in value.split(",")]
    elif isinstance(value, (list, tuple)):
        candidates = []
        for item in value:
            if isinstance(item, str):
                candidates.append(item.strip())
            elif isinstance(item, dict) and item.get("id"):
                candidates.append(str(item["id"]).strip())
            elif isinstance(item, dict) and item.get("name"):
                errors.append(f"Invalid information asset format: {item}")
    else:
        errors.append(
            f"Invalid informationAsset format: expected string or array, got {type(value).__name__}"
        )
        return [], errors

    ids: List[str] = []
    for candidate in candidates:
        if candidate and candidate not in ids:
            ids.append(candidate)
    return ids, errors


def find_dangling_references(ids: Iterable[str], known_ids: Set[str]) -> List[str]:
    """Ids missing from the catalogue. An empty catalogue accepts everything."""
    if not known_ids:
        return []
    return [item for item in ids if item not in known_ids]


def resolve_asset_names(asset_ids: Iterable[str], assets_by_id: Dict[str, Dict[str, Any]]) -> List[Dict[str, str]]:
    resolved = []
    for asset_id in asset_ids:
        asset = assets_by_id.get(asset_id)
        name = asset.get("informationAsset", asset_id) if asset else asset_id
        resolved.append({"id": asset_id, "name": name})
    return resolved


# SOA controls

def is_valid_soa_control_id(value: Any) -> bool:
    return isinstance(value, str) and bool(SOA_CONTROL_ID_PATTERN.match(value))


def control_set_for(control_id: str) -> Optional[Tuple[str, str]]:
    match = SOA_CONTROL_ID_PATTERN.match(control_id or "")
    if not match:
        return None
    set_id = f"A.{match.group(1)}"
    title = CONTROL_SETS.get(set_id)
    if title is None:
        return None
    return set_id, title


def as_list(value: Any) -> List[str]:
    """Canonical list shape for reference fields stored as scalars by older records"""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [str(value)]


@dataclass(frozen=True)
class RiskControlSelection:
    """The three control lists kept on a risk. Each one changes independently."""

    currentControls: str = ""
    currentControlsReference: Tuple[str, ...] = field(default_factory=tuple)
    applicableControlsAfterTreatment: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "RiskControlSelection":
        return cls(
            currentControls=document.get("currentControls") or "",
            currentControlsReference=tuple(as_list(document.get("currentControlsReference"))),
            applicableControlsAfterTreatment=tuple(as_list(document.get("applicableControlsAfterTreatment"))),
        )

    def with_control(self, list_name: str, control_id: str) -> "RiskControlSelection":
        current = self._reference_list(list_name)
        if control_id in current:
            return self
        return replace(self, **{list_name: current + (control_id,)})

    def without_control(self, list_name: str, control_id: str) -> "RiskControlSelection":
        current = self._reference_list(list_name)
        return replace(self, **{list_name: tuple(item for item in current if item != control_id)})

    def referenced_ids(self) -> List[str]:
        seen: List[str] = []
        for control_id in self.currentControlsReference + self.applicableControlsAfterTreatment:
            if control_id not in seen:
                seen.append(control_id)
        return seen

    def to_document(self) -> Dict[str, Any]:
        return {
            "currentControls": self.currentControls,
            "currentControlsReference": list(self.currentControlsReference),
            "applicableControlsAfterTreatment": list(self.applicableControlsAfterTreatment),
        }

    def _reference_list(self, list_name: str) -> Tuple[str, ...]:
        if list_name not in ("currentControlsReference", "applicableControlsAfterTreatment"):
            raise ValueError(f"Unknown control reference list: {list_name}")
        return getattr(self, list_name)
