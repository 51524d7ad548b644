from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional, Dict, Any

from relationships import (
    AGENDA_TOPICS,
    SECURITY_STEERING_COMMITTEES,
    TREATMENT_STATUSES,
    WORKSHOP_STATUSES,
    as_list,
    is_valid_soa_control_id,
)
from risk_ids import INVALID_RISK_ID_MESSAGE, validate_risk_id
from risk_rating import CONSEQUENCE_SCALE, LIKELIHOOD_SCALE

RISK_PHASES = ["Draft", "Identification", "Analysis", "Evaluation", "Treatment", "Monitoring", "Closed"]
RISK_ACTIONS = ["Avoid", "Transfer", "Accept", "Mitigate"]
IMPACT_CIA = ["Confidentiality", "Integrity", "Availability"]


def _check_choice(value: Optional[str], allowed: List[str], label: str) -> Optional[str]:
    if value is None or value == "":
        return value
    if value not in allowed:
        raise ValueError(f"Invalid {label}: {value}. Must be one of: {', '.join(allowed)}")
    return value


class APIResponse(BaseModel):
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    details: Optional[Any] = None
    message: Optional[str] = None


class RiskFields(BaseModel):
    """Editable risk attributes shared by create and update payloads"""

    model_config = ConfigDict(extra="ignore")

    functionalUnit: Optional[str] = None
    jiraTicket: Optional[str] = None
    dateRiskRaised: Optional[str] = None
    raisedBy: Optional[str] = None
    riskOwner: Optional[str] = None
    affectedSites: Optional[str] = None
    informationAsset: Optional[Any] = None
    threat: Optional[str] = None
    vulnerability: Optional[str] = None
    riskStatement: Optional[str] = None
    impact: Optional[List[str]] = None
    currentControls: Optional[str] = None
    currentControlsReference: Optional[List[str]] = None
    applicableControlsAfterTreatment: Optional[List[str]] = None
    likelihoodRating: Optional[str] = None
    consequenceRating: Optional[str] = None
    riskAction: Optional[str] = None
    reasonForAcceptance: Optional[str] = None
    dateOfSSCApproval: Optional[str] = None
    dateRiskTreatmentsApproved: Optional[str] = None
    riskTreatmentAssignedTo: Optional[str] = None
    residualLikelihood: Optional[str] = None
    residualConsequence: Optional[str] = None
    residualRiskAcceptedByOwner: Optional[str] = None
    dateResidualRiskAccepted: Optional[str] = None
    dateRiskTreatmentCompleted: Optional[str] = None
    currentPhase: Optional[str] = None

    @field_validator("likelihoodRating", "residualLikelihood")
    @classmethod
    def _likelihood_on_scale(cls, value):
        return _check_choice(value, LIKELIHOOD_SCALE, "likelihood")

    @field_validator("consequenceRating", "residualConsequence")
    @classmethod
    def _consequence_on_scale(cls, value):
        return _check_choice(value, CONSEQUENCE_SCALE, "consequence")

    @field_validator("riskAction")
    @classmethod
    def _known_action(cls, value):
        return _check_choice(value, RISK_ACTIONS, "risk action")

    @field_validator("currentPhase")
    @classmethod
    def _known_phase(cls, value):
        return _check_choice(value, RISK_PHASES, "current phase")

    @field_validator("impact")
    @classmethod
    def _cia_components(cls, value):
        if value is None:
            return value
        for component in value:
            _check_choice(component, IMPACT_CIA, "CIA component")
        return list(dict.fromkeys(value))

    @field_validator("currentControlsReference", "applicableControlsAfterTreatment", mode="before")
    @classmethod
    def _control_reference_list(cls, value):
        if value is None:
            return value
        control_ids = as_list(value)
        invalid = [control_id for control_id in control_ids if not is_valid_soa_control_id(control_id)]
        if invalid:
            raise ValueError(f"Invalid SOA control IDs: {', '.join(invalid)}. Expected format: A.<section>.<number>")
        return list(dict.fromkeys(control_ids))


class RiskCreate(RiskFields):
    riskId: str
    raisedBy: str
    threat: str
    vulnerability: str
    riskStatement: str
    informationAsset: Any
    likelihoodRating: str
    consequenceRating: str
    impact: List[str]

    @field_validator("riskId")
    @classmethod
    def _risk_id_format(cls, value):
        validated = validate_risk_id(value)
        if validated is None:
            raise ValueError(INVALID_RISK_ID_MESSAGE)
        return validated

    @field_validator("raisedBy", "threat", "vulnerability", "riskStatement")
    @classmethod
    def _required_text(cls, value):
        if not value or not value.strip():
            raise ValueError("This field is required")
        return value.strip()

    @field_validator("impact")
    @classmethod
    def _at_least_one_cia(cls, value):
        if not value:
            raise ValueError("Please select at least one CIA component")
        return value


class RiskUpdate(RiskFields):
    # Comma separated form of impact sent by older clients
    impactCIA: Optional[str] = None


class ExtensionRequest(BaseModel):
    extendedDueDate: str
    justification: str

    @field_validator("justification")
    @classmethod
    def _justification_required(cls, value):
        if not value or not value.strip():
            raise ValueError("Extended due date and justification are required")
        return value.strip()


class TreatmentFields(BaseModel):
    model_config = ConfigDict(extra="ignore")

    treatmentJiraTicket: Optional[str] = None
    riskTreatment: Optional[str] = None
    riskTreatmentOwner: Optional[str] = None
    dateRiskTreatmentDue: Optional[str] = None
    extendedDueDate: Optional[str] = None
    completionDate: Optional[str] = None
    closureApproval: Optional[str] = None
    closureApprovedBy: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("closureApproval")
    @classmethod
    def _known_closure_state(cls, value):
        return _check_choice(value, TREATMENT_STATUSES, "closure approval")


class TreatmentCreate(TreatmentFields):
    riskId: str
    treatmentId: Optional[str] = None
    riskTreatment: str
    riskTreatmentOwner: str
    dateRiskTreatmentDue: str
    closureApproval: Optional[str] = "Pending"

    @field_validator("riskId")
    @classmethod
    def _risk_id_format(cls, value):
        validated = validate_risk_id(value)
        if validated is None:
            raise ValueError(INVALID_RISK_ID_MESSAGE)
        return validated


class TreatmentUpdate(TreatmentFields):
    pass


class MeetingMinutesItem(BaseModel):
    riskId: str
    selectedTreatments: List[str] = Field(default_factory=list)
    actionsTaken: Optional[str] = ""
    toDo: Optional[str] = ""
    outcome: Optional[str] = ""


class WorkshopFields(BaseModel):
    model_config = ConfigDict(extra="ignore")

    date: Optional[str] = None
    facilitator: Optional[str] = None
    securitySteeringCommittee: Optional[str] = None
    status: Optional[str] = None
    extensions: Optional[List[MeetingMinutesItem]] = None
    closure: Optional[List[MeetingMinutesItem]] = None
    newRisks: Optional[List[MeetingMinutesItem]] = None

    @field_validator("securitySteeringCommittee")
    @classmethod
    def _known_committee(cls, value):
        return _check_choice(value, SECURITY_STEERING_COMMITTEES, "securitySteeringCommittee")

    @field_validator("status")
    @classmethod
    def _known_status(cls, value):
        return _check_choice(value, WORKSHOP_STATUSES, "status")


class WorkshopCreate(WorkshopFields):
    id: str
    date: str
    facilitator: str
    securitySteeringCommittee: str
    status: str = "Pending Agenda"


class WorkshopUpdate(WorkshopFields):
    removed: Optional[Dict[str, List[MeetingMinutesItem]]] = None


class AgendaRequest(BaseModel):
    riskId: str
    topic: str
    selectedTreatments: List[str] = Field(default_factory=list)

    @field_validator("topic")
    @classmethod
    def _known_topic(cls, value):
        if value not in AGENDA_TOPICS:
            raise ValueError(f"Invalid topic. Must be one of: {', '.join(AGENDA_TOPICS)}")
        return value


class MitreTechnique(BaseModel):
    id: str
    name: str
    description: str
    tactic: str
    tacticName: str
    platforms: List[str] = Field(default_factory=list)
    url: str


class ControlReferenceRequest(BaseModel):
    controlId: str


class CommentRequest(BaseModel):
    # Checked by the comment service so an empty body gets a 400, not a 422
    content: Optional[Any] = None
