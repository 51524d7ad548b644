import logging
import os
import re
from datetime import date, datetime, timezone
from typing import List, Optional, Any, Dict, Iterable

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import MongoClient
from pymongo.errors import PyMongoError

import dependencies  # noqa: F401  loads .env before the settings below are read
from date_utils import is_today_or_later, parse_date
from relationships import (
    AGENDA_EDITABLE_STATUSES,
    AGENDA_TOPICS,
    CONTROL_LIST_FIELDS,
    EXTENSION_PENDING_APPROVAL,
    RiskControlSelection,
    TREATMENT_TOPICS,
    build_agenda_item,
    check_treatment_eligibility,
    find_dangling_references,
    information_assets_changed,
    is_valid_soa_control_id,
    merge_minutes,
    normalize_information_assets,
    resolve_asset_names,
    validate_agenda_topic,
)
from risk_ids import FALLBACK_RISK_ID, format_risk_id, next_risk_id, risk_number, treatment_id_for
from risk_rating import apply_derived_ratings, ratings_are_consistent

logger = logging.getLogger(__name__)


# Database result wrapper class
class DatabaseResult:
    def __init__(self, success: bool, message: str, data: Any = None, status_code: Optional[int] = None):
        self.success = success
        self.message = message
        self.data = data
        self.status_code = status_code


# MongoDB connection
MONGODB_URI = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
MONGODB_DB = os.getenv("MONGODB_DB", "cycorgi")
client = MongoClient(MONGODB_URI)
db = client[MONGODB_DB]

# Collections
users_collection = db.users
risks_collection = db.risks
treatments_collection = db.treatments
workshops_collection = db.workshops
soa_controls_collection = db.soa_controls
information_assets_collection = db.information_assets
comments_collection = db.comments

MAX_RISK_ID_ATTEMPTS = 10


def _to_str_id(obj):
    if isinstance(obj, dict):
        return {k: _to_str_id(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_to_str_id(x) for x in obj]
    if isinstance(obj, ObjectId):
        return str(obj)
    return obj


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _risk_filter(risk_id: str) -> dict:
    # Stored ids keep their original case; lookups accept any case
    return {"riskId": {"$regex": f"^{re.escape(risk_id)}$", "$options": "i"}}


def _find_risk(risk_id: str) -> Optional[dict]:
    risk = risks_collection.find_one({"riskId": risk_id})
    if risk is None:
        risk = risks_collection.find_one(_risk_filter(risk_id))
    return risk


def _canonical_risk_id(risk_id: str) -> str:
    number = risk_id.split("-", 1)[1]
    return f"RISK-{number}"


class InformationAssetDatabaseService:
    @staticmethod
    async def list_assets() -> DatabaseResult:
        try:
            assets = list(information_assets_collection.find({}))
            return DatabaseResult(True, f"Found {len(assets)} information assets", _to_str_id(assets))
        except PyMongoError as e:
            logger.error("Failed to fetch information assets", exc_info=e)
            return DatabaseResult(False, f"Failed to fetch information assets: {str(e)}", status_code=500)

    @staticmethod
    def assets_by_id() -> Dict[str, dict]:
        return {
            str(asset.get("id")): asset
            for asset in information_assets_collection.find({}, {"_id": 0, "id": 1, "informationAsset": 1})
            if asset.get("id")
        }


class SoAControlDatabaseService:
    @staticmethod
    async def list_controls() -> DatabaseResult:
        try:
            controls = list(soa_controls_collection.find({}).sort("id", 1))
            return DatabaseResult(True, f"Found {len(controls)} SoA controls", _to_str_id(controls))
        except PyMongoError as e:
            logger.error("Failed to fetch SoA controls", exc_info=e)
            return DatabaseResult(False, f"Failed to fetch SoA controls: {str(e)}", status_code=500)

    @staticmethod
    def known_ids() -> set:
        return {doc["id"] for doc in soa_controls_collection.find({}, {"_id": 0, "id": 1}) if doc.get("id")}

    @staticmethod
    async def find_by_risk(risk_id: str) -> DatabaseResult:
        """Controls that list the risk in their relatedRisks field"""
        try:
            controls = soa_controls_collection.find(
                {"relatedRisks": risk_id},
                {"_id": 0, "id": 1, "title": 1},
            )
            data = [{"id": control.get("id"), "title": control.get("title")} for control in controls]
            return DatabaseResult(True, f"Found {len(data)} SoA controls for risk {risk_id}", data)
        except PyMongoError as e:
            logger.error("Failed to find SoA controls for risk %s", risk_id, exc_info=e)
            return DatabaseResult(False, f"Failed to find SOA controls for risk ID: {risk_id}", status_code=500)


class RiskDatabaseService:
    @staticmethod
    def _reference_errors(document: dict) -> List[str]:
        """Dangling information asset and SoA control references"""
        errors = []
        asset_ids = document.get("informationAsset") or []
        dangling_assets = find_dangling_references(asset_ids, set(InformationAssetDatabaseService.assets_by_id()))
        if dangling_assets:
            errors.append(f"Unknown information asset IDs: {', '.join(dangling_assets)}")

        control_ids = RiskControlSelection.from_document(document).referenced_ids()
        if control_ids:
            dangling_controls = find_dangling_references(control_ids, SoAControlDatabaseService.known_ids())
            if dangling_controls:
                errors.append(f"Unknown SoA control IDs: {', '.join(dangling_controls)}")
        return errors

    @staticmethod
    async def list_risks() -> DatabaseResult:
        try:
            risks = list(risks_collection.find({}))
            return DatabaseResult(True, f"Found {len(risks)} risks", _to_str_id(risks))
        except PyMongoError as e:
            logger.error("Failed to fetch risks", exc_info=e)
            return DatabaseResult(False, "Failed to fetch risks", status_code=500)

    @staticmethod
    async def get_risk(risk_id: str, resolve_assets: bool = True) -> DatabaseResult:
        try:
            risk = _find_risk(risk_id)
            if not risk:
                return DatabaseResult(False, "Risk not found", status_code=404)

            if not ratings_are_consistent(risk):
                logger.warning("Stored ratings for %s are stale, serving recomputed values", risk.get("riskId"))
                risk = apply_derived_ratings(risk)
            risk = _to_str_id(risk)
            asset_ids, _ = normalize_information_assets(risk.get("informationAsset"))
            if resolve_assets:
                risk["informationAsset"] = resolve_asset_names(asset_ids, InformationAssetDatabaseService.assets_by_id())
            else:
                risk["informationAsset"] = asset_ids
            if isinstance(risk.get("impact"), list):
                risk["impactCIA"] = ", ".join(risk["impact"])
            return DatabaseResult(True, "Risk found", risk)
        except PyMongoError as e:
            logger.error("Failed to fetch risk %s", risk_id, exc_info=e)
            return DatabaseResult(False, "Failed to fetch risk", status_code=500)

    @staticmethod
    async def get_next_risk_id() -> DatabaseResult:
        """Next free RISK-### id. Falls back to RISK-001 if the lookup fails."""
        try:
            existing_ids = [doc.get("riskId") for doc in risks_collection.find({}, {"_id": 0, "riskId": 1})]
            candidate = next_risk_id(existing_ids)
            number = risk_number(candidate)

            attempts = 0
            while attempts < MAX_RISK_ID_ATTEMPTS and risks_collection.find_one({"riskId": candidate}):
                number += 1
                candidate = format_risk_id(number)
                attempts += 1

            return DatabaseResult(True, "Next risk ID generated", {"nextRiskId": candidate, "nextNumericId": number})
        except PyMongoError as e:
            logger.warning("Failed to query existing risk IDs, falling back to %s", FALLBACK_RISK_ID, exc_info=e)
            return DatabaseResult(
                True,
                f"Could not query existing risks, using {FALLBACK_RISK_ID}",
                {"nextRiskId": FALLBACK_RISK_ID, "nextNumericId": risk_number(FALLBACK_RISK_ID)},
            )

    @staticmethod
    async def create_risk(payload: Dict[str, Any]) -> DatabaseResult:
        """Insert a new draft risk with derived ratings filled in"""
        try:
            risk_id = _canonical_risk_id(payload["riskId"])
            if _find_risk(risk_id):
                return DatabaseResult(False, f"Risk {risk_id} already exists", status_code=409)

            asset_ids, asset_errors = normalize_information_assets(payload.get("informationAsset"))
            if asset_errors:
                return DatabaseResult(False, "; ".join(asset_errors), status_code=400)
            if not asset_ids:
                return DatabaseResult(False, "Please select at least one information asset", status_code=400)

            now = _now_iso()
            document = {
                **payload,
                "riskId": risk_id,
                "informationAsset": asset_ids,
                **RiskControlSelection.from_document(payload).to_document(),
                "currentPhase": "Draft",
                "createdAt": now,
                "updatedAt": now,
            }
            reference_errors = RiskDatabaseService._reference_errors(document)
            if reference_errors:
                return DatabaseResult(False, "; ".join(reference_errors), status_code=400)

            document = apply_derived_ratings(document)
            result = risks_collection.insert_one(document)
            document["_id"] = result.inserted_id
            logger.info("Created risk %s", risk_id)
            return DatabaseResult(True, f"Risk {risk_id} created successfully", _to_str_id(document))
        except PyMongoError as e:
            logger.error("Failed to create risk", exc_info=e)
            return DatabaseResult(False, "Failed to create risk", status_code=500)

    @staticmethod
    async def update_risk(risk_id: str, changes: Dict[str, Any]) -> DatabaseResult:
        """Apply a partial update and recompute both ratings in the same write"""
        try:
            existing = _find_risk(risk_id)
            if not existing:
                return DatabaseResult(False, "Risk not found", status_code=404)

            changes = dict(changes)
            changes.pop("riskId", None)
            changes.pop("_id", None)

            impact_cia = changes.pop("impactCIA", None)
            if impact_cia is not None and "impact" not in changes:
                changes["impact"] = [item.strip() for item in impact_cia.split(",") if item.strip()]

            # Each control list is replaced only when the update names it
            sent_lists = {field: changes[field] for field in CONTROL_LIST_FIELDS if field in changes}
            if sent_lists:
                control_lists = RiskControlSelection.from_document({**existing, **sent_lists}).to_document()
                changes.update({field: control_lists[field] for field in sent_lists})

            original_assets, _ = normalize_information_assets(existing.get("informationAsset"))
            if "informationAsset" in changes:
                asset_ids, asset_errors = normalize_information_assets(changes["informationAsset"])
                if asset_errors:
                    return DatabaseResult(False, "; ".join(asset_errors), status_code=400)
                changes["informationAsset"] = asset_ids

            reference_errors = RiskDatabaseService._reference_errors(
                {key: changes[key] for key in ("informationAsset", "currentControlsReference", "applicableControlsAfterTreatment") if key in changes}
            )
            if reference_errors:
                return DatabaseResult(False, "; ".join(reference_errors), status_code=400)

            merged = apply_derived_ratings({**existing, **changes})
            update_fields = {
                **changes,
                "riskRating": merged["riskRating"],
                "residualRiskRating": merged["residualRiskRating"],
                "updatedAt": _now_iso(),
            }
            risks_collection.update_one({"_id": existing["_id"]}, {"$set": update_fields})

            merged.update(update_fields)
            data = _to_str_id(merged)
            data["informationAssetsChanged"] = information_assets_changed(
                original_assets, changes.get("informationAsset", original_assets)
            )
            logger.info("Updated risk %s", existing.get("riskId"))
            return DatabaseResult(True, "Risk updated successfully", data)
        except PyMongoError as e:
            logger.error("Failed to update risk %s", risk_id, exc_info=e)
            return DatabaseResult(False, "Failed to update risk", status_code=500)

    @staticmethod
    async def set_control_reference(risk_id: str, list_name: str, control_id: str, selected: bool) -> DatabaseResult:
        """Add or remove one SoA control in one of the risk's control lists, leaving the other lists alone"""
        if not is_valid_soa_control_id(control_id):
            return DatabaseResult(
                False, f"Invalid SOA control ID: {control_id}. Expected format: A.<section>.<number>", status_code=400
            )
        try:
            existing = _find_risk(risk_id)
            if not existing:
                return DatabaseResult(False, "Risk not found", status_code=404)

            selection = RiskControlSelection.from_document(existing)
            try:
                if selected:
                    updated = selection.with_control(list_name, control_id)
                else:
                    updated = selection.without_control(list_name, control_id)
            except ValueError as e:
                return DatabaseResult(False, str(e), status_code=400)

            if selected and find_dangling_references([control_id], SoAControlDatabaseService.known_ids()):
                return DatabaseResult(False, f"Unknown SoA control IDs: {control_id}", status_code=400)

            control_list = updated.to_document()[list_name]
            risks_collection.update_one(
                {"_id": existing["_id"]},
                {"$set": {list_name: control_list, "updatedAt": _now_iso()}},
            )
            return DatabaseResult(True, "Controls updated successfully", {"riskId": existing["riskId"], list_name: control_list})
        except PyMongoError as e:
            logger.error("Failed to update controls for %s", risk_id, exc_info=e)
            return DatabaseResult(False, "Failed to update controls", status_code=500)


class CommentDatabaseService:
    @staticmethod
    def _content_error(content: Any, label: str) -> Optional[DatabaseResult]:
        if not isinstance(content, str) or not content.strip():
            return DatabaseResult(False, f"{label} content is required", status_code=400)
        return None

    @staticmethod
    async def list_comments(risk_id: str) -> DatabaseResult:
        try:
            comments = list(comments_collection.find(_risk_filter(risk_id)).sort("timestamp", -1))
            return DatabaseResult(True, f"Found {len(comments)} comments", _to_str_id(comments))
        except PyMongoError as e:
            logger.error("Failed to fetch comments for %s", risk_id, exc_info=e)
            return DatabaseResult(False, "Failed to fetch comments", status_code=500)

    @staticmethod
    async def create_comment(risk_id: str, content: Any, author: str) -> DatabaseResult:
        invalid = CommentDatabaseService._content_error(content, "Comment")
        if invalid:
            return invalid
        try:
            risk = _find_risk(risk_id)
            if not risk:
                return DatabaseResult(False, "Risk not found", status_code=404)

            comment = {
                "riskId": risk["riskId"],
                "content": content.strip(),
                "author": author,
                "timestamp": _now_iso(),
                "replies": [],
            }
            result = comments_collection.insert_one(comment)
            comment["_id"] = result.inserted_id
            return DatabaseResult(True, "Comment added", _to_str_id(comment))
        except PyMongoError as e:
            logger.error("Failed to create comment for %s", risk_id, exc_info=e)
            return DatabaseResult(False, "Failed to create comment", status_code=500)

    @staticmethod
    async def add_reply(risk_id: str, comment_id: str, content: Any, author: str) -> DatabaseResult:
        invalid = CommentDatabaseService._content_error(content, "Reply")
        if invalid:
            return invalid
        try:
            object_id = ObjectId(comment_id)
        except InvalidId:
            return DatabaseResult(False, "Comment not found", status_code=404)

        try:
            reply = {"content": content.strip(), "author": author, "timestamp": _now_iso()}
            result = comments_collection.update_one(
                {"_id": object_id, **_risk_filter(risk_id)},
                {"$push": {"replies": reply}},
            )
            if result.matched_count == 0:
                return DatabaseResult(False, "Comment not found", status_code=404)
            return DatabaseResult(True, "Reply added", reply)
        except PyMongoError as e:
            logger.error("Failed to add reply to comment %s", comment_id, exc_info=e)
            return DatabaseResult(False, "Failed to create reply", status_code=500)


class TreatmentDatabaseService:
    @staticmethod
    async def list_treatments(risk_id: Optional[str] = None) -> DatabaseResult:
        try:
            query = _risk_filter(risk_id) if risk_id else {}
            treatments = list(treatments_collection.find(query))
            return DatabaseResult(True, f"Found {len(treatments)} treatments", _to_str_id(treatments))
        except PyMongoError as e:
            logger.error("Failed to fetch treatments", exc_info=e)
            return DatabaseResult(False, "Failed to fetch treatments", status_code=500)

    @staticmethod
    async def get_treatment(risk_id: str, treatment_id: str) -> DatabaseResult:
        try:
            treatment = treatments_collection.find_one({"treatmentId": treatment_id, **_risk_filter(risk_id)})
            if not treatment:
                return DatabaseResult(False, "Treatment not found", status_code=404)
            return DatabaseResult(True, "Treatment found", _to_str_id(treatment))
        except PyMongoError as e:
            logger.error("Failed to fetch treatment %s", treatment_id, exc_info=e)
            return DatabaseResult(False, "Failed to fetch treatment", status_code=500)

    @staticmethod
    async def create_treatment(payload: Dict[str, Any]) -> DatabaseResult:
        try:
            risk = _find_risk(payload["riskId"])
            if not risk:
                return DatabaseResult(False, "Risk not found", status_code=404)
            risk_id = risk["riskId"]

            treatment_id = payload.get("treatmentId")
            if treatment_id:
                if treatments_collection.find_one({"treatmentId": treatment_id, "riskId": risk_id}):
                    return DatabaseResult(False, f"Treatment {treatment_id} already exists", status_code=409)
            else:
                sequence = treatments_collection.count_documents({"riskId": risk_id}) + 1
                treatment_id = treatment_id_for(risk_id, sequence)
                while treatments_collection.find_one({"treatmentId": treatment_id, "riskId": risk_id}):
                    sequence += 1
                    treatment_id = treatment_id_for(risk_id, sequence)

            now = _now_iso()
            document = {
                **payload,
                "riskId": risk_id,
                "treatmentId": treatment_id,
                "numberOfExtensions": 0,
                "extensions": [],
                "createdAt": now,
                "updatedAt": now,
            }
            result = treatments_collection.insert_one(document)
            document["_id"] = result.inserted_id
            logger.info("Created treatment %s for %s", treatment_id, risk_id)
            return DatabaseResult(True, f"Treatment {treatment_id} created successfully", _to_str_id(document))
        except PyMongoError as e:
            logger.error("Failed to create treatment", exc_info=e)
            return DatabaseResult(False, "Failed to create treatment", status_code=500)

    @staticmethod
    async def update_treatment(risk_id: str, treatment_id: str, changes: Dict[str, Any]) -> DatabaseResult:
        try:
            changes = {key: value for key, value in changes.items() if key not in ("_id", "riskId", "treatmentId")}
            changes["updatedAt"] = _now_iso()
            result = treatments_collection.update_one(
                {"treatmentId": treatment_id, **_risk_filter(risk_id)},
                {"$set": changes},
            )
            if result.matched_count == 0:
                return DatabaseResult(False, "Treatment not found", status_code=404)
            return DatabaseResult(True, "Treatment updated successfully", {**changes, "riskId": risk_id, "treatmentId": treatment_id})
        except PyMongoError as e:
            logger.error("Failed to update treatment %s", treatment_id, exc_info=e)
            return DatabaseResult(False, "Failed to update treatment", status_code=500)

    @staticmethod
    async def request_extension(
        risk_id: str,
        treatment_id: str,
        extended_due_date: str,
        justification: str,
        today: Optional[date] = None,
    ) -> DatabaseResult:
        """Record an extension request and move the treatment's extended due date"""
        if parse_date(extended_due_date) is None:
            return DatabaseResult(False, "Invalid date format", status_code=400)
        if not is_today_or_later(extended_due_date, today):
            return DatabaseResult(False, "Extended due date must be today or a future date", status_code=400)

        try:
            now = _now_iso()
            extension = {
                "extendedDueDate": extended_due_date,
                "justification": justification.strip(),
                "approver": EXTENSION_PENDING_APPROVAL,
                "dateApproved": None,
                "createdAt": now,
            }
            result = treatments_collection.update_one(
                {"treatmentId": treatment_id, **_risk_filter(risk_id)},
                {
                    "$push": {"extensions": extension},
                    "$inc": {"numberOfExtensions": 1},
                    "$set": {"extendedDueDate": extended_due_date, "updatedAt": now},
                },
            )
            if result.matched_count == 0:
                return DatabaseResult(False, "Treatment not found", status_code=404)
            return DatabaseResult(True, "Extension request submitted successfully", extension)
        except PyMongoError as e:
            logger.error("Failed to record extension for %s", treatment_id, exc_info=e)
            return DatabaseResult(False, "Failed to submit extension request", status_code=500)


class WorkshopDatabaseService:
    @staticmethod
    def _find_workshop(workshop_id: str) -> Optional[dict]:
        workshop = workshops_collection.find_one({"id": workshop_id})
        if workshop is None:
            try:
                workshop = workshops_collection.find_one({"_id": ObjectId(workshop_id)})
            except InvalidId:
                workshop = None
        return workshop

    @staticmethod
    async def list_workshops() -> DatabaseResult:
        try:
            workshops = list(workshops_collection.find({}))
            return DatabaseResult(True, f"Found {len(workshops)} workshops", _to_str_id(workshops))
        except PyMongoError as e:
            logger.error("Failed to fetch workshops", exc_info=e)
            return DatabaseResult(False, "Failed to fetch workshops", status_code=500)

    @staticmethod
    async def get_workshop(workshop_id: str) -> DatabaseResult:
        try:
            workshop = WorkshopDatabaseService._find_workshop(workshop_id)
            if not workshop:
                return DatabaseResult(False, "Workshop not found", status_code=404)
            return DatabaseResult(True, "Workshop found", _to_str_id(workshop))
        except PyMongoError as e:
            logger.error("Failed to fetch workshop %s", workshop_id, exc_info=e)
            return DatabaseResult(False, "Failed to fetch workshop", status_code=500)

    @staticmethod
    async def create_workshop(payload: Dict[str, Any]) -> DatabaseResult:
        try:
            if workshops_collection.find_one({"id": payload["id"]}):
                return DatabaseResult(False, f"Workshop {payload['id']} already exists", status_code=409)
            now = _now_iso()
            document = {
                **payload,
                **{topic: payload.get(topic) or [] for topic in AGENDA_TOPICS},
                "createdAt": now,
                "updatedAt": now,
            }
            result = workshops_collection.insert_one(document)
            document["_id"] = result.inserted_id
            return DatabaseResult(True, "Workshop created successfully", _to_str_id(document), status_code=201)
        except PyMongoError as e:
            logger.error("Failed to create workshop", exc_info=e)
            return DatabaseResult(False, "Failed to create workshop", status_code=500)

    @staticmethod
    async def update_workshop(
        workshop_id: str,
        changes: Dict[str, Any],
        removed: Optional[Dict[str, Iterable[dict]]] = None,
    ) -> DatabaseResult:
        """Update workshop fields; minute sections are merged, never overwritten"""
        try:
            workshop = WorkshopDatabaseService._find_workshop(workshop_id)
            if not workshop:
                return DatabaseResult(False, "Workshop not found", status_code=404)

            removed = removed or {}
            update_fields = {key: value for key, value in changes.items() if key not in ("_id", "id")}
            for topic in AGENDA_TOPICS:
                if topic in update_fields or topic in removed:
                    update_fields[topic] = merge_minutes(
                        workshop.get(topic) or [],
                        update_fields.get(topic) or [],
                        removed.get(topic) or [],
                    )
            update_fields["updatedAt"] = _now_iso()

            workshops_collection.update_one({"_id": workshop["_id"]}, {"$set": update_fields})
            return DatabaseResult(True, "Workshop updated successfully", _to_str_id({**workshop, **update_fields}))
        except PyMongoError as e:
            logger.error("Failed to update workshop %s", workshop_id, exc_info=e)
            return DatabaseResult(False, "Failed to update workshop", status_code=500)

    @staticmethod
    async def add_agenda_item(
        workshop_id: str,
        risk_id: str,
        topic: str,
        selected_treatments: Optional[List[str]] = None,
        today: Optional[date] = None,
    ) -> DatabaseResult:
        """Put a risk (and, for extensions/closure, its treatments) on a workshop agenda"""
        selected_treatments = list(selected_treatments or [])
        if topic not in AGENDA_TOPICS:
            return DatabaseResult(False, f"Invalid topic. Must be one of: {', '.join(AGENDA_TOPICS)}", status_code=400)

        try:
            workshop = WorkshopDatabaseService._find_workshop(workshop_id)
            if not workshop:
                return DatabaseResult(False, "Workshop not found", status_code=404)

            status = workshop.get("status")
            if status not in AGENDA_EDITABLE_STATUSES:
                return DatabaseResult(
                    False,
                    f'Cannot add risks to workshop with status "{status}". '
                    "Workshop must be Planned, Scheduled, or Pending Agenda.",
                    status_code=400,
                )

            if not is_today_or_later(workshop.get("date"), today):
                return DatabaseResult(
                    False,
                    f"Cannot add risks to workshop scheduled for {workshop.get('date')}. "
                    "Only workshops with future dates can be modified.",
                    status_code=400,
                )

            risk = _find_risk(risk_id)
            if not risk:
                return DatabaseResult(False, "Risk not found", status_code=404)
            risk_id = risk["riskId"]

            topic_error = validate_agenda_topic(topic, risk.get("currentPhase"))
            if topic_error:
                return DatabaseResult(False, topic_error, status_code=400)

            if any(item.get("riskId") == risk_id for item in workshop.get(topic) or []):
                return DatabaseResult(
                    False, f"Risk {risk_id} is already in the {topic} section of this workshop.", status_code=400
                )

            if topic in TREATMENT_TOPICS:
                if not selected_treatments:
                    return DatabaseResult(
                        False, "Selected treatments are required for extensions and closure topics", status_code=400
                    )
                for treatment_id in selected_treatments:
                    treatment = treatments_collection.find_one({"treatmentId": treatment_id, "riskId": risk_id})
                    if not treatment:
                        return DatabaseResult(
                            False, f"Treatment {treatment_id} not found for risk {risk_id}", status_code=400
                        )
                    reason = check_treatment_eligibility(treatment)
                    if reason:
                        return DatabaseResult(False, reason, status_code=400)

            item = build_agenda_item(risk_id, selected_treatments)
            now = _now_iso()
            result = workshops_collection.update_one(
                {"_id": workshop["_id"]},
                {"$push": {topic: item}, "$set": {"updatedAt": now}},
            )
            if result.modified_count == 0:
                return DatabaseResult(False, "Failed to add risk to workshop agenda", status_code=500)

            return DatabaseResult(
                True,
                f"Risk {risk_id} successfully added to {topic} section of workshop {workshop.get('id')}",
                {"workshopId": workshop.get("id"), "riskId": risk_id, "topic": topic, "addedAt": now},
            )
        except PyMongoError as e:
            logger.error("Failed to add %s to workshop %s", risk_id, workshop_id, exc_info=e)
            return DatabaseResult(False, "Internal server error", status_code=500)
