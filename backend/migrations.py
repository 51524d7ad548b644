"""Bring legacy risk and SoA control records up to the current document shape.

Each migrate_* function is pure and returns the fields to $set, or an empty
dict when the document is already current, so re-running is a no-op.

Usage: python migrations.py [--dry-run]
"""
import argparse
import logging
from typing import Any, Dict, List

from pymongo import UpdateOne
from pymongo.errors import PyMongoError

import database
from relationships import as_list, control_set_for
from risk_rating import RATING_FIELDS, apply_derived_ratings

logger = logging.getLogger(__name__)

SOA_STATUS_MAPPING = {
    "implemented": "Implemented",
    "not-implemented": "Not Implemented",
    "excluded": "Not Implemented",
    "partially-implemented": "Partially Implemented",
    "planning": "Planning Implementation",
}
LEGACY_CONTROL_STATUSES = {"Planned": "Planning Implementation"}
DEFAULT_APPLICABILITY = "Applicable"

LEGACY_LIKELIHOOD = {"Low": "Rare", "Medium": "Possible", "High": "Likely"}
LEGACY_CONSEQUENCE = {"Low": "Minor", "Medium": "Moderate", "High": "Major"}
LEGACY_RATINGS = {"Medium": "Moderate"}


def migrate_soa_control(control: Dict[str, Any]) -> Dict[str, Any]:
    updates: Dict[str, Any] = {}

    status = control.get("controlStatus")
    if not status and control.get("status"):
        status = SOA_STATUS_MAPPING.get(str(control["status"]).strip().lower(), control["status"])
    status = LEGACY_CONTROL_STATUSES.get(status, status)
    if status and status != control.get("controlStatus"):
        updates["controlStatus"] = status

    if not control.get("controlApplicability"):
        updates["controlApplicability"] = DEFAULT_APPLICABILITY

    control_set = control_set_for(control.get("id"))
    if control_set and not control.get("controlSetId"):
        updates["controlSetId"], updates["controlSetTitle"] = control_set

    for field in ("justification", "relatedRisks"):
        value = control.get(field)
        if not isinstance(value, list):
            updates[field] = as_list(value)

    return updates


def migrate_risk(risk: Dict[str, Any]) -> Dict[str, Any]:
    migrated = dict(risk)

    assets = migrated.get("informationAsset")
    if isinstance(assets, str):
        migrated["informationAsset"] = as_list(assets)

    references = migrated.get("currentControlsReference")
    if references is not None and not isinstance(references, list):
        migrated["currentControlsReference"] = as_list(references)

    for likelihood_field, consequence_field, rating_field in RATING_FIELDS:
        if migrated.get(likelihood_field) in LEGACY_LIKELIHOOD:
            migrated[likelihood_field] = LEGACY_LIKELIHOOD[migrated[likelihood_field]]
        if migrated.get(consequence_field) in LEGACY_CONSEQUENCE:
            migrated[consequence_field] = LEGACY_CONSEQUENCE[migrated[consequence_field]]
        if migrated.get(rating_field) in LEGACY_RATINGS:
            migrated[rating_field] = LEGACY_RATINGS[migrated[rating_field]]

    migrated = apply_derived_ratings(migrated)
    return {key: value for key, value in migrated.items() if key not in risk or risk[key] != value}


def _bulk_migrate(collection, migrate, dry_run: bool) -> int:
    operations: List[UpdateOne] = []
    for document in collection.find({}):
        updates = migrate(document)
        if updates:
            operations.append(UpdateOne({"_id": document["_id"]}, {"$set": updates}))

    if operations and not dry_run:
        collection.bulk_write(operations, ordered=False)
    return len(operations)


def run_migrations(dry_run: bool = False) -> Dict[str, int]:
    results = {}
    for name, collection, migrate in (
        ("soa_controls", database.soa_controls_collection, migrate_soa_control),
        ("risks", database.risks_collection, migrate_risk),
    ):
        try:
            results[name] = _bulk_migrate(collection, migrate, dry_run)
            logger.info("%s: %d documents %s", name, results[name], "need migration" if dry_run else "migrated")
        except PyMongoError:
            logger.exception("Migration of %s failed", name)
            raise
    return results


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Migrate legacy risk and SoA control documents")
    parser.add_argument("--dry-run", action="store_true", help="report what would change without writing")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    run_migrations(dry_run=args.dry_run)
