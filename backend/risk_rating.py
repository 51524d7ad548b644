"""Qualitative risk rating derived from a 5x5 likelihood/consequence matrix.

The same matrix rates both the current risk (likelihoodRating,
consequenceRating -> riskRating) and the residual risk after treatment
(residualLikelihood, residualConsequence -> residualRiskRating).
"""

from typing import Any, Dict, Optional

LIKELIHOOD_SCALE = ["Rare", "Unlikely", "Possible", "Likely", "Almost Certain"]
CONSEQUENCE_SCALE = ["Insignificant", "Minor", "Moderate", "Major", "Critical"]
RISK_RATINGS = ["Low", "Moderate", "High", "Extreme"]

DEFAULT_RATING = "Low"

# Rows follow LIKELIHOOD_SCALE, columns follow CONSEQUENCE_SCALE
RATING_MATRIX = [
    ["Low", "Low", "Moderate", "High", "High"],
    ["Low", "Low", "Moderate", "High", "Extreme"],
    ["Low", "Moderate", "High", "Extreme", "Extreme"],
    ["Moderate", "Moderate", "High", "Extreme", "Extreme"],
    ["Moderate", "High", "Extreme", "Extreme", "Extreme"],
]

# (likelihood field, consequence field, derived rating field)
RATING_FIELDS = [
    ("likelihoodRating", "consequenceRating", "riskRating"),
    ("residualLikelihood", "residualConsequence", "residualRiskRating"),
]


def calculate_risk_rating(likelihood: str, consequence: str) -> str:
    """Look up the rating for a likelihood/consequence pair.

    Unrecognised values fall back to "Low".
    """
    if likelihood not in LIKELIHOOD_SCALE or consequence not in CONSEQUENCE_SCALE:
        return DEFAULT_RATING
    return RATING_MATRIX[LIKELIHOOD_SCALE.index(likelihood)][CONSEQUENCE_SCALE.index(consequence)]


def derive_rating(likelihood: Optional[str], consequence: Optional[str]) -> Optional[str]:
    """Rating for stored records: None while either input is still unset."""
    if not likelihood or not consequence:
        return None
    return calculate_risk_rating(likelihood, consequence)


def apply_derived_ratings(document: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of a risk document with both derived ratings recomputed.

    Current and residual ratings are computed independently from their own
    input pairs.
    """
    updated = dict(document)
    for likelihood_field, consequence_field, rating_field in RATING_FIELDS:
        updated[rating_field] = derive_rating(
            updated.get(likelihood_field),
            updated.get(consequence_field),
        )
    return updated


def ratings_are_consistent(document: Dict[str, Any]) -> bool:
    """True when the stored derived ratings match the matrix."""
    for likelihood_field, consequence_field, rating_field in RATING_FIELDS:
        expected = derive_rating(document.get(likelihood_field), document.get(consequence_field))
        if (document.get(rating_field) or None) != expected:
            return False
    return True
