"""
Signal: risk score for a wallet address or a domain.

Listed targets get the score of their label. Unlisted targets always score
50 (UNKNOWN); the heuristics only pick the reason string.

    SANCTIONED  100
    SUSPICIOUS   80
    UNKNOWN      50
    VERIFIED      0
"""
import re
from dataclasses import dataclass
from enum import Enum

from .crypto import is_address
from .lookup import LabelStore


class RiskLabel(str, Enum):
    SANCTIONED = "SANCTIONED"
    SUSPICIOUS = "SUSPICIOUS"
    VERIFIED = "VERIFIED"
    UNKNOWN = "UNKNOWN"


UNKNOWN_SCORE = 50

KNOWN_BURN_ADDRESSES = frozenset({
    "0x0000000000000000000000000000000000000000",
    "0x000000000000000000000000000000000000dead",
    "0xdead000000000000000000000000000000000000",
})

BURN_PATTERN = re.compile(r"^0x0+$|^0xdead+$", re.IGNORECASE)
DOMAIN_PATTERN = re.compile(r"^([a-z0-9]+(-[a-z0-9]+)*\.)+[a-z]{2,}$", re.IGNORECASE)


@dataclass(frozen=True)
class RiskAssessment:
    score: int
    label: RiskLabel
    reason: str

    def to_dict(self) -> dict:
        return {"risk_score": self.score, "risk_label": self.label.value, "reason": self.reason}


LISTED = {
    assessment.label.value: assessment
    for assessment in (
        RiskAssessment(100, RiskLabel.SANCTIONED, "Target is listed in sanctioned addresses database"),
        RiskAssessment(0, RiskLabel.VERIFIED, "Target is verified as safe in our database"),
        RiskAssessment(80, RiskLabel.SUSPICIOUS, "Target has been flagged as suspicious"),
    )
}


def _unknown(reason: str) -> RiskAssessment:
    return RiskAssessment(UNKNOWN_SCORE, RiskLabel.UNKNOWN, reason)


def is_burn_address(target: str) -> bool:
    normalized = target.lower()
    return normalized in KNOWN_BURN_ADDRESSES or BURN_PATTERN.match(normalized) is not None


def is_domain(target: str) -> bool:
    return DOMAIN_PATTERN.match(target) is not None


def assess_risk(store: LabelStore, target: str) -> RiskAssessment:
    normalized = target.strip().lower()

    label = store.get(normalized)
    if label is not None:
        listed = LISTED.get(str(label).strip().upper())
        if listed is not None:
            return listed
        # Unrecognised labels fall through to the heuristics

    if is_burn_address(normalized):
        return _unknown("Target appears to be a burn address (tokens sent here are permanently destroyed)")
    if is_address(normalized):
        return _unknown("Valid Ethereum address format, but no risk data available in database")
    if is_domain(normalized):
        return _unknown("Valid domain format, but no risk data available in database")
    return _unknown("Target format not recognized. No risk data available in database")
