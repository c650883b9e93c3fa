from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Dict, Iterable, Union

from services.review.ledger import ReviewItem, ReviewStatus

LOW_RISK_MIN = 90
MEDIUM_RISK_MIN = 70

HIGH_CONFIDENCE_MIN = 90
MEDIUM_CONFIDENCE_MIN = 80


class RiskTier(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @property
    def label(self) -> str:
        return f"{self.value} Risk"


@dataclass(frozen=True)
class DerivedMetrics:
    total: int
    approved: int
    rejected: int
    pending: int
    compliance_percentage: int
    risk_tier: RiskTier

    def to_dict(self) -> Dict[str, object]:
        return {
            "total": self.total,
            "approved": self.approved,
            "rejected": self.rejected,
            "pending": self.pending,
            "compliance_percentage": self.compliance_percentage,
            "risk_tier": self.risk_tier.value,
            "risk_label": self.risk_tier.label,
        }


def round_half_up(value: Union[float, Decimal]) -> int:
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compliance_percentage(items: Iterable[ReviewItem]) -> int:
    items = list(items)
    if not items:
        return 0
    approved = sum(1 for i in items if i.status is ReviewStatus.APPROVED)
    return round_half_up(Decimal(100 * approved) / Decimal(len(items)))


def risk_tier(percentage: float) -> RiskTier:
    if percentage >= LOW_RISK_MIN:
        return RiskTier.LOW
    if percentage >= MEDIUM_RISK_MIN:
        return RiskTier.MEDIUM
    return RiskTier.HIGH


def derive_metrics(items: Iterable[ReviewItem]) -> DerivedMetrics:
    items = list(items)
    counts = {s: 0 for s in ReviewStatus}
    for i in items:
        counts[i.status] += 1
    pct = compliance_percentage(items)
    return DerivedMetrics(
        total=len(items),
        approved=counts[ReviewStatus.APPROVED],
        rejected=counts[ReviewStatus.REJECTED],
        pending=counts[ReviewStatus.PENDING],
        compliance_percentage=pct,
        risk_tier=risk_tier(pct),
    )


def confidence_band(confidence: float) -> str:
    """Badge band used when explaining AI output: high / medium / low."""
    if confidence >= HIGH_CONFIDENCE_MIN:
        return "high"
    if confidence >= MEDIUM_CONFIDENCE_MIN:
        return "medium"
    return "low"
