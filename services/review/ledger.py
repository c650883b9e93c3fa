from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)


class ReviewStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass
class ReviewItem:
    id: str
    category: str
    definition: str
    confidence: float
    status: ReviewStatus = ReviewStatus.PENDING
    comment: Optional[str] = None
    # evidence-specific context, empty for plain checklist rows
    page_number: Optional[int] = None
    extract: str = ""
    explanation: str = ""

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "category": self.category,
            "definition": self.definition,
            "confidence": self.confidence,
            "status": self.status.value,
            "comment": self.comment,
            "page_number": self.page_number,
            "extract": self.extract,
            "explanation": self.explanation,
        }


StatusLike = Union[ReviewStatus, str]


class ReviewLedger:
    """
    Keyed collection of review items with a tri-state status.

    Contract:
      - set_status on an unknown id is a no-op (returns False)
      - the first non-empty comment on an item wins; later ones are dropped
      - reset goes through set_status, so an existing comment survives it
      - nothing is ever deleted
    """

    def __init__(self, items: Iterable[ReviewItem]) -> None:
        self._items: Dict[str, ReviewItem] = {}
        for item in items:
            if item.id in self._items:
                raise ValueError(f"duplicate review item id: {item.id}")
            if not 0 <= float(item.confidence) <= 100:
                raise ValueError(f"confidence out of range for {item.id}: {item.confidence}")
            # private copy: callers keep ownership of what they passed in
            self._items[item.id] = replace(item, status=ReviewStatus(item.status))

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[ReviewItem]:
        return iter(self._items.values())

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def get(self, item_id: str) -> Optional[ReviewItem]:
        return self._items.get(item_id)

    def snapshot(self) -> Tuple[ReviewItem, ...]:
        return tuple(replace(i) for i in self._items.values())

    def set_status(self, item_id: str, status: StatusLike, comment: Optional[str] = None) -> bool:
        new_status = ReviewStatus(status)
        item = self._items.get(item_id)
        if item is None:
            logger.debug("set_status ignored for unknown item %s", item_id)
            return False
        item.status = new_status
        if not item.comment and comment:
            item.comment = comment
        return True

    def approve(self, item_id: str, comment: Optional[str] = None) -> bool:
        return self.set_status(item_id, ReviewStatus.APPROVED, comment)

    def reject(self, item_id: str, comment: Optional[str] = None) -> bool:
        return self.set_status(item_id, ReviewStatus.REJECTED, comment)

    def reset_status(self, item_id: str) -> bool:
        return self.set_status(item_id, ReviewStatus.PENDING)

    def all_reviewed(self) -> bool:
        return all(i.status is not ReviewStatus.PENDING for i in self._items.values())

    def counts(self) -> Dict[str, int]:
        out = {s.value: 0 for s in ReviewStatus}
        for i in self._items.values():
            out[i.status.value] += 1
        return out

    @property
    def approved_count(self) -> int:
        return self.counts()[ReviewStatus.APPROVED.value]

    @property
    def percent_approved(self) -> int:
        from services.review.metrics import compliance_percentage

        return compliance_percentage(self._items.values())

    def pending_ids(self) -> List[str]:
        return [i.id for i in self._items.values() if i.status is ReviewStatus.PENDING]

    def auto_approve(self, threshold: float) -> List[str]:
        """Approves pending items with confidence >= threshold; returns their ids."""
        ids = [
            i.id for i in self._items.values() if i.status is ReviewStatus.PENDING and i.confidence >= threshold
        ]
        for item_id in ids:
            self.set_status(item_id, ReviewStatus.APPROVED)
        if ids:
            logger.info("auto-approved %d items at >= %s%% confidence", len(ids), threshold)
        return ids

    def below_threshold(self, threshold: float) -> List[str]:
        """Items the AI is not sure enough about; these always need a human decision."""
        return [i.id for i in self._items.values() if i.confidence < threshold]
