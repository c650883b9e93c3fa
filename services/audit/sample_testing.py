from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Tuple

from services.workflow.sequencer import StepSequencer, WorkflowError, build_steps

if TYPE_CHECKING:
    from services.audit.catalog import AuditCatalog

logger = logging.getLogger(__name__)

SAMPLE_TESTING_STEPS = ("Sample Overview", "Document Review", "Compliance Testing", "Findings & Notes")


class ChecklistStatus(str, Enum):
    COMPLETE = "complete"
    ISSUE = "issue"
    PENDING = "pending"


@dataclass(frozen=True)
class SampleProfile:
    id: str
    name: str
    specialty: str = ""
    risk_level: str = ""
    selection_reason: str = ""
    testing_areas: Tuple[str, ...] = ()


@dataclass
class ChecklistItem:
    id: str
    label: str
    required: bool = False
    status: ChecklistStatus = ChecklistStatus.PENDING
    checked: bool = False

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "label": self.label,
            "required": self.required,
            "status": self.status.value,
            "checked": self.checked,
        }


@dataclass(frozen=True)
class Findings:
    critical: Tuple[ChecklistItem, ...]
    compliant: Tuple[ChecklistItem, ...]

    def to_dict(self) -> Dict[str, object]:
        return {
            "critical": [c.label for c in self.critical],
            "compliant": [c.label for c in self.compliant],
        }


@dataclass(frozen=True)
class SampleTestResult:
    sample_id: str
    completed_at: str
    findings: Findings
    checked: Tuple[str, ...]
    notes: str
    recommended_actions: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, object]:
        return {
            "sample_id": self.sample_id,
            "completed_at": self.completed_at,
            "findings": self.findings.to_dict(),
            "checked": list(self.checked),
            "notes": self.notes,
            "recommended_actions": list(self.recommended_actions),
        }


class SampleTestingWorkflow:
    """Four ungated steps over one sample's compliance checklist."""

    def __init__(
        self,
        sample: SampleProfile,
        checklist: Iterable[ChecklistItem],
        recommended_actions: Iterable[str] = (),
    ) -> None:
        self.sample = sample
        self.sequencer = StepSequencer(build_steps(SAMPLE_TESTING_STEPS))
        self._items: Dict[str, ChecklistItem] = {}
        for item in checklist:
            if item.id in self._items:
                raise ValueError(f"duplicate checklist id: {item.id}")
            self._items[item.id] = item
        self.recommended_actions = tuple(recommended_actions)
        self.notes = ""
        self.result: Optional[SampleTestResult] = None

    @classmethod
    def from_catalog(cls, catalog: "AuditCatalog") -> "SampleTestingWorkflow":
        if catalog.sample is None:
            raise ValueError("catalog has no sample_testing.sample")
        return cls(catalog.sample, catalog.checklist_items(), catalog.recommended_actions)

    @property
    def items(self) -> List[ChecklistItem]:
        return list(self._items.values())

    @property
    def progress_percent(self) -> float:
        return self.sequencer.progress_percent

    def set_checked(self, item_id: str, checked: bool) -> bool:
        item = self._items.get(item_id)
        if item is None:
            logger.debug("set_checked ignored for unknown checklist item %s", item_id)
            return False
        item.checked = bool(checked)
        return True

    def set_notes(self, notes: str) -> None:
        self.notes = notes or ""

    def findings(self) -> Findings:
        return Findings(
            critical=tuple(i for i in self._items.values() if i.status is not ChecklistStatus.COMPLETE),
            compliant=tuple(i for i in self._items.values() if i.status is ChecklistStatus.COMPLETE),
        )

    @property
    def can_complete(self) -> bool:
        return self.sequencer.is_last

    def complete(self) -> SampleTestResult:
        if not self.can_complete:
            raise WorkflowError(
                f"testing can only be completed on step {self.sequencer.total}, "
                f"currently on step {self.sequencer.cursor}"
            )
        self.result = SampleTestResult(
            sample_id=self.sample.id,
            completed_at=datetime.now(timezone.utc).isoformat(),
            findings=self.findings(),
            checked=tuple(i.id for i in self._items.values() if i.checked),
            notes=self.notes,
            recommended_actions=self.recommended_actions,
        )
        logger.info("sample test completed for %s", self.sample.id)
        return self.result

    def describe(self) -> Dict[str, object]:
        return {
            **self.sequencer.describe(),
            "progress_percent": self.progress_percent,
            "sample": {
                "id": self.sample.id,
                "name": self.sample.name,
                "specialty": self.sample.specialty,
                "risk_level": self.sample.risk_level,
                "selection_reason": self.sample.selection_reason,
                "testing_areas": list(self.sample.testing_areas),
            },
            "checklist": [i.to_dict() for i in self._items.values()],
            "findings": self.findings().to_dict(),
            "notes": self.notes,
            "recommended_actions": list(self.recommended_actions),
            "completed": self.result is not None,
        }
