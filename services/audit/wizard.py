from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union
from uuid import uuid4

from services.audit.catalog import AuditArea, AuditCatalog, Framework
from services.audit.collaboration import CollaborationBoard, TeamMember
from services.ingestion.uploads import UploadPolicy, format_file_size
from services.review.ledger import ReviewItem, ReviewLedger
from services.review.metrics import DerivedMetrics, derive_metrics
from services.workflow.sequencer import Step, StepSequencer, WorkflowError, build_steps

logger = logging.getLogger(__name__)

EVIDENCE_REVIEW_STEPS = ("Create Audit", "Document Upload", "Review Document", "Review Summary")
NEW_AUDIT_STEPS = ("Audit Details", "AI Configuration")

# shown on the configuration step of the quick wizard
AUTOMATIC_SETUP = (
    "Pre-configured audit areas and requirements",
    "Document classification templates",
    "Evidence extraction rules",
    "Sample testing criteria",
    "Report templates",
)

DateLike = Union[date, str, None]


def _parse_date(value: DateLike) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as e:
        raise ValueError(f"due date must be YYYY-MM-DD, got {value!r}") from e


class AuditDraft:
    """Form state of the "create audit" step, checked against the catalog's frameworks and enabled areas."""

    def __init__(self, frameworks: Sequence[Framework], areas: Sequence[AuditArea]) -> None:
        self._frameworks = {f.value: f for f in frameworks}
        self._areas = {a.value: a for a in areas if a.enabled}
        self.name = ""
        self.framework: Optional[str] = None
        self.areas: List[str] = []
        self.due_date: Optional[date] = None
        self.description = ""

    def set_name(self, name: str) -> None:
        self.name = (name or "").strip()

    def set_framework(self, value: Optional[str]) -> None:
        if value and value not in self._frameworks:
            raise ValueError(f"unknown audit framework: {value!r}")
        self.framework = value or None

    def set_due_date(self, value: DateLike) -> None:
        self.due_date = _parse_date(value)

    def set_description(self, text: str) -> None:
        self.description = text or ""

    def toggle_area(self, value: str) -> bool:
        """Returns whether the area is selected afterwards."""
        if value not in self._areas:
            raise ValueError(f"unknown or disabled audit area: {value!r}")
        if value in self.areas:
            self.areas.remove(value)
            return False
        self.areas.append(value)
        return True

    def set_areas(self, values: Iterable[str]) -> None:
        values = list(dict.fromkeys(values))
        unknown = [v for v in values if v not in self._areas]
        if unknown:
            raise ValueError(f"unknown or disabled audit areas: {unknown}")
        self.areas = values

    def update(self, **fields) -> None:
        setters = {
            "name": self.set_name,
            "framework": self.set_framework,
            "due_date": self.set_due_date,
            "description": self.set_description,
            "areas": self.set_areas,
        }
        for key, value in fields.items():
            if key not in setters:
                raise ValueError(f"unknown audit field: {key!r}")
            setters[key](value)

    @property
    def framework_label(self) -> str:
        f = self._frameworks.get(self.framework or "")
        return f.label if f else ""

    @property
    def area_labels(self) -> List[str]:
        return [self._areas[a].label for a in self.areas]

    def has_basics(self) -> bool:
        return bool(self.name and self.framework)

    def is_complete(self) -> bool:
        return self.has_basics() and bool(self.areas) and self.due_date is not None

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "framework": self.framework,
            "framework_label": self.framework_label,
            "areas": list(self.areas),
            "area_labels": self.area_labels,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "description": self.description,
        }


@dataclass(frozen=True)
class DocumentMeta:
    name: str
    size_bytes: int
    content_type: str

    @property
    def size_label(self) -> str:
        return format_file_size(self.size_bytes)

    def to_dict(self) -> Dict[str, object]:
        return {"name": self.name, "size": self.size_label, "type": self.content_type}


@dataclass(frozen=True)
class AuditSummary:
    audit_id: str
    name: str
    framework: Optional[str]
    framework_label: str
    areas: Tuple[str, ...]
    area_labels: Tuple[str, ...]
    due_date: Optional[str]
    description: str
    document: Optional[DocumentMeta]
    items: Tuple[ReviewItem, ...]
    metrics: DerivedMetrics
    comments: str
    completed_at: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "audit_id": self.audit_id,
            "name": self.name,
            "framework": self.framework,
            "framework_label": self.framework_label,
            "areas": list(self.areas),
            "area_labels": list(self.area_labels),
            "due_date": self.due_date,
            "description": self.description,
            "document": self.document.to_dict() if self.document else None,
            "evidence": [i.to_dict() for i in self.items],
            "metrics": self.metrics.to_dict(),
            "comments": self.comments,
            "completed_at": self.completed_at,
        }


@dataclass(frozen=True)
class AuditRecord:
    id: str
    name: str
    framework: str
    framework_label: str
    due_date: Optional[str]
    description: str
    setup: Tuple[str, ...] = field(default=AUTOMATIC_SETUP)

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "framework": self.framework,
            "framework_label": self.framework_label,
            "due_date": self.due_date,
            "description": self.description,
            "setup": list(self.setup),
        }


class EvidenceReviewWizard:
    """
    Create Audit -> Document Upload -> Review Document -> Review Summary.

    Gates:
      1. name, framework, at least one area and a due date
      2. a document attached
      3. every evidence item approved or rejected
    complete() is available on the summary step only; it does not reset anything.
    With auto_approve, pending evidence at or above review_threshold starts out
    approved; anything below it is reported as needs_review.
    """

    def __init__(
        self,
        *,
        frameworks: Sequence[Framework],
        areas: Sequence[AuditArea],
        evidence: Iterable[ReviewItem],
        policy: Optional[UploadPolicy] = None,
        audit_id: Optional[str] = None,
        review_threshold: float = 85.0,
        auto_approve: bool = False,
        team: Iterable[TeamMember] = (),
    ) -> None:
        self.audit_id = audit_id or uuid4().hex
        self.draft = AuditDraft(frameworks, areas)
        self.ledger = ReviewLedger(evidence)
        self.review_threshold = float(review_threshold)
        self.auto_approved: List[str] = []
        if auto_approve:
            self.auto_approve()
        self.collaboration = CollaborationBoard(team)
        self.policy = policy or UploadPolicy()
        self.document: Optional[DocumentMeta] = None
        self.comments = ""
        self.completed: Optional[AuditSummary] = None
        self.sequencer = StepSequencer(
            build_steps(EVIDENCE_REVIEW_STEPS),
            gates={
                1: lambda _s: self.draft.is_complete(),
                2: lambda _s: self.document is not None,
                3: lambda _s: self.ledger.all_reviewed(),
            },
        )

    @classmethod
    def from_catalog(
        cls, catalog: AuditCatalog, *, enforce_size_limit: bool = False, audit_id: Optional[str] = None
    ) -> "EvidenceReviewWizard":
        return cls(
            frameworks=catalog.frameworks,
            areas=catalog.audit_areas,
            evidence=catalog.evidence_items(),
            policy=catalog.upload_policy(enforce_size_limit),
            audit_id=audit_id,
            review_threshold=catalog.confidence_threshold,
            auto_approve=catalog.auto_approve_high_confidence,
            team=catalog.team,
        )

    @property
    def step(self) -> Step:
        return self.sequencer.current

    def advance(self) -> bool:
        return self.sequencer.advance()

    def retreat(self) -> bool:
        return self.sequencer.retreat()

    # --- step 2 ---
    def attach_document(self, name: str, size_bytes: int, content_type: str = "") -> DocumentMeta:
        self.policy.check(name, size_bytes)
        self.document = DocumentMeta(name=name, size_bytes=int(size_bytes), content_type=content_type or "")
        logger.info("audit %s: document attached %s (%s)", self.audit_id, name, self.document.size_label)
        return self.document

    def remove_document(self) -> None:
        self.document = None

    # --- step 3 ---
    def approve(self, item_id: str, comment: Optional[str] = None) -> bool:
        return self.ledger.approve(item_id, comment)

    def reject(self, item_id: str, comment: Optional[str] = None) -> bool:
        return self.ledger.reject(item_id, comment)

    def reset(self, item_id: str) -> bool:
        return self.ledger.reset_status(item_id)

    def auto_approve(self) -> List[str]:
        approved = self.ledger.auto_approve(self.review_threshold)
        self.auto_approved.extend(i for i in approved if i not in self.auto_approved)
        return approved

    def needs_review(self) -> List[str]:
        return self.ledger.below_threshold(self.review_threshold)

    # --- step 4 ---
    def set_comments(self, text: str) -> None:
        self.comments = text or ""

    @property
    def metrics(self) -> DerivedMetrics:
        return derive_metrics(self.ledger)

    def summary(self, completed_at: Optional[str] = None) -> AuditSummary:
        d = self.draft
        return AuditSummary(
            audit_id=self.audit_id,
            name=d.name,
            framework=d.framework,
            framework_label=d.framework_label,
            areas=tuple(d.areas),
            area_labels=tuple(d.area_labels),
            due_date=d.due_date.isoformat() if d.due_date else None,
            description=d.description,
            document=self.document,
            items=self.ledger.snapshot(),
            metrics=self.metrics,
            comments=self.comments,
            completed_at=completed_at,
        )

    @property
    def can_complete(self) -> bool:
        seq = self.sequencer
        return seq.is_last and all(seq.is_step_complete(s.position) for s in seq.steps)

    def complete(self) -> AuditSummary:
        if not self.can_complete:
            raise WorkflowError(
                f"audit {self.audit_id} cannot be completed from step "
                f"{self.sequencer.cursor} ({self.step.label})"
            )
        self.completed = self.summary(completed_at=datetime.now(timezone.utc).isoformat())
        m = self.completed.metrics
        logger.info(
            "audit %s completed: compliance=%s%% risk=%s", self.audit_id, m.compliance_percentage, m.risk_tier.value
        )
        return self.completed

    def describe(self) -> Dict[str, object]:
        return {
            "audit_id": self.audit_id,
            **self.sequencer.describe(),
            "draft": self.draft.to_dict(),
            "document": self.document.to_dict() if self.document else None,
            "evidence": [
                {**i.to_dict(), "needs_review": i.confidence < self.review_threshold} for i in self.ledger
            ],
            "review_threshold": self.review_threshold,
            "auto_approved": list(self.auto_approved),
            "all_reviewed": self.ledger.all_reviewed(),
            "metrics": self.metrics.to_dict(),
            "comments": self.comments,
            "collaboration": self.collaboration.to_dict(),
            "can_complete": self.can_complete,
            "completed": self.completed is not None,
        }


class NewAuditWizard:
    """Two-step quick create: details, then the automatic AI configuration preview."""

    def __init__(self, *, frameworks: Sequence[Framework], areas: Sequence[AuditArea] = ()) -> None:
        self.draft = AuditDraft(frameworks, areas)
        self.record: Optional[AuditRecord] = None
        self.sequencer = StepSequencer(
            build_steps(NEW_AUDIT_STEPS),
            gates={1: lambda _s: self.draft.has_basics()},
        )

    @classmethod
    def from_catalog(cls, catalog: AuditCatalog) -> "NewAuditWizard":
        return cls(frameworks=catalog.frameworks, areas=catalog.audit_areas)

    def advance(self) -> bool:
        return self.sequencer.advance()

    def retreat(self) -> bool:
        return self.sequencer.retreat()

    def complete(self) -> AuditRecord:
        if not (self.sequencer.is_last and self.draft.has_basics()):
            raise WorkflowError("audit details are incomplete")
        d = self.draft
        self.record = AuditRecord(
            id=uuid4().hex,
            name=d.name,
            framework=str(d.framework),
            framework_label=d.framework_label,
            due_date=d.due_date.isoformat() if d.due_date else None,
            description=d.description,
        )
        logger.info("audit created id=%s name=%s framework=%s", self.record.id, d.name, d.framework)
        return self.record

    def describe(self) -> Dict[str, object]:
        return {
            **self.sequencer.describe(),
            "draft": self.draft.to_dict(),
            "setup": list(AUTOMATIC_SETUP),
            "record": self.record.to_dict() if self.record else None,
        }
