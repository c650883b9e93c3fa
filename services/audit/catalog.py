from __future__ import annotations

import logging
import random
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from services.audit.collaboration import TeamMember
from services.audit.sample_testing import ChecklistItem, ChecklistStatus, SampleProfile
from services.doc_classifier.classifier import (
    ClassificationOutcome,
    ClassificationTemplate,
    Classifier,
    KeywordClassifier,
    RandomClassifier,
)
from services.doc_classifier.extraction_rules import ExtractionMethod, ExtractionRule, FieldType
from services.ingestion.uploads import DEFAULT_ALLOWED_EXTENSIONS, DEFAULT_MAX_FILE_MB, UploadPolicy
from services.reporting.templates import ReportTemplate
from services.review.ledger import ReviewItem
from services.validation.schema_validation import validate_with_schema

logger = logging.getLogger(__name__)

CATALOG_SCHEMA = "catalog"
DEFAULT_CONFIDENCE_THRESHOLD = 85.0


class CatalogError(ValueError):
    """Catalog file missing, unreadable or failing schema validation."""


@dataclass(frozen=True)
class Framework:
    value: str
    label: str
    description: str = ""
    areas: Optional[int] = None
    templates: Optional[int] = None
    rules: Optional[int] = None


@dataclass(frozen=True)
class AuditArea:
    value: str
    label: str
    enabled: bool = True
    priority: Optional[str] = None
    requirements: Optional[int] = None
    description: str = ""


@dataclass(frozen=True)
class AuditCatalog:
    """
    Read-only configuration shared by the workflows.
    Mutable records (evidence, checklist rows) are handed out as fresh copies.
    """

    frameworks: Tuple[Framework, ...]
    audit_areas: Tuple[AuditArea, ...]
    classification_outcomes: Tuple[ClassificationOutcome, ...]
    classification_templates: Tuple[ClassificationTemplate, ...]
    confidence_threshold: float
    evidence: Tuple[ReviewItem, ...]
    sample: Optional[SampleProfile]
    checklist: Tuple[ChecklistItem, ...]
    recommended_actions: Tuple[str, ...]
    report_templates: Tuple[ReportTemplate, ...]
    allowed_extensions: frozenset
    max_file_mb: int
    extraction_rules: Tuple[ExtractionRule, ...] = ()
    team: Tuple[TeamMember, ...] = ()
    auto_approve_high_confidence: bool = False

    def framework(self, value: str) -> Optional[Framework]:
        return next((f for f in self.frameworks if f.value == value), None)

    def area(self, value: str) -> Optional[AuditArea]:
        return next((a for a in self.audit_areas if a.value == value), None)

    def enabled_areas(self) -> List[AuditArea]:
        return [a for a in self.audit_areas if a.enabled]

    def report_template(self, template_id: str) -> Optional[ReportTemplate]:
        return next((t for t in self.report_templates if t.id == template_id), None)

    def extraction_rule(self, rule_id: str) -> Optional[ExtractionRule]:
        return next((r for r in self.extraction_rules if r.id == rule_id), None)

    def rules_for(self, document_type: str) -> List[ExtractionRule]:
        return [r for r in self.extraction_rules if r.applies_to(document_type)]

    def evidence_items(self) -> List[ReviewItem]:
        return [replace(i) for i in self.evidence]

    def checklist_items(self) -> List[ChecklistItem]:
        return [replace(c) for c in self.checklist]

    def upload_policy(self, enforce_size_limit: bool = False) -> UploadPolicy:
        return UploadPolicy(
            allowed_extensions=self.allowed_extensions,
            max_file_mb=self.max_file_mb,
            enforce_size_limit=enforce_size_limit,
        )

    def classifier(self, kind: str = "keyword", seed: Optional[int] = None) -> Classifier:
        """kind="random" draws from the outcomes; "keyword" routes by template, random as fallback."""
        fallback = RandomClassifier(self.classification_outcomes, rng=random.Random(seed))
        if kind == "random":
            return fallback
        if kind != "keyword":
            raise ValueError(f"unknown classifier kind: {kind!r}")
        return KeywordClassifier(
            self.classification_templates, fallback=fallback, min_confidence=self.confidence_threshold
        )


def _ints(d: Dict[str, Any], *keys: str) -> Dict[str, Optional[int]]:
    return {k: (int(d[k]) if d.get(k) is not None else None) for k in keys}


def catalog_from_dict(data: Dict[str, Any]) -> AuditCatalog:
    ok, msg = validate_with_schema(data, CATALOG_SCHEMA)
    if not ok:
        raise CatalogError(f"Invalid catalog: {msg}")

    frameworks = tuple(
        Framework(
            value=str(f["value"]),
            label=str(f["label"]),
            description=str(f.get("description", "")),
            **_ints(f, "areas", "templates", "rules"),
        )
        for f in data["frameworks"]
    )
    areas = tuple(
        AuditArea(
            value=str(a["value"]),
            label=str(a["label"]),
            enabled=bool(a.get("enabled", True)),
            priority=a.get("priority"),
            requirements=_ints(a, "requirements")["requirements"],
            description=str(a.get("description", "")),
        )
        for a in data["audit_areas"]
    )

    clf = data["classification"]
    threshold = float(clf.get("confidence_threshold", DEFAULT_CONFIDENCE_THRESHOLD))
    outcomes = tuple(
        ClassificationOutcome(category=str(o["category"]), confidence=float(o["confidence"]))
        for o in clf["outcomes"]
    )
    templates = tuple(
        ClassificationTemplate(
            id=str(t["id"]),
            name=str(t["name"]),
            keywords=tuple(str(k) for k in t.get("keywords", [])),
            confidence=float(t["confidence"]),
            enabled=bool(t.get("enabled", True)),
        )
        for t in clf.get("templates", []) or []
    )

    evidence = tuple(
        ReviewItem(
            id=str(e["id"]),
            category=str(e.get("category", "")),
            definition=str(e.get("definition", "")),
            confidence=float(e["confidence"]),
            page_number=e.get("page_number"),
            extract=str(e.get("extract", "")),
            explanation=str(e.get("explanation", "")),
        )
        for e in data["evidence"]
    )
    ids = [e.id for e in evidence]
    if len(set(ids)) != len(ids):
        raise CatalogError(f"Invalid catalog: duplicate evidence ids in {ids}")

    st = data.get("sample_testing") or {}
    sample = None
    if st.get("sample"):
        s = st["sample"]
        sample = SampleProfile(
            id=str(s["id"]),
            name=str(s["name"]),
            specialty=str(s.get("specialty", "")),
            risk_level=str(s.get("risk_level", "")),
            selection_reason=str(s.get("selection_reason", "")),
            testing_areas=tuple(str(x) for x in s.get("testing_areas", [])),
        )
    checklist = tuple(
        ChecklistItem(
            id=str(c["id"]),
            label=str(c.get("label", "")),
            required=bool(c.get("required", False)),
            status=ChecklistStatus(c.get("status", "pending")),
        )
        for c in st.get("checklist", []) or []
    )

    report_templates = tuple(
        ReportTemplate(
            id=str(t["id"]),
            name=str(t["name"]),
            description=str(t.get("description", "")),
            pages=str(t.get("pages", "")),
            audience=str(t.get("audience", "")),
            sections=tuple(str(x) for x in t["sections"]),
        )
        for t in data.get("report_templates", []) or []
    )

    rules = tuple(
        ExtractionRule(
            id=str(r["id"]),
            name=str(r["name"]),
            field_type=FieldType(r["field_type"]),
            method=ExtractionMethod(r["method"]),
            document_types=tuple(str(x) for x in r.get("document_types", []) or []),
            audit_area=r.get("audit_area"),
            pattern=str(r.get("pattern", "")),
            keywords=tuple(str(k) for k in r.get("keywords", []) or []),
            confidence=float(r.get("confidence", 90)),
            min_confidence=float(r.get("min_confidence", threshold)),
            case_sensitive=bool(r.get("case_sensitive", False)),
            enabled=bool(r.get("enabled", True)),
            description=str(r.get("description", "")),
        )
        for r in data.get("extraction_rules", []) or []
    )
    for rule in rules:
        if rule.method is ExtractionMethod.REGEX:
            try:
                rule.compiled()
            except ValueError as e:
                raise CatalogError(f"Invalid catalog: {e}") from e
    team = tuple(
        TeamMember(id=str(m["id"]), name=str(m["name"]), role=str(m.get("role", "")))
        for m in data.get("team", []) or []
    )

    policy = data.get("upload_policy") or {}
    return AuditCatalog(
        frameworks=frameworks,
        audit_areas=areas,
        classification_outcomes=outcomes,
        classification_templates=templates,
        confidence_threshold=threshold,
        evidence=evidence,
        sample=sample,
        checklist=checklist,
        recommended_actions=tuple(str(x) for x in st.get("recommended_actions", []) or []),
        report_templates=report_templates,
        allowed_extensions=frozenset(
            str(x).lower() for x in policy.get("allowed_extensions", DEFAULT_ALLOWED_EXTENSIONS)
        ),
        max_file_mb=int(policy.get("max_file_mb", DEFAULT_MAX_FILE_MB)),
        extraction_rules=rules,
        team=team,
        auto_approve_high_confidence=bool(clf.get("auto_approve_high_confidence", False)),
    )


def load_catalog(path: Path) -> AuditCatalog:
    path = Path(path)
    if not path.exists():
        raise CatalogError(f"Catalog not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise CatalogError(f"Catalog is not valid YAML: {path}: {e}") from e
    catalog = catalog_from_dict(data)
    logger.info(
        "catalog loaded from %s: %d frameworks, %d areas, %d evidence items",
        path, len(catalog.frameworks), len(catalog.audit_areas), len(catalog.evidence),
    )
    return catalog
