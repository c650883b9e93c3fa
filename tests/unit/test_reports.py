from __future__ import annotations

import pytest

from services.audit.wizard import AuditSummary
from services.reporting.templates import ReportTemplate, build_report, render_markdown, resolve_sections
from services.review.ledger import ReviewItem, ReviewStatus
from services.review.metrics import derive_metrics

TEMPLATE = ReportTemplate(
    id="executive",
    name="Executive Summary",
    audience="C-Suite, Board",
    sections=("Executive Overview", "Key Findings"),
)


def summary(statuses, comments=""):
    items = tuple(
        ReviewItem(
            id=f"e{i}",
            category=f"Cat{i}",
            definition=f"Check {i}",
            confidence=90,
            status=ReviewStatus(s),
            comment="missing page" if s == "rejected" else None,
            page_number=i,
            extract=f"extract {i}",
        )
        for i, s in enumerate(statuses, start=1)
    )
    return AuditSummary(
        audit_id="a1",
        name="2024 NCQA",
        framework="ncqa",
        framework_label="NCQA Health Plan Accreditation",
        areas=("credentialing",),
        area_labels=("Credentialing",),
        due_date="2024-12-31",
        description="",
        document=None,
        items=items,
        metrics=derive_metrics(items),
        comments=comments,
    )


def test_default_sections():
    assert resolve_sections() == {"overview": True, "findings": True, "recommendations": True, "appendix": False}


def test_unknown_section_rejected():
    with pytest.raises(ValueError):
        resolve_sections({"glossary": True})


def test_outline_follows_toggles():
    outline = build_report(TEMPLATE, summary(["approved", "rejected"]), {"findings": False, "appendix": True})
    assert [s.key for s in outline.sections] == ["overview", "recommendations", "appendix"]
    assert outline.title == "2024 NCQA - Executive Summary"


def test_findings_list_rejected_items_with_comment():
    outline = build_report(TEMPLATE, summary(["approved", "rejected"]))
    findings = next(s for s in outline.sections if s.key == "findings")
    assert findings.lines[0] == "1 of 2 evidence items approved, 1 rejected"
    assert "Cat2: Check 2 (missing page)" in findings.lines


def test_low_risk_needs_no_actions():
    outline = build_report(TEMPLATE, summary(["approved"] * 10))
    recs = next(s for s in outline.sections if s.key == "recommendations")
    assert recs.lines == ["No corrective actions required"]


def test_comments_section_and_markdown():
    outline = build_report(TEMPLATE, summary(["approved", "rejected"], comments="Escalate to QM"))
    assert outline.sections[-1].key == "comments"
    md = render_markdown(outline)
    assert md.startswith("# 2024 NCQA - Executive Summary\n")
    assert "## Overview" in md
    assert "- Overall compliance: 50%" in md
    assert "- Risk level: High Risk" in md
    assert "- Escalate to QM" in md
