from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional, Tuple

from services.review.ledger import ReviewStatus
from services.review.metrics import RiskTier

if TYPE_CHECKING:
    from services.audit.wizard import AuditSummary

DEFAULT_CUSTOM_SECTIONS: Dict[str, bool] = {
    "overview": True,
    "findings": True,
    "recommendations": True,
    "appendix": False,
}


@dataclass(frozen=True)
class ReportTemplate:
    id: str
    name: str
    description: str = ""
    pages: str = ""
    audience: str = ""
    sections: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "pages": self.pages,
            "audience": self.audience,
            "sections": list(self.sections),
        }


@dataclass
class ReportSection:
    key: str
    heading: str
    lines: List[str] = field(default_factory=list)


@dataclass
class ReportOutline:
    title: str
    template_id: str
    audience: str
    template_sections: Tuple[str, ...]
    sections: List[ReportSection] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "title": self.title,
            "template_id": self.template_id,
            "audience": self.audience,
            "template_sections": list(self.template_sections),
            "sections": [{"key": s.key, "heading": s.heading, "lines": list(s.lines)} for s in self.sections],
        }


def resolve_sections(overrides: Optional[Mapping[str, bool]] = None) -> Dict[str, bool]:
    sections = dict(DEFAULT_CUSTOM_SECTIONS)
    for key, enabled in (overrides or {}).items():
        if key not in sections:
            raise ValueError(f"unknown report section: {key!r}")
        sections[key] = bool(enabled)
    return sections


def build_report(
    template: ReportTemplate,
    summary: "AuditSummary",
    sections: Optional[Mapping[str, bool]] = None,
) -> ReportOutline:
    enabled = resolve_sections(sections)
    m = summary.metrics
    outline = ReportOutline(
        title=f"{summary.name} - {template.name}",
        template_id=template.id,
        audience=template.audience,
        template_sections=template.sections,
    )

    if enabled["overview"]:
        outline.sections.append(ReportSection(
            key="overview",
            heading="Overview",
            lines=[
                f"Framework: {summary.framework_label}",
                f"Due date: {summary.due_date or 'Not set'}",
                f"Audit areas: {', '.join(summary.area_labels) or 'None'}",
                f"Overall compliance: {m.compliance_percentage}%",
                f"Risk level: {m.risk_tier.label}",
            ],
        ))

    rejected = [i for i in summary.items if i.status is ReviewStatus.REJECTED]
    if enabled["findings"]:
        lines = [f"{m.approved} of {m.total} evidence items approved, {m.rejected} rejected"]
        for item in rejected:
            note = f" ({item.comment})" if item.comment else ""
            lines.append(f"{item.category}: {item.definition}{note}")
        outline.sections.append(ReportSection(key="findings", heading="Key Findings", lines=lines))

    if enabled["recommendations"]:
        lines = [f"Obtain additional evidence for {item.category}: {item.definition}" for item in rejected]
        if m.risk_tier is not RiskTier.LOW:
            lines.append("Schedule re-review in 30 days")
        if not lines:
            lines.append("No corrective actions required")
        outline.sections.append(ReportSection(key="recommendations", heading="Recommendations", lines=lines))

    if enabled["appendix"]:
        outline.sections.append(ReportSection(
            key="appendix",
            heading="Appendix: Evidence",
            lines=[
                f"[{i.status.value}] {i.id} p.{i.page_number if i.page_number is not None else '-'} "
                f"{i.category} ({i.confidence:g}%): {i.extract}"
                for i in summary.items
            ],
        ))

    if summary.comments:
        outline.sections.append(ReportSection(key="comments", heading="Reviewer Comments", lines=[summary.comments]))

    return outline


def render_markdown(outline: ReportOutline) -> str:
    out = [f"# {outline.title}", ""]
    if outline.audience:
        out += [f"_Audience: {outline.audience}_", ""]
    for section in outline.sections:
        out.append(f"## {section.heading}")
        out.extend(f"- {line}" for line in section.lines)
        out.append("")
    return "\n".join(out).rstrip() + "\n"
