from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, File, HTTPException, UploadFile
from fastapi.responses import JSONResponse

from apps.api.schemas import (
    AuditDetailsIn,
    CommentsIn,
    DiscussionIn,
    ReportRequestIn,
    ReviewActionIn,
    RuleTestIn,
    TaskIn,
    TaskStatusIn,
)
from apps.api.sessions import DEFAULT_MAX_SESSIONS, SessionStore, http_errors
from services.audit.catalog import AuditCatalog
from services.audit.wizard import EvidenceReviewWizard, NewAuditWizard
from services.doc_classifier.extraction_rules import evaluate_rule
from services.reporting.templates import build_report, render_markdown

REVIEW_ACTIONS = ("approve", "reject", "reset")


def create_audits_router(
    *,
    catalog: AuditCatalog,
    enforce_size_limit: bool = False,
    max_sessions: int = DEFAULT_MAX_SESSIONS,
) -> APIRouter:
    router = APIRouter()
    audits: SessionStore[EvidenceReviewWizard] = SessionStore(
        "audit", max_sessions=max_sessions, is_finished=lambda w: w.completed is not None
    )
    quick: SessionStore[NewAuditWizard] = SessionStore(
        "new_audit", max_sessions=max_sessions, is_finished=lambda w: w.record is not None
    )

    # --- Evidence review wizard ---
    @router.post("/audits")
    def open_audit():
        wizard = EvidenceReviewWizard.from_catalog(catalog, enforce_size_limit=enforce_size_limit)
        audits.add(wizard, session_id=wizard.audit_id)
        return JSONResponse(status_code=201, content=wizard.describe())

    @router.get("/audits/{audit_id}")
    def audit_state(audit_id: str):
        return audits.get(audit_id).describe()

    @router.delete("/audits/{audit_id}")
    def dismiss_audit(audit_id: str):
        audits.pop(audit_id)
        return {"audit_id": audit_id, "dismissed": True}

    @router.patch("/audits/{audit_id}")
    def update_details(audit_id: str, body: AuditDetailsIn):
        wizard = audits.get(audit_id)
        with http_errors():
            wizard.draft.update(**body.model_dump(exclude_unset=True))
        return wizard.describe()

    @router.post("/audits/{audit_id}/areas/{area}/toggle")
    def toggle_area(audit_id: str, area: str):
        wizard = audits.get(audit_id)
        with http_errors():
            selected = wizard.draft.toggle_area(area)
        return {"area": area, "selected": selected, **wizard.describe()}

    @router.post("/audits/{audit_id}/document")
    async def attach_document(audit_id: str, file: UploadFile = File(...)):
        wizard = audits.get(audit_id)
        blob = await file.read()
        with http_errors():
            wizard.attach_document(file.filename or "", len(blob), file.content_type or "")
        return wizard.describe()

    @router.delete("/audits/{audit_id}/document")
    def remove_document(audit_id: str):
        wizard = audits.get(audit_id)
        wizard.remove_document()
        return wizard.describe()

    @router.post("/audits/{audit_id}/advance")
    def advance(audit_id: str):
        wizard = audits.get(audit_id)
        moved = wizard.advance()
        return {"moved": moved, **wizard.describe()}

    @router.post("/audits/{audit_id}/retreat")
    def retreat(audit_id: str):
        wizard = audits.get(audit_id)
        moved = wizard.retreat()
        return {"moved": moved, **wizard.describe()}

    @router.post("/audits/{audit_id}/evidence/{item_id}/{action}")
    def review_evidence(
        audit_id: str,
        item_id: str,
        action: str,
        body: Optional[ReviewActionIn] = Body(default=None),
    ):
        if action not in REVIEW_ACTIONS:
            raise HTTPException(status_code=404, detail="unknown_action")
        wizard = audits.get(audit_id)
        comment = body.comment if body else None
        if action == "approve":
            updated = wizard.approve(item_id, comment)
        elif action == "reject":
            updated = wizard.reject(item_id, comment)
        else:
            updated = wizard.reset(item_id)
        return {"updated": updated, **wizard.describe()}

    @router.post("/audits/{audit_id}/evidence/auto-approve")
    def auto_approve(audit_id: str):
        wizard = audits.get(audit_id)
        approved = wizard.auto_approve()
        return {"approved": approved, **wizard.describe()}

    @router.put("/audits/{audit_id}/comments")
    def set_comments(audit_id: str, body: CommentsIn):
        wizard = audits.get(audit_id)
        wizard.set_comments(body.comments)
        return wizard.describe()

    # --- Team collaboration ---
    @router.post("/audits/{audit_id}/discussion")
    def post_comment(audit_id: str, body: DiscussionIn):
        board = audits.get(audit_id).collaboration
        with http_errors():
            comment = board.add_comment(body.author, body.text, body.kind)
        return JSONResponse(status_code=201, content=comment.to_dict())

    @router.post("/audits/{audit_id}/tasks")
    def assign_task(audit_id: str, body: TaskIn):
        board = audits.get(audit_id).collaboration
        with http_errors():
            task = board.assign_task(body.title, body.assignee, priority=body.priority, due_date=body.due_date)
        return JSONResponse(status_code=201, content=task.to_dict())

    @router.put("/audits/{audit_id}/tasks/{task_id}")
    def set_task_status(audit_id: str, task_id: str, body: TaskStatusIn):
        board = audits.get(audit_id).collaboration
        with http_errors():
            updated = board.set_task_status(task_id, body.status)
        return {"updated": updated, **board.to_dict()}

    @router.post("/audits/{audit_id}/complete")
    def complete(audit_id: str):
        wizard = audits.get(audit_id)
        with http_errors():
            summary = wizard.complete()
        return summary.to_dict()

    @router.post("/audits/{audit_id}/report")
    def report(audit_id: str, body: ReportRequestIn):
        wizard = audits.get(audit_id)
        template = catalog.report_template(body.template_id)
        if template is None:
            raise HTTPException(status_code=404, detail="report_template_not_found")
        summary = wizard.completed or wizard.summary()
        with http_errors():
            outline = build_report(template, summary, body.sections)
        return {**outline.to_dict(), "markdown": render_markdown(outline)}

    # --- Quick create (details -> configuration) ---
    @router.post("/new-audits")
    def open_new_audit():
        wizard = NewAuditWizard.from_catalog(catalog)
        sid = quick.add(wizard)
        return JSONResponse(status_code=201, content={"session_id": sid, **wizard.describe()})

    @router.get("/new-audits/{session_id}")
    def new_audit_state(session_id: str):
        return {"session_id": session_id, **quick.get(session_id).describe()}

    @router.patch("/new-audits/{session_id}")
    def update_new_audit(session_id: str, body: AuditDetailsIn):
        wizard = quick.get(session_id)
        with http_errors():
            wizard.draft.update(**body.model_dump(exclude_unset=True))
        return {"session_id": session_id, **wizard.describe()}

    @router.post("/new-audits/{session_id}/{move}")
    def move_new_audit(session_id: str, move: str):
        wizard = quick.get(session_id)
        if move == "advance":
            moved = wizard.advance()
        elif move == "retreat":
            moved = wizard.retreat()
        elif move == "complete":
            with http_errors():
                record = wizard.complete()
            return JSONResponse(status_code=201, content=record.to_dict())
        else:
            raise HTTPException(status_code=404, detail="unknown_action")
        return {"session_id": session_id, "moved": moved, **wizard.describe()}

    # --- Catalog lookups ---
    @router.get("/catalog")
    def catalog_overview() -> Dict[str, Any]:
        return {
            "frameworks": [
                {"value": f.value, "label": f.label, "description": f.description} for f in catalog.frameworks
            ],
            "audit_areas": [
                {"value": a.value, "label": a.label, "priority": a.priority, "enabled": a.enabled}
                for a in catalog.audit_areas
            ],
            "upload": {
                "accept": catalog.upload_policy().accept_attribute,
                "max_file_mb": catalog.max_file_mb,
            },
            "ai": {
                "confidence_threshold": catalog.confidence_threshold,
                "auto_approve_high_confidence": catalog.auto_approve_high_confidence,
                "extraction_rules": len(catalog.extraction_rules),
            },
            "team": [m.to_dict() for m in catalog.team],
        }

    @router.get("/extraction-rules")
    def extraction_rules():
        return [r.to_dict() for r in catalog.extraction_rules]

    @router.post("/extraction-rules/{rule_id}/test")
    def dry_run_extraction_rule(rule_id: str, body: RuleTestIn):
        rule = catalog.extraction_rule(rule_id)
        if rule is None:
            raise HTTPException(status_code=404, detail="extraction_rule_not_found")
        with http_errors():
            result = evaluate_rule(rule, [(d.name, d.text) for d in body.documents])
        return result.to_dict()

    @router.get("/report-templates")
    def report_templates():
        return [t.to_dict() for t in catalog.report_templates]

    return router
