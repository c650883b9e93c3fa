# apps/review_ui/adapters.py
import json
import tempfile
from pathlib import Path
from typing import Optional

from services.audit.catalog import AuditCatalog, load_catalog
from services.audit.wizard import AuditSummary, EvidenceReviewWizard


def export_summary(summary: AuditSummary) -> bytes:
    return json.dumps(summary.to_dict(), indent=2, ensure_ascii=False).encode("utf-8")


def oversize_notice(wizard: EvidenceReviewWizard) -> Optional[str]:
    doc, policy = wizard.document, wizard.policy
    if doc is None or doc.size_bytes <= policy.max_file_bytes:
        return None
    return f"{doc.name} is larger than {policy.max_file_mb}MB"


def export_filename(summary: AuditSummary) -> str:
    stem = "".join(c if c.isalnum() else "_" for c in (summary.name or "audit")).strip("_").lower()
    return f"{stem or 'audit'}_{summary.audit_id[:8]}.json"


class WorkbenchAdapter:
    """Catalog access and summary persistence for the review console."""

    def __init__(self, catalog_path: Path, enforce_size_limit: bool = False, export_dir: Optional[Path] = None):
        self.catalog: AuditCatalog = load_catalog(catalog_path)
        self.enforce_size_limit = enforce_size_limit
        self.export_dir = Path(export_dir or "data/completed_audits")

    def new_wizard(self) -> EvidenceReviewWizard:
        return EvidenceReviewWizard.from_catalog(self.catalog, enforce_size_limit=self.enforce_size_limit)

    def save_summary(self, summary: AuditSummary) -> str:
        self.export_dir.mkdir(parents=True, exist_ok=True)
        out_path = self.export_dir / export_filename(summary)

        with tempfile.NamedTemporaryFile("wb", delete=False, dir=str(self.export_dir)) as tf:
            tf.write(export_summary(summary))
            tmpname = tf.name
        Path(tmpname).replace(out_path)

        return str(out_path)
