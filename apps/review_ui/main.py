# apps/review_ui/main.py
import logging

import streamlit as st

# --- 1. Page Config ---
st.set_page_config(layout="wide", page_title="Audit Evidence Review")

from apps.common.logging_config import configure_logging
from apps.common.settings import load_settings
from apps.review_ui.adapters import WorkbenchAdapter, export_filename, export_summary, oversize_notice
from services.ingestion.uploads import UploadRejected
from services.review.ledger import ReviewStatus
from services.review.metrics import confidence_band

SETTINGS = load_settings()
configure_logging(SETTINGS.log_level, SETTINGS.log_json)
logger = logging.getLogger(__name__)


# --- Helper Functions ---
@st.cache_resource
def get_adapter():
    return WorkbenchAdapter(SETTINGS.catalog_path, SETTINGS.upload.enforce_size_limit)


def start_over():
    st.session_state.wizard = adapter.new_wizard()


def next_step():
    st.session_state.wizard.advance()


def prev_step():
    st.session_state.wizard.retreat()


# --- Main App ---
adapter = get_adapter()
catalog = adapter.catalog

if "wizard" not in st.session_state:
    start_over()
wizard = st.session_state.wizard
seq = wizard.sequencer

st.title("Audit Evidence Review")

# Sidebar
st.sidebar.header("Progress")
for s in seq.steps:
    marker = "▶" if s.position == seq.cursor else ("✓" if s.position < seq.cursor else "·")
    st.sidebar.markdown(f"{marker} **{s.position}. {s.label}**")
st.sidebar.progress(int(seq.progress_percent))
st.sidebar.button("Start New Review", on_click=start_over)

st.subheader(f"Step {seq.cursor} of {seq.total}: {seq.current.label}")

# --- Step 1: audit details ---
if seq.cursor == 1:
    d = wizard.draft
    enabled = catalog.enabled_areas()
    fw_values = [f.value for f in catalog.frameworks]
    name = st.text_input("Audit Name", value=d.name)
    framework = st.selectbox(
        "Framework",
        options=[""] + fw_values,
        index=(fw_values.index(d.framework) + 1) if d.framework in fw_values else 0,
        format_func=lambda v: catalog.framework(v).label if v else "Select a framework",
    )
    areas = st.multiselect(
        "Audit Areas",
        options=[a.value for a in enabled],
        default=d.areas,
        format_func=lambda v: catalog.area(v).label,
    )
    due = st.date_input("Due Date", value=d.due_date)
    description = st.text_area("Description", value=d.description, height=100)
    wizard.draft.update(name=name, framework=framework or None, areas=areas, due_date=due, description=description)

# --- Step 2: document ---
elif seq.cursor == 2:
    policy = wizard.policy
    uploaded = st.file_uploader(
        f"Upload audit document (max {policy.max_file_mb}MB)",
        type=sorted(policy.allowed_extensions),
    )
    if uploaded is not None and (wizard.document is None or wizard.document.name != uploaded.name):
        try:
            wizard.attach_document(uploaded.name, uploaded.size, uploaded.type or "")
        except UploadRejected as e:
            st.error(str(e))
    if wizard.document is not None:
        st.success(f"{wizard.document.name} ({wizard.document.size_label})")
        notice = oversize_notice(wizard)
        if notice:
            st.warning(notice)
        if st.button("Remove document"):
            wizard.remove_document()
            st.rerun()

# --- Step 3: evidence review ---
elif seq.cursor == 3:
    counts = wizard.ledger.counts()
    st.caption(
        f"Approved {counts['approved']} · Rejected {counts['rejected']} · Pending {counts['pending']}"
    )
    if counts["pending"] and st.button(f"Auto-approve items at or above {wizard.review_threshold:.0f}% confidence"):
        wizard.auto_approve()
        st.rerun()
    flagged = set(wizard.needs_review())
    for item in wizard.ledger:
        with st.container(border=True):
            head, badge = st.columns([4, 1])
            with head:
                st.markdown(f"**{item.category}**: {item.definition}")
                if item.page_number:
                    st.caption(f"Page {item.page_number}")
            with badge:
                st.markdown(f"`{item.confidence:.0f}% {confidence_band(item.confidence)}`")
                st.markdown(f"**{item.status.value.title()}**")
                if item.id in flagged:
                    st.caption("Needs human review")
            if item.extract:
                st.markdown(f"> {item.extract}")
            if item.explanation:
                st.caption(item.explanation)
            if item.comment:
                st.info(item.comment)

            comment = st.text_input("Comment", key=f"comment_{item.id}", disabled=bool(item.comment))
            c1, c2, c3, _ = st.columns([1, 1, 1, 5])
            if c1.button("Approve", key=f"approve_{item.id}", disabled=item.status is ReviewStatus.APPROVED):
                wizard.approve(item.id, comment)
                st.rerun()
            if c2.button("Reject", key=f"reject_{item.id}", disabled=item.status is ReviewStatus.REJECTED):
                wizard.reject(item.id, comment)
                st.rerun()
            if c3.button("Reset", key=f"reset_{item.id}", disabled=item.status is ReviewStatus.PENDING):
                wizard.reset(item.id)
                st.rerun()

# --- Step 4: summary ---
else:
    m = wizard.metrics
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Evidence Items", m.total)
    col2.metric("Approved", m.approved)
    col3.metric("Compliance", f"{m.compliance_percentage}%")
    col4.metric("Risk", m.risk_tier.label)

    d = wizard.draft
    st.markdown(f"**{d.name}** · {d.framework_label} · due {d.due_date}")
    st.markdown("Areas: " + ", ".join(d.area_labels))
    if wizard.document is not None:
        st.markdown(f"Document: {wizard.document.name} ({wizard.document.size_label})")

    wizard.set_comments(st.text_area("Overall Comments", value=wizard.comments, height=120))

    if wizard.completed is None:
        if st.button("Complete Review", type="primary", disabled=not wizard.can_complete):
            summary = wizard.complete()
            saved_path = adapter.save_summary(summary)
            logger.info("review %s exported to %s", summary.audit_id, saved_path)
            st.toast(f"Saved: {saved_path}", icon="✅")
            st.rerun()
    else:
        st.success(f"Review completed at {wizard.completed.completed_at}")
        st.download_button(
            "Download Summary (JSON)",
            data=export_summary(wizard.completed),
            file_name=export_filename(wizard.completed),
            mime="application/json",
        )

# --- Navigation ---
st.markdown("---")
col_prev, col_next, _ = st.columns([1, 1, 6])
with col_prev:
    st.button("⬅️ Previous", on_click=prev_step, disabled=seq.is_first)
with col_next:
    st.button("Next ➡️", on_click=next_step, disabled=not seq.can_advance())
