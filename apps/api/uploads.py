from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Body, File, Query, UploadFile
from fastapi.responses import JSONResponse

from apps.api.schemas import ConfirmClassificationIn
from apps.api.sessions import DEFAULT_MAX_SESSIONS, SessionStore, http_errors
from services.doc_classifier.classifier import Classifier
from services.ingestion.uploads import ProgressTiming, UploadPolicy, UploadTracker
from services.workflow.timers import Scheduler


def _batch_view(batch_id: str, tracker: UploadTracker):
    return {
        "batch_id": batch_id,
        **tracker.summary(),
        "has_completed": tracker.has_completed,
        "accept": tracker.policy.accept_attribute,
        "files": [f.to_dict() for f in tracker.files()],
    }


def create_uploads_router(
    *,
    scheduler: Scheduler,
    classifier: Classifier,
    policy: Optional[UploadPolicy] = None,
    timing: Optional[ProgressTiming] = None,
    max_sessions: int = DEFAULT_MAX_SESSIONS,
) -> APIRouter:
    """
    Upload batches. Routes that schedule or cancel timers (opening a batch
    can evict another) are `async def` so an asyncio-backed scheduler is
    called from inside the running loop.
    """
    router = APIRouter()
    # an evicted batch must not keep firing timers
    batches: SessionStore[UploadTracker] = SessionStore(
        "batch", max_sessions=max_sessions, is_finished=lambda t: t.idle, on_evict=lambda t: t.close()
    )

    @router.post("/uploads")
    async def open_batch():
        tracker = UploadTracker(scheduler=scheduler, classifier=classifier, policy=policy, timing=timing)
        bid = batches.add(tracker)
        return JSONResponse(status_code=201, content=_batch_view(bid, tracker))

    @router.get("/uploads/{batch_id}")
    def batch_status(batch_id: str):
        return _batch_view(batch_id, batches.get(batch_id))

    @router.post("/uploads/{batch_id}/files")
    async def add_files(
        batch_id: str,
        folder: Optional[str] = Query(None),
        files: List[UploadFile] = File(...),
    ):
        tracker = batches.get(batch_id)
        # blobs are only measured, never stored
        entries = []
        for f in files:
            blob = await f.read()
            entries.append((f.filename or "", len(blob), f.content_type or ""))
        with http_errors():
            recs = tracker.add_many(entries, folder=folder)
        added = [r.id for r in recs]
        return JSONResponse(status_code=202, content={"added": added, **_batch_view(batch_id, tracker)})

    @router.get("/uploads/{batch_id}/files/{file_id}")
    def file_status(batch_id: str, file_id: str):
        tracker = batches.get(batch_id)
        rec = tracker.get(file_id)
        return {"found": rec is not None, "file": rec.to_dict() if rec else None}

    @router.delete("/uploads/{batch_id}/files/{file_id}")
    async def remove_file(batch_id: str, file_id: str):
        tracker = batches.get(batch_id)
        removed = tracker.remove(file_id)
        return {"updated": removed, **_batch_view(batch_id, tracker)}

    @router.post("/uploads/{batch_id}/files/{file_id}/confirm")
    def confirm_file(
        batch_id: str,
        file_id: str,
        body: Optional[ConfirmClassificationIn] = Body(default=None),
    ):
        tracker = batches.get(batch_id)
        updated = tracker.confirm(file_id, body.category if body else None)
        return {"updated": updated, **_batch_view(batch_id, tracker)}

    @router.delete("/uploads/{batch_id}")
    async def close_batch(batch_id: str):
        tracker = batches.pop(batch_id)
        tracker.close()
        return {"batch_id": batch_id, "dismissed": True}

    return router
