# apps/api/app_factory.py
from __future__ import annotations

import logging
import time
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import RedirectResponse

from apps.api.audits import create_audits_router
from apps.api.sample_tests import create_sample_tests_router
from apps.api.sessions import DEFAULT_MAX_SESSIONS
from apps.api.uploads import create_uploads_router
from services.audit.catalog import AuditCatalog
from services.doc_classifier.classifier import Classifier
from services.ingestion.uploads import ProgressTiming
from services.workflow.timers import Scheduler

logger = logging.getLogger(__name__)


def create_app(
    *,
    catalog: AuditCatalog,
    scheduler: Scheduler,
    classifier: Classifier,
    timing: Optional[ProgressTiming] = None,
    enforce_size_limit: bool = False,
    max_sessions: int = DEFAULT_MAX_SESSIONS,
) -> FastAPI:
    app = FastAPI(title="Audit Workbench API")

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "%s %s -> %s",
            request.method,
            request.url.path,
            response.status_code,
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": round((time.perf_counter() - start) * 1000, 1),
            },
        )
        return response

    @app.get("/")
    async def root():
        return RedirectResponse(url="/docs")

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    app.include_router(
        create_audits_router(
            catalog=catalog, enforce_size_limit=enforce_size_limit, max_sessions=max_sessions
        )
    )
    app.include_router(create_sample_tests_router(catalog=catalog, max_sessions=max_sessions))
    app.include_router(
        create_uploads_router(
            scheduler=scheduler,
            classifier=classifier,
            policy=catalog.upload_policy(enforce_size_limit),
            timing=timing,
            max_sessions=max_sessions,
        )
    )
    return app
