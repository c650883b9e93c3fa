# apps/api/main.py
from apps.api.app_factory import create_app
from apps.common.logging_config import configure_logging
from apps.common.settings import load_settings
from services.audit.catalog import load_catalog
from services.ingestion.uploads import ProgressTiming
from services.workflow.timers import AsyncioScheduler

settings = load_settings()
configure_logging(settings.log_level, settings.log_json)

catalog = load_catalog(settings.catalog_path)

app = create_app(
    catalog=catalog,
    scheduler=AsyncioScheduler(),
    classifier=catalog.classifier(settings.classifier, settings.random_seed),
    timing=ProgressTiming(
        tick_s=settings.upload.tick_s,
        progress_step=settings.upload.progress_step,
        processing_delay_s=settings.upload.processing_delay_s,
        classification_delay_s=settings.upload.classification_delay_s,
    ),
    enforce_size_limit=settings.upload.enforce_size_limit,
    max_sessions=settings.max_sessions,
)
