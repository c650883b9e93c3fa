# apps/common/settings.py
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

REPO_ROOT = Path(__file__).resolve().parents[2]

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    return data or {}


def _env(key: str) -> Optional[str]:
    v = os.getenv(key)
    return v.strip() if isinstance(v, str) and v.strip() else None


def _as_path(v: str) -> Path:
    p = Path(v).expanduser()
    if not p.is_absolute():
        p = REPO_ROOT / p
    return p.resolve()


def _as_bool(v: Any, name: str) -> bool:
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in _TRUE:
        return True
    if s in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {v!r}")


@dataclass(frozen=True)
class UploadSettings:
    tick_s: float = 0.2
    progress_step: int = 10
    processing_delay_s: float = 0.5
    classification_delay_s: float = 2.0
    enforce_size_limit: bool = False


@dataclass(frozen=True)
class AppSettings:
    catalog_path: Path
    log_level: str
    log_json: bool
    upload: UploadSettings
    classifier: str
    random_seed: Optional[int]
    max_sessions: int = 256


def load_settings(config_path: Optional[str] = None) -> AppSettings:
    """
    Resolution order (highest -> lowest):
      1) Explicit function argument
      2) AUDIT_CONFIG_PATH env var
      3) config/app.yaml
    Individual fields can be overridden via env vars:
      - AUDIT_CATALOG_PATH
      - AUDIT_LOG_LEVEL
      - AUDIT_LOG_JSON
      - AUDIT_UPLOAD_TICK_S
      - AUDIT_ENFORCE_SIZE_LIMIT
      - AUDIT_CLASSIFIER (keyword | random)
      - AUDIT_RANDOM_SEED
      - AUDIT_MAX_SESSIONS
    """
    cfg_path = (
        Path(config_path)
        if config_path
        else Path(_env("AUDIT_CONFIG_PATH") or REPO_ROOT / "config" / "app.yaml")
    )
    cfg = _read_yaml(cfg_path)
    up = cfg.get("upload") or {}

    catalog_path = _env("AUDIT_CATALOG_PATH") or cfg.get("catalog_path")
    log_level = (_env("AUDIT_LOG_LEVEL") or cfg.get("log_level") or "INFO").upper()
    log_json = _env("AUDIT_LOG_JSON") or cfg.get("log_json", False)
    classifier = (_env("AUDIT_CLASSIFIER") or cfg.get("classifier") or "keyword").lower()
    seed = _env("AUDIT_RANDOM_SEED") or cfg.get("random_seed")
    max_sessions = int(_env("AUDIT_MAX_SESSIONS") or cfg.get("max_sessions", AppSettings.max_sessions))

    missing = []
    if not catalog_path:
        missing.append("catalog_path / AUDIT_CATALOG_PATH")
    if missing:
        raise ValueError(
            "Missing required configuration: " + ", ".join(missing) +
            f". Config file used: {cfg_path}"
        )
    if classifier not in ("keyword", "random"):
        raise ValueError(f"classifier must be 'keyword' or 'random', got {classifier!r}")
    if max_sessions < 1:
        raise ValueError(f"max_sessions must be at least 1, got {max_sessions}")

    upload = UploadSettings(
        tick_s=float(_env("AUDIT_UPLOAD_TICK_S") or up.get("tick_s", UploadSettings.tick_s)),
        progress_step=int(up.get("progress_step", UploadSettings.progress_step)),
        processing_delay_s=float(up.get("processing_delay_s", UploadSettings.processing_delay_s)),
        classification_delay_s=float(up.get("classification_delay_s", UploadSettings.classification_delay_s)),
        enforce_size_limit=_as_bool(
            _env("AUDIT_ENFORCE_SIZE_LIMIT") or up.get("enforce_size_limit", False), "enforce_size_limit"
        ),
    )

    return AppSettings(
        catalog_path=_as_path(str(catalog_path)),
        log_level=log_level,
        log_json=_as_bool(log_json, "log_json"),
        upload=upload,
        classifier=classifier,
        random_seed=int(seed) if seed is not None else None,
        max_sessions=max_sessions,
    )
