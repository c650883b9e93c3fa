from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple
from uuid import uuid4

from services.doc_classifier.classifier import Classification, Classifier
from services.workflow.timers import CancellationToken, Scheduler, TimerHandle

logger = logging.getLogger(__name__)

DEFAULT_ALLOWED_EXTENSIONS = frozenset(
    {"pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx", "jpg", "jpeg", "png"}
)
DEFAULT_MAX_FILE_MB = 50


class UploadRejected(ValueError):
    """File refused by the upload policy."""


class UploadStatus(str, Enum):
    UPLOADING = "uploading"
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"  # reserved, nothing sets it yet


def format_file_size(num_bytes: int) -> str:
    if num_bytes <= 0:
        return "0 Bytes"
    k = 1024
    sizes = ["Bytes", "KB", "MB", "GB"]
    i = 0
    while num_bytes >= k ** (i + 1) and i < len(sizes) - 1:
        i += 1
    value = round(num_bytes / k ** i, 2)
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {sizes[i]}"


def file_extension(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else ""


@dataclass(frozen=True)
class UploadPolicy:
    allowed_extensions: FrozenSet[str] = DEFAULT_ALLOWED_EXTENSIONS
    max_file_mb: int = DEFAULT_MAX_FILE_MB
    enforce_size_limit: bool = False

    @property
    def max_file_bytes(self) -> int:
        return self.max_file_mb * 1024 * 1024

    @property
    def accept_attribute(self) -> str:
        return ",".join(f".{e}" for e in sorted(self.allowed_extensions))

    def check(self, filename: str, size_bytes: int) -> bool:
        """
        Raises UploadRejected for a disallowed extension (or oversize file when enforced).
        Returns True when the file is over the advisory size limit.
        """
        ext = file_extension(filename)
        if ext not in self.allowed_extensions:
            raise UploadRejected(f"unsupported file type: {filename!r}")
        oversize = size_bytes > self.max_file_bytes
        if oversize and self.enforce_size_limit:
            raise UploadRejected(f"{filename!r} exceeds {self.max_file_mb}MB")
        if oversize:
            logger.warning("%s is over the %sMB advisory limit (%s)", filename, self.max_file_mb, format_file_size(size_bytes))
        return oversize


@dataclass(frozen=True)
class ProgressTiming:
    tick_s: float = 0.2
    progress_step: int = 10
    processing_delay_s: float = 0.5
    classification_delay_s: float = 2.0


@dataclass
class UploadedFile:
    id: str
    name: str
    size_bytes: int
    content_type: str
    folder: Optional[str] = None
    status: UploadStatus = UploadStatus.UPLOADING
    progress: int = 0
    classification: Optional[str] = None
    confidence: Optional[float] = None
    classification_source: Optional[str] = None
    confirmed: bool = False
    needs_review: bool = False
    oversize: bool = False

    @property
    def size_label(self) -> str:
        return format_file_size(self.size_bytes)

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "size": self.size_label,
            "size_bytes": self.size_bytes,
            "type": self.content_type,
            "folder": self.folder,
            "status": self.status.value,
            "progress": self.progress,
            "classification": self.classification,
            "confidence": self.confidence,
            "classification_source": self.classification_source,
            "confirmed": self.confirmed,
            "needs_review": self.needs_review,
            "oversize": self.oversize,
        }


@dataclass
class _Chain:
    token: CancellationToken = field(default_factory=CancellationToken)
    handle: Optional[TimerHandle] = None


class UploadTracker:
    """
    Simulated upload + AI classification for a batch of files.

    Each file runs its own chain of scheduled steps:
      uploading (progress ticks) -> processing -> complete (classified)
    remove() invalidates the chain's token and drops the record; every step
    re-checks both before touching state.
    """

    def __init__(
        self,
        *,
        scheduler: Scheduler,
        classifier: Classifier,
        policy: Optional[UploadPolicy] = None,
        timing: Optional[ProgressTiming] = None,
    ) -> None:
        self.scheduler = scheduler
        self.classifier = classifier
        self.policy = policy or UploadPolicy()
        self.timing = timing or ProgressTiming()
        self._files: Dict[str, UploadedFile] = {}
        self._chains: Dict[str, _Chain] = {}

    # --- queries ---
    def files(self) -> List[UploadedFile]:
        return list(self._files.values())

    def get(self, file_id: str) -> Optional[UploadedFile]:
        return self._files.get(file_id)

    @property
    def processed_count(self) -> int:
        return sum(1 for f in self._files.values() if f.status is UploadStatus.COMPLETE)

    @property
    def has_completed(self) -> bool:
        return self.processed_count > 0

    @property
    def idle(self) -> bool:
        """No file has a pending timer chain."""
        return not self._chains

    def summary(self) -> Dict[str, int]:
        return {"processed": self.processed_count, "total": len(self._files)}

    # --- commands ---
    def add(self, name: str, size_bytes: int, content_type: str = "", folder: Optional[str] = None) -> UploadedFile:
        oversize = self.policy.check(name, size_bytes)
        rec = UploadedFile(
            id=uuid4().hex,
            name=name,
            size_bytes=int(size_bytes),
            content_type=content_type or "",
            folder=folder or None,
            oversize=oversize,
        )
        self._files[rec.id] = rec
        chain = _Chain()
        self._chains[rec.id] = chain
        logger.info("upload started id=%s name=%s size=%s", rec.id, rec.name, rec.size_label)
        chain.handle = self.scheduler.call_later(self.timing.tick_s, lambda: self._tick(rec.id, chain.token))
        return rec

    def add_many(self, entries: Sequence[Tuple[str, int, str]], folder: Optional[str] = None) -> List[UploadedFile]:
        """All-or-nothing: every (name, size, content_type) passes the policy before any chain starts."""
        for name, size_bytes, _ in entries:
            self.policy.check(name, size_bytes)
        return [self.add(name, size_bytes, content_type, folder=folder) for name, size_bytes, content_type in entries]

    def remove(self, file_id: str) -> bool:
        chain = self._chains.pop(file_id, None)
        if chain is not None:
            chain.token.cancel()
            if chain.handle is not None:
                chain.handle.cancel()
        removed = self._files.pop(file_id, None) is not None
        if removed:
            logger.info("upload removed id=%s", file_id)
        return removed

    def confirm(self, file_id: str, category: Optional[str] = None) -> bool:
        rec = self._files.get(file_id)
        if rec is None or rec.status is not UploadStatus.COMPLETE:
            return False
        if category and category != rec.classification:
            rec.classification = category
            rec.classification_source = "manual"
        rec.confirmed = True
        return True

    def close(self) -> None:
        """Cancels every in-flight chain; records are kept."""
        for chain in self._chains.values():
            chain.token.cancel()
            if chain.handle is not None:
                chain.handle.cancel()
        self._chains.clear()

    # --- scheduled steps ---
    def _live(self, file_id: str, token: CancellationToken) -> Optional[UploadedFile]:
        if token.cancelled:
            return None
        return self._files.get(file_id)

    def _schedule(self, file_id: str, token: CancellationToken, delay_s: float, step) -> None:
        chain = self._chains.get(file_id)
        if chain is None or chain.token is not token:
            return
        chain.handle = self.scheduler.call_later(delay_s, lambda: step(file_id, token))

    def _tick(self, file_id: str, token: CancellationToken) -> None:
        rec = self._live(file_id, token)
        if rec is None or rec.status is not UploadStatus.UPLOADING:
            return
        rec.progress = min(rec.progress + self.timing.progress_step, 100)
        if rec.progress >= 100:
            rec.status = UploadStatus.PROCESSING
            self._schedule(file_id, token, self.timing.processing_delay_s, self._start_processing)
            return
        self._schedule(file_id, token, self.timing.tick_s, self._tick)

    def _start_processing(self, file_id: str, token: CancellationToken) -> None:
        if self._live(file_id, token) is None:
            return
        self._schedule(file_id, token, self.timing.classification_delay_s, self._finish)

    def _finish(self, file_id: str, token: CancellationToken) -> None:
        rec = self._live(file_id, token)
        if rec is None:
            return
        result: Classification = self.classifier.classify(rec.name)
        rec.status = UploadStatus.COMPLETE
        rec.progress = 100
        rec.classification = result.category
        rec.confidence = result.confidence
        rec.classification_source = result.source
        rec.needs_review = result.needs_review
        self._chains.pop(file_id, None)
        logger.info(
            "upload classified id=%s category=%s confidence=%s", file_id, result.category, result.confidence
        )
