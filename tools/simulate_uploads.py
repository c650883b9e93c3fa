#!/usr/bin/env python3
# tools/simulate_uploads.py
"""
Runs the upload tracker on a virtual clock and prints a status timeline.

  python -m tools.simulate_uploads policy_manual.pdf board_minutes.docx:2048 \
      --remove board_minutes.docx@1.0 --step 0.5
"""
import argparse
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from apps.common.logging_config import configure_logging
from apps.common.settings import REPO_ROOT
from services.audit.catalog import load_catalog
from services.ingestion.uploads import ProgressTiming, UploadRejected, UploadTracker
from services.workflow.timers import VirtualScheduler


# --- Config dataclass ---
@dataclass(frozen=True)
class SimConfig:
    files: Tuple[Tuple[str, int], ...]
    removals: Tuple[Tuple[str, float], ...]
    step_s: float
    until_s: float
    classifier: str
    seed: Optional[int]
    catalog_path: Path


# --- Helpers ---
def _parse_file(arg: str, default_kb: int) -> Tuple[str, int]:
    """name[:size_kb]"""
    name, sep, size = arg.rpartition(":")
    if not sep or not size.isdigit():
        return arg, default_kb * 1024
    return name, int(size) * 1024


def _parse_removal(arg: str) -> Tuple[str, float]:
    """name@seconds"""
    name, sep, at = arg.rpartition("@")
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"expected NAME@SECONDS, got {arg!r}")
    try:
        return name, float(at)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"bad time in {arg!r}") from e


def _snapshot(t: float, tracker: UploadTracker) -> List[str]:
    lines = []
    for f in tracker.files():
        line = f"t={t:6.2f}s  {f.name:<32} {f.status.value:<10} {f.progress:>3}%"
        if f.classification:
            line += f"  -> {f.classification} ({f.confidence:.0f}%, {f.classification_source})"
            if f.needs_review:
                line += "  [needs review]"
        lines.append(line)
    return lines


def simulate(cfg: SimConfig, timing: Optional[ProgressTiming] = None) -> List[str]:
    catalog = load_catalog(cfg.catalog_path)
    clock = VirtualScheduler()
    tracker = UploadTracker(
        scheduler=clock,
        classifier=catalog.classifier(cfg.classifier, cfg.seed),
        policy=catalog.upload_policy(),
        timing=timing,
    )

    out: List[str] = []
    ids: Dict[str, str] = {}
    for name, size in cfg.files:
        try:
            ids[name] = tracker.add(name, size).id
        except UploadRejected as e:
            out.append(f"t={clock.now:6.2f}s  rejected: {e}")

    removals = sorted(cfg.removals, key=lambda r: r[1])
    t = 0.0
    while t <= cfg.until_s:
        # removals due before the next sample happen at their own time
        while removals and removals[0][1] <= t:
            name, at = removals.pop(0)
            clock.advance(at - clock.now)
            removed = tracker.remove(ids.get(name, ""))
            out.append(f"t={at:6.2f}s  remove {name}: {'ok' if removed else 'not found'}")
        clock.advance(t - clock.now)
        out.extend(_snapshot(t, tracker))
        if not clock.pending() and not removals:
            break
        t = round(t + cfg.step_s, 6)

    summary = tracker.summary()
    out.append(f"processed {summary['processed']} of {summary['total']} files")
    tracker.close()
    return out


def main(argv: Optional[Sequence[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Simulate document uploads on a virtual clock.")
    ap.add_argument("files", nargs="+", help="NAME or NAME:SIZE_KB")
    ap.add_argument("--size-kb", type=int, default=512, help="Size for files given without one.")
    ap.add_argument("--remove", action="append", type=_parse_removal, default=[], help="NAME@SECONDS")
    ap.add_argument("--step", type=float, default=0.5, help="Timeline sampling interval (s).")
    ap.add_argument("--until", type=float, default=10.0, help="Stop after this much virtual time (s).")
    ap.add_argument("--classifier", choices=["keyword", "random"], default="keyword")
    ap.add_argument("--seed", type=int, default=None)
    ap.add_argument("--catalog", default=str(REPO_ROOT / "config" / "catalog.yaml"))
    ap.add_argument("--log-level", default="WARNING")
    args = ap.parse_args(argv)

    if args.step <= 0:
        ap.error("--step must be positive")

    configure_logging(args.log_level)
    cfg = SimConfig(
        files=tuple(_parse_file(f, args.size_kb) for f in args.files),
        removals=tuple(args.remove),
        step_s=args.step,
        until_s=args.until,
        classifier=args.classifier,
        seed=args.seed,
        catalog_path=Path(args.catalog),
    )
    for line in simulate(cfg):
        print(line)
    return 0


if __name__ == "__main__":
    sys.exit(main())
