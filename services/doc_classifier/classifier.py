from __future__ import annotations

import random
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Protocol, Sequence, Set


@dataclass(frozen=True)
class Classification:
    category: str
    confidence: float
    source: str = "random"  # "random" | "keyword" | "manual"
    details: Dict[str, Any] = field(default_factory=dict)
    needs_review: bool = False


@dataclass(frozen=True)
class ClassificationOutcome:
    category: str
    confidence: float


@dataclass(frozen=True)
class ClassificationTemplate:
    id: str
    name: str
    keywords: Sequence[str]
    confidence: float
    enabled: bool = True


class Classifier(Protocol):
    def classify(self, filename: str) -> Classification: ...


def filename_tokens(filename: str) -> Set[str]:
    stem = filename.rsplit(".", 1)[0] if "." in filename else filename
    return {t for t in re.split(r"[^a-z0-9]+", stem.lower()) if t}


class RandomClassifier:
    """Picks one of the configured outcomes uniformly; pass a seeded rng for repeatable runs."""

    def __init__(self, outcomes: Sequence[ClassificationOutcome], rng: Optional[random.Random] = None) -> None:
        if not outcomes:
            raise ValueError("RandomClassifier needs at least one outcome")
        self.outcomes = list(outcomes)
        self.rng = rng or random.Random()

    def classify(self, filename: str) -> Classification:
        pick = self.rng.choice(self.outcomes)
        return Classification(category=pick.category, confidence=float(pick.confidence), source="random")


class KeywordClassifier:
    """
    Template router:
    - Scores each enabled template by how many of its keywords appear in the filename
    - Templates under min_confidence never take part in the ranking
    - Ties go to the higher template confidence, then to catalog order
    - Falls back when no qualifying template matches; a fallback result
      under min_confidence comes back flagged needs_review
    """

    def __init__(
        self,
        templates: Sequence[ClassificationTemplate],
        fallback: Classifier,
        min_confidence: float = 85.0,
    ) -> None:
        self.templates = [t for t in templates if t.enabled]
        self.fallback = fallback
        self.min_confidence = float(min_confidence)

    def _score(self, tokens: Set[str], template: ClassificationTemplate) -> List[str]:
        hits = []
        for kw in template.keywords:
            kw_tokens = filename_tokens(kw)
            if kw_tokens and kw_tokens <= tokens:
                hits.append(kw)
        return hits

    def classify(self, filename: str) -> Classification:
        tokens = filename_tokens(filename)

        best = None  # (hit_count, confidence, -index, template, hits)
        for idx, t in enumerate(self.templates):
            if t.confidence < self.min_confidence:
                continue
            hits = self._score(tokens, t)
            if not hits:
                continue
            cand = (len(hits), float(t.confidence), -idx, t, hits)
            if best is None or cand[:3] > best[:3]:
                best = cand

        if best is None:
            result = self.fallback.classify(filename)
            if result.confidence < self.min_confidence:
                result = replace(result, needs_review=True)
            return result

        _, conf, _, template, hits = best
        return Classification(
            category=template.name,
            confidence=conf,
            source="keyword",
            details={"template_id": template.id, "matched_keywords": hits},
        )
