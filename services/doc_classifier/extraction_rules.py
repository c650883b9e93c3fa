from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Pattern, Sequence, Tuple


class FieldType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"
    EMAIL = "email"
    PHONE = "phone"
    CURRENCY = "currency"
    PERCENTAGE = "percentage"


class ExtractionMethod(str, Enum):
    REGEX = "regex"
    NLP = "nlp"
    OCR = "ocr"
    TABLE = "table"
    FORM = "form"
    SIGNATURE = "signature"


# used when a regex rule has no pattern of its own
DEFAULT_PATTERNS: Dict[FieldType, str] = {
    FieldType.NUMBER: r"\b\d+(?:\.\d+)?\b",
    FieldType.DATE: r"\b(?:\d{1,2}[/-]\d{1,2}[/-]\d{4}|\d{4}-\d{2}-\d{2})\b",
    FieldType.EMAIL: r"\b[\w.+-]+@[\w-]+(?:\.[\w-]+)+\b",
    FieldType.PHONE: r"\(?\b\d{3}\)?[-. ]\d{3}[-. ]\d{4}\b",
    FieldType.CURRENCY: r"\$\s?\d{1,3}(?:,\d{3})*(?:\.\d{2})?",
    FieldType.PERCENTAGE: r"\b\d+(?:\.\d+)?\s?%",
}

# methods that need the rendered page, not extracted text
_VISUAL_METHODS = frozenset({ExtractionMethod.OCR, ExtractionMethod.TABLE, ExtractionMethod.FORM})


@dataclass(frozen=True)
class ExtractionRule:
    id: str
    name: str
    field_type: FieldType
    method: ExtractionMethod
    document_types: Tuple[str, ...] = ()
    audit_area: Optional[str] = None
    pattern: str = ""
    keywords: Tuple[str, ...] = ()
    confidence: float = 90.0
    min_confidence: float = 85.0
    case_sensitive: bool = False
    enabled: bool = True
    description: str = ""

    @property
    def output_field(self) -> str:
        return re.sub(r"\s+", "_", self.name.strip().lower())

    @property
    def requires_review(self) -> bool:
        return self.confidence < self.min_confidence

    def applies_to(self, document_type: str) -> bool:
        """An empty document_types list means every document type."""
        return self.enabled and (not self.document_types or document_type in self.document_types)

    def compiled(self) -> Pattern[str]:
        if self.method in _VISUAL_METHODS:
            raise ValueError(f"{self.method.value} extraction cannot be evaluated on plain text")
        flags = 0 if self.case_sensitive else re.IGNORECASE
        if self.method is ExtractionMethod.REGEX:
            source = self.pattern or DEFAULT_PATTERNS.get(self.field_type, "")
            if not source:
                raise ValueError(f"rule {self.id!r} has no pattern for field type {self.field_type.value}")
            try:
                return re.compile(source, flags)
            except re.error as e:
                raise ValueError(f"rule {self.id!r} has an invalid pattern: {e}") from e
        # nlp and signature: a keyword and whatever follows it on the same line
        if not self.keywords:
            raise ValueError(f"rule {self.id!r} needs keywords for {self.method.value} extraction")
        alternatives = "|".join(re.escape(k) for k in self.keywords)
        return re.compile(rf"(?:{alternatives})[:#\s]*([^\n]*)", flags)

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "field_type": self.field_type.value,
            "method": self.method.value,
            "document_types": list(self.document_types),
            "audit_area": self.audit_area,
            "pattern": self.pattern,
            "keywords": list(self.keywords),
            "confidence": self.confidence,
            "min_confidence": self.min_confidence,
            "output_field": self.output_field,
            "enabled": self.enabled,
            "description": self.description,
        }


@dataclass(frozen=True)
class ExtractionSample:
    document: str
    extracted: str
    confidence: float

    def to_dict(self) -> Dict[str, object]:
        return {"document": self.document, "extracted": self.extracted, "confidence": self.confidence}


@dataclass(frozen=True)
class RuleTestResult:
    rule_id: str
    total_documents: int
    matched_documents: int
    extracted_fields: int
    confidence: float
    samples: Tuple[ExtractionSample, ...]
    needs_review: bool

    def to_dict(self) -> Dict[str, object]:
        return {
            "rule_id": self.rule_id,
            "total_documents": self.total_documents,
            "matched_documents": self.matched_documents,
            "extracted_fields": self.extracted_fields,
            "confidence": self.confidence,
            "samples": [s.to_dict() for s in self.samples],
            "needs_review": self.needs_review,
        }


def _values(rule: ExtractionRule, pattern: Pattern[str], text: str) -> List[str]:
    if rule.method is ExtractionMethod.SIGNATURE or rule.field_type is FieldType.BOOLEAN:
        return ["true"] if pattern.search(text) else []
    if pattern.groups:
        return [m.group(1).strip() for m in pattern.finditer(text) if m.group(1).strip()]
    return [m.group(0).strip() for m in pattern.finditer(text)]


def evaluate_rule(rule: ExtractionRule, documents: Sequence[Tuple[str, str]], max_samples: int = 3) -> RuleTestResult:
    """
    Dry-runs a rule over (document name, text) pairs.

    Boolean and signature rules yield one "true" per matching document.
    Visual methods (ocr, table, form) raise ValueError.
    """
    pattern = rule.compiled()
    matched = 0
    fields = 0
    samples: List[ExtractionSample] = []
    for name, text in documents:
        values = _values(rule, pattern, text or "")
        if not values:
            continue
        matched += 1
        fields += len(values)
        if len(samples) < max_samples:
            samples.append(ExtractionSample(document=name, extracted=values[0], confidence=rule.confidence))
    return RuleTestResult(
        rule_id=rule.id,
        total_documents=len(documents),
        matched_documents=matched,
        extracted_fields=fields,
        confidence=rule.confidence if matched else 0.0,
        samples=tuple(samples),
        needs_review=rule.requires_review or not matched,
    )
