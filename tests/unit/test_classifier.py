from __future__ import annotations

import random

import pytest

from services.doc_classifier.classifier import (
    Classification,
    ClassificationOutcome,
    ClassificationTemplate,
    KeywordClassifier,
    RandomClassifier,
    filename_tokens,
)

OUTCOMES = [
    ClassificationOutcome("Credentialing", 94),
    ClassificationOutcome("HEDIS Data Validation", 87),
    ClassificationOutcome("Quality Management", 91),
    ClassificationOutcome("Provider Network", 89),
]

TEMPLATES = [
    ClassificationTemplate("policy", "Policy Documents", ("policy", "procedure"), 92),
    ClassificationTemplate("credential", "Credentialing Files", ("license", "credential"), 95),
    ClassificationTemplate("data", "Data Reports", ("report", "hedis"), 88),
    ClassificationTemplate("weak", "Weak Match", ("misc",), 60),
    ClassificationTemplate("off", "Disabled", ("policy",), 99, enabled=False),
]


class FixedFallback:
    def classify(self, filename: str) -> Classification:
        return Classification(category="Fallback", confidence=50.0, source="random")


def test_filename_tokens_split_on_punctuation_and_drop_extension():
    assert filename_tokens("Provider_License-2024.v2.PDF") == {"provider", "license", "2024", "v2"}


def test_random_classifier_only_returns_configured_outcomes():
    clf = RandomClassifier(OUTCOMES, rng=random.Random(7))
    pairs = {(o.category, o.confidence) for o in OUTCOMES}
    for i in range(50):
        c = clf.classify(f"f{i}.pdf")
        assert (c.category, c.confidence) in pairs
        assert c.source == "random"


def test_random_classifier_is_repeatable_with_a_seed():
    a = RandomClassifier(OUTCOMES, rng=random.Random(42))
    b = RandomClassifier(OUTCOMES, rng=random.Random(42))
    assert [a.classify("x").category for _ in range(10)] == [b.classify("x").category for _ in range(10)]


def test_random_classifier_needs_outcomes():
    with pytest.raises(ValueError):
        RandomClassifier([])


def test_keyword_match_routes_to_template():
    clf = KeywordClassifier(TEMPLATES, fallback=FixedFallback())
    c = clf.classify("provider_license_2024.pdf")
    assert c.category == "Credentialing Files"
    assert c.confidence == 95
    assert c.source == "keyword"
    assert c.details == {"template_id": "credential", "matched_keywords": ["license"]}


def test_more_keyword_hits_beat_higher_confidence():
    clf = KeywordClassifier(TEMPLATES, fallback=FixedFallback())
    c = clf.classify("hedis_report_license.xlsx")
    assert c.category == "Data Reports"


def test_tie_goes_to_higher_confidence():
    clf = KeywordClassifier(TEMPLATES, fallback=FixedFallback())
    assert clf.classify("policy_license.pdf").category == "Credentialing Files"


def test_no_match_uses_fallback():
    clf = KeywordClassifier(TEMPLATES, fallback=FixedFallback())
    assert clf.classify("scan_0001.jpg").category == "Fallback"


def test_only_sub_threshold_match_falls_back_flagged_for_review():
    clf = KeywordClassifier(TEMPLATES, fallback=FixedFallback(), min_confidence=85)
    c = clf.classify("misc_notes.docx")
    assert c.category == "Fallback"
    assert c.needs_review is True


def test_qualifying_match_wins_over_sub_threshold_template_with_more_hits():
    templates = [
        ClassificationTemplate("meeting", "Meeting Minutes", ("minutes", "committee"), 80),
        ClassificationTemplate("credential", "Credentialing", ("license",), 95),
    ]
    clf = KeywordClassifier(templates, fallback=FixedFallback(), min_confidence=85)
    c = clf.classify("committee_minutes_license.pdf")
    assert c.category == "Credentialing"
    assert c.source == "keyword"
    assert c.needs_review is False


def test_fallback_at_or_above_threshold_is_not_flagged():
    clf = KeywordClassifier(TEMPLATES, fallback=FixedFallback(), min_confidence=50)
    assert clf.classify("scan_0001.jpg").needs_review is False


def test_disabled_templates_are_ignored():
    clf = KeywordClassifier(TEMPLATES, fallback=FixedFallback())
    c = clf.classify("policy.pdf")
    assert c.details["template_id"] == "policy"
