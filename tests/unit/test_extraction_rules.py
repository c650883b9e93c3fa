from __future__ import annotations

import pytest

from services.doc_classifier.extraction_rules import (
    ExtractionMethod,
    ExtractionRule,
    FieldType,
    evaluate_rule,
)

DOCS = [
    ("Provider_License_2024.pdf", "License MD123456789 issued 01/15/2023"),
    ("Credentialing_File_Dr_Smith.docx", "Nurse license RN987654321, renewed 2024-02-01. Signed by J. Smith"),
    ("Meeting_Minutes.docx", "Committee met; no license numbers here"),
]


def rule(**kw):
    base = dict(id="r", name="License Numbers", field_type=FieldType.TEXT, method=ExtractionMethod.REGEX)
    base.update(kw)
    return ExtractionRule(**base)


def test_regex_rule_counts_matches_and_keeps_samples():
    r = rule(pattern=r"[A-Z]{2}\d{9}", case_sensitive=True, confidence=96)
    res = evaluate_rule(r, DOCS)
    assert (res.total_documents, res.matched_documents, res.extracted_fields) == (3, 2, 2)
    assert [s.extracted for s in res.samples] == ["MD123456789", "RN987654321"]
    assert res.confidence == 96
    assert res.needs_review is False


def test_default_pattern_for_field_type():
    res = evaluate_rule(rule(name="Dates", field_type=FieldType.DATE), DOCS)
    assert res.matched_documents == 2
    assert res.samples[0].extracted == "01/15/2023"
    assert res.samples[1].extracted == "2024-02-01"


def test_samples_are_capped():
    docs = [(f"d{i}.pdf", "score 90%") for i in range(5)]
    res = evaluate_rule(rule(field_type=FieldType.PERCENTAGE), docs, max_samples=2)
    assert res.matched_documents == 5
    assert len(res.samples) == 2


def test_signature_rule_is_presence_only():
    r = rule(name="Signature Detection", field_type=FieldType.BOOLEAN, method=ExtractionMethod.SIGNATURE,
             keywords=("signed by",))
    res = evaluate_rule(r, DOCS)
    assert res.matched_documents == 1
    assert res.samples[0].extracted == "true"


def test_nlp_rule_takes_text_after_keyword():
    r = rule(method=ExtractionMethod.NLP, keywords=("nurse license",))
    res = evaluate_rule(r, DOCS)
    assert res.samples[0].extracted.startswith("RN987654321")


def test_low_confidence_rule_and_no_matches_need_review():
    assert evaluate_rule(rule(pattern="XYZ", confidence=70), DOCS).needs_review is True
    res = evaluate_rule(rule(pattern="nothing-matches-this"), DOCS)
    assert res.matched_documents == 0
    assert res.confidence == 0
    assert res.needs_review is True


@pytest.mark.parametrize("method", [ExtractionMethod.OCR, ExtractionMethod.TABLE, ExtractionMethod.FORM])
def test_visual_methods_cannot_run_on_text(method):
    with pytest.raises(ValueError):
        evaluate_rule(rule(method=method), DOCS)


def test_bad_pattern_and_missing_keywords_are_value_errors():
    with pytest.raises(ValueError):
        rule(pattern="[unclosed").compiled()
    with pytest.raises(ValueError):
        rule(method=ExtractionMethod.NLP).compiled()
    with pytest.raises(ValueError):
        rule(field_type=FieldType.TEXT).compiled()


def test_applies_to_and_output_field():
    r = rule(document_types=("credential",))
    assert r.applies_to("credential") is True
    assert r.applies_to("policy") is False
    assert rule().applies_to("anything") is True
    assert rule(enabled=False).applies_to("credential") is False
    assert r.output_field == "license_numbers"
