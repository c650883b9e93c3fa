from __future__ import annotations

import copy

import pytest
import yaml

from apps.common.settings import REPO_ROOT
from services.audit.catalog import CatalogError, catalog_from_dict, load_catalog
from services.doc_classifier.classifier import KeywordClassifier, RandomClassifier
from services.review.ledger import ReviewStatus

CATALOG_PATH = REPO_ROOT / "config" / "catalog.yaml"


@pytest.fixture(scope="module")
def raw():
    return yaml.safe_load(CATALOG_PATH.read_text(encoding="utf-8"))


def test_shipped_catalog_loads():
    cat = load_catalog(CATALOG_PATH)
    assert [f.value for f in cat.frameworks] == ["ncqa", "sox", "hipaa", "iso", "custom"]
    assert len(cat.audit_areas) == 7
    assert [e.id for e in cat.evidence] == ["e1", "e2", "e3", "e4"]
    assert all(e.status is ReviewStatus.PENDING for e in cat.evidence)
    assert cat.confidence_threshold == 85
    assert cat.sample.id == "PRV-2024-0156"
    assert cat.report_template("executive").name == "Executive Summary"
    assert cat.report_template("nope") is None


def test_evidence_items_are_fresh_copies():
    cat = load_catalog(CATALOG_PATH)
    a = cat.evidence_items()
    a[0].status = ReviewStatus.APPROVED
    assert cat.evidence_items()[0].status is ReviewStatus.PENDING


def test_upload_policy_from_catalog():
    cat = load_catalog(CATALOG_PATH)
    policy = cat.upload_policy(enforce_size_limit=True)
    assert policy.max_file_mb == 50
    assert "pdf" in policy.allowed_extensions
    assert policy.enforce_size_limit is True


def test_classifier_kinds():
    cat = load_catalog(CATALOG_PATH)
    assert isinstance(cat.classifier("random", seed=1), RandomClassifier)
    kw = cat.classifier("keyword", seed=1)
    assert isinstance(kw, KeywordClassifier)
    assert kw.min_confidence == 85
    with pytest.raises(ValueError):
        cat.classifier("magic")


def test_missing_file(tmp_path):
    with pytest.raises(CatalogError):
        load_catalog(tmp_path / "missing.yaml")


def test_invalid_yaml(tmp_path):
    p = tmp_path / "bad.yaml"
    p.write_text("frameworks: [unclosed", encoding="utf-8")
    with pytest.raises(CatalogError):
        load_catalog(p)


def test_schema_rejects_out_of_range_confidence(raw):
    data = copy.deepcopy(raw)
    data["evidence"][0]["confidence"] = 120
    with pytest.raises(CatalogError) as e:
        catalog_from_dict(data)
    assert "evidence[0].confidence: " in str(e.value)


def test_schema_rejects_missing_section(raw):
    data = copy.deepcopy(raw)
    del data["frameworks"]
    with pytest.raises(CatalogError):
        catalog_from_dict(data)


def test_duplicate_evidence_ids(raw):
    data = copy.deepcopy(raw)
    data["evidence"][1]["id"] = data["evidence"][0]["id"]
    with pytest.raises(CatalogError):
        catalog_from_dict(data)


def test_catalog_error_is_a_value_error():
    assert issubclass(CatalogError, ValueError)


def test_extraction_rules_team_and_ai_settings():
    cat = load_catalog(CATALOG_PATH)
    assert [r.id for r in cat.extraction_rules] == ["dates", "licenses", "signatures", "percentages"]
    licenses = cat.extraction_rule("licenses")
    assert licenses.method.value == "regex"
    assert licenses.min_confidence == 85
    assert [r.id for r in cat.rules_for("credential")] == ["dates", "licenses", "signatures"]
    assert cat.extraction_rule("nope") is None
    assert [m.name for m in cat.team][0] == "Sarah Johnson"
    assert cat.auto_approve_high_confidence is False


def test_schema_rejects_unknown_extraction_method(raw):
    data = copy.deepcopy(raw)
    data["extraction_rules"][0]["method"] = "telepathy"
    with pytest.raises(CatalogError):
        catalog_from_dict(data)


def test_invalid_rule_pattern_is_a_catalog_error(raw):
    data = copy.deepcopy(raw)
    data["extraction_rules"][1]["pattern"] = "[A-Z"
    with pytest.raises(CatalogError) as e:
        catalog_from_dict(data)
    assert "licenses" in str(e.value)
