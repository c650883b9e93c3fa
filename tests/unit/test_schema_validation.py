from __future__ import annotations

import json

from services.validation import schema_validation
from services.validation.schema_validation import validate_with_schema

SCHEMA = {
    "type": "object",
    "required": ["rows"],
    "properties": {
        "rows": {
            "type": "array",
            "items": {"type": "object", "properties": {"score": {"type": "number", "maximum": 100}}},
        }
    },
}


def use_schema(monkeypatch, tmp_path):
    (tmp_path / "rows.schema.json").write_text(json.dumps(SCHEMA), encoding="utf-8")
    monkeypatch.setattr(schema_validation, "SCHEMA_DIR", tmp_path)


def test_valid_document(monkeypatch, tmp_path):
    use_schema(monkeypatch, tmp_path)
    assert validate_with_schema({"rows": [{"score": 5}]}, "rows") == (True, "Valid")


def test_error_location_reads_like_the_yaml(monkeypatch, tmp_path):
    use_schema(monkeypatch, tmp_path)
    ok, msg = validate_with_schema({"rows": [{"score": 5}, {"score": 500}]}, "rows")
    assert ok is False
    assert msg.startswith("rows[1].score: ")


def test_root_level_error_has_no_location(monkeypatch, tmp_path):
    use_schema(monkeypatch, tmp_path)
    ok, msg = validate_with_schema({}, "rows")
    assert ok is False
    assert msg == "'rows' is a required property"


def test_missing_schema_is_reported(monkeypatch, tmp_path):
    monkeypatch.setattr(schema_validation, "SCHEMA_DIR", tmp_path)
    ok, msg = validate_with_schema({}, "nope")
    assert ok is False
    assert "Schema not found" in msg
