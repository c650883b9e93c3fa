from pathlib import Path
import json
from typing import Tuple

import jsonschema
from jsonschema.exceptions import ValidationError, best_match

REPO_ROOT = Path(__file__).resolve().parents[2]
SCHEMA_DIR = REPO_ROOT / "config" / "schemas"


def _load_schema(name: str) -> dict:
    schema_path = SCHEMA_DIR / f"{name}.schema.json"
    if not schema_path.exists():
        raise FileNotFoundError(f"Schema not found: {schema_path}")
    return json.loads(schema_path.read_text(encoding="utf-8"))


def _format_error(e: ValidationError) -> str:
    """Renders the failing location the way it reads in the YAML, e.g. `evidence[2].confidence`."""
    where = ""
    for part in e.absolute_path:
        where += f"[{part}]" if isinstance(part, int) else (f".{part}" if where else str(part))
    return f"{where}: {e.message}" if where else e.message


def validate_with_schema(data: dict, name: str) -> Tuple[bool, str]:
    try:
        schema = _load_schema(name)
    except (OSError, ValueError) as e:
        return False, str(e)

    validator = jsonschema.Draft7Validator(schema)
    error = best_match(validator.iter_errors(data))
    if error is None:
        return True, "Valid"
    return False, _format_error(error)
