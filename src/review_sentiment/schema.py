"""Validation of outgoing log payloads against the bundled JSON schema."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

from jsonschema import Draft202012Validator, FormatChecker
from jsonschema.exceptions import ValidationError

LOG_RECORD_SCHEMA = Path(__file__).resolve().parent / "schemas" / "log_record.json"


@lru_cache(maxsize=1)
def log_record_validator() -> Draft202012Validator:
    """Build the validator once; the schema itself is checked on first use."""
    schema = json.loads(LOG_RECORD_SCHEMA.read_text(encoding="utf-8"))
    Draft202012Validator.check_schema(schema)
    return Draft202012Validator(schema, format_checker=FormatChecker())


def _describe(error: ValidationError) -> str:
    field = ".".join(str(part) for part in error.absolute_path) or "payload"
    return f"{field}: {error.message}"


def validate_log_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Return ``payload`` unchanged, or raise ValueError listing every problem."""
    errors = sorted(
        log_record_validator().iter_errors(payload),
        key=lambda err: [str(part) for part in err.absolute_path],
    )
    if errors:
        problems = "; ".join(_describe(err) for err in errors)
        raise ValueError(f"Log record validation failed: {problems}")
    return payload
