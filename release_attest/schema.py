"""JSON Schema validation for the attestations index.

Schemas ship inside the package under ``schemas/`` and cross-reference each
other by ``$id``; a ``referencing`` registry resolves those references.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, List

from jsonschema import Draft202012Validator
from referencing import Registry, Resource
from referencing.jsonschema import DRAFT202012

from release_attest.core import load_json

SCHEMAS_DIR = Path(__file__).resolve().parent / "schemas"
INDEX_SCHEMA = SCHEMAS_DIR / "attestations-index.schema.json"


@lru_cache(maxsize=1)
def _schema_registry() -> Registry:
    resources = []
    for schema_path in sorted(SCHEMAS_DIR.glob("*.schema.json")):
        schema = load_json(schema_path)
        schema_id = schema.get("$id") or schema_path.name
        resources.append(
            (schema_id, Resource.from_contents(schema, default_specification=DRAFT202012))
        )
    return Registry().with_resources(resources)


@lru_cache(maxsize=None)
def schema_validator(schema_path: Path = INDEX_SCHEMA) -> Draft202012Validator:
    """Create a validator for a packaged schema file."""
    return Draft202012Validator(load_json(schema_path), registry=_schema_registry())


def validate_against_schema(obj: Any, schema_path: Path = INDEX_SCHEMA) -> List[str]:
    """Return validation error messages, empty when ``obj`` is valid."""
    validator = schema_validator(schema_path)
    errors = sorted(validator.iter_errors(obj), key=lambda e: e.json_path)
    return [f"{error.json_path}: {error.message}" for error in errors]
