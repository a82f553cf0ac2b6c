from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError

from ..core.exceptions import ConfigError, SchemaError

SCHEMA_DIR = Path(__file__).parent / "schemas"


def load_json(path: Path) -> Mapping[str, Any]:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigError(f"Failed to read JSON {path}: {e}", config_path=path) from e


def load_schema(schema_path: Path) -> Mapping[str, Any]:
    try:
        return json.loads(schema_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise SchemaError(f"Failed to read schema {schema_path}: {e}", schema_path=schema_path) from e


def validate(data: Mapping[str, Any], schema: Mapping[str, Any], schema_name: str) -> None:
    try:
        Draft202012Validator(schema).validate(data)
    except ValidationError as e:
        where = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise SchemaError(
            f"{schema_name} validation failed at {where}: {e.message}",
            schema_name=schema_name,
            validation_error=e,
        ) from e
