from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from kg_expander.core.errors import InputLoadError


def load_document(path: str, *, require_mapping: bool = True) -> Any:
    """Load a YAML/JSON document (request or raw generator payload).

    Does not coerce anything; request parsing and the sanitizer own shape
    checking.
    """

    p = Path(path)
    if not p.exists():
        raise InputLoadError(
            code="E_FILE_NOT_FOUND",
            message="file does not exist",
            file=str(p),
        )

    suffix = p.suffix.lower()
    try:
        raw_text = p.read_text(encoding="utf-8")
    except Exception as e:  # pragma: no cover
        raise InputLoadError(code="E_FILE_READ", message=str(e), file=str(p)) from e

    try:
        if suffix in {".yaml", ".yml"}:
            data = yaml.safe_load(raw_text)
        elif suffix == ".json":
            data = json.loads(raw_text)
        else:
            raise InputLoadError(
                code="E_UNSUPPORTED_FORMAT",
                message="supported formats are .yaml/.yml and .json",
                file=str(p),
            )
    except InputLoadError:
        raise
    except Exception as e:
        code = "E_YAML_PARSE" if suffix in {".yaml", ".yml"} else "E_JSON_PARSE"
        raise InputLoadError(code=code, message=str(e), file=str(p)) from e

    if require_mapping and not isinstance(data, dict):
        raise InputLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="top-level document must be a mapping/object",
            file=str(p),
        )
    return data
