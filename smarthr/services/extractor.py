from __future__ import annotations

import json
import re
from typing import Any

_FENCE_RE = re.compile(r"```json|```")


class ExtractionError(RuntimeError):
    def __init__(self, message: str, *, reason: str = "malformed"):
        super().__init__(message)
        self.reason = reason


def strip_fences(text: str) -> str:
    return _FENCE_RE.sub("", text or "").strip()


def extract(raw_text: str) -> dict[str, Any]:
    """Parse the JSON object a model reply carries.

    Only syntax is checked here; field types and ranges are left to the
    caller.
    """
    cleaned = strip_fences(raw_text)
    if not cleaned:
        raise ExtractionError("Model reply contained no structured payload.")
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ExtractionError(f"Model reply is not valid JSON: {exc.msg}") from exc
    if not isinstance(parsed, dict):
        raise ExtractionError("Model reply is not a JSON object.")
    return parsed


def canonicalize(value: dict[str, Any]) -> str:
    return json.dumps(value, sort_keys=True, ensure_ascii=False, separators=(",", ":"))
