"""Helpers for pulling JSON out of free-form model output."""

from __future__ import annotations

import json
import re
from typing import Any

_FENCE_PATTERN = re.compile(r"^```[a-zA-Z0-9]*\s*|\s*```$")


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if any."""

    stripped = text.strip()
    if stripped.startswith("```"):
        return _FENCE_PATTERN.sub("", stripped).strip()
    return stripped


def extract_json_object(text: str) -> dict[str, Any]:
    """Parse the first JSON object in ``text``.

    Raises ValueError when no object can be decoded.
    """

    cleaned = strip_code_fences(text)
    try:
        decoded = json.loads(cleaned)
    except json.JSONDecodeError:
        start = cleaned.find("{")
        end = cleaned.rfind("}")
        if start == -1 or end <= start:
            raise ValueError("response contains no JSON object") from None
        try:
            decoded = json.loads(cleaned[start : end + 1])
        except json.JSONDecodeError as exc:
            raise ValueError(f"invalid JSON: {exc.msg}") from exc
    if not isinstance(decoded, dict):
        raise ValueError(f"expected a JSON object, got {type(decoded).__name__}")
    return decoded
