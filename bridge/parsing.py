from __future__ import annotations

import json
import re
from typing import Dict, Optional

from bridge.errors import ModelOutputError

_LEADING_FENCE_RE = re.compile(r"^```(?:json)?", re.IGNORECASE)
_TRAILING_FENCE_RE = re.compile(r"```$")
_OBJECT_SPAN_RE = re.compile(r"\{[\s\S]*\}")


def _load_object(text: str) -> Optional[Dict[str, object]]:
    try:
        value = json.loads(text)
    except (ValueError, RecursionError):
        return None
    return value if isinstance(value, dict) else None


def strip_code_fences(text: str) -> str:
    cleaned = _LEADING_FENCE_RE.sub("", text.strip(), count=1)
    cleaned = _TRAILING_FENCE_RE.sub("", cleaned.strip(), count=1)
    return cleaned.strip()


def extract_json_object(raw_text: str) -> Dict[str, object]:
    """Recover the JSON object a model was asked to return.

    Tried in order: the trimmed text as-is, the text with Markdown code
    fences removed, and the widest ``{...}`` span in the fence-free text.
    """
    trimmed = raw_text.strip()
    parsed = _load_object(trimmed)
    if parsed is not None:
        return parsed

    cleaned = strip_code_fences(trimmed)
    parsed = _load_object(cleaned)
    if parsed is not None:
        return parsed

    match = _OBJECT_SPAN_RE.search(cleaned)
    if match:
        parsed = _load_object(match.group(0))
        if parsed is not None:
            return parsed
    raise ModelOutputError("Model response is not valid JSON")
