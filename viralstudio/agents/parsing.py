"""Helpers for reading structured JSON replies from Gemini."""

import json
import re

from viralstudio.errors import ErrorKind, GenerationError

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def load_json_array(text: str | None, what: str) -> list[dict]:
    """Parse a JSON array reply, tolerating a markdown code fence around it."""
    if not text or not text.strip():
        raise GenerationError(f"Empty {what} response", kind=ErrorKind.NO_RESULT)

    cleaned = _FENCE.sub("", text.strip())
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise GenerationError(
            f"Malformed {what} response: {e}", kind=ErrorKind.MALFORMED_RESPONSE
        ) from e

    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise GenerationError(
            f"Expected a JSON array of objects for {what}", kind=ErrorKind.MALFORMED_RESPONSE
        )
    return data
