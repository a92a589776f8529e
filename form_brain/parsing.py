"""Locate the JSON object in free-form model output."""

import json
import logging
import re

logger = logging.getLogger(__name__)

# Widest span from the first "{" to the last "}"; covers code fences and prose
_OBJECT_SPAN = re.compile(r"\{.*\}", re.DOTALL)


class ParseError(ValueError):
    """No JSON object could be located in the model response."""


def parse_response(raw: str) -> dict:
    """Extract the JSON object from a model response.

    Handles: direct JSON, markdown fences, and prose before or after the
    object. Raises ParseError when nothing parses to a JSON object.
    """
    if not raw or not raw.strip():
        raise ParseError("Empty model response")

    try:
        result = json.loads(raw)
        if isinstance(result, dict):
            return result
    except json.JSONDecodeError:
        pass

    match = _OBJECT_SPAN.search(raw)
    if match:
        try:
            result = json.loads(match.group(0))
            if isinstance(result, dict):
                return result
        except json.JSONDecodeError:
            pass

    logger.warning("Could not parse JSON from model response: %s", raw[:200])
    raise ParseError("Could not parse JSON object from model response")
