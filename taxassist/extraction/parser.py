"""
Model-output cleanup and parsing.

Models are told to answer with bare JSON but often wrap it in a Markdown
code fence, sometimes tagged ``json``. Every model answer in the project
goes through ``extract_json_payload`` before it is trusted.
"""

import json
import logging
from typing import Any, Type, TypeVar

from pydantic import TypeAdapter, ValidationError

from taxassist.errors import MalformedResponse

logger = logging.getLogger(__name__)

T = TypeVar("T")

FENCE = "```"


def clean_model_output(text: str) -> str:
    """Strip a surrounding code fence and a leading ``json`` language tag."""
    cleaned = (text or "").strip()
    if cleaned.startswith(FENCE) and cleaned.endswith(FENCE) and len(cleaned) >= 2 * len(FENCE):
        first_newline = cleaned.find("\n")
        if first_newline == -1:
            cleaned = cleaned[len(FENCE):-len(FENCE)].strip()
        else:
            cleaned = cleaned[first_newline + 1:cleaned.rfind(FENCE)].strip()
        if cleaned[:4].lower() == "json":
            newline = cleaned.find("\n")
            cleaned = cleaned[newline + 1:] if newline != -1 else cleaned[4:]
            cleaned = cleaned.strip()
    return cleaned


def extract_json_payload(text: str) -> Any:
    """Clean ``text`` and parse it as JSON. Raises MalformedResponse."""
    cleaned = clean_model_output(text)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.warning(f"Model output is not valid JSON: {e}")
        raise MalformedResponse(raw=text) from e


def parse_model_output(text: str, schema: Type[T]) -> T:
    """Parse and validate model output into ``schema``.

    ``schema`` is anything pydantic can validate against, e.g. a model
    class or ``List[Model]``.
    """
    payload = extract_json_payload(text)
    try:
        return TypeAdapter(schema).validate_python(payload)
    except ValidationError as e:
        logger.warning(f"Model output failed validation: {e.error_count()} error(s)")
        raise MalformedResponse(raw=text) from e
