"""Parsing and schema validation of raw advisory answers."""

import json
import re
from typing import Any, Dict, List

from pydantic import ValidationError

from llm_synthesis.schema import AdvisoryReport

_FENCE = re.compile(r"^```[a-zA-Z]*\s*(.*?)\s*```$", re.DOTALL)

_REPORT_KEYS = frozenset(AdvisoryReport.model_fields) - {"ai_analyzed"}


class LLMOutputValidationError(Exception):
    """Raised when an answer cannot be turned into an AdvisoryReport.

    ``stage`` is ``"json_parse"`` or ``"schema"``; ``errors`` holds one
    readable line per problem and ``raw_response`` the rejected answer.
    """

    def __init__(self, stage: str, errors: List[str], raw_response: str) -> None:
        self.stage = stage
        self.errors = errors
        self.raw_response = raw_response
        super().__init__(f"LLM output validation failed at stage '{stage}': " + "; ".join(errors))


def parse_json_object(raw_response: str) -> Dict[str, Any]:
    """Extract the JSON object from an answer, tolerating code fences and prose around it."""
    text = (raw_response or "").strip()
    fenced = _FENCE.match(text)
    if fenced:
        text = fenced.group(1)
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        text = text[start : end + 1]

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise LLMOutputValidationError("json_parse", [str(exc)], raw_response) from exc
    if not isinstance(data, dict):
        raise LLMOutputValidationError("schema", ["top-level JSON must be an object"], raw_response)
    return data


def validate_llm_output(raw_response: str) -> AdvisoryReport:
    """Turn a raw answer into an ``AdvisoryReport`` marked as AI-analyzed.

    Unknown keys and explicit nulls are dropped before validation so the
    model cannot override ``ai_analyzed``.

    Raises:
        LLMOutputValidationError: If parsing or schema validation fails.
    """
    data = parse_json_object(raw_response)
    payload = {key: value for key, value in data.items() if key in _REPORT_KEYS and value is not None}
    payload["ai_analyzed"] = True

    try:
        return AdvisoryReport.model_validate(payload)
    except ValidationError as exc:
        errors = [f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()]
        raise LLMOutputValidationError("schema", errors, raw_response) from exc
