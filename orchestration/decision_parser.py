"""
Structured Decision Parser

The only place where free planner text is turned into a StepDecision.

DESIGN RULES:
- Never throws
- Any parse failure yields a final_response decision at confidence 0.5
"""

import json
import logging
import re
from typing import Any

from schemas.step import StepDecision, StepType

logger = logging.getLogger(__name__)

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")

PARSE_FAILURE_REASONING = "Failed to parse decision, providing final response"
DEFAULT_CONFIDENCE = 0.5


def _coerce_confidence(value: Any) -> float:
    if isinstance(value, bool):
        return DEFAULT_CONFIDENCE
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    # NaN, or an explicit zero, means the planner gave no usable confidence
    if confidence != confidence or confidence == 0:
        return DEFAULT_CONFIDENCE
    return confidence


def _optional_text(value: Any) -> Any:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_step_decision(response: Any) -> StepDecision:
    """
    Parse planner output into a StepDecision.

    Extracts the outermost {...} block (the whole text if none is found),
    decodes it as JSON and fills defaults for missing fields.

    Args:
        response: Raw planner text

    Returns:
        StepDecision, or the safe final_response fallback
    """
    try:
        text = response if isinstance(response, str) else str(response)
        match = _JSON_BLOCK.search(text)
        payload = json.loads(match.group(0) if match else text)

        if not isinstance(payload, dict):
            raise ValueError(f"Expected a JSON object, got {type(payload).__name__}")

        parameters = payload.get("parameters")
        if not isinstance(parameters, dict):
            parameters = {}

        return StepDecision(
            type=str(payload.get("type") or StepType.FINAL_RESPONSE.value).strip(),
            tool=_optional_text(payload.get("tool")),
            parameters=parameters,
            query=_optional_text(payload.get("query")),
            reasoning=str(payload.get("reasoning") or "No reasoning provided"),
            confidence=_coerce_confidence(payload.get("confidence")),
        )
    except Exception as e:
        logger.warning(f"Planner output could not be parsed: {e}")
        return StepDecision.fallback(PARSE_FAILURE_REASONING)
