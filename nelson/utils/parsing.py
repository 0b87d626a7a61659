"""
Decoding of structured data from model responses.

Model output is decoded into a tagged result instead of relying on
exception handlers at every call site:

- ``Parsed``: the response held a JSON object
- ``Unparsed``: the response was usable text but not a JSON object
- ``Unavailable``: every completion backend failed and the gateway
  returned its fallback sentinel
"""

import json
from dataclasses import dataclass
from typing import Any, Union

from nelson.llm.gateway import is_fallback


@dataclass(frozen=True)
class Parsed:
    value: dict[str, Any]


@dataclass(frozen=True)
class Unparsed:
    raw_text: str


@dataclass(frozen=True)
class Unavailable:
    raw_text: str


ParseResult = Union[Parsed, Unparsed, Unavailable]


def strip_code_fence(content: str) -> str:
    """
    Extract the body of a fenced code block if the content contains one.

    Args:
        content: Raw model output

    Returns:
        The fenced body, or the stripped content when there is no fence
    """
    content = content.strip()
    if "```json" in content:
        return content.split("```json")[1].split("```")[0].strip()
    if "```" in content:
        return content.split("```")[1].split("```")[0].strip()
    return content


def decode_json_object(text: str) -> ParseResult:
    """
    Decode a model response that is expected to be a JSON object.

    Args:
        text: Text returned by the completion gateway

    Returns:
        Parsed, Unparsed, or Unavailable
    """
    if is_fallback(text):
        return Unavailable(raw_text=text)

    try:
        value = json.loads(strip_code_fence(text))
    except (json.JSONDecodeError, TypeError):
        return Unparsed(raw_text=text)

    if not isinstance(value, dict):
        return Unparsed(raw_text=text)

    return Parsed(value=value)


def coerce_confidence(value: Any, default: float) -> float:
    """
    Normalize a model-reported confidence into [0, 1].

    Accepts fractions (0.8) and percentages (80). An explicit zero or a
    negative value clamps to 0.0. Anything non-numeric, NaN, or missing
    yields the default.
    """
    if isinstance(value, bool) or value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default

    if number != number:  # NaN
        return default
    if number <= 0:
        return 0.0
    if number > 1.0:
        number = number / 100 if number <= 100 else 1.0
    return min(number, 1.0)


def to_prompt_text(value: Any) -> str:
    """Render a value for inclusion in a prompt."""
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)
