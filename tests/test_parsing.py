"""Tests for model reply decoding."""

from nelson.llm.gateway import FALLBACK_RESPONSE
from nelson.utils.parsing import (
    Parsed,
    Unavailable,
    Unparsed,
    coerce_confidence,
    decode_json_object,
    strip_code_fence,
    to_prompt_text,
)


class TestDecodeJsonObject:
    """Tests for decode_json_object."""

    def test_plain_json_object(self):
        """Test that a bare JSON object is parsed."""
        result = decode_json_object('{"assessment": "viral", "confidence": 0.8}')
        assert result == Parsed(value={"assessment": "viral", "confidence": 0.8})

    def test_fenced_json_object(self):
        """Test that a fenced JSON block is parsed."""
        text = 'Here you go:\n```json\n{"guidance": "rest"}\n```\nHope this helps.'
        assert decode_json_object(text) == Parsed(value={"guidance": "rest"})

    def test_prose_is_unparsed_with_raw_text(self):
        """Test that prose keeps the exact raw text."""
        text = "  The child likely has a cold.\n"
        result = decode_json_object(text)
        assert isinstance(result, Unparsed)
        assert result.raw_text == text

    def test_json_array_is_unparsed(self):
        """Test that a JSON value that is not an object is not accepted."""
        assert isinstance(decode_json_object('["fever", "cough"]'), Unparsed)

    def test_fallback_sentinel_is_unavailable(self):
        """Test that the gateway sentinel is never parsed."""
        result = decode_json_object(FALLBACK_RESPONSE)
        assert isinstance(result, Unavailable)
        assert result.raw_text == FALLBACK_RESPONSE


class TestHelpers:
    """Tests for small parsing helpers."""

    def test_strip_code_fence_without_language(self):
        """Test that an unlabelled fence is stripped."""
        assert strip_code_fence("```\n{}\n```") == "{}"

    def test_coerce_confidence(self):
        """Test fraction, percentage, zero, and invalid confidences."""
        assert coerce_confidence(0.85, 0.7) == 0.85
        assert coerce_confidence(85, 0.7) == 0.85
        assert coerce_confidence("0.9", 0.7) == 0.9
        assert coerce_confidence(None, 0.7) == 0.7
        assert coerce_confidence("high", 0.7) == 0.7
        assert coerce_confidence(True, 0.7) == 0.7
        assert coerce_confidence(0, 0.6) == 0.0
        assert coerce_confidence(-0.2, 0.6) == 0.0
        assert coerce_confidence(float("nan"), 0.7) == 0.7
        assert coerce_confidence(250, 0.7) == 1.0

    def test_to_prompt_text(self):
        """Test that strings pass through and other values become JSON."""
        assert to_prompt_text("fever") == "fever"
        assert to_prompt_text(["fever", "cough"]) == '["fever", "cough"]'
