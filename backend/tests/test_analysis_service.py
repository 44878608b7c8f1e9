"""Unit tests for the Gemini analysis service.

This module verifies prompt construction, response interpretation (blocked,
empty and successful responses) and that the generator sends the expected
generation and safety settings. The Gemini model is replaced by a fake.

See Also:
    - backend/geosearch/services/analysis.py for the implementation.
"""

from __future__ import annotations

import asyncio
import enum
import types
from typing import Any

import pytest

from geosearch.core import config, errors
from geosearch.services import analysis


class BlockReason(enum.IntEnum):
    BLOCK_REASON_UNSPECIFIED = 0
    SAFETY = 1


class FakeResponse:
    def __init__(self, text: str | None = None, block_reason: Any = None) -> None:
        self._text = text
        self.prompt_feedback = types.SimpleNamespace(block_reason=block_reason)

    @property
    def text(self) -> str:
        if self._text is None:
            raise ValueError("The response has no parts.")
        return self._text


def test_build_prompt_lists_indicators() -> None:
    """Test that the prompt names the address and each indicator."""
    prompt = analysis.build_prompt(
        "123 Main St", ["Surface Temperature", "Air Quality (NO2)"]
    )
    assert "123 Main St" in prompt
    assert "- Surface Temperature\n- Air Quality (NO2)" in prompt
    assert "urban planner" in prompt


def test_extract_analysis_text() -> None:
    response = FakeResponse("A plan.", block_reason=BlockReason.BLOCK_REASON_UNSPECIFIED)
    assert analysis.extract_analysis(response) == "A plan."


def test_extract_analysis_blocked() -> None:
    """Test that a block reason raises ContentBlockedError."""
    response = FakeResponse(None, block_reason=BlockReason.SAFETY)
    with pytest.raises(errors.ContentBlockedError) as exc_info:
        analysis.extract_analysis(response)
    assert exc_info.value.block_reason == "SAFETY"
    assert "Reason: SAFETY" in str(exc_info.value)


@pytest.mark.parametrize("text", [None, ""])
def test_extract_analysis_empty(text: str | None) -> None:
    """Test that missing text is reported as an empty response."""
    with pytest.raises(errors.GatewayError, match="empty response"):
        analysis.extract_analysis(FakeResponse(text))


def test_generator_requires_api_key() -> None:
    settings = config.Settings(gemini_api_key=None)
    with pytest.raises(errors.ValidationError, match="API key is missing"):
        analysis.GeminiAnalysisGenerator(settings)


def test_generator_sends_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test the model name, prompt and generation settings sent to Gemini."""
    captured: dict[str, Any] = {}

    class FakeModel:
        def __init__(self, model_name: str) -> None:
            captured["model"] = model_name

        async def generate_content_async(self, prompt: str, **kwargs: Any) -> FakeResponse:
            captured["prompt"] = prompt
            captured.update(kwargs)
            return FakeResponse("Narrative.")

    monkeypatch.setattr(
        analysis.genai, "configure", lambda api_key: captured.setdefault("key", api_key)
    )
    monkeypatch.setattr(analysis.genai, "GenerativeModel", FakeModel)

    generator = analysis.GeminiAnalysisGenerator(
        config.Settings(gemini_api_key="secret", gemini_model="gemini-test")
    )
    text = asyncio.run(generator.generate("123 Main St", ["Precipitation"]))

    assert text == "Narrative."
    assert captured["key"] == "secret"
    assert captured["model"] == "gemini-test"
    assert "123 Main St" in captured["prompt"]
    assert captured["generation_config"] == {
        "temperature": 0.6,
        "top_k": 1,
        "top_p": 1,
        "max_output_tokens": 2400,
    }
    assert len(captured["safety_settings"]) == 4
