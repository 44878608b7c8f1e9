"""Urban-planning narrative generation with Gemini.

This module builds the planning prompt for an address and a list of
indicators and asks a Gemini model for a plain-text preliminary plan.
Prompts blocked by the model's safety filter raise ContentBlockedError with
the reported reason; empty answers raise GatewayError.

Example:
    Generate an analysis:
        >>> generator = GeminiAnalysisGenerator(get_settings())
        >>> text = await generator.generate(
        ...     "123 Main St", ["Surface Temperature", "Air Quality (NO2)"]
        ... )
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

import google.generativeai as genai
from google.generativeai import types as genai_types

from geosearch.core import errors

if TYPE_CHECKING:
    from collections.abc import Sequence

    from geosearch.core import config

logger = logging.getLogger(__name__)

GENERATION_CONFIG: dict[str, Any] = {
    "temperature": 0.6,
    "top_k": 1,
    "top_p": 1,
    "max_output_tokens": 2400,
}

SAFETY_SETTINGS = {
    genai_types.HarmCategory.HARM_CATEGORY_HARASSMENT:
        genai_types.HarmBlockThreshold.BLOCK_ONLY_HIGH,
    genai_types.HarmCategory.HARM_CATEGORY_HATE_SPEECH:
        genai_types.HarmBlockThreshold.BLOCK_ONLY_HIGH,
    genai_types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT:
        genai_types.HarmBlockThreshold.BLOCK_ONLY_HIGH,
    genai_types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT:
        genai_types.HarmBlockThreshold.BLOCK_ONLY_HIGH,
}

EMPTY_RESPONSE_MESSAGE = (
    "The AI returned an empty response. This might be due to content "
    "safety filters."
)


def build_prompt(address: str, indicators: Sequence[str]) -> str:
    """Build the urban-planning prompt for an address and its indicators."""
    indicator_lines = "\n- ".join(indicators)
    return f"""
Act as an urban planner and geodata analyst.
Your task is to draft a preliminary urban design project plan for the following location: {address}.

The analysis should focus on the following selected key indicators:
- {indicator_lines}

The plan must be structured in clear and concise sections. Present it as continuous text, without using markdown like extra line breaks, lists, or tables, only paragraphs.
Start with an introductory paragraph about the area's potential.
Create short, medium and long term projects for each part of the plan.
Then, for each selected indicator, write a paragraph detailing the specific challenges and opportunities.
Conclude with a summary paragraph, outlining the recommendations and suggested next steps for a detailed study.

Be professional, technical, and creative in your suggestions.
""".strip()


def _block_reason(response: Any) -> str | None:
    feedback = getattr(response, "prompt_feedback", None)
    reason = getattr(feedback, "block_reason", None)
    name = getattr(reason, "name", None)
    if not reason or name == "BLOCK_REASON_UNSPECIFIED":
        return None
    return name or str(reason)


def _response_text(response: Any) -> str:
    # .text raises when the candidate carries no parts
    try:
        return response.text or ""
    except ValueError:
        return ""


def extract_analysis(response: Any) -> str:
    """Extract the narrative from a Gemini response.

    Raises:
        ContentBlockedError: If the prompt was blocked.
        GatewayError: If the model returned no text.
    """
    reason = _block_reason(response)
    if reason:
        logger.error("AI analysis blocked. Reason: %s", reason)
        raise errors.ContentBlockedError(
            f"The AI blocked content generation. Reason: {reason}.",
            block_reason=reason,
        )

    text = _response_text(response)
    if not text:
        logger.error("AI returned an empty response.")
        raise errors.GatewayError(EMPTY_RESPONSE_MESSAGE)

    return text


class AnalysisGeneratorProtocol(Protocol):
    """Generates a planning narrative for an address."""

    async def generate(self, address: str, indicators: Sequence[str]) -> str: ...


class GeminiAnalysisGenerator(AnalysisGeneratorProtocol):
    """Narratives produced by a Gemini model."""

    def __init__(self, settings: config.Settings) -> None:
        if settings.gemini_api_key is None:
            raise errors.ValidationError(
                "Server configuration error: API key is missing."
            )
        genai.configure(api_key=settings.gemini_api_key.get_secret_value())
        self._model = genai.GenerativeModel(settings.gemini_model)

    async def generate(self, address: str, indicators: Sequence[str]) -> str:
        response = await self._model.generate_content_async(
            build_prompt(address, indicators),
            generation_config=GENERATION_CONFIG,
            safety_settings=SAFETY_SETTINGS,
        )
        logger.debug("Gemini response: %s", response)
        return extract_analysis(response)
