"""AI urban-planning analysis endpoint.

This module exposes the endpoint that turns an address and a list of
indicator names into a preliminary urban-planning narrative written by a
generative-language model. Responses always carry a ``success`` flag;
failures carry a ``message`` and, for content-safety refusals, a
``blockReason``.

Example:
    Request an analysis:
        >>> response = client.post(
        ...     "/api/analysis",
        ...     json={"address": "123 Main St", "indicators": ["Air Quality (NO2)"]},
        ... )
        >>> response.json()
        >>> # Returns: {"success": true, "analysis": "..."}
"""

from __future__ import annotations

import logging
from typing import Any

import fastapi
import pydantic
from fastapi import responses

from geosearch.core import config, errors
from geosearch.services import analysis

logger = logging.getLogger(__name__)

router = fastapi.APIRouter(prefix="/api/analysis", tags=["analysis"])

MISSING_PARAMS_MESSAGE = (
    'The "address" and "indicators" (as a list) parameters are required.'
)


class AnalysisRequest(pydantic.BaseModel):
    """Request body; shape is checked by the endpoint itself."""

    address: str | None = None
    indicators: Any = None


def _get_generator(
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
) -> analysis.AnalysisGeneratorProtocol | None:
    """Resolve the analysis generator dependency.

    Returns:
        GeminiAnalysisGenerator, or None when no API key is configured.
    """
    if settings.gemini_api_key is None:
        return None
    return analysis.GeminiAnalysisGenerator(settings)


def _failure(message: str, status_code: int, **extra: Any) -> responses.JSONResponse:
    return responses.JSONResponse(
        {"success": False, "message": message, **extra},
        status_code=status_code,
    )


@router.post("")
async def create_analysis(
    body: AnalysisRequest,
    generator: analysis.AnalysisGeneratorProtocol | None = fastapi.Depends(_get_generator),  # noqa: B008
) -> responses.JSONResponse:
    """Generate an urban-planning narrative for an address.

    Args:
        body: ``address`` (non-empty) and ``indicators`` (non-empty list of
            display names).
        generator: Analysis generator (injected via FastAPI Depends).

    Returns:
        200 ``{"success": true, "analysis": text}`` on success; 400 for
        missing parameters; 500 for configuration errors, blocked or empty
        generations and model failures.
    """
    if generator is None:
        logger.error("Gemini API key not found in environment variables.")
        return _failure("Server configuration error: API key is missing.", 500)

    indicators = body.indicators
    if (
        not body.address
        or not isinstance(indicators, list)
        or not indicators
    ):
        return _failure(MISSING_PARAMS_MESSAGE, 400)

    try:
        text = await generator.generate(body.address, [str(i) for i in indicators])
    except errors.ContentBlockedError as e:
        return _failure(str(e), 500, blockReason=e.block_reason)
    except errors.GatewayError as e:
        return _failure(str(e), 500)
    except Exception as e:  # reported to the caller as message
        logger.exception("Error calling the Gemini API")
        return _failure(f"Error calling the Gemini API: {e}", 500)

    return responses.JSONResponse({"success": True, "analysis": text})
