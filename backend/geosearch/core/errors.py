"""Error taxonomy shared by the backend services and the client session.

Every failure in GeoSearch is scoped to the user action that triggered it.
The classes here let callers tell apart the cases that are handled locally
(ValidationError), surfaced to the user (GatewayError and its
ContentBlockedError refinement) and silently dropped (StaleResponseError).

Example:
    Handle a gateway failure:
        >>> from geosearch.core.errors import GatewayError
        >>> try:
        ...     await gateway.fetch_tile_template("temperature")
        ... except GatewayError as e:
        ...     print(f"Layer request failed: {e}")
"""

from __future__ import annotations


class GeoSearchError(RuntimeError):
    """Base class for all GeoSearch errors."""


class ValidationError(GeoSearchError):
    """Required input is missing or invalid.

    Raised before any network I/O takes place. Never retried.
    """


class GatewayError(GeoSearchError):
    """A backend or third-party call failed.

    Raised for non-2xx responses and transport failures. The message is the
    human-readable detail reported by the remote side when available.

    Attributes:
        status_code: HTTP status of the failed response, None for transport
            failures.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ContentBlockedError(GatewayError):
    """The generative model refused to produce content.

    Attributes:
        block_reason: Reason reported by the model's safety filter, if any.
    """

    def __init__(
        self,
        message: str,
        block_reason: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code)
        self.block_reason = block_reason


class StaleResponseError(GeoSearchError):
    """A response arrived for a request that has since been superseded."""


class EarthEngineAuthError(GeoSearchError):
    """Earth Engine credentials are missing or could not be used."""
