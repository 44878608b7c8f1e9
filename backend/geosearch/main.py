"""FastAPI application entrypoint and configuration.

This module provides the main FastAPI application factory that sets up
logging and CORS middleware, includes the API routers for saved locations,
data layer tiles and AI analysis, and exposes a health check endpoint.

Example:
    The application can be run with uvicorn:
        $ uvicorn geosearch.main:app --reload

    Or imported and used programmatically:
        >>> from geosearch.main import app
        >>> # Use app in ASGI server
"""

import logging

import fastapi
from fastapi.middleware import cors

from geosearch.api import analysis, earthengine, locations
from geosearch.core import config


def create_app() -> fastapi.FastAPI:
    """Create and configure the FastAPI application.

    Configures the root log level, includes the API routers and adds a
    health check endpoint. CORS origins are configured from settings.

    Returns:
        Configured FastAPI application instance ready for ASGI server.
    """
    settings = config.get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    app = fastapi.FastAPI(title="GeoSearch", version="0.1.0")

    app.include_router(locations.router)
    app.include_router(earthengine.router)
    app.include_router(analysis.router)

    app.add_middleware(
        cors.CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health() -> dict[str, str]:  # type: ignore[misc]
        """Health check endpoint for monitoring and load balancers.

        Returns:
            Dictionary with status "ok" if the service is running.
        """
        return {"status": "ok"}

    return app


app = create_app()
