"""Database interface and repository abstractions.

This package holds the saved-location model and the repositories that
persist it. Backends are chosen through get_location_repository so that
FastAPI dependencies can be overridden with the in-memory repository in
tests.

Example:
    Use in a service or FastAPI dependency:
        >>> from geosearch.db import database
        >>> repo = database.get_location_repository(settings)
"""
