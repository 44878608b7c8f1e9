"""Database helpers and repositories for saved locations."""

from __future__ import annotations

import datetime
from typing import TYPE_CHECKING, Protocol, cast

import psycopg2
import psycopg2.extensions
import psycopg2.extras

from geosearch.db import models as db_models

if TYPE_CHECKING:
    from collections.abc import Iterable

    from geosearch.core import config


class LocationRepositoryProtocol(Protocol):
    """Protocol interface for storing and retrieving saved locations.

    Implementations provide persistence for Location objects, supporting
    both in-memory (testing) and PostgreSQL (production) backends. Listing
    is always ordered by creation time, newest first.
    """

    def add(self, location: db_models.Location) -> db_models.Location: ...

    def get(self, location_id: str) -> db_models.Location | None: ...

    def all(self) -> Iterable[db_models.Location]: ...

    def delete(self, location_id: str) -> bool: ...


class InMemoryLocationRepository(LocationRepositoryProtocol):
    """Simple in-memory store for tests and local development.

    Data is lost when the process exits.
    """

    def __init__(self) -> None:
        """Initialize an empty in-memory repository."""
        self._store: dict[str, db_models.Location] = {}

    def add(self, location: db_models.Location) -> db_models.Location:
        """Store a location.

        Args:
            location: Location to store.

        Returns:
            The stored location.
        """
        self._store[location.id] = location
        return location

    def get(self, location_id: str) -> db_models.Location | None:
        return self._store.get(location_id)

    def all(self) -> Iterable[db_models.Location]:
        """Get all stored locations, newest first.

        Locations sharing a timestamp are returned most recently added first.
        """
        return sorted(
            reversed(list(self._store.values())),
            key=lambda location: location.created_at,
            reverse=True,
        )

    def delete(self, location_id: str) -> bool:
        """Remove a location.

        Returns:
            True if the location existed, False otherwise.
        """
        return self._store.pop(location_id, None) is not None


class PostgresLocationRepository(LocationRepositoryProtocol):
    """PostgreSQL-backed repository for saved locations.

    Each location is one row of the ``locations`` collection table, which is
    created automatically on initialization.
    """

    CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS locations (
      id TEXT PRIMARY KEY,
      name TEXT NOT NULL,
      address TEXT NOT NULL DEFAULT '',
      lat DOUBLE PRECISION NOT NULL,
      lng DOUBLE PRECISION NOT NULL,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    );
    CREATE INDEX IF NOT EXISTS locations_created_at_idx
      ON locations (created_at DESC);
    """

    def __init__(self, settings: config.Settings) -> None:
        """Initialize repository with database settings.

        Args:
            settings: Application settings containing database connection URL.
        """
        self.settings = settings
        self._ensure_schema()

    def _connection(self) -> psycopg2.extensions.connection:
        return psycopg2.connect(
            self.settings.database_url,
            cursor_factory=psycopg2.extras.RealDictCursor,
        )

    def _ensure_schema(self) -> None:
        with self._connection() as conn, conn.cursor() as cur:
            cur.execute(self.CREATE_TABLE_SQL)
            conn.commit()

    def add(self, location: db_models.Location) -> db_models.Location:
        with self._connection() as conn, conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO locations (id, name, address, lat, lng, created_at)
                VALUES (%(id)s, %(name)s, %(address)s, %(lat)s, %(lng)s,
                    %(created_at)s);
                """,
                self._to_row(location),
            )
            conn.commit()
        return location

    def get(self, location_id: str) -> db_models.Location | None:
        with self._connection() as conn, conn.cursor() as cur:
            cur.execute("SELECT * FROM locations WHERE id = %s", (location_id,))
            row = cur.fetchone()
            if row is None:
                return None
            else:
                return self._from_row(cast(dict[str, object], row))

    def all(self) -> Iterable[db_models.Location]:
        with self._connection() as conn, conn.cursor() as cur:
            cur.execute("SELECT * FROM locations ORDER BY created_at DESC")
            rows = cur.fetchall()
        return [self._from_row(cast(dict[str, object], row)) for row in rows]

    def delete(self, location_id: str) -> bool:
        with self._connection() as conn, conn.cursor() as cur:
            cur.execute("DELETE FROM locations WHERE id = %s", (location_id,))
            deleted = cur.rowcount > 0
            conn.commit()
        return deleted

    @staticmethod
    def _to_row(location: db_models.Location) -> dict[str, object]:
        """Convert Location to a parameter dictionary for insertion."""
        return {
            "id": location.id,
            "name": location.name,
            "address": location.address,
            "lat": location.lat,
            "lng": location.lng,
            "created_at": location.created_at,
        }

    @staticmethod
    def _from_row(row: dict[str, object]) -> db_models.Location:
        """Convert a database row dictionary to Location.

        Args:
            row: Dictionary from database query result.

        Returns:
            Location object with all fields populated.
        """
        created_at_value = row.get("created_at")
        if isinstance(created_at_value, datetime.datetime):
            created_at = created_at_value
        else:
            created_at = datetime.datetime.now(datetime.UTC)

        return db_models.Location(
            id=str(row["id"]),
            name=str(row["name"]),
            address=str(row.get("address") or ""),
            lat=float(cast(float, row["lat"])),
            lng=float(cast(float, row["lng"])),
            created_at=created_at,
        )


def get_location_repository(
    settings: config.Settings,
) -> LocationRepositoryProtocol:
    """Factory function to create a location repository.

    Args:
        settings: Application settings for database connection.

    Returns:
        PostgresLocationRepository instance for production use.
    """
    return PostgresLocationRepository(settings)
