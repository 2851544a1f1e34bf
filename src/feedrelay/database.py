"""SQLite destination store for Feed Relay."""

import json
import sqlite3

from feedrelay.models import Destination

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS destinations (
    id TEXT PRIMARY KEY,
    document TEXT NOT NULL,
    version INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


class StoreError(Exception):
    """Raised when a store operation fails."""


class StoreConnectionError(StoreError):
    """Raised when the store cannot be opened."""


class WriteConflictError(StoreError):
    """Raised when a destination changed since it was read.

    Retryable: a later run re-reads the current document and tries again.
    """


class Database:
    """SQLite database manager for destination documents.

    Each destination is stored as one JSON document keyed by its id, with a
    version counter bumped on every write for compare-and-swap updates.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> None:
        """Open database connection and initialize schema.

        Raises:
            StoreConnectionError: If the database cannot be opened or initialized.
        """
        try:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(SCHEMA_SQL)
            self._conn.commit()
        except sqlite3.Error as e:
            self.close()
            raise StoreConnectionError(
                f"Failed to open database at {self.db_path}: {e}"
            ) from e

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreConnectionError("Database not connected. Call connect() first.")
        return self._conn

    # --- Destination operations ---

    def has_destination(self, destination_id: str) -> bool:
        """Check whether a destination document exists."""
        row = self._fetchone(
            "SELECT 1 FROM destinations WHERE id = ?", (destination_id,)
        )
        return row is not None

    def get_destination(self, destination_id: str) -> Destination | None:
        """Look up a destination by its id."""
        row = self._fetchone(
            "SELECT document, version FROM destinations WHERE id = ?",
            (destination_id,),
        )
        return _row_to_destination(row) if row else None

    def get_all_destinations(self) -> list[Destination]:
        """Return every destination, oldest first."""
        try:
            rows = self.conn.execute(
                "SELECT document, version FROM destinations ORDER BY created_at, id"
            ).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to load destinations: {e}") from e
        return [_row_to_destination(r) for r in rows]

    def insert_destination(self, destination: Destination) -> bool:
        """Insert a destination unless one with the same id exists.

        Returns:
            True if the document was inserted, False if the id was taken.
        """
        try:
            cursor = self.conn.execute(
                """INSERT OR IGNORE INTO destinations
                   (id, document, version, created_at, updated_at)
                   VALUES (?, ?, 1, ?, ?)""",
                (
                    destination.id,
                    json.dumps(destination.to_document()),
                    destination.created_at.isoformat(),
                    destination.updated_at.isoformat(),
                ),
            )
            self.conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to insert destination {destination.id}: {e}") from e

        if cursor.rowcount > 0:
            destination.version = 1
            return True
        return False

    def replace_destination(self, destination: Destination) -> None:
        """Replace a stored destination document.

        The write only succeeds if the stored version still equals
        ``destination.version``; on success the version is bumped in place.

        Raises:
            WriteConflictError: If the document was changed or deleted since it was read.
            StoreError: On any other database failure.
        """
        try:
            cursor = self.conn.execute(
                """UPDATE destinations
                   SET document = ?, version = version + 1, updated_at = ?
                   WHERE id = ? AND version = ?""",
                (
                    json.dumps(destination.to_document()),
                    destination.updated_at.isoformat(),
                    destination.id,
                    destination.version,
                ),
            )
            self.conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to update destination {destination.id}: {e}") from e

        if cursor.rowcount == 0:
            raise WriteConflictError(
                f"Destination {destination.id} changed since version {destination.version}"
            )
        destination.version += 1

    def _fetchone(self, query: str, params: tuple) -> sqlite3.Row | None:
        try:
            return self.conn.execute(query, params).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Query failed: {e}") from e


# --- Helper functions ---


def _row_to_destination(row: sqlite3.Row) -> Destination:
    """Convert a database row to a Destination dataclass."""
    return Destination.from_document(json.loads(row["document"]), version=row["version"])

