"""
WorshipFlow Song Manager - Document Store

A small schemaless document store on top of SQLite.  Records are grouped
into named collections (``songs``, ``tags``) and addressed by an opaque id
assigned on insert.  Each record body is kept as a JSON object, so the
service layer works with plain dicts and never sees SQL.

Uses aiosqlite so every primitive can be awaited from FastAPI routes.  A
connection is opened per operation; there is no cross-request state apart
from the store object itself.
"""

import json
import re
import sqlite3
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import aiosqlite
from loguru import logger

from worshipflow.errors import ConfigurationError

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------
SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS documents (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    collection TEXT NOT NULL,
    id TEXT NOT NULL,
    data TEXT NOT NULL DEFAULT '{}',
    UNIQUE (collection, id)
);

CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents(collection);
"""

# Only plain top-level field names may be used for ordering
_FIELD_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class _ServerTimestamp:
    """Placeholder replaced with the store's clock when a document is written."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


def _resolve_timestamps(fields: Dict[str, Any]) -> Dict[str, Any]:
    now = utc_now()
    return {k: (now if v is SERVER_TIMESTAMP else v) for k, v in fields.items()}


def new_document_id() -> str:
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class StoreConfig:
    """Where the document store lives.  An empty path means "not configured"."""

    db_path: str = ""

    @property
    def is_configured(self) -> bool:
        return bool(self.db_path)


def build_store(config: StoreConfig) -> Optional["DocumentStore"]:
    """Create the store described by *config*, or None when unconfigured."""
    if not config.is_configured:
        logger.warning(
            "⚠️ DB_PATH is empty; songs and tags are unavailable until it is set"
        )
        return None
    return DocumentStore(config.db_path)


def require_store(store: Optional["DocumentStore"]) -> "DocumentStore":
    """Return *store* or raise ConfigurationError when it was never configured."""
    if store is None:
        raise ConfigurationError("Document store not configured")
    return store


# ---------------------------------------------------------------------------
# Helper: convert a documents row to a plain dict
# ---------------------------------------------------------------------------
def row_to_document(row) -> Dict[str, Any]:
    """Decode a ``documents`` row into ``{"id": ..., **body}``."""
    if row is None:
        return {}
    try:
        body = json.loads(row["data"])
    except (json.JSONDecodeError, TypeError):
        logger.warning("⚠️ Unreadable document body for id={}", row["id"])
        body = {}
    if not isinstance(body, dict):
        body = {}
    return {"id": row["id"], **body}


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------
class DocumentStore:
    """Collection-level read/write primitives over a single SQLite file."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)

    def __repr__(self) -> str:
        return f"DocumentStore({str(self.db_path)!r})"

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------
    def init(self) -> None:
        """Create the database file and schema if they do not exist yet."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with sqlite3.connect(str(self.db_path)) as conn:
                conn.executescript(SCHEMA_SQL)
                conn.commit()
            logger.success(f"✅ Document store initialized at {self.db_path}")
        except Exception as e:
            logger.critical(f"❌ Failed to initialize document store: {e}")
            raise

    @asynccontextmanager
    async def connection(self):
        """Async context manager for an aiosqlite connection with row factory."""
        db = await aiosqlite.connect(str(self.db_path))
        db.row_factory = aiosqlite.Row
        try:
            yield db
        finally:
            await db.close()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def list_documents(
        self,
        collection: str,
        order_by: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Return every document in *collection*.

        Without *order_by* documents come back in insertion order.  With it,
        they are sorted ascending by that top-level field (binary string
        comparison, insertion order for ties) and documents that lack the
        field are left out.
        """
        async with self.connection() as db:
            if order_by:
                if not _FIELD_NAME_RE.match(order_by):
                    raise ValueError(f"Invalid order_by field: {order_by!r}")
                path = f"$.{order_by}"
                cursor = await db.execute(
                    """
                    SELECT id, data FROM documents
                    WHERE collection = ? AND json_extract(data, ?) IS NOT NULL
                    ORDER BY json_extract(data, ?) ASC, seq ASC
                    """,
                    (collection, path, path),
                )
            else:
                cursor = await db.execute(
                    "SELECT id, data FROM documents WHERE collection = ? ORDER BY seq",
                    (collection,),
                )
            rows = await cursor.fetchall()
            return [row_to_document(r) for r in rows]

    async def get_document(
        self, collection: str, doc_id: str
    ) -> Optional[Dict[str, Any]]:
        """Fetch a single document, or None if it does not exist."""
        async with self.connection() as db:
            cursor = await db.execute(
                "SELECT id, data FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            )
            row = await cursor.fetchone()
            return row_to_document(row) if row else None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def add_document(self, collection: str, data: Dict[str, Any]) -> str:
        """Insert a new document and return the id the store assigned to it."""
        doc_id = new_document_id()
        body = json.dumps(_resolve_timestamps(data))
        async with self.connection() as db:
            await db.execute(
                "INSERT INTO documents (collection, id, data) VALUES (?, ?, ?)",
                (collection, doc_id, body),
            )
            await db.commit()
        logger.debug("📝 {}/{} created", collection, doc_id)
        return doc_id

    async def update_document(
        self, collection: str, doc_id: str, fields: Dict[str, Any]
    ) -> bool:
        """
        Merge *fields* into an existing document.

        Fields not named in *fields* keep their stored values.  Returns
        False (and writes nothing) when the document does not exist.
        """
        async with self.connection() as db:
            cursor = await db.execute(
                "SELECT id, data FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            )
            row = await cursor.fetchone()
            if row is None:
                return False

            current = row_to_document(row)
            current.pop("id", None)
            current.update(_resolve_timestamps(fields))

            await db.execute(
                "UPDATE documents SET data = ? WHERE collection = ? AND id = ?",
                (json.dumps(current), collection, doc_id),
            )
            await db.commit()
        logger.debug("✏️ {}/{} updated: {}", collection, doc_id, list(fields.keys()))
        return True

    async def delete_document(self, collection: str, doc_id: str) -> bool:
        """Delete a document.  Returns True if a document was removed."""
        async with self.connection() as db:
            cursor = await db.execute(
                "DELETE FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            )
            await db.commit()
            return cursor.rowcount > 0

    async def delete_documents(self, collection: str, doc_ids: Iterable[str]) -> int:
        """Delete several documents at once.  Returns the number removed."""
        ids = list(dict.fromkeys(doc_ids))
        if not ids:
            return 0

        placeholders = ", ".join("?" for _ in ids)
        async with self.connection() as db:
            cursor = await db.execute(
                f"DELETE FROM documents WHERE collection = ? AND id IN ({placeholders})",
                [collection, *ids],
            )
            await db.commit()
            return cursor.rowcount
