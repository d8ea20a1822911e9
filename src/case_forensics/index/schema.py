"""SQLite schema creation and validation.

Creates the volume, page and comparison tables, the FTS5 index over
page text and the triggers that keep it in sync.

All statements use IF NOT EXISTS for idempotency, so running
create_schema() on every open is safe.
"""

import logging
import sqlite3

logger = logging.getLogger(__name__)

# Tables: (name, DDL)
TABLES: list[tuple[str, str]] = [
    (
        "legal_volumes",
        """
        CREATE TABLE IF NOT EXISTS legal_volumes (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            volume_number INTEGER NOT NULL,
            file_path TEXT NOT NULL UNIQUE,
            file_size INTEGER NOT NULL,
            total_pages INTEGER NOT NULL,
            document_type TEXT NOT NULL,
            metadata_json TEXT,
            indexing_status TEXT NOT NULL DEFAULT 'pending',
            indexing_progress INTEGER NOT NULL DEFAULT 0,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """,
    ),
    (
        "legal_pages",
        """
        CREATE TABLE IF NOT EXISTS legal_pages (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            volume_id INTEGER NOT NULL
                REFERENCES legal_volumes(id) ON DELETE CASCADE,
            volume_number INTEGER NOT NULL,
            page_number INTEGER NOT NULL,
            text TEXT NOT NULL,
            image_path TEXT,
            ocr_confidence REAL,
            author TEXT,
            document_type TEXT,
            metadata_json TEXT,
            UNIQUE(volume_number, page_number)
        )
        """,
    ),
    (
        "legal_pages_fts",
        """
        CREATE VIRTUAL TABLE IF NOT EXISTS legal_pages_fts USING fts5(
            text,
            author,
            document_type,
            content='legal_pages',
            content_rowid='id'
        )
        """,
    ),
    (
        "legal_comparisons",
        """
        CREATE TABLE IF NOT EXISTS legal_comparisons (
            id TEXT PRIMARY KEY ON CONFLICT REPLACE,
            document1_json TEXT NOT NULL,
            document2_json TEXT NOT NULL,
            text_similarity REAL NOT NULL,
            visual_similarity REAL,
            matched_fragments_json TEXT NOT NULL,
            is_suspicious INTEGER NOT NULL,
            suspicious_reason TEXT,
            human_review TEXT NOT NULL,
            created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
        )
        """,
    ),
]

# Triggers keeping the external-content FTS table in sync: (name, DDL)
TRIGGERS: list[tuple[str, str]] = [
    (
        "legal_pages_ai",
        """
        CREATE TRIGGER IF NOT EXISTS legal_pages_ai AFTER INSERT ON legal_pages BEGIN
            INSERT INTO legal_pages_fts(rowid, text, author, document_type)
            VALUES (new.id, new.text, new.author, new.document_type);
        END
        """,
    ),
    (
        "legal_pages_ad",
        """
        CREATE TRIGGER IF NOT EXISTS legal_pages_ad AFTER DELETE ON legal_pages BEGIN
            INSERT INTO legal_pages_fts(legal_pages_fts, rowid, text, author, document_type)
            VALUES ('delete', old.id, old.text, old.author, old.document_type);
        END
        """,
    ),
    (
        "legal_pages_au",
        """
        CREATE TRIGGER IF NOT EXISTS legal_pages_au AFTER UPDATE ON legal_pages BEGIN
            INSERT INTO legal_pages_fts(legal_pages_fts, rowid, text, author, document_type)
            VALUES ('delete', old.id, old.text, old.author, old.document_type);
            INSERT INTO legal_pages_fts(rowid, text, author, document_type)
            VALUES (new.id, new.text, new.author, new.document_type);
        END
        """,
    ),
]

# Plain indexes: (name, DDL)
INDEXES: list[tuple[str, str]] = [
    (
        "idx_legal_pages_volume",
        "CREATE INDEX IF NOT EXISTS idx_legal_pages_volume ON legal_pages(volume_number)",
    ),
    (
        "idx_legal_pages_volume_id",
        "CREATE INDEX IF NOT EXISTS idx_legal_pages_volume_id ON legal_pages(volume_id)",
    ),
    (
        "idx_legal_comparisons_suspicious",
        "CREATE INDEX IF NOT EXISTS idx_legal_comparisons_suspicious "
        "ON legal_comparisons(is_suspicious, text_similarity)",
    ),
]


def _existing_objects(conn: sqlite3.Connection) -> set[str]:
    rows = conn.execute("SELECT name FROM sqlite_master").fetchall()
    return {row[0] for row in rows}


def create_schema(conn: sqlite3.Connection) -> dict:
    """Create all tables, triggers and indexes.

    Args:
        conn: Open SQLite connection.

    Returns:
        Dictionary with counts of created/existing schema objects.
    """
    existing = _existing_objects(conn)
    stats = {"created": 0, "existing": 0}

    with conn:
        for name, ddl in TABLES + TRIGGERS + INDEXES:
            if name in existing:
                stats["existing"] += 1
                logger.debug(f"Schema object already exists: {name}")
                continue
            conn.execute(ddl)
            stats["created"] += 1
            logger.debug(f"Created schema object: {name}")

    logger.debug(
        f"Schema: {stats['created']} created, {stats['existing']} already existed"
    )
    return stats


def verify_schema(conn: sqlite3.Connection) -> dict:
    """List the schema objects present and any that are missing.

    Returns:
        Dictionary with table, trigger and index names, plus the names
        of expected objects that do not exist.
    """
    rows = conn.execute("SELECT name, type FROM sqlite_master").fetchall()
    by_type: dict[str, list[str]] = {"table": [], "trigger": [], "index": []}
    for name, obj_type in rows:
        if obj_type in by_type:
            by_type[obj_type].append(name)

    present = {name for name, _ in rows}
    expected = [name for name, _ in TABLES + TRIGGERS + INDEXES]

    result = {
        "tables": sorted(by_type["table"]),
        "triggers": sorted(by_type["trigger"]),
        "indexes": sorted(by_type["index"]),
        "missing": [name for name in expected if name not in present],
    }

    logger.info(
        f"Schema verified: {len(result['tables'])} tables, "
        f"{len(result['triggers'])} triggers, {len(result['indexes'])} indexes, "
        f"{len(result['missing'])} missing"
    )
    return result
