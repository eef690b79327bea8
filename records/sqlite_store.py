"""
SQLite Record Store — local engagement record storage.

Stores fetched content counters with precomputed week/month/year columns
so period windows translate straight into indexed WHERE clauses.
"""

import json
import logging
import sqlite3
from datetime import datetime
from typing import List

import config
from records import (
    EngagementRecord, PeriodRange, RecordFilter, RecordStore, MONTH,
)

logger = logging.getLogger(__name__)


# ── Database Setup ──

DB_SCHEMA = """
CREATE TABLE IF NOT EXISTS engagement_records (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    content_id TEXT NOT NULL,
    platform TEXT NOT NULL,
    category TEXT,
    title TEXT,
    views INTEGER DEFAULT 0,
    likes INTEGER DEFAULT 0,
    comments INTEGER DEFAULT 0,
    shares INTEGER DEFAULT 0,
    hashtags TEXT,
    created_at TEXT NOT NULL,
    week_number INTEGER NOT NULL,
    month_number INTEGER NOT NULL,
    year INTEGER NOT NULL,
    week_year INTEGER,
    UNIQUE(content_id, platform)
);

CREATE TABLE IF NOT EXISTS api_credentials (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    service TEXT UNIQUE NOT NULL,
    api_key TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_records_platform_month
    ON engagement_records(platform, year, month_number);
CREATE INDEX IF NOT EXISTS idx_records_created
    ON engagement_records(created_at);
"""


def init_database(db_path=None):
    """Create the database and tables if they don't exist."""
    db_path = db_path or config.DB_PATH
    conn = sqlite3.connect(str(db_path))
    try:
        conn.executescript(DB_SCHEMA)
        conn.commit()
        add_week_year_column(conn)
    finally:
        conn.close()
    logger.info(f"Record database initialized at {db_path}")


def add_week_year_column(conn: sqlite3.Connection):
    """
    Add and backfill week_year (the ISO year owning week_number) on
    databases created before the column existed. Safe to call repeatedly.
    """
    try:
        conn.execute("ALTER TABLE engagement_records ADD COLUMN week_year INTEGER")
        conn.commit()
        logger.info("  Added week_year column to engagement_records")
    except sqlite3.OperationalError as e:
        if "duplicate column" not in str(e).lower():
            raise

    rows = conn.execute(
        "SELECT id, created_at FROM engagement_records WHERE week_year IS NULL"
    ).fetchall()
    if rows:
        updates = []
        for row_id, created_at in rows:
            iso_year, iso_week, _ = datetime.fromisoformat(created_at).isocalendar()
            updates.append((iso_year, iso_week, row_id))
        conn.executemany(
            "UPDATE engagement_records SET week_year = ?, week_number = ? WHERE id = ?",
            updates,
        )
        conn.commit()
        logger.info(f"  Backfilled week_year for {len(updates)} records")

    conn.execute("""
        CREATE INDEX IF NOT EXISTS idx_records_platform_week
            ON engagement_records(platform, week_year, week_number)
    """)
    conn.commit()


def store_records(records: List[EngagementRecord], db_path=None) -> int:
    """
    Store engagement records. Returns count of new rows inserted.
    Uses INSERT OR IGNORE to skip duplicates (same content_id + platform).
    """
    if not records:
        return 0

    db_path = db_path or config.DB_PATH
    conn = sqlite3.connect(str(db_path))
    conn.execute("PRAGMA busy_timeout=5000")

    rows = []
    for record in records:
        if record.created_at is None:
            logger.warning(f"Skipping record {record.content_id}: no created_at")
            continue
        rows.append((
            record.content_id, record.platform, record.category, record.title,
            record.views, record.likes, record.comments, record.shares,
            json.dumps(list(record.hashtags)),
            record.created_at.isoformat(),
            record.week_number, record.month_number, record.year, record.week_year,
        ))

    try:
        before = conn.total_changes
        conn.executemany("""
            INSERT OR IGNORE INTO engagement_records
            (content_id, platform, category, title, views, likes, comments,
             shares, hashtags, created_at, week_number, month_number, year,
             week_year)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, rows)
        conn.commit()
        inserted = conn.total_changes - before
    finally:
        conn.close()

    logger.info(f"Stored {inserted} new records ({len(rows) - inserted} duplicates skipped)")
    return inserted


def _window_clause(window: PeriodRange):
    """Translate one PeriodRange into SQL + params."""
    if window.unit == MONTH:
        year_column, column = "year", "month_number"
    else:
        year_column, column = "week_year", "week_number"
    clause = f"({year_column} = ? AND {column} >= ?"
    params = [window.year, window.start]
    if window.end is not None:
        clause += f" AND {column} <= ?"
        params.append(window.end)
    clause += ")"
    return clause, params


def _row_to_record(row: sqlite3.Row) -> EngagementRecord:
    try:
        hashtags = tuple(json.loads(row["hashtags"])) if row["hashtags"] else ()
    except (json.JSONDecodeError, TypeError):
        hashtags = ()

    return EngagementRecord(
        content_id=row["content_id"],
        platform=row["platform"],
        category=row["category"],
        title=row["title"],
        views=row["views"] or 0,
        likes=row["likes"] or 0,
        comments=row["comments"] or 0,
        shares=row["shares"] or 0,
        created_at=datetime.fromisoformat(row["created_at"]),
        hashtags=hashtags,
        week_number=row["week_number"],
        month_number=row["month_number"],
        year=row["year"],
        week_year=row["week_year"],
    )


class SQLiteRecordStore(RecordStore):
    """RecordStore backed by the engagement_records table."""

    def __init__(self, db_path=None):
        self.db_path = db_path or config.DB_PATH

    def fetch_records(self, record_filter: RecordFilter) -> List[EngagementRecord]:
        clauses = []
        params = []

        if record_filter.platform:
            clauses.append("platform = ?")
            params.append(record_filter.platform)

        if record_filter.category:
            clauses.append("category = ?")
            params.append(record_filter.category)

        if record_filter.min_year is not None:
            clauses.append("year >= ?")
            params.append(record_filter.min_year)

        if record_filter.windows:
            window_sql = []
            for window in record_filter.windows:
                sql, window_params = _window_clause(window)
                window_sql.append(sql)
                params.extend(window_params)
            clauses.append("(" + " OR ".join(window_sql) + ")")

        query = """
            SELECT content_id, platform, category, title, views, likes,
                   comments, shares, hashtags, created_at,
                   week_number, month_number, year, week_year
            FROM engagement_records
        """
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY created_at DESC" if record_filter.newest_first else " ORDER BY created_at ASC"
        if record_filter.limit:
            query += " LIMIT ?"
            params.append(record_filter.limit)

        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            rows = conn.execute(query, params).fetchall()
        finally:
            conn.close()

        return [_row_to_record(row) for row in rows]
