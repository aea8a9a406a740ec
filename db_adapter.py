"""
Database adapter to support both SQLite (local dev) and PostgreSQL (production)
"""

import logging
import os
import sqlite3

logger = logging.getLogger(__name__)

# Check if we should use PostgreSQL (hosting providers expose DATABASE_URL)
DATABASE_URL = os.getenv("DATABASE_URL")
USE_POSTGRES = DATABASE_URL is not None and DATABASE_URL.strip() != ""

BASE_DIR = os.path.abspath(os.path.dirname(__file__))
SQLITE_PATH = os.getenv("SQLITE_PATH") or os.path.join(BASE_DIR, "league.db")

DB_ERRORS = (sqlite3.Error,)

if USE_POSTGRES:
    import psycopg2
    import psycopg2.extras

    DB_ERRORS = (sqlite3.Error, psycopg2.Error)

    # psycopg2 needs postgresql://, some providers hand out postgres://
    if DATABASE_URL.startswith("postgres://"):
        DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)


def dict_factory(cursor, row):
    """Convert row to dict for consistent access pattern"""
    return {k[0]: row[i] for i, k in enumerate(cursor.description)}


class LeagueDB:
    """Wrapper giving SQLite and PostgreSQL connections the same interface.

    Queries are written with %s placeholders; they are rewritten for SQLite.
    """

    def __init__(self, conn, postgres=False):
        self.conn = conn
        self.postgres = postgres

    def _prepare(self, query):
        if self.postgres:
            return query
        return query.replace("%s", "?")

    def execute(self, query, params=None):
        cursor = self.conn.cursor()
        if params:
            cursor.execute(self._prepare(query), params)
        else:
            cursor.execute(self._prepare(query))
        return cursor

    def insert(self, query, params=None):
        """Run an INSERT and return the id of the new row."""
        if self.postgres:
            cursor = self.execute(f"{query} RETURNING id", params)
            return cursor.fetchone()["id"]
        return self.execute(query, params).lastrowid

    def commit(self):
        self.conn.commit()

    def rollback(self):
        self.conn.rollback()

    def close(self):
        self.conn.close()


def get_db_connection():
    """Get a database connection (SQLite or PostgreSQL)"""
    if USE_POSTGRES:
        conn = psycopg2.connect(
            DATABASE_URL, cursor_factory=psycopg2.extras.RealDictCursor
        )
        return LeagueDB(conn, postgres=True)

    conn = sqlite3.connect(SQLITE_PATH)
    conn.row_factory = dict_factory
    conn.execute("PRAGMA foreign_keys = ON")
    return LeagueDB(conn)


def init_schema(db):
    """Initialize database schema (works for both SQLite and PostgreSQL)"""
    id_column = (
        "id SERIAL PRIMARY KEY"
        if db.postgres
        else "id INTEGER PRIMARY KEY AUTOINCREMENT"
    )

    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS players (
            {id_column},
            name TEXT NOT NULL,
            gamer_tag TEXT NOT NULL UNIQUE,
            location TEXT,
            console TEXT NOT NULL,
            preferred_club TEXT,
            assigned_team TEXT,
            role TEXT NOT NULL DEFAULT 'PLAYER',
            approved BOOLEAN NOT NULL DEFAULT FALSE,
            approved_at TIMESTAMP,
            available BOOLEAN NOT NULL DEFAULT TRUE,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """
    )

    db.execute(
        f"""
        CREATE TABLE IF NOT EXISTS fixtures (
            {id_column},
            matchday INTEGER NOT NULL,
            leg INTEGER NOT NULL DEFAULT 1,
            home_player_id INTEGER NOT NULL,
            away_player_id INTEGER NOT NULL,
            home_team TEXT,
            away_team TEXT,
            home_score INTEGER,
            away_score INTEGER,
            status TEXT NOT NULL DEFAULT 'SCHEDULED',
            forfeit INTEGER DEFAULT 0,
            scheduled_date TEXT,
            played_at TIMESTAMP,
            home_report_home_score INTEGER,
            home_report_away_score INTEGER,
            away_report_home_score INTEGER,
            away_report_away_score INTEGER,
            report_status TEXT NOT NULL DEFAULT 'NONE',
            home_confirmed INTEGER DEFAULT 0,
            away_confirmed INTEGER DEFAULT 0,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (home_player_id) REFERENCES players (id) ON DELETE CASCADE,
            FOREIGN KEY (away_player_id) REFERENCES players (id) ON DELETE CASCADE
        )
    """
    )

    db.execute(
        """
        CREATE TABLE IF NOT EXISTS settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
    """
    )

    # Create indexes
    db.execute("CREATE INDEX IF NOT EXISTS idx_fixtures_matchday ON fixtures(matchday)")
    db.execute("CREATE INDEX IF NOT EXISTS idx_fixtures_status ON fixtures(status)")
    db.execute(
        "CREATE INDEX IF NOT EXISTS idx_fixtures_report_status ON fixtures(report_status)"
    )
    db.execute(
        "CREATE INDEX IF NOT EXISTS idx_fixtures_players ON fixtures(home_player_id, away_player_id)"
    )

    ensure_fixture_columns(db)
    db.commit()


def existing_columns(db, table):
    if db.postgres:
        rows = db.execute(
            "SELECT column_name FROM information_schema.columns WHERE table_name = %s",
            (table,),
        ).fetchall()
        return {row["column_name"] for row in rows}
    rows = db.execute(f"PRAGMA table_info({table})").fetchall()
    return {row["name"] for row in rows}


def ensure_fixture_columns(db):
    """Migrate older fixtures tables to include the result reporting columns."""
    existing = existing_columns(db, "fixtures")

    definitions = {
        "leg": "INTEGER DEFAULT 1",
        "forfeit": "INTEGER DEFAULT 0",
        "home_report_home_score": "INTEGER",
        "home_report_away_score": "INTEGER",
        "away_report_home_score": "INTEGER",
        "away_report_away_score": "INTEGER",
        "report_status": "TEXT DEFAULT 'NONE'",
        "home_confirmed": "INTEGER DEFAULT 0",
        "away_confirmed": "INTEGER DEFAULT 0",
    }

    for column, ddl in definitions.items():
        if column not in existing:
            db.execute(f"ALTER TABLE fixtures ADD COLUMN {column} {ddl}")
            logger.info("Added column fixtures.%s", column)
