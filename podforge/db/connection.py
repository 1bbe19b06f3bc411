import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

_MIGRATIONS_DIR = Path(__file__).parent / "migrations"


def get_connection(db_path: str) -> sqlite3.Connection:
    """Open a SQLite connection with WAL mode, foreign keys and row factory enabled."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path, timeout=10, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def run_migrations(db_path: str) -> list[str]:
    """Apply unapplied migration files in filename order. Returns the names applied."""
    conn = get_connection(db_path)
    applied_now = []
    try:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS _schema_migrations (
                filename TEXT PRIMARY KEY,
                applied_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP
            )
            """
        )
        conn.commit()

        applied = {row["filename"] for row in conn.execute("SELECT filename FROM _schema_migrations")}
        for migration_path in sorted(_MIGRATIONS_DIR.glob("*.sql")):
            if migration_path.name in applied:
                continue
            logger.info("[db] applying migration | file=%s", migration_path.name)
            conn.executescript(migration_path.read_text())
            conn.execute("INSERT INTO _schema_migrations (filename) VALUES (?)", (migration_path.name,))
            conn.commit()
            applied_now.append(migration_path.name)
    finally:
        conn.close()
    return applied_now


def check_database(db_path: str) -> bool:
    """True when the database answers a trivial query."""
    try:
        conn = get_connection(db_path)
        try:
            conn.execute("SELECT 1").fetchone()
        finally:
            conn.close()
        return True
    except sqlite3.Error:
        logger.exception("[db] health check failed | path=%s", db_path)
        return False
