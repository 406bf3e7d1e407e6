"""
Migration runner for the scheduling tables
Usage: python run_migration.py [migration_file.sql]
"""
import sys
import logging
from pathlib import Path

from sqlalchemy import text

from practice_app.database import engine

logging.basicConfig(level=logging.INFO, format='%(message)s')
logger = logging.getLogger(__name__)

DEFAULT_MIGRATION = Path(__file__).parent / "migrations" / "create_scheduling_tables.sql"


def split_statements(sql: str) -> list[str]:
    """Split a SQL script on ';', dropping comment lines and empty statements"""
    lines = [line for line in sql.splitlines() if not line.strip().startswith('--')]
    return [s.strip() for s in "\n".join(lines).split(';') if s.strip()]


def run_migration(migration_file_path):
    """Run a SQL migration file"""
    migration_file = Path(migration_file_path)

    if not migration_file.exists():
        logger.error(f"Migration file not found: {migration_file}")
        sys.exit(1)

    logger.info(f"Reading migration file: {migration_file}")
    statements = split_statements(migration_file.read_text())

    logger.info(f"Found {len(statements)} SQL statements to execute")

    with engine.connect() as conn:
        for i, stmt in enumerate(statements, 1):
            logger.info(f"Executing statement {i}/{len(statements)}...")
            conn.execute(text(stmt))
        conn.commit()

    logger.info("✅ Migration completed successfully!")


if __name__ == "__main__":
    target = sys.argv[1] if len(sys.argv) > 1 else DEFAULT_MIGRATION

    try:
        run_migration(target)
    except Exception as e:
        logger.error(f"❌ Migration failed: {e}")
        sys.exit(1)
