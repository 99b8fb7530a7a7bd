"""
Verification du schema au demarrage : refuse de demarrer si les tables ou
colonnes utilisees par la reconciliation manquent (migrations non appliquees).
"""
import logging
from typing import Dict, List, Tuple

from sqlalchemy import inspect
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

REQUIRED_TABLES = (
    "planned_session",
    "reconciliation_link",
)

REQUIRED_COLUMNS: Tuple[Tuple[str, str], ...] = (
    ("planned_session", "scheduled_date"),
    ("planned_session", "completion_source"),
    ("planned_session", "completed_at"),
    ("planned_session", "completed_activity_id"),
    ("planned_session", "completion_match_score"),
)


class SchemaOutOfDateError(RuntimeError):
    """La base n'a pas les tables/colonnes attendues"""

    def __init__(self, missing_tables: List[str], missing_columns: List[str]):
        self.missing_tables = missing_tables
        self.missing_columns = missing_columns
        parts = []
        if missing_tables:
            parts.append(f"missing tables: {', '.join(missing_tables)}")
        if missing_columns:
            parts.append(f"missing columns: {', '.join(missing_columns)}")
        super().__init__(
            f"[schema-check] Database schema is out of date ({'; '.join(parts)}). "
            "Run migrations before starting the app."
        )


def verify_schema_or_raise(engine: Engine) -> None:
    inspector = inspect(engine)
    existing_tables = set(inspector.get_table_names())

    missing_tables = [t for t in REQUIRED_TABLES if t not in existing_tables]

    columns_by_table: Dict[str, set] = {}
    missing_columns = []
    for table, column in REQUIRED_COLUMNS:
        if table not in existing_tables:
            continue
        if table not in columns_by_table:
            columns_by_table[table] = {c["name"] for c in inspector.get_columns(table)}
        if column not in columns_by_table[table]:
            missing_columns.append(f"{table}.{column}")

    if missing_tables or missing_columns:
        raise SchemaOutOfDateError(missing_tables, missing_columns)

    logger.debug("Schema de reconciliation verifie")
