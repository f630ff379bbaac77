"""Schema creation and forward-only migration for the Lazy Read store.

SQLite has no ``ADD COLUMN IF NOT EXISTS``, so every additive change is
applied by inspecting the live column set first. This makes
``ensure_schema()`` idempotent and safe to run on every start, against a
fresh file or one written by any earlier version of the app.
"""
import logging
import sqlite3
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from lazyread.exceptions import InitializationError, MigrationStepError
from lazyread.models.db_models import Base

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MigrationStep:
    """One additive column change, optionally followed by a backfill.

    Attributes:
        name: Identifier used in logs and reports.
        table: Table receiving the column.
        column: Column name; the step is pending while it is missing.
        ddl: Column definition appended to ``ALTER TABLE ... ADD COLUMN``.
        backfill: Statement run right after the column is added, in the
            same transaction.
    """

    name: str
    table: str
    column: str
    ddl: str
    backfill: Optional[str] = None


# Notes get 0..n-1 per book in creation order, the order in which they
# were written before explicit ordering existed. Images get 0..n-1 per
# note in id order, the order older versions listed them in.
MIGRATION_STEPS: List[MigrationStep] = [
    MigrationStep(
        name="books_add_cover_uri",
        table="books",
        column="cover_uri",
        ddl="cover_uri TEXT",
    ),
    MigrationStep(
        name="notes_add_sort_order",
        table="notes",
        column="sort_order",
        ddl="sort_order INTEGER NOT NULL DEFAULT 0",
        backfill="""
            UPDATE notes SET sort_order = (
                SELECT ranked.position FROM (
                    SELECT id, ROW_NUMBER() OVER (
                        PARTITION BY book_id ORDER BY created_at ASC, rowid ASC
                    ) - 1 AS position
                    FROM notes
                ) AS ranked
                WHERE ranked.id = notes.id
            )
        """,
    ),
    MigrationStep(
        name="note_images_add_sort_order",
        table="note_images",
        column="sort_order",
        ddl="sort_order INTEGER NOT NULL DEFAULT 0",
        backfill="""
            UPDATE note_images SET sort_order = (
                SELECT ranked.position FROM (
                    SELECT id, ROW_NUMBER() OVER (
                        PARTITION BY note_id ORDER BY id ASC
                    ) - 1 AS position
                    FROM note_images
                ) AS ranked
                WHERE ranked.id = note_images.id
            )
        """,
    ),
]


@dataclass
class SchemaReport:
    """Outcome of one ``ensure_schema()`` run."""

    created_tables: List[str] = field(default_factory=list)
    applied_steps: List[str] = field(default_factory=list)
    failed_steps: List[MigrationStepError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True when every pending step was applied."""
        return not self.failed_steps


class SchemaManager:
    """Brings a store from whatever state it is in to the current schema.

    Base tables are created in one transaction; failing that is fatal and
    raises ``InitializationError``. Each additive step then runs in its
    own transaction, so a failed step leaves nothing half-applied and is
    retried on the next start.
    """

    def __init__(self, engine: Engine, steps: Optional[List[MigrationStep]] = None):
        self.engine = engine
        self.steps = list(MIGRATION_STEPS if steps is None else steps)

    def ensure_schema(self) -> SchemaReport:
        """Create missing tables, apply pending additive steps, add indexes."""
        report = SchemaReport()
        self._create_base_tables(report)

        for step in self.steps:
            try:
                if self._apply_step(step):
                    report.applied_steps.append(step.name)
            except SQLAlchemyError as e:
                logger.warning(f"Migration step {step.name} failed, skipping: {e}")
                report.failed_steps.append(MigrationStepError(step.name, original_error=e))

        self._create_indexes()

        if report.created_tables or report.applied_steps:
            logger.info(
                f"Schema updated: created={report.created_tables}, "
                f"applied={report.applied_steps}"
            )
        return report

    def _create_base_tables(self, report: SchemaReport) -> None:
        """Create any missing entity tables (first run, or a partial store)."""
        try:
            with self.engine.begin() as conn:
                existing = set(inspect(conn).get_table_names())
                missing = [
                    table for name, table in Base.metadata.tables.items()
                    if name not in existing
                ]
                if missing:
                    Base.metadata.create_all(conn, tables=missing)
                report.created_tables.extend(t.name for t in missing)
        except (SQLAlchemyError, sqlite3.Error) as e:
            logger.error(f"Failed to create base tables: {e}")
            raise InitializationError(
                "Could not create the store's base tables",
                database_url=str(self.engine.url),
                original_error=e,
            ) from e

    def _apply_step(self, step: MigrationStep) -> bool:
        """Apply one step if its column is missing.

        Returns:
            True if the column was added, False if it already existed.
        """
        with self.engine.begin() as conn:
            if step.column in self._column_names(conn, step.table):
                return False
            conn.execute(text(f"ALTER TABLE {step.table} ADD COLUMN {step.ddl}"))
            if step.backfill:
                conn.execute(text(step.backfill))
        logger.info(f"Applied migration step {step.name}")
        return True

    def _create_indexes(self) -> None:
        """Create lookup indexes that are missing.

        Runs after the additive steps so an index may cover a column that
        a step has only just added. A failure here costs speed, not data.
        """
        for table in Base.metadata.sorted_tables:
            for index in table.indexes:
                try:
                    with self.engine.begin() as conn:
                        index.create(conn, checkfirst=True)
                except SQLAlchemyError as e:
                    logger.warning(f"Could not create index {index.name}: {e}")

    @staticmethod
    def _column_names(conn: Connection, table: str) -> List[str]:
        return [col["name"] for col in inspect(conn).get_columns(table)]
