"""Database migration service.

Copies the surebet tracker schema and data from the application's source
database into an operator-supplied target database:

- TargetConnection: per-run target pool, liveness check, guaranteed release
- SchemaProvisioner: drops and recreates the six known tables on the target
- TableCopier: reads one source table and inserts it idempotently
- MigrationService: drives a run and aggregates per-table outcomes

The known tables are a fixed, hand-maintained list (MIGRATION_TABLES) in
foreign-key dependency order. Identifiers are only ever taken from that list.

ERROR LOGGING REQUIREMENTS:
- Log migration start/end with masked target and totals
- Log every phase transition at INFO level
- Log per-table outcomes with table name, count and error message
- Mask credentials in every error message returned or logged
"""

import asyncio
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sqlalchemy import Table, inspect, select, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Dialect
from sqlalchemy.exc import ArgumentError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.schema import CreateIndex, CreateTable

from app.core.config import Settings, get_settings
from app.core.database import create_engine_for_url, to_async_url
from app.core.logging import db_logger, get_logger, mask_connection_string
from app.models import AccountHolder, Bet, BettingHouse, SurebetSet, User, UserSession

logger = get_logger(__name__)


class MigrationServiceError(Exception):
    """Base exception for migration errors."""

    pass


class TargetConnectionError(MigrationServiceError):
    """Raised when the target database cannot be reached."""

    pass


class SchemaDriftError(MigrationServiceError):
    """Raised when the live source schema no longer matches MIGRATION_TABLES."""

    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__("Source schema drift detected: " + "; ".join(problems))


class SchemaProvisioningError(MigrationServiceError):
    """Raised when the DDL script fails on the target."""

    pass


class UnknownTableError(MigrationServiceError):
    """Raised when a table name is not part of MIGRATION_TABLES."""

    def __init__(self, table_name: str):
        self.table_name = table_name
        super().__init__(f"Unknown migration table: {table_name}")


class RowShapeError(MigrationServiceError):
    """Raised when a fetched row does not carry exactly the declared columns."""

    def __init__(self, table_name: str, expected: set[str], actual: set[str]):
        self.table_name = table_name
        missing = sorted(expected - actual)
        unexpected = sorted(actual - expected)
        super().__init__(
            f"Row in {table_name} does not match declared columns "
            f"(missing: {missing}, unexpected: {unexpected})"
        )


class UnsupportedDialectError(MigrationServiceError):
    """Raised when the target backend has no conflict-tolerant insert."""

    def __init__(self, dialect_name: str):
        self.dialect_name = dialect_name
        super().__init__(f"Unsupported target database: {dialect_name}")


# ---------------------------------------------------------------------------
# Table descriptors
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TableDescriptor:
    """Static metadata for one migratable table.

    Attributes:
        name: Table name
        dependency_order: Position in the copy order (1-based)
        table: SQLAlchemy table with the typed column list
    """

    name: str
    dependency_order: int
    table: Table

    @property
    def columns(self) -> tuple[str, ...]:
        return tuple(column.name for column in self.table.columns)

    @property
    def primary_key(self) -> tuple[str, ...]:
        return tuple(column.name for column in self.table.primary_key.columns)

    @property
    def references(self) -> frozenset[str]:
        """Names of the tables this table points at by foreign key."""
        return frozenset(fk.column.table.name for fk in self.table.foreign_keys)


MIGRATION_TABLES: tuple[TableDescriptor, ...] = (
    TableDescriptor("users", 1, User.__table__),  # type: ignore[arg-type]
    TableDescriptor("account_holders", 2, AccountHolder.__table__),  # type: ignore[arg-type]
    TableDescriptor("betting_houses", 3, BettingHouse.__table__),  # type: ignore[arg-type]
    TableDescriptor("surebet_sets", 4, SurebetSet.__table__),  # type: ignore[arg-type]
    TableDescriptor("bets", 5, Bet.__table__),  # type: ignore[arg-type]
    TableDescriptor("session", 6, UserSession.__table__),  # type: ignore[arg-type]
)


def validate_dependency_order(
    descriptors: tuple[TableDescriptor, ...] = MIGRATION_TABLES,
) -> None:
    """Check that every table comes strictly after the tables it references.

    Raises:
        ValueError: If the list is misordered or names an unlisted parent
    """
    orders = {d.name: d.dependency_order for d in descriptors}
    if sorted(orders.values()) != [d.dependency_order for d in descriptors]:
        raise ValueError("Migration tables must be listed in dependency order")
    for descriptor in descriptors:
        if descriptor.name != descriptor.table.name:
            raise ValueError(
                f"Descriptor {descriptor.name} points at table {descriptor.table.name}"
            )
        for parent in descriptor.references:
            if parent not in orders:
                raise ValueError(
                    f"{descriptor.name} references {parent}, which is not migrated"
                )
            if orders[parent] >= descriptor.dependency_order:
                raise ValueError(
                    f"{descriptor.name} ({descriptor.dependency_order}) must come "
                    f"after {parent} ({orders[parent]})"
                )


def get_descriptor(table_name: str) -> TableDescriptor:
    """Look up a descriptor by name; only known tables are accepted."""
    for descriptor in MIGRATION_TABLES:
        if descriptor.name == table_name:
            return descriptor
    raise UnknownTableError(table_name)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class TableStatus(str, Enum):
    """Outcome of one table copy."""

    SUCCESS = "success"
    ERROR = "error"


class MigrationPhase(str, Enum):
    """States of a migration run."""

    IDLE = "idle"
    TARGET_CONNECTING = "target_connecting"
    SCHEMA_CHECKING = "schema_checking"
    SCHEMA_PROVISIONING = "schema_provisioning"
    COPYING = "copying"
    AGGREGATING = "aggregating"
    RELEASED = "released"


@dataclass(frozen=True)
class TableResult:
    """Outcome of copying one table."""

    name: str
    count: int
    status: TableStatus
    error: str | None = None


@dataclass
class MigrationResult:
    """Outcome of a whole migration run.

    Attributes:
        success: True only when no fatal error occurred and every table succeeded
        tables: Per-table results in copy order
        total_records: Sum of the counts of successful tables
        error: Fatal error that stopped the run, if any
    """

    success: bool
    tables: list[TableResult] = field(default_factory=list)
    total_records: int = 0
    error: str | None = None


@dataclass(frozen=True)
class ConnectionTestResult:
    """Outcome of a target liveness check."""

    success: bool
    error: str | None = None


def error_message(error: BaseException) -> str:
    """Extract the driver error message from an exception, with credentials masked."""
    # SQLAlchemy DBAPIError wraps the driver exception in .orig
    orig = getattr(error, "orig", None)
    message = str(orig) if orig is not None else str(error)
    return mask_connection_string(message or type(error).__name__)


# ---------------------------------------------------------------------------
# DDL rendering
# ---------------------------------------------------------------------------


def render_drop_statement(table: Table, dialect: Dialect) -> str:
    """Render DROP TABLE IF EXISTS, cascading where the backend supports it."""
    name = dialect.identifier_preparer.format_table(table)
    if dialect.name == "postgresql":
        return f"DROP TABLE IF EXISTS {name} CASCADE"
    return f"DROP TABLE IF EXISTS {name}"


def render_create_statements(table: Table, dialect: Dialect) -> list[str]:
    """Render CREATE TABLE plus the table's secondary indexes."""
    statements = [str(CreateTable(table, if_not_exists=True).compile(dialect=dialect)).strip()]
    for index in sorted(table.indexes, key=lambda idx: str(idx.name)):
        statements.append(
            str(CreateIndex(index, if_not_exists=True).compile(dialect=dialect)).strip()
        )
    return statements


def build_schema_statements(
    dialect: Dialect,
    descriptors: tuple[TableDescriptor, ...] = MIGRATION_TABLES,
) -> list[str]:
    """Build the ordered DDL script: drops in reverse order, then creates."""
    statements = [render_drop_statement(d.table, dialect) for d in reversed(descriptors)]
    for descriptor in descriptors:
        statements.extend(render_create_statements(descriptor.table, dialect))
    return statements


def conflict_tolerant_insert(descriptor: TableDescriptor, dialect: Dialect) -> Any:
    """Build an INSERT that skips rows whose primary key already exists."""
    if dialect.name == "postgresql":
        stmt = postgresql.insert(descriptor.table)
    elif dialect.name == "sqlite":
        stmt = sqlite.insert(descriptor.table)
    else:
        raise UnsupportedDialectError(dialect.name)
    return stmt.on_conflict_do_nothing(index_elements=list(descriptor.primary_key))


# ---------------------------------------------------------------------------
# Source access
# ---------------------------------------------------------------------------


async def fetch_table_rows(
    source: AsyncEngine,
    descriptor: TableDescriptor,
    slow_query_threshold_ms: float = 100,
) -> list[dict[str, Any]]:
    """Read every row of a table's declared columns in a single query."""
    start_time = time.monotonic()

    async with source.connect() as conn:
        result = await conn.execute(select(*descriptor.table.columns))
        rows = [dict(row) for row in result.mappings().all()]

    duration_ms = (time.monotonic() - start_time) * 1000
    if duration_ms > slow_query_threshold_ms:
        db_logger.slow_query(
            query=f"SELECT * FROM {descriptor.name}",
            duration_ms=duration_ms,
            table=descriptor.name,
        )
    return rows


async def check_source_schema(
    source: AsyncEngine,
    ignored_tables: list[str] | None = None,
    descriptors: tuple[TableDescriptor, ...] = MIGRATION_TABLES,
) -> None:
    """Compare the live source schema with the descriptors.

    Raises:
        SchemaDriftError: If a known table is missing or has different columns,
            or if the source holds a table the migration does not know about
    """

    def _inspect(sync_conn: Any) -> dict[str, set[str]]:
        inspector = inspect(sync_conn)
        return {
            name: {column["name"] for column in inspector.get_columns(name)}
            for name in inspector.get_table_names()
        }

    async with source.connect() as conn:
        live = await conn.run_sync(_inspect)

    ignored = set(ignored_tables or [])
    known = {d.name for d in descriptors}
    problems: list[str] = []

    for descriptor in descriptors:
        if descriptor.name not in live:
            problems.append(f"table {descriptor.name} is missing from the source")
            continue
        declared = set(descriptor.columns)
        missing = sorted(declared - live[descriptor.name])
        unexpected = sorted(live[descriptor.name] - declared)
        if missing or unexpected:
            problems.append(
                f"table {descriptor.name} columns differ "
                f"(missing: {missing}, unexpected: {unexpected})"
            )

    for name in sorted(set(live) - known - ignored):
        problems.append(f"source table {name} is not in the migration table list")

    if problems:
        db_logger.schema_drift(problems)
        raise SchemaDriftError(problems)


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------


class TargetConnection:
    """Pooled connection to an operator-supplied target database.

    acquire() builds the pool and runs a liveness query; release() disposes the
    pool and is safe to call whether or not acquire() succeeded.
    """

    def __init__(self, target_url: str, settings: Settings) -> None:
        self._target_url = target_url
        self._settings = settings
        self._engine: AsyncEngine | None = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Target connection not acquired")
        return self._engine

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    async def acquire(self) -> AsyncEngine:
        """Open the target pool and verify it answers.

        Raises:
            TargetConnectionError: If the URL is invalid or the target is unreachable
        """
        try:
            self._engine = create_engine_for_url(
                self._target_url,
                tls_mode=self._settings.migration_target_tls_mode,
                role="target",
                pool_size=self._settings.migration_target_pool_size,
                max_overflow=0,
                pool_timeout=self._settings.db_pool_timeout,
                connect_timeout=self._settings.db_connect_timeout,
                command_timeout=self._settings.db_command_timeout,
            )
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as e:
            db_logger.connection_error(e, self._target_url)
            raise TargetConnectionError(error_message(e)) from e

        logger.info(
            "Connected to target database",
            extra={"target": mask_connection_string(self._target_url)},
        )
        return self._engine

    async def release(self) -> None:
        """Dispose the target pool."""
        if self._engine is None:
            return
        engine, self._engine = self._engine, None
        await engine.dispose()
        logger.debug(
            "Target connection released",
            extra={"target": mask_connection_string(self._target_url)},
        )


class SchemaProvisioner:
    """Recreates the known tables on a target database."""

    def __init__(self, descriptors: tuple[TableDescriptor, ...] = MIGRATION_TABLES) -> None:
        self.descriptors = descriptors

    def statements(self, dialect: Dialect) -> list[str]:
        return build_schema_statements(dialect, self.descriptors)

    async def provision(self, target: AsyncEngine) -> None:
        """Apply the DDL script in one transaction.

        Destructive: existing data in the known tables is dropped.

        Raises:
            SchemaProvisioningError: If any statement fails
        """
        start_time = time.monotonic()
        try:
            async with target.begin() as conn:
                for statement in self.statements(target.dialect):
                    await conn.execute(text(statement))
        except Exception as e:
            db_logger.schema_failure(e)
            raise SchemaProvisioningError(error_message(e)) from e

        db_logger.schema_provisioned(
            table_count=len(self.descriptors),
            duration_ms=(time.monotonic() - start_time) * 1000,
        )


class TableCopier:
    """Copies single tables from the source to the target."""

    def __init__(
        self,
        source: AsyncEngine,
        target: AsyncEngine,
        slow_query_threshold_ms: float = 100,
    ) -> None:
        self._source = source
        self._target = target
        self._slow_query_threshold_ms = slow_query_threshold_ms

    async def copy_table(self, table_name: str) -> int:
        """Copy every row of a table and return the number of rows processed.

        Each row is inserted and committed on its own with ON CONFLICT DO NOTHING
        on the primary key, so rows already present are skipped. An insert error
        stops the table; rows committed before it stay in the target.

        Raises:
            UnknownTableError: If the table is not a known migration table
            RowShapeError: If a row does not carry exactly the declared columns
        """
        descriptor = get_descriptor(table_name)
        rows = await fetch_table_rows(
            self._source, descriptor, self._slow_query_threshold_ms
        )
        if not rows:
            return 0

        expected = set(descriptor.columns)
        stmt = conflict_tolerant_insert(descriptor, self._target.dialect)

        async with self._target.connect() as conn:
            for row in rows:
                if row.keys() != expected:
                    raise RowShapeError(table_name, expected, set(row))
                await conn.execute(stmt, row)
                await conn.commit()

        return len(rows)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class _MigrationRun:
    """Mutable state of one execute_migration call."""

    def __init__(self, target_url: str) -> None:
        self.target_url = target_url
        self.phase = MigrationPhase.IDLE
        self.tables: list[TableResult] = []
        self.error: str | None = None

    def advance(self, phase: MigrationPhase, detail: str | None = None) -> None:
        to_phase = f"{phase.value}({detail})" if detail else phase.value
        db_logger.phase_change(self.phase.value, to_phase)
        self.phase = phase

    def result(self) -> MigrationResult:
        success = self.error is None and all(
            t.status == TableStatus.SUCCESS for t in self.tables
        )
        total = sum(t.count for t in self.tables if t.status == TableStatus.SUCCESS)
        return MigrationResult(
            success=success,
            tables=list(self.tables),
            total_records=total,
            error=self.error,
        )


class _TargetLock:
    """Lock serializing runs against one target, with a count of its users."""

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


def target_lock_key(target_url: str) -> str:
    """Normalize a target URL so spellings of the same database share a lock."""
    try:
        return to_async_url(target_url).render_as_string(hide_password=False)
    except ArgumentError:
        return target_url.strip()


class MigrationService:
    """Runs migrations from the source database into target databases.

    One instance is built at application start with the long-lived source
    engine and shared across requests. Runs against the same target are
    serialized; runs against different targets may overlap. The run timeout
    covers the wait for the target lock as well as the run itself.
    """

    def __init__(
        self,
        source: AsyncEngine,
        settings: Settings | None = None,
        descriptors: tuple[TableDescriptor, ...] = MIGRATION_TABLES,
    ) -> None:
        validate_dependency_order(descriptors)
        self._source = source
        self._settings = settings or get_settings()
        self._descriptors = descriptors
        self._target_locks: dict[str, _TargetLock] = {}
        logger.debug("MigrationService initialized")

    @asynccontextmanager
    async def _target_lock(self, target_url: str) -> AsyncIterator[None]:
        key = target_lock_key(target_url)
        entry = self._target_locks.get(key)
        if entry is None:
            entry = self._target_locks[key] = _TargetLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._target_locks[key]

    async def test_connection(self, target_url: str) -> ConnectionTestResult:
        """Check that the target answers a trivial query. Never raises."""
        target = TargetConnection(target_url, self._settings)
        try:
            await target.acquire()
            return ConnectionTestResult(success=True)
        except Exception as e:
            return ConnectionTestResult(success=False, error=error_message(e))
        finally:
            await target.release()

    async def execute_migration(self, target_url: str) -> MigrationResult:
        """Recreate the schema on the target and copy every known table.

        Destructive on the target. Never raises: fatal problems are reported
        in MigrationResult.error, table problems in the table results.
        """
        timeout = self._settings.migration_timeout_seconds
        run = _MigrationRun(target_url)
        start_time = time.monotonic()

        try:
            async with asyncio.timeout(timeout):
                async with self._target_lock(target_url):
                    db_logger.migration_start(target_url, len(self._descriptors))
                    await self._run(run)
        except TimeoutError:
            run.error = f"Migration timed out after {timeout:g} seconds"

        result = run.result()
        db_logger.migration_end(
            target_url,
            success=result.success,
            total_records=result.total_records,
            duration_ms=(time.monotonic() - start_time) * 1000,
            error=result.error,
        )
        return result

    async def _run(self, run: _MigrationRun) -> None:
        target = TargetConnection(run.target_url, self._settings)
        try:
            run.advance(MigrationPhase.TARGET_CONNECTING)
            await target.acquire()

            if self._settings.migration_check_schema_drift:
                run.advance(MigrationPhase.SCHEMA_CHECKING)
                await check_source_schema(
                    self._source,
                    self._settings.migration_ignored_tables,
                    self._descriptors,
                )

            run.advance(MigrationPhase.SCHEMA_PROVISIONING)
            await SchemaProvisioner(self._descriptors).provision(target.engine)

            copier = TableCopier(
                self._source,
                target.engine,
                self._settings.db_slow_query_threshold_ms,
            )
            total = len(self._descriptors)
            for position, descriptor in enumerate(self._descriptors, start=1):
                run.advance(MigrationPhase.COPYING, f"{position}/{total} {descriptor.name}")
                run.tables.append(await self._copy_table(copier, descriptor))

        except MigrationServiceError as e:
            run.error = str(e)
        except Exception as e:
            logger.error(
                "Unexpected migration failure",
                extra={"error_type": type(e).__name__, "error_message": error_message(e)},
                exc_info=True,
            )
            run.error = error_message(e)
        finally:
            run.advance(MigrationPhase.AGGREGATING)
            await target.release()
            run.advance(MigrationPhase.RELEASED)

    async def _copy_table(
        self, copier: TableCopier, descriptor: TableDescriptor
    ) -> TableResult:
        start_time = time.monotonic()
        try:
            count = await copier.copy_table(descriptor.name)
        except Exception as e:
            message = error_message(e)
            db_logger.table_failed(descriptor.name, message)
            return TableResult(
                name=descriptor.name,
                count=0,
                status=TableStatus.ERROR,
                error=message,
            )

        db_logger.table_migrated(
            descriptor.name, count, (time.monotonic() - start_time) * 1000
        )
        return TableResult(name=descriptor.name, count=count, status=TableStatus.SUCCESS)
