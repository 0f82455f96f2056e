"""
SQL Storage Implementation

DESIGN DECISION: Balances live in a relational store because the
one-entry-per-day rule has to be atomic. A UNIQUE constraint on
balance_records.record_date lets the database decide which of two
concurrent inserts wins; the loser gets an IntegrityError that we
translate into DuplicateEntryForDayError.

Amounts are stored as integer cents (BIGINT) so every dialect,
SQLite included, round-trips them exactly.

TRADEOFFS:
- Sync SQLAlchemy behind async methods (one operator, one request at a time)
- Schema is created by Alembic in production; create_schema() is for
  local SQLite files and tests
"""

from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Iterator, Optional
from uuid import UUID

import structlog
from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Engine,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    create_engine,
    select,
    text,
)
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    Session,
    mapped_column,
    sessionmaker,
)
from tenacity import Retrying, stop_after_attempt, wait_exponential

from src.config import get_settings
from src.models.balance import CENTS, BalanceRecord
from src.models.audit import AuditEvent, AuditEventType, AuditSeverity
from src.services.storage.interface import (
    AuditStorageInterface,
    BalanceStorageInterface,
    ConnectionError,
    DuplicateEntryForDayError,
    StorageError,
)


logger = structlog.get_logger(__name__)

RECORD_DATE_CONSTRAINT = "uq_balance_records_record_date"


# =============================================================================
# TABLES
# =============================================================================

class Base(DeclarativeBase):
    """Declarative base shared by the balance and audit tables."""

    pass


class BalanceRecordRow(Base):
    __tablename__ = "balance_records"
    __table_args__ = (
        UniqueConstraint("record_date", name=RECORD_DATE_CONSTRAINT),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    record_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    @classmethod
    def from_record(cls, record: BalanceRecord) -> "BalanceRecordRow":
        return cls(
            id=record.id,
            amount_cents=int(record.amount.quantize(CENTS) * 100),
            record_date=record.record_date,
            created_at=record.created_at,
        )

    def to_record(self) -> BalanceRecord:
        return BalanceRecord(
            id=self.id,
            amount=Decimal(self.amount_cents).scaleb(-2),
            record_date=self.record_date,
            created_at=self.created_at,
        )


class AuditLogRow(Base):
    __tablename__ = "audit_log"

    event_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    severity: Mapped[str] = mapped_column(String(16), nullable=False)
    entity_type: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    entity_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    correlation_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True, index=True)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    details_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    error_code: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_user_action: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    @classmethod
    def from_event(cls, event: AuditEvent) -> "AuditLogRow":
        return cls(
            event_id=event.event_id,
            timestamp=event.timestamp,
            event_type=event.event_type.value,
            severity=event.severity.value,
            entity_type=event.entity_type,
            entity_id=event.entity_id,
            correlation_id=event.correlation_id,
            description=event.description,
            details_json=event.details or None,
            error_code=event.error_code,
            error_message=event.error_message,
            is_user_action=event.is_user_action,
        )

    def to_event(self) -> AuditEvent:
        return AuditEvent(
            event_id=self.event_id,
            timestamp=self.timestamp,
            event_type=AuditEventType(self.event_type),
            severity=AuditSeverity(self.severity),
            entity_type=self.entity_type,
            entity_id=self.entity_id,
            correlation_id=self.correlation_id,
            description=self.description,
            details=self.details_json or {},
            error_code=self.error_code,
            error_message=self.error_message,
            is_user_action=self.is_user_action,
        )


# =============================================================================
# CLIENT
# =============================================================================

def _is_connection_failure(error: SQLAlchemyError) -> bool:
    if isinstance(error, (OperationalError, InterfaceError)):
        return True
    return isinstance(error, DBAPIError) and error.connection_invalidated


class SqlClient:
    """
    Low-level database client wrapper.

    Owns the engine and session factory, and provides the
    startup connection check.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        echo: Optional[bool] = None,
        connect_attempts: Optional[int] = None,
    ):
        settings = get_settings().database
        self._url = url or settings.url
        self._echo = settings.echo if echo is None else echo
        self._connect_attempts = connect_attempts or settings.connect_attempts
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker[Session]] = None

    @property
    def url(self) -> str:
        return self._url

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            try:
                self._engine = create_engine(self._url, echo=self._echo, future=True)
            except (SQLAlchemyError, ImportError) as e:
                raise ConnectionError(f"Invalid database configuration: {e}") from e
            self._session_factory = sessionmaker(
                bind=self._engine,
                autoflush=False,
                expire_on_commit=False,
                future=True,
            )
        return self._engine

    def connect(self) -> Engine:
        """
        Verify the database is reachable.

        Retries with exponential backoff when connect_attempts > 1.
        """
        engine = self.engine
        try:
            for attempt in Retrying(
                stop=stop_after_attempt(self._connect_attempts),
                wait=wait_exponential(multiplier=1, min=2, max=10),
                reraise=True,
            ):
                with attempt:
                    with engine.connect() as conn:
                        conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error("database_unreachable", url=engine.url.render_as_string(hide_password=True), error=str(e))
            raise ConnectionError(f"Failed to connect to the database: {e}") from e
        return engine

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a session; the caller decides on transaction boundaries."""
        _ = self.engine
        session = self._session_factory()
        try:
            yield session
        finally:
            session.close()

    def create_schema(self) -> None:
        """Create all tables that don't exist yet."""
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            if _is_connection_failure(e):
                raise ConnectionError(f"Failed to connect to the database: {e}") from e
            raise StorageError(f"Failed to create schema: {e}") from e

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None


# =============================================================================
# BALANCE STORAGE
# =============================================================================

class SqlBalanceStorage(BalanceStorageInterface):
    """
    SQL implementation of balance storage.

    One row per calendar day, guarded by a UNIQUE constraint.
    """

    def __init__(self, client: Optional[SqlClient] = None):
        self._client = client or SqlClient()

    @staticmethod
    def _is_record_date_violation(error: IntegrityError) -> bool:
        message = str(error.orig).lower()
        return RECORD_DATE_CONSTRAINT in message or "record_date" in message

    async def get_latest_balance(self) -> Optional[BalanceRecord]:
        """Retrieve the newest record by record_date."""
        try:
            with self._client.session() as session:
                row = session.scalars(
                    select(BalanceRecordRow)
                    .order_by(BalanceRecordRow.record_date.desc(), BalanceRecordRow.created_at.desc())
                    .limit(1)
                ).first()
                return row.to_record() if row else None
        except SQLAlchemyError as e:
            if _is_connection_failure(e):
                raise ConnectionError(f"Failed to connect to the database: {e}") from e
            raise StorageError(f"Failed to read latest balance: {e}") from e

    async def add_balance(self, amount: Decimal, record_date: date) -> BalanceRecord:
        """Insert one record; the unique constraint rejects a second one for the day."""
        record = BalanceRecord(amount=amount.quantize(CENTS), record_date=record_date)
        try:
            with self._client.session() as session, session.begin():
                session.add(BalanceRecordRow.from_record(record))
        except IntegrityError as e:
            if self._is_record_date_violation(e):
                logger.info("duplicate_entry_for_day", record_date=record_date.isoformat())
                raise DuplicateEntryForDayError(record_date) from e
            raise StorageError(f"Failed to save balance: {e}") from e
        except SQLAlchemyError as e:
            if _is_connection_failure(e):
                raise ConnectionError(f"Failed to connect to the database: {e}") from e
            raise StorageError(f"Failed to save balance: {e}") from e
        return record

    async def get_balance_for_date(self, record_date: date) -> Optional[BalanceRecord]:
        """Retrieve the record for one day."""
        try:
            with self._client.session() as session:
                row = session.scalars(
                    select(BalanceRecordRow).where(BalanceRecordRow.record_date == record_date)
                ).first()
                return row.to_record() if row else None
        except SQLAlchemyError as e:
            if _is_connection_failure(e):
                raise ConnectionError(f"Failed to connect to the database: {e}") from e
            raise StorageError(f"Failed to read balance: {e}") from e

    async def list_recent_balances(self, limit: int = 10) -> list[BalanceRecord]:
        """List records, newest first."""
        try:
            with self._client.session() as session:
                rows = session.scalars(
                    select(BalanceRecordRow)
                    .order_by(BalanceRecordRow.record_date.desc(), BalanceRecordRow.created_at.desc())
                    .limit(limit)
                ).all()
                return [row.to_record() for row in rows]
        except SQLAlchemyError as e:
            if _is_connection_failure(e):
                raise ConnectionError(f"Failed to connect to the database: {e}") from e
            raise StorageError(f"Failed to list balances: {e}") from e


# =============================================================================
# AUDIT STORAGE
# =============================================================================

class SqlAuditStorage(AuditStorageInterface):
    """
    SQL implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[SqlClient] = None):
        self._client = client or SqlClient()

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            with self._client.session() as session, session.begin():
                session.add(AuditLogRow.from_event(event))
            return True
        except SQLAlchemyError as e:
            # Don't raise - audit logging should not break the main flow
            logger.warning(
                "audit_event_write_failed",
                event_id=str(event.event_id),
                error=str(e),
            )
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            with self._client.session() as session:
                rows = session.scalars(
                    select(AuditLogRow)
                    .where(AuditLogRow.correlation_id == correlation_id)
                    .order_by(AuditLogRow.timestamp)
                ).all()
                return [row.to_event() for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get audit events: {e}") from e

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            with self._client.session() as session:
                rows = session.scalars(
                    select(AuditLogRow)
                    .order_by(AuditLogRow.timestamp.desc())
                    .limit(limit)
                ).all()
                return [row.to_event() for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get audit events: {e}") from e
