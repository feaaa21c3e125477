"""
Result storage backed by SQLAlchemy (SQLite by default).

The store is an explicitly constructed object: the application opens one at
startup and hands it to request handlers, instead of sharing a lazily
created module-level connection. Tests build their own in-memory store.

Rows are append-only. Duplicate submissions are rejected by a unique
constraint at insert time and surface as DuplicateSubmission, so two
concurrent inserts with the same key produce exactly one row.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, Integer, String, create_engine, func, select, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from . import metrics
from .errors import DuplicateSubmission, StorageError
from .filters import FilterSet

logger = logging.getLogger(__name__)

DEDUP_SUBMISSION_ID = "submission_id"
DEDUP_COMPOSITE = "composite"
DEDUP_KEYS = (DEDUP_SUBMISSION_ID, DEDUP_COMPOSITE)

# Created only when the composite dedup key is enabled
COMPOSITE_DEDUP_INDEX_DDL = (
    "CREATE UNIQUE INDEX IF NOT EXISTS uq_speed_tests_minute "
    "ON speed_tests (address, submission_minute, download_speed, upload_speed, ping)"
)

# Base class for our models
Base = declarative_base()


class SpeedTestResult(Base):
    """
    One submitted speed test measurement.

    Timestamps come from the trusted clock at ingestion, never from the client.
    latitude/longitude are either both set or both NULL.
    """
    __tablename__ = "speed_tests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    submission_id = Column(String, nullable=False, unique=True)
    location = Column(String, nullable=False)
    country = Column(String, nullable=True)
    city = Column(String, nullable=True)
    download_speed = Column(Float, nullable=False)  # Mbps
    upload_speed = Column(Float, nullable=False)  # Mbps
    ping = Column(Float, nullable=False)  # ms
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)
    submission_minute = Column(String(16), nullable=False)  # YYYY-MM-DDTHH:MM
    address = Column(String, nullable=False, index=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f"<SpeedTestResult id={self.id} submission_id={self.submission_id!r}>"


class ResultStore:
    """
    Append-only store of speed test results.

    Usage:
        store = ResultStore.from_url("sqlite:///./speed-tests.db")
        store.create_schema()
        store.insert(SpeedTestResult(...))
        rows = store.query(FilterSet().contains("city", "tokyo"))
        store.close()
    """

    def __init__(self, engine, dedup_key: str = DEDUP_SUBMISSION_ID):
        if dedup_key not in DEDUP_KEYS:
            raise ValueError(f"Unknown dedup key {dedup_key!r}, expected one of {DEDUP_KEYS}")
        self.engine = engine
        self.dedup_key = dedup_key
        self._sessions = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, url: str, dedup_key: str = DEDUP_SUBMISSION_ID) -> "ResultStore":
        """
        Create a store for a SQLAlchemy database URL.

        SQLite connections are shared across FastAPI's worker threads, and an
        in-memory database keeps a single connection so every session sees
        the same data.
        """
        parsed = make_url(url)
        kwargs = {}
        if parsed.get_backend_name() == "sqlite":
            kwargs["connect_args"] = {"check_same_thread": False}
            if parsed.database in (None, "", ":memory:"):
                kwargs["poolclass"] = StaticPool
        return cls(create_engine(url, **kwargs), dedup_key=dedup_key)

    def create_schema(self) -> None:
        """Create the results table (and composite dedup index) if missing."""
        Base.metadata.create_all(self.engine)
        if self.dedup_key == DEDUP_COMPOSITE:
            with self.engine.begin() as conn:
                conn.execute(text(COMPOSITE_DEDUP_INDEX_DDL))

    def insert(self, record: SpeedTestResult) -> SpeedTestResult:
        """
        Insert a new result.

        Args:
            record: Unsaved SpeedTestResult

        Returns:
            The same record with its id assigned

        Raises:
            DuplicateSubmission: If the dedup key already exists
            StorageError: On any other database failure
        """
        with self._sessions() as session:
            try:
                session.add(record)
                session.commit()
            except IntegrityError as e:
                session.rollback()
                metrics.storage_operations_total.labels(operation="insert", status="duplicate").inc()
                logger.info("Rejected duplicate submission %s", record.submission_id)
                raise DuplicateSubmission() from e
            except SQLAlchemyError as e:
                session.rollback()
                metrics.storage_operations_total.labels(operation="insert", status="error").inc()
                raise StorageError("Failed to save speed test result") from e

        metrics.storage_operations_total.labels(operation="insert", status="success").inc()
        return record

    def query(self, filters: FilterSet = None) -> list[SpeedTestResult]:
        """
        Return all results matching the filters, most recent first.

        Rows with the same timestamp are ordered by id (newest insert first)
        so repeated calls against an unchanged table return the same order.
        """
        filters = filters or FilterSet()
        stmt = (
            select(SpeedTestResult)
            .where(filters.to_clause(SpeedTestResult))
            .order_by(SpeedTestResult.timestamp.desc(), SpeedTestResult.id.desc())
        )

        try:
            with self._sessions() as session:
                rows = list(session.scalars(stmt))
        except SQLAlchemyError as e:
            metrics.storage_operations_total.labels(operation="query", status="error").inc()
            raise StorageError("Failed to read speed test results") from e

        metrics.storage_operations_total.labels(operation="query", status="success").inc()
        return rows

    def count(self) -> int:
        """Number of stored results."""
        with self._sessions() as session:
            return session.scalar(select(func.count()).select_from(SpeedTestResult))

    def ping(self) -> bool:
        """Check that the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            logger.warning("Database health check failed", exc_info=True)
            return False

    def close(self) -> None:
        self.engine.dispose()
