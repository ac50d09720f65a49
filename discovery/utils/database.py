"""Database connection utilities for the MeetsMatch discovery service."""

from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional

from sqlalchemy import JSON, Date, DateTime, Float, Integer, String, create_engine, event
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from discovery.utils.errors import DatabaseError
from discovery.utils.logging import get_logger

logger = get_logger(__name__)

SessionFactory = Callable[[], Session]


def utcnow() -> datetime:
    """Get current UTC time (naive) to replace datetime.utcnow()."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    pass


class ProfileDB(Base):
    """Profile rows read by the default profile store adapter."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    first_name: Mapped[str] = mapped_column(String(100), default="User")
    last_name: Mapped[str] = mapped_column(String(100), default="")
    birth_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    gender: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    interested_in: Mapped[List[str]] = mapped_column(JSON, default=list)
    looking_for: Mapped[List[str]] = mapped_column(JSON, default=list)
    interests: Mapped[List[str]] = mapped_column(JSON, default=list)
    photos: Mapped[List[str]] = mapped_column(JSON, default=list)
    location_latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    location_longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    rating: Mapped[int] = mapped_column(Integer, default=0)
    blocked_ids: Mapped[List[str]] = mapped_column(JSON, default=list)
    subscription_tier: Mapped[str] = mapped_column(String(32), default="free")
    onboarding_completed: Mapped[bool] = mapped_column(default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)


class InterestEdgeDB(Base):
    """One directional swipe decision per ordered pair."""

    __tablename__ = "interest_edges"

    actor_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    target_id: Mapped[str] = mapped_column(String(128), primary_key=True, index=True)
    decision: Mapped[str] = mapped_column(String(20))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)


class BlockDB(Base):
    """Block records owned by the discovery core."""

    __tablename__ = "blocks"

    blocker_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    blocked_id: Mapped[str] = mapped_column(String(128), primary_key=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class MatchDB(Base):
    """Match database model keyed by the canonical pair id."""

    __tablename__ = "matches"

    id: Mapped[str] = mapped_column(String(300), primary_key=True)
    user1_id: Mapped[str] = mapped_column(String(128), index=True)
    user2_id: Mapped[str] = mapped_column(String(128), index=True)
    participants: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    unread_counts: Mapped[Dict[str, int]] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    last_message_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


class ConversationChannelDB(Base):
    """Conversation channel sharing its id with the match."""

    __tablename__ = "conversation_channels"

    id: Mapped[str] = mapped_column(String(300), primary_key=True)
    user1_id: Mapped[str] = mapped_column(String(128))
    user2_id: Mapped[str] = mapped_column(String(128))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    last_message_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


class QuotaRecordDB(Base):
    """Interest actions taken by a user on a calendar day."""

    __tablename__ = "quota_records"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    day: Mapped[date] = mapped_column(Date, primary_key=True, index=True)
    count: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)


class Database:
    """Singleton database connection manager."""

    _engine = None
    _session_factory = None

    @classmethod
    def get_engine(cls) -> Any:
        """Get or create the database engine."""
        if cls._engine is None:
            from discovery.config import get_settings

            settings = get_settings()
            database_url = settings.DATABASE_URL

            if not database_url:
                raise DatabaseError("DATABASE_URL is not configured")

            # SQLAlchemy requires postgresql:// instead of postgres://
            if database_url.startswith("postgres://"):
                database_url = database_url.replace("postgres://", "postgresql://", 1)

            try:
                cls._engine = create_engine_for_url(database_url, echo=settings.DEBUG)
                logger.info("Database engine created")
            except Exception as e:
                safe_url = redact_url(database_url)
                logger.error("Failed to create database engine", error=str(e), url=safe_url)
                raise DatabaseError("Failed to connect to database", details={"error": str(e), "url": safe_url}) from e
        return cls._engine

    @classmethod
    def get_session_factory(cls) -> sessionmaker[Session]:
        """Get or create the session factory."""
        if cls._session_factory is None:
            cls._session_factory = sessionmaker(bind=cls.get_engine(), expire_on_commit=False)
        return cls._session_factory

    @classmethod
    def create_tables(cls) -> None:
        """Create all database tables."""
        Base.metadata.create_all(cls.get_engine())
        logger.info("Database tables created")

    @classmethod
    def reset(cls) -> None:
        """Dispose the engine so the next call reconnects with fresh settings."""
        if cls._engine is not None:
            cls._engine.dispose()
        cls._engine = None
        cls._session_factory = None


def create_engine_for_url(database_url: str, echo: bool = False) -> Any:
    """
    Create an engine for the given URL.

    SQLite connections are shared between worker threads and open every
    transaction with BEGIN IMMEDIATE, so concurrent writers wait on the busy
    timeout instead of failing with a lock upgrade error.
    """
    if database_url.startswith("sqlite"):
        engine = create_engine(database_url, echo=echo, connect_args={"check_same_thread": False, "timeout": 30})

        @event.listens_for(engine, "connect")
        def _disable_pysqlite_transactions(dbapi_connection: Any, connection_record: Any) -> None:
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _begin_immediate(conn: Any) -> None:
            conn.exec_driver_sql("BEGIN IMMEDIATE")

        return engine
    return create_engine(database_url, pool_recycle=300, pool_pre_ping=True, echo=echo)


def redact_url(database_url: str) -> str:
    """Hide the password part of a database URL for logging."""
    if "@" not in database_url:
        return database_url
    try:
        part1, part2 = database_url.rsplit("@", 1)
        if ":" in part1:
            scheme_user, _ = part1.rsplit(":", 1)
            return f"{scheme_user}:***@{part2}"
    except ValueError:
        return "REDACTED_MALFORMED_URL"
    return database_url


def init_database() -> None:
    """Initialize the database and create tables."""
    Database.create_tables()


@contextmanager
def session_scope(session_factory: SessionFactory, operation: str) -> Iterator[Session]:
    """
    Provide a transactional scope around a series of operations.

    Commits on success and rolls back on failure. SQLAlchemy errors are
    converted to `DatabaseError` except `IntegrityError`, which callers use to
    detect lost insert races.

    Args:
        session_factory (SessionFactory): Factory producing new sessions.
        operation (str): Short name of the operation, used in logs.

    Yields:
        Session: An open session bound to a transaction.

    Raises:
        IntegrityError: On constraint violations.
        DatabaseError: On any other database failure.
    """
    session = session_factory()
    try:
        yield session
        session.commit()
    except IntegrityError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error("Database operation failed", operation=operation, error=str(e))
        raise DatabaseError(f"Database operation failed: {operation}", details={"error": str(e)}) from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
