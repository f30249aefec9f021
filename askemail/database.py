"""
Database configuration and manager for AskEmail
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from sqlalchemy import Column, DateTime, Integer, String, Text, create_engine, text
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .models import MemoryRecord

logger = logging.getLogger(__name__)

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in every DateTime column"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ============================================================================
# SQLAlchemy Models
# ============================================================================

class EmailLogDB(Base):
    """SQLAlchemy model for emails table (one row per delivered reply)"""
    __tablename__ = "emails"

    id = Column(Integer, primary_key=True)
    from_address = Column(String(320), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)


class MemoryDB(Base):
    """SQLAlchemy model for memories table"""
    __tablename__ = "memories"

    id = Column(Integer, primary_key=True)
    email = Column(String(320), nullable=False, index=True)
    request = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    indexed_at = Column(DateTime, nullable=True, index=True)


def _to_record(memory: MemoryDB) -> MemoryRecord:
    return MemoryRecord(
        id=memory.id,
        email=memory.email,
        request=memory.request,
        content=memory.content,
        created_at=memory.created_at,
        indexed_at=memory.indexed_at,
    )


# ============================================================================
# Database Manager
# ============================================================================

class DatabaseManager:
    """Manages database operations for reply counters and memories"""

    def __init__(self, database_url: str):
        """
        Initialize database manager

        Args:
            database_url: SQLAlchemy connection string
        """
        engine_options = {"pool_pre_ping": True, "echo": False}
        if not database_url.startswith("sqlite"):
            engine_options.update(pool_size=10, max_overflow=20)

        self.engine = create_engine(database_url, **engine_options)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        logger.info(f"Database engine created: {database_url.split('@')[1] if '@' in database_url else database_url}")

    def get_session(self) -> Session:
        """Get a new database session"""
        return self.SessionLocal()

    def init_tables(self):
        """Initialize database tables"""
        try:
            Base.metadata.create_all(bind=self.engine)
            logger.info("Database tables initialized successfully")
        except Exception as e:
            logger.error(f"Error initializing database: {e}")
            raise

    def close(self):
        """Close database engine"""
        self.engine.dispose()
        logger.info("Database engine disposed")

    def check_connection(self) -> bool:
        """Check if database connection is working"""
        try:
            with self.get_session() as session:
                session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Database connection check failed: {e}")
            return False

    # ========================================================================
    # Reply counter
    # ========================================================================

    def count_emails_today(self, from_address: str, now: Optional[datetime] = None) -> int:
        """
        Count replies recorded for a sender on the current UTC day

        Args:
            from_address: Sender address
            now: Reference time in naive UTC (defaults to the current time)
        """
        now = now or utcnow()
        day_start = datetime(now.year, now.month, now.day)
        day_end = day_start + timedelta(days=1)

        with self.get_session() as session:
            return session.query(EmailLogDB).filter(
                EmailLogDB.from_address == from_address,
                EmailLogDB.created_at >= day_start,
                EmailLogDB.created_at < day_end,
            ).count()

    def record_email(self, from_address: str, created_at: Optional[datetime] = None) -> None:
        """Record one delivered reply for a sender"""
        with self.get_session() as session:
            session.add(EmailLogDB(from_address=from_address, created_at=created_at or utcnow()))
            session.commit()

    # ========================================================================
    # Memories
    # ========================================================================

    def create_memory(self, email: str, request: str, content: str) -> MemoryRecord:
        """Insert a new, not yet indexed memory and return it with its id"""
        with self.get_session() as session:
            memory = MemoryDB(email=email, request=request, content=content)
            session.add(memory)
            session.commit()
            session.refresh(memory)
            logger.info(f"Created memory {memory.id} for {email}")
            return _to_record(memory)

    def mark_memory_indexed(self, memory_id: int) -> bool:
        """Mark a memory as present in the vector index"""
        with self.get_session() as session:
            memory = session.query(MemoryDB).filter_by(id=memory_id).first()

            if not memory:
                logger.warning(f"Memory {memory_id} not found")
                return False

            memory.indexed_at = utcnow()
            session.commit()
            return True

    def get_memories(self, ids: Iterable[int], email: str) -> List[MemoryRecord]:
        """
        Fetch memories by id, restricted to one owner

        Rows are returned in the order of ``ids``; unknown ids are skipped.
        """
        ids = list(ids)
        if not ids:
            return []

        with self.get_session() as session:
            rows = session.query(MemoryDB).filter(
                MemoryDB.id.in_(ids),
                MemoryDB.email == email,
            ).all()

            by_id = {row.id: _to_record(row) for row in rows}
            return [by_id[memory_id] for memory_id in ids if memory_id in by_id]

    def get_unindexed_memories(self, limit: int = 100) -> List[MemoryRecord]:
        """Memories persisted but never upserted into the vector index"""
        with self.get_session() as session:
            rows = session.query(MemoryDB).filter(
                MemoryDB.indexed_at.is_(None)
            ).order_by(MemoryDB.id).limit(limit).all()

            return [_to_record(row) for row in rows]

    def count_unindexed_memories(self) -> int:
        with self.get_session() as session:
            return session.query(MemoryDB).filter(MemoryDB.indexed_at.is_(None)).count()
