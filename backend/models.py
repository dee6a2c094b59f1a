"""
Database models for MonkeyBets
SQLAlchemy ORM with PostgreSQL (SQLite works for local runs and tests)
"""

from sqlalchemy import (
    create_engine,
    Column,
    String,
    Integer,
    DateTime,
    Boolean,
    ForeignKey,
    CheckConstraint,
)
from sqlalchemy.orm import declarative_base, sessionmaker, relationship
from sqlalchemy.pool import StaticPool
from datetime import datetime
import logging
import os
import uuid
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load .env before reading DATABASE_URL
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "postgresql://postgres@127.0.0.1:5432/monkeybets")

if DATABASE_URL.startswith("sqlite"):
    # One shared connection so in-memory databases survive across sessions/threads
    engine = create_engine(
        DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
else:
    # pool_pre_ping=True keeps connections alive across idle periods
    engine = create_engine(DATABASE_URL, pool_pre_ping=True, echo=False)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


# Dependency for FastAPI
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _new_id() -> str:
    return str(uuid.uuid4())


class Monkey(Base):
    """A player, identified by phone number"""

    __tablename__ = "monkeys"

    id = Column(String(36), primary_key=True, default=_new_id)
    phone = Column(String(20), unique=True, nullable=False, index=True)  # "+15551234567"
    phone_verified = Column(Boolean, default=False, nullable=False)

    props = relationship("Prop", back_populates="creator")
    wagers = relationship("Wager", back_populates="bettor")

    created_at = Column(DateTime, default=datetime.utcnow)


class Prop(Base):
    """A yes/no proposition that monkeys wager bananas on"""

    __tablename__ = "props"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(200), nullable=False)
    expiry_date = Column(DateTime, nullable=False, index=True)  # naive UTC
    creator_id = Column(String(36), ForeignKey("monkeys.id"), nullable=False, index=True)

    # NULL until the creator settles it; True = "Yes" happened
    result = Column(Boolean, nullable=True)
    resolved_at = Column(DateTime)

    # Soft delete: row stays for anyone already holding a wager or link
    deleted_at = Column(DateTime, nullable=True, index=True)

    creator = relationship("Monkey", back_populates="props")
    wagers = relationship("Wager", back_populates="prop")

    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class Wager(Base):
    """Bananas staked by one monkey on one side of a prop"""

    __tablename__ = "wagers"

    id = Column(String(36), primary_key=True, default=_new_id)
    prop_id = Column(String(36), ForeignKey("props.id"), nullable=False, index=True)
    bettor_id = Column(String(36), ForeignKey("monkeys.id"), nullable=False, index=True)
    prediction = Column(Boolean, nullable=False)  # True = "Yes"
    bananas = Column(Integer, nullable=False)

    prop = relationship("Prop", back_populates="wagers")
    bettor = relationship("Monkey", back_populates="wagers")

    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    __table_args__ = (CheckConstraint("bananas > 0", name="ck_wagers_bananas_positive"),)


class MonkeySession(Base):
    """Server-side sign-in session; the token is held by the client"""

    __tablename__ = "monkey_sessions"

    token = Column(String(64), primary_key=True)
    monkey_id = Column(String(36), ForeignKey("monkeys.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    last_seen_at = Column(DateTime, default=datetime.utcnow)

    monkey = relationship("Monkey")


# Create all tables
def init_db():
    """Initialize database tables"""
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
