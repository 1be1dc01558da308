"""
Database models for persisted named caches
SQLAlchemy ORM models for caches and their request/response entries
"""
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Text, LargeBinary, DateTime, ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class NamedCacheRecord(Base):
    """
    Named cache - one record per cache name (e.g., postpartum-recovery-v2)
    Deleting a cache removes all of its entries
    """
    __tablename__ = "named_caches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, unique=True, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    entries = relationship(
        "CacheEntryRecord",
        back_populates="cache",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<NamedCacheRecord(id={self.id}, name='{self.name}')>"


class CacheEntryRecord(Base):
    """
    Cache entry - the most recent response stored for a request key
    One record per request key per cache
    """
    __tablename__ = "cache_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    cache_id = Column(Integer, ForeignKey("named_caches.id", ondelete="CASCADE"), nullable=False)
    request_key = Column(String, nullable=False, index=True)
    status = Column(Integer, nullable=False)
    headers = Column(Text, nullable=False, default="{}")  # JSON object
    body = Column(LargeBinary, nullable=False, default=b"")
    url = Column(String, nullable=False, default="")
    stored_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    cache = relationship("NamedCacheRecord", back_populates="entries")

    __table_args__ = (
        UniqueConstraint("cache_id", "request_key", name="uq_cache_request"),
    )

    def __repr__(self):
        return f"<CacheEntryRecord(cache_id={self.cache_id}, key='{self.request_key}', status={self.status})>"
