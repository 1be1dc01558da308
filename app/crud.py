"""
CRUD operations (Create, Read, Update, Delete)
Database query functions for named caches and their entries
"""
from datetime import datetime
from sqlalchemy.orm import Session
from app.models import NamedCacheRecord, CacheEntryRecord
from typing import Optional, List


# ===== NAMED CACHES =====

def get_cache_by_name(db: Session, name: str) -> Optional[NamedCacheRecord]:
    """
    Get a named cache record
    """
    return db.query(NamedCacheRecord).filter(NamedCacheRecord.name == name).first()


def get_or_create_cache(db: Session, name: str) -> NamedCacheRecord:
    """
    Get a named cache, creating it if it does not exist yet
    """
    cache = get_cache_by_name(db, name)
    if cache is None:
        cache = NamedCacheRecord(name=name)
        db.add(cache)
        db.flush()
    return cache


def list_cache_names(db: Session) -> List[str]:
    """
    Get all cache names in creation order
    """
    rows = db.query(NamedCacheRecord.name).order_by(NamedCacheRecord.id).all()
    return [row[0] for row in rows]


def delete_cache(db: Session, name: str) -> bool:
    """
    Delete a named cache and all of its entries
    """
    cache = get_cache_by_name(db, name)
    if cache is None:
        return False
    db.query(CacheEntryRecord).filter(CacheEntryRecord.cache_id == cache.id).delete()
    db.delete(cache)
    return True


# ===== ENTRIES =====

def get_entry(db: Session, cache_name: str, request_key: str) -> Optional[CacheEntryRecord]:
    """
    Get the entry stored for a request key in a named cache
    """
    return (
        db.query(CacheEntryRecord)
        .join(NamedCacheRecord)
        .filter(NamedCacheRecord.name == cache_name)
        .filter(CacheEntryRecord.request_key == request_key)
        .first()
    )


def find_entry(db: Session, request_key: str) -> Optional[CacheEntryRecord]:
    """
    Find an entry for a request key in any cache, oldest cache first
    """
    return (
        db.query(CacheEntryRecord)
        .join(NamedCacheRecord)
        .filter(CacheEntryRecord.request_key == request_key)
        .order_by(NamedCacheRecord.id)
        .first()
    )


def get_entries(db: Session, cache_name: str) -> List[CacheEntryRecord]:
    """
    Get all entries of a named cache in insertion order
    """
    return (
        db.query(CacheEntryRecord)
        .join(NamedCacheRecord)
        .filter(NamedCacheRecord.name == cache_name)
        .order_by(CacheEntryRecord.id)
        .all()
    )


def upsert_entry(
    db: Session,
    cache_name: str,
    request_key: str,
    status: int,
    headers: str,
    body: bytes,
    url: str,
    stored_at: Optional[datetime] = None,
) -> CacheEntryRecord:
    """
    Store a response for a request key, overwriting any previous entry
    """
    cache = get_or_create_cache(db, cache_name)
    entry = (
        db.query(CacheEntryRecord)
        .filter(CacheEntryRecord.cache_id == cache.id)
        .filter(CacheEntryRecord.request_key == request_key)
        .first()
    )
    if entry is None:
        entry = CacheEntryRecord(cache_id=cache.id, request_key=request_key)
        db.add(entry)
    entry.status = status
    entry.headers = headers
    entry.body = body
    entry.url = url
    entry.stored_at = stored_at or datetime.utcnow()
    return entry


def delete_entry(db: Session, cache_name: str, request_key: str) -> bool:
    """
    Delete the entry for a request key from a named cache
    """
    entry = get_entry(db, cache_name, request_key)
    if entry is None:
        return False
    db.delete(entry)
    return True
