"""
SQLAlchemy-backed named cache storage.

Caches persist across process restarts until deleted by an activation's
generational cleanup, matching the browser's cache storage semantics.
"""
import json
import logging
import threading
from contextlib import contextmanager
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app import crud
from app.db import init_db, make_engine, make_session_factory
from app.models import CacheEntryRecord

from .core import CachedResponse, OfflineRequest
from .exceptions import StorageError

logger = logging.getLogger("offline.sql_storage")


def _to_response(entry: CacheEntryRecord) -> CachedResponse:
    return CachedResponse(
        status=entry.status,
        body=entry.body or b"",
        headers=json.loads(entry.headers or "{}"),
        url=entry.url or "",
        stored_at=entry.stored_at,
    )


class SqlNamedCache:
    """A named cache whose entries live in the ``cache_entries`` table."""

    def __init__(self, name: str, storage: "SqlCacheStorage"):
        self.name = name
        self._storage = storage

    def match(self, request: OfflineRequest) -> Optional[CachedResponse]:
        with self._storage.session() as db:
            entry = crud.get_entry(db, self.name, request.cache_key)
            return _to_response(entry) if entry is not None else None

    def put(self, request: OfflineRequest, response: CachedResponse) -> None:
        with self._storage.session() as db:
            crud.upsert_entry(
                db,
                cache_name=self.name,
                request_key=request.cache_key,
                status=response.status,
                headers=json.dumps(dict(response.headers)),
                body=response.body,
                url=response.url,
            )
        logger.debug(f"PUT {self.name}: {request.cache_key} [{response.status}]")

    def delete(self, request: OfflineRequest) -> bool:
        with self._storage.session() as db:
            return crud.delete_entry(db, self.name, request.cache_key)

    def keys(self) -> List[str]:
        with self._storage.session() as db:
            return [entry.request_key for entry in crud.get_entries(db, self.name)]

    def entries(self) -> List[Tuple[str, CachedResponse]]:
        with self._storage.session() as db:
            return [
                (entry.request_key, _to_response(entry))
                for entry in crud.get_entries(db, self.name)
            ]

    def __len__(self) -> int:
        return len(self.keys())


class SqlCacheStorage:
    """
    Cache storage persisted through SQLAlchemy.

    Each public call runs in its own transaction; a process-wide lock
    serializes writers so SQLite never sees concurrent write transactions.
    """

    def __init__(self, database_url: str):
        self.database_url = database_url
        self._engine = make_engine(database_url)
        init_db(self._engine)
        self._session_factory: sessionmaker = make_session_factory(self._engine)
        self._lock = threading.RLock()

    @contextmanager
    def session(self):
        """Transactional session; SQLAlchemy failures become StorageError."""
        with self._lock:
            db: Session = self._session_factory()
            try:
                yield db
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Cache storage failure: {e}")
                raise StorageError(str(e)) from e
            finally:
                db.close()

    def open(self, name: str) -> SqlNamedCache:
        with self.session() as db:
            crud.get_or_create_cache(db, name)
        return SqlNamedCache(name, self)

    def has(self, name: str) -> bool:
        with self.session() as db:
            return crud.get_cache_by_name(db, name) is not None

    def keys(self) -> List[str]:
        with self.session() as db:
            return crud.list_cache_names(db)

    def delete(self, name: str) -> bool:
        with self.session() as db:
            deleted = crud.delete_cache(db, name)
        if deleted:
            logger.info(f"Deleted cache: {name}")
        return deleted

    def match(self, request: OfflineRequest) -> Optional[CachedResponse]:
        with self.session() as db:
            entry = crud.find_entry(db, request.cache_key)
            return _to_response(entry) if entry is not None else None

    def dispose(self) -> None:
        self._engine.dispose()
