"""Best-effort key-value blob storage for the learning snapshot."""
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .models import StorageItem

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """The storage backend could not complete a read or write."""


class KeyValueStorage:
    """Interface of the durable store: string values under string keys."""

    def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove_item(self, key: str) -> None:
        raise NotImplementedError


class MemoryStorage(KeyValueStorage):
    """Process-local storage; contents vanish with the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class SqlKeyValueStorage(KeyValueStorage):
    """Storage backed by the ``storage_items`` table.

    Each call opens and closes its own session from ``session_factory`` so
    the store can outlive any single request.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self.session_factory = session_factory

    def get_item(self, key: str) -> Optional[str]:
        db = self.session_factory()
        try:
            item = db.query(StorageItem).filter(StorageItem.key == key).first()
            return item.value if item else None
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read {key!r}: {e}") from e
        finally:
            db.close()

    def set_item(self, key: str, value: str) -> None:
        now_utc = datetime.now(timezone.utc).isoformat()
        db = self.session_factory()
        try:
            item = db.query(StorageItem).filter(StorageItem.key == key).first()
            if item:
                item.value = value
                item.updated_ts_utc = now_utc
            else:
                db.add(StorageItem(key=key, value=value, updated_ts_utc=now_utc))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageError(f"Failed to write {key!r}: {e}") from e
        finally:
            db.close()

    def remove_item(self, key: str) -> None:
        db = self.session_factory()
        try:
            deleted = db.query(StorageItem).filter(StorageItem.key == key).delete()
            db.commit()
            logger.debug("Removed %d storage item(s) under %r", deleted, key)
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageError(f"Failed to remove {key!r}: {e}") from e
        finally:
            db.close()
