import json
from enum import Enum
from typing import Any, Optional

import redis
import structlog
from sqlalchemy.orm import Session

from .models import KeyValueORM
from .metrics import storage_operations_total, transaction_rollbacks_total
from ..config import settings

logger = structlog.get_logger()

_MISSING = object()

_redis_client: Optional[redis.Redis] = None


def get_redis() -> redis.Redis:
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True
        )
    return _redis_client


class Storage:
    """Key-value persistence of JSON documents."""

    backend = "abstract"

    def get(self, key: str, default: Any = None) -> Any: ...
    def set(self, key: str, value: Any) -> None: ...
    def delete(self, key: str) -> None: ...
    def keys(self, prefix: str = "") -> list[str]: ...

    def transaction(self, *keys: str) -> "Transaction":
        return Transaction(self, keys)

    def _count(self, operation: str) -> None:
        storage_operations_total.labels(backend=self.backend, operation=operation).inc()


class MemoryStorage(Storage):
    backend = "memory"

    def __init__(self):
        self._data: dict[str, str] = {}

    def get(self, key: str, default: Any = None) -> Any:
        self._count("get")
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else default

    def set(self, key: str, value: Any) -> None:
        self._count("set")
        self._data[key] = json.dumps(value, ensure_ascii=False)

    def delete(self, key: str) -> None:
        self._count("delete")
        self._data.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self._data if k.startswith(prefix))


class SqlStorage(Storage):
    backend = "sql"

    def __init__(self, db: Session):
        self.db = db

    def get(self, key: str, default: Any = None) -> Any:
        self._count("get")
        row = self.db.get(KeyValueORM, key, populate_existing=True)
        return json.loads(row.value) if row else default

    def set(self, key: str, value: Any) -> None:
        self._count("set")
        payload = json.dumps(value, ensure_ascii=False)
        row = self.db.get(KeyValueORM, key)
        if row is None:
            self.db.add(KeyValueORM(key=key, value=payload, version=1))
        else:
            row.value = payload
            row.version += 1
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def delete(self, key: str) -> None:
        self._count("delete")
        row = self.db.get(KeyValueORM, key)
        if row is not None:
            self.db.delete(row)
            self.db.commit()

    def keys(self, prefix: str = "") -> list[str]:
        rows = (self.db.query(KeyValueORM.key)
                .filter(KeyValueORM.key.startswith(prefix))
                .order_by(KeyValueORM.key).all())
        return [r[0] for r in rows]


class RedisStorage(Storage):
    backend = "redis"
    namespace = "lms:"

    def __init__(self, client: redis.Redis):
        self.client = client

    def get(self, key: str, default: Any = None) -> Any:
        self._count("get")
        value = self.client.get(self.namespace + key)
        return json.loads(value) if value is not None else default

    def set(self, key: str, value: Any) -> None:
        self._count("set")
        self.client.set(self.namespace + key, json.dumps(value, ensure_ascii=False))

    def delete(self, key: str) -> None:
        self._count("delete")
        self.client.delete(self.namespace + key)

    def keys(self, prefix: str = "") -> list[str]:
        found = self.client.scan_iter(match=f"{self.namespace}{prefix}*")
        return sorted(k[len(self.namespace):] for k in found)


class TransactionState(str, Enum):
    PENDING = "pending"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class Transaction:
    """Snapshot of a set of keys that is either kept or restored as a whole.

    ``begin`` captures the current documents (PENDING). Writes go straight to
    the storage so readers see the new value while pending. ``commit`` drops
    the snapshot; ``rollback`` writes every captured document back, deleting
    keys that did not exist when the transaction began.
    """

    def __init__(self, storage: Storage, keys):
        self.storage = storage
        self.keys = tuple(dict.fromkeys(keys))
        self.state: TransactionState | None = None
        self._snapshot: dict[str, Any] = {}

    def begin(self) -> "Transaction":
        self._snapshot = {key: self.storage.get(key, _MISSING) for key in self.keys}
        self.state = TransactionState.PENDING
        return self

    def commit(self) -> None:
        if self.state is not TransactionState.PENDING:
            raise RuntimeError(f"cannot commit a {self.state} transaction")
        self._snapshot = {}
        self.state = TransactionState.COMMITTED

    def rollback(self) -> None:
        if self.state is not TransactionState.PENDING:
            raise RuntimeError(f"cannot roll back a {self.state} transaction")
        for key, value in self._snapshot.items():
            if value is _MISSING:
                self.storage.delete(key)
            else:
                self.storage.set(key, value)
        self._snapshot = {}
        self.state = TransactionState.ROLLED_BACK
        transaction_rollbacks_total.inc()

    def __enter__(self) -> "Transaction":
        return self.begin()

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            self.commit()
        else:
            logger.warning("transaction_rolled_back", keys=list(self.keys), error=str(exc))
            self.rollback()
        return False


def build_storage(db: Session) -> Storage:
    if settings.STORAGE_BACKEND == "redis":
        return RedisStorage(get_redis())
    if settings.STORAGE_BACKEND == "memory":
        return _shared_memory
    return SqlStorage(db)


_shared_memory = MemoryStorage()
