import copy
import contextvars
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from streamline.core.exceptions import AlreadyExistsError
from streamline.domain.models.base import Storable, StorableKey
from streamline.infra.storage.base import StorageManager, TransactionManager

logger = logging.getLogger(__name__)

# Undo actions recorded by the transaction bound to the current request, or None.
_undo_log: contextvars.ContextVar[Optional[List[Callable[[], None]]]] = contextvars.ContextVar(
    "streamline_memory_undo_log", default=None
)


class InMemoryStorageManager(StorageManager, TransactionManager):
    """
    Dict-backed storage keyed by namespace and primary key.
    Thread-safe for individual operations (re-entrant lock).

    Ids handed out by `next_id` stay above every id stored so far, including
    ids chosen by callers of `add_or_update`.

    Transactions keep an undo log per request context; rollback replays it
    newest-first. There is no isolation between concurrent transactions.
    """

    def __init__(self) -> None:
        super().__init__()
        self._data: Dict[str, Dict[tuple, Dict[str, Any]]] = {}
        self._last_ids: Dict[str, int] = {}
        self._lock = threading.RLock()

    # -------- CRUD --------

    def add(self, storable: Storable) -> None:
        key = storable.storable_key()
        with self._lock:
            if key.primary_key in self._rows(key.namespace):
                raise AlreadyExistsError(f"{key.namespace} {key.primary_key} already exists")
            self._put(key, storable.to_storage())

    def add_or_update(self, storable: Storable) -> None:
        key = storable.storable_key()
        with self._lock:
            self._rows(key.namespace)
            self._put(key, storable.to_storage())

    def remove(self, key: StorableKey) -> Optional[Storable]:
        with self._lock:
            rows = self._rows(key.namespace)
            old = rows.pop(key.primary_key, None)
            if old is None:
                return None
            self._record(lambda: rows.__setitem__(key.primary_key, old))
            return self._load(key.namespace, old)

    def get(self, key: StorableKey) -> Optional[Storable]:
        with self._lock:
            row = self._rows(key.namespace).get(key.primary_key)
            return self._load(key.namespace, row) if row is not None else None

    def list(self, namespace: str) -> List[Storable]:
        with self._lock:
            rows = list(self._rows(namespace).values())
        return [self._load(namespace, row) for row in rows]

    def next_id(self, namespace: str) -> int:
        with self._lock:
            self._rows(namespace)
            self._last_ids[namespace] = self._last_ids.get(namespace, 0) + 1
            return self._last_ids[namespace]

    # -------- transactions --------

    def begin_transaction(self) -> None:
        _undo_log.set([])

    def commit_transaction(self) -> None:
        _undo_log.set(None)

    def rollback_transaction(self) -> None:
        log = _undo_log.get()
        _undo_log.set(None)
        if not log:
            return
        logger.debug("Rolling back %d in-memory change(s)", len(log))
        with self._lock:
            for undo in reversed(log):
                undo()

    # -------- helpers --------

    def _rows(self, namespace: str) -> Dict[tuple, Dict[str, Any]]:
        """Rows of a registered namespace; raises `StorageError` for unknown ones."""
        self.storable_class(namespace)
        return self._data.setdefault(namespace, {})

    def _put(self, key: StorableKey, row: Dict[str, Any]) -> None:
        rows = self._data[key.namespace]
        if key.primary_key in rows:
            old = rows[key.primary_key]
            self._record(lambda: rows.__setitem__(key.primary_key, old))
        else:
            self._record(lambda: rows.pop(key.primary_key, None))
        rows[key.primary_key] = row
        stored_id = key.primary_key[0]
        if isinstance(stored_id, int) and stored_id > self._last_ids.get(key.namespace, 0):
            self._last_ids[key.namespace] = stored_id

    @staticmethod
    def _record(undo: Callable[[], None]) -> None:
        log = _undo_log.get()
        if log is not None:
            log.append(undo)

    def _load(self, namespace: str, row: Dict[str, Any]) -> Storable:
        return self.storable_class(namespace).from_storage(copy.deepcopy(row))
