"""Relational storage provider built on SQLAlchemy Core.

Every record lives in one ``storables`` table as a JSON document keyed by
``(namespace, storable_key)``; ids come from a ``storable_sequences`` table.
"""
from __future__ import annotations

import contextlib
import contextvars
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import (
    JSON,
    Column,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    delete,
    event,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import StaticPool

from streamline.core.exceptions import AlreadyExistsError, StorageError
from streamline.domain.models.base import Storable, StorableKey
from streamline.infra.storage.base import StorageManager, TransactionManager

logger = logging.getLogger(__name__)

DEFAULT_DB_URL = "sqlite:///data/streamline.db"
SQLITE_BUSY_TIMEOUT_SECONDS = 30

metadata = MetaData()

storables = Table(
    "storables",
    metadata,
    Column("namespace", String(64), primary_key=True),
    Column("storable_key", String(255), primary_key=True),
    Column("body", JSON, nullable=False),
)

sequences = Table(
    "storable_sequences",
    metadata,
    Column("namespace", String(64), primary_key=True),
    Column("last_id", Integer, nullable=False),
)


@dataclass
class _Unit:
    """Request transaction; the connection is opened on first use."""

    connection: Optional[Connection] = None


_bound_unit: contextvars.ContextVar[Optional[_Unit]] = contextvars.ContextVar(
    "streamline_sql_unit", default=None
)


def _ensure_sqlite_parent_dir(db_url: str) -> None:
    # sqlite:///relative/path.db or sqlite:////abs/path.db
    if not db_url.startswith("sqlite:"):
        return
    if db_url.startswith("sqlite:////"):
        path = db_url.replace("sqlite:////", "/", 1)
    elif db_url.startswith("sqlite:///"):
        path = db_url.replace("sqlite:///", "", 1)
    else:
        return
    if path in (":memory:", ""):
        return
    Path(path).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)


def _begin_immediate(engine: Engine) -> None:
    """Take the SQLite write lock when a transaction starts, so writers queue on the busy timeout."""

    @event.listens_for(engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_db_engine(db_url: str) -> Engine:
    _ensure_sqlite_parent_dir(db_url)
    kwargs: Dict[str, Any] = {"future": True, "pool_pre_ping": True}
    is_sqlite = db_url.startswith("sqlite:")
    if is_sqlite:
        kwargs["connect_args"] = {"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT_SECONDS}
        if db_url in ("sqlite://", "sqlite:///:memory:"):
            # a single shared connection, otherwise every checkout sees an empty db
            kwargs["poolclass"] = StaticPool
    engine = create_engine(db_url, **kwargs)
    if is_sqlite:
        _begin_immediate(engine)
    return engine


def _encode_key(key: StorableKey) -> str:
    return json.dumps(list(key.primary_key))


class SqlStorageManager(StorageManager, TransactionManager):
    """StorageManager over any SQLAlchemy-supported database.

    Properties
    ----------
    db_url : str
        SQLAlchemy URL, defaults to ``sqlite:///data/streamline.db``.
    auto_create_schema : bool
        Create the tables on ``init`` (default True).

    ``begin_transaction`` does no I/O: the request's connection is opened by
    the first storage call, on whichever thread makes it. On SQLite every
    transaction starts with ``BEGIN IMMEDIATE``, so concurrent requests are
    serialized by the database lock instead of failing on a lock upgrade.
    """

    def __init__(self) -> None:
        super().__init__()
        self.engine: Engine | None = None

    def init(self, properties: Dict[str, Any]) -> None:
        db_url = properties.get("db_url") or DEFAULT_DB_URL
        self.engine = create_db_engine(db_url)
        if properties.get("auto_create_schema", True):
            metadata.create_all(self.engine)
        logger.info("SQL storage initialised at %s", self.engine.url.render_as_string(hide_password=True))

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()

    # ------------------------------------------------------------------ #
    # connection handling                                                #
    # ------------------------------------------------------------------ #
    def _require_engine(self) -> Engine:
        if self.engine is None:
            raise StorageError("SqlStorageManager used before init()")
        return self.engine

    @contextlib.contextmanager
    def _connection(self) -> Iterator[Connection]:
        unit = _bound_unit.get()
        if unit is None:
            with self._require_engine().begin() as conn:
                yield conn
            return
        if unit.connection is None:
            conn = self._require_engine().connect()
            conn.begin()
            unit.connection = conn
        yield unit.connection

    def begin_transaction(self) -> None:
        _bound_unit.set(_Unit())

    def commit_transaction(self) -> None:
        self._finish(commit=True)

    def rollback_transaction(self) -> None:
        self._finish(commit=False)

    def _finish(self, commit: bool) -> None:
        unit = _bound_unit.get()
        _bound_unit.set(None)
        if unit is None or unit.connection is None:
            return
        conn, unit.connection = unit.connection, None
        try:
            if commit:
                conn.commit()
            else:
                conn.rollback()
        finally:
            conn.close()

    # ------------------------------------------------------------------ #
    # CRUD                                                               #
    # ------------------------------------------------------------------ #
    def add(self, storable: Storable) -> None:
        key = storable.storable_key()
        self.storable_class(key.namespace)
        with self._connection() as conn:
            exists = conn.execute(
                select(storables.c.storable_key).where(
                    storables.c.namespace == key.namespace,
                    storables.c.storable_key == _encode_key(key),
                )
            ).first()
            if exists is not None:
                raise AlreadyExistsError(f"{key.namespace} {key.primary_key} already exists")
            try:
                conn.execute(
                    insert(storables).values(
                        namespace=key.namespace,
                        storable_key=_encode_key(key),
                        body=storable.to_storage(),
                    )
                )
            except IntegrityError as exc:
                raise AlreadyExistsError(f"{key.namespace} {key.primary_key} already exists") from exc
            self._advance_sequence(conn, key)

    def add_or_update(self, storable: Storable) -> None:
        key = storable.storable_key()
        self.storable_class(key.namespace)
        with self._connection() as conn:
            result = conn.execute(
                update(storables)
                .where(
                    storables.c.namespace == key.namespace,
                    storables.c.storable_key == _encode_key(key),
                )
                .values(body=storable.to_storage())
            )
            if result.rowcount == 0:
                conn.execute(
                    insert(storables).values(
                        namespace=key.namespace,
                        storable_key=_encode_key(key),
                        body=storable.to_storage(),
                    )
                )
            self._advance_sequence(conn, key)

    def remove(self, key: StorableKey) -> Optional[Storable]:
        with self._connection() as conn:
            existing = self._get(conn, key)
            if existing is None:
                return None
            conn.execute(
                delete(storables).where(
                    storables.c.namespace == key.namespace,
                    storables.c.storable_key == _encode_key(key),
                )
            )
            return existing

    def get(self, key: StorableKey) -> Optional[Storable]:
        with self._connection() as conn:
            return self._get(conn, key)

    def list(self, namespace: str) -> List[Storable]:
        cls = self.storable_class(namespace)
        with self._connection() as conn:
            rows = conn.execute(
                select(storables.c.body)
                .where(storables.c.namespace == namespace)
                .order_by(storables.c.storable_key)
            ).scalars().all()
        return [cls.from_storage(body) for body in rows]

    def next_id(self, namespace: str) -> int:
        self.storable_class(namespace)
        with self._connection() as conn:
            self._last_id(conn, namespace)
            conn.execute(
                update(sequences)
                .where(sequences.c.namespace == namespace)
                .values(last_id=sequences.c.last_id + 1)
            )
            return conn.execute(
                select(sequences.c.last_id).where(sequences.c.namespace == namespace)
            ).scalar_one()

    # ------------------------------------------------------------------ #
    # helpers                                                            #
    # ------------------------------------------------------------------ #
    def _get(self, conn: Connection, key: StorableKey) -> Optional[Storable]:
        cls = self.storable_class(key.namespace)
        body = conn.execute(
            select(storables.c.body).where(
                storables.c.namespace == key.namespace,
                storables.c.storable_key == _encode_key(key),
            )
        ).scalar()
        if body is None:
            return None
        return cls.from_storage(body)

    def _last_id(self, conn: Connection, namespace: str) -> int:
        """Current sequence value, creating the row from the stored ids when missing."""
        last = conn.execute(
            select(sequences.c.last_id).where(sequences.c.namespace == namespace)
        ).scalar()
        if last is None:
            last = self._max_stored_id(conn, namespace)
            conn.execute(insert(sequences).values(namespace=namespace, last_id=last))
        return last

    def _advance_sequence(self, conn: Connection, key: StorableKey) -> None:
        stored_id = key.primary_key[0]
        if not isinstance(stored_id, int):
            return
        if stored_id > self._last_id(conn, key.namespace):
            conn.execute(
                update(sequences)
                .where(sequences.c.namespace == key.namespace)
                .values(last_id=stored_id)
            )

    @staticmethod
    def _max_stored_id(conn: Connection, namespace: str) -> int:
        keys = conn.execute(
            select(storables.c.storable_key).where(storables.c.namespace == namespace)
        ).scalars().all()
        return max((json.loads(k)[0] for k in keys), default=0)
