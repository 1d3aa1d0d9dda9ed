"""Key-value document collections with single-document atomic writes.

Documents are plain dicts carrying an integer ``revision``. ``save`` is a
compare-and-set: it succeeds only if the stored revision still equals the
revision the caller read (an absent document counts as revision 0), and
returns the new revision.
"""

from __future__ import annotations

import copy
import threading
from pathlib import Path
from typing import Any, Protocol

import lmdb
import msgpack
import structlog

from schemasync.errors import RevisionConflict, UnstorableDocument

logger = structlog.get_logger(__name__)


class DocumentCollection(Protocol):
    """A named collection of documents keyed by string id."""

    def load(self, key: str) -> dict | None: ...

    def save(self, key: str, doc: dict, expected_revision: int) -> int: ...

    def delete(self, key: str) -> bool: ...

    def keys(self) -> list[str]: ...


def _revision_of(doc: dict | None) -> int:
    if not doc:
        return 0
    return int(doc.get("revision") or 0)


# =============================================================================
# In-process collection
# =============================================================================


class MemoryCollection:
    """Dict-backed collection for tests and ephemeral use."""

    def __init__(self):
        self._docs: dict[str, dict] = {}
        self._lock = threading.Lock()

    def load(self, key: str) -> dict | None:
        with self._lock:
            doc = self._docs.get(key)
            return copy.deepcopy(doc) if doc is not None else None

    def save(self, key: str, doc: dict, expected_revision: int) -> int:
        with self._lock:
            actual = _revision_of(self._docs.get(key))
            if actual != expected_revision:
                raise RevisionConflict(key, expected_revision, actual)
            stored = copy.deepcopy(doc)
            stored["revision"] = actual + 1
            self._docs[key] = stored
            return actual + 1

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._docs.pop(key, None) is not None

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._docs)


# =============================================================================
# LMDB collection
# =============================================================================


class LmdbDocumentStore:
    """LMDB environment holding one sub-database per collection."""

    # Sub-database names
    _DBS = [
        b"schemas",  # product_id -> SchemaDocument
        b"architectures",  # product_id -> Architecture
    ]

    def __init__(self, db_path: Path, map_size: int = 1024**3):
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self.env = lmdb.open(
            str(db_path),
            map_size=map_size,
            max_dbs=len(self._DBS) + 2,
            writemap=True,
            sync=False,
            metasync=False,
        )

        self._dbs: dict[bytes, Any] = {}
        with self.env.begin(write=True) as txn:
            for name in self._DBS:
                self._dbs[name] = self.env.open_db(name, txn=txn)

    def collection(self, name: str) -> LmdbCollection:
        db_name = name.encode("utf-8")
        if db_name not in self._dbs:
            raise KeyError(f"unknown collection: {name}")
        return LmdbCollection(self.env, self._dbs[db_name], name)

    def close(self) -> None:
        """Flush and close the LMDB environment."""
        self.env.sync(True)
        self.env.close()

    def __enter__(self) -> LmdbDocumentStore:
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class LmdbCollection:
    """One msgpack-encoded LMDB sub-database."""

    def __init__(self, env: lmdb.Environment, db: Any, name: str):
        self.env = env
        self.db = db
        self.name = name

    def load(self, key: str) -> dict | None:
        with self.env.begin(db=self.db) as txn:
            data = txn.get(key.encode("utf-8"))
        if data is None:
            return None
        return msgpack.unpackb(data)

    def save(self, key: str, doc: dict, expected_revision: int) -> int:
        raw_key = key.encode("utf-8")
        with self.env.begin(write=True, db=self.db) as txn:
            current = txn.get(raw_key)
            actual = _revision_of(
                msgpack.unpackb(current) if current is not None else None
            )
            if actual != expected_revision:
                # raising inside the block aborts the transaction
                raise RevisionConflict(key, expected_revision, actual)
            stored = dict(doc)
            stored["revision"] = actual + 1
            try:
                payload = msgpack.packb(stored)
            except (OverflowError, TypeError, ValueError) as e:
                raise UnstorableDocument(key, str(e)) from e
            txn.put(raw_key, payload)
        logger.debug(
            "document saved", collection=self.name, key=key, revision=actual + 1
        )
        return actual + 1

    def delete(self, key: str) -> bool:
        with self.env.begin(write=True, db=self.db) as txn:
            return txn.delete(key.encode("utf-8"))

    def keys(self) -> list[str]:
        with self.env.begin(db=self.db) as txn:
            keys = txn.cursor().iternext(values=False)
            return [k.decode("utf-8") for k in keys]
