# storefront/store.py
"""
Document-style access to the local catalog.

Products and collections are stored as JSON bodies in one ``documents`` table,
one logical collection name per kind. The API mirrors the handful of document
database calls the catalog needs: filtered find, insert, update with
set / set-on-insert / push and optional upsert, delete, and a group-by on the
logical ``id`` for duplicate detection.

Filters are plain dicts. A value is matched by equality, or by membership
when given as ``{"$in": [...]}``. ``"_id"`` addresses the storage id, dotted
keys address nested fields.
"""

import copy
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, NamedTuple, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import StoreError
from .models import Document

PRODUCTS = "products"
COLLECTIONS = "collections"

_MISSING = object()
_MAX_PK = 2**63 - 1


class UpdateResult(NamedTuple):
    matched_count: int
    modified_count: int
    upserted_id: Optional[str] = None


class DuplicateGroup(NamedTuple):
    id: str
    count: int
    docs: List[Dict[str, Any]]  # [{"_id": ..., "updatedAt": ...}] in storage order


def _get_path(doc: Dict[str, Any], path: str) -> Any:
    cur: Any = doc
    for part in path.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return _MISSING
        cur = cur[part]
    return cur


def _set_path(doc: Dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    cur = doc
    for part in parts[:-1]:
        nxt = cur.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            cur[part] = nxt
        cur = nxt
    cur[parts[-1]] = value


def _push_path(doc: Dict[str, Any], path: str, item: Any) -> None:
    current = _get_path(doc, path)
    items = list(current) if isinstance(current, list) else []
    items.append(item)
    _set_path(doc, path, items)


def _as_pk(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        pk = value
    else:
        text = str(value).strip()
        if not (text.isascii() and text.isdigit()):
            return None
        pk = int(text)
    # Out-of-range keys cannot exist in the table
    return pk if 0 <= pk <= _MAX_PK else None


def _matches(doc: Dict[str, Any], filter: Dict[str, Any]) -> bool:
    for key, cond in filter.items():
        value = _get_path(doc, key)
        if key == "_id":
            if isinstance(cond, dict) and "$in" in cond:
                if value not in {str(c) for c in cond["$in"]}:
                    return False
            elif value != str(cond):
                return False
            continue
        if isinstance(cond, dict) and "$in" in cond:
            if value is _MISSING or value not in cond["$in"]:
                return False
        elif value is _MISSING or value != cond:
            return False
    return True


def _logical_id(body: Dict[str, Any]) -> Optional[str]:
    value = body.get("id")
    return str(value) if value not in (None, "") else None


class DocumentStore:
    """Thin document API bound to one SQLAlchemy session."""

    def __init__(self, session: Session):
        self.session = session

    # ---------------------------------------------------------
    # reads
    # ---------------------------------------------------------
    def _rows(self, name: str, filter: Optional[Dict[str, Any]] = None) -> List[Document]:
        filter = filter or {}
        stmt = select(Document).where(Document.collection == name)

        raw_pk = filter.get("_id")
        if raw_pk is not None and not isinstance(raw_pk, dict):
            pk = _as_pk(raw_pk)
            if pk is None:
                return []
            stmt = stmt.where(Document.pk == pk)
        raw_id = filter.get("id")
        if isinstance(raw_id, str):
            stmt = stmt.where(Document.doc_id == raw_id)

        stmt = stmt.order_by(Document.pk)
        try:
            rows = self.session.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to query {name}: {e}") from e
        return [r for r in rows if _matches(self._to_doc(r), filter)]

    @staticmethod
    def _to_doc(row: Document) -> Dict[str, Any]:
        doc = copy.deepcopy(row.body or {})
        doc["_id"] = str(row.pk)
        return doc

    def find(self, name: str, filter: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return [self._to_doc(r) for r in self._rows(name, filter)]

    def find_one(self, name: str, filter: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        rows = self._rows(name, filter)
        return self._to_doc(rows[0]) if rows else None

    def count(self, name: str, filter: Optional[Dict[str, Any]] = None) -> int:
        return len(self._rows(name, filter))

    def duplicate_groups(self, name: str) -> List[DuplicateGroup]:
        """Group documents by logical id and return the groups holding more than one."""
        counted = (
            select(Document.doc_id, func.count(Document.pk))
            .where(Document.collection == name, Document.doc_id.isnot(None))
            .group_by(Document.doc_id)
            .having(func.count(Document.pk) > 1)
        )
        try:
            groups = self.session.execute(counted).all()
            out: List[DuplicateGroup] = []
            for doc_id, n in groups:
                rows = self.session.execute(
                    select(Document)
                    .where(Document.collection == name, Document.doc_id == doc_id)
                    .order_by(Document.pk)
                ).scalars().all()
                docs = [{"_id": str(r.pk), "updatedAt": (r.body or {}).get("updatedAt")} for r in rows]
                out.append(DuplicateGroup(id=doc_id, count=n, docs=docs))
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to group {name}: {e}") from e
        return out

    # ---------------------------------------------------------
    # writes
    # ---------------------------------------------------------
    def _commit(self, what: str) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logging.exception(f"❌ Store write failed during {what}")
            raise StoreError(f"Failed to {what}: {e}") from e

    def _add(self, name: str, doc: Dict[str, Any]) -> Document:
        body = {k: copy.deepcopy(v) for k, v in doc.items() if k != "_id"}
        row = Document(collection=name, doc_id=_logical_id(body), body=body)
        self.session.add(row)
        return row

    def insert_one(self, name: str, doc: Dict[str, Any]) -> str:
        row = self._add(name, doc)
        self._commit(f"insert into {name}")
        return str(row.pk)

    def insert_many(self, name: str, docs: Iterable[Dict[str, Any]]) -> List[str]:
        rows = [self._add(name, d) for d in docs]
        self._commit(f"insert into {name}")
        return [str(r.pk) for r in rows]

    def update_one(
        self,
        name: str,
        filter: Dict[str, Any],
        set_fields: Optional[Dict[str, Any]] = None,
        set_on_insert: Optional[Dict[str, Any]] = None,
        push: Optional[Dict[str, Any]] = None,
        upsert: bool = False,
    ) -> UpdateResult:
        """
        Update the first matching document.

        ``set_fields`` and ``push`` apply to the match; when nothing matches and
        ``upsert`` is set, a new document is built from the equality parts of
        the filter, then ``set_on_insert``, then ``set_fields`` and ``push``.
        """
        rows = self._rows(name, filter)
        if rows:
            row = rows[0]
            body = copy.deepcopy(row.body or {})
            for path, value in (set_fields or {}).items():
                _set_path(body, path, copy.deepcopy(value))
            for path, item in (push or {}).items():
                _push_path(body, path, copy.deepcopy(item))
            if body == row.body:
                return UpdateResult(1, 0)
            row.body = body
            row.doc_id = _logical_id(body)
            self._commit(f"update {name}")
            return UpdateResult(1, 1)

        if not upsert:
            return UpdateResult(0, 0)

        body: Dict[str, Any] = {
            k: v for k, v in filter.items()
            if k != "_id" and "." not in k and not isinstance(v, dict)
        }
        for path, value in (set_on_insert or {}).items():
            _set_path(body, path, copy.deepcopy(value))
        for path, value in (set_fields or {}).items():
            _set_path(body, path, copy.deepcopy(value))
        for path, item in (push or {}).items():
            _push_path(body, path, copy.deepcopy(item))
        row = self._add(name, body)
        self._commit(f"upsert into {name}")
        return UpdateResult(0, 0, str(row.pk))

    def delete_one(self, name: str, filter: Dict[str, Any]) -> int:
        rows = self._rows(name, filter)
        if not rows:
            return 0
        self.session.delete(rows[0])
        self._commit(f"delete from {name}")
        return 1

    def delete_many(self, name: str, filter: Dict[str, Any]) -> int:
        rows = self._rows(name, filter)
        for row in rows:
            self.session.delete(row)
        if rows:
            self._commit(f"delete from {name}")
        return len(rows)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
