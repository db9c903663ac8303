"""Async document store on top of SQLite.

Every collection shares the `documents` table created by
`utils.database_init.AsyncDatabaseInitializer`. A document is returned as a
plain dict: the JSON body merged with the `id`, `owner`, `created_at`,
`updated_at` and `revision` columns.
"""

from __future__ import annotations

import json
import time
import uuid
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from dal.query_builder import RollupQuery, json_path
from utils.database_init import AsyncDatabaseInitializer

_COLUMN_FIELDS = ("id", "owner", "created_at", "updated_at", "revision")
_SORTABLE = {"created_at", "updated_at"}


class RecordStore:
    """Generic create/find/update/delete over JSON documents.

    Per-document updates are single SQL statements, so each one is atomic.
    `update_by_id` can additionally compare-and-swap on `revision`.
    """

    _SELECT = "SELECT id, owner, body, created_at, updated_at, revision FROM documents"

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def create(
        self,
        collection: str,
        owner: str,
        fields: Mapping[str, Any],
        *,
        doc_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Insert a document and return it.

        Args:
            collection: Collection name.
            owner: Identity owning the document; fixed for its lifetime.
            fields: Document body. Column fields in it are ignored.
            doc_id: Optional explicit id; a random hex id is generated otherwise.
        """
        doc_id = doc_id or uuid.uuid4().hex
        now = time.time()
        body = {k: v for k, v in fields.items() if k not in _COLUMN_FIELDS}

        async with self._db.connection() as conn:
            await conn.execute(
                "INSERT INTO documents (id, collection, owner, body, created_at, updated_at, revision) "
                "VALUES (?, ?, ?, ?, ?, ?, 0)",
                (doc_id, collection, owner, json.dumps(body), now, now),
            )
            await conn.commit()

        return self._merge(doc_id, owner, body, now, now, 0)

    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Return the document with `doc_id`, or None."""
        return await self.find_one(collection, {"id": doc_id})

    async def find_one(self, collection: str, filters: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        """Return the first document matching `filters`, or None."""
        rows = await self.find_many(collection, filters, limit=1)
        return rows[0] if rows else None

    async def find_many(
        self,
        collection: str,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        sort: str = "-created_at",
        skip: int = 0,
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        """List documents matching `filters`.

        Args:
            collection: Collection name.
            filters: Field -> value equality filters. `id` and `owner` match
                columns, other keys match (dotted) body fields. A list or
                tuple value matches any of its members; None matches a
                missing field.
            sort: `created_at` or `updated_at`, prefixed with `-` for descending.
            skip: Documents to skip.
            limit: Maximum number of documents to return.
        """
        where_sql, params = self._where(collection, filters)
        order_sql = self._order(sort)
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"{self._SELECT} WHERE {where_sql} ORDER BY {order_sql} LIMIT ? OFFSET ?",
                tuple(params) + (int(limit), int(skip)),
            )
            rows = await cur.fetchall()
        return [self._row_to_document(r) for r in rows]

    async def count(self, collection: str, filters: Optional[Mapping[str, Any]] = None) -> int:
        """Count documents matching `filters`."""
        where_sql, params = self._where(collection, filters)
        async with self._db.connection() as conn:
            cur = await conn.execute(f"SELECT COUNT(*) FROM documents WHERE {where_sql}", tuple(params))
            row = await cur.fetchone()
        return int(row[0]) if row else 0

    async def update_by_id(
        self,
        collection: str,
        doc_id: str,
        patch: Mapping[str, Any],
        *,
        expected_revision: Optional[int] = None,
    ) -> Optional[Dict[str, Any]]:
        """Set fields of a document and return the updated document.

        Each key of `patch` replaces that top-level field wholesale; a None
        value removes the field. Column fields in the patch are ignored, so
        the owner can never change.

        Args:
            collection: Collection name.
            doc_id: Document id.
            patch: Fields to merge into the body.
            expected_revision: When given, only apply the patch if the stored
                revision still equals it.

        Returns:
            The updated document, or None if no document matched (missing id
            or a revision mismatch).
        """
        body_expr = "body"
        params: List[Any] = []
        for key, value in patch.items():
            if key in _COLUMN_FIELDS:
                continue
            if value is None:
                body_expr = f"json_remove({body_expr}, ?)"
                params.append(json_path(key))
            else:
                body_expr = f"json_set({body_expr}, ?, json(?))"
                params += [json_path(key), json.dumps(value)]
        sql = (
            f"UPDATE documents SET body = {body_expr}, updated_at = ?, revision = revision + 1 "
            "WHERE collection = ? AND id = ?"
        )
        params += [time.time(), collection, doc_id]
        if expected_revision is not None:
            sql += " AND revision = ?"
            params.append(expected_revision)

        async with self._db.connection() as conn:
            await conn.execute(sql, tuple(params))
            await conn.commit()
            cur = await conn.execute("SELECT changes()")
            changed = await cur.fetchone()
            if not (changed and changed[0] > 0):
                return None
            cur = await conn.execute(
                f"{self._SELECT} WHERE collection = ? AND id = ?", (collection, doc_id)
            )
            row = await cur.fetchone()
        return self._row_to_document(row) if row else None

    async def delete_by_id(self, collection: str, doc_id: str) -> bool:
        """Delete a document. Returns True if a row was deleted."""
        async with self._db.connection() as conn:
            await conn.execute("DELETE FROM documents WHERE collection = ? AND id = ?", (collection, doc_id))
            await conn.commit()
            cur = await conn.execute("SELECT changes()")
            changed = await cur.fetchone()
            return bool(changed and changed[0] > 0)

    async def aggregate(self, query: RollupQuery) -> Dict[str, Any]:
        """Run a rollup query.

        Returns:
            `{"summary": {...}, "monthly": [{...}, ...], "distinct": {field: [...]}}`
        """
        summary_sql, summary_params, summary_names = query.summary_sql()
        monthly_sql, monthly_params, monthly_names = query.monthly_sql()

        async with self._db.connection() as conn:
            cur = await conn.execute(summary_sql, summary_params)
            summary_row = await cur.fetchone()
            cur = await conn.execute(monthly_sql, monthly_params)
            monthly_rows = await cur.fetchall()

            distinct: Dict[str, List[Any]] = {}
            for field in query.distinct_of:
                sql, params = query.distinct_sql(field)
                cur = await conn.execute(sql, params)
                distinct[field] = [r[0] for r in await cur.fetchall()]

        summary = dict(zip(summary_names, summary_row or ()))
        return {
            "summary": summary,
            "monthly": [dict(zip(monthly_names, row)) for row in monthly_rows],
            "distinct": distinct,
        }

    @staticmethod
    def _where(collection: str, filters: Optional[Mapping[str, Any]]) -> Tuple[str, List[Any]]:
        clauses = ["collection = ?"]
        params: List[Any] = [collection]
        for key, value in (filters or {}).items():
            target = key if key in ("id", "owner") else "json_extract(body, ?)"
            key_params: List[Any] = [] if key in ("id", "owner") else [json_path(key)]
            if value is None:
                clauses.append(f"{target} IS NULL")
                params += key_params
            elif isinstance(value, (list, tuple, set, frozenset)):
                values: Sequence[Any] = list(value)
                if not values:
                    clauses.append("0")
                    continue
                placeholders = ", ".join("?" for _ in values)
                clauses.append(f"{target} IN ({placeholders})")
                params += key_params + values
            else:
                clauses.append(f"{target} = ?")
                params += key_params + [value]
        return " AND ".join(clauses), params

    @staticmethod
    def _order(sort: str) -> str:
        descending = sort.startswith("-")
        column = sort.lstrip("-")
        if column not in _SORTABLE:
            raise ValueError(f"Unsupported sort field '{column}'")
        return f"{column} {'DESC' if descending else 'ASC'}, id ASC"

    @staticmethod
    def _merge(
        doc_id: str, owner: str, body: Mapping[str, Any], created_at: float, updated_at: float, revision: int
    ) -> Dict[str, Any]:
        doc = dict(body)
        doc.update(id=doc_id, owner=owner, created_at=created_at, updated_at=updated_at, revision=revision)
        return doc

    @classmethod
    def _row_to_document(cls, row: Sequence[Any]) -> Dict[str, Any]:
        """Convert a DB row tuple into a document dict."""
        return cls._merge(row[0], row[1], json.loads(row[2]), row[3], row[4], row[5])
