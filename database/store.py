"""Document store contract and its PostgreSQL implementation.

Resource managers only talk to the store through the small contract defined by
:class:`DocumentStore`: insert, find by id, find one by equality filters, find
with an optional case-insensitive substring search, update by id and delete by
id. Each single-document operation is atomic; nothing spans documents.
"""

import asyncio
import logging
import re
import uuid
from typing import Any, Dict, Iterable, List, Optional

import asyncpg

from .exceptions import DuplicateKeyError, StoreUnavailableError
from .lib.schema_manager import SchemaManager

logger = logging.getLogger(__name__)

Document = Dict[str, Any]

_IDENTIFIER = re.compile(r'^[a-z_][a-z0-9_]*$')


class DocumentStore:
    """Abstract document store used by the auth and resource managers."""

    async def insert(self, collection: str, document: Document) -> Document:
        raise NotImplementedError

    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Document]:
        raise NotImplementedError

    async def find_one(self, collection: str, **filters: Any) -> Optional[Document]:
        raise NotImplementedError

    async def find(
        self,
        collection: str,
        search: Optional[str] = None,
        fields: Iterable[str] = (),
        order_by: Optional[str] = None
    ) -> List[Document]:
        raise NotImplementedError

    async def update_by_id(
        self,
        collection: str,
        doc_id: str,
        changes: Document
    ) -> Optional[Document]:
        raise NotImplementedError

    async def delete_by_id(self, collection: str, doc_id: str) -> Optional[Document]:
        raise NotImplementedError

    async def close(self) -> None:
        pass


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so the term is matched literally."""
    return term.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


def _parse_id(doc_id: Any) -> Optional[uuid.UUID]:
    try:
        return doc_id if isinstance(doc_id, uuid.UUID) else uuid.UUID(str(doc_id))
    except ValueError:
        return None


def _to_document(row) -> Optional[Document]:
    if row is None:
        return None
    document = dict(row)
    if isinstance(document.get('id'), uuid.UUID):
        document['id'] = str(document['id'])
    return document


class PostgresStore(DocumentStore):
    """Document store backed by the tables declared in database/schema."""

    def __init__(self, pool, timeout: float = 10.0):
        """Initialize the store.

        Args:
            pool: asyncpg connection pool
            timeout: Seconds before an operation fails with StoreUnavailableError
        """
        self.pool = pool
        self.timeout = timeout
        self._columns: Dict[str, set] = {}
        self._unique_indexes: Dict[str, str] = {}

        schema_files = SchemaManager(pool).load_schema_files()
        latest = schema_files[max(schema_files)]
        for table in latest['tables']:
            self._columns[table['name']] = {col['name'] for col in table['columns']}
            for idx in table.get('indexes', []):
                if idx.get('unique'):
                    self._unique_indexes[idx['name']] = idx['columns'][0]

    def _check(self, collection: str, names: Iterable[str]) -> List[str]:
        if collection not in self._columns:
            raise ValueError(f"Unknown collection: {collection}")
        names = list(names)
        for name in names:
            if not _IDENTIFIER.match(name) or name not in self._columns[collection]:
                raise ValueError(f"Unknown field {name!r} for {collection}")
        return names

    async def _run(self, collection: str, query: str, *args, many: bool = False):
        async def execute():
            async with self.pool.acquire() as conn:
                if many:
                    return await conn.fetch(query, *args)
                return await conn.fetchrow(query, *args)

        try:
            return await asyncio.wait_for(execute(), timeout=self.timeout)
        except asyncpg.exceptions.UniqueViolationError as e:
            field = self._unique_indexes.get(getattr(e, 'constraint_name', None) or '', 'unknown')
            raise DuplicateKeyError(collection, field)
        except asyncio.TimeoutError:
            logger.error(f"Store operation on {collection} timed out after {self.timeout}s")
            raise StoreUnavailableError(f"Store operation on {collection} timed out")
        except (
            OSError,
            asyncpg.exceptions.PostgresConnectionError,
            asyncpg.exceptions.InterfaceError
        ) as e:
            logger.error(f"Store unavailable during operation on {collection}: {e}")
            raise StoreUnavailableError(f"Store unavailable: {e}")

    async def insert(self, collection: str, document: Document) -> Document:
        document = {key: value for key, value in document.items() if key != 'id'}
        columns = self._check(collection, document)
        placeholders = ', '.join(f"${i}" for i in range(1, len(columns) + 1))
        row = await self._run(
            collection,
            f"INSERT INTO {collection} ({', '.join(columns)}) "
            f"VALUES ({placeholders}) RETURNING *",
            *document.values()
        )
        return _to_document(row)

    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Document]:
        self._check(collection, ())
        parsed = _parse_id(doc_id)
        if parsed is None:
            return None
        row = await self._run(collection, f"SELECT * FROM {collection} WHERE id = $1", parsed)
        return _to_document(row)

    async def find_one(self, collection: str, **filters: Any) -> Optional[Document]:
        columns = self._check(collection, filters)
        where = ' AND '.join(f"{col} = ${i}" for i, col in enumerate(columns, 1)) or 'TRUE'
        row = await self._run(
            collection,
            f"SELECT * FROM {collection} WHERE {where} LIMIT 1",
            *filters.values()
        )
        return _to_document(row)

    async def find(
        self,
        collection: str,
        search: Optional[str] = None,
        fields: Iterable[str] = (),
        order_by: Optional[str] = None
    ) -> List[Document]:
        fields = self._check(collection, fields)
        query = f"SELECT * FROM {collection} WHERE 1=1"
        params = []

        if search and fields:
            condition = ' OR '.join(f"{field} ILIKE $1" for field in fields)
            query += f" AND ({condition})"
            params.append(f"%{escape_like(search)}%")

        if order_by:
            self._check(collection, [order_by])
            query += f" ORDER BY {order_by}"

        logger.debug("Executing find query: %s with params: %r", query, params)
        rows = await self._run(collection, query, *params, many=True)
        return [_to_document(row) for row in rows]

    async def update_by_id(
        self,
        collection: str,
        doc_id: str,
        changes: Document
    ) -> Optional[Document]:
        parsed = _parse_id(doc_id)
        if parsed is None:
            self._check(collection, ())
            return None
        changes = {key: value for key, value in changes.items() if key != 'id'}
        columns = self._check(collection, changes)
        if not columns:
            return await self.find_by_id(collection, doc_id)

        assignments = ', '.join(f"{col} = ${i}" for i, col in enumerate(columns, 2))
        row = await self._run(
            collection,
            f"UPDATE {collection} SET {assignments} WHERE id = $1 RETURNING *",
            parsed,
            *changes.values()
        )
        return _to_document(row)

    async def delete_by_id(self, collection: str, doc_id: str) -> Optional[Document]:
        self._check(collection, ())
        parsed = _parse_id(doc_id)
        if parsed is None:
            return None
        row = await self._run(
            collection,
            f"DELETE FROM {collection} WHERE id = $1 RETURNING *",
            parsed
        )
        return _to_document(row)
