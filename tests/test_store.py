"""Tests for the document stores and schema rendering."""

import asyncio
import uuid
from contextlib import asynccontextmanager

import asyncpg
import pytest

from database import DuplicateKeyError, MemoryStore, PostgresStore, StoreUnavailableError
from database.lib.schema_manager import SchemaManager
from database.store import escape_like


class FakeConnection:
    """Records queries and replays canned rows."""

    def __init__(self, rows=None, error=None, delay=0):
        self.rows = rows or []
        self.error = error
        self.delay = delay
        self.queries = []

    async def _respond(self, query, args):
        self.queries.append((query, args))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error

    async def fetch(self, query, *args):
        await self._respond(query, args)
        return self.rows

    async def fetchrow(self, query, *args):
        await self._respond(query, args)
        return self.rows[0] if self.rows else None


class FakePool:
    def __init__(self, conn):
        self.conn = conn

    @asynccontextmanager
    async def acquire(self):
        yield self.conn


@pytest.mark.asyncio
async def test_memory_store_crud():
    store = MemoryStore()

    doc = await store.insert('products', {'name': 'Lamp', 'stock': 2})
    assert doc['id']
    assert (await store.find_by_id('products', doc['id']))['name'] == 'Lamp'

    updated = await store.update_by_id('products', doc['id'], {'stock': 5, 'id': 'ignored'})
    assert updated['stock'] == 5
    assert updated['id'] == doc['id']

    deleted = await store.delete_by_id('products', doc['id'])
    assert deleted['name'] == 'Lamp'
    assert await store.find_by_id('products', doc['id']) is None
    assert await store.delete_by_id('products', doc['id']) is None
    assert await store.update_by_id('products', doc['id'], {'stock': 1}) is None


@pytest.mark.asyncio
async def test_memory_store_returns_copies():
    store = MemoryStore()
    doc = await store.insert('products', {'name': 'Lamp'})

    doc['name'] = 'Changed'
    found = await store.find_by_id('products', doc['id'])
    found['name'] = 'Changed again'

    assert (await store.find_by_id('products', doc['id']))['name'] == 'Lamp'


@pytest.mark.asyncio
async def test_memory_store_enforces_unique_email():
    store = MemoryStore()
    await store.insert('users', {'email': 'a@example.com'})

    with pytest.raises(DuplicateKeyError) as exc_info:
        await store.insert('users', {'email': 'a@example.com'})
    assert exc_info.value.field == 'email'


@pytest.mark.asyncio
async def test_memory_store_search_is_case_insensitive_substring():
    store = MemoryStore()
    await store.insert('products', {'name': 'Desk Lamp', 'description': None, 'created_at': 1})
    await store.insert('products', {'name': 'Chair', 'description': 'goes with the LAMP', 'created_at': 2})
    await store.insert('products', {'name': 'Table', 'description': '100% oak', 'created_at': 3})

    found = await store.find('products', search='lamp', fields=('name', 'description'), order_by='created_at')
    assert [doc['name'] for doc in found] == ['Desk Lamp', 'Chair']

    found = await store.find('products', search='%', fields=('name', 'description'))
    assert [doc['name'] for doc in found] == ['Table']

    assert len(await store.find('products')) == 3


def test_escape_like():
    assert escape_like('50%_off\\') == '50\\%\\_off\\\\'


@pytest.mark.asyncio
async def test_postgres_store_escapes_search_terms():
    conn = FakeConnection(rows=[{'id': uuid.uuid4(), 'name': '100% cotton'}])
    store = PostgresStore(FakePool(conn))

    found = await store.find('products', search='100%', fields=('name', 'description'), order_by='created_at')

    query, args = conn.queries[0]
    assert 'name ILIKE $1 OR description ILIKE $1' in query
    assert query.endswith('ORDER BY created_at')
    assert args == ('%100\\%%',)
    assert isinstance(found[0]['id'], str)


@pytest.mark.asyncio
async def test_postgres_store_rejects_unknown_fields():
    store = PostgresStore(FakePool(FakeConnection()))

    with pytest.raises(ValueError):
        await store.find('products', search='x', fields=('name; DROP TABLE users',))
    with pytest.raises(ValueError):
        await store.insert('invoices', {'name': 'x'})


@pytest.mark.asyncio
async def test_postgres_store_malformed_id_is_not_found():
    conn = FakeConnection()
    store = PostgresStore(FakePool(conn))

    assert await store.find_by_id('products', 'not-a-uuid') is None
    assert await store.delete_by_id('products', 'not-a-uuid') is None
    assert conn.queries == []


@pytest.mark.asyncio
async def test_postgres_store_maps_unique_violation():
    error = asyncpg.exceptions.UniqueViolationError('duplicate key')
    store = PostgresStore(FakePool(FakeConnection(error=error)))

    with pytest.raises(DuplicateKeyError):
        await store.insert('users', {'email': 'a@example.com'})


@pytest.mark.asyncio
async def test_postgres_store_timeout_is_unavailable():
    store = PostgresStore(FakePool(FakeConnection(delay=1)), timeout=0.01)

    with pytest.raises(StoreUnavailableError):
        await store.find('products')


@pytest.mark.asyncio
async def test_postgres_store_connection_loss_is_unavailable():
    store = PostgresStore(FakePool(FakeConnection(error=ConnectionRefusedError())))

    with pytest.raises(StoreUnavailableError):
        await store.find_one('users', email='a@example.com')


def test_schema_renders_constraints():
    schema = SchemaManager(None).load_schema_files()
    tables = {table['name']: table for table in schema[max(schema)]['tables']}

    sql = SchemaManager.create_table_sql(tables['products'])

    assert sql.startswith('CREATE TABLE IF NOT EXISTS products')
    assert 'name TEXT NOT NULL' in sql
    assert 'PRIMARY KEY (id)' in sql
    assert 'CHECK (stock >= 0)' in sql
    assert set(tables) == {'users', 'products', 'photos'}


def test_database_exports_resolve():
    import database

    assert all(hasattr(database, name) for name in database.__all__)
    assert 'create_store' in database.__all__
    assert not hasattr(database, 'get_pool')
