"""Tests for the named connection registry."""

import asyncio

import pytest

from dbgateway.config.models import GatewayConfig
from dbgateway.db.connection import ConnectionManager, TeardownFailure
from dbgateway.db.factory import DatabaseAdapterFactory
from dbgateway.exceptions import ConfigurationError, ConnectionNotFoundError, DatabaseConnectionError

from tests.support import RecordingAdapter


class RecordingFactory(DatabaseAdapterFactory):
    """Hands out RecordingAdapters; ``failing`` names refuse to connect."""

    def __init__(self, failing=(), fail_disconnect=()):
        self.failing = set(failing)
        self.fail_disconnect = set(fail_disconnect)
        self.created = {}

    def create_database(self, config):
        name = config['name'] if isinstance(config, dict) else config.name
        if name in self.failing:
            raise DatabaseConnectionError("Recording error: connection refused")
        adapter = RecordingAdapter(fail_disconnect=name in self.fail_disconnect)
        self.created[name] = adapter
        return adapter


MEMORY = {'type': 'sqlite', 'filename': ':memory:'}


@pytest.mark.asyncio
async def test_first_connection_becomes_current():
    manager = ConnectionManager(RecordingFactory())

    adapter = await manager.add_connection('a', MEMORY)
    await manager.add_connection('b', MEMORY)

    assert adapter.is_connected()
    assert manager.get_current_connection_name() == 'a'
    assert manager.get_connection() is adapter
    assert manager.get_connection_count() == 2
    assert manager.has_connection('b')


@pytest.mark.asyncio
async def test_duplicate_name_is_rejected():
    manager = ConnectionManager(RecordingFactory())
    await manager.add_connection('a', MEMORY)

    with pytest.raises(ConfigurationError, match="Connection 'a' already exists"):
        await manager.add_connection('a', MEMORY)
    assert manager.get_connection_count() == 1


@pytest.mark.asyncio
async def test_concurrent_adds_under_one_name_register_once():
    factory = RecordingFactory()
    manager = ConnectionManager(factory)

    results = await asyncio.gather(
        manager.add_connection('a', MEMORY),
        manager.add_connection('a', MEMORY),
        return_exceptions=True,
    )

    added = [r for r in results if not isinstance(r, Exception)]
    errors = [r for r in results if isinstance(r, Exception)]
    assert len(added) == 1
    assert len(errors) == 1
    assert isinstance(errors[0], ConfigurationError)
    assert manager.get_connection('a') is added[0]
    assert list(factory.created.values()) == added

    await manager.disconnect_all()
    assert not added[0].is_connected()


@pytest.mark.asyncio
async def test_failed_connect_registers_nothing():
    manager = ConnectionManager(RecordingFactory(failing={'bad'}))

    with pytest.raises(DatabaseConnectionError, match="Failed to add connection 'bad': Recording error"):
        await manager.add_connection('bad', MEMORY)

    assert not manager.has_connection('bad')
    assert manager.get_current_connection_name() is None


@pytest.mark.asyncio
async def test_unknown_kind_fails_to_add():
    manager = ConnectionManager()
    with pytest.raises(DatabaseConnectionError, match="Unsupported database type: oracle"):
        await manager.add_connection('x', {'type': 'oracle'})


@pytest.mark.asyncio
async def test_removing_current_reassigns_to_first_remaining():
    manager = ConnectionManager(RecordingFactory())
    for name in ('a', 'b', 'c'):
        await manager.add_connection(name, MEMORY)
    manager.set_current_connection('b')

    removed = manager.get_connection('b')
    await manager.remove_connection('b')

    assert not removed.is_connected()
    assert manager.get_current_connection_name() == 'a'

    await manager.remove_connection('a')
    assert manager.get_current_connection_name() == 'c'

    await manager.remove_connection('c')
    assert manager.get_current_connection_name() is None
    assert manager.get_connection() is None


@pytest.mark.asyncio
async def test_remove_unknown_is_noop():
    manager = ConnectionManager(RecordingFactory())
    await manager.add_connection('a', MEMORY)
    await manager.remove_connection('missing')
    assert manager.get_connection_count() == 1


@pytest.mark.asyncio
async def test_lookup_and_switching():
    manager = ConnectionManager(RecordingFactory())
    await manager.add_connection('a', MEMORY)
    await manager.add_connection('b', MEMORY)

    assert manager.get_connection('missing') is None
    with pytest.raises(ConnectionNotFoundError, match="Connection 'missing' not found"):
        manager.require_connection('missing')
    with pytest.raises(ConnectionNotFoundError, match="Connection 'zzz' not found"):
        manager.set_current_connection('zzz')

    manager.set_current_connection('b')
    assert manager.require_connection() is manager.get_connection('b')


def test_require_connection_on_empty_registry():
    with pytest.raises(ConnectionNotFoundError, match="No active database connection"):
        ConnectionManager().require_connection()


@pytest.mark.asyncio
async def test_list_connections_reports_live_state():
    factory = RecordingFactory()
    manager = ConnectionManager(factory)
    await manager.add_connection('a', MEMORY)
    await manager.add_connection('b', MEMORY)
    await factory.created['b'].disconnect()

    assert manager.list_connections() == [
        {'name': 'a', 'type': 'redis', 'connected': True},
        {'name': 'b', 'type': 'redis', 'connected': False},
    ]


@pytest.mark.asyncio
async def test_validate_all_connections_turns_errors_into_false():
    factory = RecordingFactory()
    manager = ConnectionManager(factory)
    await manager.add_connection('ok', MEMORY)
    await manager.add_connection('broken', MEMORY)

    async def explode():
        raise RuntimeError("network unreachable")

    factory.created['broken'].validate_connection = explode

    assert await manager.validate_all_connections() == {'ok': True, 'broken': False}


@pytest.mark.asyncio
async def test_disconnect_all_collects_failures_and_clears():
    manager = ConnectionManager(RecordingFactory(fail_disconnect={'b'}))
    for name in ('a', 'b', 'c'):
        await manager.add_connection(name, MEMORY)

    failures = await manager.disconnect_all()

    assert failures == [TeardownFailure(name='b', error='socket already closed')]
    assert manager.get_connection_count() == 0
    assert manager.get_current_connection_name() is None


@pytest.mark.asyncio
async def test_from_config_skips_invalid_and_unreachable_entries():
    config = GatewayConfig(
        databases=[
            {'name': 'good', 'type': 'sqlite', 'filename': ':memory:'},
            {'name': 'incomplete', 'type': 'postgresql'},
            {'name': 'bad', 'type': 'sqlite', 'filename': ':memory:'},
            {'name': 'other', 'type': 'sqlite', 'filename': ':memory:'},
        ],
        default_connection='other',
    )
    manager = ConnectionManager(RecordingFactory(failing={'bad'}))

    problems = await manager.from_config(config)

    assert [entry['name'] for entry in manager.list_connections()] == ['good', 'other']
    assert manager.get_current_connection_name() == 'other'
    assert len(problems) == 2
    assert "Skipping 'incomplete'" in problems[0]
    assert "Failed to add connection 'bad'" in problems[1]


@pytest.mark.asyncio
async def test_real_sqlite_connection(sqlite_config):
    manager = ConnectionManager()
    adapter = await manager.add_connection('local', sqlite_config)

    assert await manager.validate_all_connections() == {'local': True}
    assert await manager.disconnect_all() == []
    assert not adapter.is_connected()


@pytest.mark.asyncio
async def test_url_only_config(sqlite_file):
    manager = ConnectionManager()

    adapter = await manager.add_connection('local', {'url': f"sqlite://{sqlite_file}"})

    assert adapter.config.filename == str(sqlite_file)
    assert adapter.config.name == 'local'
    assert await adapter.validate_connection() is True
    await manager.disconnect_all()
