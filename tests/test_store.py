"""Tests for migration registries."""

import json
import threading
from unittest.mock import patch

import pytest

from repo_migrate.exceptions import MigrationNotFoundError
from repo_migrate.models.migration import MigrationRequest, MigrationStatus
from repo_migrate.storage import InMemoryMigrationStore, JsonFileMigrationStore


def make_request(name='web'):
    return MigrationRequest(
        source_location=f'https://dev.azure.com/contoso/Shop/_git/{name}',
        target_location=f'acme/{name}',
        source_credential='gAAAA-source-ciphertext',
        target_credential='gAAAA-target-ciphertext',
    )


class TestInMemoryMigrationStore:
    """Test the in-memory registry."""

    def setup_method(self):
        self.store = InMemoryMigrationStore()

    @pytest.mark.asyncio
    async def test_create_returns_pending_record(self):
        record = await self.store.create(make_request())

        assert record.id == 1
        assert record.status == MigrationStatus.PENDING
        assert record.progress == 0
        assert record.error is None
        assert record.started_at is None

    @pytest.mark.asyncio
    async def test_identifiers_are_unique(self):
        records = [await self.store.create(make_request(f'r{i}')) for i in range(5)]
        assert [r.id for r in records] == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_get_unknown(self):
        assert await self.store.get(42) is None

    @pytest.mark.asyncio
    async def test_list_in_creation_order(self):
        for name in ('a', 'b', 'c'):
            await self.store.create(make_request(name))

        records = await self.store.list()

        assert [r.target_location for r in records] == ['acme/a', 'acme/b', 'acme/c']

    @pytest.mark.asyncio
    async def test_save_replaces_record(self):
        record = await self.store.create(make_request())

        await self.store.save(record.copy(update={'progress': 40}))

        assert (await self.store.get(record.id)).progress == 40
        assert record.progress == 0

    @pytest.mark.asyncio
    async def test_save_unknown(self):
        record = await self.store.create(make_request())

        with pytest.raises(MigrationNotFoundError):
            await self.store.save(record.copy(update={'id': 99}))

    @pytest.mark.asyncio
    async def test_credentials_kept_apart(self):
        record = await self.store.create(make_request())

        credentials = await self.store.get_credentials(record.id)

        assert credentials.source == 'gAAAA-source-ciphertext'
        assert credentials.target == 'gAAAA-target-ciphertext'
        assert 'ciphertext' not in json.dumps(record.to_public_dict())

    @pytest.mark.asyncio
    async def test_credentials_unknown(self):
        with pytest.raises(MigrationNotFoundError) as exc_info:
            await self.store.get_credentials(3)

        assert str(exc_info.value) == 'Migration not found: 3'


class TestJsonFileMigrationStore:
    """Test the JSON file registry."""

    @pytest.mark.asyncio
    async def test_records_survive_reload(self, tmp_path):
        path = tmp_path / 'migrations.json'
        store = JsonFileMigrationStore(str(path))
        record = await store.create(make_request())
        await store.save(
            record.copy(update={'status': MigrationStatus.FAILED, 'error': 'denied'})
        )

        reloaded = JsonFileMigrationStore(str(path))
        loaded = await reloaded.get(record.id)

        assert loaded.status == MigrationStatus.FAILED
        assert loaded.error == 'denied'
        assert loaded.created_at == record.created_at
        credentials = await reloaded.get_credentials(record.id)
        assert credentials.source == 'gAAAA-source-ciphertext'

    @pytest.mark.asyncio
    async def test_identifiers_not_reused_after_reload(self, tmp_path):
        path = tmp_path / 'migrations.json'
        store = JsonFileMigrationStore(str(path))
        await store.create(make_request('a'))
        await store.create(make_request('b'))

        reloaded = JsonFileMigrationStore(str(path))
        record = await reloaded.create(make_request('c'))

        assert record.id == 3

    @pytest.mark.asyncio
    async def test_document_layout(self, tmp_path):
        path = tmp_path / 'nested' / 'migrations.json'
        store = JsonFileMigrationStore(str(path))
        await store.create(make_request())

        with open(path, 'r', encoding='utf-8') as f:
            document = json.load(f)

        assert document['next_id'] == 2
        entry = document['migrations']['1']
        assert entry['record']['status'] == 'pending'
        assert entry['record']['target_location'] == 'acme/web'
        assert set(entry['credentials']) == {'source', 'target'}

    def test_missing_file_starts_empty(self, tmp_path):
        store = JsonFileMigrationStore(str(tmp_path / 'absent.json'))
        assert store._records == {}

    @pytest.mark.asyncio
    async def test_file_written_off_event_loop(self, tmp_path):
        path = tmp_path / 'migrations.json'
        store = JsonFileMigrationStore(str(path))
        threads = []
        original_write = JsonFileMigrationStore._write

        def write(self, document):
            threads.append(threading.current_thread())
            original_write(self, document)

        with patch.object(JsonFileMigrationStore, '_write', autospec=True, side_effect=write):
            record = await store.create(make_request())
            await store.save(record.copy(update={'progress': 10}))

        assert len(threads) == 2
        assert threading.main_thread() not in threads
        reloaded = JsonFileMigrationStore(str(path))
        assert (await reloaded.get(record.id)).progress == 10
