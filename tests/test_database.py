"""Test store connections and best-effort cleanup."""

import pytest
from pymongo.errors import AutoReconnect

from mongocopy.config.manager import TransferMode
from mongocopy.core.database import ConnectionManager, StoreClient, StoreSettings
from mongocopy.core.errors import StoreConnectionError

from .conftest import SOURCE_URI


class TestStoreClient:

    @pytest.mark.asyncio
    async def test_connect_pings_and_selects_database(self, source_client, client_factory):
        settings = StoreSettings(connection_string=SOURCE_URI, database_name="app", max_pool_size=7)
        client = await StoreClient(settings, "source", client_factory).connect()

        assert client.is_connected
        assert client.database.name == "app"
        source_client.admin.command.assert_awaited_with("ping")
        assert source_client.options["maxPoolSize"] == 7

    @pytest.mark.asyncio
    async def test_connect_falls_back_to_uri_default_database(self, source_client, client_factory):
        source_client.default_db = "from_uri"
        client = await StoreClient(StoreSettings(connection_string=SOURCE_URI), "source", client_factory).connect()

        assert client.database.name == "from_uri"

    @pytest.mark.asyncio
    async def test_unreachable_store_raises_connection_error(self, source_client, client_factory):
        source_client.make_unreachable()

        store = StoreClient(StoreSettings(connection_string=SOURCE_URI), "source", client_factory)

        with pytest.raises(StoreConnectionError) as exc_info:
            await store.connect()

        assert exc_info.value.role == "source"
        assert exc_info.value.phase == "connect"
        # The half-open driver client is released before the error propagates
        assert source_client.close_calls == 1
        assert store.client is None and not store.is_connected
        store.close()
        assert source_client.close_calls == 1

    @pytest.mark.asyncio
    async def test_store_operations(self, source_db, client_factory):
        source_db.add("users", [{"_id": 1}, {"_id": 2}])
        client = await StoreClient(StoreSettings(connection_string=SOURCE_URI, database_name="app"),
                                   "source", client_factory).connect()

        assert await client.list_collection_names() == ["users"]
        assert await client.count_documents("users") == 2
        assert client.find("users", 50).requested_batch_size == 50
        assert await client.insert_many("posts", [{"title": "a"}, {"title": "b"}]) == 2
        assert client.last_operation.documents_processed == 2
        assert client.last_operation.success

    @pytest.mark.asyncio
    async def test_failed_insert_is_recorded_and_reraised(self, source_db, client_factory):
        source_db["posts"].insert_error = AutoReconnect("connection reset")
        client = await StoreClient(StoreSettings(connection_string=SOURCE_URI, database_name="app"),
                                   "source", client_factory).connect()

        with pytest.raises(AutoReconnect):
            await client.insert_many("posts", [{"title": "a"}])

        assert client.last_operation.success is False
        assert "connection reset" in client.last_operation.error_message

    def test_close_is_idempotent(self, source_client, client_factory):
        client = StoreClient(StoreSettings(connection_string=SOURCE_URI), "source", client_factory)
        client.close()  # never connected
        assert source_client.close_calls == 0


class TestConnectionManager:

    @pytest.mark.asyncio
    async def test_open_connects_both_stores(self, connection_manager, make_job):
        source, target = await connection_manager.open(make_job())

        assert source.role == "source" and source.is_connected
        assert target.role == "target" and target.is_connected

    @pytest.mark.asyncio
    async def test_export_mode_skips_target(self, connection_manager, target_client, make_job):
        source, target = await connection_manager.open(make_job(mode=TransferMode.EXPORT_JSON))

        assert source.is_connected
        assert target is None
        target_client.admin.command.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_target_failure_closes_source(self, connection_manager, source_client, target_client, make_job):
        target_client.make_unreachable()

        with pytest.raises(StoreConnectionError) as exc_info:
            await connection_manager.open(make_job())

        assert exc_info.value.role == "target"
        assert source_client.close_calls == 1
        assert target_client.close_calls == 1

    @pytest.mark.asyncio
    async def test_close_all_swallows_errors(self, connection_manager, source_client, make_job):
        source, target = await connection_manager.open(make_job())

        def broken_close():
            raise RuntimeError("socket already gone")

        source_client.close = broken_close
        connection_manager.close_all(source, None, target)

        assert target.is_connected is False

    def test_close_all_accepts_nothing(self):
        ConnectionManager().close_all(None, None)
