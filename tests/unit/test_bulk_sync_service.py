"""
Unit tests for BulkSyncService.

Run: pytest tests/unit/test_bulk_sync_service.py -v
"""

import asyncio
import threading

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from models.sync import MappingReference, SyncResult
from services.bulk_sync_service import BulkSyncService, partition
from exceptions import ProductNotFoundError, StoreNotFoundError, ValidationError

from tests.factories import ShopifyFactory, StoreFactory


STORE_ID = "store-1"


def sync_result(product_id: str) -> SyncResult:
    upsert = ShopifyFactory.upsert_result(product_id, external_id=f"gid://shopify/Product/{product_id}")
    return SyncResult(
        operation="created",
        external_product=upsert,
        mapping=MappingReference(
            dashboard_product_id=product_id,
            external_product_id=upsert.id,
            store_id=STORE_ID,
            handle=upsert.handle,
        ),
    )


@pytest.fixture
def bulk_service(mock_db, mock_supabase, no_batch_delay):
    mock_supabase.set_table_data("stores", [StoreFactory.create(id=STORE_ID)])
    service = BulkSyncService()
    service.sync_service = MagicMock()
    service.sync_service.sync.side_effect = (
        lambda product_id, store_id, request, actor: sync_result(product_id)
    )
    return service


class TestPartition:

    def test_consecutive_chunks(self):
        assert partition(["a", "b", "c", "d", "e"], 2) == [["a", "b"], ["c", "d"], ["e"]]

    def test_empty(self):
        assert partition([], 3) == []


class TestBulkSync:
    """Tests for bulk_sync()"""

    def test_batches_with_pause_between(self, bulk_service):
        """Should sync 7 products in 2 batches and pause once."""
        # Arrange
        product_ids = [f"prod-{i}" for i in range(7)]
        bulk_service.batch_delay = 2.0
        sleep = AsyncMock()

        # Act
        with patch("services.bulk_sync_service.asyncio.sleep", sleep):
            result = asyncio.run(bulk_service.bulk_sync(STORE_ID, product_ids, batch_size=5))

        # Assert
        assert result.batches == 2
        assert result.total == 7
        assert result.successful == 7
        assert result.failed == 0
        sleep.assert_awaited_once_with(2.0)
        assert [r.product_id for r in result.results] == product_ids

    def test_single_batch_never_pauses(self, bulk_service):
        sleep = AsyncMock()

        with patch("services.bulk_sync_service.asyncio.sleep", sleep):
            result = asyncio.run(bulk_service.bulk_sync(STORE_ID, ["a", "b"], batch_size=5))

        assert result.batches == 1
        sleep.assert_not_awaited()

    def test_batch_members_run_concurrently(self, bulk_service):
        """Should start every sync of a batch before any of them returns."""
        barrier = threading.Barrier(4, timeout=5)

        def rendezvous(product_id, store_id, request, actor):
            barrier.wait()
            return sync_result(product_id)

        bulk_service.sync_service.sync.side_effect = rendezvous

        result = asyncio.run(
            bulk_service.bulk_sync(STORE_ID, ["a", "b", "c", "d"], batch_size=4)
        )

        assert result.successful == 4
        assert result.errors == []

    def test_failures_isolated(self, bulk_service):
        """Should report failures without stopping the other products."""
        def flaky(product_id, store_id, request, actor):
            if product_id == "bad":
                raise ProductNotFoundError(product_id)
            if product_id == "boom":
                raise RuntimeError("connection reset")
            return sync_result(product_id)

        bulk_service.sync_service.sync.side_effect = flaky

        result = asyncio.run(bulk_service.bulk_sync(STORE_ID, ["ok-1", "bad", "boom", "ok-2"], batch_size=2))

        assert result.successful == 2
        assert result.failed == 2
        assert result.successful + result.failed == result.total
        errors = {e.product_id: e.error for e in result.errors}
        assert errors["bad"] == "Product not found"
        assert errors["boom"] == "connection reset"

    def test_actor_forwarded(self, bulk_service):
        asyncio.run(bulk_service.bulk_sync(STORE_ID, ["p"], actor="user-1"))

        args = bulk_service.sync_service.sync.call_args[0]
        assert args[0] == "p"
        assert args[1] == STORE_ID
        assert args[3] == "user-1"

    def test_empty_product_ids_rejected(self, bulk_service):
        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(bulk_service.bulk_sync(STORE_ID, []))

        assert exc_info.value.code == "BULK_SYNC_PRODUCTS_REQUIRED"

    def test_batch_size_below_one_rejected(self, bulk_service):
        with pytest.raises(ValidationError) as exc_info:
            asyncio.run(bulk_service.bulk_sync(STORE_ID, ["p"], batch_size=0))

        assert exc_info.value.code == "BULK_SYNC_INVALID_BATCH_SIZE"
        bulk_service.sync_service.sync.assert_not_called()

    def test_unknown_store_rejected(self, bulk_service):
        with pytest.raises(StoreNotFoundError):
            asyncio.run(bulk_service.bulk_sync("missing", ["p"]))
