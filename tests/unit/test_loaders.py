"""
Unit tests for the batch writer
"""

import pytest
from unittest.mock import AsyncMock, patch
from core.exceptions import BatchInsertError, DatabaseError
from migration.loaders.batch_writer import BatchWriter, DUPLICATE_REASON
from migration.loaders.property_store import PropertyStore
from migration.transformers.field_transformer import FieldTransformer
from schemas.migration import BatchResult, ImportCandidate


def make_candidates(row_factory, count, start=1):
    transformer = FieldTransformer()
    return [
        ImportCandidate(
            row=start + i,
            record=transformer.validate(transformer.transform(row_factory(ID=f"wix-{start + i}")))
        )
        for i in range(count)
    ]


def mock_store():
    store = AsyncMock(spec=PropertyStore)
    store.find_by_external_id.return_value = None
    store.insert_batch.side_effect = lambda records: [
        (f"id-{r['external_id']}", r["external_id"]) for r in records
    ]
    store.insert.side_effect = lambda record: f"id-{record['external_id']}"
    return store


class TestBatchWriter:
    """Test deduplication, batch fallback and chunking"""

    @pytest.mark.asyncio
    async def test_write_batch_success(self, row_factory):
        store = mock_store()
        writer = BatchWriter(store, batch_size=10, pause_seconds=0)

        result = await writer.write_batch(make_candidates(row_factory, 3))

        assert [r.external_id for r in result.successful] == ["wix-1", "wix-2", "wix-3"]
        assert [r.row for r in result.successful] == [1, 2, 3]
        assert result.failed == []
        store.insert_batch.assert_awaited_once()
        store.insert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_duplicates_filtered_before_insert(self, row_factory):
        store = mock_store()
        store.find_by_external_id.side_effect = lambda external_id: object() if external_id == "wix-2" else None
        writer = BatchWriter(store, pause_seconds=0)

        result = await writer.write_batch(make_candidates(row_factory, 3))

        assert len(result.successful) == 2
        assert len(result.failed) == 1
        assert result.failed[0].external_id == "wix-2"
        assert result.failed[0].reason == DUPLICATE_REASON
        assert result.failed[0].row == 2
        inserted = store.insert_batch.await_args.args[0]
        assert [r["external_id"] for r in inserted] == ["wix-1", "wix-3"]

    @pytest.mark.asyncio
    async def test_all_duplicates_skip_insert(self, row_factory):
        store = mock_store()
        store.find_by_external_id.return_value = object()
        writer = BatchWriter(store, pause_seconds=0)

        result = await writer.write_batch(make_candidates(row_factory, 2))

        assert result.successful == []
        assert all(r.reason == DUPLICATE_REASON for r in result.failed)
        store.insert_batch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_batch_failure_isolates_bad_record(self, row_factory):
        """N candidates with one bad record -> N-1 successes, 1 failure"""
        store = mock_store()
        store.insert_batch.side_effect = BatchInsertError("Batch insert failed: constraint")

        def insert(record):
            if record["external_id"] == "wix-4":
                raise DatabaseError("Insert failed: NOT NULL constraint failed: properties.title")
            return f"id-{record['external_id']}"

        store.insert.side_effect = insert
        writer = BatchWriter(store, pause_seconds=0)

        result = await writer.write_batch(make_candidates(row_factory, 6))

        assert len(result.successful) == 5
        assert len(result.failed) == 1
        assert result.failed[0].external_id == "wix-4"
        assert "NOT NULL" in result.failed[0].reason
        assert store.insert.await_count == 6

    @pytest.mark.asyncio
    async def test_fallback_rechecks_duplicates(self, row_factory):
        """A record inserted earlier in the fallback makes a later twin a duplicate"""
        store = mock_store()
        store.insert_batch.side_effect = BatchInsertError("UNIQUE constraint failed")
        seen = set()

        async def find(external_id):
            return object() if external_id in seen else None

        def insert(record):
            seen.add(record["external_id"])
            return f"id-{record['external_id']}"

        store.find_by_external_id.side_effect = find
        store.insert.side_effect = insert

        candidates = make_candidates(row_factory, 1) + make_candidates(row_factory, 1, start=1)
        candidates[1] = ImportCandidate(row=3, record=candidates[1].record)
        writer = BatchWriter(store, pause_seconds=0)

        result = await writer.write_batch(candidates)

        assert [r.row for r in result.successful] == [1]
        assert result.failed[0].row == 3
        assert result.failed[0].reason == DUPLICATE_REASON

    @pytest.mark.asyncio
    async def test_write_in_batches_chunks_and_callback(self, row_factory):
        store = mock_store()
        writer = BatchWriter(store, batch_size=2, pause_seconds=0.5)
        on_batch = AsyncMock()

        with patch("migration.loaders.batch_writer.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            result = await writer.write_in_batches(make_candidates(row_factory, 5), on_batch)

        assert len(result.successful) == 5
        assert store.insert_batch.await_count == 3
        assert on_batch.await_count == 3

        batch_number, total_batches, chunk, chunk_result = on_batch.await_args_list[2].args
        assert (batch_number, total_batches) == (3, 3)
        assert [c.row for c in chunk] == [5]
        assert isinstance(chunk_result, BatchResult)

        # Pause between chunks, not after the last one
        assert mock_sleep.await_count == 2
        mock_sleep.assert_awaited_with(0.5)

    @pytest.mark.asyncio
    async def test_write_in_batches_empty(self):
        store = mock_store()
        on_batch = AsyncMock()

        result = await BatchWriter(store).write_in_batches([], on_batch)

        assert result.successful == [] and result.failed == []
        on_batch.assert_not_awaited()
