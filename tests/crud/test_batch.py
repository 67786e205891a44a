"""
Tests for chunking and sequential batch processing.
"""

import pytest

from crudcore.crud import BatchProcessor, chunk, optimal_batch_size
from crudcore.errors import PartialBatchError, ValidationError


@pytest.mark.parametrize(
    "total, expected",
    [(0, 1), (7, 7), (10, 10), (11, 20), (100, 20), (101, 50), (500, 50), (900, 100), (5000, 200)],
)
def test_optimal_batch_size(total, expected):
    assert optimal_batch_size(total) == expected


def test_optimal_batch_size_respects_maximum():
    assert optimal_batch_size(5000, max_batch_size=30) == 30


def test_chunk_keeps_order():
    assert chunk([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
    assert chunk([], 3) == []


def test_chunk_rejects_non_positive_size():
    with pytest.raises(ValueError):
        chunk([1], 0)


@pytest.mark.asyncio
class TestProcessSequential:
    async def test_concatenates_results_in_order(self):
        seen = []

        async def double(batch):
            seen.append(list(batch))
            return [item * 2 for item in batch]

        results = await BatchProcessor().process_sequential(list(range(5)), double, batch_size=2)
        assert results == [0, 2, 4, 6, 8]
        assert seen == [[0, 1], [2, 3], [4]]

    async def test_empty_input_skips_processor(self):
        async def boom(batch):
            raise AssertionError("not called")

        assert await BatchProcessor().process_sequential([], boom) == []

    async def test_later_failure_reports_ranges(self):
        calls = 0

        async def flaky(batch):
            nonlocal calls
            calls += 1
            if calls == 3:
                raise ValidationError(message="bad row")
            return batch

        with pytest.raises(PartialBatchError) as exc:
            await BatchProcessor().process_sequential(list(range(10)), flaky, batch_size=3)

        error = exc.value
        assert error.completed == list(range(6))
        assert error.succeeded_range == (0, 6)
        assert error.failed_range == (6, 9)
        assert isinstance(error.cause, ValidationError)
        assert error.status_code == 400
        assert error.details == {"succeeded": [0, 6], "failed": [6, 9], "cause": "bad row"}
        # Remaining chunks are not attempted
        assert calls == 3

    async def test_unknown_cause_is_server_error(self):
        async def flaky(batch):
            if batch[0] > 0:
                raise RuntimeError("disk full")
            return batch

        with pytest.raises(PartialBatchError) as exc:
            await BatchProcessor().process_sequential([0, 1], flaky, batch_size=1)
        assert exc.value.status_code == 500

    async def test_first_failure_is_reraised(self):
        async def broken(batch):
            raise RuntimeError("down")

        with pytest.raises(RuntimeError, match="down"):
            await BatchProcessor().process_sequential([1, 2, 3], broken, batch_size=1)
