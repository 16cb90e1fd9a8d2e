"""
Tests for the in-memory queue store.
"""

import asyncio

import pytest

from conftest import remote_item
from mailsort.models import AnalysisResult, WorkItemStatus
from mailsort.queue.store import QueueStore
from mailsort.utils.errors import InvalidTransitionError, ItemNotFoundError, QueueError


def result(item_id="96279") -> AnalysisResult:
    return AnalysisResult(canonical_item_id=item_id, suggested_filename="f")


class TestQueueStore:
    """Test queue mutation and queries."""

    @pytest.fixture
    def store(self):
        return QueueStore([remote_item("a"), remote_item("b"), remote_item("c")])

    def test_insertion_order(self, store):
        assert [item.display_name for item in store] == ["a.pdf", "b.pdf", "c.pdf"]
        assert len(store) == 3

    def test_duplicate_id_rejected(self, store):
        existing = store.items()[0]
        with pytest.raises(QueueError):
            store.add([existing])

    def test_replace_unknown_item(self, store):
        with pytest.raises(ItemNotFoundError):
            store.replace(remote_item("zzz"))

    def test_first_idle_follows_order(self, store):
        first, second, _ = store.items()
        store.replace(first.start_analysis("x"))
        assert store.first_idle().id == second.id

    def test_counts_and_progress(self, store):
        first, second, _ = store.items()
        store.replace(first.start_analysis("x").complete([result()]))
        store.replace(second.start_analysis("x").fail("boom"))

        counts = store.counts()
        assert counts[WorkItemStatus.SUCCEEDED] == 1
        assert counts[WorkItemStatus.FAILED] == 1
        assert counts[WorkItemStatus.IDLE] == 1
        assert store.progress() == pytest.approx(2 / 3)

    def test_progress_of_empty_queue(self):
        assert QueueStore().progress() == 0.0

    def test_results_pairs(self, store):
        first = store.items()[0]
        store.replace(first.start_analysis("x").complete([result("1"), result("2")]))
        pairs = store.results()
        assert [r.canonical_item_id for _, r in pairs] == ["1", "2"]
        assert all(item.id == first.id for item, _ in pairs)

    def test_retry_failed_item(self, store):
        first = store.items()[0]
        store.replace(first.start_analysis("x").fail("Traffic Jam"))

        retried = store.retry(first.id)

        assert retried.status == WorkItemStatus.IDLE
        assert retried.error is None

    def test_retry_requires_failed(self, store):
        with pytest.raises(InvalidTransitionError):
            store.retry(store.items()[0].id)

    def test_retry_failed_bulk(self, store):
        for item in store.items()[:2]:
            store.replace(item.start_analysis("x").fail("boom"))
        assert len(store.retry_failed()) == 2
        assert store.counts()[WorkItemStatus.IDLE] == 3

    def test_remove_and_clear_refuse_while_analyzing(self, store):
        first = store.items()[0]
        store.replace(first.start_analysis("x"))

        with pytest.raises(QueueError):
            store.remove(first.id)
        with pytest.raises(QueueError):
            store.clear()

        removed = store.remove(store.items()[1].id)
        assert removed.id not in store

    def test_get_unknown(self, store):
        with pytest.raises(ItemNotFoundError):
            store.get("missing")


class TestQueueNotification:
    """Test idle-item notification."""

    def test_listener_called_for_new_idle_items(self):
        store = QueueStore()
        calls = []
        unsubscribe = store.subscribe(lambda: calls.append(1))

        store.add([remote_item("a")])
        assert calls == [1]

        unsubscribe()
        store.add([remote_item("b")])
        assert calls == [1]

    def test_listener_called_on_retry(self):
        store = QueueStore([remote_item("a")])
        item = store.replace(store.items()[0].start_analysis("x").fail("boom"))
        calls = []
        store.subscribe(lambda: calls.append(1))

        store.retry(item.id)

        assert calls == [1]

    @pytest.mark.asyncio
    async def test_wait_for_idle(self):
        store = QueueStore()
        waiter = asyncio.create_task(store.wait_for_idle())
        await asyncio.sleep(0)
        assert not waiter.done()

        store.add([remote_item("a")])
        await asyncio.wait_for(waiter, timeout=1)
