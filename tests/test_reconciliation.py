import unittest
from datetime import datetime, timezone

from src.application.reconciliation import ReconciliationEngine, release_changed
from src.domain.exceptions import (
    NoReleaseFoundException,
    NotFoundException,
    UpstreamUnavailableException,
)
from src.domain.models import ReleaseSnapshot, TrackedRepository


def _snapshot(release_id: str, tag: str) -> ReleaseSnapshot:
    return ReleaseSnapshot(
        release_id=release_id,
        tag=tag,
        display_name=tag,
        published_at=datetime(2024, 1, 2, tzinfo=timezone.utc),
        release_url=f"https://github.com/acme/widget/releases/tag/{tag}",
    )


class _FakeFetcher:
    def __init__(self, result=None, error=None) -> None:
        self.result = result
        self.error = error
        self.calls = 0

    async def fetch_latest_release(self, owner, name):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


class _FakeStore:
    def __init__(self, *repos: TrackedRepository) -> None:
        self.records = {repo.id: repo for repo in repos}
        self.writes = 0

    async def get_by_id(self, repo_id):
        return self.records.get(repo_id)

    async def update_release_if_changed(self, repo_id, snapshot):
        current = self.records.get(repo_id)
        if current is None:
            raise NotFoundException(repo_id)
        if current.latest_release is not None and current.latest_release.release_id == snapshot.release_id:
            return current
        self.writes += 1
        updated = current.model_copy(update={"latest_release": snapshot, "seen_by_user": False})
        self.records[repo_id] = updated
        return updated

    async def mark_seen(self, repo_id):
        current = self.records.get(repo_id)
        if current is None:
            return False
        self.records[repo_id] = current.model_copy(update={"seen_by_user": True})
        return True


WIDGET = TrackedRepository(id=1, owner="acme", name="widget", url="https://github.com/acme/widget")


class TestReleaseChanged(unittest.TestCase):
    def test_absent_cache_always_differs(self) -> None:
        self.assertTrue(release_changed(None, _snapshot("r1", "v1.0.0")))

    def test_same_release_id_with_edited_tag_is_unchanged(self) -> None:
        self.assertFalse(release_changed(_snapshot("r1", "v1.0.0"), _snapshot("r1", "v1.0.0-final")))

    def test_reused_tag_with_new_release_id_is_changed(self) -> None:
        self.assertTrue(release_changed(_snapshot("r1", "v1.0.0"), _snapshot("r2", "v1.0.0")))


class TestReconciliationEngine(unittest.IsolatedAsyncioTestCase):
    async def test_release_lifecycle(self) -> None:
        fetcher = _FakeFetcher(result=_snapshot("r1", "v1.0.0"))
        store = _FakeStore(WIDGET)
        engine = ReconciliationEngine(fetcher, store)

        first = await engine.sync(1)
        self.assertEqual(first.latest_release.tag, "v1.0.0")
        self.assertFalse(first.seen_by_user)

        await engine.mark_seen(1)
        self.assertTrue(store.records[1].seen_by_user)
        self.assertEqual(store.records[1].latest_release, first.latest_release)

        second = await engine.sync(1)
        self.assertEqual(second.latest_release.release_id, "r1")
        self.assertTrue(second.seen_by_user)
        self.assertEqual(store.writes, 1)

        fetcher.result = _snapshot("r2", "v1.1.0")
        third = await engine.sync(1)
        self.assertEqual(third.latest_release.tag, "v1.1.0")
        self.assertFalse(third.seen_by_user)
        self.assertEqual(store.writes, 2)

    async def test_repeated_sync_is_idempotent(self) -> None:
        store = _FakeStore(WIDGET.model_copy(update={"latest_release": _snapshot("r1", "v1.0.0"), "seen_by_user": True}))
        engine = ReconciliationEngine(_FakeFetcher(result=_snapshot("r1", "v1.0.0")), store)

        first = await engine.sync(1)
        second = await engine.sync(1)

        self.assertEqual(first, second)
        self.assertTrue(second.seen_by_user)
        self.assertEqual(store.writes, 0)

    async def test_no_release_raises_and_leaves_store_untouched(self) -> None:
        store = _FakeStore(WIDGET)
        engine = ReconciliationEngine(_FakeFetcher(result=None), store)

        with self.assertRaises(NoReleaseFoundException):
            await engine.sync(1)

        self.assertEqual(store.records[1], WIDGET)
        self.assertEqual(store.writes, 0)

    async def test_upstream_failure_propagates_without_writing(self) -> None:
        store = _FakeStore(WIDGET)
        engine = ReconciliationEngine(_FakeFetcher(error=UpstreamUnavailableException("down")), store)

        with self.assertRaises(UpstreamUnavailableException):
            await engine.sync(1)

        self.assertEqual(store.records[1], WIDGET)

    async def test_sync_unknown_id_does_not_fetch(self) -> None:
        fetcher = _FakeFetcher(result=_snapshot("r1", "v1.0.0"))
        engine = ReconciliationEngine(fetcher, _FakeStore())

        with self.assertRaises(NotFoundException):
            await engine.sync(7)

        self.assertEqual(fetcher.calls, 0)

    async def test_mark_seen_unknown_id_raises(self) -> None:
        engine = ReconciliationEngine(_FakeFetcher(), _FakeStore())

        with self.assertRaises(NotFoundException):
            await engine.mark_seen(7)
