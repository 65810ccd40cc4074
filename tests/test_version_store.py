from datetime import datetime, timedelta, timezone

import pytest

from app.core.errors import ConflictError, NotFoundError
from app.domains.artifacts.versions import MonotonicClock, RestorePolicy, VersionStore, ViewMode
from tests.conftest import BASE_TIME, make_version


async def seed(store, count=3, document_id="doc-1"):
    versions = []
    for offset in range(count):
        versions.append(await store.append(make_version(document_id, offset, f"v{offset}\n")))
    return versions


class TestAppend:
    async def test_append_then_list_returns_version_last(self, store):
        await seed(store, 2)
        version = make_version("doc-1", 10, "newest\n")

        await store.append(version)
        versions = await store.list("doc-1")

        assert len(versions) == 3
        assert versions[-1] == version

    async def test_list_is_ordered_by_created_at(self, store):
        for offset in (5, 1, 3):
            await store.append(make_version("doc-1", offset))

        versions = await store.list("doc-1")

        assert [v.created_at for v in versions] == sorted(v.created_at for v in versions)

    async def test_duplicate_append_is_rejected(self, store):
        await seed(store, 2)
        before = await store.list("doc-1")

        with pytest.raises(ConflictError):
            await store.append(make_version("doc-1", 1, "other content"))

        assert await store.list("doc-1") == before

    async def test_documents_are_independent(self, store):
        await seed(store, 2, "doc-1")
        await seed(store, 1, "doc-2")

        assert len(await store.list("doc-1")) == 2
        assert len(await store.list("doc-2")) == 1
        assert await store.list("missing") == []

    async def test_iter_versions_is_restartable(self, store):
        await seed(store, 3)

        first = [v async for v in store.iter_versions("doc-1")]
        second = [v async for v in store.iter_versions("doc-1")]

        assert first == second
        assert [v.content for v in first] == ["v0\n", "v1\n", "v2\n"]

    async def test_get_missing_version(self, store):
        with pytest.raises(NotFoundError):
            await store.get("doc-1", BASE_TIME)


class TestRestore:
    async def test_restore_appends_copy_of_target(self, store):
        versions = await seed(store, 3)

        restored = await store.restore("doc-1", versions[0].created_at)
        history = await store.list("doc-1")

        assert len(history) == 4
        assert history[-1] == restored
        assert restored.content == versions[0].content
        assert restored.title == versions[0].title
        assert restored.kind == versions[0].kind
        assert restored.created_at > versions[-1].created_at
        assert history[:3] == versions

    async def test_restore_uses_given_author(self, store):
        versions = await seed(store, 2)

        restored = await store.restore("doc-1", versions[0].created_at, author_id="user-2")

        assert restored.author_id == "user-2"

    async def test_restore_latest_is_still_recorded(self, store):
        versions = await seed(store, 2)

        await store.restore("doc-1", versions[-1].created_at)

        assert len(await store.list("doc-1")) == 3

    async def test_restore_delete_newer_policy(self, repository):
        store = VersionStore(repository, policy=RestorePolicy.DELETE_NEWER)
        versions = await seed(store, 3)

        restored = await store.restore("doc-1", versions[0].created_at)

        assert restored == versions[0]
        assert await store.list("doc-1") == versions[:1]

    async def test_restore_missing_target(self, store):
        await seed(store, 2)
        before = await store.list("doc-1")

        with pytest.raises(NotFoundError):
            await store.restore("doc-1", BASE_TIME - timedelta(days=1))

        assert await store.list("doc-1") == before


class TestNavigation:
    async def test_current_index_defaults_to_latest(self, store):
        assert await store.current_index("doc-1") == -1

        await seed(store, 3)

        assert await store.current_index("doc-1") == 2
        assert await store.is_current_version("doc-1") is True

    async def test_prev_and_next_are_clamped(self, store):
        await seed(store, 3)

        assert await store.change_version("doc-1", "prev") == 1
        assert await store.change_version("doc-1", "prev") == 0
        assert await store.change_version("doc-1", "prev") == 0
        assert await store.is_current_version("doc-1") is False

        assert await store.change_version("doc-1", "next") == 1
        assert await store.change_version("doc-1", "next") == 2
        assert await store.change_version("doc-1", "next") == 2
        assert await store.is_current_version("doc-1") is True

    async def test_toggle_and_latest(self, store):
        await seed(store, 3)
        await store.change_version("doc-1", "prev")

        await store.change_version("doc-1", "toggle")
        assert store.mode("doc-1") == ViewMode.DIFF

        assert await store.change_version("doc-1", "latest") == 2
        assert store.mode("doc-1") == ViewMode.EDIT

    async def test_append_returns_view_to_latest(self, store):
        await seed(store, 3)
        await store.change_version("doc-1", "prev")

        await store.append(make_version("doc-1", 10))

        assert await store.current_index("doc-1") == 3

    async def test_unknown_direction(self, store):
        await seed(store, 1)

        with pytest.raises(ValueError):
            await store.change_version("doc-1", "sideways")

    async def test_timestamp_at(self, store):
        versions = await seed(store, 3)

        assert await store.timestamp_at("doc-1", 1) == versions[1].created_at
        with pytest.raises(NotFoundError):
            await store.timestamp_at("doc-1", 3)

    async def test_diff_between_versions(self, store):
        await seed(store, 2)

        diff = await store.diff("doc-1", 0, 1)

        assert "-v0" in diff
        assert "+v1" in diff
        with pytest.raises(NotFoundError):
            await store.diff("doc-1", 0, 5)


class TestMonotonicClock:
    def test_timestamps_strictly_increase_for_frozen_clock(self):
        frozen = datetime(2024, 1, 1, tzinfo=timezone.utc)
        clock = MonotonicClock(now=lambda: frozen)

        stamps = [clock.next("doc-1") for _ in range(3)]

        assert stamps[0] == frozen
        assert stamps[0] < stamps[1] < stamps[2]

    def test_observed_history_is_respected(self):
        clock = MonotonicClock(now=lambda: BASE_TIME)
        clock.observe("doc-1", BASE_TIME + timedelta(hours=1))

        assert clock.next("doc-1") > BASE_TIME + timedelta(hours=1)
        assert clock.next("doc-2") == BASE_TIME

    async def test_next_timestamp_is_after_stored_history(self, repository):
        store = VersionStore(repository, clock=MonotonicClock(now=lambda: BASE_TIME))
        versions = await seed(store, 3)

        timestamp = await store.next_timestamp("doc-1")

        assert timestamp > versions[-1].created_at
