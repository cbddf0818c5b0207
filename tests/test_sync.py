"""Tests for the sync orchestrator."""

import asyncio

import pytest

from services.sync import (
    PROJECTS_UPDATED,
    STATE_CHANGED,
    SYNC_FAILED,
    EventChannel,
    SyncOrchestrator,
    SyncState,
)


class FakeSource:
    """Stands in for the dashboard API client."""

    def __init__(self, projects=None, trigger_error=None, fetch_error=None):
        self.projects = projects or []
        self.trigger_error = trigger_error
        self.fetch_error = fetch_error
        self.triggered = 0
        self.fetches = []

    async def trigger_sync(self):
        self.triggered += 1
        if self.trigger_error:
            raise self.trigger_error
        return {"count": len(self.projects)}

    async def get_projects(self, refresh=False):
        self.fetches.append(refresh)
        if self.fetch_error:
            raise self.fetch_error
        return self.projects


async def no_sleep(delay):
    pass


def orchestrator(source, cache, **kwargs):
    return SyncOrchestrator(source, cache, sleep=no_sleep, **kwargs)


class TestSync:
    @pytest.mark.asyncio
    async def test_successful_sync(self, cache, sample_projects):
        source = FakeSource(sample_projects)
        sync = orchestrator(source, cache)

        outcome = await sync.sync()

        assert outcome.state == SyncState.COMPLETE
        assert not outcome.stale
        assert [p["id"] for p in outcome.projects] == [101, 102, 103]
        assert source.triggered == 1
        assert source.fetches == [True]
        assert cache.ids() == {101, 102, 103}
        assert sync.state == SyncState.COMPLETE
        assert not sync.busy

    @pytest.mark.asyncio
    async def test_waits_before_refetch(self, cache, sample_projects):
        delays = []

        async def record(delay):
            delays.append(delay)

        sync = SyncOrchestrator(FakeSource(sample_projects), cache, settle_delay=1, sleep=record)
        await sync.sync()

        assert delays == [1]

    @pytest.mark.asyncio
    async def test_failure_during_wait_keeps_cache(self, cache, sample_projects):
        cache.save_all(sample_projects[:2])

        async def broken_sleep(delay):
            raise RuntimeError("interrupted")

        source = FakeSource(sample_projects[2:])
        sync = SyncOrchestrator(source, cache, sleep=broken_sleep)

        outcome = await sync.sync(clear_cache=True)

        assert outcome.state == SyncState.ERROR
        assert outcome.stale
        assert outcome.error == "interrupted"
        assert [p["id"] for p in outcome.projects] == [101, 102]
        assert cache.ids() == {101, 102}
        assert cache.get_last_modified() is not None
        assert source.fetches == []

    @pytest.mark.asyncio
    async def test_empty_refetch_is_an_error(self, cache, sample_projects):
        cache.save_all(sample_projects)
        sync = orchestrator(FakeSource([]), cache)

        outcome = await sync.sync()

        assert outcome.state == SyncState.ERROR
        assert outcome.stale
        assert "No projects" in outcome.error
        assert cache.ids() == {101, 102, 103}

    @pytest.mark.asyncio
    async def test_trigger_failure_falls_back(self, cache, sample_projects):
        cache.save_all(sample_projects)
        source = FakeSource(sample_projects, trigger_error=ConnectionError("refused"))
        sync = orchestrator(source, cache)

        outcome = await sync.sync()

        assert outcome.state == SyncState.ERROR
        assert len(outcome.projects) == 3
        assert sync.error == "refused"

    @pytest.mark.asyncio
    async def test_clear_cache_drops_entries(self, cache, sample_projects):
        cache.set_item("filters", {"client": "Acme BV"})
        sync = orchestrator(FakeSource(sample_projects), cache)

        await sync.sync(clear_cache=True)

        assert cache.get_item("filters") is None
        assert cache.ids() == {101, 102, 103}

    @pytest.mark.asyncio
    async def test_second_run_while_busy_returns(self, cache, sample_projects):
        release = asyncio.Event()

        async def wait_for_release(delay):
            await release.wait()

        source = FakeSource(sample_projects)
        sync = SyncOrchestrator(source, cache, sleep=wait_for_release)

        first = asyncio.create_task(sync.sync())
        await asyncio.sleep(0)
        assert sync.busy

        second = await sync.sync()
        assert "already in progress" in second.message
        assert source.triggered == 1

        release.set()
        outcome = await first
        assert outcome.state == SyncState.COMPLETE
        assert not sync.busy

    @pytest.mark.asyncio
    async def test_failed_save_with_clear_keeps_entries(self, cache, sample_projects):
        cache.save_all(sample_projects)
        cache.set_item("filters", {"client": "Acme BV"})
        last_modified = cache.get_last_modified()
        duplicate = [sample_projects[0], sample_projects[0]]
        sync = orchestrator(FakeSource(duplicate), cache)

        outcome = await sync.sync(clear_cache=True)

        assert outcome.state == SyncState.ERROR
        assert outcome.stale
        assert cache.ids() == {101, 102, 103}
        assert cache.get_item("filters") == {"client": "Acme BV"}
        assert cache.get_last_modified() == last_modified

    @pytest.mark.asyncio
    async def test_error_cleared_after_success(self, cache, sample_projects):
        source = FakeSource(sample_projects, trigger_error=ConnectionError("refused"))
        sync = orchestrator(source, cache)
        await sync.sync()

        source.trigger_error = None
        outcome = await sync.sync()

        assert outcome.error is None
        assert sync.error is None


class TestLoad:
    @pytest.mark.asyncio
    async def test_load_fills_cache(self, cache, sample_projects):
        source = FakeSource(sample_projects)
        sync = orchestrator(source, cache)

        outcome = await sync.load()

        assert outcome.state == SyncState.COMPLETE
        assert source.triggered == 0
        assert source.fetches == [False]
        assert cache.ids() == {101, 102, 103}

    @pytest.mark.asyncio
    async def test_load_failure_uses_cache(self, cache, sample_projects):
        cache.save_all(sample_projects[:1])
        sync = orchestrator(FakeSource(fetch_error=ConnectionError("refused")), cache)

        outcome = await sync.load(refresh=True)

        assert outcome.state == SyncState.ERROR
        assert outcome.stale
        assert [p["id"] for p in outcome.projects] == [101]

    @pytest.mark.asyncio
    async def test_normalizes_json_string_fields(self, cache, sample_project):
        raw = {**sample_project, "tags": '[{"id": 3, "searchname": "Retainer"}]'}
        sync = orchestrator(FakeSource([raw]), cache)

        outcome = await sync.load()

        assert outcome.projects[0]["tags"] == [{"id": 3, "searchname": "Retainer"}]


class TestEvents:
    @pytest.mark.asyncio
    async def test_events_published(self, cache, sample_projects):
        events = EventChannel()
        states = []
        updates = []
        events.subscribe(STATE_CHANGED, lambda state, message: states.append(state))
        events.subscribe(PROJECTS_UPDATED, lambda projects, stale: updates.append((len(projects), stale)))

        await orchestrator(FakeSource(sample_projects), cache, events=events).sync()

        assert states == [SyncState.SYNCING, SyncState.COMPLETE]
        assert updates == [(3, False)]

    @pytest.mark.asyncio
    async def test_failure_events(self, cache, sample_projects):
        cache.save_all(sample_projects)
        events = EventChannel()
        failures = []
        updates = []
        events.subscribe(SYNC_FAILED, lambda error: failures.append(error))
        events.subscribe(PROJECTS_UPDATED, lambda projects, stale: updates.append(stale))

        source = FakeSource(trigger_error=ConnectionError("refused"))
        await orchestrator(source, cache, events=events).sync()

        assert failures == ["refused"]
        assert updates == [True]

    @pytest.mark.asyncio
    async def test_raising_subscriber_does_not_break_sync(self, cache, sample_projects):
        events = EventChannel()

        def broken(**kw):
            raise RuntimeError("subscriber bug")

        events.subscribe(STATE_CHANGED, broken)
        events.subscribe(PROJECTS_UPDATED, broken)
        sync = orchestrator(FakeSource(sample_projects), cache, events=events)

        outcome = await sync.sync()

        assert outcome.state == SyncState.COMPLETE
        assert sync.state == SyncState.COMPLETE
        assert cache.ids() == {101, 102, 103}
        assert not sync.busy

    @pytest.mark.asyncio
    async def test_raising_subscriber_on_failure_path(self, cache, sample_projects):
        cache.save_all(sample_projects)
        events = EventChannel()

        def broken(**kw):
            raise RuntimeError("subscriber bug")

        events.subscribe(SYNC_FAILED, broken)
        source = FakeSource(trigger_error=ConnectionError("refused"))
        sync = orchestrator(source, cache, events=events)

        outcome = await sync.sync()

        assert outcome.state == SyncState.ERROR
        assert outcome.stale
        assert len(outcome.projects) == 3

    def test_unsubscribe(self):
        events = EventChannel()
        received = []
        unsubscribe = events.subscribe("ping", lambda **kw: received.append(kw))

        events.publish("ping", n=1)
        unsubscribe()
        events.publish("ping", n=2)

        assert received == [{"n": 1}]

    def test_broken_subscriber_does_not_stop_others(self):
        events = EventChannel()
        received = []

        def broken(**kw):
            raise RuntimeError("boom")

        events.subscribe("ping", broken)
        events.subscribe("ping", lambda **kw: received.append(kw))

        events.publish("ping", n=1)

        assert received == [{"n": 1}]
