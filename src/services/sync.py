"""
Sync orchestration between the dashboard API and a local project cache.

State per run: idle -> loading | syncing -> complete | error. On failure the
orchestrator falls back to whatever is already cached and marks the result
as stale, so consumers never end up with an empty list without knowing why.
"""

import asyncio
import sqlite3
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Protocol

from core.config import SYNC_SETTLE_DELAY
from core.logging_config import get_logger
from models.gripp import Project
from services.cache import ProjectCache
from services.normalizer import normalize_project

logger = get_logger(__name__)

STATE_CHANGED = "state_changed"
PROJECTS_UPDATED = "projects_updated"
SYNC_FAILED = "sync_failed"


class SyncState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SYNCING = "syncing"
    COMPLETE = "complete"
    ERROR = "error"


class SyncError(Exception):
    """A sync run could not produce fresh data."""


class ProjectSource(Protocol):
    async def trigger_sync(self) -> Any: ...

    async def get_projects(self, refresh: bool = False) -> list[dict]: ...


class EventChannel:
    """Minimal publish/subscribe channel for refresh notifications."""

    def __init__(self):
        self._subscribers: dict[str, list[Callable[..., None]]] = defaultdict(list)

    def subscribe(self, event: str, callback: Callable[..., None]) -> Callable[[], None]:
        """Register a callback; returns a function that unsubscribes it."""
        self._subscribers[event].append(callback)
        return lambda: self.unsubscribe(event, callback)

    def unsubscribe(self, event: str, callback: Callable[..., None]) -> None:
        if callback in self._subscribers.get(event, []):
            self._subscribers[event].remove(callback)

    def publish(self, event: str, **payload) -> None:
        for callback in list(self._subscribers.get(event, [])):
            try:
                callback(**payload)
            except Exception:
                # Subscriber errors never reach the publisher
                logger.exception("event_subscriber_failed", event_name=event)


@dataclass
class SyncOutcome:
    state: SyncState
    projects: list[Project] = field(default_factory=list)
    message: str = ""
    stale: bool = False
    error: str | None = None


class SyncOrchestrator:
    """Drives loads and syncs for one local cache. One run at a time."""

    def __init__(
        self,
        source: ProjectSource,
        cache: ProjectCache,
        events: EventChannel | None = None,
        settle_delay: float = SYNC_SETTLE_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.source = source
        self.cache = cache
        self.events = events if events is not None else EventChannel()
        self.settle_delay = settle_delay
        self._sleep = sleep

        self.state = SyncState.IDLE
        self.message = ""
        self.error: str | None = None
        self.projects: list[Project] = []
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    def _set_state(self, state: SyncState, message: str) -> None:
        self.state = state
        self.message = message
        logger.info("sync_state_changed", state=state.value, message=message)
        self.events.publish(STATE_CHANGED, state=state, message=message)

    def _current(self, message: str) -> SyncOutcome:
        return SyncOutcome(self.state, self.projects, message, error=self.error)

    def _fail(self, error: Exception, message: str) -> SyncOutcome:
        """Move to error and fall back to the cached projects."""
        self.error = str(error) or type(error).__name__
        logger.error("sync_failed", error=self.error)
        self._set_state(SyncState.ERROR, message)
        self.events.publish(SYNC_FAILED, error=self.error)

        try:
            cached = self.cache.get_all()
        except sqlite3.Error as e:
            logger.error("sync_fallback_failed", error=str(e))
            cached = self.projects

        self.projects = cached
        self.events.publish(PROJECTS_UPDATED, projects=cached, stale=True)
        return SyncOutcome(SyncState.ERROR, cached, message, stale=True, error=self.error)

    async def load(self, refresh: bool = False) -> SyncOutcome:
        """Fetch projects from the source into the local cache."""
        if self._busy:
            return self._current("A sync is already in progress")

        self._busy = True
        try:
            self._set_state(SyncState.LOADING, "Loading projects")
            raw = await self.source.get_projects(refresh=refresh)
            projects = [normalize_project(p) for p in raw]
            self.cache.save_all(projects)

            self.error = None
            self.projects = projects
            self._set_state(SyncState.COMPLETE, f"{len(projects)} projects loaded")
            self.events.publish(PROJECTS_UPDATED, projects=projects, stale=False)
            return self._current(self.message)
        except Exception as e:
            return self._fail(e, "Loading projects failed, showing cached data")
        finally:
            self._busy = False

    async def sync(self, clear_cache: bool = False) -> SyncOutcome:
        """
        Trigger a server-side sync, then refresh the local cache.

        Steps: trigger, wait ``settle_delay``, re-fetch with a cache-buster,
        replace the cache. ``clear_cache`` also drops the key-value entries,
        in the same transaction as the project replacement. The local cache
        is only touched once fresh projects are in hand.
        """
        if self._busy:
            return self._current("A sync is already in progress")

        self._busy = True
        try:
            self._set_state(SyncState.SYNCING, "Syncing projects with Gripp")
            await self.source.trigger_sync()
            await self._sleep(self.settle_delay)

            raw = await self.source.get_projects(refresh=True)
            if not raw:
                raise SyncError("No projects returned after sync")
            projects = [normalize_project(p) for p in raw]
            self.cache.save_all(projects, clear_entries=clear_cache)

            self.error = None
            self.projects = projects
            self._set_state(SyncState.COMPLETE, f"{len(projects)} projects synced")
            self.events.publish(PROJECTS_UPDATED, projects=projects, stale=False)
            return self._current(self.message)
        except Exception as e:
            return self._fail(e, "Sync failed, showing cached data")
        finally:
            self._busy = False
