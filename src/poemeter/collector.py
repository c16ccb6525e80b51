import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

import structlog

from poemeter.metrics import MetricsUpdater
from poemeter.models import PointsInfo
from poemeter.provider.base import PointsProvider
from poemeter.record_store import RecordStore
from poemeter.subscription import current_period, period_for_offset

logger = structlog.get_logger()

# auto-fetch pulls at most this many pages per cycle
_DEFAULT_AUTO_FETCH_PAGES = 10


@dataclass(frozen=True, slots=True)
class SyncResult:
    new_records: "int"
    updated_records: "int"
    message: "str"
    # True when another sync was already in flight
    skipped: "bool" = False


@dataclass(frozen=True, slots=True)
class SyncStatus:
    is_running: "bool"
    # unix timestamp of the last sync attempt
    last_sync_time: "float | None"
    last_sync_result: "str"


class Collector:
    """
    Collector is responsible for syncing the points history into
    the record store. It pages through the history newest first
    and stops at the start of the current subscription period, or
    (in incremental mode) at the first record it already holds.

    Syncs are serialised: a sync requested while another one is in
    flight is skipped rather than queued, so an older response can
    never land on top of a newer one. The auto-fetch loop runs until
    stop() is called, sleeping a configured interval between cycles.
    """

    def __init__(
        self,
        provider: "PointsProvider",
        record_store: "RecordStore",
        metrics_updater: "MetricsUpdater",
        subscription_day: "int" = 1,
        fetch_interval_minutes: "int" = 30,
        page_delay_seconds: "float" = 1.0,
        on_sync: "Callable[[SyncResult], None] | None" = None,
    ) -> "None":
        self._provider = provider
        self._store = record_store
        self._metrics = metrics_updater
        self._subscription_day = subscription_day
        self._interval = max(fetch_interval_minutes, 1) * 60
        self._page_delay = page_delay_seconds
        self._on_sync = on_sync
        self._sync_lock: "asyncio.Lock" = asyncio.Lock()
        self._stop_event: "asyncio.Event" = asyncio.Event()
        self._last_sync_time: "float | None" = None
        self._last_sync_result: "str" = ""
        self._points_info: "PointsInfo | None" = None

    @property
    def points_info(self) -> "PointsInfo | None":
        return self._points_info

    def status(self) -> "SyncStatus":
        return SyncStatus(
            is_running=self._sync_lock.locked(),
            last_sync_time=self._last_sync_time,
            last_sync_result=self._last_sync_result,
        )

    def stop(self) -> "None":
        """
        signals the auto-fetch loop to stop after the current cycle.
        """
        self._stop_event.set()

    async def close(self) -> "None":
        """
        closes the provider session.
        """
        await self._provider.close()

    async def sync(
        self,
        full_sync: "bool" = False,
        max_pages: "int | None" = None,
        now: "datetime | None" = None,
    ) -> "SyncResult":
        """
        pulls new history records into the store. With full_sync,
        records already held are refreshed instead of ending the
        sync. Provider errors propagate after being counted.
        """
        if self._sync_lock.locked():
            logger.info("sync_already_running")
            return SyncResult(0, 0, "Sync already in progress", skipped=True)

        async with self._sync_lock:
            self._last_sync_time = time.time()
            cycle_start = time.monotonic()

            try:
                result = await self._sync_pages(full_sync, max_pages, now)
            except Exception as exc:
                self._metrics.inc_sync_error("history")
                self._last_sync_result = f"Error: {exc}"
                raise
            finally:
                self._metrics.observe_sync_duration(time.monotonic() - cycle_start)

            self._last_sync_result = result.message
            self._metrics.set_last_sync_success(time.time())
            logger.info(
                "sync_done",
                new_records=result.new_records,
                updated_records=result.updated_records,
            )
            return result

    async def _sync_pages(
        self,
        full_sync: "bool",
        max_pages: "int | None",
        now: "datetime | None",
    ) -> "SyncResult":
        period_start, _ = current_period(self._subscription_day, now)
        new_records = 0
        updated_records = 0
        pages = 0
        cursor = ""

        while True:
            page = await self._provider.fetch_history_page(cursor)
            pages += 1
            done = False

            for node in page.nodes:
                if node.creation_time <= period_start:
                    logger.info("period_start_reached", period_start=period_start)
                    done = True
                    break

                if self._store.contains(node.id):
                    if not full_sync:
                        done = True
                        break
                    self._store.upsert(node)
                    updated_records += 1
                    continue

                self._store.upsert(node)
                self._metrics.record_node(node)
                new_records += 1

            if done or not page.has_next_page:
                break
            if max_pages is not None and pages >= max_pages:
                logger.info("sync_page_limit_reached", pages=pages)
                break

            cursor = page.end_cursor
            # keep the request rate down between pages
            await asyncio.sleep(self._page_delay)

        message = f"Successfully fetched {new_records} new records"
        if updated_records:
            message += f", updated {updated_records} existing records"
        return SyncResult(new_records, updated_records, message)

    async def refresh_points_info(self) -> "PointsInfo":
        try:
            info = await self._provider.fetch_points_info()
        except Exception:
            self._metrics.inc_sync_error("points_info")
            raise

        self._points_info = info
        self._metrics.set_points_info(info)
        return info

    async def run(self) -> "None":
        """
        runs the auto-fetch loop. Runs until stop() is called.
        """
        while not self._stop_event.is_set():
            await self._collect()

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except TimeoutError:
                pass

    async def _collect(self) -> "None":
        logger.info("sync_cycle_start", records_held=len(self._store))

        # balance and history are fetched independently
        try:
            await self.refresh_points_info()
        except Exception:
            logger.exception("points_info_fetch_error", provider=self._provider.name)

        try:
            result = await self.sync(max_pages=_DEFAULT_AUTO_FETCH_PAGES)
        except Exception:
            logger.exception("history_fetch_error", provider=self._provider.name)
            return

        # only the current and previous periods are kept
        previous_start, _ = period_for_offset(self._subscription_day, -1)
        evicted = self._store.evict_before(previous_start)
        if evicted:
            logger.debug("records_evicted", count=evicted, cutoff=previous_start)

        if not result.skipped and self._on_sync is not None:
            try:
                self._on_sync(result)
            except Exception:
                logger.exception("sync_callback_error")

        logger.info("sync_cycle_end")
