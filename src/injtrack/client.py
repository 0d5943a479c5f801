"""High-level async tracker for Injective portfolio series."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from typing import Any

import aiohttp

from injtrack._constants import UNSETTLED_EVENT_KINDS
from injtrack._transport import HttpTransport, SnapshotTransport
from injtrack.account import is_valid_account, normalize_account, short_account
from injtrack.config import TrackerConfig
from injtrack.exceptions import InjTrackError
from injtrack.ingestion import accumulators
from injtrack.models.series import EventPoint, EventStatus, SeriesKind
from injtrack.state.session import AccountSession
from injtrack.state.store import SeriesStore, create_store
from injtrack.sync import SyncOutcome, SyncScheduler, SyncState

_logger = logging.getLogger(__name__)


def _now_ms() -> int:
    """Current epoch timestamp in milliseconds."""
    return int(time.time() * 1000)


class Tracker:
    """Async tracker keeping one account's series in sync with the snapshot store.

    Usage::

        async with Tracker(config) as tracker:
            await tracker.switch_account("inj1...")
            tracker.observe_stake(12.5)
    """

    def __init__(
        self,
        config: TrackerConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        store: SeriesStore | None = None,
        transport: SnapshotTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], int] = _now_ms,
        on_refresh: Callable[[AccountSession, list[SeriesKind]], None] | None = None,
        on_state_change: Callable[[SyncState], None] | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._store = store if store is not None else create_store(config.storage_dir)
        self._transport = transport
        self._clock = clock
        self._wall_clock = wall_clock
        self._on_refresh = on_refresh
        self._on_state_change = on_state_change

        self._online = config.start_online
        self._generation = 0
        self._session: AccountSession | None = None
        self._scheduler: SyncScheduler | None = None
        self._settle_tasks: set[asyncio.Task[None]] = set()
        self._switch_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> Tracker:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(self._config, self._http_session)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        async with self._switch_lock:
            await self._close_account()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    def _require_transport(self) -> SnapshotTransport:
        if self._transport is None:
            raise InjTrackError("Tracker not initialized. Use 'async with Tracker(...) as tracker:'")
        return self._transport

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def session(self) -> AccountSession | None:
        return self._session

    @property
    def account(self) -> str | None:
        return self._session.account if self._session is not None else None

    @property
    def online(self) -> bool:
        return self._online

    @property
    def sync_state(self) -> SyncState:
        if self._scheduler is None:
            return SyncState.IDLE
        return self._scheduler.state

    @property
    def scheduler(self) -> SyncScheduler | None:
        return self._scheduler

    # ------------------------------------------------------------------
    # Account switching
    # ------------------------------------------------------------------

    async def switch_account(self, address: str) -> bool:
        """Make *address* the active account.

        Returns ``False`` for a malformed address; the previous account stays
        active and receives an ``Invalid address`` event.
        """
        transport = self._require_transport()
        if not is_valid_account(address):
            _logger.warning("Rejected invalid address %r", short_account(str(address)))
            if self._session is not None:
                self._record_event(
                    kind="info",
                    title="Invalid address",
                    detail="Expected inj followed by 20-80 letters or digits",
                    status=EventStatus.ERR,
                )
                self._notify()
            return False

        account = normalize_account(address)
        # Switches run one at a time; the last caller ends up active.
        async with self._switch_lock:
            if self._session is not None and self._session.account == account:
                return True

            await self._close_account()
            self._generation += 1
            session = AccountSession.open(account, self._store, generation=self._generation)
            scheduler = SyncScheduler(
                session,
                self._store,
                transport,
                self._config,
                clock=self._clock,
                wall_clock=self._wall_clock,
                is_online=lambda: self._online,
                active_generation=lambda: self._generation,
                on_state_change=self._on_state_change,
                on_refresh=self._on_refresh,
            )
            self._session = session
            self._scheduler = scheduler
            scheduler.start()
            if session.meta.is_dirty:
                # Local changes left over from a previous run.
                scheduler.notify_dirty()
            _logger.info("Switched to account %s (generation %d)", short_account(account), self._generation)
        return True

    async def _close_account(self) -> None:
        tasks = [*self._settle_tasks]
        self._settle_tasks.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

        scheduler, self._scheduler = self._scheduler, None
        if scheduler is not None:
            await scheduler.stop()
        if self._session is not None:
            self._session.clear()
            self._session = None

    # ------------------------------------------------------------------
    # Observations
    # ------------------------------------------------------------------

    def _notify(self) -> None:
        if self._scheduler is not None:
            self._scheduler.notify_dirty()

    def _notify_reset(self) -> None:
        if self._scheduler is not None:
            self._scheduler.notify_reset()

    def observe_stake(self, balance: Any) -> bool:
        """Feed a staked balance. Returns whether a stake point was recorded."""
        session = self._session
        if session is None:
            return False
        previous = session.last_stake_rounded
        point = accumulators.record_stake(session, self._store, balance, now_ms=self._wall_clock())
        if point is None:
            return False
        if previous is not None:
            delta = point.balance - previous
            self._record_event(
                kind="tx",
                title="Stake increased" if delta > 0 else "Stake decreased",
                detail=f"{delta:+.6f} INJ",
                direction="up" if delta > 0 else "down",
            )
        self._notify()
        return True

    def observe_rewards(self, unclaimed: Any) -> bool:
        """Feed the unclaimed reward. Returns whether a withdrawal was recorded."""
        session = self._session
        if session is None:
            return False
        point = accumulators.record_rewards(
            session,
            self._store,
            unclaimed,
            threshold=self._config.reward_withdraw_threshold,
            now_ms=self._wall_clock(),
        )
        if point is None:
            return False
        self._record_event(
            kind="tx",
            title="Rewards withdrawn",
            detail=f"+{point.amount:.6f} INJ",
            direction="up",
        )
        self._notify()
        return True

    def observe_net_worth(self, *, available: Any, staked: Any, rewards: Any, price: Any) -> bool:
        """Feed balances and the live price. Returns whether a sample was recorded."""
        session = self._session
        if session is None:
            return False
        point = accumulators.record_net_worth(
            session,
            self._store,
            available=available,
            staked=staked,
            rewards=rewards,
            price=price,
            min_interval=self._config.net_worth_min_interval,
            min_usd_delta=self._config.net_worth_min_usd_delta,
            now_ms=self._wall_clock(),
        )
        if point is None:
            return False
        self._notify()
        return True

    def observe_apr(self, apr: Any) -> bool:
        """Feed the current APR in percent. Returns whether an event was emitted."""
        session = self._session
        if session is None:
            return False
        event = accumulators.record_apr_change(
            session,
            self._store,
            apr,
            threshold=self._config.apr_event_threshold,
            now_ms=self._wall_clock(),
        )
        if event is None:
            return False
        self._schedule_settle(event)
        self._notify()
        return True

    def record_event(
        self,
        *,
        kind: str = "info",
        title: str = "Event",
        detail: str = "",
        direction: str | None = None,
        status: EventStatus | str = EventStatus.PENDING,
        event_id: str | None = None,
    ) -> EventPoint | None:
        """Add an activity event to the active account."""
        event = self._record_event(
            kind=kind,
            title=title,
            detail=detail,
            direction=direction,
            status=status,
            event_id=event_id,
        )
        if event is not None:
            self._notify()
        return event

    def _record_event(self, **kwargs: Any) -> EventPoint | None:
        session = self._session
        if session is None:
            return None
        event = accumulators.record_event(session, self._store, now_ms=self._wall_clock(), **kwargs)
        self._schedule_settle(event)
        return event

    def _schedule_settle(self, event: EventPoint) -> None:
        if event.status is not EventStatus.PENDING or event.kind in UNSETTLED_EVENT_KINDS:
            return
        session = self._session
        if session is None:
            return
        task = asyncio.create_task(self._settle_event(session, event.id))
        self._settle_tasks.add(task)
        task.add_done_callback(self._settle_tasks.discard)

    async def _settle_event(self, session: AccountSession, event_id: str) -> None:
        await asyncio.sleep(self._config.event_settle_delay)
        if session is not self._session or session.generation != self._generation:
            return
        status = EventStatus.OK if self._online else EventStatus.ERR
        if accumulators.set_event_status(session, self._store, event_id, status):
            self._notify()

    def clear_events(self) -> None:
        """Empty the activity feed of the active account."""
        if self._session is None:
            return
        accumulators.clear_series(self._session, self._store, SeriesKind.EVENTS)
        self._notify_reset()

    def reset_account(self) -> None:
        """Empty all four series of the active account and push the reset.

        Pulls are held until the reset has been pushed.
        """
        if self._session is None:
            return
        accumulators.clear_series(self._session, self._store)
        _logger.info("Reset all series for %s", short_account(self._session.account))
        self._notify_reset()

    # ------------------------------------------------------------------
    # Connectivity and manual sync
    # ------------------------------------------------------------------

    def set_online(self, online: bool) -> None:
        was_online, self._online = self._online, bool(online)
        if self._online and not was_online and self._scheduler is not None:
            _logger.debug("Connectivity restored")
            self._scheduler.on_connectivity_restored()

    async def pull(self) -> bool:
        """Fetch and merge the remote snapshot now. Returns whether anything changed."""
        if self._scheduler is None:
            return False
        return await self._scheduler.pull()

    async def flush(self) -> SyncOutcome | None:
        """Push pending local changes now, skipping the debounce."""
        if self._scheduler is None:
            return None
        return await self._scheduler.flush()
