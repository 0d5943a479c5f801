"""Push/pull scheduler for one account session.

State machine::

    IDLE --notify_dirty--> DIRTY --debounce--> PUSHING --ok--> IDLE
                                                       --fail--> COOLDOWN
    COOLDOWN --elapsed--> DIRTY (a push is scheduled on the next notify_dirty)

Pulls run independently on ``pull_interval``; a failed pull also enters
COOLDOWN, a malformed snapshot does not. After a deletion, pulls are held
until the deletion has been pushed. Every network result is wrapped in a
:class:`SyncOutcome` and applied by a transition method; no exception leaves
the scheduler.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from injtrack._api.snapshot import fetch_snapshot, upload_snapshot
from injtrack._transport import SnapshotTransport
from injtrack.account import short_account
from injtrack.config import TrackerConfig
from injtrack.exceptions import InjTrackError, MalformedRemoteDataError
from injtrack.models.series import SeriesKind
from injtrack.models.snapshot import SnapshotPayload
from injtrack.state.merge import merge_changed, merge_series
from injtrack.state.session import AccountSession
from injtrack.state.store import SeriesStore

_logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class SyncState(enum.StrEnum):
    IDLE = "idle"
    DIRTY = "dirty"
    PUSHING = "pushing"
    COOLDOWN = "cooldown"


@dataclass(frozen=True, slots=True)
class SyncOutcome:
    """Result of one push or pull request."""

    ok: bool
    generation: int
    error: InjTrackError | None = None
    snapshot: SnapshotPayload | None = None
    uploaded_at: int = 0


class SyncScheduler:
    """Keeps one :class:`AccountSession` in sync with the snapshot store.

    Parameters
    ----------
    clock
        Monotonic seconds, used for the cooldown window.
    wall_clock
        Epoch milliseconds, used for ``last_sync`` and payload stamps.
    is_online
        Connectivity probe. Offline pushes and pulls are skipped.
    active_generation
        Generation of the tracker's current session. Results issued
        under any other generation are discarded.
    on_state_change
        Called with the new :class:`SyncState` after each transition.
    on_refresh
        Called with the session and the changed kinds after a pull merged
        remote points.
    """

    def __init__(
        self,
        session: AccountSession,
        store: SeriesStore,
        transport: SnapshotTransport,
        config: TrackerConfig,
        *,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], int] = _now_ms,
        is_online: Callable[[], bool] | None = None,
        active_generation: Callable[[], int] | None = None,
        on_state_change: Callable[[SyncState], None] | None = None,
        on_refresh: Callable[[AccountSession, list[SeriesKind]], None] | None = None,
    ) -> None:
        self._session = session
        self._store = store
        self._transport = transport
        self._config = config
        self._clock = clock
        self._wall_clock = wall_clock
        self._is_online = is_online or (lambda: True)
        self._active_generation = active_generation or (lambda: session.generation)
        self._on_state_change = on_state_change
        self._on_refresh = on_refresh

        self._debounce_task: asyncio.Task[None] | None = None
        self._pull_loop_task: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[object]] = set()
        self._cooldown_until = 0.0
        self._pushing = False
        self._pulling = False
        self._push_again = False
        self._dirty_seq = 0
        self._pulls_held_until_seq = 0
        self._stopped = False
        self._last_state: SyncState | None = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def session(self) -> AccountSession:
        return self._session

    @property
    def state(self) -> SyncState:
        if self._pushing:
            return SyncState.PUSHING
        if self.in_cooldown:
            return SyncState.COOLDOWN
        if self._session.meta.is_dirty:
            return SyncState.DIRTY
        return SyncState.IDLE

    @property
    def in_cooldown(self) -> bool:
        return self._clock() < self._cooldown_until

    @property
    def is_pulling(self) -> bool:
        return self._pulling

    @property
    def push_scheduled(self) -> bool:
        return self._debounce_task is not None and not self._debounce_task.done()

    def _emit(self) -> None:
        state = self.state
        if state == self._last_state:
            return
        self._last_state = state
        if self._on_state_change is None:
            return
        try:
            self._on_state_change(state)
        except Exception:
            _logger.debug("on_state_change callback failed", exc_info=True)

    def _is_stale(self, outcome: SyncOutcome) -> bool:
        return self._stopped or outcome.generation != self._active_generation()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the periodic pull loop; the first pull runs immediately."""
        if self._pull_loop_task is None or self._pull_loop_task.done():
            self._pull_loop_task = asyncio.create_task(self._pull_loop())
        self._emit()

    async def stop(self) -> None:
        """Cancel the pull loop, the pending push and any in-flight request."""
        self._stopped = True
        pending: list[asyncio.Task[object]] = [*self._tasks]
        for task in (self._debounce_task, self._pull_loop_task):
            if task is not None:
                pending.append(task)  # type: ignore[arg-type]
        self._debounce_task = None
        self._pull_loop_task = None
        self._tasks.clear()
        current = asyncio.current_task()
        pending = [task for task in pending if task is not current]
        for task in pending:
            task.cancel()
        for task in pending:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def _spawn(self, coro: object) -> None:
        task: asyncio.Task[object] = asyncio.create_task(coro)  # type: ignore[arg-type]
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # ------------------------------------------------------------------
    # Push path
    # ------------------------------------------------------------------

    def notify_dirty(self) -> None:
        """React to a local change: (re)start the debounce unless cooling down."""
        if self._stopped:
            return
        self._dirty_seq += 1
        if self.in_cooldown:
            _logger.debug(
                "Push for %s suppressed by cooldown (%.1fs left)",
                short_account(self._session.account),
                self._cooldown_until - self._clock(),
            )
            self._emit()
            return
        self._schedule_push()
        self._emit()

    def notify_reset(self) -> None:
        """React to a local deletion.

        Pulls are held until a push carrying the deletion succeeds, so the
        merge cannot restore the removed points from the remote snapshot.
        """
        self.notify_dirty()
        self._pulls_held_until_seq = self._dirty_seq

    @property
    def pulls_held(self) -> bool:
        return self._pulls_held_until_seq > 0

    def _schedule_push(self) -> None:
        if self._debounce_task is not None:
            self._debounce_task.cancel()
        task = asyncio.create_task(self._debounced_push())
        self._tasks.add(task)  # type: ignore[arg-type]
        task.add_done_callback(self._tasks.discard)  # type: ignore[arg-type]
        self._debounce_task = task

    async def _debounced_push(self) -> None:
        await asyncio.sleep(self._config.push_debounce)
        # Past the sleep this task is no longer cancellable by a new debounce.
        self._debounce_task = None
        await self.push()

    async def flush(self) -> SyncOutcome | None:
        """Push immediately if dirty, skipping the debounce."""
        if self._debounce_task is not None:
            self._debounce_task.cancel()
            self._debounce_task = None
        return await self.push()

    async def push(self) -> SyncOutcome | None:
        """Upload all four series. Returns ``None`` when nothing was sent."""
        if self._stopped:
            return None
        if self._pushing:
            self._push_again = True
            return None
        if not self._session.meta.is_dirty or self.in_cooldown:
            return None
        if not self._is_online():
            _logger.debug("Offline; keeping %s dirty", short_account(self._session.account))
            return None

        generation = self._session.generation
        seq = self._dirty_seq
        payload = SnapshotPayload.from_series(self._session.snapshot(), now_ms=self._wall_clock())

        self._pushing = True
        self._emit()
        try:
            uploaded_at = await upload_snapshot(self._transport, self._config, self._session.account, payload)
            outcome = SyncOutcome(ok=True, generation=generation, uploaded_at=uploaded_at)
        except InjTrackError as exc:
            outcome = SyncOutcome(ok=False, generation=generation, error=exc)
        finally:
            self._pushing = False

        self._apply_push_outcome(outcome, seq)
        return outcome

    def _enter_cooldown(self) -> None:
        self._cooldown_until = self._clock() + self._config.fail_cooldown
        self._push_again = False
        if self._debounce_task is not None:
            self._debounce_task.cancel()
            self._debounce_task = None

    def _apply_push_outcome(self, outcome: SyncOutcome, seq: int) -> None:
        if self._is_stale(outcome):
            _logger.debug("Discarding push result for stale generation %d", outcome.generation)
            return

        account = short_account(self._session.account)
        if outcome.ok:
            if self._dirty_seq == seq:
                self._session.meta.clear_dirty()
            if self.pulls_held and seq >= self._pulls_held_until_seq:
                self._pulls_held_until_seq = 0
            self._session.meta.last_sync = self._wall_clock()
            self._session.persist_meta(self._store)
            _logger.debug("Pushed snapshot for %s (uploadedAt=%d)", account, outcome.uploaded_at)
            if self._push_again:
                self._push_again = False
                self._schedule_push()
        else:
            self._enter_cooldown()
            _logger.warning(
                "Push for %s failed (%s); cooling down for %.0fs",
                account,
                outcome.error,
                self._config.fail_cooldown,
            )
        self._emit()

    # ------------------------------------------------------------------
    # Pull path
    # ------------------------------------------------------------------

    async def _pull_loop(self) -> None:
        while not self._stopped:
            await self.pull()
            await asyncio.sleep(self._config.pull_interval)

    def request_pull(self) -> None:
        """Run a pull in the background."""
        if not self._stopped:
            self._spawn(self.pull())

    def on_connectivity_restored(self) -> None:
        self.request_pull()
        if self._session.meta.is_dirty and not self.in_cooldown:
            self._schedule_push()
            self._emit()

    async def pull(self) -> bool:
        """Fetch, merge and persist the remote snapshot.

        Returns whether any local series changed.
        """
        if self._stopped or self._pulling or not self._is_online():
            return False
        if self.pulls_held:
            _logger.debug("Pull for %s held until the pending reset is pushed", short_account(self._session.account))
            if not self._pushing and not self.in_cooldown and not self.push_scheduled:
                self._schedule_push()
                self._emit()
            return False

        generation = self._session.generation
        self._pulling = True
        try:
            snapshot = await fetch_snapshot(self._transport, self._config, self._session.account)
            outcome = SyncOutcome(ok=True, generation=generation, snapshot=snapshot)
        except InjTrackError as exc:
            outcome = SyncOutcome(ok=False, generation=generation, error=exc)
        finally:
            self._pulling = False

        return self._apply_pull_outcome(outcome)

    def _apply_pull_outcome(self, outcome: SyncOutcome) -> bool:
        if self._is_stale(outcome):
            _logger.debug("Discarding pull result for stale generation %d", outcome.generation)
            return False

        account = short_account(self._session.account)
        if not outcome.ok:
            if isinstance(outcome.error, MalformedRemoteDataError):
                _logger.warning("Remote snapshot for %s is malformed; ignoring it: %s", account, outcome.error)
                return False
            self._enter_cooldown()
            _logger.warning(
                "Pull for %s failed (%s); cooling down for %.0fs",
                account,
                outcome.error,
                self._config.fail_cooldown,
            )
            self._emit()
            return False
        if outcome.snapshot is None:
            return False

        changed: list[SeriesKind] = []
        for kind in SeriesKind:
            try:
                remote = outcome.snapshot.decode(kind)
            except MalformedRemoteDataError as exc:
                _logger.warning("Ignoring remote %s series for %s: %s", kind.value, account, exc)
                remote = []
            # Merge against whatever is local now, not when the request left.
            local = self._session.get(kind)
            merged = merge_series(kind, local, remote)
            if merge_changed(local, merged):
                self._session.replace(kind, merged)
                changed.append(kind)

        if changed:
            self._session.persist(self._store, *changed)
        self._session.meta.last_sync = self._wall_clock()
        self._session.persist_meta(self._store)
        _logger.debug(
            "Pulled snapshot for %s; changed: %s",
            account,
            ", ".join(kind.value for kind in changed) or "none",
        )

        if changed and self._on_refresh is not None:
            try:
                self._on_refresh(self._session, changed)
            except Exception:
                _logger.debug("on_refresh callback failed", exc_info=True)
        return bool(changed)
