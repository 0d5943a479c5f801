from __future__ import annotations

import asyncio
import dataclasses

import aiohttp
import pytest

from conftest import FakeClock, FakeTransport
from injtrack.client import Tracker
from injtrack.config import TrackerConfig
from injtrack.exceptions import InjTrackError
from injtrack.models.series import EventStatus, SeriesKind
from injtrack.state.store import MemorySeriesStore
from injtrack.sync import SyncState

ACCOUNT_A = "inj1" + "a" * 38
ACCOUNT_B = "inj1" + "b" * 38
ACCOUNT_C = "inj1" + "c" * 38
T0 = 1_767_225_600_000


def _tracker(
    config: TrackerConfig,
    store: MemorySeriesStore,
    transport: FakeTransport,
    clock: FakeClock,
    wall: list[int] | None = None,
) -> Tracker:
    wall = wall if wall is not None else [T0]
    return Tracker(config, store=store, transport=transport, clock=clock, wall_clock=lambda: wall[0])


@pytest.mark.asyncio
async def test_account_isolation_round_trip(
    config: TrackerConfig, store: MemorySeriesStore, transport: FakeTransport, clock: FakeClock
) -> None:
    async with _tracker(config, store, transport, clock) as tracker:
        assert await tracker.switch_account(ACCOUNT_A)
        tracker.observe_stake(5.0)

        assert await tracker.switch_account(ACCOUNT_B.upper())
        assert tracker.account == ACCOUNT_B
        assert tracker.session is not None
        assert tracker.session.series[SeriesKind.STAKE] == []
        tracker.observe_stake(1.0)

        assert await tracker.switch_account(ACCOUNT_A)
        assert [p.balance for p in tracker.session.series[SeriesKind.STAKE]] == [5.0]
        assert tracker.session.generation == 3

    assert [p.balance for p in store.load(ACCOUNT_B, SeriesKind.STAKE) or []] == [1.0]


@pytest.mark.asyncio
async def test_concurrent_switches_leave_one_scheduler_running(
    config: TrackerConfig, store: MemorySeriesStore, transport: FakeTransport, clock: FakeClock
) -> None:
    config = dataclasses.replace(config, pull_interval=0.05)
    async with _tracker(config, store, transport, clock) as tracker:
        assert await tracker.switch_account(ACCOUNT_A)

        results = await asyncio.gather(tracker.switch_account(ACCOUNT_B), tracker.switch_account(ACCOUNT_C))

        assert results == [True, True]
        assert tracker.account == ACCOUNT_C
        assert tracker.session is not None
        assert tracker.session.generation == 3

        await asyncio.sleep(0.1)
        pulls_a = transport.gets.count(ACCOUNT_A)
        pulls_b = transport.gets.count(ACCOUNT_B)
        pulls_c = transport.gets.count(ACCOUNT_C)
        await asyncio.sleep(0.3)

        assert transport.gets.count(ACCOUNT_A) == pulls_a
        assert transport.gets.count(ACCOUNT_B) == pulls_b
        assert transport.gets.count(ACCOUNT_C) > pulls_c

    total = len(transport.gets)
    await asyncio.sleep(0.15)
    assert len(transport.gets) == total


@pytest.mark.asyncio
async def test_invalid_address_is_reported_as_event(
    config: TrackerConfig, store: MemorySeriesStore, transport: FakeTransport, clock: FakeClock
) -> None:
    async with _tracker(config, store, transport, clock) as tracker:
        assert await tracker.switch_account("not-an-address") is False
        assert tracker.session is None

        await tracker.switch_account(ACCOUNT_A)
        assert await tracker.switch_account("inj1short") is False

        assert tracker.account == ACCOUNT_A
        event = tracker.session.series[SeriesKind.EVENTS][0]
        assert event.title == "Invalid address"
        assert event.status is EventStatus.ERR
        assert tracker.session.meta.dirty[SeriesKind.EVENTS] is True


@pytest.mark.asyncio
async def test_stake_change_emits_event_that_settles(
    config: TrackerConfig, store: MemorySeriesStore, transport: FakeTransport, clock: FakeClock
) -> None:
    async with _tracker(config, store, transport, clock) as tracker:
        await tracker.switch_account(ACCOUNT_A)

        assert tracker.observe_stake(5.0) is True
        assert tracker.session.series[SeriesKind.EVENTS] == []
        assert tracker.observe_stake(5.0) is False
        assert tracker.observe_stake(6.5) is True

        event = tracker.session.series[SeriesKind.EVENTS][0]
        assert event.title == "Stake increased"
        assert event.detail == "+1.500000 INJ"
        assert event.status is EventStatus.PENDING

        await asyncio.sleep(config.event_settle_delay + 0.1)
        assert tracker.session.series[SeriesKind.EVENTS][0].status is EventStatus.OK


@pytest.mark.asyncio
async def test_events_settle_as_error_while_offline(
    config: TrackerConfig, store: MemorySeriesStore, transport: FakeTransport, clock: FakeClock
) -> None:
    async with _tracker(config, store, transport, clock) as tracker:
        await tracker.switch_account(ACCOUNT_A)
        tracker.set_online(False)

        tracker.record_event(kind="info", title="Manual note")
        price = tracker.record_event(kind="price", title="INJ moved")
        await asyncio.sleep(config.event_settle_delay + 0.1)

        events = {e.title: e for e in tracker.session.series[SeriesKind.EVENTS]}
        assert events["Manual note"].status is EventStatus.ERR
        assert price is not None
        assert events["INJ moved"].status is EventStatus.PENDING


@pytest.mark.asyncio
async def test_reward_withdrawal_is_recorded(
    config: TrackerConfig, store: MemorySeriesStore, transport: FakeTransport, clock: FakeClock
) -> None:
    async with _tracker(config, store, transport, clock) as tracker:
        await tracker.switch_account(ACCOUNT_A)

        assert tracker.observe_rewards(0.0100) is False
        assert tracker.observe_rewards(0.0097) is True

        withdrawals = tracker.session.series[SeriesKind.WITHDRAWAL]
        assert withdrawals[0].amount == pytest.approx(0.0003)
        assert tracker.session.series[SeriesKind.EVENTS][0].title == "Rewards withdrawn"


@pytest.mark.asyncio
async def test_net_worth_and_apr_observations(
    config: TrackerConfig, store: MemorySeriesStore, transport: FakeTransport, clock: FakeClock
) -> None:
    wall = [T0]
    async with _tracker(config, store, transport, clock, wall) as tracker:
        await tracker.switch_account(ACCOUNT_A)

        assert tracker.observe_net_worth(available=1, staked=9, rewards=0, price=20) is True
        wall[0] += 1000
        assert tracker.observe_net_worth(available=1, staked=9, rewards=0, price=30) is False
        wall[0] += 5000
        assert tracker.observe_net_worth(available=1, staked=9, rewards=0, price=30) is True

        assert tracker.observe_apr(14.2) is False
        assert tracker.observe_apr(14.0) is True
        assert tracker.session.series[SeriesKind.EVENTS][0].title == "APR decreased"


@pytest.mark.asyncio
async def test_flush_reset_and_clear_events(
    config: TrackerConfig, store: MemorySeriesStore, transport: FakeTransport, clock: FakeClock
) -> None:
    async with _tracker(config, store, transport, clock) as tracker:
        assert await tracker.flush() is None
        await tracker.switch_account(ACCOUNT_A)
        tracker.observe_stake(5.0)
        tracker.record_event(title="Hello", status=EventStatus.OK)
        assert tracker.sync_state is SyncState.DIRTY

        outcome = await tracker.flush()
        assert outcome is not None and outcome.ok
        assert transport.posts[-1]["stake"]["data"] == [5.0]
        assert tracker.sync_state is SyncState.IDLE

        tracker.clear_events()
        assert tracker.session.series[SeriesKind.EVENTS] == []

        tracker.reset_account()
        await tracker.flush()
        assert transport.posts[-1]["stake"]["data"] == []
        assert transport.posts[-1]["events"] == []
        assert store.load(ACCOUNT_A, SeriesKind.STAKE) == []


@pytest.mark.asyncio
async def test_reset_survives_pull_before_push(
    config: TrackerConfig, store: MemorySeriesStore, transport: FakeTransport, clock: FakeClock
) -> None:
    transport.data[ACCOUNT_A] = {"stake": {"labels": ["1000", "2000"], "data": [5.0, 7.5]}}
    async with _tracker(config, store, transport, clock) as tracker:
        await tracker.switch_account(ACCOUNT_A)
        await asyncio.sleep(0.05)
        assert len(tracker.session.series[SeriesKind.STAKE]) == 2

        tracker.reset_account()
        assert await tracker.pull() is False
        assert tracker.session.series[SeriesKind.STAKE] == []

        await asyncio.sleep(config.push_debounce + 0.1)
        assert transport.posts[-1]["stake"]["data"] == []
        assert tracker.sync_state is SyncState.IDLE

        assert await tracker.pull() is False
        assert tracker.session.series[SeriesKind.STAKE] == []
        assert store.load(ACCOUNT_A, SeriesKind.STAKE) == []


@pytest.mark.asyncio
async def test_pull_merges_remote_history(
    config: TrackerConfig, store: MemorySeriesStore, transport: FakeTransport, clock: FakeClock
) -> None:
    transport.data[ACCOUNT_A] = {"stake": {"labels": ["1000", "2000"], "data": [5.0, 7.5]}}
    refreshed: list[list[SeriesKind]] = []
    tracker = Tracker(
        config,
        store=store,
        transport=transport,
        clock=clock,
        on_refresh=lambda _session, kinds: refreshed.append(kinds),
    )
    async with tracker:
        await tracker.switch_account(ACCOUNT_A)
        await asyncio.sleep(0.05)

        assert refreshed == [[SeriesKind.STAKE]]
        assert [p.balance for p in tracker.session.series[SeriesKind.STAKE]] == [5.0, 7.5]
        assert await tracker.pull() is False


@pytest.mark.asyncio
async def test_restoring_connectivity_pulls(
    config: TrackerConfig, store: MemorySeriesStore, transport: FakeTransport, clock: FakeClock
) -> None:
    async with _tracker(config, store, transport, clock) as tracker:
        await tracker.switch_account(ACCOUNT_A)
        await asyncio.sleep(0.05)
        assert len(transport.gets) == 1

        tracker.set_online(False)
        tracker.set_online(True)
        await asyncio.sleep(0.05)

        assert len(transport.gets) == 2


@pytest.mark.asyncio
async def test_observations_without_account_are_ignored(
    config: TrackerConfig, store: MemorySeriesStore, transport: FakeTransport, clock: FakeClock
) -> None:
    async with _tracker(config, store, transport, clock) as tracker:
        assert tracker.observe_stake(5.0) is False
        assert tracker.record_event(title="Nobody home") is None
        assert tracker.sync_state is SyncState.IDLE
        assert await tracker.pull() is False


@pytest.mark.asyncio
async def test_switch_requires_context_manager(config: TrackerConfig) -> None:
    tracker = Tracker(config)
    with pytest.raises(InjTrackError):
        await tracker.switch_account(ACCOUNT_A)


@pytest.mark.asyncio
async def test_external_http_session_is_left_open(config: TrackerConfig) -> None:
    async with aiohttp.ClientSession() as http:
        async with Tracker(config, session=http):
            pass
        assert not http.closed
