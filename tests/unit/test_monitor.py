"""Unit tests for :class:`~restockbot.orchestrator.monitor.Monitor`.

The monitor runs against an in-memory browser host and a manual scheduler,
so every host signal and every timer firing is triggered explicitly by the
test.  ``await monitor.join()`` waits until the worker has handled
everything queued so far.

Covers:
- Session start, restart and stop (idempotent).
- The probe-result transitions: not_found retry, available (three purchase
  outcomes), out_of_stock.
- Post-success checkout navigation: confirmation reached, tab closed,
  deadline expired.
- Resource loss and stale/foreign results.
- Self-healing after probe injection and reload failures.
- Command errors (creation failure, empty URL, monitor not running).
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from restockbot.core.exceptions import (
    BrowserError,
    ConfigError,
    OrchestratorError,
    ProbeInjectionFailed,
    ResourceCreationFailed,
    ResourceLost,
    StorageError,
)
from restockbot.core.models import (
    LastError,
    MonitorConfig,
    MonitorState,
    ProbeResult,
    ProbeStatus,
    PurchaseOutcome,
)
from restockbot.core.settings import Settings
from restockbot.notifiers.broadcast import StateBroadcaster
from restockbot.notifiers.notifier import Notifier
from restockbot.orchestrator.monitor import Monitor
from restockbot.storage.store import StateStore

URL = "https://x.test/p"
CHECKOUT = "https://x.test/s/checkout"
CONFIG = MonitorConfig(url=URL, interval_seconds=5, quantity=1)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeHost:
    """In-memory browser host; tests fire its signals by hand."""

    def __init__(self) -> None:
        self.listener = None
        self.created: list[str] = []
        self.navigations: list[tuple[str, str]] = []
        self.reloads: list[str] = []
        self.probes: list[tuple[str, int]] = []
        self.closed: set[str] = set()
        self.fail_create = False
        self.fail_inject = False
        self.reload_error: Exception | None = None
        self._counter = 0

    def bind(self, listener) -> None:  # noqa: ANN001
        self.listener = listener

    async def create_resource(self, url: str) -> str:
        if self.fail_create:
            raise ResourceCreationFailed(None, f"could not open {url}")
        self._counter += 1
        resource_id = f"tab{self._counter}"
        self.created.append(resource_id)
        return resource_id

    async def navigate(self, resource_id: str, url: str) -> None:
        if resource_id in self.closed:
            raise ResourceLost(resource_id, "tab is closed")
        self.navigations.append((resource_id, url))

    async def reload(self, resource_id: str) -> None:
        if self.reload_error is not None:
            raise self.reload_error
        if resource_id in self.closed:
            raise ResourceLost(resource_id, "tab is closed")
        self.reloads.append(resource_id)

    async def inject_probe(self, resource_id: str, quantity: int) -> None:
        if self.fail_inject or resource_id in self.closed:
            raise ProbeInjectionFailed(resource_id, "tab is not open")
        self.probes.append((resource_id, quantity))

    # Signals

    def load(self, resource_id: str, url: str) -> None:
        self.listener.on_resource_navigated(resource_id, url)

    def close_tab(self, resource_id: str) -> None:
        self.closed.add(resource_id)
        self.listener.on_resource_gone(resource_id)

    def report(
        self,
        resource_id: str,
        status: ProbeStatus,
        outcome: PurchaseOutcome | None = None,
    ) -> None:
        self.listener.on_probe_result(
            ProbeResult(resource_id=resource_id, status=status, purchase_outcome=outcome)
        )


class ManualScheduler:
    """Single-slot scheduler that only fires when the test says so."""

    def __init__(self) -> None:
        self.callback: Callable[[], None] | None = None
        self.delay: float | None = None
        self.history: list[float] = []

    def schedule(self, callback: Callable[[], None], delay_seconds: float) -> None:
        self.callback = callback
        self.delay = delay_seconds
        self.history.append(delay_seconds)

    def cancel(self) -> None:
        self.callback = None
        self.delay = None

    def is_pending(self) -> bool:
        return self.callback is not None

    def fire(self) -> None:
        assert self.callback is not None, "nothing scheduled"
        callback = self.callback
        self.cancel()
        callback()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture()
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture()
def notifier() -> MagicMock:
    return MagicMock(spec=Notifier)


@pytest.fixture()
def updates() -> list[MonitorState]:
    return []


@pytest.fixture()
def broadcaster(updates: list[MonitorState]) -> StateBroadcaster:
    broadcaster = StateBroadcaster()
    broadcaster.subscribe(updates.append)
    return broadcaster


@pytest.fixture()
async def monitor(
    store: StateStore,
    host: FakeHost,
    notifier: MagicMock,
    broadcaster: StateBroadcaster,
    settings: Settings,
    scheduler: ManualScheduler,
) -> AsyncIterator[Monitor]:
    async with Monitor(store, host, notifier, broadcaster, settings, scheduler) as running:
        yield running


async def _state(monitor: Monitor) -> MonitorState:
    return (await monitor.get_state()).state


def _titles(notifier: MagicMock) -> list[str]:
    return [c.args[0] for c in notifier.notify.call_args_list]


async def _start_and_load(monitor: Monitor, host: FakeHost) -> None:
    await monitor.start(CONFIG)
    host.load("tab1", URL)
    await monitor.join()


# ---------------------------------------------------------------------------
# Start / stop
# ---------------------------------------------------------------------------


class TestStartStop:
    async def test_start_opens_tab_and_initialises_state(
        self, monitor: Monitor, host: FakeHost, updates: list[MonitorState]
    ) -> None:
        state = await monitor.start(CONFIG)
        assert host.created == ["tab1"]
        assert state.is_monitoring is True
        assert state.owned_resource_id == "tab1"
        assert state.attempt_count == 1
        assert state.last_probe_time is not None
        assert updates[-1] == state

    async def test_start_persists_config(self, monitor: Monitor) -> None:
        await monitor.start(CONFIG)
        snapshot = await monitor.get_state()
        assert snapshot.config == CONFIG

    async def test_get_state_has_no_side_effects(
        self, monitor: Monitor, updates: list[MonitorState]
    ) -> None:
        await monitor.start(CONFIG)
        before = len(updates)
        first = await monitor.get_state()
        second = await monitor.get_state()
        assert first == second
        assert len(updates) == before

    async def test_stop_resets_to_idle(
        self, monitor: Monitor, host: FakeHost, scheduler: ManualScheduler
    ) -> None:
        await _start_and_load(monitor, host)
        host.report("tab1", ProbeStatus.NOT_FOUND)
        await monitor.join()
        assert scheduler.is_pending()

        state = await monitor.stop()
        assert state == MonitorState()
        assert await _state(monitor) == MonitorState()
        assert not scheduler.is_pending()
        assert monitor.session is None

    async def test_stop_is_idempotent(self, monitor: Monitor) -> None:
        assert await monitor.stop() == MonitorState()
        await monitor.start(CONFIG)
        assert await monitor.stop() == MonitorState()
        assert await monitor.stop() == MonitorState()

    async def test_stop_leaves_tab_open(self, monitor: Monitor, host: FakeHost) -> None:
        await monitor.start(CONFIG)
        await monitor.stop()
        assert host.closed == set()

    async def test_restart_replaces_session(
        self, monitor: Monitor, host: FakeHost, store: StateStore
    ) -> None:
        await _start_and_load(monitor, host)
        host.report("tab1", ProbeStatus.NOT_FOUND)
        await monitor.join()
        assert (await store.get_state()).attempt_count == 2

        state = await monitor.start(CONFIG)
        assert host.created == ["tab1", "tab2"]
        assert state.owned_resource_id == "tab2"
        assert state.attempt_count == 1

        # A late result from the first tab is stale now.
        host.report("tab1", ProbeStatus.AVAILABLE, PurchaseOutcome.NOT_ATTEMPTED)
        await monitor.join()
        assert (await _state(monitor)).success_detected is False

    async def test_start_after_finished_session_resets_outcome(
        self, monitor: Monitor, host: FakeHost
    ) -> None:
        await _start_and_load(monitor, host)
        host.report("tab1", ProbeStatus.OUT_OF_STOCK)
        await monitor.join()
        assert (await _state(monitor)).last_error is LastError.OUT_OF_STOCK

        state = await monitor.start(CONFIG)
        assert state.last_error is LastError.NONE
        assert state.attempt_count == 1


# ---------------------------------------------------------------------------
# Scenario A: not_found keeps polling
# ---------------------------------------------------------------------------


class TestNotFound:
    async def test_not_found_increments_and_arms_retry(
        self,
        monitor: Monitor,
        host: FakeHost,
        scheduler: ManualScheduler,
        notifier: MagicMock,
    ) -> None:
        await _start_and_load(monitor, host)
        assert host.probes == [("tab1", 1)]

        host.report("tab1", ProbeStatus.NOT_FOUND)
        await monitor.join()

        state = await _state(monitor)
        assert state.attempt_count == 2
        assert state.last_error is LastError.NOT_FOUND
        assert state.is_monitoring is True
        assert scheduler.is_pending()
        assert scheduler.delay == 5
        notifier.notify.assert_not_called()

    async def test_retry_reloads_tab_and_probes_again(
        self, monitor: Monitor, host: FakeHost, scheduler: ManualScheduler
    ) -> None:
        await _start_and_load(monitor, host)
        host.report("tab1", ProbeStatus.NOT_FOUND)
        await monitor.join()

        scheduler.fire()
        await monitor.join()
        assert host.reloads == ["tab1"]

        host.load("tab1", URL)
        await monitor.join()
        assert host.probes == [("tab1", 1), ("tab1", 1)]

    async def test_each_not_found_adds_one(
        self, monitor: Monitor, host: FakeHost, scheduler: ManualScheduler
    ) -> None:
        await _start_and_load(monitor, host)
        for expected in (2, 3, 4):
            host.report("tab1", ProbeStatus.NOT_FOUND)
            await monitor.join()
            assert (await _state(monitor)).attempt_count == expected
            scheduler.fire()
            await monitor.join()
        assert host.reloads == ["tab1", "tab1", "tab1"]

    async def test_every_mutation_is_broadcast(
        self, monitor: Monitor, host: FakeHost, updates: list[MonitorState]
    ) -> None:
        await _start_and_load(monitor, host)
        host.report("tab1", ProbeStatus.NOT_FOUND)
        await monitor.join()
        assert [u.attempt_count for u in updates] == [1, 2]

    async def test_quantity_is_passed_to_probe(self, monitor: Monitor, host: FakeHost) -> None:
        await monitor.start(CONFIG.model_copy(update={"quantity": 4}))
        host.load("tab1", URL)
        await monitor.join()
        assert host.probes == [("tab1", 4)]


# ---------------------------------------------------------------------------
# Scenario B: available ends the session
# ---------------------------------------------------------------------------


class TestAvailable:
    async def test_available_not_attempted_stops(
        self,
        monitor: Monitor,
        host: FakeHost,
        scheduler: ManualScheduler,
        notifier: MagicMock,
    ) -> None:
        await _start_and_load(monitor, host)
        host.report("tab1", ProbeStatus.NOT_FOUND)
        await monitor.join()
        scheduler.fire()
        host.load("tab1", URL)
        await monitor.join()

        host.report("tab1", ProbeStatus.AVAILABLE, PurchaseOutcome.NOT_ATTEMPTED)
        await monitor.join()

        state = await _state(monitor)
        assert state.success_detected is True
        assert state.purchase_attempted is False
        assert state.purchase_completed is False
        assert state.is_monitoring is False
        assert state.owned_resource_id is None
        assert state.attempt_count == 2
        assert not scheduler.is_pending()
        assert _titles(notifier) == ["Product Available!"]
        await asyncio.wait_for(monitor.wait_finished(), timeout=1)

    async def test_available_without_outcome_counts_as_not_attempted(
        self, monitor: Monitor, host: FakeHost
    ) -> None:
        await _start_and_load(monitor, host)
        host.report("tab1", ProbeStatus.AVAILABLE)
        await monitor.join()
        state = await _state(monitor)
        assert state.success_detected is True
        assert state.purchase_attempted is False

    async def test_available_attempted_failed_stops(
        self,
        monitor: Monitor,
        host: FakeHost,
        scheduler: ManualScheduler,
        notifier: MagicMock,
    ) -> None:
        await _start_and_load(monitor, host)
        host.report("tab1", ProbeStatus.AVAILABLE, PurchaseOutcome.ATTEMPTED_FAILED)
        await monitor.join()

        state = await _state(monitor)
        assert state.success_detected is True
        assert state.purchase_attempted is True
        assert state.purchase_completed is False
        assert state.is_monitoring is False
        assert not scheduler.is_pending()
        assert host.navigations == []
        notifier.notify.assert_called_once()
        assert "auto-click failed" in notifier.notify.call_args.args[1]

    async def test_no_probe_after_session_finished(self, monitor: Monitor, host: FakeHost) -> None:
        await _start_and_load(monitor, host)
        host.report("tab1", ProbeStatus.AVAILABLE, PurchaseOutcome.NOT_ATTEMPTED)
        await monitor.join()
        host.load("tab1", URL)
        await monitor.join()
        assert host.probes == [("tab1", 1)]


# ---------------------------------------------------------------------------
# Scenario C: added to cart, then checkout
# ---------------------------------------------------------------------------


class TestCheckout:
    async def _add_to_cart(self, monitor: Monitor, host: FakeHost) -> None:
        await _start_and_load(monitor, host)
        host.report("tab1", ProbeStatus.AVAILABLE, PurchaseOutcome.ATTEMPTED_SUCCEEDED)
        await monitor.join()

    async def test_success_navigates_to_checkout(
        self,
        monitor: Monitor,
        host: FakeHost,
        scheduler: ManualScheduler,
        notifier: MagicMock,
    ) -> None:
        await self._add_to_cart(monitor, host)

        assert host.navigations == [("tab1", CHECKOUT)]
        state = await _state(monitor)
        assert state.success_detected is True
        assert state.purchase_attempted is True
        assert state.purchase_completed is True
        assert state.reached_confirmation is False
        assert state.is_monitoring is True
        assert monitor.session is not None
        assert monitor.session.awaiting_confirmation is True
        # Only the confirmation deadline is pending, never a reload.
        assert scheduler.is_pending()
        assert scheduler.delay == 30
        assert _titles(notifier) == ["Added to Cart!"]

    async def test_checkout_load_sets_reached_confirmation(
        self,
        monitor: Monitor,
        host: FakeHost,
        scheduler: ManualScheduler,
        notifier: MagicMock,
    ) -> None:
        await self._add_to_cart(monitor, host)
        host.load("tab1", CHECKOUT)
        await monitor.join()

        state = await _state(monitor)
        assert state.reached_confirmation is True
        assert state.purchase_completed is True
        assert state.is_monitoring is False
        assert state.owned_resource_id is None
        assert not scheduler.is_pending()
        assert _titles(notifier) == ["Added to Cart!", "Ready for checkout!"]

    async def test_tab_closed_before_checkout_keeps_outcome(
        self, monitor: Monitor, host: FakeHost
    ) -> None:
        await self._add_to_cart(monitor, host)
        host.close_tab("tab1")
        await monitor.join()

        state = await _state(monitor)
        assert state.is_monitoring is False
        assert state.purchase_completed is True
        assert state.reached_confirmation is False

    async def test_confirmation_deadline_ends_session(
        self, monitor: Monitor, host: FakeHost, scheduler: ManualScheduler
    ) -> None:
        await self._add_to_cart(monitor, host)
        scheduler.fire()
        await monitor.join()

        state = await _state(monitor)
        assert state.is_monitoring is False
        assert state.purchase_completed is True
        assert state.reached_confirmation is False
        assert host.reloads == []
        await asyncio.wait_for(monitor.wait_finished(), timeout=1)

    async def test_later_results_are_ignored(self, monitor: Monitor, host: FakeHost) -> None:
        await self._add_to_cart(monitor, host)
        before = await _state(monitor)

        host.report("tab1", ProbeStatus.OUT_OF_STOCK)
        host.report("tab1", ProbeStatus.NOT_FOUND)
        await monitor.join()

        assert await _state(monitor) == before

    async def test_product_page_reload_does_not_probe(
        self, monitor: Monitor, host: FakeHost
    ) -> None:
        await self._add_to_cart(monitor, host)
        host.load("tab1", URL)
        await monitor.join()
        assert host.probes == [("tab1", 1)]

    async def test_checkout_navigation_failure_finishes(
        self, monitor: Monitor, host: FakeHost, scheduler: ManualScheduler
    ) -> None:
        await _start_and_load(monitor, host)
        host.closed.add("tab1")
        host.report("tab1", ProbeStatus.AVAILABLE, PurchaseOutcome.ATTEMPTED_SUCCEEDED)
        await monitor.join()

        state = await _state(monitor)
        assert state.is_monitoring is False
        assert state.purchase_completed is True
        assert not scheduler.is_pending()

    async def test_custom_checkout_path(
        self,
        store: StateStore,
        host: FakeHost,
        notifier: MagicMock,
        broadcaster: StateBroadcaster,
        clean_env: None,
        scheduler: ManualScheduler,
    ) -> None:
        settings = Settings(checkout_path="/cart", confirmation_timeout_seconds=10)
        async with Monitor(store, host, notifier, broadcaster, settings, scheduler) as monitor:
            await self._add_to_cart(monitor, host)
        assert host.navigations == [("tab1", "https://x.test/cart")]
        assert scheduler.history[-1] == 10


# ---------------------------------------------------------------------------
# Scenario D: out of stock is terminal
# ---------------------------------------------------------------------------


class TestOutOfStock:
    async def test_out_of_stock_stops_without_retry(
        self,
        monitor: Monitor,
        host: FakeHost,
        scheduler: ManualScheduler,
        notifier: MagicMock,
    ) -> None:
        await _start_and_load(monitor, host)
        host.report("tab1", ProbeStatus.OUT_OF_STOCK)
        await monitor.join()

        state = await _state(monitor)
        assert state.last_error is LastError.OUT_OF_STOCK
        assert state.success_detected is False
        assert state.is_monitoring is False
        assert not scheduler.is_pending()
        assert scheduler.history == []
        assert _titles(notifier) == ["Item Out of Stock"]


# ---------------------------------------------------------------------------
# Scenario E: resource loss and stale results
# ---------------------------------------------------------------------------


class TestResourceLoss:
    async def test_tab_closed_mid_probe_resets_and_ignores_late_result(
        self,
        monitor: Monitor,
        host: FakeHost,
        scheduler: ManualScheduler,
        updates: list[MonitorState],
    ) -> None:
        await _start_and_load(monitor, host)
        host.close_tab("tab1")
        await monitor.join()
        assert await _state(monitor) == MonitorState()
        assert updates[-1] == MonitorState()

        host.report("tab1", ProbeStatus.AVAILABLE, PurchaseOutcome.ATTEMPTED_SUCCEEDED)
        await monitor.join()
        assert await _state(monitor) == MonitorState()
        assert host.navigations == []
        assert not scheduler.is_pending()

    async def test_foreign_tab_closed_is_ignored(self, monitor: Monitor, host: FakeHost) -> None:
        await monitor.start(CONFIG)
        host.close_tab("tab99")
        await monitor.join()
        assert (await _state(monitor)).is_monitoring is True

    async def test_foreign_result_never_mutates_state(
        self, monitor: Monitor, host: FakeHost, updates: list[MonitorState]
    ) -> None:
        await _start_and_load(monitor, host)
        before = await _state(monitor)
        count = len(updates)

        host.report("tab7", ProbeStatus.AVAILABLE, PurchaseOutcome.NOT_ATTEMPTED)
        host.report("tab7", ProbeStatus.NOT_FOUND)
        await monitor.join()

        assert await _state(monitor) == before
        assert len(updates) == count

    async def test_result_while_idle_is_discarded(self, monitor: Monitor, host: FakeHost) -> None:
        host.report("tab1", ProbeStatus.AVAILABLE)
        await monitor.join()
        assert await _state(monitor) == MonitorState()

    async def test_foreign_navigation_does_not_probe(
        self, monitor: Monitor, host: FakeHost
    ) -> None:
        await monitor.start(CONFIG)
        host.load("tab5", URL)
        host.load("tab1", "https://x.test/somewhere-else")
        await monitor.join()
        assert host.probes == []

    async def test_reload_of_closed_tab_resets(
        self, monitor: Monitor, host: FakeHost, scheduler: ManualScheduler
    ) -> None:
        await _start_and_load(monitor, host)
        host.report("tab1", ProbeStatus.NOT_FOUND)
        await monitor.join()
        host.closed.add("tab1")

        scheduler.fire()
        await monitor.join()
        assert await _state(monitor) == MonitorState()

    async def test_stale_refresh_after_restart_is_ignored(
        self, monitor: Monitor, host: FakeHost, scheduler: ManualScheduler
    ) -> None:
        await _start_and_load(monitor, host)
        host.report("tab1", ProbeStatus.NOT_FOUND)
        await monitor.join()
        stale = scheduler.callback
        assert stale is not None

        await monitor.start(CONFIG)
        stale()
        await monitor.join()
        assert host.reloads == []


# ---------------------------------------------------------------------------
# Self-healing
# ---------------------------------------------------------------------------


class TestSelfHealing:
    async def test_injection_failure_arms_retry(
        self, monitor: Monitor, host: FakeHost, scheduler: ManualScheduler
    ) -> None:
        host.fail_inject = True
        await _start_and_load(monitor, host)
        assert host.probes == []
        assert scheduler.is_pending()
        assert scheduler.delay == 5

        host.fail_inject = False
        scheduler.fire()
        await monitor.join()
        host.load("tab1", URL)
        await monitor.join()
        assert host.reloads == ["tab1"]
        assert host.probes == [("tab1", 1)]
        assert (await _state(monitor)).is_monitoring is True

    async def test_transient_reload_error_arms_retry(
        self, monitor: Monitor, host: FakeHost, scheduler: ManualScheduler
    ) -> None:
        await _start_and_load(monitor, host)
        host.report("tab1", ProbeStatus.NOT_FOUND)
        await monitor.join()

        host.reload_error = BrowserError("tab1", "reload failed: timeout")
        scheduler.fire()
        await monitor.join()
        assert scheduler.is_pending()
        assert (await _state(monitor)).is_monitoring is True

        host.reload_error = None
        scheduler.fire()
        await monitor.join()
        assert host.reloads == ["tab1"]

    async def test_storage_error_in_event_handler_is_not_fatal(
        self,
        monitor: Monitor,
        host: FakeHost,
        store: StateStore,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        await _start_and_load(monitor, host)
        monkeypatch.setattr(
            store, "increment_attempts", AsyncMock(side_effect=StorageError("disk full"))
        )
        host.report("tab1", ProbeStatus.NOT_FOUND)
        await monitor.join()

        assert monitor.is_running
        assert (await _state(monitor)).is_monitoring is True


# ---------------------------------------------------------------------------
# Command errors
# ---------------------------------------------------------------------------


class TestCommandErrors:
    async def test_creation_failure_is_surfaced(
        self, monitor: Monitor, host: FakeHost, updates: list[MonitorState]
    ) -> None:
        host.fail_create = True
        with pytest.raises(ResourceCreationFailed):
            await monitor.start(CONFIG)
        assert await _state(monitor) == MonitorState()
        assert monitor.session is None
        assert updates == []
        assert monitor.is_running

    async def test_empty_url_rejected(self, monitor: Monitor, host: FakeHost) -> None:
        with pytest.raises(ConfigError):
            await monitor.start(MonitorConfig())
        assert host.created == []

    async def test_commands_need_running_worker(
        self,
        store: StateStore,
        host: FakeHost,
        notifier: MagicMock,
        broadcaster: StateBroadcaster,
        settings: Settings,
        scheduler: ManualScheduler,
    ) -> None:
        monitor = Monitor(store, host, notifier, broadcaster, settings, scheduler)
        with pytest.raises(OrchestratorError):
            await monitor.start(CONFIG)
        with pytest.raises(OrchestratorError):
            await monitor.get_state()

    async def test_close_releases_session(
        self,
        store: StateStore,
        host: FakeHost,
        notifier: MagicMock,
        broadcaster: StateBroadcaster,
        settings: Settings,
        scheduler: ManualScheduler,
    ) -> None:
        monitor = Monitor(store, host, notifier, broadcaster, settings, scheduler)
        monitor.open()
        await monitor.start(CONFIG)
        host.report("tab1", ProbeStatus.NOT_FOUND)
        await monitor.join()
        await monitor.close()

        assert not monitor.is_running
        assert monitor.session is None
        assert not scheduler.is_pending()
        await asyncio.wait_for(monitor.wait_finished(), timeout=1)
