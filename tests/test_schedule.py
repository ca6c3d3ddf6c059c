import asyncio
import random
import time
from datetime import date

import pytest

from conftest import TODAY
from gohan_core.results import RemoteCallResult, ErrorKind
from gohan_core.schedule import ScheduleLoader, ScheduleRow, parse_row_date
from gohan_core.session import Identity
from gohan_core.state import CheckState

IDENTITY = Identity(id="taro.t", display_name="Taro Tanaka", login_time=None)


class RecordingView:
    def __init__(self):
        self.events = []
        self.started = time.monotonic()

    def render_row(self, row, checked):
        self.events.append(("row", row.date, checked, time.monotonic() - self.started))

    def focus_row(self, row):
        self.events.append(("focus", row.date))

    def show_empty(self, message):
        self.events.append(("empty", message))

    @property
    def rows(self):
        return [(e[1], e[2]) for e in self.events if e[0] == "row"]

    @property
    def row_times(self):
        return [e[3] for e in self.events if e[0] == "row"]


class FakeService:
    """Scripted check-state reads with per-date delay and failure."""

    def __init__(self, rows, checked=(), delays=None, failing=(), raising=(), schedule_error=None):
        self.rows = rows
        self.checked = {d for d in checked}
        self.delays = delays or {}
        self.failing = set(failing)
        self.raising = set(raising)
        self.schedule_error = schedule_error
        self.in_flight = 0
        self.max_in_flight = 0
        self.reads = []

    async def list_schedule(self, year, month):
        if self.schedule_error:
            return RemoteCallResult.failure(*self.schedule_error)
        return RemoteCallResult.success({"success": True}, list(self.rows))

    async def read_check_state(self, raw_date, user_name):
        day = parse_row_date(raw_date)
        self.reads.append(day)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(day, 0))
        finally:
            self.in_flight -= 1
        if day in self.raising:
            raise RuntimeError(f"read for {raw_date} blew up")
        if day in self.failing:
            return RemoteCallResult.failure("timeout", ErrorKind.NETWORK)
        return RemoteCallResult.success({"success": True}, day in self.checked)


def make_row(day, editable=True):
    return ScheduleRow(date=day, editable=editable, raw_date=f"{day.year}/{day.month}/{day.day}")


def september(*days):
    return [make_row(date(2025, 9, d)) for d in days]


def loader_for(service, today=TODAY, spacing=0.1):
    return ScheduleLoader(service, CheckState(), today=lambda: today, spacing_sec=spacing)


@pytest.mark.parametrize(
    "text,expected",
    (
        ("2025/9/1", date(2025, 9, 1)),
        ("2025-09-01", date(2025, 9, 1)),
        ("2025-09-01T15:00:00.000Z", date(2025, 9, 1)),
        ("2025/2/30", None),
        ("tomorrow", None),
        (None, None),
    ),
)
def test_parse_row_date(text, expected) -> None:
    assert parse_row_date(text) == expected


@pytest.mark.asyncio
async def test_month_scenario_against_backend(service) -> None:
    view = RecordingView()
    check_state = CheckState()
    loader = ScheduleLoader(service, check_state, today=lambda: TODAY, spacing_sec=0.1)

    emitted = await loader.load(2025, 9, IDENTITY, view)

    days = [d for d, _ in view.rows]
    assert days == [date(2025, 9, 10), date(2025, 9, 11), date(2025, 9, 12), date(2025, 9, 13)]
    assert [r.date for r, _ in emitted] == days
    assert date(2025, 9, 1) not in days
    assert [e for e in view.events if e[0] == "focus"] == [("focus", date(2025, 9, 10))]
    assert view.events[1] == ("focus", date(2025, 9, 10))
    times = view.row_times
    assert times[3] - times[2] >= 0.09
    assert len(check_state) == 4


@pytest.mark.asyncio
async def test_phase_a_emits_in_date_order_after_joint_settle() -> None:
    rows = september(10, 11, 12)
    service = FakeService(
        rows,
        checked={date(2025, 9, 11)},
        delays={date(2025, 9, 10): 0.15, date(2025, 9, 12): 0.05},
    )
    view = RecordingView()

    await loader_for(service).load(2025, 9, IDENTITY, view)

    assert view.rows == [
        (date(2025, 9, 10), False),
        (date(2025, 9, 11), True),
        (date(2025, 9, 12), False),
    ]
    assert min(view.row_times) >= 0.14
    assert service.max_in_flight == 3


@pytest.mark.asyncio
async def test_phase_b_is_sequential_and_spaced() -> None:
    service = FakeService(september(10, 11, 12, 13, 14, 15))
    view = RecordingView()

    await loader_for(service, spacing=0.05).load(2025, 9, IDENTITY, view)

    times = view.row_times
    assert [d.day for d, _ in view.rows] == [10, 11, 12, 13, 14, 15]
    for earlier, later in zip(times[2:], times[3:]):
        assert later - earlier >= 0.045
    assert service.reads[3:] == [date(2025, 9, 13), date(2025, 9, 14), date(2025, 9, 15)]


@pytest.mark.asyncio
async def test_failed_reads_degrade_to_unchecked() -> None:
    rows = september(10, 11, 12, 13)
    service = FakeService(
        rows,
        checked={date(2025, 9, 11), date(2025, 9, 13)},
        failing={date(2025, 9, 11), date(2025, 9, 12)},
    )
    view = RecordingView()
    check_state = CheckState()
    loader = ScheduleLoader(service, check_state, today=lambda: TODAY, spacing_sec=0.01)

    await loader.load(2025, 9, IDENTITY, view)

    assert view.rows == [
        (date(2025, 9, 10), False),
        (date(2025, 9, 11), False),
        (date(2025, 9, 12), False),
        (date(2025, 9, 13), True),
    ]
    assert not check_state.known(date(2025, 9, 11))
    assert check_state.get(date(2025, 9, 13)) is True


@pytest.mark.asyncio
async def test_raising_reads_degrade_without_aborting() -> None:
    rows = september(10, 11, 12, 13, 14)
    service = FakeService(
        rows,
        checked={date(2025, 9, 10), date(2025, 9, 12), date(2025, 9, 14)},
        raising={date(2025, 9, 11), date(2025, 9, 13)},
    )
    view = RecordingView()
    check_state = CheckState()
    loader = ScheduleLoader(service, check_state, today=lambda: TODAY, spacing_sec=0.01)

    emitted = await loader.load(2025, 9, IDENTITY, view)

    assert [(r.date.day, c) for r, c in emitted] == [(10, True), (11, False), (12, True), (13, False), (14, True)]
    assert view.rows == [(r.date, c) for r, c in emitted]
    assert ("focus", date(2025, 9, 10)) in view.events
    assert not check_state.known(date(2025, 9, 11))
    assert not check_state.known(date(2025, 9, 13))


@pytest.mark.asyncio
async def test_fewer_rows_than_batch() -> None:
    view = RecordingView()
    await loader_for(FakeService(september(20))).load(2025, 9, IDENTITY, view)
    assert view.rows == [(date(2025, 9, 20), False)]
    assert ("focus", date(2025, 9, 20)) in view.events


@pytest.mark.asyncio
async def test_schedule_failure_shows_empty_state() -> None:
    service = FakeService([], schedule_error=("timeout", ErrorKind.NETWORK))
    view = RecordingView()
    emitted = await loader_for(service).load(2025, 9, IDENTITY, view)
    assert emitted == []
    assert view.events == [("empty", "Could not load the menu for this month")]


@pytest.mark.asyncio
async def test_application_error_message_is_shown() -> None:
    service = FakeService([], schedule_error=("Sheet for 2025/9 not found", ErrorKind.APPLICATION))
    view = RecordingView()
    await loader_for(service).load(2025, 9, IDENTITY, view)
    assert view.events == [("empty", "Sheet for 2025/9 not found")]


@pytest.mark.asyncio
async def test_only_past_rows_shows_empty_state() -> None:
    view = RecordingView()
    service = FakeService(september(1, 2, 9))
    await loader_for(service).load(2025, 9, IDENTITY, view)
    assert view.events == [("empty", "No menu from today onwards for this month")]
    assert service.reads == []


@pytest.mark.parametrize("seed", range(5))
@pytest.mark.asyncio
async def test_emission_is_ascending_and_skips_the_past(seed) -> None:
    rng = random.Random(seed)
    today = date(2025, 9, rng.randint(1, 28))
    rows = september(*rng.sample(range(1, 31), 12))
    rng.shuffle(rows)
    view = RecordingView()

    await loader_for(FakeService(rows), today=today, spacing=0).load(2025, 9, IDENTITY, view)

    days = [d for d, _ in view.rows]
    assert days == sorted(set(days))
    assert all(d >= today for d in days)
    assert len(days) == len([r for r in rows if r.date >= today])


@pytest.mark.asyncio
async def test_superseded_load_stops_emitting() -> None:
    slow = FakeService(september(10, 11, 12, 13, 14))
    view = RecordingView()
    loader = loader_for(slow, spacing=0.05)

    task = asyncio.ensure_future(loader.load(2025, 9, IDENTITY, view))
    await asyncio.sleep(0.07)
    loader.cancel()
    emitted = await task

    assert len(emitted) < 5
    assert len(view.rows) == len(emitted)


def test_visible_rows_dedupes_dates() -> None:
    loader = loader_for(FakeService([]))
    rows = [make_row(date(2025, 9, 12)), make_row(date(2025, 9, 12), editable=False), make_row(date(2025, 9, 11))]
    visible = loader.visible_rows(rows)
    assert [r.date for r in visible] == [date(2025, 9, 11), date(2025, 9, 12)]
    assert visible[1].editable is True


def test_row_from_wire_requires_explicit_editable() -> None:
    row = ScheduleRow.from_wire({"date": "2025/9/10", "main": "Curry", "isEditable": "yes"})
    assert row.editable is False
    assert row.date == date(2025, 9, 10)
    assert ScheduleRow.from_wire("2025/9/10") is None
