import asyncio
from datetime import datetime, time

from conftest import make_settings
from reminisce.reminders import ReminderScheduler, within_window


def test_daytime_window():
    wake, sleep = time(8, 0), time(21, 0)
    assert within_window(time(8, 0), wake, sleep)
    assert within_window(time(20, 59), wake, sleep)
    assert not within_window(time(21, 0), wake, sleep)
    assert not within_window(time(3, 0), wake, sleep)


def test_window_crossing_midnight():
    wake, sleep = time(22, 0), time(6, 0)
    assert within_window(time(23, 30), wake, sleep)
    assert within_window(time(5, 59), wake, sleep)
    assert not within_window(time(12, 0), wake, sleep)


def test_tick_only_notifies_while_awake():
    messages = []
    scheduler = ReminderScheduler(make_settings(reminder_message="Drink water"), messages.append)
    assert scheduler.tick(datetime(2024, 5, 1, 10, 0))
    assert not scheduler.tick(datetime(2024, 5, 1, 23, 0))
    assert messages == ["Drink water"]
    assert scheduler.fired == 1


def test_notify_failure_does_not_escape():
    def broken(_message):
        raise RuntimeError("speaker unplugged")

    scheduler = ReminderScheduler(make_settings(), broken)
    assert not scheduler.tick(datetime(2024, 5, 1, 10, 0))


def test_run_ticks_on_interval_until_stopped():
    messages = []
    settings = make_settings(reminder_interval_s=0.02)
    scheduler = ReminderScheduler(
        settings, messages.append, clock=lambda: datetime(2024, 5, 1, 12, 0)
    )

    async def scenario():
        stop = asyncio.Event()
        runner = asyncio.create_task(scheduler.run(stop))
        await asyncio.sleep(0.11)
        stop.set()
        await runner

    asyncio.run(scenario())
    assert len(messages) >= 2
