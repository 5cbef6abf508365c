from datetime import datetime, timedelta

from azan_alarm.engine.countdown import NO_COUNTDOWN, ZERO_COUNTDOWN, CountdownPublisher, format_remaining
from azan_alarm.plugins.prayer.prayer_base import NextPrayer

NOW = datetime(2024, 3, 15, 12, 0, 0)


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


def make_publisher(next_prayer, clock):
    refreshes = []
    published = []
    state = {"next": next_prayer}
    publisher = CountdownPublisher(lambda: state["next"], lambda: refreshes.append(1), clock=clock)
    publisher.add_listener(published.append)
    return publisher, state, refreshes, published


def test_format_remaining():
    assert format_remaining(0) == "00:00:00"
    assert format_remaining(59.9) == "00:00:59"
    assert format_remaining(3661) == "01:01:01"
    assert format_remaining(-5) == "00:00:00"


def test_publishes_remaining_time():
    clock = Clock(NOW)
    publisher, _, refreshes, published = make_publisher(NextPrayer("dhuhr", NOW + timedelta(minutes=30, seconds=5), 1805), clock)
    publisher.tick()
    clock.now += timedelta(seconds=1)
    publisher.tick()
    assert published == ["00:30:05", "00:30:04"]
    assert publisher.text == "00:30:04"
    assert refreshes == []


def test_placeholder_without_next_prayer():
    publisher, _, refreshes, published = make_publisher(None, Clock(NOW))
    publisher.tick()
    assert published == [NO_COUNTDOWN]
    assert refreshes == []


def test_zero_publishes_once_and_requests_single_refresh():
    clock = Clock(NOW)
    target = NOW + timedelta(seconds=1)
    publisher, state, refreshes, published = make_publisher(NextPrayer("dhuhr", target, 1), clock)
    publisher.tick()
    for _ in range(3):
        clock.now += timedelta(seconds=1)
        publisher.tick()
    assert published == ["00:00:01", ZERO_COUNTDOWN]
    assert refreshes == [1]

    # Refresh delivered the next target
    state["next"] = NextPrayer("asr", NOW + timedelta(hours=3), 0)
    publisher.tick()
    assert published[-1] == "02:59:57"
    clock.now = NOW + timedelta(hours=3)
    publisher.tick()
    assert published[-1] == ZERO_COUNTDOWN
    assert refreshes == [1, 1]


def test_listener_error_does_not_stop_others():
    publisher, _, _, published = make_publisher(None, Clock(NOW))

    def broken(_text):
        raise RuntimeError("listener failed")

    publisher.listeners.insert(0, broken)
    publisher.tick()
    assert published == [NO_COUNTDOWN]
