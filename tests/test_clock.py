from datetime import date, datetime, timezone

from app.services.clock import Clock


def _clock(at: datetime) -> Clock:
    return Clock("America/Sao_Paulo", now_fn=lambda: at)


def test_time_of_day_is_local():
    clock = _clock(datetime(2025, 10, 20, 11, 0, tzinfo=timezone.utc))
    assert clock.now_time_of_day() == "08:00"
    assert clock.now_day_of_week() == 1  # Monday


def test_sunday_is_zero_and_day_follows_local_midnight():
    # 01:30 UTC Monday is still Sunday evening in São Paulo
    clock = _clock(datetime(2025, 10, 20, 1, 30, tzinfo=timezone.utc))
    assert clock.now_day_of_week() == 0
    assert clock.now_time_of_day() == "22:30"


def test_now_is_utc():
    clock = _clock(datetime(2025, 10, 20, 8, 0, tzinfo=Clock("America/Sao_Paulo").tz))
    assert clock.now() == datetime(2025, 10, 20, 11, 0, tzinfo=timezone.utc)
    assert clock.now().tzinfo == timezone.utc


def test_day_bounds_cover_local_day():
    start, end = Clock("America/Sao_Paulo").day_bounds(date(2025, 10, 20))
    assert start == datetime(2025, 10, 20, 3, 0, tzinfo=timezone.utc)
    assert end == datetime(2025, 10, 21, 3, 0, tzinfo=timezone.utc)


def test_day_and_time_come_from_one_reading():
    # each call to the source moves past local midnight, Sunday 23:59 -> Monday 00:00
    readings = iter([
        datetime(2025, 10, 20, 2, 59, 59, tzinfo=timezone.utc),
        datetime(2025, 10, 20, 3, 0, 0, tzinfo=timezone.utc),
    ])
    clock = Clock("America/Sao_Paulo", now_fn=lambda: next(readings))

    assert clock.now_day_and_time() == (0, "23:59")
