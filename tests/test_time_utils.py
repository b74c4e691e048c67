import pytest

from salon_crm.domain.bookings.time_utils import compute_end_time, crosses_midnight, normalize_start_time


@pytest.mark.parametrize(
    "start, duration, expected",
    [
        ("09:58", 45, "10:43"),
        ("14:00", 30, "14:30"),
        ("14:00:00", 30, "14:30"),
        ("23:40", 30, "00:10"),
        ("8:05", 0, "08:05"),
        ("10:00", 150, "12:30"),
    ],
)
def test_compute_end_time(start, duration, expected):
    assert compute_end_time(start, duration) == expected


def test_normalize_start_time_drops_seconds():
    assert normalize_start_time("07:30:59") == "07:30"


def test_invalid_time_raises():
    with pytest.raises(ValueError):
        compute_end_time("24:00", 30)


def test_crosses_midnight():
    assert crosses_midnight("23:40", 30) is True
    assert crosses_midnight("22:00", 30) is False
