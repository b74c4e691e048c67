"""Clock-time helpers for appointment slots"""

from datetime import date, datetime, timedelta

from ...shared.validators import validate_time


def normalize_start_time(value: str) -> str:
    """``HH:MM[:SS]`` -> ``HH:MM``"""
    return validate_time(value)


def compute_end_time(start_time: str, duration_minutes: int) -> str:
    """
    End of a slot as ``HH:MM``.

    Uses calendar arithmetic so minutes carry into hours and past midnight
    (``23:40`` + 30 -> ``00:10``). Only the clock time is returned; the
    appointment date is left unchanged.
    """
    start = datetime.combine(date.min, datetime.strptime(normalize_start_time(start_time), "%H:%M").time())
    end = start + timedelta(minutes=int(duration_minutes or 0))
    return end.strftime("%H:%M")


def crosses_midnight(start_time: str, duration_minutes: int) -> bool:
    start = datetime.strptime(normalize_start_time(start_time), "%H:%M")
    return start.hour * 60 + start.minute + int(duration_minutes or 0) >= 24 * 60
