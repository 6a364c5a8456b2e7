import time as time_module
from datetime import datetime, timedelta, timezone
from dateutil import parser as date_parser

def now_utc() -> datetime:
    return datetime.now(timezone.utc)

def now_utc_iso() -> str:
    return now_utc().isoformat()

def parse_utc(value) -> datetime | None:
    """Parse a stored timestamp; naive values are taken to be UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = date_parser.isoparse(str(value))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt

def to_seconds(value) -> float:
    if isinstance(value, timedelta):
        return value.total_seconds()
    return float(value)

def poll_until(
    fn,
    *,
    interval: float,
    deadline: float,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
):
    """Call ``fn`` every ``interval`` seconds until it returns or the deadline passes.

    Exceptions listed in ``retry_on`` are swallowed and retried; anything else
    propagates. ``deadline`` is a ``time.monotonic()`` value. The deadline is
    checked before each sleep, so the call may return up to one interval late.
    """
    while True:
        if time_module.monotonic() >= deadline:
            raise TimeoutError("time_budget_exceeded")
        time_module.sleep(interval)
        try:
            return fn()
        except retry_on:
            continue
