from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value):
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def window_start(now: datetime, seconds: int) -> datetime:
    return as_utc(now) - timedelta(seconds=max(0, int(seconds)))


def epoch_millis(value: datetime) -> int:
    return int(as_utc(value).timestamp() * 1000)
