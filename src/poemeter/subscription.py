from datetime import datetime, timedelta, timezone, tzinfo

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_US = timedelta(microseconds=1)


def to_epoch_micros(moment: "datetime") -> "int":
    return (moment - _EPOCH) // _ONE_US


def from_epoch_micros(micros: "int", tz: "tzinfo | None" = None) -> "datetime":
    return (_EPOCH + timedelta(microseconds=micros)).astimezone(tz)


def normalize_day(value: "int") -> "int":
    """
    subscription days outside 1-31 fall back to the 1st.
    """
    return value if 1 <= value <= 31 else 1


def _shift_month(year: "int", month: "int", offset: "int") -> "tuple[int, int]":
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def _period_boundary(
    year: "int", month: "int", day: "int", tz: "tzinfo | None"
) -> "datetime":
    # days past the end of the month roll over into the next one
    naive = datetime(year, month, 1) + timedelta(days=day - 1)
    if tz is not None:
        return naive.replace(tzinfo=tz)
    return naive.astimezone()


def subscription_period(
    year: "int",
    month: "int",
    day: "int",
    tz: "tzinfo | None" = None,
) -> "tuple[int, int]":
    """
    returns the [start, end) bounds in epoch microseconds of the
    period that starts on `day` of the given month and ends on the
    same day of the next month, at local midnight.
    """
    next_year, next_month = _shift_month(year, month, 1)
    start = _period_boundary(year, month, day, tz)
    end = _period_boundary(next_year, next_month, day, tz)
    return to_epoch_micros(start), to_epoch_micros(end)


def period_for_offset(
    subscription_day: "int",
    offset: "int" = 0,
    now: "datetime | None" = None,
) -> "tuple[int, int]":
    """
    resolves the period `offset` months away from the one containing
    `now` (0 current, -1 previous). Before the subscription day the
    current period is the one that started last month.
    """
    # without a zone each boundary is localised on its own date
    zone = now.tzinfo if now is not None and now.tzinfo is not None else None
    if now is None:
        now = datetime.now().astimezone()
    elif now.tzinfo is None:
        now = now.astimezone()

    day = normalize_day(subscription_day)
    year, month = now.year, now.month
    if now.day < day:
        year, month = _shift_month(year, month, -1)

    year, month = _shift_month(year, month, offset)
    return subscription_period(year, month, day, zone)


def current_period(
    subscription_day: "int",
    now: "datetime | None" = None,
) -> "tuple[int, int]":
    return period_for_offset(subscription_day, 0, now)


def period_label(
    start_micros: "int",
    end_micros: "int",
    tz: "tzinfo | None" = None,
) -> "str":
    start = from_epoch_micros(start_micros, tz)
    end = from_epoch_micros(end_micros, tz)
    return f"{start.month:02d}.{start.day:02d} - {end.month:02d}.{end.day:02d}"
