from collections.abc import Iterable, Sequence
from datetime import date, datetime, time, tzinfo

from poemeter.aggregator import from_epoch_millis
from poemeter.models import PointsHistoryNode

Row = dict[str, object]

# columns shown in the records table, in display order
TABLE_COLUMNS: "tuple[str, ...]" = (
    "index",
    "id",
    "model",
    "model_id",
    "cost",
    "created_at",
    "date",
    "time",
)

_EMPTY = (None, "-", "")


def to_table_rows(
    nodes: "Iterable[PointsHistoryNode]",
    tz: "tzinfo | None" = None,
) -> "list[Row]":
    """
    flattens points history nodes into table rows. `timestamp` keeps
    the raw microsecond creation time for filtering and sorting.
    """
    rows: "list[Row]" = []
    for index, node in enumerate(nodes, start=1):
        created = (
            from_epoch_millis(node.creation_time // 1000, tz)
            if node.creation_time
            else None
        )
        rows.append(
            {
                "index": index,
                "id": node.id or "-",
                "model": node.bot_name or "Unknown",
                "model_id": node.bot_id or "-",
                "cost": node.point_cost or 0,
                "created_at": created.isoformat() if created else "-",
                "timestamp": node.creation_time or 0,
                "date": created.date().isoformat() if created else "-",
                "time": created.strftime("%H:%M:%S") if created else "-",
            }
        )
    return rows


def filter_by_date_range(
    rows: "Iterable[Row]",
    start: "date | datetime | None" = None,
    end: "date | datetime | None" = None,
    tz: "tzinfo | None" = None,
) -> "list[Row]":
    """
    keeps rows created between `start` and the end of the `end` day,
    both inclusive. Without a range every row is kept.
    """
    rows = list(rows)
    if start is None and end is None:
        return rows

    lower = _as_datetime(start, time.min, tz) if start is not None else None
    upper = _as_datetime(end, time.max, tz) if end is not None else None

    kept: "list[Row]" = []
    for row in rows:
        micros = row.get("timestamp")
        if not isinstance(micros, int) or not micros:
            continue

        created = from_epoch_millis(micros // 1000, tz)
        if lower is not None and created < lower:
            continue
        if upper is not None and created > upper:
            continue
        kept.append(row)
    return kept


def sort_rows(
    rows: "Sequence[Row]",
    key: "str | None",
    direction: "str" = "asc",
) -> "list[Row]":
    """
    sorts rows by one column. Empty values always go last; numbers
    compare numerically and everything else as text.
    """
    if not key:
        return list(rows)

    descending = direction == "desc"
    present = [r for r in rows if r.get(key) not in _EMPTY]
    missing = [r for r in rows if r.get(key) in _EMPTY]

    numeric = all(
        isinstance(r[key], (int, float)) and not isinstance(r[key], bool)
        for r in present
    )
    if numeric:
        ordered = sorted(present, key=lambda r: r[key], reverse=descending)
    else:
        ordered = sorted(present, key=lambda r: str(r[key]), reverse=descending)

    return ordered + missing


def _as_datetime(
    value: "date | datetime",
    default_time: "time",
    tz: "tzinfo | None",
) -> "datetime":
    if isinstance(value, datetime):
        if default_time == time.min:
            moment = value
        else:
            # the whole end day is included
            moment = datetime.combine(value.date(), time.max, tzinfo=value.tzinfo)
    else:
        moment = datetime.combine(value, default_time)

    if moment.tzinfo is None:
        if tz is not None:
            return moment.replace(tzinfo=tz)
        return moment.astimezone()
    return moment

