"""
Time-bucketed aggregation of raw point-cost records into gap-free
chart series.

Every call reprocesses the full input: records are aligned to the
selected granularity, summed per bucket, empty buckets between the
first and last populated one are filled with zero entries, and a
running total is carried across the sequence. Calendar-day boundaries
are reported separately for axis labelling.
"""

import math
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone, tzinfo
from enum import Enum

from poemeter.models import AggregatedPoint, AggregationResult, DateSeparator

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)

# fallback layouts tried after ISO-8601, in order
_FALLBACK_PATTERNS: "tuple[re.Pattern[str], ...]" = (
    re.compile(r"(\d{4})/(\d{2})/(\d{2})\s+(\d{2}):(\d{2}):(\d{2})"),
    re.compile(r"(\d{4})-(\d{2})-(\d{2})\s+(\d{2}):(\d{2}):(\d{2})"),
)

# leading numeric prefix, the way a lenient float parser reads it
_NUMBER_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


class Granularity(str, Enum):
    MINUTE = "minute"
    HOUR = "hour"
    HALFDAY = "halfday"
    DAY = "day"

    @property
    def seconds(self) -> "int":
        return _GRANULARITY_SECONDS[self]

    @property
    def millis(self) -> "int":
        return self.seconds * 1000

    @classmethod
    def parse(cls, value: "object") -> "Granularity":
        """
        resolves a granularity name. Unknown values fall back to HOUR.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.HOUR


_GRANULARITY_SECONDS: "dict[Granularity, int]" = {
    Granularity.MINUTE: 60,
    Granularity.HOUR: 3600,
    Granularity.HALFDAY: 43200,
    Granularity.DAY: 86400,
}


class ViewMode(str, Enum):
    DISCRETE = "discrete"
    CUMULATIVE = "cumulative"

    @classmethod
    def parse(cls, value: "object") -> "ViewMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.DISCRETE


@dataclass(frozen=True, slots=True)
class ViewPoint:
    bucket_time: "int"
    timestamp: "str"
    value: "float"
    record_count: "int"
    has_data: "bool"


@dataclass(slots=True)
class _Bucket:
    cost: "float" = 0.0
    count: "int" = 0
    # insertion-ordered set of model names
    models: "dict[str, None]" = field(default_factory=dict)


def parse_timestamp(value: "object", tz: "tzinfo | None" = None) -> "datetime | None":
    """
    parses a record timestamp into an aware datetime.

    ISO-8601 is tried first, then "YYYY/MM/DD HH:mm:ss" and
    "YYYY-MM-DD HH:mm:ss". Naive values are read in `tz`, or in
    local time when `tz` is None. Returns None when nothing matches.
    """
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"

    parsed: "datetime | None"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        parsed = None

    if parsed is None:
        for pattern in _FALLBACK_PATTERNS:
            match = pattern.search(text)
            if match is None:
                continue
            try:
                parsed = datetime(*(int(part) for part in match.groups()))
            except ValueError:
                continue
            break

    if parsed is None:
        return None

    if parsed.tzinfo is None:
        if tz is not None:
            return parsed.replace(tzinfo=tz)
        try:
            return parsed.astimezone()
        except (OverflowError, ValueError):
            # too close to the datetime range edge for the local offset
            return None
    return parsed


def parse_cost(value: "object") -> "float":
    """
    coerces a cost value to a float. Strings may carry a currency
    sign or thousands separators; anything unreadable is 0.
    """
    if isinstance(value, bool) or value is None:
        return 0.0

    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = value.strip().replace(",", "")
        if cleaned.startswith("$"):
            cleaned = cleaned[1:]
        match = _NUMBER_RE.match(cleaned)
        if match is None:
            return 0.0
        number = float(match.group(0))
    else:
        return 0.0

    return number if math.isfinite(number) else 0.0


def to_epoch_millis(moment: "datetime") -> "int":
    return (moment - _EPOCH) // _ONE_MS


def from_epoch_millis(millis: "int", tz: "tzinfo | None" = None) -> "datetime":
    """
    converts epoch milliseconds to an aware datetime in `tz`
    (local time when None).
    """
    return (_EPOCH + timedelta(milliseconds=millis)).astimezone(tz)


def format_time_label(
    moment: "datetime",
    previous: "datetime | None",
    granularity: "Granularity | str",
) -> "str":
    """
    axis label for a bucket: the date alone for daily buckets, the
    date and time on the first bucket of a day, the time otherwise.
    """
    date_label = f"{moment.month}.{moment.day}"
    if Granularity.parse(granularity) is Granularity.DAY:
        return date_label

    time_label = moment.strftime("%H:%M")
    if previous is None or previous.date() != moment.date():
        return f"{date_label}\n{time_label}"
    return time_label


def _get(record: "object", name: "str") -> "object":
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def _iso_utc(millis: "int") -> "str":
    moment = _EPOCH + timedelta(milliseconds=millis)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def aggregate(
    records: "Iterable[object]",
    granularity: "Granularity | str" = Granularity.HOUR,
    tz: "tzinfo | None" = None,
) -> "AggregationResult":
    """
    builds a sorted, contiguous series of buckets from raw records.

    Records may be UsageRecord instances or mappings with
    timestamp/cost/model keys. Records whose timestamp cannot be
    parsed are dropped. Calendar dates for separators and labels
    are taken in `tz` (local time when None).
    """
    step = Granularity.parse(granularity).millis
    buckets: "dict[int, _Bucket]" = {}

    for record in records:
        moment = parse_timestamp(_get(record, "timestamp"), tz)
        if moment is None:
            continue

        bucket_time = (to_epoch_millis(moment) // step) * step
        try:
            from_epoch_millis(bucket_time, tz)
        except (OverflowError, ValueError):
            # bucket not representable in the display zone
            continue

        bucket = buckets.setdefault(bucket_time, _Bucket())
        bucket.cost += parse_cost(_get(record, "cost"))
        bucket.count += 1

        model = _get(record, "model")
        if model:
            bucket.models[str(model)] = None

    if not buckets:
        return AggregationResult()

    first, last = min(buckets), max(buckets)

    points: "list[AggregatedPoint]" = []
    separators: "list[DateSeparator]" = []
    day_starts: "set[int]" = set()
    cumulative = 0.0
    previous: "datetime | None" = None

    for bucket_time in range(first, last + step, step):
        bucket = buckets.get(bucket_time) or _Bucket()
        moment = from_epoch_millis(bucket_time, tz)
        date_label = f"{moment.month}.{moment.day}"

        if previous is None or previous.date() != moment.date():
            day_starts.add(bucket_time)
            # the first bucket never separates
            if previous is not None:
                separators.append(DateSeparator(bucket_time, date_label))

        cumulative += bucket.cost
        points.append(
            AggregatedPoint(
                timestamp=_iso_utc(bucket_time),
                bucket_time=bucket_time,
                cost_sum=bucket.cost,
                record_count=bucket.count,
                cumulative_cost=cumulative,
                has_data=bucket.cost > 0 or bucket.count > 0,
                models=tuple(bucket.models),
                date_label=date_label,
                time_label=format_time_label(moment, previous, granularity),
            )
        )
        previous = moment

    return AggregationResult(
        points=tuple(points),
        date_separators=tuple(separators),
        day_starts=frozenset(day_starts),
    )


def project_view(
    result: "AggregationResult",
    mode: "ViewMode | str" = ViewMode.DISCRETE,
) -> "list[ViewPoint]":
    """
    projects an aggregation onto the values a chart plots: per-bucket
    sums for DISCRETE, running totals for CUMULATIVE.
    """
    cumulative = ViewMode.parse(mode) is ViewMode.CUMULATIVE
    view: "list[ViewPoint]" = []
    running_count = 0

    for point in result.points:
        running_count += point.record_count
        view.append(
            ViewPoint(
                bucket_time=point.bucket_time,
                timestamp=point.timestamp,
                value=point.cumulative_cost if cumulative else point.cost_sum,
                record_count=running_count if cumulative else point.record_count,
                has_data=point.has_data,
            )
        )

    return view
