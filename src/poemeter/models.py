from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True, slots=True)
class UsageRecord:
    """
    UsageRecord is a single raw point-cost entry as it is
    fed to the aggregator.
    """

    # ISO-8601 or "YYYY/MM/DD HH:mm:ss" / "YYYY-MM-DD HH:mm:ss"
    timestamp: "str"
    # numeric, or a display string such as "$1.50"
    cost: "float | str"
    model: "str | None" = None


@dataclass(frozen=True, slots=True)
class PointsHistoryNode:
    """
    PointsHistoryNode represents one entry of the points
    history as returned by the remote API.
    """

    id: "str"
    point_cost: "int"
    # unix timestamp in microseconds
    creation_time: "int"
    bot_name: "str"
    bot_id: "str"
    cursor: "str" = ""

    def to_usage_record(self) -> "UsageRecord":
        return UsageRecord(
            timestamp=_micros_to_iso(self.creation_time),
            cost=self.point_cost,
            model=self.bot_name or "Unknown",
        )


@dataclass(frozen=True, slots=True)
class HistoryPage:
    nodes: "list[PointsHistoryNode]"
    end_cursor: "str"
    has_next_page: "bool"


@dataclass(frozen=True, slots=True)
class PointsInfo:
    """
    PointsInfo is the subscription balance snapshot of the
    account the credentials belong to.
    """

    total_allotment: "int"
    current_balance: "int"
    # unix timestamps in microseconds
    next_grant_time: "int"
    expires_time: "int"
    subscription_name: "str" = ""

    @property
    def used_points(self) -> "int":
        return self.total_allotment - self.current_balance


@dataclass(frozen=True, slots=True)
class AggregatedPoint:
    """
    AggregatedPoint is one bucket of an aggregated series.
    """

    # ISO-8601 UTC rendering of bucket_time
    timestamp: "str"
    # epoch milliseconds, aligned to the granularity
    bucket_time: "int"
    cost_sum: "float"
    record_count: "int"
    cumulative_cost: "float"
    has_data: "bool"
    models: "tuple[str, ...]" = ()
    date_label: "str" = ""
    time_label: "str" = ""

    def as_dict(self) -> "dict[str, object]":
        return {
            "timestamp": self.timestamp,
            "bucket_time": self.bucket_time,
            "cost_sum": self.cost_sum,
            "record_count": self.record_count,
            "cumulative_cost": self.cumulative_cost,
            "has_data": self.has_data,
            "models": list(self.models),
            "date_label": self.date_label,
            "time_label": self.time_label,
        }


@dataclass(frozen=True, slots=True)
class DateSeparator:
    bucket_time: "int"
    # "{month}.{day}"
    label: "str"


@dataclass(frozen=True, slots=True)
class AggregationResult:
    points: "tuple[AggregatedPoint, ...]" = ()
    date_separators: "tuple[DateSeparator, ...]" = ()
    # bucket times that open a new calendar date, first bucket included
    day_starts: "frozenset[int]" = field(default_factory=frozenset)

    def as_dict(self) -> "dict[str, list[dict[str, object]]]":
        return {
            "processed_data": [p.as_dict() for p in self.points],
            "date_separators": [
                {"bucket_time": s.bucket_time, "label": s.label}
                for s in self.date_separators
            ],
        }


def _micros_to_iso(micros: "int") -> "str":
    return (_EPOCH + timedelta(microseconds=micros)).isoformat()
