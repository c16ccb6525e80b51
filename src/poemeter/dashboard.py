"""
Dashboard views over the record store: the per-period chart series,
per-model totals and the balance forecast.
"""

import sys
from dataclasses import dataclass
from datetime import datetime, tzinfo

from poemeter.aggregator import Granularity, ViewMode, aggregate, project_view
from poemeter.models import PointsInfo
from poemeter.record_store import RecordStore
from poemeter.statistics import CategoryStat, summarize
from poemeter.subscription import period_for_offset, period_label, to_epoch_micros
from poemeter.table import to_table_rows

_DAY_US = 24 * 60 * 60 * 1_000_000
# the grant cycle is assumed to be 30 days long
_GRANT_CYCLE_US = 30 * _DAY_US
# reported when nothing has been spent yet
_NO_SPEND_REMAINING_DAYS = 999


@dataclass(frozen=True, slots=True)
class PointsForecast:
    total_allotment: "int"
    current_balance: "int"
    used_points: "int"
    usage_percentage: "float"
    avg_per_day: "int"
    remaining_days: "int"
    next_grant_time: "int"
    expires_time: "int"
    subscription_name: "str"


def period_stats(
    store: "RecordStore",
    granularity: "Granularity | str" = Granularity.HOUR,
    chart_type: "ViewMode | str" = ViewMode.DISCRETE,
    period_offset: "int" = 0,
    subscription_day: "int" = 1,
    now: "datetime | None" = None,
    tz: "tzinfo | None" = None,
) -> "dict[str, object]":
    """
    builds the chart series for one subscription period.
    """
    start, end = period_for_offset(subscription_day, period_offset, now)
    records = [node.to_usage_record() for node in store.in_range(start, end)]
    result = aggregate(records, granularity, tz)

    return {
        "granularity": Granularity.parse(granularity).value,
        "chart_type": ViewMode.parse(chart_type).value,
        "data": [
            {
                "timestamp": point.timestamp,
                "bucket_time": point.bucket_time,
                "value": point.value,
                "record_count": point.record_count,
                "has_data": point.has_data,
            }
            for point in project_view(result, chart_type)
        ],
        "date_separators": result.as_dict()["date_separators"],
        "period_start": start,
        "period_end": end,
        "period_label": period_label(start, end, tz),
    }


def bot_stats(store: "RecordStore") -> "list[CategoryStat]":
    """
    per-model totals over every stored record, highest cost first.
    """
    rows = to_table_rows(store.all())
    return summarize(rows, "cost", "model", sort_by="cost").categories


def points_forecast(
    info: "PointsInfo",
    store: "RecordStore",
    now: "datetime | None" = None,
) -> "PointsForecast":
    """
    estimates the daily spend over the current grant cycle and how
    many days the remaining balance lasts at that rate.
    """
    now_us = to_epoch_micros(now.astimezone() if now else datetime.now().astimezone())
    cycle_start = info.next_grant_time - _GRANT_CYCLE_US

    spent = sum(n.point_cost for n in store.in_range(cycle_start, sys.maxsize))
    days = max((now_us - cycle_start) / _DAY_US, 1.0)
    avg_per_day = int(spent / days)

    if avg_per_day > 0:
        remaining_days = int(info.current_balance / avg_per_day)
    else:
        remaining_days = _NO_SPEND_REMAINING_DAYS

    usage_percentage = (
        info.used_points / info.total_allotment * 100 if info.total_allotment else 0.0
    )

    return PointsForecast(
        total_allotment=info.total_allotment,
        current_balance=info.current_balance,
        used_points=info.used_points,
        usage_percentage=usage_percentage,
        avg_per_day=avg_per_day,
        remaining_days=remaining_days,
        next_grant_time=info.next_grant_time,
        expires_time=info.expires_time,
        subscription_name=info.subscription_name,
    )
