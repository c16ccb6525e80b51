from datetime import datetime, timedelta, timezone

from poemeter.dashboard import bot_stats, period_stats, points_forecast
from poemeter.models import PointsHistoryNode, PointsInfo
from poemeter.record_store import RecordStore
from poemeter.subscription import to_epoch_micros

UTC = timezone.utc
NOW = datetime(2025, 5, 20, 12, tzinfo=UTC)


def _node(
    node_id: "str",
    moment: "datetime",
    cost: "int",
    bot: "str" = "GPT-4o",
) -> "PointsHistoryNode":
    return PointsHistoryNode(
        id=node_id,
        point_cost=cost,
        creation_time=to_epoch_micros(moment),
        bot_name=bot,
        bot_id=f"id-{bot}",
    )


def _store(*nodes: "PointsHistoryNode") -> "RecordStore":
    store = RecordStore()
    for node in nodes:
        store.upsert(node)
    return store


def _sample_store() -> "RecordStore":
    return _store(
        _node("a", datetime(2025, 5, 2, 10, 15, tzinfo=UTC), 100),
        _node("b", datetime(2025, 5, 2, 10, 45, tzinfo=UTC), 50),
        _node("c", datetime(2025, 5, 2, 12, 5, tzinfo=UTC), 30),
        # previous period
        _node("old", datetime(2025, 4, 28, 9, tzinfo=UTC), 999),
    )


class TestPeriodStats:
    def test_discrete_series(self) -> "None":
        stats = period_stats(_sample_store(), "hour", "discrete", now=NOW, tz=UTC)

        assert stats["granularity"] == "hour"
        assert stats["chart_type"] == "discrete"
        assert stats["period_label"] == "05.01 - 06.01"
        assert stats["period_start"] == to_epoch_micros(datetime(2025, 5, 1, tzinfo=UTC))

        data = stats["data"]
        assert [p["value"] for p in data] == [150.0, 0.0, 30.0]
        assert [p["record_count"] for p in data] == [2, 0, 1]
        assert [p["has_data"] for p in data] == [True, False, True]
        assert data[0]["timestamp"] == "2025-05-02T10:00:00.000Z"
        assert stats["date_separators"] == []

    def test_cumulative_series(self) -> "None":
        stats = period_stats(_sample_store(), "hour", "cumulative", now=NOW, tz=UTC)

        data = stats["data"]
        assert [p["value"] for p in data] == [150.0, 150.0, 180.0]
        assert [p["record_count"] for p in data] == [2, 2, 3]

    def test_previous_period(self) -> "None":
        stats = period_stats(
            _sample_store(),
            "day",
            period_offset=-1,
            now=NOW,
            tz=UTC,
        )

        assert stats["period_label"] == "04.01 - 05.01"
        assert [p["value"] for p in stats["data"]] == [999.0]

    def test_unknown_options_fall_back(self) -> "None":
        stats = period_stats(RecordStore(), "week", "stacked", now=NOW, tz=UTC)

        assert stats["granularity"] == "hour"
        assert stats["chart_type"] == "discrete"
        assert stats["data"] == []


class TestBotStats:
    def test_ranked_by_cost(self) -> "None":
        store = _store(
            _node("a", NOW, 100, bot="GPT-4o"),
            _node("b", NOW, 10, bot="Claude"),
            _node("c", NOW, 10, bot="Claude"),
            _node("d", NOW, 10, bot="Claude"),
        )

        stats = bot_stats(store)

        assert [s.name for s in stats] == ["GPT-4o", "Claude"]
        assert stats[0].cost == 100.0
        assert stats[1].count == 3
        assert stats[1].avg_cost == 10.0
        assert stats[1].percentage == 75.0

    def test_empty_store(self) -> "None":
        assert bot_stats(RecordStore()) == []


class TestPointsForecast:
    def _info(self, next_grant: "datetime", balance: "int" = 1000) -> "PointsInfo":
        return PointsInfo(
            total_allotment=2000,
            current_balance=balance,
            next_grant_time=to_epoch_micros(next_grant),
            expires_time=0,
            subscription_name="Poe Premium",
        )

    def test_average_and_remaining_days(self) -> "None":
        # grant cycle started ten days ago
        info = self._info(NOW + timedelta(days=20))
        store = _store(
            _node("a", NOW - timedelta(days=5), 300),
            _node("b", NOW - timedelta(days=1), 200),
            _node("before-cycle", NOW - timedelta(days=15), 5000),
        )

        forecast = points_forecast(info, store, NOW)

        assert forecast.avg_per_day == 50
        assert forecast.remaining_days == 20
        assert forecast.used_points == 1000
        assert forecast.usage_percentage == 50.0
        assert forecast.subscription_name == "Poe Premium"

    def test_elapsed_time_is_at_least_one_day(self) -> "None":
        info = self._info(NOW + timedelta(days=30) - timedelta(hours=1))
        store = _store(_node("a", NOW - timedelta(minutes=30), 400))

        forecast = points_forecast(info, store, NOW)

        assert forecast.avg_per_day == 400
        assert forecast.remaining_days == 2

    def test_no_spend(self) -> "None":
        forecast = points_forecast(self._info(NOW + timedelta(days=10)), RecordStore(), NOW)

        assert forecast.avg_per_day == 0
        assert forecast.remaining_days == 999

    def test_zero_allotment(self) -> "None":
        info = PointsInfo(
            total_allotment=0,
            current_balance=0,
            next_grant_time=0,
            expires_time=0,
        )
        assert points_forecast(info, RecordStore(), NOW).usage_percentage == 0.0
