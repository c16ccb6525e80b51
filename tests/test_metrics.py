from prometheus_client import CollectorRegistry

from poemeter.metrics import MetricsUpdater
from poemeter.models import PointsHistoryNode, PointsInfo


class TestMetricsUpdater:
    def test_metrics_are_created(
        self,
        registry: "CollectorRegistry",
    ) -> "None":
        MetricsUpdater(registry=registry)
        # prometheus_client strips _total suffix from Counter family names
        metric_names = [m.name for m in registry.collect()]
        assert "poemeter_points_spent" in metric_names
        assert "poemeter_records" in metric_names
        assert "poemeter_points_balance" in metric_names
        assert "poemeter_sync_duration_seconds" in metric_names
        assert "poemeter_sync_errors" in metric_names
        assert "poemeter_last_sync_success_timestamp_seconds" in metric_names

    def test_record_node_increments_counters(
        self,
        registry: "CollectorRegistry",
    ) -> "None":
        updater = MetricsUpdater(registry=registry)
        node = PointsHistoryNode(
            id="n1",
            point_cost=150,
            creation_time=1_000_000,
            bot_name="GPT-4o",
            bot_id="b1",
        )
        updater.record_node(node)
        updater.record_node(node)

        spent = registry.get_sample_value(
            "poemeter_points_spent_total",
            {"model": "GPT-4o"},
        )
        records = registry.get_sample_value(
            "poemeter_records_total",
            {"model": "GPT-4o"},
        )
        assert spent == 300.0
        assert records == 2.0

    def test_record_node_without_bot_name(
        self,
        registry: "CollectorRegistry",
    ) -> "None":
        updater = MetricsUpdater(registry=registry)
        updater.record_node(PointsHistoryNode("n1", 5, 1, "", ""))

        spent = registry.get_sample_value(
            "poemeter_points_spent_total",
            {"model": "Unknown"},
        )
        assert spent == 5.0

    def test_points_info_sets_balance(
        self,
        registry: "CollectorRegistry",
    ) -> "None":
        updater = MetricsUpdater(registry=registry)
        updater.set_points_info(
            PointsInfo(
                total_allotment=1_000_000,
                current_balance=750_000,
                next_grant_time=0,
                expires_time=0,
            )
        )
        assert registry.get_sample_value("poemeter_points_balance") == 750_000.0

    def test_sync_metrics_update(
        self,
        registry: "CollectorRegistry",
    ) -> "None":
        updater = MetricsUpdater(registry=registry)

        updater.observe_sync_duration(0.5)
        updater.inc_sync_error("history")
        updater.set_last_sync_success(1000.0)

        error_val = registry.get_sample_value(
            "poemeter_sync_errors_total",
            {"stage": "history"},
        )
        assert error_val == 1.0

        success_val = registry.get_sample_value(
            "poemeter_last_sync_success_timestamp_seconds",
        )
        assert success_val == 1000.0

        count_val = registry.get_sample_value("poemeter_sync_duration_seconds_count")
        assert count_val == 1.0
