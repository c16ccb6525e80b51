from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram

from poemeter.models import PointsHistoryNode, PointsInfo


class MetricsUpdater:
    """
    applies synced points history nodes and balance snapshots to
    Prometheus metrics.
     - points_spent_total: points spent, labeled by model.
     - records_total: history records seen, labeled by model.
     - points_balance: remaining subscription points.
    """

    def __init__(self, registry: "CollectorRegistry" = REGISTRY) -> "None":
        self._registry: "CollectorRegistry" = registry
        self._points_spent: "Counter" = Counter(
            "poemeter_points_spent_total",
            "Total points spent",
            ["model"],
            registry=registry,
        )
        self._records: "Counter" = Counter(
            "poemeter_records_total",
            "Total points history records synced",
            ["model"],
            registry=registry,
        )
        self._points_balance: "Gauge" = Gauge(
            "poemeter_points_balance",
            "Remaining subscription points",
            registry=registry,
        )
        self._sync_duration: "Histogram" = Histogram(
            "poemeter_sync_duration_seconds",
            "Duration of points history sync cycles",
            registry=registry,
        )
        self._sync_errors: "Counter" = Counter(
            "poemeter_sync_errors_total",
            "Total number of sync errors by stage",
            ["stage"],
            registry=registry,
        )
        self._last_sync_success: "Gauge" = Gauge(
            "poemeter_last_sync_success_timestamp_seconds",
            "Unix timestamp of the last successful sync",
            registry=registry,
        )

    def record_node(self, node: "PointsHistoryNode") -> "None":
        """
        counts a newly stored history node. Updated nodes must not
        be passed again or their points are counted twice.
        """
        model = node.bot_name or "Unknown"
        self._points_spent.labels(model=model).inc(max(node.point_cost, 0))
        self._records.labels(model=model).inc()

    def set_points_info(self, info: "PointsInfo") -> "None":
        self._points_balance.set(info.current_balance)

    def observe_sync_duration(self, duration_seconds: "float") -> "None":
        self._sync_duration.observe(duration_seconds)

    def inc_sync_error(self, stage: "str") -> "None":
        self._sync_errors.labels(stage=stage).inc()

    def set_last_sync_success(self, timestamp: "float") -> "None":
        self._last_sync_success.set(timestamp)
