import asyncio
import signal

import structlog
from prometheus_client import start_http_server

from poemeter.cli import parse_args
from poemeter.collector import Collector, SyncResult
from poemeter.config import Config
from poemeter.dashboard import period_stats, points_forecast
from poemeter.logging import setup_logging
from poemeter.metrics import MetricsUpdater
from poemeter.provider.poe import PoeProvider
from poemeter.record_store import RecordStore
from poemeter.statistics import summarize
from poemeter.subscription import current_period
from poemeter.table import to_table_rows

logger = structlog.get_logger()

# models listed in the period summary
_SUMMARY_TOP_MODELS = 5


def _parse_listen_address(addr: "str") -> "tuple[str, int]":
    """
    parses listen address in format ':9186' or '0.0.0.0:9186'.
    """
    if addr.startswith(":"):
        return ("0.0.0.0", int(addr[1:]))

    host, port = addr.rsplit(":", 1)
    return (host, int(port))


def log_period_summary(
    config: "Config",
    store: "RecordStore",
    collector: "Collector",
) -> "None":
    """
    logs the current subscription period: chart series shape, cost
    statistics, top models and, when known, the balance forecast.
    """
    stats = period_stats(
        store,
        granularity=config.granularity,
        subscription_day=config.subscription_day,
    )
    start, end = current_period(config.subscription_day)
    summary = summarize(
        to_table_rows(store.in_range(start, end)),
        cost_column="cost",
        category_column="model",
        sort_by="cost",
        top_n=_SUMMARY_TOP_MODELS,
    )

    logger.info(
        "period_summary",
        period=stats["period_label"],
        granularity=stats["granularity"],
        buckets=len(stats["data"]),
        day_boundaries=len(stats["date_separators"]),
        total=summary.cost.total,
        count=summary.cost.count,
        average=round(summary.cost.average, 2),
        top_models=[(c.name, c.cost) for c in summary.categories],
    )

    if collector.points_info is not None:
        forecast = points_forecast(collector.points_info, store)
        logger.info(
            "points_forecast",
            balance=forecast.current_balance,
            usage_percentage=round(forecast.usage_percentage, 1),
            avg_per_day=forecast.avg_per_day,
            remaining_days=forecast.remaining_days,
        )


def main() -> "None":
    config = parse_args()
    setup_logging(config.log_level, config.log_format)

    if not config.credentials_complete:
        raise SystemExit(
            "No credentials configured. Set POE_COOKIE, POE_FORMKEY and "
            "POE_TCHANNEL or pass --curl-file."
        )

    metrics_updater = MetricsUpdater()
    record_store = RecordStore()
    provider = PoeProvider(config.credentials)
    logger.info("provider_enabled", provider=provider.name)

    host, port = _parse_listen_address(config.listen_address)
    start_http_server(port, addr=host)
    logger.info("metrics_server_started", host=host, port=port)

    collector: "Collector"

    def _on_sync(result: "SyncResult") -> "None":
        log_period_summary(config, record_store, collector)

    collector = Collector(
        provider,
        record_store,
        metrics_updater,
        subscription_day=config.subscription_day,
        fetch_interval_minutes=config.fetch_interval,
        on_sync=_on_sync,
    )

    async def _run() -> "None":
        loop = asyncio.get_running_loop()
        # for SIGINT and SIGTERM, signal the collector
        # to stop gracefully
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, collector.stop)

        try:
            await collector.run()
        finally:
            logger.info("shutting_down")
            await collector.close()
            logger.info("shutdown_complete")

    asyncio.run(_run())


if __name__ == "__main__":
    main()
