import argparse
from pathlib import Path

from poemeter.config import Config
from poemeter.curl import parse_curl


def parse_args(argv: "list[str] | None" = None) -> "Config":
    parser = argparse.ArgumentParser(
        prog="poemeter",
        description="Poe points usage monitor",
    )
    parser.add_argument(
        "--web.listen-address",
        dest="listen_address",
        default=":9186",
        help="Address to listen on (default: :9186)",
    )
    parser.add_argument(
        "--fetch.interval",
        dest="fetch_interval",
        type=int,
        default=30,
        help="Auto-fetch interval in minutes (default: 30)",
    )
    parser.add_argument(
        "--log.level",
        dest="log_level",
        default="info",
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: info)",
    )
    parser.add_argument(
        "--log.format",
        dest="log_format",
        default="console",
        choices=["console", "json"],
        help="Log output format (default: console)",
    )
    parser.add_argument(
        "--chart.granularity",
        dest="granularity",
        default="hour",
        choices=["minute", "hour", "halfday", "day"],
        help="Granularity of the period summary (default: hour)",
    )
    parser.add_argument(
        "--curl-file",
        dest="curl_file",
        type=Path,
        default=None,
        help="File holding a 'copy as cURL' command to read credentials from",
    )

    args = parser.parse_args(argv)
    config = Config.from_env()
    config.listen_address = args.listen_address
    config.fetch_interval = args.fetch_interval
    config.log_level = args.log_level
    config.log_format = args.log_format
    config.granularity = args.granularity

    if args.curl_file is not None:
        config.apply_credentials(parse_curl(args.curl_file.read_text()))
    return config
