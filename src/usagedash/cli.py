import argparse

from usagedash.config import Config


def parse_args(argv: "list[str] | None" = None) -> "Config":
    parser = argparse.ArgumentParser(
        prog="usagedash",
        description="AI provider usage and cost aggregation service",
    )
    parser.add_argument(
        "--web.listen-address",
        dest="listen_address",
        default=":8790",
        help="Address to listen on (default: :8790)",
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
        "--pricing.file",
        dest="pricing_file",
        default=None,
        help="JSON file overriding the built-in pricing tables",
    )

    args = parser.parse_args(argv)
    config = Config.from_env()
    config.listen_address = args.listen_address
    config.log_level = args.log_level
    config.log_format = args.log_format
    if args.pricing_file:
        config.pricing_file = args.pricing_file
    return config
