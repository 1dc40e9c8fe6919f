import structlog
import uvicorn

from usagedash.aggregator import PROVIDER_CLASSES
from usagedash.cli import parse_args
from usagedash.logging import setup_logging
from usagedash.server import create_app

logger = structlog.get_logger()


def _parse_listen_address(addr: "str") -> "tuple[str, int]":
    """
    parses listen address in format ':8790' or '0.0.0.0:8790'.
    """
    if addr.startswith(":"):
        return ("0.0.0.0", int(addr[1:]))

    host, port = addr.rsplit(":", 1)
    return (host, int(port))


def main() -> "None":
    config = parse_args()
    setup_logging(config.log_level, json_logs=config.log_format == "json")

    for name in PROVIDER_CLASSES:
        if config.api_key_for(name):
            logger.info("provider_enabled", provider=name)
        else:
            # still served, the endpoint reports "not configured"
            logger.warning("provider_not_configured", provider=name)

    app = create_app(config)
    host, port = _parse_listen_address(config.listen_address)
    logger.info("server_starting", host=host, port=port)

    uvicorn.run(app, host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
