"""HTTP entrypoint for the NODES media service."""

from dotenv import load_dotenv

from nodes_media.app import create_app
from nodes_media.config import load_config
from nodes_media.logging_setup import configure_logging
from nodes_media.scheduler import stop_housekeeping


def main() -> None:
    """Load configuration, start the sweeper and serve requests."""
    load_dotenv()
    config = load_config()
    logger = configure_logging(
        "nodes_media",
        level=config.service.log_level,
        log_file=config.service.log_file,
    )
    app = create_app(config, logger=logger, start_scheduler=True)
    logger.info("Serving on %s:%s", config.service.host, config.service.port)
    try:
        app.run(host=config.service.host, port=config.service.port, threaded=True)
    finally:
        stop_housekeeping(app.config["SCHEDULER"], logger)


if __name__ == "__main__":
    main()
