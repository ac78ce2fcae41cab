import logging

from travianmap import api

logger = logging.getLogger(__name__)


def main():
    """ Entry point for the default execution: serve the map data and analytics over HTTP. """
    try:
        api.start_server()
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")


if __name__ == "__main__":
    main()
