"""This package contains the flask app serving the map data and analytics as JSON."""
import logging

import flask

from travianmap import config
from travianmap.analytics import InvalidQueryError
from travianmap.servers import ServerNotFoundError

logger = logging.getLogger(__name__)

flask_app = flask.Flask(__name__)
flask_app.logger.setLevel(logging.DEBUG)


@flask_app.errorhandler(InvalidQueryError)
def handle_invalid_query(error):
    return flask.jsonify(status="error", message=str(error)), 400


@flask_app.errorhandler(ServerNotFoundError)
def handle_unknown_server(error):
    return flask.jsonify(status="error", message=str(error)), 404


from travianmap.api import (
    map_data,
    server_index,
)


def start_server():
    logger.info(f"Serving map data on http://{config.CONFIG.host}:{config.CONFIG.port}")
    flask_app.run(host=config.CONFIG.host, port=config.CONFIG.port, debug=config.CONFIG.debug_mode)


if __name__ == "__main__":
    start_server()
