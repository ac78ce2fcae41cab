"""Routes for managing the tracked game worlds."""
import logging

import flask
import sqlalchemy.exc

from travianmap import datamodel, ingestion, servers
from travianmap.api import flask_app, utils

logger = logging.getLogger(__name__)


@flask_app.route("/api/servers", methods=["GET"])
def list_servers():
    with datamodel.get_db_session() as session:
        return flask.jsonify([server.as_dict() for server in servers.list_servers(session)])


@flask_app.route("/api/servers", methods=["POST"])
def create_server():
    payload = flask.request.get_json(silent=True) or {}
    name = payload.get("name")
    url = payload.get("url")
    if not isinstance(name, str) or not isinstance(url, str):
        return utils.error_response("Both name and url are required", 400)
    with datamodel.get_db_session() as session:
        try:
            server = servers.add_server(session, name, url)
            session.commit()
        except ValueError as e:
            session.rollback()
            return utils.error_response(str(e), 400)
        except sqlalchemy.exc.IntegrityError:
            session.rollback()
            return utils.error_response(f"A server named {name!r} already exists", 409)
        return flask.jsonify(server.as_dict()), 201


@flask_app.route("/api/servers/<int:server_id>", methods=["DELETE"])
def delete_server(server_id):
    with datamodel.get_db_session() as session:
        servers.remove_server(session, server_id)
        session.commit()
    return "", 204


@flask_app.route("/api/servers/<int:server_id>/activate", methods=["POST"])
def activate_server(server_id):
    report = ingestion.activate_server(server_id)
    with datamodel.get_db_session() as session:
        server = servers.get_server(session, server_id).as_dict()
    return flask.jsonify(
        status="success",
        server=server,
        auto_load=report.as_dict(),
        auto_load_message=report.message,
    )


@flask_app.route("/api/load-sql", methods=["POST"])
def load_sql_from_url():
    payload = flask.request.get_json(silent=True) or {}
    url = payload.get("url")
    if not isinstance(url, str) or not url.strip():
        return utils.error_response("url is required", 400)
    server_id = utils.active_server_id()
    if server_id is None:
        return utils.error_response("No active server", 404)
    report = ingestion.load_from_url(server_id, url.strip())
    if not report.succeeded:
        return utils.error_response(report.message, 400)
    return flask.jsonify(status="success", message=report.message, report=report.as_dict())
