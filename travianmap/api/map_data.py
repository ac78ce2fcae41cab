"""Routes serving villages and analytics of the active server."""
import logging

import flask

from travianmap import datamodel, partitions, snapshots
from travianmap.analytics import alliances, stagnation, world
from travianmap.api import flask_app, utils

logger = logging.getLogger(__name__)


@flask_app.route("/")
def index_page():
    return flask.jsonify(status="success", message="Travian Map Server is running!")


@flask_app.route("/health")
def health():
    return flask.jsonify(status="healthy", message="Server is operational")


@flask_app.route("/api/villages")
def villages():
    server_id = utils.active_server_id()
    if server_id is None:
        return flask.jsonify([])
    return flask.jsonify(utils.to_json(snapshots.get_villages(server_id)))


@flask_app.route("/api/map")
def map_data():
    x = utils.int_arg("x")
    y = utils.int_arg("y")
    radius = utils.int_arg("radius", snapshots.DEFAULT_RADIUS)
    server_id = utils.active_server_id()
    if server_id is None:
        return flask.jsonify([])
    if x is not None and y is not None:
        result = snapshots.get_villages_near(server_id, x, y, radius)
    else:
        result = snapshots.get_villages(server_id)
    return flask.jsonify(utils.to_json(result))


@flask_app.route("/api/partitions")
def partition_list():
    server_id = utils.active_server_id()
    if server_id is None:
        return flask.jsonify([])
    with datamodel.get_db_session() as session:
        infos = partitions.list_partitions(session, server_id)
    return flask.jsonify(
        [dict(date=info.snapshot_date.isoformat(), village_count=info.record_count) for info in infos]
    )


@flask_app.route("/api/world-info")
def world_info():
    server_id = utils.active_server_id()
    if server_id is None:
        return flask.jsonify(
            utils.to_json(world.WorldInfo(tribe_stats=[], top_players=[], total_villages=0, total_population=0))
        )
    return flask.jsonify(utils.to_json(world.world_info(server_id)))


@flask_app.route("/api/afk")
def afk_villages():
    quadrant = stagnation.Quadrant.from_str(flask.request.args.get("quadrant", "NE"))
    days_back = stagnation.validate_days_back(utils.int_arg("days", 3))
    server_id = utils.active_server_id()
    if server_id is None:
        return flask.jsonify([])
    return flask.jsonify(utils.to_json(stagnation.find_stagnant(server_id, quadrant, days_back)))


@flask_app.route("/api/alliance-info")
def alliance_info():
    server_id = utils.active_server_id()
    if server_id is None:
        return flask.jsonify(utils.to_json(alliances.AllianceInfo(top_alliances=[], total_alliances=0)))
    return flask.jsonify(utils.to_json(alliances.alliance_info(server_id)))
