import dataclasses
import datetime
import logging
from typing import Optional

import flask

from travianmap import datamodel, servers
from travianmap.analytics import InvalidQueryError

logger = logging.getLogger(__name__)


def active_server_id() -> Optional[int]:
    with datamodel.get_db_session() as session:
        server = servers.get_active_server(session)
        return server.server_id if server is not None else None


def int_arg(name: str, default: Optional[int] = None) -> Optional[int]:
    raw = flask.request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise InvalidQueryError(f"Query parameter {name} must be an integer, got {raw!r}") from None


def error_response(message: str, status_code: int):
    return flask.jsonify(status="error", message=message), status_code


def to_json(value):
    if dataclasses.is_dataclass(value):
        return to_json(dataclasses.asdict(value))
    if isinstance(value, dict):
        return {key: to_json(val) for key, val in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(val) for val in value]
    if isinstance(value, datetime.date):
        return value.isoformat()
    return value
