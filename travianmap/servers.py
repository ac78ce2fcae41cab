"""Registry of the tracked game worlds. Callers own the session and decide when to commit."""
import logging
from typing import List, Optional

from travianmap import datamodel, partitions

logger = logging.getLogger(__name__)


class ServerNotFoundError(LookupError):
    pass


def add_server(session, name: str, url: str) -> datamodel.Server:
    name = name.strip()
    url = url.strip()
    if not name or not url:
        raise ValueError("A server needs both a name and a URL.")
    server = datamodel.Server(name=name, url=url, is_active=False)
    session.add(server)
    session.flush()
    logger.info(f"Added {server} with URL {url}")
    return server


def get_server(session, server_id: int) -> datamodel.Server:
    server = session.get(datamodel.Server, server_id)
    if server is None:
        raise ServerNotFoundError(f"No server with id {server_id}")
    return server


def list_servers(session) -> List[datamodel.Server]:
    return session.query(datamodel.Server).order_by(datamodel.Server.name).all()


def get_active_server(session) -> Optional[datamodel.Server]:
    return session.query(datamodel.Server).filter_by(is_active=True).one_or_none()


def set_active_server(session, server_id: int) -> datamodel.Server:
    """
    Make the given server the only active one. Both steps happen in the caller's transaction,
    so other sessions never observe zero or two active servers.
    """
    server = get_server(session, server_id)
    session.query(datamodel.Server).update(
        {datamodel.Server.is_active: False}, synchronize_session="fetch"
    )
    server.is_active = True
    session.flush()
    logger.info(f"Activated {server}")
    return server


def remove_server(session, server_id: int) -> None:
    server = get_server(session, server_id)
    dropped = partitions.drop_all_partitions(session, server_id)
    session.delete(server)
    session.flush()
    logger.info(f"Removed {server} and {len(dropped)} partitions")
