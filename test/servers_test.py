import pytest

from dump_test_data import day
from travianmap import datamodel, partitions, servers


def test_add_server_strips_input():
    with datamodel.get_db_session() as session:
        server = servers.add_server(session, "  ts5 ", " https://ts5.x1.asia.travian.com ")
        session.commit()
        assert server.name == "ts5"
        assert server.url == "https://ts5.x1.asia.travian.com"
        assert not server.is_active


@pytest.mark.parametrize("name,url", [("", "https://ts1.travian.com"), ("ts1", "   ")])
def test_add_server_requires_name_and_url(name, url):
    with datamodel.get_db_session() as session:
        with pytest.raises(ValueError):
            servers.add_server(session, name, url)


def test_unknown_server():
    with datamodel.get_db_session() as session:
        with pytest.raises(servers.ServerNotFoundError):
            servers.get_server(session, 42)


def test_list_servers_by_name(server_id, other_server_id):
    with datamodel.get_db_session() as session:
        assert [s.name for s in servers.list_servers(session)] == ["ts1", "ts2"]


def test_single_active_server(server_id, other_server_id):
    with datamodel.get_db_session() as session:
        assert servers.get_active_server(session) is None

        servers.set_active_server(session, server_id)
        session.commit()
        assert servers.get_active_server(session).server_id == server_id

        servers.set_active_server(session, other_server_id)
        session.commit()
        active = [s.server_id for s in servers.list_servers(session) if s.is_active]
    assert active == [other_server_id]


def test_activate_unknown_server_keeps_current(server_id):
    with datamodel.get_db_session() as session:
        servers.set_active_server(session, server_id)
        session.commit()
        with pytest.raises(servers.ServerNotFoundError):
            servers.set_active_server(session, server_id + 100)
        session.rollback()
        assert servers.get_active_server(session).server_id == server_id


def test_remove_server_drops_partitions(server_id, other_server_id):
    with datamodel.get_db_session() as session:
        partitions.ensure_partition(session, server_id, day(0))
        partitions.ensure_partition(session, server_id, day(1))
        partitions.ensure_partition(session, other_server_id, day(0))
        session.commit()

        servers.remove_server(session, server_id)
        session.commit()

        assert partitions.partition_dates(session, server_id) == []
        assert partitions.partition_dates(session, other_server_id) == [day(0)]
        assert [s.server_id for s in servers.list_servers(session)] == [other_server_id]


def test_server_as_dict(server_id):
    with datamodel.get_db_session() as session:
        data = servers.get_server(session, server_id).as_dict()
    assert data["id"] == server_id
    assert data["name"] == "ts1"
    assert data["is_active"] is False
