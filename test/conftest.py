import pytest

from travianmap import config, datamodel, servers


@pytest.fixture(autouse=True)
def database(tmp_path, monkeypatch):
    """Every test runs against its own SQLite file."""
    monkeypatch.setattr(config.CONFIG, "base_output_path", tmp_path)
    monkeypatch.setattr(config.CONFIG, "database_url", f"sqlite:///{tmp_path / 'travianmap_test.db'}")
    yield
    datamodel.dispose_engines()


@pytest.fixture
def server_id():
    with datamodel.get_db_session() as session:
        server = servers.add_server(session, "ts1", "https://ts1.x1.europe.travian.com")
        session.commit()
        return server.server_id


@pytest.fixture
def other_server_id():
    with datamodel.get_db_session() as session:
        server = servers.add_server(session, "ts2", "https://ts2.x1.europe.travian.com/")
        session.commit()
        return server.server_id
