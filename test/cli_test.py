import pytest
from click.testing import CliRunner

from dump_test_data import day, insert_line, make_dump
from travianmap import cli, datamodel, ingestion, servers


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def dump_file(tmp_path):
    path = tmp_path / "map.sql"
    path.write_text(
        make_dump(
            insert_line(1, 1, player="Alice", population=100),
            insert_line(-2, 5, player="Bob", alliance="Owls", population=300),
            "INSERT INTO `x_world` VALUES (broken);",
        ),
        encoding="utf-8",
    )
    return path


def test_add_and_list_servers(runner):
    result = runner.invoke(cli.cli, ["add-server", "ts3", "https://ts3.x1.america.travian.com"])
    assert result.exit_code == 0, result.output
    assert "Added server ts3" in result.output

    result = runner.invoke(cli.cli, ["servers"])
    assert result.exit_code == 0
    assert "ts3" in result.output
    assert "https://ts3.x1.america.travian.com" in result.output


def test_load_file_and_list_partitions(runner, server_id, dump_file):
    result = runner.invoke(
        cli.cli, ["load", "--server", str(server_id), "--file", str(dump_file), "--date", "2024-05-01"]
    )
    assert result.exit_code == 0, result.output
    assert "Successfully loaded 2 villages" in result.output

    result = runner.invoke(cli.cli, ["partitions", "--server", str(server_id)])
    assert result.exit_code == 0
    assert "2024-05-01" in result.output
    assert "2 villages" in result.output


def test_commands_need_a_server(runner, dump_file):
    result = runner.invoke(cli.cli, ["load", "--file", str(dump_file)])
    assert result.exit_code == 2
    assert "No active server" in result.output


def test_file_and_url_are_exclusive(runner, server_id, dump_file):
    result = runner.invoke(
        cli.cli, ["load", "--server", str(server_id), "--file", str(dump_file), "--url", "https://example.com"]
    )
    assert result.exit_code == 2


def test_activate_uses_active_server(runner, server_id, monkeypatch):
    monkeypatch.setattr(ingestion, "fetch_dump", lambda url: make_dump(insert_line(3, 3)))
    result = runner.invoke(cli.cli, ["activate", str(server_id)])
    assert result.exit_code == 0, result.output
    assert "Successfully loaded 1 villages" in result.output
    with datamodel.get_db_session() as session:
        assert servers.get_active_server(session).server_id == server_id

    result = runner.invoke(cli.cli, ["autoload"])
    assert result.exit_code == 0
    assert "already up to date" in result.output


def test_afk(runner, server_id):
    village = insert_line(-2, 5, player="Bob", alliance="Owls", population=300)
    for offset in range(2):
        ingestion.ingest_dump(server_id, make_dump(village), day(offset))

    result = runner.invoke(cli.cli, ["afk", "--server", str(server_id), "--quadrant", "nw", "--days", "1"])
    assert result.exit_code == 0, result.output
    assert "1 villages without growth" in result.output
    assert "Bob" in result.output


@pytest.mark.parametrize("args", [["--quadrant", "up"], ["--days", "12"]])
def test_afk_rejects_invalid_options(runner, server_id, args):
    result = runner.invoke(cli.cli, ["afk", "--server", str(server_id)] + args)
    assert result.exit_code == 2


def test_alliances_and_world_info(runner, server_id, dump_file):
    runner.invoke(cli.cli, ["load", "--server", str(server_id), "--file", str(dump_file)])

    result = runner.invoke(cli.cli, ["alliances", "--server", str(server_id)])
    assert result.exit_code == 0, result.output
    assert "2 alliances" in result.output
    assert result.output.index("Owls") < result.output.index("Wolves")

    result = runner.invoke(cli.cli, ["world-info", "--server", str(server_id)])
    assert result.exit_code == 0, result.output
    assert "2 villages, total population 400" in result.output


def test_prune(runner, server_id):
    for offset in range(3):
        ingestion.ingest_dump(server_id, make_dump(insert_line(1, 1)), day(offset))
    result = runner.invoke(cli.cli, ["prune", "--server", str(server_id)])
    assert result.exit_code == 0
    assert "Dropped 0 partitions" in result.output


def test_remove_server(runner, server_id):
    result = runner.invoke(cli.cli, ["remove-server", str(server_id)])
    assert result.exit_code == 0
    with datamodel.get_db_session() as session:
        assert servers.list_servers(session) == []
