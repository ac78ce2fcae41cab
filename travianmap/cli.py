"""
This file defines the command line interface of the map server, and contains the functions
for the top-level functionality of each feature.

The CLI functions which are annotated with click decorators are only thin wrappers that call the
corresponding function defined immediately below. This allows reusing the code in __main__.py.
"""

import datetime
import logging
import pathlib

import click

from travianmap import config, datamodel, ingestion, partitions, servers
from travianmap.analytics import InvalidQueryError, alliances, stagnation, world

logger = logging.getLogger(__name__)

# These messages are shown by the CLI
server_help_string = "The id of the server. Defaults to the active server."
date_help_string = "Snapshot date in YYYY-MM-DD format. Defaults to today (UTC)."
quadrant_help_string = "Map quadrant relative to (0|0): NE, SE, SW or NW."
days_help_string = "Number of stored snapshots to look back (1-10)."


@click.group()
def cli():
    pass


def _resolve_server_id(server_id=None) -> int:
    if server_id is not None:
        return server_id
    with datamodel.get_db_session() as session:
        server = servers.get_active_server(session)
        if server is None:
            raise click.UsageError("No active server. Pass --server or activate a server first.")
        return server.server_id


@cli.command()
@click.argument("name")
@click.argument("url")
def add_server(name, url):
    f_add_server(name, url)


def f_add_server(name: str, url: str) -> int:
    with datamodel.get_db_session() as session:
        server = servers.add_server(session, name, url)
        session.commit()
        click.echo(f"Added server {server.name} with id {server.server_id}")
        return server.server_id


@cli.command()
@click.argument("server_id", type=click.INT)
def remove_server(server_id):
    f_remove_server(server_id)


def f_remove_server(server_id: int) -> None:
    with datamodel.get_db_session() as session:
        servers.remove_server(session, server_id)
        session.commit()
    click.echo(f"Removed server {server_id}")


@cli.command(name="servers")
def list_servers():
    f_list_servers()


def f_list_servers() -> None:
    with datamodel.get_db_session() as session:
        for server in servers.list_servers(session):
            marker = "*" if server.is_active else " "
            click.echo(f"{marker} {server.server_id:>4}  {server.name}  {server.url}")


@cli.command()
@click.argument("server_id", type=click.INT)
def activate(server_id):
    f_activate(server_id)


def f_activate(server_id: int) -> ingestion.IngestionReport:
    report = ingestion.activate_server(server_id)
    click.echo(f"Activated server {server_id}. {report.message}")
    return report


@cli.command()
@click.option("--server", "server_id", type=click.INT, help=server_help_string)
@click.option("--file", "dump_file", type=click.Path(exists=True, dir_okay=False), help="Read the dump from a local file.")
@click.option("--url", type=click.STRING, help="Fetch the dump from this URL instead of the server's dump URL.")
@click.option("--date", "snapshot_date", type=click.DateTime(formats=["%Y-%m-%d"]), help=date_help_string)
def load(server_id, dump_file, url, snapshot_date):
    if snapshot_date is not None:
        snapshot_date = snapshot_date.date()
    f_load(server_id, dump_file=dump_file, url=url, snapshot_date=snapshot_date)


def f_load(server_id=None, dump_file=None, url=None, snapshot_date: datetime.date = None) -> ingestion.IngestionReport:
    """
    Load a dump into the partition of the given date, replacing what was loaded for that day before.

    :param server_id: Override for the active server.
    :param dump_file: Read the dump from this file. Takes precedence over url.
    :param url: Fetch the dump from this URL. If neither is given, the server's dump URL is used.
    :param snapshot_date: Partition date, today if not given.
    :return:
    """
    if dump_file is not None and url is not None:
        raise click.UsageError("Pass either --file or --url, not both.")
    server_id = _resolve_server_id(server_id)
    if dump_file is not None:
        dump_text = pathlib.Path(dump_file).read_text(encoding="utf-8", errors="replace")
        count = ingestion.ingest_dump(server_id, dump_text, snapshot_date)
        report = ingestion.IngestionReport(
            server_id=server_id,
            status=ingestion.IngestionStatus.loaded,
            snapshot_date=snapshot_date or partitions.utc_today(),
            village_count=count,
            message=f"Successfully loaded {count} villages from {dump_file}",
        )
    else:
        if url is None:
            with datamodel.get_db_session() as session:
                url = ingestion.dump_url(servers.get_server(session, server_id).url)
        report = ingestion.load_from_url(server_id, url, snapshot_date)
    click.echo(report.message)
    if not report.succeeded:
        raise click.ClickException(report.message)
    return report


@cli.command()
@click.option("--server", "server_id", type=click.INT, help=server_help_string)
def autoload(server_id):
    f_autoload(server_id)


def f_autoload(server_id=None) -> ingestion.IngestionReport:
    server_id = _resolve_server_id(server_id)
    report = ingestion.auto_load(server_id)
    click.echo(report.message)
    return report


@cli.command(name="partitions")
@click.option("--server", "server_id", type=click.INT, help=server_help_string)
def list_partitions(server_id):
    f_list_partitions(server_id)


def f_list_partitions(server_id=None) -> None:
    server_id = _resolve_server_id(server_id)
    with datamodel.get_db_session() as session:
        for info in partitions.list_partitions(session, server_id):
            click.echo(f"{info.snapshot_date:%Y-%m-%d}  {info.record_count:>8} villages")


@cli.command()
@click.option("--server", "server_id", type=click.INT, help=server_help_string)
def prune(server_id):
    f_prune(server_id)


def f_prune(server_id=None) -> None:
    server_id = _resolve_server_id(server_id)
    with datamodel.get_db_session() as session:
        dropped = partitions.prune(session, server_id)
    click.echo(f"Dropped {len(dropped)} partitions")


@cli.command()
@click.option("--server", "server_id", type=click.INT, help=server_help_string)
@click.option("--quadrant", type=click.STRING, default="NE", help=quadrant_help_string)
@click.option("--days", type=click.INT, default=3, help=days_help_string)
def afk(server_id, quadrant, days):
    f_afk(server_id, quadrant, days)


def f_afk(server_id, quadrant: str, days: int) -> None:
    try:
        quadrant = stagnation.Quadrant.from_str(quadrant)
        days = stagnation.validate_days_back(days)
    except InvalidQueryError as e:
        raise click.BadParameter(str(e))
    server_id = _resolve_server_id(server_id)
    result = stagnation.find_stagnant(server_id, quadrant, days)
    click.echo(f"{len(result)} villages without growth for {days} snapshots in {quadrant}")
    for village in result:
        click.echo(
            f"({village.x:>4}|{village.y:>4})  {village.population:>5}  {village.village_name}  "
            f"{village.player_name}  {village.alliance or '-'}"
        )


@cli.command(name="alliances")
@click.option("--server", "server_id", type=click.INT, help=server_help_string)
def list_alliances(server_id):
    f_list_alliances(server_id)


def f_list_alliances(server_id=None) -> None:
    server_id = _resolve_server_id(server_id)
    info = alliances.alliance_info(server_id)
    click.echo(f"{info.total_alliances} alliances")
    for rank, alliance in enumerate(info.top_alliances, start=1):
        click.echo(
            f"{rank:>3}. {alliance.alliance_name}  members={alliance.member_count} "
            f"villages={alliance.village_count} population={alliance.total_population} "
            f"growth={alliance.population_growth:+d} ({alliance.growth_percentage:+.2f}%)"
        )


@cli.command()
@click.option("--server", "server_id", type=click.INT, help=server_help_string)
def world_info(server_id):
    f_world_info(server_id)


def f_world_info(server_id=None) -> None:
    server_id = _resolve_server_id(server_id)
    info = world.world_info(server_id)
    click.echo(f"{info.total_villages} villages, total population {info.total_population}")
    for tribe in info.tribe_stats:
        click.echo(f"  {tribe.tribe_name:<10} {tribe.village_count:>7} villages {tribe.total_population:>9} population")
    for player in info.top_players:
        click.echo(f"  {player.player_name}  {player.village_count} villages  {player.total_population} population")


@cli.command()
def serve():
    f_serve()


def f_serve() -> None:
    from travianmap import api

    api.start_server()


@cli.command()
def write_config():
    config.CONFIG.write_to_file()


if __name__ == "__main__":
    cli()
