"""
Lifecycle of the dated village partitions.

Every ingested snapshot lives in its own table, keyed by server and snapshot date. A partition is
never updated in place: it is created once, cleared and refilled when the same day is ingested
again, and dropped once it falls out of the retention window.
"""
import datetime
import logging
import re
from typing import List, NamedTuple, Optional, Tuple

import sqlalchemy

from travianmap import datamodel

logger = logging.getLogger(__name__)

RETENTION_WINDOW = 10

TABLE_NAME_RE = re.compile(r"^villages_server_(\d+)_(\d{4})_(\d{2})_(\d{2})$")


class PartitionInfo(NamedTuple):
    snapshot_date: datetime.date
    record_count: int


def utc_today() -> datetime.date:
    return datetime.datetime.now(datetime.timezone.utc).date()


def partition_table_name(server_id: int, snapshot_date: datetime.date) -> str:
    return f"villages_server_{server_id}_{snapshot_date:%Y_%m_%d}"


def parse_partition_table_name(table_name: str) -> Optional[Tuple[int, datetime.date]]:
    match = TABLE_NAME_RE.match(table_name)
    if match is None:
        return None
    server_id, year, month, day = map(int, match.groups())
    try:
        return server_id, datetime.date(year, month, day)
    except ValueError:
        return None


def partition_dates(session, server_id: int) -> List[datetime.date]:
    """All snapshot dates with an existing partition for the server, most recent first."""
    dates = []
    for table_name in sqlalchemy.inspect(session.connection()).get_table_names():
        parsed = parse_partition_table_name(table_name)
        if parsed is not None and parsed[0] == server_id:
            dates.append(parsed[1])
    return sorted(dates, reverse=True)


def partition_exists(session, server_id: int, snapshot_date: datetime.date) -> bool:
    table_name = partition_table_name(server_id, snapshot_date)
    return sqlalchemy.inspect(session.connection()).has_table(table_name)


def get_partition(session, server_id: int, snapshot_date: datetime.date) -> Optional[sqlalchemy.Table]:
    if not partition_exists(session, server_id, snapshot_date):
        return None
    return datamodel.village_table(partition_table_name(server_id, snapshot_date))


def ensure_partition(session, server_id: int, snapshot_date: datetime.date) -> sqlalchemy.Table:
    """Create the partition and its indexes unless it already exists."""
    table = datamodel.village_table(partition_table_name(server_id, snapshot_date))
    if not partition_exists(session, server_id, snapshot_date):
        logger.info(f"Creating partition {table.name}")
        table.create(bind=session.connection(), checkfirst=True)
    return table


def list_partitions(session, server_id: int) -> List[PartitionInfo]:
    result = []
    for snapshot_date in partition_dates(session, server_id):
        table = datamodel.village_table(partition_table_name(server_id, snapshot_date))
        count = session.execute(
            sqlalchemy.select(sqlalchemy.func.count()).select_from(table)
        ).scalar_one()
        result.append(PartitionInfo(snapshot_date, count))
    return result


def clear_partition(session, server_id: int, snapshot_date: datetime.date) -> int:
    table = get_partition(session, server_id, snapshot_date)
    if table is None:
        return 0
    deleted = session.execute(table.delete()).rowcount
    if deleted:
        logger.info(f"Cleared {deleted} rows from partition {table.name}")
    return deleted


def drop_partition(session, server_id: int, snapshot_date: datetime.date) -> bool:
    """Drop a single partition. Dropping a partition that does not exist does nothing."""
    table_name = partition_table_name(server_id, snapshot_date)
    if not partition_exists(session, server_id, snapshot_date):
        return False
    datamodel.village_table(table_name).drop(bind=session.connection(), checkfirst=True)
    datamodel.forget_village_table(table_name)
    logger.info(f"Dropped partition {table_name}")
    return True


def prune(session, server_id: int, keep: int = RETENTION_WINDOW) -> List[datetime.date]:
    """
    Drop all but the `keep` most recent partitions of the server, oldest first.

    Each drop is committed on its own, so a failure halfway leaves the older drops in place.

    :return: The dropped snapshot dates
    """
    dropped = []
    for snapshot_date in sorted(partition_dates(session, server_id)[keep:]):
        if drop_partition(session, server_id, snapshot_date):
            session.commit()
            dropped.append(snapshot_date)
    if dropped:
        logger.info(
            f"Retention for server {server_id}: dropped {len(dropped)} partitions, kept {keep}"
        )
    return dropped


def drop_all_partitions(session, server_id: int) -> List[datetime.date]:
    dropped = []
    for snapshot_date in partition_dates(session, server_id):
        if drop_partition(session, server_id, snapshot_date):
            dropped.append(snapshot_date)
    return dropped
