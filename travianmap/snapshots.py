"""Read access to the stored snapshots of a server."""
import dataclasses
import datetime
import logging
from typing import List, Optional

import sqlalchemy

from travianmap import datamodel, partitions

logger = logging.getLogger(__name__)

DEFAULT_RADIUS = 10


@dataclasses.dataclass
class MapVillage:
    id: int
    name: str
    x: int
    y: int
    population: int
    player: Optional[str]
    alliance: Optional[str]
    worldid: Optional[int]
    tid: Optional[int]


def latest_snapshot_date(session, server_id: int) -> Optional[datetime.date]:
    return snapshot_date_generations_back(session, server_id, 0)


def snapshot_date_generations_back(session, server_id: int, generations: int) -> Optional[datetime.date]:
    """
    The date of the snapshot `generations` positions before the most recent one.

    This counts stored snapshots, not calendar days: if no dump was loaded on some day, going back
    one generation from today may land two or more days in the past.
    """
    if generations < 0:
        raise ValueError(f"generations must not be negative, got {generations}")
    dates = partitions.partition_dates(session, server_id)
    if generations >= len(dates):
        return None
    return dates[generations]


def get_snapshot(session, server_id: int, generations: int = 0) -> Optional[sqlalchemy.Table]:
    snapshot_date = snapshot_date_generations_back(session, server_id, generations)
    if snapshot_date is None:
        return None
    return partitions.get_partition(session, server_id, snapshot_date)


def get_villages(server_id: int, snapshot_date: datetime.date = None) -> List[MapVillage]:
    with datamodel.get_db_session() as session:
        if snapshot_date is None:
            table = get_snapshot(session, server_id)
        else:
            table = partitions.get_partition(session, server_id, snapshot_date)
        if table is None:
            return []
        query = sqlalchemy.select(table).order_by(table.c.population.desc(), table.c.id)
        return [_to_map_village(row) for row in session.execute(query)]


def get_villages_near(server_id: int, x: int, y: int, radius: int = DEFAULT_RADIUS) -> List[MapVillage]:
    """Villages of the latest snapshot within `radius` fields of (x, y) along both axes, closest first."""
    with datamodel.get_db_session() as session:
        table = get_snapshot(session, server_id)
        if table is None:
            return []
        dx = sqlalchemy.func.abs(table.c.x - x)
        dy = sqlalchemy.func.abs(table.c.y - y)
        query = (
            sqlalchemy.select(table)
            .where(dx <= radius, dy <= radius)
            .order_by((dx + dy).asc(), table.c.population.desc(), table.c.id)
        )
        return [_to_map_village(row) for row in session.execute(query)]


def _to_map_village(row) -> MapVillage:
    return MapVillage(
        id=row.id,
        name=row.village,
        x=row.x,
        y=row.y,
        population=row.population,
        player=row.player,
        alliance=row.alliance,
        worldid=row.worldid,
        tid=row.tid,
    )
