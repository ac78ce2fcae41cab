import dataclasses
import logging
from typing import List, Optional

import sqlalchemy

from travianmap import datamodel, game_info, snapshots

logger = logging.getLogger(__name__)

TOP_PLAYER_COUNT = 10


@dataclasses.dataclass
class TribeStats:
    tribe_id: Optional[int]
    tribe_name: str
    village_count: int
    total_population: int


@dataclasses.dataclass
class PlayerStats:
    player_name: str
    village_count: int
    total_population: int
    alliance: Optional[str]


@dataclasses.dataclass
class WorldInfo:
    tribe_stats: List[TribeStats]
    top_players: List[PlayerStats]
    total_villages: int
    total_population: int


def world_info(server_id: int, top_players: int = TOP_PLAYER_COUNT) -> WorldInfo:
    """Overview of the latest snapshot: population per tribe and the largest players."""
    with datamodel.get_db_session() as session:
        table = snapshots.get_snapshot(session, server_id)
        if table is None:
            return WorldInfo(tribe_stats=[], top_players=[], total_villages=0, total_population=0)

        total_villages, total_population = session.execute(
            sqlalchemy.select(sqlalchemy.func.count(), sqlalchemy.func.sum(table.c.population))
        ).one()

        tribe_population = sqlalchemy.func.sum(table.c.population)
        tribe_rows = session.execute(
            sqlalchemy.select(table.c.tid, sqlalchemy.func.count(), tribe_population)
            .group_by(table.c.tid)
            .order_by(tribe_population.desc())
        ).all()

        player_population = sqlalchemy.func.sum(table.c.population)
        player_rows = session.execute(
            sqlalchemy.select(
                table.c.player,
                sqlalchemy.func.count(),
                player_population,
                sqlalchemy.func.max(table.c.alliance),
            )
            .where(datamodel.is_owned_by_player(table))
            .group_by(table.c.player)
            .order_by(player_population.desc(), table.c.player)
            .limit(top_players)
        ).all()

    return WorldInfo(
        tribe_stats=[
            TribeStats(
                tribe_id=tid,
                tribe_name=game_info.tribe_name(tid),
                village_count=count,
                total_population=int(population or 0),
            )
            for tid, count, population in tribe_rows
        ],
        top_players=[
            PlayerStats(
                player_name=player,
                village_count=count,
                total_population=int(population or 0),
                alliance=alliance or None,
            )
            for player, count, population, alliance in player_rows
        ],
        total_villages=total_villages,
        total_population=int(total_population or 0),
    )
