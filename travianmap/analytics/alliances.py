import dataclasses
import logging
from typing import Dict, List, Optional

import sqlalchemy

from travianmap import datamodel
from travianmap import snapshots

logger = logging.getLogger(__name__)

TOP_ALLIANCE_COUNT = 20


@dataclasses.dataclass
class AllianceStats:
    alliance_name: str
    alliance_id: Optional[int]
    member_count: int
    village_count: int
    total_population: int
    average_population_per_village: int
    population_growth: int = 0
    growth_percentage: float = 0.0


@dataclasses.dataclass
class AllianceInfo:
    top_alliances: List[AllianceStats]
    total_alliances: int


def alliance_info(server_id: int, limit: int = TOP_ALLIANCE_COUNT) -> AllianceInfo:
    """
    Rank the alliances of the latest snapshot by total population and compare each with the
    previous snapshot. Without a previous snapshot, growth is reported as zero.
    """
    with datamodel.get_db_session() as session:
        latest = snapshots.get_snapshot(session, server_id, 0)
        if latest is None:
            return AllianceInfo(top_alliances=[], total_alliances=0)
        previous = snapshots.get_snapshot(session, server_id, 1)

        total_alliances = session.execute(
            sqlalchemy.select(sqlalchemy.func.count(sqlalchemy.distinct(latest.c.alliance)))
            .where(datamodel.is_in_named_alliance(latest))
        ).scalar_one()

        total_population = sqlalchemy.func.sum(latest.c.population)
        query = (
            sqlalchemy.select(
                latest.c.alliance,
                sqlalchemy.func.max(latest.c.aid),
                sqlalchemy.func.count(sqlalchemy.distinct(latest.c.player)),
                sqlalchemy.func.count(),
                total_population,
            )
            .where(datamodel.is_in_named_alliance(latest))
            .group_by(latest.c.alliance)
            .order_by(total_population.desc(), latest.c.alliance)
            .limit(limit)
        )
        rows = session.execute(query).all()

        previous_totals = {}
        if previous is not None:
            previous_totals = _population_by_alliance(
                session, previous, [row[0] for row in rows]
            )

    top_alliances = []
    for name, alliance_id, member_count, village_count, population in rows:
        population = int(population or 0)
        previous_population = previous_totals.get(name, 0)
        growth = population - previous_population if previous is not None else 0
        top_alliances.append(
            AllianceStats(
                alliance_name=name,
                alliance_id=alliance_id,
                member_count=member_count,
                village_count=village_count,
                total_population=population,
                average_population_per_village=population // village_count if village_count else 0,
                population_growth=growth,
                growth_percentage=growth_percentage(growth, previous_population),
            )
        )
    return AllianceInfo(top_alliances=top_alliances, total_alliances=total_alliances)


def growth_percentage(growth: int, previous_population: int) -> float:
    if previous_population == 0:
        return 0.0
    return round(growth / previous_population * 100, 2)


def _population_by_alliance(session, table, alliance_names) -> Dict[str, int]:
    if not alliance_names:
        return {}
    query = (
        sqlalchemy.select(table.c.alliance, sqlalchemy.func.sum(table.c.population))
        .where(table.c.alliance.in_(alliance_names))
        .group_by(table.c.alliance)
    )
    return {name: int(total or 0) for name, total in session.execute(query)}
