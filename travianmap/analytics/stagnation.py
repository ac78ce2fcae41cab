"""
Detection of inactive ("AFK") players.

A village is reported if it kept or lost population between the latest snapshot and an older one,
and its owner's total population did not grow either. The second condition keeps players who moved
their growth to other villages out of the result.
"""
import dataclasses
import enum
import logging
from typing import Dict, List, Optional

import sqlalchemy

from travianmap import datamodel, partitions
from travianmap.analytics import InvalidQueryError

logger = logging.getLogger(__name__)

MIN_DAYS_BACK = 1
MAX_DAYS_BACK = partitions.RETENTION_WINDOW


@enum.unique
class Quadrant(enum.Enum):
    NE = "NE"
    SE = "SE"
    SW = "SW"
    NW = "NW"

    @classmethod
    def from_str(cls, value: str) -> "Quadrant":
        try:
            return cls(value.strip().upper())
        except (ValueError, AttributeError):
            raise InvalidQueryError(
                f"Invalid quadrant {value!r}, expected one of {', '.join(q.value for q in cls)}"
            ) from None

    @property
    def east(self) -> bool:
        return self in {Quadrant.NE, Quadrant.SE}

    @property
    def north(self) -> bool:
        return self in {Quadrant.NE, Quadrant.NW}

    def conditions(self, x_column, y_column):
        return (
            x_column >= 0 if self.east else x_column < 0,
            y_column >= 0 if self.north else y_column < 0,
        )

    def __str__(self):
        return self.value


@dataclasses.dataclass
class AfkVillage:
    village_name: str
    x: int
    y: int
    population: int
    previous_population: int
    player_name: str
    alliance: Optional[str]
    days_without_growth: int


def validate_days_back(days_back) -> int:
    if isinstance(days_back, bool) or not isinstance(days_back, int):
        raise InvalidQueryError(f"days_back must be an integer, got {days_back!r}")
    if not MIN_DAYS_BACK <= days_back <= MAX_DAYS_BACK:
        raise InvalidQueryError(
            f"days_back must be between {MIN_DAYS_BACK} and {MAX_DAYS_BACK}, got {days_back}"
        )
    return days_back


def find_stagnant(server_id: int, quadrant, days_back: int) -> List[AfkVillage]:
    """
    Find the villages in a quadrant whose owners have not grown over `days_back` snapshots.

    `days_back` counts stored snapshots, not calendar days: the reference is the partition at
    position `days_back` of the partition list ordered by date, most recent first.

    :param server_id: The server to analyze
    :param quadrant: A Quadrant or one of the strings NE, SE, SW, NW
    :param days_back: Number of snapshots between the latest and the reference snapshot (1-10)
    :return: Stagnant villages, most populous first. Empty if not enough snapshots are stored.
    """
    if not isinstance(quadrant, Quadrant):
        quadrant = Quadrant.from_str(quadrant)
    days_back = validate_days_back(days_back)

    with datamodel.get_db_session() as session:
        dates = partitions.partition_dates(session, server_id)
        if len(dates) < days_back + 1:
            logger.info(
                f"Server {server_id} has {len(dates)} snapshots, {days_back + 1} are needed to look back {days_back}"
            )
            return []
        latest = partitions.get_partition(session, server_id, dates[0])
        reference = partitions.get_partition(session, server_id, dates[days_back])
        if latest is None or reference is None:
            return []

        candidates = _find_local_candidates(session, server_id, latest, reference, quadrant)
        if not candidates:
            return []
        current_totals = _population_by_player(session, latest)
        previous_totals = _population_by_player(session, reference)

    result = []
    for row in candidates:
        if current_totals.get(row.player, 0) > previous_totals.get(row.player, 0):
            continue
        result.append(
            AfkVillage(
                village_name=row.village,
                x=row.x,
                y=row.y,
                population=row.population,
                previous_population=row.previous_population,
                player_name=row.player,
                alliance=row.alliance,
                days_without_growth=days_back,
            )
        )
    result.sort(key=lambda v: v.population, reverse=True)
    return result


def _find_local_candidates(session, server_id, latest, reference, quadrant: Quadrant):
    """Villages that did not grow at the same coordinates, under the same owner."""
    latest = latest.alias("latest")
    reference = reference.alias("reference")
    query = (
        sqlalchemy.select(
            latest.c.village,
            latest.c.x,
            latest.c.y,
            latest.c.population,
            reference.c.population.label("previous_population"),
            latest.c.player,
            latest.c.alliance,
        )
        .select_from(
            latest.join(
                reference,
                sqlalchemy.and_(
                    latest.c.x == reference.c.x,
                    latest.c.y == reference.c.y,
                    latest.c.player == reference.c.player,
                ),
            )
        )
        .where(
            latest.c.server_id == server_id,
            datamodel.is_owned_by_player(latest),
            latest.c.population <= reference.c.population,
            *quadrant.conditions(latest.c.x, latest.c.y),
        )
        .order_by(latest.c.population.desc())
    )
    return session.execute(query).all()


def _population_by_player(session, table) -> Dict[str, int]:
    query = (
        sqlalchemy.select(table.c.player, sqlalchemy.func.sum(table.c.population))
        .where(datamodel.is_owned_by_player(table))
        .group_by(table.c.player)
    )
    return {player: int(total or 0) for player, total in session.execute(query)}
