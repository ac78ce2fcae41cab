import pytest

from dump_test_data import day, insert_line, make_dump
from travianmap import ingestion
from travianmap.analytics import alliances

PREVIOUS_DAY = [
    insert_line(1, 1, player="Alice", population=100),
    insert_line(3, 3, player="Bob", population=200),
]
CURRENT_DAY = [
    insert_line(1, 1, player="Alice", population=100),
    insert_line(2, 2, player="Alice", population=100),
    insert_line(3, 3, player="Bob", population=201),
    insert_line(9, 9, player="Carol", alliance="Owls", population=50),
    insert_line(20, 20, player="Natars", alliance="Natars", population=900),
    insert_line(4, 4, player="Dave", alliance=None, population=800),
    insert_line(5, 5, player="Eve", alliance="", population=700),
]


def load(server_id, offset, lines):
    ingestion.ingest_dump(server_id, make_dump(*lines), day(offset))


def test_alliance_stats(server_id):
    load(server_id, 0, PREVIOUS_DAY)
    load(server_id, 1, CURRENT_DAY)
    info = alliances.alliance_info(server_id)

    assert info.total_alliances == 2
    assert [a.alliance_name for a in info.top_alliances] == ["Wolves", "Owls"]
    wolves, owls = info.top_alliances
    assert wolves.alliance_id == sum(map(ord, "Wolves"))
    assert wolves.member_count == 2
    assert wolves.village_count == 3
    assert wolves.total_population == 401
    assert wolves.average_population_per_village == 133
    assert wolves.population_growth == 101
    assert wolves.growth_percentage == 33.67


def test_new_alliance_has_zero_percent_growth(server_id):
    load(server_id, 0, PREVIOUS_DAY)
    load(server_id, 1, CURRENT_DAY)
    owls = alliances.alliance_info(server_id).top_alliances[1]
    assert owls.population_growth == 50
    assert owls.growth_percentage == 0


def test_single_snapshot_reports_no_growth(server_id):
    load(server_id, 0, CURRENT_DAY)
    info = alliances.alliance_info(server_id)
    assert [(a.population_growth, a.growth_percentage) for a in info.top_alliances] == [(0, 0), (0, 0)]


def test_only_latest_two_snapshots_are_compared(server_id):
    load(server_id, 0, [insert_line(1, 1, population=10)])
    load(server_id, 1, [insert_line(1, 1, population=100)])
    load(server_id, 2, [insert_line(1, 1, population=110)])
    wolves = alliances.alliance_info(server_id).top_alliances[0]
    assert wolves.population_growth == 10
    assert wolves.growth_percentage == 10.0


def test_top_alliances_are_limited(server_id):
    lines = [
        insert_line(i, i, player=f"Player {i}", alliance=f"Alliance {i:02d}", population=10 * (i + 1))
        for i in range(25)
    ]
    load(server_id, 0, lines)
    info = alliances.alliance_info(server_id)
    assert info.total_alliances == 25
    assert len(info.top_alliances) == alliances.TOP_ALLIANCE_COUNT
    assert info.top_alliances[0].alliance_name == "Alliance 24"
    assert info.top_alliances[-1].alliance_name == "Alliance 05"


def test_no_snapshots(server_id):
    info = alliances.alliance_info(server_id)
    assert info.top_alliances == []
    assert info.total_alliances == 0


@pytest.mark.parametrize(
    "growth,previous,expected",
    [(50, 0, 0.0), (0, 0, 0.0), (1, 3, 33.33), (-50, 200, -25.0), (200, 100, 200.0)],
)
def test_growth_percentage(growth, previous, expected):
    assert alliances.growth_percentage(growth, previous) == expected
