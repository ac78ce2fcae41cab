from dump_test_data import day, insert_line, make_dump
from travianmap import ingestion
from travianmap.analytics import world


def test_world_info(server_id):
    dump = make_dump(
        insert_line(1, 1, player="Alice", tid=1, population=100),
        insert_line(2, 2, player="Alice", tid=1, population=150),
        insert_line(3, 3, player="Bob", tid=3, alliance=None, population=400),
        insert_line(4, 4, player="Natars", tid=5, alliance=None, population=900),
        insert_line(5, 5, player=None, tid=4, alliance=None, population=0),
    )
    ingestion.ingest_dump(server_id, dump, day(0))
    info = world.world_info(server_id)

    assert info.total_villages == 5
    assert info.total_population == 1550
    assert [(t.tribe_name, t.village_count, t.total_population) for t in info.tribe_stats] == [
        ("Natars", 1, 900),
        ("Gauls", 1, 400),
        ("Romans", 2, 250),
        ("Nature", 1, 0),
    ]
    assert [(p.player_name, p.village_count, p.total_population, p.alliance) for p in info.top_players] == [
        ("Bob", 1, 400, None),
        ("Alice", 2, 250, "Wolves"),
    ]


def test_top_players_limit(server_id):
    dump = make_dump(*[insert_line(i, 0, player=f"Player {i:02d}", population=i + 1) for i in range(15)])
    ingestion.ingest_dump(server_id, dump, day(0))
    top = world.world_info(server_id).top_players
    assert len(top) == world.TOP_PLAYER_COUNT
    assert top[0].player_name == "Player 14"


def test_only_latest_snapshot_is_used(server_id):
    ingestion.ingest_dump(server_id, make_dump(insert_line(1, 1, population=10)), day(0))
    ingestion.ingest_dump(server_id, make_dump(insert_line(1, 1, population=20)), day(1))
    assert world.world_info(server_id).total_population == 20


def test_no_snapshots(server_id):
    info = world.world_info(server_id)
    assert info.total_villages == 0
    assert info.tribe_stats == []
    assert info.top_players == []
