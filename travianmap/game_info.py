import logging

logger = logging.getLogger(__name__)

# The neutral non-player faction. It owns villages and appears as an alliance,
# but it never grows the way players do.
NATARS = "Natars"

# Name of the map dump that every game world publishes under its base URL
DUMP_FILE_NAME = "map.sql"
DUMP_TABLE_NAME = "x_world"

TRIBE_NAMES = {
    1: "Romans",
    2: "Teutons",
    3: "Gauls",
    4: "Nature",
    5: "Natars",
    6: "Egyptians",
    7: "Huns",
}


def tribe_name(tribe_id) -> str:
    if tribe_id is None:
        return "Unknown"
    return TRIBE_NAMES.get(tribe_id, f"Tribe {tribe_id}")
