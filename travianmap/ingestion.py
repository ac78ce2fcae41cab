"""
Loading of map dumps into the dated partitions.

A load always targets one server and one snapshot date (today, unless given). The partition for
that date is created if needed and cleared before the new rows go in, so loading the same day
twice keeps only the second load. Afterwards the retention window is applied.
"""
import dataclasses
import datetime
import enum
import itertools
import logging
import time
from typing import Any, Callable, Dict, Iterator, List, Optional

import requests

from travianmap import config, datamodel, game_info, partitions, servers, snapshots
from travianmap.parsing import dump_parser
from travianmap.parsing.errors import DumpFormatError

logger = logging.getLogger(__name__)

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1
INT_FIELDS = ("worldid", "x", "y", "tid", "vid", "uid", "aid", "population", "victory_points")
TEXT_FIELDS = ("village", "player", "alliance", "region")


class DumpFetchError(Exception):
    pass


@enum.unique
class IngestionStatus(enum.Enum):
    loaded = enum.auto()
    up_to_date = enum.auto()
    failed = enum.auto()

    def __str__(self):
        return self.name


@dataclasses.dataclass
class IngestionReport:
    server_id: int
    status: IngestionStatus
    snapshot_date: Optional[datetime.date] = None
    village_count: int = 0
    message: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status != IngestionStatus.failed

    def as_dict(self) -> Dict[str, Any]:
        return dict(
            server_id=self.server_id,
            status=str(self.status),
            snapshot_date=self.snapshot_date.isoformat() if self.snapshot_date else None,
            village_count=self.village_count,
            message=self.message,
        )


class DumpIngestor:
    def __init__(self, server_id: int, snapshot_date: datetime.date = None):
        self.server_id = server_id
        self.snapshot_date = snapshot_date or partitions.utc_today()
        self.accepted = 0
        self.rejected = 0

    @property
    def logger_str(self) -> str:
        return f"server {self.server_id} {self.snapshot_date:%Y-%m-%d}"

    def ingest(self, dump_text: str) -> int:
        """
        Replace the partition contents with the settlements found in the dump.

        :param dump_text: The complete dump
        :return: The number of stored settlements
        """
        self.accepted = 0
        self.rejected = 0
        t_start = time.process_time()
        with datamodel.get_db_session() as session:
            try:
                servers.get_server(session, self.server_id)
                table = partitions.ensure_partition(session, self.server_id, self.snapshot_date)
                partitions.clear_partition(session, self.server_id, self.snapshot_date)
                for batch in split_into_chunks(self._iter_rows(dump_text), config.CONFIG.insert_batch_size):
                    session.execute(table.insert(), batch)
                    self.accepted += len(batch)
                session.commit()
            except Exception:
                session.rollback()
                logger.exception(f"{self.logger_str} Rolling back changes to database...")
                raise
            logger.info(
                f"{self.logger_str} Loaded {self.accepted} villages, skipped {self.rejected} lines "
                f"in {time.process_time() - t_start:.3f} s"
            )
            dropped = partitions.prune(session, self.server_id)
            if self.snapshot_date in dropped:
                logger.warning(
                    f"{self.logger_str} Snapshot is older than the {partitions.RETENTION_WINDOW} most recent "
                    f"snapshots and was dropped right after loading"
                )
        return self.accepted

    def _iter_rows(self, dump_text: str) -> Iterator[Dict[str, Any]]:
        for line_number, line in dump_parser.iter_candidate_lines(dump_text):
            try:
                settlement = dump_parser.parse_record_line(line)
            except DumpFormatError as e:
                self.rejected += 1
                logger.warning(f"{self.logger_str} Skipping line {line_number}: {e}")
                continue
            if settlement is None:
                continue
            problem = _storage_problem(settlement)
            if problem is not None:
                self.rejected += 1
                logger.warning(f"{self.logger_str} Skipping line {line_number}: {problem}")
                continue
            row = dataclasses.asdict(settlement)
            row["server_id"] = self.server_id
            row["date"] = self.snapshot_date
            yield row


def _storage_problem(settlement: dump_parser.Settlement) -> Optional[str]:
    for field in INT_FIELDS:
        value = getattr(settlement, field)
        if value is not None and not INT32_MIN <= value <= INT32_MAX:
            return f"{field}={value} does not fit into a 32 bit integer"
    for field in TEXT_FIELDS:
        value = getattr(settlement, field)
        if value is None:
            continue
        if len(value) > datamodel.MAX_NAME_LENGTH:
            return f"{field} is longer than {datamodel.MAX_NAME_LENGTH} characters"
        # PostgreSQL does not accept NUL in text columns
        if "\0" in value:
            return f"{field} contains a NUL character"
    return None


def split_into_chunks(iterable: Iterator[Dict[str, Any]], chunksize: int) -> Iterator[List[Dict[str, Any]]]:
    iterable = iter(iterable)
    while True:
        chunk = list(itertools.islice(iterable, chunksize))
        if not chunk:
            break
        yield chunk


def ingest_dump(server_id: int, dump_text: str, snapshot_date: datetime.date = None) -> int:
    return DumpIngestor(server_id, snapshot_date).ingest(dump_text)


def dump_url(base_url: str) -> str:
    """Normalize the base URL of a game world to the URL of its map dump."""
    url = base_url.strip().rstrip("/")
    if "://" not in url:
        url = f"https://{url}"
    if url.endswith(f"/{game_info.DUMP_FILE_NAME}"):
        return url
    return f"{url}/{game_info.DUMP_FILE_NAME}"


def fetch_dump(url: str, timeout: float = None) -> str:
    if timeout is None:
        timeout = config.CONFIG.fetch_timeout
    logger.info(f"Fetching map dump from {url}")
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as e:
        raise DumpFetchError(f"Failed to fetch {url}: {e}") from e
    if not response.ok:
        raise DumpFetchError(f"Fetching {url} failed with HTTP status {response.status_code}")
    if "charset" not in response.headers.get("content-type", "").lower():
        response.encoding = "utf-8"
    return response.text


def auto_load(
    server_id: int,
    today: datetime.date = None,
    fetch: Callable[[str], str] = None,
) -> IngestionReport:
    """Load today's dump of the server, unless a snapshot for today is already stored."""
    if today is None:
        today = partitions.utc_today()
    with datamodel.get_db_session() as session:
        server = servers.get_server(session, server_id)
        server_name = server.name
        url = dump_url(server.url)
        latest = snapshots.latest_snapshot_date(session, server_id)
    if latest == today:
        logger.info(f"Data for server {server_name} is up to date ({today})")
        return IngestionReport(
            server_id=server_id,
            status=IngestionStatus.up_to_date,
            snapshot_date=latest,
            message=f"Data for {server_name} is already up to date ({today:%Y-%m-%d})",
        )
    return _fetch_and_ingest(server_id, url, today, fetch)


def load_from_url(
    server_id: int,
    url: str,
    snapshot_date: datetime.date = None,
    fetch: Callable[[str], str] = None,
) -> IngestionReport:
    if snapshot_date is None:
        snapshot_date = partitions.utc_today()
    return _fetch_and_ingest(server_id, url, snapshot_date, fetch)


def activate_server(server_id: int, fetch: Callable[[str], str] = None) -> IngestionReport:
    """
    Make the server the active one and load its dump if today's snapshot is missing.
    The activation stands even if the dump cannot be fetched.
    """
    with datamodel.get_db_session() as session:
        servers.set_active_server(session, server_id)
        session.commit()
    return auto_load(server_id, fetch=fetch)


def _fetch_and_ingest(server_id, url, snapshot_date, fetch) -> IngestionReport:
    if fetch is None:
        fetch = fetch_dump
    try:
        dump_text = fetch(url)
    except DumpFetchError as e:
        logger.warning(f"Could not load map dump for server {server_id}: {e}")
        return IngestionReport(
            server_id=server_id,
            status=IngestionStatus.failed,
            snapshot_date=snapshot_date,
            message=str(e),
        )
    count = ingest_dump(server_id, dump_text, snapshot_date)
    return IngestionReport(
        server_id=server_id,
        status=IngestionStatus.loaded,
        snapshot_date=snapshot_date,
        village_count=count,
        message=f"Successfully loaded {count} villages from {url}",
    )
