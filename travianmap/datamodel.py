import contextlib
import datetime
import logging
import threading

import sqlalchemy
from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, Index
from sqlalchemy.orm import declarative_base, sessionmaker, scoped_session

from travianmap import config, game_info

logger = logging.getLogger(__name__)


Base = declarative_base()
_ENGINES = {}
_SESSIONMAKERS = {}
_DB_LOCKS = {}

# Partition tables are created at runtime, one per server and snapshot date. They live in their
# own metadata so that Base.metadata.create_all never touches them.
_PARTITION_METADATA = sqlalchemy.MetaData()
_PARTITION_METADATA_LOCK = threading.Lock()

MAX_NAME_LENGTH = 255


@contextlib.contextmanager
def get_db_session(database_url: str = None) -> sqlalchemy.orm.Session:
    if database_url is None:
        database_url = config.CONFIG.effective_database_url
    if database_url not in _SESSIONMAKERS:
        logger.info(f"Connecting to database {_hide_password(database_url)}")
        engine = sqlalchemy.create_engine(database_url, echo=False)
        Base.metadata.create_all(bind=engine)
        _ENGINES[database_url] = engine
        _SESSIONMAKERS[database_url] = scoped_session(sessionmaker(bind=engine))
        _DB_LOCKS[database_url] = threading.Lock()

    with _DB_LOCKS[database_url]:
        session_factory = _SESSIONMAKERS[database_url]
        s = session_factory()
        try:
            yield s
        finally:
            s.close()


def dispose_engines():
    """Close all pooled connections and forget the cached engines."""
    for database_url, engine in list(_ENGINES.items()):
        _SESSIONMAKERS[database_url].remove()
        engine.dispose()
    _ENGINES.clear()
    _SESSIONMAKERS.clear()
    _DB_LOCKS.clear()
    with _PARTITION_METADATA_LOCK:
        _PARTITION_METADATA.clear()


def _hide_password(database_url: str) -> str:
    return sqlalchemy.engine.make_url(database_url).render_as_string(hide_password=True)


class Server(Base):
    """A game world whose map dump is tracked."""

    __tablename__ = "servertable"
    server_id = Column(Integer, primary_key=True)
    name = Column(String(MAX_NAME_LENGTH), nullable=False, unique=True, index=True)
    url = Column(String(512), nullable=False)
    is_active = Column(Boolean, nullable=False, default=False, index=True)

    created_at = Column(DateTime, default=datetime.datetime.now)
    updated_at = Column(DateTime, default=datetime.datetime.now, onupdate=datetime.datetime.now)

    def as_dict(self):
        return dict(
            id=self.server_id,
            name=self.name,
            url=self.url,
            is_active=bool(self.is_active),
            created_at=self.created_at.isoformat() if self.created_at else None,
            updated_at=self.updated_at.isoformat() if self.updated_at else None,
        )

    def __str__(self):
        return f"Server {self.name} ({self.server_id})"


def village_table(table_name: str) -> sqlalchemy.Table:
    """
    Get the table definition of a village snapshot partition. Only the definition is created
    here; whether the table exists in the database is up to the partitions module.
    """
    with _PARTITION_METADATA_LOCK:
        if table_name in _PARTITION_METADATA.tables:
            return _PARTITION_METADATA.tables[table_name]
        return sqlalchemy.Table(
            table_name,
            _PARTITION_METADATA,
            Column("id", Integer, primary_key=True),
            Column("date", Date, nullable=False),
            Column("server_id", Integer, nullable=False),
            Column("worldid", Integer),
            Column("x", Integer, nullable=False),
            Column("y", Integer, nullable=False),
            Column("tid", Integer),
            Column("vid", Integer),
            Column("village", String(MAX_NAME_LENGTH), nullable=False),
            Column("uid", Integer),
            Column("player", String(MAX_NAME_LENGTH)),
            Column("aid", Integer),
            Column("alliance", String(MAX_NAME_LENGTH)),
            Column("population", Integer, nullable=False, default=0),
            Column("region", String(MAX_NAME_LENGTH)),
            Column("capital", Boolean),
            Column("is_city", Boolean),
            Column("has_harbor", Boolean),
            Column("victory_points", Integer),
            Index(f"idx_{table_name}_coordinates", "server_id", "x", "y"),
            Index(f"idx_{table_name}_population", "server_id", "population"),
            Index(f"idx_{table_name}_worldid", "server_id", "worldid"),
            Index(f"idx_{table_name}_player", "server_id", "player"),
        )


def forget_village_table(table_name: str):
    with _PARTITION_METADATA_LOCK:
        table = _PARTITION_METADATA.tables.get(table_name)
        if table is not None:
            _PARTITION_METADATA.remove(table)


def is_owned_by_player(table: sqlalchemy.Table):
    """SQL condition matching villages whose owner takes part in owner analytics."""
    return sqlalchemy.and_(
        table.c.player.isnot(None),
        table.c.player != "",
        table.c.player != game_info.NATARS,
    )


def is_in_named_alliance(table: sqlalchemy.Table):
    return sqlalchemy.and_(
        table.c.alliance.isnot(None),
        table.c.alliance != "",
        table.c.alliance != game_info.NATARS,
    )
