import dataclasses
import logging
import pathlib
import sys
import traceback

import yaml

LOG_LEVELS = {"CRITICAL": logging.CRITICAL, "ERROR": logging.ERROR, "WARNING": logging.WARNING, "INFO": logging.INFO, "DEBUG": logging.DEBUG}

LOG_FORMAT = logging.Formatter(
    "%(threadName)s - %(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

CONFIG: "Config" = None
logger: logging.Logger = None


def initialize_logger():
    # Add a stream handler for stdout output
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    stdout_ch = logging.StreamHandler(sys.stdout)
    stdout_ch.setLevel(logging.INFO)
    stdout_ch.setFormatter(LOG_FORMAT)
    root_logger.addHandler(stdout_ch)


def _get_default_base_output_path():
    return pathlib.Path.cwd() / "output"


DEFAULT_SETTINGS = dict(
    base_output_path=_get_default_base_output_path(),
    database_url="",
    host="127.0.0.1",
    port=3001,
    log_level="INFO",
    log_to_file=False,
    fetch_timeout=60.0,
    insert_batch_size=1000,
    debug_mode=False,
)


@dataclasses.dataclass
class Config:
    """Stores the settings for the map server."""

    base_output_path: pathlib.Path = None
    database_url: str = None

    port: int = None
    host: str = None
    log_level: str = None

    fetch_timeout: float = None
    insert_batch_size: int = None

    log_to_file: bool = False
    debug_mode: bool = False

    PATH_KEYS = {
        "base_output_path",
    }
    BOOL_KEYS = {
        "log_to_file",
        "debug_mode",
    }
    INT_KEYS = {
        "port",
        "insert_batch_size",
    }
    FLOAT_KEYS = {
        "fetch_timeout",
    }
    STR_KEYS = {
        "host",
        "database_url",
        "log_level",
    }
    ALL_KEYS = PATH_KEYS | BOOL_KEYS | INT_KEYS | FLOAT_KEYS | STR_KEYS

    def apply_dict(self, settings_dict):
        logger.info("Updating settings")
        for key, val in settings_dict.items():
            if key not in Config.ALL_KEYS:
                logger.info(f"Ignoring unknown setting {key} with value {val}.")
                continue
            old_val = self.__dict__.get(key)
            if key in Config.BOOL_KEYS:
                val = self._preprocess_bool(val)
            if key in Config.INT_KEYS:
                val = int(val)
            if key in Config.FLOAT_KEYS:
                val = float(val)
            if key in Config.STR_KEYS and val is None:
                val = ""
            if key in Config.PATH_KEYS:
                val = self._process_path_keys(key, val)
                if val is None:
                    continue

            self.__setattr__(key, val)
            if val != old_val:
                logger.info(
                    f"Updated setting {key.ljust(28)} {str(old_val).rjust(8)} -> {str(val).ljust(8)}"
                )

    def _process_path_keys(self, key, val):
        if val == "" or val is None:
            val = DEFAULT_SETTINGS[key]
        else:
            val = pathlib.Path(val)
        try:
            if val.exists() and not val.is_dir():
                logger.warning(
                    f"Ignoring setting {key} with value {val}: Path exists and is not a directory"
                )
                return
        except Exception:
            logger.warning(f"Error while checking path {key} with value {val}:")
            logger.error(traceback.format_exc())
            logger.info(f"Ignoring setting {key} with value {val}.")
            return
        return val

    def write_to_file(self):
        fname = _get_settings_file_path()
        if fname.exists() and not fname.is_file():
            raise ValueError(f"Settings file {fname} exists and is not a file!")
        logger.info(f"Writing settings to {fname}")
        with open(fname, "w") as f:
            settings_dict = self.get_dict()
            yaml.dump(settings_dict, f, default_flow_style=False, sort_keys=False)

    def get_dict(self):
        result = dict(**DEFAULT_SETTINGS)
        for key, val in self.__dict__.items():
            if key in Config.ALL_KEYS:
                if key in Config.PATH_KEYS:
                    val = str(val)
                result[key] = val
        return result

    def __str__(self):
        lines = [
            "Configuration:",
            f"  base_output_path: {repr(self.base_output_path)}",
            f"  database_url: {repr(self.effective_database_url)}",
            f"  host: {repr(self.host)}",
            f"  port: {repr(self.port)}",
        ]
        return "\n".join(lines)

    def _preprocess_bool(self, val):
        if isinstance(val, bool):
            return val
        elif val == "true":
            return True
        elif val == "false":
            return False
        raise ValueError(
            f"Expected either true or false for bool value, received {val}."
        )

    @property
    def db_path(self) -> pathlib.Path:
        path = self.base_output_path / "db/"
        if not path.exists():
            path.mkdir(parents=True)
        return path

    @property
    def effective_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.db_path / 'travianmap.db'}"


def _apply_existing_settings(config: Config):
    settings = dict(DEFAULT_SETTINGS)
    settings_file = _get_settings_file_path()
    if settings_file.exists() and settings_file.is_file():
        logger.info(f"Reading settings from {settings_file}...")
        with open(settings_file, "r") as f:
            file_settings = yaml.load(f, Loader=yaml.SafeLoader) or {}
            settings.update(file_settings)
    config.apply_dict(settings)


def _get_settings_file_path() -> pathlib.Path:
    return pathlib.Path.cwd() / "config.yml"


def initialize():
    global CONFIG
    if CONFIG is not None:
        return
    global logger
    initialize_logger()
    logger = logging.getLogger()
    CONFIG = Config()
    _apply_existing_settings(CONFIG)
    configure_logger()


def configure_logger():
    global logger
    logger.setLevel(LOG_LEVELS.get(CONFIG.log_level, logging.INFO))
    for h in logger.handlers:
        h.setLevel(LOG_LEVELS.get(CONFIG.log_level, logging.INFO))
    if CONFIG.log_to_file:
        if not CONFIG.base_output_path.exists():
            CONFIG.base_output_path.mkdir(parents=True)
        file_ch = logging.FileHandler(CONFIG.base_output_path / "log.txt")
        file_ch.setLevel(LOG_LEVELS.get(CONFIG.log_level, logging.WARN))
        file_ch.setFormatter(LOG_FORMAT)
        logger.addHandler(file_ch)


initialize()
