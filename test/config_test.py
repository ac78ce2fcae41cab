import pathlib

import pytest
import yaml

from travianmap import config


def test_apply_dict_converts_values():
    c = config.Config()
    c.apply_dict(
        dict(port="8080", fetch_timeout="2.5", log_to_file="true", base_output_path="/tmp/maps", unknown=1)
    )
    assert c.port == 8080
    assert c.fetch_timeout == 2.5
    assert c.log_to_file is True
    assert c.base_output_path == pathlib.Path("/tmp/maps")
    assert not hasattr(c, "unknown")


def test_invalid_bool_setting():
    with pytest.raises(ValueError):
        config.Config().apply_dict(dict(debug_mode="yes"))


def test_default_database_is_sqlite_file(tmp_path):
    c = config.Config(base_output_path=tmp_path, database_url="")
    assert c.effective_database_url == f"sqlite:///{tmp_path / 'db' / 'travianmap.db'}"
    assert (tmp_path / "db").is_dir()


def test_write_to_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    c = config.Config()
    c.apply_dict(dict(config.DEFAULT_SETTINGS, port=4000))
    c.write_to_file()
    written = yaml.safe_load((tmp_path / "config.yml").read_text())
    assert written["port"] == 4000
    assert written["database_url"] == ""
