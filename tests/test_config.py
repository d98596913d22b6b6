from datetime import timedelta

import pytest

from skm.config import GlobalConfig, PriorityWeights
from skm.models import AutomationLevel, ConfigError

FULL_TOML = """
attention_threshold = 60
agent_priority = ["bash"]
default_editor = "vim"
qdrant_url = "http://localhost:6333"
automation_level = "L2"
dry_run_default = false
scan_depth = 3
watch_interval_secs = 10

[weights]
needs_human = 40
risk = 25.0
staleness = 15.0
impact = 15.0
confidence = 10.0
"""


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    return tmp_path


def write_config(home, text):
    path = home / ".config" / "skm" / "config.toml"
    path.parent.mkdir(parents=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults():
    config = GlobalConfig()
    assert config.weights == PriorityWeights(40.0, 25.0, 15.0, 15.0, 10.0)
    assert config.attention_threshold == 50.0
    assert config.agent_priority == ["claude", "cursor", "nvim", "bash"]
    assert config.default_editor == "nvim"
    assert config.qdrant_url == "http://localhost:6333"
    assert config.automation_level is AutomationLevel.L1
    assert config.dry_run_default is True
    assert config.scan_depth == 5
    assert config.max_projects is None


def test_config_path_under_home(home):
    assert GlobalConfig.config_path() == home / ".config" / "skm" / "config.toml"


def test_missing_home_raises(monkeypatch):
    monkeypatch.delenv("HOME", raising=False)
    with pytest.raises(ConfigError):
        GlobalConfig.config_path()


def test_load_without_file_gives_defaults(home):
    assert GlobalConfig.load() == GlobalConfig()


def test_save_then_load_round_trip(home):
    config = GlobalConfig(scan_depth=2, max_projects=7, automation_level=AutomationLevel.L3)
    config.weights.risk = 30.5
    config.save()
    assert GlobalConfig.config_path().exists()
    assert GlobalConfig.load() == config


def test_save_omits_unset_max_projects(home):
    GlobalConfig().save()
    text = GlobalConfig.config_path().read_text(encoding="utf-8")
    assert "max_projects" not in text
    assert GlobalConfig.load().max_projects is None


def test_load_full_file(home):
    write_config(home, FULL_TOML)
    config = GlobalConfig.load()
    assert config.weights.needs_human == 40.0
    assert config.attention_threshold == 60.0
    assert config.agent_priority == ["bash"]
    assert config.automation_level is AutomationLevel.L2
    assert config.dry_run_default is False
    assert config.scan_depth == 3


def test_missing_field_raises(home):
    write_config(home, FULL_TOML.replace("scan_depth = 3\n", ""))
    with pytest.raises(ConfigError, match="scan_depth"):
        GlobalConfig.load()


def test_out_of_range_depth_raises(home):
    write_config(home, FULL_TOML.replace("scan_depth = 3", "scan_depth = 300"))
    with pytest.raises(ConfigError):
        GlobalConfig.load()


def test_unknown_automation_level_raises(home):
    write_config(home, FULL_TOML.replace('"L2"', '"L9"'))
    with pytest.raises(ConfigError):
        GlobalConfig.load()


def test_invalid_toml_raises(home):
    write_config(home, "weights = [")
    with pytest.raises(ConfigError):
        GlobalConfig.load()


def test_watch_interval():
    assert GlobalConfig().watch_interval() == timedelta(seconds=5)
    assert GlobalConfig(watch_interval_secs=30).watch_interval() == timedelta(seconds=30)