"""
Tests for upgrades configuration loading.
"""

import pytest

from uprox.chain import Chain
from uprox.config import UpgradesConfig, config_from_dict, config_to_dict, configure_logging, load_config
from uprox.errors import ConfigError
from uprox.model import ProxyKind


class TestDefaults:
    """Default settings."""

    def test_defaults(self):
        config = UpgradesConfig()
        assert config.default_kind is ProxyKind.TRANSPARENT
        assert config.unsafe_allow == []
        assert config.unsafe_skip_storage_check is False
        assert config.manifest_path is None
        assert config.chain_id == 31337

    def test_to_dict(self):
        d = config_to_dict(UpgradesConfig(default_kind=ProxyKind.UUPS))
        assert d["default_kind"] == "uups"
        assert config_from_dict(d) == UpgradesConfig(default_kind=ProxyKind.UUPS)


class TestFromDict:
    """Building a config from a plain mapping."""

    def test_kind_from_string(self):
        assert config_from_dict({"default_kind": "uups"}).default_kind is ProxyKind.UUPS

    def test_unknown_key(self):
        with pytest.raises(ConfigError, match="kindd"):
            config_from_dict({"kindd": "uups"})

    def test_invalid_kind(self):
        with pytest.raises(ConfigError):
            config_from_dict({"default_kind": "beacon"})

    def test_null_unsafe_allow(self):
        assert config_from_dict({"unsafe_allow": None}).unsafe_allow == []


class TestLoadConfig:
    """Loading YAML config files."""

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "uprox.yaml"
        path.write_text(
            "default_kind: uups\n"
            "unsafe_allow: [constructor]\n"
            "manifest_path: .uprox/manifest.yaml\n"
            "chain_id: 1337\n"
        )
        config = load_config(str(path))
        assert config.default_kind is ProxyKind.UUPS
        assert config.unsafe_allow == ["constructor"]
        assert config.manifest_path == ".uprox/manifest.yaml"
        assert config.chain_id == 1337

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(str(path)) == UpgradesConfig()

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- uups\n")
        with pytest.raises(ConfigError):
            load_config(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "missing.yaml"))


class TestLogging:
    """Logging setup driven by the config."""

    def test_configure_logging_uses_log_level(self, monkeypatch):
        levels = []
        monkeypatch.setattr("uprox.config.setup_logging", levels.append)
        configure_logging(UpgradesConfig(log_level="DEBUG"))
        assert levels == ["DEBUG"]

    def test_log_level_is_normalized(self):
        assert config_from_dict({"log_level": "info"}).log_level == "INFO"

    def test_invalid_log_level(self):
        with pytest.raises(ConfigError):
            config_from_dict({"log_level": "chatty"})


def test_chain_from_config():
    chain = Chain.from_config(UpgradesConfig(chain_id=5, num_accounts=3))
    assert chain.chain_id == 5
    assert len(chain.accounts) == 3
