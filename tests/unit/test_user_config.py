"""
Unit tests for user_config.py - Configuration management
"""
import os
import json
from pathlib import Path

import pytest

from nearclip import config
from nearclip.common.user_config import ConfigManager, ServerConfig

VALID_KEY = "ab" * 32


class TestServerConfigValidation:
    """Tests for ServerConfig validation"""

    def test_default_config_is_valid(self):
        assert ServerConfig().validate() == []

    def test_port_out_of_range(self):
        errors = ServerConfig(port=70000).validate()
        assert any("port" in e for e in errors)

    def test_port_wrong_type(self):
        errors = ServerConfig(port="9876").validate()
        assert any("port" in e for e in errors)

    def test_bad_hex_key(self):
        errors = ServerConfig(secret_key_hex="xyz").validate()
        assert any("secret_key_hex" in e for e in errors)

    def test_short_key(self):
        errors = ServerConfig(secret_key_hex="ab" * 16).validate()
        assert any("32 bytes" in e for e in errors)

    def test_flag_wrong_type(self):
        cfg = ServerConfig()
        cfg.allow_discovery = "yes"
        assert any("allow_discovery" in e for e in cfg.validate())

    def test_valid_custom_config(self):
        cfg = ServerConfig(device_name="desk", secret_key_hex=VALID_KEY, port=9900,
                           save_dir="/tmp/x", allow_discovery=True)
        assert cfg.validate() == []


class TestServerConfigSerialization:
    """Tests for ServerConfig serialization"""

    def test_to_dict(self):
        data = ServerConfig(port=9900).to_dict()
        assert data["port"] == 9900
        assert data["allow_discovery"] is False

    def test_from_dict_defaults_and_unknown_keys(self):
        cfg = ServerConfig.from_dict({"port": 9900, "unknown_key": 1})
        assert cfg.port == 9900
        assert cfg.show_notifications is True
        assert not hasattr(cfg, "unknown_key")


class TestServerConfigProperties:
    def test_effective_device_name_defaults_to_hostname(self):
        assert ServerConfig().effective_device_name

    def test_effective_device_name(self):
        assert ServerConfig(device_name="desk").effective_device_name == "desk"

    def test_effective_save_dir(self):
        assert ServerConfig(save_dir="/tmp/x").effective_save_dir == Path("/tmp/x")
        assert ServerConfig().effective_save_dir == config.get_default_save_dir()


class TestConfigManager:
    """Tests for ConfigManager"""

    def test_first_load_generates_secret(self, temp_dir):
        path = temp_dir / "config.json"
        cfg = ConfigManager(path).load()
        assert len(bytes.fromhex(cfg.secret_key_hex)) == 32
        assert json.loads(path.read_text())["secret_key_hex"] == cfg.secret_key_hex

    @pytest.mark.skipif(os.name == 'nt', reason="POSIX permissions")
    def test_saved_file_is_private(self, temp_dir):
        path = temp_dir / "config.json"
        ConfigManager(path).load()
        assert path.stat().st_mode & 0o777 == 0o600

    def test_secret_is_stable(self, temp_dir):
        path = temp_dir / "config.json"
        first = ConfigManager(path).load().secret_key_hex
        assert ConfigManager(path).load().secret_key_hex == first

    def test_load_existing(self, temp_dir):
        path = temp_dir / "config.json"
        path.write_text(json.dumps({"port": 9900, "secret_key_hex": VALID_KEY}))
        cfg = ConfigManager(path).load()
        assert cfg.port == 9900
        assert cfg.secret_key_hex == VALID_KEY

    def test_corrupt_file_falls_back(self, temp_dir):
        path = temp_dir / "config.json"
        path.write_text("{not json")
        cfg = ConfigManager(path).load()
        assert cfg.port == config.PORT

    def test_invalid_values_fall_back(self, temp_dir):
        path = temp_dir / "config.json"
        path.write_text(json.dumps({"port": -1}))
        assert ConfigManager(path).load().port == config.PORT

    def test_set_and_persist(self, temp_dir):
        path = temp_dir / "config.json"
        manager = ConfigManager(path)
        assert manager.set("port", 9900) is True
        assert ConfigManager(path).load().port == 9900

    def test_set_invalid_value_reverts(self, temp_dir):
        manager = ConfigManager(temp_dir / "config.json")
        assert manager.set("port", 123456) is False
        assert manager.get().port == config.PORT

    def test_set_unknown_key(self, temp_dir):
        assert ConfigManager(temp_dir / "config.json").set("nope", 1) is False

    def test_reset_keeps_secret(self, temp_dir):
        manager = ConfigManager(temp_dir / "config.json")
        manager.set("port", 9900)
        secret = manager.get().secret_key_hex
        cfg = manager.reset()
        assert cfg.port == config.PORT
        assert cfg.secret_key_hex == secret
