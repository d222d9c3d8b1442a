"""
inventory_config.get_active_config() -- YAML load, overrides, validation.
"""

import pytest

from inventory_config import DEFAULT_CONFIG_PATH, KernelConfig, get_active_config
from inventory_config.loader import compute_checksum, parse_config


class TestDefaults:
    def test_packaged_defaults(self):
        config = get_active_config()
        assert isinstance(config, KernelConfig)
        assert config.source == str(DEFAULT_CONFIG_PATH)
        assert config.ledger.lock_timeout_ms == 5000
        assert config.ledger.allow_negative_revert is False
        assert config.ledger.import_unknown_unit_policy == "base_ratio"
        assert config.logging.level == "INFO"

    def test_config_is_frozen(self):
        config = get_active_config()
        with pytest.raises(AttributeError):
            config.ledger.lock_timeout_ms = 1

    def test_load_is_logged_with_checksum(self, captured_logs):
        config = get_active_config()
        loaded = [r for r in captured_logs() if r["message"] == "config_loaded"]
        assert loaded and loaded[0]["checksum"] == config.checksum
        assert len(config.checksum) == 64


class TestOverrides:
    def test_override_section_values(self):
        config = get_active_config(
            overrides={"database": {"url": "sqlite://"}, "ledger": {"lock_timeout_ms": 250}}
        )
        assert config.database.url == "sqlite://"
        assert config.database.pool_size == 20
        assert config.ledger.lock_timeout_ms == 250

    def test_checksum_tracks_content(self):
        first = get_active_config()
        second = get_active_config(overrides={"logging": {"level": "DEBUG"}})
        assert first.checksum != second.checksum
        assert get_active_config().checksum == first.checksum


class TestFiles:
    def test_custom_file(self, tmp_path):
        path = tmp_path / "inventory.yaml"
        path.write_text(
            "database:\n  url: postgresql://inv@localhost/inv\n"
            "ledger:\n  allow_negative_revert: true\n"
        )
        config = get_active_config(path)
        assert config.database.url == "postgresql://inv@localhost/inv"
        assert config.ledger.allow_negative_revert is True
        assert config.ledger.lock_timeout_ms == 5000

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError):
            get_active_config(path)


class TestValidation:
    @pytest.mark.parametrize(
        "data,key",
        [
            ({"ledger": {"lock_timeout_ms": 0}}, "ledger.lock_timeout_ms"),
            ({"ledger": {"lock_timeout_ms": True}}, "ledger.lock_timeout_ms"),
            ({"ledger": {"allow_negative_revert": "yes"}}, "ledger.allow_negative_revert"),
            ({"ledger": {"import_unknown_unit_policy": "guess"}}, "ledger.import_unknown_unit_policy"),
            ({"logging": {"level": "LOUD"}}, "logging.level"),
            ({"database": {"url": ""}}, "database.url"),
            ({"database": {"pool_size": 0}}, "database.pool_size"),
        ],
    )
    def test_invalid_values_name_the_key(self, data, key):
        with pytest.raises(ValueError, match=key.replace(".", r"\.")):
            parse_config(data)

    def test_unknown_section(self):
        with pytest.raises(ValueError, match="unknown configuration sections"):
            parse_config({"ledgr": {}})

    def test_unknown_key(self):
        with pytest.raises(ValueError, match="unknown keys"):
            parse_config({"ledger": {"lock_timeout": 10}})

    def test_lower_case_level_accepted(self):
        assert parse_config({"logging": {"level": "debug"}}).logging.level == "debug"


class TestChecksum:
    def test_key_order_does_not_matter(self):
        assert compute_checksum({"a": 1, "b": {"c": 2}}) == compute_checksum({"b": {"c": 2}, "a": 1})
