"""Tests for configuration parsing and formatting."""

from pathlib import Path

import hypothesis.strategies as st
import pytest
from hypothesis import given

from dirsnap import config as config_module
from dirsnap.config import (
    Configuration,
    ConfigurationError,
    CopyConfig,
    LockConfig,
    LoggingConfig,
    ValidationError,
    create_default_config,
    format_config,
    parse_config,
    parse_config_string,
)
from dirsnap.snapshot import CopyOptions


valid_log_levels = st.sampled_from(["DEBUG", "INFO", "ERROR"])

valid_path_str = st.text(
    alphabet=st.characters(
        whitelist_categories=("L", "N", "P", "S"),
        blacklist_characters="\x00\n\r",
    ),
    min_size=1,
    max_size=50,
).filter(lambda s: s.strip())


@st.composite
def copy_configs(draw):
    return CopyConfig(
        chunk_size=draw(st.integers(min_value=1, max_value=1 << 24)),
        file_mode=draw(st.integers(min_value=0, max_value=0o7777)),
        dir_mode=draw(st.integers(min_value=0, max_value=0o7777)),
        sort_entries=draw(st.booleans()),
        max_path_length=draw(st.integers(min_value=1, max_value=65536)),
    )


@st.composite
def configurations(draw):
    return Configuration(
        copy=draw(copy_configs()),
        lock=LockConfig(
            enabled=draw(st.booleans()),
            timeout_seconds=draw(st.integers(min_value=0, max_value=3600)),
        ),
        logging=LoggingConfig(
            level=draw(valid_log_levels),
            log_file=Path("/tmp") / draw(valid_path_str),
            error_log_file=Path("/tmp") / draw(valid_path_str),
            log_max_size_mb=draw(st.integers(min_value=1, max_value=1000)),
            log_backup_count=draw(st.integers(min_value=0, max_value=100)),
        ),
    )


class TestConfigRoundTrip:

    @given(config=configurations())
    def test_format_then_parse(self, config):
        """
        Formatting a configuration and parsing it back yields an equal one.
        """
        assert parse_config_string(format_config(config)) == config


class TestParseConfig:

    def test_empty_string_gives_defaults(self):
        config = parse_config_string("")
        assert config.copy.chunk_size == 65536
        assert config.copy.file_mode == 0o600
        assert config.copy.dir_mode == 0o700
        assert config.copy.sort_entries is True
        assert config.copy.max_path_length == 4096
        assert config.lock.enabled is True
        assert config.lock.timeout_seconds == 5
        assert config.logging.level == "INFO"

    def test_default_config_parses_to_defaults(self):
        config = parse_config_string(create_default_config())
        assert config.copy == CopyConfig()
        assert config.lock == LockConfig()
        assert config.logging.level == "INFO"
        assert config.logging.log_file == Path("~/.local/log/dirsnap.log")

    def test_modes_accept_plain_integers(self):
        config = parse_config_string("[copy]\nfile_mode = 384\ndir_mode = 448\n")
        assert config.copy.file_mode == 0o600
        assert config.copy.dir_mode == 0o700

    def test_level_is_uppercased(self):
        assert parse_config_string('[logging]\nlevel = "debug"\n').logging.level == "DEBUG"

    def test_invalid_level(self):
        with pytest.raises(ValidationError):
            parse_config_string('[logging]\nlevel = "TRACE"\n')

    def test_bool_rejected_for_int(self):
        with pytest.raises(ValidationError):
            parse_config_string("[copy]\nchunk_size = true\n")

    def test_non_positive_chunk_size(self):
        with pytest.raises(ValidationError):
            parse_config_string("[copy]\nchunk_size = 0\n")

    def test_mode_out_of_range(self):
        with pytest.raises(ValidationError):
            parse_config_string("[copy]\nfile_mode = 0o17777\n")

    def test_string_for_bool(self):
        with pytest.raises(ValidationError):
            parse_config_string('[lock]\nenabled = "yes"\n')

    def test_malformed_toml(self):
        with pytest.raises(ConfigurationError):
            parse_config_string("[copy\nchunk_size = 1")

    def test_to_options(self):
        options = CopyConfig(chunk_size=10, sort_entries=False).to_options()
        assert options == CopyOptions(chunk_size=10, sort_entries=False)


class TestConfigFile:

    def test_missing_default_file_gives_defaults(self, tmp_path, monkeypatch):
        monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", tmp_path / "config.toml")
        assert parse_config() == Configuration()

    def test_default_file_is_read(self, tmp_path, monkeypatch):
        path = tmp_path / "config.toml"
        path.write_text("[copy]\nchunk_size = 123\n")
        monkeypatch.setattr(config_module, "DEFAULT_CONFIG_PATH", path)
        assert parse_config().copy.chunk_size == 123

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            parse_config(tmp_path / "missing.toml")

    def test_explicit_file(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("[lock]\nenabled = false\n")
        assert parse_config(path).lock.enabled is False

    def test_log_max_bytes(self):
        assert LoggingConfig(log_max_size_mb=2).log_max_bytes == 2 * 1024 * 1024
