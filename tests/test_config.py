import json
import logging
import os
import stat

import pytest

from caravo_agent.config import (
    DEFAULT_API_BASE,
    SessionConfig,
    Settings,
    load_config,
    load_settings,
    save_config,
)
from caravo_agent.engine.exceptions import ConfigurationError
from caravo_agent.log import LOG_FORMAT, setup_logging

ENV_VARS = ("CARAVO_URL", "CARAVO_API_KEY", "CARAVO_RPC_URL", "CARAVO_LOG_LEVEL")


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def config_file(tmp_path):
    return tmp_path / ".caravo" / "config.json"


class TestConfigFile:

    def test_missing_file_is_empty(self, config_file):
        assert load_config(config_file) == {}

    def test_invalid_json_is_empty(self, config_file):
        config_file.parent.mkdir(parents=True)
        config_file.write_text("{oops", encoding="utf-8")
        assert load_config(config_file) == {}

    def test_non_object_is_empty(self, config_file):
        config_file.parent.mkdir(parents=True)
        config_file.write_text("[1, 2]", encoding="utf-8")
        assert load_config(config_file) == {}

    def test_save_then_load(self, config_file):
        save_config({"api_key": "am_saved"}, config_file)
        assert load_config(config_file) == {"api_key": "am_saved"}
        assert json.loads(config_file.read_text(encoding="utf-8")) == {"api_key": "am_saved"}

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permission bits")
    def test_saved_file_is_owner_only(self, config_file):
        save_config({}, config_file)
        assert stat.S_IMODE(config_file.stat().st_mode) == 0o600


class TestLoadSettings:

    def test_defaults(self, clean_env, config_file):
        settings = load_settings(config_file)
        assert settings.api_base == DEFAULT_API_BASE
        assert settings.api_key is None
        assert settings.rpc_url == "https://mainnet.base.org"
        assert settings.log_level == "INFO"

    def test_env_key_wins_over_config_file(self, clean_env, config_file):
        save_config({"api_key": "am_file"}, config_file)
        clean_env.setenv("CARAVO_API_KEY", "am_env")
        assert load_settings(config_file).api_key == "am_env"

    def test_config_file_key(self, clean_env, config_file):
        save_config({"api_key": "am_file"}, config_file)
        assert load_settings(config_file).api_key == "am_file"

    def test_key_without_prefix_is_ignored(self, clean_env, config_file):
        clean_env.setenv("CARAVO_API_KEY", "sk_live_123")
        assert load_settings(config_file).api_key is None

    def test_env_overrides(self, clean_env, config_file):
        clean_env.setenv("CARAVO_URL", "http://localhost:3000/")
        clean_env.setenv("CARAVO_LOG_LEVEL", "debug")
        settings = load_settings(config_file)
        assert settings.api_base == "http://localhost:3000"
        assert settings.log_level == "DEBUG"

    @pytest.mark.parametrize("name, value", [
        ("CARAVO_URL", "caravo.ai"),
        ("CARAVO_RPC_URL", "ftp://node"),
        ("CARAVO_LOG_LEVEL", "LOUD"),
    ])
    def test_invalid_values(self, clean_env, config_file, name, value):
        clean_env.setenv(name, value)
        with pytest.raises(ConfigurationError):
            load_settings(config_file)


class TestSessionConfig:

    def test_keyless_headers(self):
        session = SessionConfig("https://caravo.ai/")
        assert not session.authenticated
        assert session.base_headers() == {"Content-Type": "application/json"}
        assert session.url("/api/tags") == "https://caravo.ai/api/tags"

    def test_bearer_header(self):
        session = SessionConfig.from_settings(Settings(api_key="am_abc"))
        assert session.authenticated
        assert session.base_headers()["Authorization"] == "Bearer am_abc"


def test_setup_logging_is_idempotent():
    logger = logging.getLogger("caravo_agent")
    try:
        setup_logging("DEBUG")
        setup_logging("WARNING")
        assert len(logger.handlers) == 1
        assert logger.handlers[0].formatter._fmt == LOG_FORMAT
        assert logger.level == logging.WARNING
    finally:
        logger.handlers.clear()
        logger.propagate = True
        logger.setLevel(logging.NOTSET)
