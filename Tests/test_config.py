# test_config.py
#
# Imports
#
# 3rd-party Libraries
import pytest
#
# Local Imports
from tavern_exporter import config
#
#######################################################################################################################
#
# Fixtures

@pytest.fixture
def config_file(tmp_path, monkeypatch):
    path = tmp_path / "conf" / "config.toml"
    monkeypatch.setenv(config.CONFIG_PATH_ENV_VAR, str(path))
    monkeypatch.delenv(config.COOKIE_ENV_VAR, raising=False)
    monkeypatch.setattr(config, "_CONFIG_CACHE", None)
    return path


# --- Tests ---

def test_deep_merge_keeps_untouched_keys():
    base = {"api": {"base_url": "a", "timeout": 30.0}, "general": {"log_level": "INFO"}}
    merged = config.deep_merge_dicts(base, {"api": {"timeout": 5.0}})
    assert merged == {"api": {"base_url": "a", "timeout": 5.0}, "general": {"log_level": "INFO"}}
    assert base["api"]["timeout"] == 30.0


def test_missing_file_is_created_with_defaults(config_file):
    settings = config.load_settings(force_reload=True)
    assert config_file.exists()
    assert settings["api"]["base_url"] == "https://api.moescape.ai"
    assert settings["api"]["max_retries"] == 6


def test_user_file_overrides_defaults(config_file):
    config_file.parent.mkdir(parents=True)
    config_file.write_text('[api]\nbase_url = "https://api.yodayo.com"\n', encoding="utf-8")
    assert config.get_cli_setting("api", "base_url") == "https://api.yodayo.com"
    assert config.get_cli_setting("export", "default_format") == "txt"
    assert config.get_cli_setting("nope", "missing", "fallback") == "fallback"


def test_broken_file_falls_back_to_defaults(config_file):
    config_file.parent.mkdir(parents=True)
    config_file.write_text("[api\nbase_url = ", encoding="utf-8")
    assert config.load_settings(force_reload=True)["api"]["base_url"] == "https://api.moescape.ai"


def test_cookie_environment_variable_wins(config_file, monkeypatch):
    monkeypatch.setenv(config.COOKIE_ENV_VAR, "session=from-env")
    assert config.load_settings(force_reload=True)["api"]["session_cookie"] == "session=from-env"


def test_settings_are_cached_until_forced(config_file):
    first = config.load_settings()
    assert config.load_settings() is first
    assert config.load_settings(force_reload=True) is not first


def test_explicit_path_beats_environment_variable(config_file, tmp_path):
    explicit = tmp_path / "explicit.toml"
    explicit.write_text('[api]\nbase_url = "https://api.yodayo.com"\n', encoding="utf-8")
    settings = config.load_settings(force_reload=True, config_path=explicit)
    assert settings["api"]["base_url"] == "https://api.yodayo.com"
    assert config.get_cli_setting("api", "base_url") == "https://api.yodayo.com"
    assert not config_file.exists()
    assert config.get_config_path() == config_file

#
# End of test_config.py
#######################################################################################################################
