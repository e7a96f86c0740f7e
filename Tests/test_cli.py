# test_cli.py
#
# Imports
import os
#
# 3rd-party Libraries
import pytest
from click.testing import CliRunner
#
# Local Imports
from tavern_exporter import cli as cli_module
from tavern_exporter import config
from tavern_exporter.Exporter_Service import ExporterSession
from tavern_test_utils import PagedAPI, SleepRecorder, api_character, api_chat, api_message, make_client
#
#######################################################################################################################
#
# Fixtures

@pytest.fixture
def api():
    aria = api_character("char-1", "Aria")
    return PagedAPI(
        chats=[api_chat("c1", "Tavern", 0, [aria]), api_chat("c0", "Quiet", 10, [aria])],
        messages={
            "c0": [],
            "c1": [
                api_message("m1", 0, source="bot", text="hello", nickname="Aria", character_uuid="char-1"),
                api_message("m2", 10, text="hi"),
            ],
        },
        characters={"char-1": {"char_name": "Aria", "char_greeting": "Welcome!"}},
    )


@pytest.fixture
def runner(api, tmp_path, monkeypatch):
    monkeypatch.setenv(config.CONFIG_PATH_ENV_VAR, str(tmp_path / "config.toml"))
    monkeypatch.setattr(config, "_CONFIG_CACHE", None)
    monkeypatch.setattr(cli_module, "configure_logging", lambda **kwargs: None)
    monkeypatch.setattr(cli_module, "build_session",
                        lambda settings, cookie=None: ExporterSession(make_client(api), sleep=SleepRecorder()))
    return CliRunner()


# --- Tests ---

def test_version(runner):
    result = runner.invoke(cli_module.cli, ["--version"])
    assert result.exit_code == 0
    assert "2.2.6" in result.output


def test_chats_lists_every_chat(runner):
    result = runner.invoke(cli_module.cli, ["chats"], obj={})
    assert result.exit_code == 0, result.output
    assert "Tavern" in result.output
    assert "Quiet" in result.output


def test_export_writes_file(runner, tmp_path):
    out_dir = tmp_path / "exports"
    result = runner.invoke(cli_module.cli, ["export", "c1", "--format", "txt", "--output-dir", str(out_dir)], obj={})

    assert result.exit_code == 0, result.output
    (written,) = list(out_dir.iterdir())
    assert written.name.startswith("Chat with Aria ")
    assert written.read_text(encoding="utf-8") == "Aria\n\nWelcome!\n\n\nAria\n\nhello\n\n\nYou\n\nhi"


def test_export_of_empty_chat_writes_nothing(runner, tmp_path):
    out_dir = tmp_path / "exports"
    result = runner.invoke(cli_module.cli, ["export", "c0", "--output-dir", str(out_dir)], obj={})

    assert result.exit_code == 0
    assert "Nothing to download, this conversation is empty." in result.output
    assert not out_dir.exists()


def test_retrieval_failure_exits_non_zero(runner, api):
    api.overrides["/v1/chats/c1/messages"] = 403
    result = runner.invoke(cli_module.cli, ["export", "c1"], obj={})
    assert result.exit_code == 1


def test_config_option_is_passed_without_touching_environment(runner, tmp_path, monkeypatch):
    monkeypatch.delenv(config.CONFIG_PATH_ENV_VAR)
    custom = tmp_path / "custom.toml"
    custom.write_text('[export]\ndefault_format = "json"\n', encoding="utf-8")
    result = runner.invoke(cli_module.cli, ["--config", str(custom), "chats"], obj={})

    assert result.exit_code == 0, result.output
    assert config.CONFIG_PATH_ENV_VAR not in os.environ
    assert config.get_cli_setting("export", "default_format") == "json"

#
# End of test_cli.py
#######################################################################################################################
