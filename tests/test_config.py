"""Tests for configuration loading."""

import json

import pytest

from ashbot.config.loader import load_config, save_config
from ashbot.config.schema import BotConfig, Config, RoomConfig
from ashbot.errors import ConfigError


def test_defaults_when_file_missing(tmp_path):
    config = load_config(tmp_path / "missing.json")

    assert config.bot.command_prefix == "/bot"
    assert config.bot.mention_aliases == {"@gork": "gork"}
    assert config.bot.greeting_command == "hi"
    assert config.providers.groq.default_model == "openai/gpt-oss-120b"
    assert config.rooms == []


def test_load_rooms(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "rooms": [{"id": "!a:test", "comment": "a", "allowed_commands": ["ping"]}],
        "bot": {"reply_label": "[ash] "},
    }))

    config = load_config(path)

    assert config.find_room("!a:test").allowed_commands == ["ping"]
    assert config.find_room("!b:test") is None
    assert config.resolve_reply_label("> ") == "[ash] "


@pytest.mark.parametrize("content", ["{broken", "[1, 2]", '{"rooms": "everything"}'])
def test_invalid_config(tmp_path, content):
    path = tmp_path / "config.json"
    path.write_text(content)
    with pytest.raises(ConfigError):
        load_config(path)


def test_environment_overrides_file(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"bot": {"dry_run": False, "timezone": "Europe/Paris"}}))
    monkeypatch.setenv("ASHBOT_BOT__DRY_RUN", "true")

    config = load_config(path)

    assert config.bot.dry_run is True
    assert config.bot.timezone == "Europe/Paris"


def test_reply_label_precedence():
    assert Config().resolve_reply_label("") == "> "
    assert Config().resolve_reply_label("[bot] ") == "[bot] "
    assert Config(bot=BotConfig(reply_label="ash: ")).resolve_reply_label("[bot] ") == "ash: "
    assert Config().explicit_reply_label("") == ""
    assert Config().explicit_reply_label("[bot] ") == "[bot] "


def test_monitoring():
    assert Config().is_monitored("!any:test")

    config = Config(rooms=[RoomConfig(id="!a:test")])
    assert config.is_monitored("!a:test")
    assert not config.is_monitored("!b:test")


def test_save_and_reload(tmp_path):
    path = tmp_path / "out" / "config.json"
    config = Config(rooms=[RoomConfig(id="!a:test", allowed_commands=[])])

    save_config(config, path)

    assert load_config(path).find_room("!a:test").allowed_commands == []
