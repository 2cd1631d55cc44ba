"""Tests for the command catalog."""

import json

import pytest

from ashbot.commands.catalog import (
    AiCommand,
    BuiltinCommand,
    CommandCatalog,
    CommandKind,
    ExecCommand,
    HttpCommand,
    IOKind,
    StaticCommand,
    load_catalog,
)
from ashbot.errors import ConfigError, NotFound


def catalog_of(**commands) -> CommandCatalog:
    return CommandCatalog.from_dict({"commands": commands})


class TestKinds:
    def test_static(self):
        spec = catalog_of(hi={"response": "hello"}).resolve("hi")
        assert isinstance(spec, StaticCommand)
        assert spec.kind == CommandKind.STATIC
        assert spec.response == "hello"

    def test_response_wins_over_type(self):
        spec = catalog_of(hi={"type": "http", "response": "hello"}).resolve("hi")
        assert isinstance(spec, StaticCommand)

    def test_http_defaults(self):
        spec = catalog_of(j={"type": "http", "url": "https://x.test", "method": "post"}).resolve("j")
        assert isinstance(spec, HttpCommand)
        assert spec.method == "POST"
        assert spec.output_type == IOKind.TEXT

    def test_exec(self):
        spec = catalog_of(e={
            "type": "exec",
            "command": "convert",
            "args": ["{input}", "{output}"],
            "input_type": "image",
            "output_type": "image",
        }).resolve("e")
        assert isinstance(spec, ExecCommand)
        assert spec.args == ("{input}", "{output}")
        assert spec.input_type == IOKind.IMAGE

    def test_ai(self):
        spec = catalog_of(g={"type": "ai", "prompt": "summarize the articles"}).resolve("g")
        assert isinstance(spec, AiCommand)
        assert spec.wants_articles
        assert spec.max_tokens == 0

    def test_builtin(self):
        spec = catalog_of(y={"type": "builtin", "command": "yap", "mention": True}).resolve("y")
        assert isinstance(spec, BuiltinCommand)
        assert spec.routine == "yap"
        assert spec.mention

    def test_specs_are_frozen(self):
        spec = catalog_of(hi={"response": "hello"}).resolve("hi")
        with pytest.raises(Exception):
            spec.response = "changed"


class TestValidation:
    @pytest.mark.parametrize("entry", [
        {"type": "carrier-pigeon"},
        {},
        {"type": "http"},
        {"type": "http", "url": "https://x.test", "output_type": "image"},
        {"type": "exec", "command": "convert", "args": ["{input}"], "output_type": "image"},
        {"type": "exec", "command": "convert", "args": ["{output}"], "input_type": "image", "output_type": "image"},
        {"type": "exec", "args": ["x"]},
        {"type": "ai"},
        {"type": "builtin", "command": "rm-rf"},
        {"type": "http", "url": "https://x.test", "output_type": "video", "json_path": "a"},
    ])
    def test_invalid_entries_fail_at_load(self, entry):
        with pytest.raises(ConfigError) as exc:
            catalog_of(bad=entry)
        assert "bad" in str(exc.value)

    def test_commands_must_be_object(self):
        with pytest.raises(ConfigError):
            CommandCatalog.from_dict({"commands": ["hi"]})


class TestLookup:
    @pytest.fixture
    def catalog(self):
        return catalog_of(
            hi={"response": "hello"},
            ping={"response": "pong"},
            yap={"type": "builtin", "command": "yap"},
        )

    def test_resolve_unknown(self, catalog):
        with pytest.raises(NotFound):
            catalog.resolve("nope")
        assert catalog.get("nope") is None

    def test_list_all_sorted(self, catalog):
        assert catalog.list_names() == ["hi", "ping", "yap"]
        assert catalog.list_names([]) == ["hi", "ping", "yap"]

    def test_list_subset_includes_reserved(self, catalog):
        assert catalog.list_names(["yap"], always_allowed="hi") == ["hi", "yap"]

    def test_contains_and_len(self, catalog):
        assert "ping" in catalog
        assert len(catalog) == 3


def test_load_catalog_from_file(tmp_path):
    path = tmp_path / "bot.json"
    path.write_text(json.dumps({"label": "[BOT] ", "commands": {"hi": {"response": "hello"}}}))

    catalog = load_catalog(path)

    assert catalog.label == "[BOT] "
    assert catalog.resolve("hi").response == "hello"


def test_load_catalog_bad_json(tmp_path):
    path = tmp_path / "bot.json"
    path.write_text("{not json")
    with pytest.raises(ConfigError):
        load_catalog(path)


def test_load_catalog_missing_file(tmp_path):
    with pytest.raises(ConfigError):
        load_catalog(tmp_path / "missing.json")
