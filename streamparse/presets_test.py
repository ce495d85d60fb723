"""Tests for the preset registry and the bundled chunk parsers.

Validates:
- Built-in preset fields
- DeepSeek context grouping and DifyApp ``current`` tracking
- Runtime registration and YAML preset loading
"""

import json
import os
import sys

import pytest

# Ensure streamparse/ is on path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from presets import (
    BUILTIN_PRESETS,
    CHUNK_PARSERS,
    deepseek_chunk_parser,
    dify_app_chunk_parser,
    get_preset,
    list_presets,
    load_presets,
    preset_fields,
    register_preset,
    reset_presets,
)


@pytest.fixture(autouse=True)
def clean_registry():
    reset_presets()
    yield
    reset_presets()


def openai_chunk(content):
    return " " + json.dumps({"choices": [{"delta": {"content": content}}]})


def dify_event(event, **data):
    return json.dumps({"event": event, "data": data})


# ── Built-in presets ──────────────────────────────────────────────────


class TestBuiltinPresets:
    def test_all_builtins_listed(self):
        assert list_presets() == ["OpenAi", "DeepSeek", "Dify", "DifyApp"]

    def test_openai_fields(self):
        preset = get_preset("OpenAi")
        assert preset["chunk_type"] == "json"
        assert preset["content_path"] == "choices[0].delta.content"
        assert preset["auto_concat"] is True
        assert preset["output_type"] == "text"

    def test_dify_fields(self):
        assert get_preset("Dify")["content_path"] == "answer"

    def test_custom_parser_presets(self):
        assert get_preset("DeepSeek")["chunk_parser"] is deepseek_chunk_parser
        assert get_preset("DifyApp")["chunk_parser"] is dify_app_chunk_parser

    def test_presets_are_read_only(self):
        with pytest.raises(TypeError):
            get_preset("OpenAi")["content_path"] = "x"

    def test_unknown_preset(self):
        with pytest.raises(KeyError, match="Unknown preset 'Nope'"):
            get_preset("Nope")

    def test_no_preset_is_empty(self):
        assert dict(preset_fields(None)) == {}


# ── DeepSeek ──────────────────────────────────────────────────────────


class TestDeepSeekParser:
    def test_groups_content_by_value(self):
        context = {}
        deepseek_chunk_parser(openai_chunk("A"), context)
        deepseek_chunk_parser(openai_chunk("B"), context)
        result = deepseek_chunk_parser(openai_chunk("A"), context)
        assert result is context
        assert context == {"A": "AA", "B": "B"}

    def test_empty_content_ignored(self):
        context = {}
        deepseek_chunk_parser(openai_chunk(""), context)
        deepseek_chunk_parser(json.dumps({"choices": [{"delta": {}}]}), context)
        assert context == {}

    def test_invalid_json_raises(self):
        with pytest.raises(json.JSONDecodeError):
            deepseek_chunk_parser(" [DONE]", {})


# ── DifyApp ───────────────────────────────────────────────────────────


class TestDifyAppParser:
    def test_start_node_ignored(self):
        context = {}
        result = dify_app_chunk_parser(dify_event("node_started", node_type="start", title="Start"), context)
        assert result is None

    def test_node_started_adopts_title(self):
        context = {}
        result = dify_app_chunk_parser(dify_event("node_started", node_type="llm", title="LLM"), context)
        assert result == "LLM"
        assert context["current"] == "LLM"

    def test_iteration_events_adopt_title(self):
        context = {}
        assert dify_app_chunk_parser(dify_event("iteration_started", title="Loop"), context) == "Loop"
        assert dify_app_chunk_parser(dify_event("iteration_next", title="Loop #2"), context) == "Loop #2"

    def test_node_finished_adopts_output(self):
        context = {"current": "LLM"}
        result = dify_app_chunk_parser(dify_event("node_finished", outputs={"output": "done"}), context)
        assert result == "done"

    def test_falsy_candidate_keeps_previous(self):
        context = {}
        values = [
            dify_app_chunk_parser(dify_event("node_started", node_type="llm", title="LLM"), context),
            dify_app_chunk_parser(dify_event("iteration_started", title=""), context),
            dify_app_chunk_parser(dify_event("node_finished", outputs={}), context),
            dify_app_chunk_parser(dify_event("workflow_finished"), context),
        ]
        assert values == ["LLM", "LLM", "LLM", "LLM"]

    def test_null_payload(self):
        assert dify_app_chunk_parser("null", {"current": "x"}) == "x"

    def test_missing_data_raises(self):
        with pytest.raises(KeyError):
            dify_app_chunk_parser(json.dumps({"event": "node_started"}), {})


# ── Registration ──────────────────────────────────────────────────────


class TestRegistration:
    def test_register_and_get(self):
        register_preset("Ollama", {"content_path": "message.content"})
        assert "Ollama" in list_presets()
        assert get_preset("Ollama")["content_path"] == "message.content"

    def test_register_invalid_fields(self):
        with pytest.raises(ValueError, match="Invalid preset 'Bad'"):
            register_preset("Bad", {"chunk_type": "xml"})

    def test_refuse_overwrite_without_replace(self):
        with pytest.raises(ValueError, match="already registered"):
            register_preset("OpenAi", {"content_path": "x"})

    def test_replace_allowed(self):
        register_preset("Ollama", {"content_path": "a"})
        register_preset("Ollama", {"content_path": "b"}, replace=True)
        assert get_preset("Ollama")["content_path"] == "b"

    def test_reset_keeps_builtins(self):
        register_preset("Ollama", {"content_path": "a"})
        reset_presets()
        assert list_presets() == list(BUILTIN_PRESETS)


# ── YAML loading ──────────────────────────────────────────────────────


class TestLoadPresets:
    def test_load_builtin_and_named_parser(self, tmp_path):
        path = tmp_path / "presets.yaml"
        path.write_text(
            "presets:\n"
            "  Ollama:\n"
            "    content_path: message.content\n"
            "    auto_concat: false\n"
            "  MyDeepSeek:\n"
            "    chunk_parser: deepseek\n"
        )
        loaded = load_presets(str(path))
        assert loaded["Ollama"] == {"content_path": "message.content", "auto_concat": False}
        assert loaded["MyDeepSeek"]["chunk_parser"] is CHUNK_PARSERS["deepseek"]
        assert "Ollama" not in list_presets()

    def test_load_and_register(self, tmp_path):
        path = tmp_path / "presets.yaml"
        path.write_text("presets:\n  Ollama:\n    content_path: message.content\n")
        load_presets(str(path), register=True)
        assert get_preset("Ollama")["content_path"] == "message.content"

    def test_cannot_shadow_builtin(self, tmp_path):
        path = tmp_path / "presets.yaml"
        path.write_text("presets:\n  OpenAi:\n    content_path: x\n")
        with pytest.raises(ValueError, match="already registered"):
            load_presets(str(path), register=True)

    def test_unknown_parser_name(self, tmp_path):
        path = tmp_path / "presets.yaml"
        path.write_text("presets:\n  Bad:\n    chunk_parser: nope\n")
        with pytest.raises(ValueError, match="unknown chunk_parser 'nope'"):
            load_presets(str(path))

    def test_missing_presets_key(self, tmp_path):
        path = tmp_path / "presets.yaml"
        path.write_text("other: 1\n")
        with pytest.raises(ValueError, match="top-level 'presets'"):
            load_presets(str(path))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "presets.yaml"
        path.write_text("presets: [unclosed\n")
        with pytest.raises(ValueError, match="Failed to read presets"):
            load_presets(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(ValueError, match="Failed to read presets"):
            load_presets(str(tmp_path / "missing.yaml"))

    def test_entry_must_be_mapping(self, tmp_path):
        path = tmp_path / "presets.yaml"
        path.write_text("presets:\n  Bad: 3\n")
        with pytest.raises(ValueError, match="must be a mapping"):
            load_presets(str(path))
