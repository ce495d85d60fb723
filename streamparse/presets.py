"""Preset registry of named option bundles for known upstream event formats.

Provides:
- Built-in presets: OpenAi, DeepSeek, Dify, DifyApp
- Named chunk parsers so YAML-defined presets can reference them
- Runtime registration and YAML preset loading

A preset is an option fragment merged over the caller's options when a
parser is built from it, so preset fields win on overlapping keys.
"""

from __future__ import annotations

import json
import logging
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from parser_options import ChunkParser, validate_options
from path_lookup import get_path

logger = logging.getLogger("streamparse.presets")


# ── Chunk parsers ─────────────────────────────────────────────────────


def deepseek_chunk_parser(chunk: str, context: Dict[str, Any]) -> Dict[str, Any]:
    """Group delta content into context entries keyed by the content itself.

    Empty content is ignored. Returns the whole context on every record.
    """
    obj = json.loads(chunk.strip())
    content = get_path(obj, "choices[0].delta.content")
    if content:
        if not context.get(content):
            context[content] = ""
        context[content] += content
    return context


def dify_app_chunk_parser(chunk: str, context: Dict[str, Any]) -> Any:
    """Track the latest titled node of a Dify workflow app stream.

    The ``current`` entry keeps its previous value when the event carries no
    usable title or output.
    """
    obj = json.loads(chunk.strip()) or {}
    event = obj.get("event")
    if event == "node_started" and obj["data"].get("node_type") != "start":
        context["current"] = obj["data"].get("title") or context.get("current")
    elif event in ("iteration_started", "iteration_next"):
        context["current"] = obj["data"].get("title") or context.get("current")
    elif event == "node_finished":
        context["current"] = obj["data"]["outputs"].get("output") or context.get("current")
    return context.get("current")


CHUNK_PARSERS: Dict[str, ChunkParser] = {
    "deepseek": deepseek_chunk_parser,
    "dify_app": dify_app_chunk_parser,
}


# ── Registry ──────────────────────────────────────────────────────────


BUILTIN_PRESETS: Dict[str, Mapping[str, Any]] = {
    "OpenAi": MappingProxyType({
        "chunk_type": "json",
        "content_path": "choices[0].delta.content",
        "auto_concat": True,
        "output_type": "text",
    }),
    "DeepSeek": MappingProxyType({
        "chunk_parser": deepseek_chunk_parser,
    }),
    "Dify": MappingProxyType({
        "chunk_type": "json",
        "content_path": "answer",
        "auto_concat": True,
        "output_type": "text",
    }),
    "DifyApp": MappingProxyType({
        "chunk_parser": dify_app_chunk_parser,
    }),
}

_presets: Dict[str, Mapping[str, Any]] = dict(BUILTIN_PRESETS)


def list_presets() -> List[str]:
    """Return the names of all registered presets."""
    return list(_presets.keys())


def get_preset(name: str) -> Mapping[str, Any]:
    """Return the option fragment for a preset.

    Raises KeyError naming the known presets when ``name`` is unknown.
    """
    try:
        return _presets[name]
    except KeyError:
        raise KeyError(f"Unknown preset '{name}'. Known: {list_presets()}") from None


def register_preset(
    name: str, fields: Mapping[str, Any], replace: bool = False
) -> Mapping[str, Any]:
    """Register a preset fragment under ``name``.

    Raises ValueError if the fields are invalid, or if ``name`` is already
    registered and ``replace`` is False.
    """
    if not name:
        raise ValueError("Preset name is required")
    if name in _presets and not replace:
        raise ValueError(f"Preset '{name}' already registered (pass replace=True)")

    errors = validate_options(fields)
    if errors:
        raise ValueError(f"Invalid preset '{name}': " + "; ".join(errors))

    frozen = MappingProxyType(dict(fields))
    _presets[name] = frozen
    logger.info("Registered preset %s", name)
    return frozen


def reset_presets() -> None:
    """Drop runtime registrations, keeping only the built-in presets."""
    _presets.clear()
    _presets.update(BUILTIN_PRESETS)


# ── YAML loading ──────────────────────────────────────────────────────


def _preset_from_config(name: str, entry: Any) -> Dict[str, Any]:
    if not isinstance(entry, dict):
        raise ValueError(f"Preset '{name}' must be a mapping")

    fields = dict(entry)
    parser_name = fields.get("chunk_parser")
    if parser_name is not None:
        if not isinstance(parser_name, str) or parser_name not in CHUNK_PARSERS:
            raise ValueError(
                f"Preset '{name}' references unknown chunk_parser '{parser_name}'. "
                f"Known: {list(CHUNK_PARSERS)}"
            )
        fields["chunk_parser"] = CHUNK_PARSERS[parser_name]

    errors = validate_options(fields)
    if errors:
        raise ValueError(f"Invalid preset '{name}': " + "; ".join(errors))
    return fields


def load_presets(path: str, register: bool = False) -> Dict[str, Dict[str, Any]]:
    """Load preset fragments from a YAML file.

    Expected shape::

        presets:
          Ollama:
            content_path: message.content
          MyDeepSeek:
            chunk_parser: deepseek

    Returns name -> fragment. With ``register=True`` every preset is also
    registered (replacing earlier registrations of the same name, never a
    built-in). Raises ValueError on malformed files.
    """
    import yaml

    try:
        with open(path) as f:
            config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ValueError(f"Failed to read presets from {path}: {e}") from e

    if not isinstance(config, dict) or not isinstance(config.get("presets"), dict):
        raise ValueError(f"{path}: expected a top-level 'presets' mapping")

    loaded = {
        str(name): _preset_from_config(str(name), entry)
        for name, entry in config["presets"].items()
    }

    if register:
        for name, fields in loaded.items():
            register_preset(name, fields, replace=name not in BUILTIN_PRESETS)

    logger.debug("Loaded %d preset(s) from %s", len(loaded), path)
    return loaded


def preset_fields(name: Optional[str]) -> Mapping[str, Any]:
    """Fragment for ``name``, or an empty mapping when no preset is used."""
    if name is None:
        return MappingProxyType({})
    return get_preset(name)
