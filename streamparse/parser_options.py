"""Parser option model: defaults, validation and layered merge.

Provides:
- ParserOptions, the immutable option set a StreamParser is built from
- Validation returning readable error strings (empty = valid)
- Layered resolution: defaults < caller options < preset fields

A resolved ParserOptions selects one of two extraction strategies:
a custom ``chunk_parser`` (which replaces built-in extraction entirely),
or built-in JSON/text extraction driven by the remaining fields.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

logger = logging.getLogger("streamparse.parser_options")

CHUNK_TYPES = ("json", "text")
OUTPUT_TYPES = ("text", "obj")

# (payload, context) -> value to emit; an Exception instance ends the stream
ChunkParser = Callable[[str, Dict[str, Any]], Any]
# payload -> None when valid, an Exception instance otherwise
ChunkValidator = Callable[[str], Optional[BaseException]]
ErrorHook = Callable[[BaseException], None]


@dataclass(frozen=True)
class ParserOptions:
    """Resolved configuration for one StreamParser."""

    chunk_parser: Optional[ChunkParser] = None
    chunk_type: str = "json"
    content_path: str = "content"
    auto_concat: bool = True
    output_type: str = "text"
    validate_chunk: Optional[ChunkValidator] = None
    on_error: Optional[ErrorHook] = None

    def __post_init__(self):
        errors = validate_options(asdict_shallow(self))
        if errors:
            raise ValueError("Invalid parser options: " + "; ".join(errors))

    @property
    def uses_custom_parser(self) -> bool:
        return self.chunk_parser is not None

    def to_dict(self) -> Dict[str, Any]:
        return asdict_shallow(self)


OPTION_NAMES = tuple(f.name for f in fields(ParserOptions))

DEFAULT_OPTIONS: Dict[str, Any] = {
    "chunk_type": "json",
    "content_path": "content",
    "auto_concat": True,
    "output_type": "text",
}


def asdict_shallow(options: ParserOptions) -> Dict[str, Any]:
    """Field mapping of ``options`` without copying callables or values."""
    return {name: getattr(options, name) for name in OPTION_NAMES}


# ── Validation ────────────────────────────────────────────────────────


def validate_options(options: Mapping[str, Any]) -> List[str]:
    """Validate an option mapping.

    Returns list of error strings (empty = valid). Missing keys are not
    errors; defaults fill them during resolution.
    """
    errors = []

    unknown = sorted(set(options) - set(OPTION_NAMES))
    if unknown:
        errors.append(
            f"Unknown option(s) {unknown}. Supported: {list(OPTION_NAMES)}"
        )

    for hook in ("chunk_parser", "validate_chunk", "on_error"):
        value = options.get(hook)
        if value is not None and not callable(value):
            errors.append(f"Option '{hook}' must be callable, got {type(value).__name__}")

    chunk_type = options.get("chunk_type")
    if chunk_type is not None and chunk_type not in CHUNK_TYPES:
        errors.append(f"Unknown chunk_type '{chunk_type}'. Supported: {list(CHUNK_TYPES)}")

    output_type = options.get("output_type")
    if output_type is not None and output_type not in OUTPUT_TYPES:
        errors.append(f"Unknown output_type '{output_type}'. Supported: {list(OUTPUT_TYPES)}")

    content_path = options.get("content_path")
    if content_path is not None and not isinstance(content_path, str):
        errors.append("Option 'content_path' must be a string")

    auto_concat = options.get("auto_concat")
    if auto_concat is not None and not isinstance(auto_concat, bool):
        errors.append("Option 'auto_concat' must be a boolean")

    return errors


# ── Resolution ────────────────────────────────────────────────────────


OptionsLike = Union[ParserOptions, Mapping[str, Any], None]


def _as_mapping(options: OptionsLike) -> Dict[str, Any]:
    if options is None:
        return {}
    if isinstance(options, ParserOptions):
        return options.to_dict()
    return dict(options)


def resolve_options(
    options: OptionsLike = None, preset: Optional[Mapping[str, Any]] = None
) -> ParserOptions:
    """Merge defaults, caller options and preset fields. Later layers win.

    ``None`` values in the caller layer do not override defaults, so an
    unset field always resolves to its default. Raises ValueError listing
    every validation error.
    """
    merged = dict(DEFAULT_OPTIONS)
    for key, value in _as_mapping(options).items():
        if value is not None:
            merged[key] = value
    merged.update(preset or {})

    errors = validate_options(merged)
    if errors:
        raise ValueError("Invalid parser options: " + "; ".join(errors))

    logger.debug(
        "Resolved parser options: custom_parser=%s chunk_type=%s content_path=%s",
        merged.get("chunk_parser") is not None,
        merged.get("chunk_type"),
        merged.get("content_path"),
    )
    return ParserOptions(**merged)
