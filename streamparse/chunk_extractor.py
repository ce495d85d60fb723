"""Per-record value extraction using a custom parser or built-in JSON/text rules.

The strategy is chosen once per ParserOptions by ``build_extractor`` and
then applied to every payload of a stream. Mutable per-stream state lives
in StreamState, which the stream driver creates fresh for each parse call.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict

from parser_options import ParserOptions
from path_lookup import get_path

logger = logging.getLogger("streamparse.chunk_extractor")


@dataclass
class StreamState:
    """State owned by a single parse call.

    ``context`` is handed by reference to custom parsers. ``output`` is the
    running concatenation of built-in fragments and grows for the life of
    the stream.
    """

    context: Dict[str, Any] = field(default_factory=dict)
    output: str = ""
    records: int = 0


def to_text(fragment: Any) -> str:
    """Render a fragment for concatenation. Non-strings become compact JSON.

    This differs from JavaScript string coercion: ``1.0`` renders as
    ``"1.0"`` (not ``"1"``) and ``[1, 2]`` as ``"[1,2]"`` (not ``"1,2"``).
    """
    if isinstance(fragment, str):
        return fragment
    try:
        return json.dumps(fragment, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError):
        return str(fragment)


class CustomExtractor:
    """Delegates every payload to the configured ``chunk_parser``."""

    def __init__(self, options: ParserOptions):
        self.chunk_parser = options.chunk_parser

    def extract(self, payload: str, state: StreamState) -> Any:
        return self.chunk_parser(payload, state.context)


class BuiltinExtractor:
    """Built-in extraction: fragment, then accumulation, then output shape."""

    def __init__(self, options: ParserOptions):
        self.chunk_type = options.chunk_type
        self.content_path = options.content_path
        self.auto_concat = options.auto_concat
        self.output_type = options.output_type
        self.validate_chunk = options.validate_chunk

    def fragment(self, payload: str) -> Any:
        """Extract this record's fragment.

        Malformed JSON is logged and yields an empty fragment; the stream
        carries on with the next record.
        """
        if self.chunk_type == "text":
            return payload
        try:
            chunk = json.loads(payload.strip())
        except (ValueError, RecursionError) as e:
            logger.error("Malformed JSON payload %r: %s", payload[:200], e)
            return ""
        return get_path(chunk, self.content_path, "")

    def extract(self, payload: str, state: StreamState) -> Any:
        if self.validate_chunk is not None:
            error = self.validate_chunk(payload)
            if isinstance(error, BaseException):
                return error
            if error is not None:
                logger.warning(
                    "validate_chunk returned %s, expected None or an exception; ignored",
                    type(error).__name__,
                )

        fragment = self.fragment(payload)
        if self.auto_concat:
            state.output += to_text(fragment)
            text = state.output
        else:
            text = fragment

        if self.output_type == "text":
            return text
        return {"text": text}


def build_extractor(options: ParserOptions):
    """Select the extraction strategy for ``options``."""
    if options.uses_custom_parser:
        return CustomExtractor(options)
    return BuiltinExtractor(options)


def is_error_result(value: Any) -> bool:
    """True when an extracted value signals a terminal error."""
    return isinstance(value, BaseException)


def describe_error(value: BaseException) -> str:
    return f"{type(value).__name__}: {value}"
