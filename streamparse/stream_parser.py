"""
stream_parser.py — Streaming decode of server-sent-event style byte streams.

Drives one parse call: pull a buffer from the source, reassemble lines,
keep ``data:`` records, run the configured extractor on each payload and
yield the result. Values are produced lazily; the driver suspends on every
read and on every yield, so consumers that stop pulling stop the stream.

Termination:
  - end of source, after the trailing unterminated line is processed
  - an extracted value that is an exception instance (yielded, then stop)
  - any unexpected exception, which is logged and reported to the
    ``on_error`` hook but never raised to the consumer
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, AsyncGenerator, Callable, Iterator, List, Optional

from chunk_extractor import StreamState, build_extractor, describe_error, is_error_result
from line_decoder import LineDecoder, payload_of
from parser_options import OptionsLike, ParserOptions, resolve_options
from presets import get_preset, list_presets, preset_fields
from stream_sources import as_byte_stream

logger = logging.getLogger("streamparse.stream_parser")


class StreamParser:
    """Configured parser. Reusable across any number of parse calls.

    Build one directly from options, or from a named preset::

        parser = StreamParser.PRESETS.OpenAi()
        async for text in parser.parse(response):
            ...
    """

    PRESETS: "PresetFactories"

    def __init__(self, options: OptionsLike = None, preset: Optional[str] = None):
        self.preset = preset
        self.options: ParserOptions = resolve_options(options, preset_fields(preset))
        self._extractor = build_extractor(self.options)

    @classmethod
    def from_preset(cls, name: str, options: OptionsLike = None) -> "StreamParser":
        return cls(options, preset=name)

    def __repr__(self) -> str:
        return f"StreamParser(preset={self.preset!r}, options={self.options!r})"

    async def parse(self, source: Any) -> AsyncGenerator[Any, None]:
        """Yield one value per ``data:`` record of ``source``.

        ``source`` is an async iterable of bytes, an ``httpx.Response`` opened
        in streaming mode, or a reader whose ``read()`` coroutine returns
        ``(done, value)`` results.
        """
        decoder = LineDecoder()
        state = StreamState()
        try:
            iterator = as_byte_stream(source).__aiter__()
            done = False
            while not done:
                try:
                    chunk = await iterator.__anext__()
                except StopAsyncIteration:
                    chunk, done = b"", True

                for record in decoder.feed(chunk, done):
                    payload = payload_of(record)
                    if payload is None:
                        continue

                    state.records += 1
                    value = self._extractor.extract(payload, state)
                    yield value

                    if is_error_result(value):
                        logger.error(
                            "Stream stopped by chunk error at record %d: %s",
                            state.records,
                            describe_error(value),
                        )
                        return
        except Exception as e:
            logger.exception("Stream parse aborted after %d record(s)", state.records)
            self._report(e)

    async def collect(self, source: Any) -> List[Any]:
        """Drain ``parse(source)`` into a list."""
        return [value async for value in self.parse(source)]

    def _report(self, error: BaseException) -> None:
        hook = self.options.on_error
        if hook is None:
            return
        try:
            hook(error)
        except Exception:
            logger.exception("on_error hook failed")


# ── Preset factories ──────────────────────────────────────────────────


class PresetFactories(Mapping):
    """Preset name -> parser factory. Reflects runtime registrations.

    Supports both ``PRESETS["OpenAi"](opts)`` and ``PRESETS.OpenAi(opts)``.
    Options passed to a factory sit under the preset's fields.
    """

    def __getitem__(self, name: str) -> Callable[..., StreamParser]:
        get_preset(name)

        def factory(options: OptionsLike = None) -> StreamParser:
            return StreamParser(options, preset=name)

        factory.__name__ = name
        return factory

    def __getattr__(self, name: str) -> Callable[..., StreamParser]:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError as e:
            raise AttributeError(str(e)) from None

    def __iter__(self) -> Iterator[str]:
        return iter(list_presets())

    def __len__(self) -> int:
        return len(list_presets())


StreamParser.PRESETS = PresetFactories()
