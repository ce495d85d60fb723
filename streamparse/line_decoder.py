"""
line_decoder.py — Incremental UTF-8 line reassembly for event streams.

Turns raw byte buffers into complete ``\\n``-delimited records, carrying the
unterminated tail of each buffer over to the next one. Multi-byte UTF-8
sequences split across buffers are held by an incremental decoder until
complete. A leading byte order mark is dropped at stream start.
"""

import codecs
from typing import List

DATA_PREFIX = "data:"


class LineDecoder:
    """Per-stream line buffer. Not shared between streams."""

    def __init__(self, encoding: str = "utf-8-sig", errors: str = "replace"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors=errors)
        self.unfinished_text = ""
        self.finished = False

    def feed(self, data: bytes = b"", done: bool = False) -> List[str]:
        """Consume one read result and return the records it completes.

        While the stream is open the last piece after splitting may be a
        partial line, so it is held back. Once ``done`` is set everything
        left over, including an unterminated final line, is returned.
        """
        if self.finished:
            raise RuntimeError("LineDecoder already received end-of-stream")

        text = self.unfinished_text + self._decoder.decode(data or b"", final=done)
        rows = text.split("\n")

        if done:
            self.unfinished_text = ""
            self.finished = True
        else:
            self.unfinished_text = rows.pop()

        return rows


def payload_of(record: str):
    """Payload of a ``data:`` record, or None for any other line.

    The prefix is removed as-is; whitespace after it is kept.
    """
    if not record.startswith(DATA_PREFIX):
        return None
    return record[len(DATA_PREFIX):]
