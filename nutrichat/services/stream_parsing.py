"""
Incremental parsing of a chunked upstream byte stream.

Gemini's ``streamGenerateContent`` endpoint answers with one JSON array whose
elements arrive spread over arbitrary network chunks. Nothing guarantees a
chunk ends on a character boundary, let alone an object boundary, so the
stream is handled in two layers:

- ``ByteToTextDecoder`` turns bytes into text, carrying split UTF-8
  sequences over to the next chunk.
- ``scan_objects`` / ``BalancedObjectExtractor`` pull every complete
  top-level ``{...}`` span out of the accumulated text and keep the rest.
"""

from __future__ import annotations

import codecs
from dataclasses import dataclass
from typing import Optional


class ByteToTextDecoder:
    def __init__(self, encoding: str = "utf-8") -> None:
        self.encoding = encoding
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="strict")

    def feed(self, data: bytes) -> str:
        return self._decoder.decode(data)

    def finish(self) -> str:
        # Whatever is still buffered here is a sequence the stream cut short.
        pending, _ = self._decoder.getstate()
        self._decoder.reset()
        if not pending:
            return ""
        return pending.decode(self.encoding, errors="replace")


@dataclass(frozen=True)
class ScanState:
    """Scanner position over the retained buffer.

    ``position`` is the first character not yet scanned and ``span_start``
    the index of the ``{`` opening the object in progress (-1 when none).
    Both are relative to the buffer the state was returned with.
    """

    depth: int = 0
    in_string: bool = False
    escape_pending: bool = False
    span_start: int = -1
    position: int = 0


def scan_objects(buffer: str, state: Optional[ScanState] = None) -> tuple[list[str], str, ScanState]:
    """Return ``(objects, leftover, state)`` for ``buffer``.

    Only characters from ``state.position`` onwards are read, so feeding the
    returned leftover plus new text back in never rescans anything.
    """
    state = state or ScanState()
    depth = state.depth
    in_string = state.in_string
    escape_pending = state.escape_pending
    span_start = state.span_start
    consumed = 0
    objects: list[str] = []

    for index in range(state.position, len(buffer)):
        char = buffer[index]
        if escape_pending:
            escape_pending = False
            continue
        if in_string:
            if char == "\\":
                escape_pending = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            if depth == 0:
                span_start = index
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                objects.append(buffer[span_start : index + 1])
                consumed = index + 1
                span_start = -1

    next_state = ScanState(
        depth=depth,
        in_string=in_string,
        escape_pending=escape_pending,
        span_start=span_start - consumed if span_start >= 0 else -1,
        position=len(buffer) - consumed,
    )
    return objects, buffer[consumed:], next_state


class BalancedObjectExtractor:
    def __init__(self) -> None:
        self.buffer = ""
        self.state = ScanState()

    def feed(self, text: str) -> list[str]:
        objects, self.buffer, self.state = scan_objects(self.buffer + text, self.state)
        return objects

