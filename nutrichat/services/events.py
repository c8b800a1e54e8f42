from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union


@dataclass(frozen=True)
class TextDelta:
    text: str

    def payload(self) -> dict[str, Any]:
        return {"text": self.text}


@dataclass(frozen=True)
class StreamDone:
    def payload(self) -> dict[str, Any]:
        return {"done": True}


@dataclass(frozen=True)
class StreamError:
    message: str

    def payload(self) -> dict[str, Any]:
        return {"error": self.message}


DeltaEvent = Union[TextDelta, StreamDone, StreamError]


def to_sse(event: DeltaEvent) -> str:
    return f"data: {json.dumps(event.payload(), ensure_ascii=False)}\n\n"


# A matcher returns the text parts it recognises, or None when the object
# is not of its shape.
ShapeMatcher = Callable[[dict[str, Any]], Optional[list[str]]]


def _candidate_parts(obj: dict[str, Any]) -> Optional[list[str]]:
    candidates = obj.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return None
    first = candidates[0]
    if not isinstance(first, dict):
        return None
    content = first.get("content")
    if not isinstance(content, dict):
        return None
    parts = content.get("parts")
    if not isinstance(parts, list):
        return None
    return [part.get("text") for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)]


def _flat_text(obj: dict[str, Any]) -> Optional[list[str]]:
    # SDK-style chunk that already exposes the aggregated text.
    text = obj.get("text")
    if isinstance(text, str):
        return [text]
    return None


DEFAULT_SHAPE_MATCHERS: tuple[ShapeMatcher, ...] = (_candidate_parts, _flat_text)


class DeltaEventMapper:
    def __init__(self, matchers: tuple[ShapeMatcher, ...] = DEFAULT_SHAPE_MATCHERS) -> None:
        self.matchers = matchers

    def map(self, obj: Any) -> list[DeltaEvent]:
        if not isinstance(obj, dict):
            return []
        for matcher in self.matchers:
            texts = matcher(obj)
            if texts is not None:
                return [TextDelta(text=text) for text in texts if text]
        return []
