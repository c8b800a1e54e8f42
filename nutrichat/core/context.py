from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping


@dataclass(frozen=True)
class ChatTurn:
    role: str
    content: str

    @property
    def is_user(self) -> bool:
        return self.role == "user"


@dataclass(frozen=True)
class ConversationContext:
    """Everything one chat request needs; built per request and never mutated."""

    user_input: str
    user_data: Mapping[str, Any] = field(default_factory=dict)
    language: str = "zh_TW"
    history: tuple[ChatTurn, ...] = ()
    wants_report: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "user_data", MappingProxyType(dict(self.user_data)))
        object.__setattr__(self, "history", tuple(self.history))

    @property
    def history_length(self) -> int:
        return len(self.history)
