"""
Conversation data model: turns, per-request context and agent responses.
"""
from dataclasses import dataclass, asdict, field
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple


class Role(str, Enum):
    """Speaker of a conversation turn"""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Intent(str, Enum):
    """Coarse user intent derived from keyword matching"""
    HELP_REQUEST = "help_request"
    GRATITUDE = "gratitude"
    FAREWELL = "farewell"
    GENERAL_QUERY = "general_query"


@dataclass(frozen=True)
class Turn:
    """One role-tagged message in a conversation"""
    role: Role
    content: str
    timestamp: Optional[str] = None

    def __post_init__(self):
        # Accept plain strings from JSON and storage
        if not isinstance(self.role, Role):
            object.__setattr__(self, "role", Role(self.role))

    def to_message(self) -> Dict[str, str]:
        """Role/content pair as sent to the completion provider"""
        return {"role": self.role.value, "content": self.content}

    def to_dict(self) -> Dict[str, Any]:
        data = {"role": self.role.value, "content": self.content}
        if self.timestamp is not None:
            data["timestamp"] = self.timestamp
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Turn":
        return cls(
            role=data["role"],
            content=data["content"],
            timestamp=data.get("timestamp"),
        )


@dataclass(frozen=True)
class ConversationContext:
    """Everything the orchestrator needs for a single request"""
    session_id: str
    user_message: str
    history: Tuple[Turn, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "history", tuple(self.history))

    @classmethod
    def build(
        cls,
        session_id: str,
        user_message: str,
        history: Optional[Sequence[Turn]] = None,
    ) -> "ConversationContext":
        return cls(session_id=session_id, user_message=user_message, history=tuple(history or ()))


@dataclass
class AgentResponse:
    """Generated reply plus the continuation decision"""
    content: str
    should_continue: bool
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return asdict(self)
