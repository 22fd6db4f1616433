"""Agent service - composes prompts, calls the completion provider and shapes replies."""
from .models import AgentResponse, ConversationContext, Intent, Role, Turn
from .orchestrator import ConversationOrchestrator, create_agent
from .provider import CompletionProvider, CompletionResult, WorkersAIClient

__all__ = [
    "AgentResponse",
    "CompletionProvider",
    "CompletionResult",
    "ConversationContext",
    "ConversationOrchestrator",
    "Intent",
    "Role",
    "Turn",
    "WorkersAIClient",
    "create_agent",
]
