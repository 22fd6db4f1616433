"""Chat service - HTTP boundary that validates requests, calls the agent and persists turns."""
from .api import ChatService

__all__ = ["ChatService"]
