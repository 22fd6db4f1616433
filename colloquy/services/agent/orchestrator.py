#!/usr/bin/env python3
"""
Conversation Orchestrator for Colloquy

Responsibilities:
- Compose the prompt: system instruction, prior turns, new user message
- Invoke the completion provider (non-streaming)
- Decode the completion payload
- Decide whether the dialogue is expected to continue
- Summarize transcripts, classify intent, run sequential workflows

Each call is stateless given its input context. Persistence is left to the
caller.
"""

import dataclasses
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from colloquy.common.errors import ProviderError, ValidationError
from colloquy.common.logging import setup_logging
from colloquy.config.models import AgentConfig
from colloquy.services.agent.models import (
    AgentResponse,
    ConversationContext,
    Intent,
    Role,
    Turn,
)
from colloquy.services.agent.provider import (
    CompletionProvider,
    CompletionResult,
    build_payload,
)

logger = setup_logging("agent")

MAX_CONTINUATION_HISTORY = 20
EXTENDED_CONVERSATION_HISTORY = 10

NEW_CONVERSATION_PROMPT = "You are starting a new conversation. Be welcoming and helpful."
EXTENDED_CONVERSATION_PROMPT = (
    "This is an extended conversation. Be concise and reference previous context when relevant."
)
SUMMARY_PROMPT = "Summarize the following conversation in 2-3 sentences."

# Checked in order, first match wins
_INTENT_KEYWORDS = (
    (Intent.HELP_REQUEST, ("help", "how")),
    (Intent.GRATITUDE, ("thank",)),
    (Intent.FAREWELL, ("bye", "goodbye")),
)

WorkflowStep = Callable[[], Awaitable[Any]]


class ConversationOrchestrator:
    """Turns a conversation context into an agent response"""

    def __init__(self, provider: CompletionProvider, config: Optional[AgentConfig] = None):
        self.provider = provider
        self.config = config or AgentConfig()

    def with_system_prompt(self, system_prompt: Optional[str]) -> "ConversationOrchestrator":
        """Copy of this orchestrator using a different system instruction"""
        return ConversationOrchestrator(
            self.provider,
            dataclasses.replace(self.config, system_prompt=system_prompt),
        )

    async def process_message(self, context: ConversationContext) -> AgentResponse:
        """Generate the assistant reply for ``context.user_message``.

        Raises:
            ValidationError: the user message is empty, or history carries a system turn
            ProviderError: the completion call failed
        """
        if not context.user_message:
            raise ValidationError("user message must not be empty")
        if any(turn.role is Role.SYSTEM for turn in context.history):
            raise ValidationError("history must not contain system turns")

        messages = self.prepare_messages(context)

        try:
            payload = await self._call_provider(messages)
        except Exception as e:
            logger.error(f"Agent error: {e}", exc_info=True, extra={"session_id": context.session_id})
            raise ProviderError("Failed to process message") from e

        content = CompletionResult.from_payload(payload).content
        should_continue = self.should_continue_conversation(content, context)

        return AgentResponse(
            content=content,
            should_continue=should_continue,
            metadata={
                "model": self.config.model,
                # Character count, not a real token count
                "tokens_used": len(content),
            },
        )

    def prepare_messages(self, context: ConversationContext) -> List[Dict[str, str]]:
        """System prompt (if configured), then history as-is, then the new user turn"""
        messages: List[Dict[str, str]] = []

        if self.config.system_prompt:
            messages.append(Turn(Role.SYSTEM, self.config.system_prompt).to_message())

        messages.extend(turn.to_message() for turn in context.history)
        messages.append(Turn(Role.USER, context.user_message).to_message())

        return messages

    async def _call_provider(self, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        payload = build_payload(messages, self.config.max_tokens, self.config.temperature)
        return await self.provider.run(self.config.model, payload)

    @staticmethod
    def should_continue_conversation(content: str, context: ConversationContext) -> bool:
        """True when the reply asks something and the conversation is still short"""
        has_question = "?" in content
        return has_question and len(context.history) < MAX_CONTINUATION_HISTORY

    async def analyze_intent(self, message: str) -> Intent:
        lowered = message.lower()
        for intent, keywords in _INTENT_KEYWORDS:
            if any(keyword in lowered for keyword in keywords):
                return intent
        return Intent.GENERAL_QUERY

    def generate_contextual_prompt(self, context: ConversationContext) -> str:
        """Pick a system instruction suited to how far the conversation has gone"""
        message_count = len(context.history)

        if message_count == 0:
            return NEW_CONVERSATION_PROMPT

        if message_count > EXTENDED_CONVERSATION_HISTORY:
            return EXTENDED_CONVERSATION_PROMPT

        return self.config.system_prompt or ""

    async def execute_workflow(self, steps: Sequence[WorkflowStep]) -> List[Any]:
        """
        Run steps one after another.

        A failing step contributes ``{"error": message}`` to the results and
        the remaining steps still run.
        """
        results: List[Any] = []

        for step in steps:
            try:
                results.append(await step())
            except Exception as e:
                logger.error(f"Workflow step failed: {e}", exc_info=True)
                results.append({"error": str(e) or "Unknown error"})

        return results

    async def summarize_conversation(self, messages: Sequence[Turn]) -> str:
        """Ask the provider for a 2-3 sentence summary of a transcript"""
        transcript = "\n".join(f"{turn.role.value}: {turn.content}" for turn in messages)

        summary_messages = [
            Turn(Role.SYSTEM, SUMMARY_PROMPT).to_message(),
            Turn(Role.USER, transcript).to_message(),
        ]

        try:
            payload = await self._call_provider(summary_messages)
        except Exception as e:
            logger.error(f"Summary error: {e}", exc_info=True)
            raise ProviderError("Failed to summarize conversation") from e

        return CompletionResult.from_payload(payload).content


def create_agent(
    provider: CompletionProvider,
    config: Optional[AgentConfig] = None,
    **overrides: Any,
) -> ConversationOrchestrator:
    """
    Build an orchestrator.

    Args:
        provider: Completion backend
        config: Base generation settings (defaults to ``AgentConfig()``)
        **overrides: Per-invocation field overrides, e.g. ``temperature=0.2``
    """
    config = config or AgentConfig()
    if overrides:
        config = dataclasses.replace(config, **overrides)
    return ConversationOrchestrator(provider, config)
