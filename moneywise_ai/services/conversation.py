"""
Conversation Service

Multi-turn chat with persisted history.

FLOW (exchange):
1. Resolve the conversation (reuse by id, otherwise start a new one)
2. Render the last N persisted messages + the new message into one prompt
3. Send as a text request
4. On success ONLY: persist the user message, the assistant reply and
   the updated conversation metadata

A failed send leaves the store untouched; no empty conversations are
created for requests that never got an answer.
"""

from datetime import datetime
from typing import Callable, Optional, Union
from uuid import UUID

import structlog

from moneywise_ai.audit import AuditLogger
from moneywise_ai.gateway import (
    AIServiceError,
    CancellationToken,
    GeminiClient,
    PromptBuilder,
    ResponseExtractor,
)
from moneywise_ai.models.finance import Conversation, Message, MessageRole, utcnow
from moneywise_ai.services.storage import ConversationStorageInterface
from moneywise_ai.services.usage import UsageTracker

logger = structlog.get_logger(__name__)

PLACEHOLDER_TITLE = "New Chat"
DEFAULT_HISTORY_WINDOW = 10
DEFAULT_TITLE_MAX_LENGTH = 30

SYSTEM_INSTRUCTION = (
    "Please respond to the user's message above, considering the "
    "conversation context. You are a helpful financial assistant for the "
    "Moneywise app."
)


def make_title(message: str, max_length: int = DEFAULT_TITLE_MAX_LENGTH) -> str:
    """First `max_length` characters of the message, "..." appended if cut."""
    if len(message) <= max_length:
        return message
    return message[:max_length] + "..."


def build_prompt(history: list[Message], message: str) -> str:
    """
    Render history and the new message as one prompt.

    Format:
        User: ...
        Assistant: ...
        User: <new message>
        <instruction>
    """
    lines = [m.render() for m in history]
    lines.append(f"{MessageRole.USER.label}: {message}")
    lines.append(SYSTEM_INSTRUCTION)
    return "\n".join(lines)


def _parse_id(conversation_id: Union[UUID, str, None]) -> Optional[UUID]:
    if conversation_id is None or isinstance(conversation_id, UUID):
        return conversation_id
    try:
        return UUID(str(conversation_id))
    except ValueError:
        return None


class ConversationService:
    """Chat with persisted conversations plus conversation CRUD."""

    def __init__(
        self,
        client: GeminiClient,
        storage: ConversationStorageInterface,
        api_key_provider: Callable[[], Optional[str]],
        prompts: Optional[PromptBuilder] = None,
        usage: Optional[UsageTracker] = None,
        audit_logger: Optional[AuditLogger] = None,
        history_window: int = DEFAULT_HISTORY_WINDOW,
        title_max_length: int = DEFAULT_TITLE_MAX_LENGTH,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._client = client
        self._storage = storage
        self._api_key_provider = api_key_provider
        self._prompts = prompts or PromptBuilder()
        self._usage = usage
        self._audit_logger = audit_logger
        self._history_window = history_window
        self._title_max_length = title_max_length
        self._clock = clock

    async def exchange(
        self,
        message: str,
        conversation_id: Union[UUID, str, None] = None,
        token: Optional[CancellationToken] = None,
    ) -> tuple[str, str]:
        """
        Send `message` in the context of a conversation.

        An id that does not parse or does not resolve starts a new
        conversation rather than failing.

        Returns:
            (reply text, conversation id as a string)

        Raises:
            AIServiceError: any gateway failure; nothing is persisted
        """
        conversation, is_new = await self._resolve(conversation_id)

        history = conversation.recent_messages(self._history_window)
        payload = self._prompts.chat(build_prompt(history, message))

        try:
            data = await self._client.send(payload, self._api_key_provider(), token)
            envelope = ResponseExtractor.parse_envelope(data)
        except AIServiceError as e:
            e.details.setdefault("operation", "chat")
            if self._audit_logger:
                await self._audit_logger.log_request_failed("chat", e)
            raise

        reply = envelope.text
        if self._usage:
            await self._usage.record_response(envelope)

        now = self._clock()
        user_message = Message(
            role=MessageRole.USER,
            content=message,
            timestamp=now,
        )
        assistant_message = Message(
            role=MessageRole.ASSISTANT,
            content=reply,
            timestamp=now,
            input_tokens=envelope.input_tokens,
            output_tokens=envelope.output_tokens,
        )

        if is_new or conversation.title in ("", PLACEHOLDER_TITLE):
            conversation.title = make_title(message, self._title_max_length)
        conversation.touch(now)

        await self._persist(conversation, [user_message, assistant_message])

        if self._audit_logger:
            if is_new:
                await self._audit_logger.log_conversation_created(
                    conversation.id, conversation.title
                )
            await self._audit_logger.log_message_exchanged(
                conversation_id=conversation.id,
                history_size=len(history),
                input_tokens=envelope.input_tokens,
                output_tokens=envelope.output_tokens,
            )

        return reply, str(conversation.id)

    async def _resolve(
        self,
        conversation_id: Union[UUID, str, None],
    ) -> tuple[Conversation, bool]:
        parsed = _parse_id(conversation_id)
        if parsed is not None:
            existing = await self._storage.get_conversation(parsed)
            if existing is not None:
                return existing, False
            logger.info("conversation_not_found", conversation_id=str(parsed))

        now = self._clock()
        return Conversation(
            title=PLACEHOLDER_TITLE,
            created_at=now,
            updated_at=now,
        ), True

    async def _persist(
        self,
        conversation: Conversation,
        messages: list[Message],
    ) -> None:
        # Metadata first so the messages have a parent
        saved = await self._storage.save_conversation(conversation)
        for message in messages:
            saved = await self._storage.add_message(conversation.id, message) and saved

        if not saved:
            logger.error("conversation_save_failed", conversation_id=str(conversation.id))
            if self._audit_logger:
                await self._audit_logger.log_save_failed("conversation", conversation.id)

    # -------------------------------------------------------------------------
    # CRUD
    # -------------------------------------------------------------------------

    async def list_conversations(self) -> list[Conversation]:
        """Non-archived conversations, most recently updated first."""
        conversations = await self._storage.list_conversations()
        active = [c for c in conversations if not c.is_archived]
        return sorted(active, key=lambda c: c.updated_at, reverse=True)

    async def get_conversation(
        self,
        conversation_id: Union[UUID, str],
    ) -> Optional[Conversation]:
        parsed = _parse_id(conversation_id)
        if parsed is None:
            return None
        return await self._storage.get_conversation(parsed)

    async def archive_conversation(self, conversation_id: Union[UUID, str]) -> bool:
        conversation = await self.get_conversation(conversation_id)
        if conversation is None:
            return False

        conversation.is_archived = True
        saved = await self._storage.save_conversation(conversation)
        if self._audit_logger:
            if saved:
                await self._audit_logger.log_conversation_archived(conversation.id)
            else:
                await self._audit_logger.log_save_failed("conversation", conversation.id)
        return saved

    async def delete_conversation(self, conversation_id: Union[UUID, str]) -> bool:
        """Delete a conversation together with its messages."""
        conversation = await self.get_conversation(conversation_id)
        if conversation is None:
            return False

        deleted = await self._storage.delete_conversation(conversation.id)
        if deleted and self._audit_logger:
            await self._audit_logger.log_conversation_deleted(
                conversation.id, len(conversation.messages)
            )
        return deleted
