"""
Context Window Builder

Assembles the last N messages of a conversation, oldest first, tagged with
speaker role. Audio messages are replaced by their cached transcription. If
the triggering message has not reached the platform history yet (typical for
a voice note that just arrived) it is appended as the last customer message.
"""
from typing import List, Optional

import structlog

from salewatch.common.platform import ChatMessage, Conversation, MessagingPlatform
from salewatch.common.schemas.sales import ConversationMessage, Speaker
from salewatch.common.transcription_cache import TranscriptionCache

logger = structlog.get_logger()


def render_transcript(window: List[ConversationMessage]) -> str:
    """Role-tagged transcript, one line per message"""
    return "\n".join(message.render() for message in window)


class ContextWindowBuilder:
    """Builds a fresh window per evaluation; windows are never cached"""

    def __init__(self, platform: MessagingPlatform, cache: TranscriptionCache, window_size: int = 5):
        if window_size < 1:
            raise ValueError(f"window_size must be >= 1, got {window_size}")
        self.platform = platform
        self.cache = cache
        self.window_size = window_size

    def to_window_message(self, message: ChatMessage) -> ConversationMessage:
        text = self.cache.get(message.id)
        if text is None:
            text = message.body or ""
        return ConversationMessage(
            speaker=Speaker.SELLER if message.from_me else Speaker.CUSTOMER,
            text=text,
            timestamp=message.timestamp,
            message_id=message.id,
        )

    def assemble(
        self,
        messages: List[ChatMessage],
        size: int,
        trigger: Optional[ChatMessage] = None,
    ) -> List[ConversationMessage]:
        """Window from already-fetched messages"""
        ordered = sorted(messages, key=lambda m: m.timestamp)[-size:]
        window = [self.to_window_message(m) for m in ordered]

        if trigger is not None and all(m.id != trigger.id for m in ordered):
            late = self.to_window_message(trigger)
            window.append(late.model_copy(update={"speaker": Speaker.CUSTOMER}))
            logger.debug("trigger_appended_to_window", conversation_id=trigger.conversation_id, message_id=trigger.id)

        return window

    async def build(
        self,
        conversation: Conversation,
        trigger: Optional[ChatMessage] = None,
        limit: Optional[int] = None,
    ) -> List[ConversationMessage]:
        """
        Fetch and assemble the window for a conversation.

        Args:
            conversation: Chat to read
            trigger: Message that caused the evaluation, if any
            limit: Override the configured window size (historical scans)

        Returns:
            Chronologically ordered, speaker-tagged messages
        """
        size = limit or self.window_size
        messages = await self.platform.fetch_messages(conversation.id, size)
        return self.assemble(messages, size, trigger)
