"""
Messaging platform interface

The chat client itself (session lifecycle, pairing, media download) lives
outside this package. Adapters translate platform events into the plain data
classes below and implement MessagingPlatform for outbound calls.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from salewatch.common.schemas.sales import MonthlySaleRow


@dataclass(frozen=True)
class ChatMessage:
    """
    Message as received from the platform.

    Attributes:
        id: Platform message id (used as the transcription cache key)
        conversation_id: Chat the message belongs to
        body: Raw text body (empty for media without caption)
        from_me: True when authored by the seller's own account
        timestamp: Epoch seconds (UTC)
        is_audio: Voice note / audio attachment
        author_id: Sender number (group chats)
        author_name: Sender display name, if known
    """
    id: str
    conversation_id: str
    body: str
    from_me: bool
    timestamp: float
    is_audio: bool = False
    author_id: Optional[str] = None
    author_name: Optional[str] = None


@dataclass(frozen=True)
class Conversation:
    """
    Chat handle.

    For private chats `customer_id` is the counterparty's number.
    """
    id: str
    name: str
    is_group: bool = False
    customer_id: str = ""
    last_activity: float = 0.0


class MessagingPlatform(Protocol):
    """Outbound operations the pipeline needs from the chat client"""

    async def fetch_messages(self, conversation_id: str, limit: int) -> List[ChatMessage]:
        """Most recent `limit` messages, any order"""
        ...

    async def list_conversations(self) -> List[Conversation]:
        ...

    async def send_message(self, destination: str, text: str) -> None:
        ...

    async def send_file(self, destination: str, path: Path, caption: str = "") -> None:
        ...

    async def download_audio(self, message: ChatMessage) -> Optional[Path]:
        """Save an audio attachment to disk; None when unavailable"""
        ...

    async def contact_name(self, customer_id: str) -> Optional[str]:
        """Display name saved for a number, if any"""
        ...


class SpreadsheetExporter(Protocol):
    """Renders the monthly sales detail into a spreadsheet file"""

    async def export(self, rows: Sequence[MonthlySaleRow]) -> Path:
        ...
