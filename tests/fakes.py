"""
In-memory stand-ins for the messaging platform, spreadsheet exporter and
classification providers.
"""
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from salewatch.common.errors import ClassificationFailure
from salewatch.common.platform import ChatMessage, Conversation
from salewatch.common.schemas.sales import ClassificationVerdict, MonthlySaleRow


def chat_message(
    message_id: str,
    body: str,
    from_me: bool,
    timestamp: float,
    conversation_id: str = "56911112222@c.us",
    **kwargs,
) -> ChatMessage:
    return ChatMessage(
        id=message_id,
        conversation_id=conversation_id,
        body=body,
        from_me=from_me,
        timestamp=timestamp,
        **kwargs,
    )


class FakePlatform:
    """Records outbound traffic; serves canned history per conversation"""

    def __init__(self):
        self.history: Dict[str, List[ChatMessage]] = {}
        self.conversations: List[Conversation] = []
        self.contacts: Dict[str, str] = {}
        self.audio_files: Dict[str, Path] = {}
        self.failing_conversations: set = set()
        self.sent: List[Tuple[str, str]] = []
        self.files: List[Tuple[str, Path, str]] = []
        self.fetch_calls: List[Tuple[str, int]] = []

    def add_history(self, conversation_id: str, *messages: ChatMessage) -> None:
        self.history.setdefault(conversation_id, []).extend(messages)

    async def fetch_messages(self, conversation_id: str, limit: int) -> List[ChatMessage]:
        self.fetch_calls.append((conversation_id, limit))
        if conversation_id in self.failing_conversations:
            raise RuntimeError(f"chat {conversation_id} unavailable")
        messages = sorted(self.history.get(conversation_id, []), key=lambda m: m.timestamp)
        return messages[-limit:]

    async def list_conversations(self) -> List[Conversation]:
        return list(self.conversations)

    async def send_message(self, destination: str, text: str) -> None:
        self.sent.append((destination, text))

    async def send_file(self, destination: str, path: Path, caption: str = "") -> None:
        self.files.append((destination, path, caption))

    async def download_audio(self, message: ChatMessage) -> Optional[Path]:
        return self.audio_files.get(message.id)

    async def contact_name(self, customer_id: str) -> Optional[str]:
        return self.contacts.get(customer_id)

    def sent_to(self, destination: str) -> List[str]:
        return [text for dest, text in self.sent if dest == destination]


class FakeExporter:
    def __init__(self, path: Path = Path("/tmp/ventas.xlsx")):
        self.path = path
        self.exported: List[Sequence[MonthlySaleRow]] = []

    async def export(self, rows: Sequence[MonthlySaleRow]) -> Path:
        self.exported.append(list(rows))
        return self.path


class FakeProvider:
    """Returns a fixed verdict, or raises a fixed error"""

    def __init__(
        self,
        name: str = "fake",
        verdict: Optional[ClassificationVerdict] = None,
        error: Optional[Exception] = None,
    ):
        self.name = name
        self.verdict = verdict or ClassificationVerdict.default()
        self.error = error
        self.prompts: List[str] = []

    async def classify(self, prompt: str) -> ClassificationVerdict:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.verdict


def failing_provider(name: str = "broken") -> FakeProvider:
    return FakeProvider(name=name, error=ClassificationFailure(name, "timeout"))


def sale_verdict(quantity: int = 1, location: str = "") -> ClassificationVerdict:
    return ClassificationVerdict(is_sale=True, quantity=quantity, location=location)


class FakeTranscriber:
    def __init__(self, text: str = ""):
        self.text = text
        self.calls: List[Path] = []

    @property
    def enabled(self) -> bool:
        return True

    async def transcribe(self, file_path: Path) -> str:
        self.calls.append(file_path)
        return self.text
