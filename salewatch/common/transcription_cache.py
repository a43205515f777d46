"""
Bounded transcription cache

Maps a message id to the text transcribed from its audio. Insertion-ordered,
fixed capacity, oldest entry evicted on overflow. One instance per process,
injected into the pipeline and the context window builder.
"""
from collections import OrderedDict
from typing import Optional

import structlog

logger = structlog.get_logger()


class TranscriptionCache:
    """Insertion-ordered message_id -> transcription mapping with size-based eviction"""

    def __init__(self, capacity: int = 100):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._items: "OrderedDict[str, str]" = OrderedDict()

    def get(self, message_id: str) -> Optional[str]:
        return self._items.get(message_id)

    def put(self, message_id: str, text: str) -> None:
        """Store a transcription; re-putting a key keeps its original position"""
        if not message_id:
            return
        self._items[message_id] = text
        while len(self._items) > self.capacity:
            evicted, _ = self._items.popitem(last=False)
            logger.debug("transcription_evicted", message_id=evicted)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._items

    def __len__(self) -> int:
        return len(self._items)
