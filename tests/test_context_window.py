"""
Tests for `domain/detection/context_window.py` and `common/transcription_cache.py`.
"""
import pytest

from salewatch.common.platform import Conversation
from salewatch.common.schemas.sales import Speaker
from salewatch.common.transcription_cache import TranscriptionCache
from salewatch.domain.detection.context_window import ContextWindowBuilder, render_transcript
from tests.fakes import chat_message

CHAT = Conversation(id="56911112222@c.us", name="Ana", customer_id="56911112222")


async def test_window_is_oldest_first_and_bounded(platform, cache) -> None:
    platform.add_history(
        CHAT.id,
        *[chat_message(f"m{i}", f"mensaje {i}", from_me=i % 2 == 1, timestamp=100 + i) for i in range(8)],
    )

    window = await ContextWindowBuilder(platform, cache, window_size=5).build(CHAT)

    assert [m.text for m in window] == [f"mensaje {i}" for i in range(3, 8)]
    assert window[-1].speaker is Speaker.SELLER
    assert platform.fetch_calls == [(CHAT.id, 5)]


async def test_audio_messages_use_cached_transcription(platform, cache) -> None:
    cache.put("voice-1", "quiero dos bidones al 1201")
    platform.add_history(
        CHAT.id,
        chat_message("voice-1", "", from_me=False, timestamp=100, is_audio=True),
        chat_message("m2", "ok voy", from_me=True, timestamp=101),
    )

    window = await ContextWindowBuilder(platform, cache).build(CHAT)

    assert render_transcript(window) == "Cliente: quiero dos bidones al 1201\nVendedor: ok voy"


async def test_missing_trigger_is_appended_as_customer(platform, cache) -> None:
    platform.add_history(CHAT.id, chat_message("m1", "hola", from_me=True, timestamp=100))
    late = chat_message("voice-2", "", from_me=False, timestamp=105, is_audio=True)
    cache.put("voice-2", "me trae agua")

    window = await ContextWindowBuilder(platform, cache).build(CHAT, trigger=late)

    assert len(window) == 2
    assert window[-1].speaker is Speaker.CUSTOMER
    assert window[-1].text == "me trae agua"


async def test_trigger_already_in_history_is_not_duplicated(platform, cache) -> None:
    trigger = chat_message("m2", "listo, voy", from_me=True, timestamp=101)
    platform.add_history(CHAT.id, chat_message("m1", "quiero agua", from_me=False, timestamp=100), trigger)

    window = await ContextWindowBuilder(platform, cache).build(CHAT, trigger=trigger)

    assert [m.message_id for m in window] == ["m1", "m2"]
    assert window[-1].speaker is Speaker.SELLER


async def test_limit_overrides_window_size(platform, cache) -> None:
    platform.add_history(CHAT.id, *[chat_message(f"m{i}", "x", False, 100 + i) for i in range(20)])

    window = await ContextWindowBuilder(platform, cache, window_size=5).build(CHAT, limit=12)

    assert len(window) == 12


def test_window_size_must_be_positive(platform, cache) -> None:
    with pytest.raises(ValueError):
        ContextWindowBuilder(platform, cache, window_size=0)


def test_cache_evicts_oldest_entry() -> None:
    cache = TranscriptionCache(capacity=2)
    cache.put("a", "uno")
    cache.put("b", "dos")
    cache.put("c", "tres")

    assert "a" not in cache
    assert cache.get("b") == "dos"
    assert cache.get("c") == "tres"
    assert len(cache) == 2


def test_cache_overwrite_keeps_insertion_position() -> None:
    cache = TranscriptionCache(capacity=2)
    cache.put("a", "uno")
    cache.put("b", "dos")
    cache.put("a", "uno corregido")
    cache.put("c", "tres")

    assert "a" not in cache
    assert cache.get("b") == "dos"


def test_cache_ignores_empty_ids_and_rejects_bad_capacity() -> None:
    cache = TranscriptionCache(capacity=1)
    cache.put("", "texto")

    assert len(cache) == 0
    with pytest.raises(ValueError):
        TranscriptionCache(capacity=0)
