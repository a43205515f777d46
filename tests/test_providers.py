"""
Tests for the LLM providers, the provider factory and the Whisper transcriber, with stub SDK clients.
"""
from types import SimpleNamespace

import anthropic
import openai
import pytest

from salewatch.classifiers.factory import MAX_PROVIDERS, build_providers
from salewatch.classifiers.provider_anthropic import AnthropicProvider
from salewatch.classifiers.provider_openai import OpenAICompatibleProvider
from salewatch.common.config import Settings
from salewatch.common.errors import ClassificationFailure
from salewatch.domain.detection.transcriber import WhisperTranscriber


class StubCreate:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.kwargs = None

    async def __call__(self, **kwargs):
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        return self.response


def openai_client(create: StubCreate):
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def openai_completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def anthropic_client(create: StubCreate):
    return SimpleNamespace(messages=SimpleNamespace(create=create))


def anthropic_response(text):
    return SimpleNamespace(
        content=[SimpleNamespace(type="text", text=text)],
        usage=SimpleNamespace(input_tokens=120, output_tokens=20),
    )


async def test_openai_provider_requests_json_object() -> None:
    create = StubCreate(openai_completion('{"esVenta": true, "cantidad": 2, "ubicacion": "1201"}'))
    provider = OpenAICompatibleProvider("openai", "sk-test", "gpt-4o", client=openai_client(create))

    verdict = await provider.classify("prompt")

    assert verdict.is_sale is True
    assert verdict.quantity == 2
    assert create.kwargs["temperature"] == 0
    assert create.kwargs["response_format"] == {"type": "json_object"}
    assert create.kwargs["messages"] == [{"role": "user", "content": "prompt"}]


async def test_openai_transport_error_is_classification_failure() -> None:
    create = StubCreate(error=openai.OpenAIError("connection reset"))
    provider = OpenAICompatibleProvider("groq", "gsk-test", "llama", client=openai_client(create))

    with pytest.raises(ClassificationFailure) as exc_info:
        await provider.classify("prompt")

    assert exc_info.value.provider == "groq"


async def test_openai_unparseable_content_is_classification_failure() -> None:
    create = StubCreate(openai_completion("Sí, es una venta"))
    provider = OpenAICompatibleProvider("openai", "sk-test", "gpt-4o", client=openai_client(create))

    with pytest.raises(ClassificationFailure):
        await provider.classify("prompt")


async def test_anthropic_provider_parses_fenced_json() -> None:
    create = StubCreate(anthropic_response('```json\n{"esVenta": false, "cantidad": 1, "ubicacion": ""}\n```'))
    provider = AnthropicProvider("sk-ant-test", client=anthropic_client(create))

    verdict = await provider.classify("prompt")

    assert verdict.is_sale is False
    assert create.kwargs["max_tokens"] == 256


async def test_anthropic_error_is_classification_failure() -> None:
    create = StubCreate(error=anthropic.AnthropicError("overloaded"))
    provider = AnthropicProvider("sk-ant-test", client=anthropic_client(create))

    with pytest.raises(ClassificationFailure):
        await provider.classify("prompt")


def _settings(**env) -> Settings:
    base = {"OPENAI_API_KEY": None, "GROQ_API_KEY": None, "ANTHROPIC_API_KEY": None}
    base.update(env)
    return Settings(_env_file=None, **base)


def test_factory_keeps_primary_and_one_fallback() -> None:
    providers = build_providers(_settings(OPENAI_API_KEY="sk", GROQ_API_KEY="gsk", ANTHROPIC_API_KEY="ant"))

    assert len(providers) == MAX_PROVIDERS
    assert [p.name for p in providers] == ["openai", "groq"]


def test_factory_skips_providers_without_keys() -> None:
    providers = build_providers(_settings(ANTHROPIC_API_KEY="ant"))

    assert [p.name for p in providers] == ["anthropic"]


def test_factory_honors_configured_order() -> None:
    providers = build_providers(_settings(
        CLASSIFIER_PROVIDERS="anthropic,openai",
        OPENAI_API_KEY="sk",
        ANTHROPIC_API_KEY="ant",
    ))

    assert [p.name for p in providers] == ["anthropic", "openai"]


def test_factory_without_keys_returns_empty_list() -> None:
    assert build_providers(_settings()) == []


def test_unknown_provider_name_is_rejected() -> None:
    with pytest.raises(ValueError):
        _settings(CLASSIFIER_PROVIDERS="openai,mistral")


def whisper_client(create: StubCreate):
    return SimpleNamespace(audio=SimpleNamespace(transcriptions=SimpleNamespace(create=create)))


async def test_transcriber_returns_stripped_text(tmp_path) -> None:
    audio = tmp_path / "voice.ogg"
    audio.write_bytes(b"OggS")
    create = StubCreate(" quiero dos bidones \n")
    transcriber = WhisperTranscriber(api_key=None, client=whisper_client(create))

    assert await transcriber.transcribe(audio) == "quiero dos bidones"
    assert create.kwargs["model"] == "whisper-large-v3"
    assert create.kwargs["language"] == "es"


async def test_transcriber_failures_degrade_to_empty_text(tmp_path) -> None:
    audio = tmp_path / "voice.ogg"
    audio.write_bytes(b"OggS")
    failing = WhisperTranscriber(api_key=None, client=whisper_client(StubCreate(error=openai.OpenAIError("413"))))
    missing_file = WhisperTranscriber(api_key=None, client=whisper_client(StubCreate("texto")))

    assert await failing.transcribe(audio) == ""
    assert await missing_file.transcribe(tmp_path / "missing.ogg") == ""


async def test_transcriber_without_key_is_disabled(tmp_path) -> None:
    transcriber = WhisperTranscriber(api_key=None)

    assert transcriber.enabled is False
    assert await transcriber.transcribe(tmp_path / "voice.ogg") == ""


@pytest.mark.parametrize("value", ["24:00", "9", "09:60", "０９:００"])
def test_daily_report_time_must_be_clock_time(value) -> None:
    with pytest.raises(ValueError):
        _settings(DAILY_REPORT_TIME=value)
