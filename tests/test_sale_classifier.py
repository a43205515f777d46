"""
Tests for `classifiers/base.py` and `domain/detection/sale_classifier.py`.

Covers:
- Exact contract object parsing, markdown fences stripped
- Anything off-contract is a ClassificationFailure
- Primary provider first, one fallback, default verdict when both fail
"""
import pytest

from salewatch.classifiers.base import MAX_VERDICT_QUANTITY, parse_verdict
from salewatch.common.errors import ClassificationFailure
from salewatch.common.schemas.sales import ClassificationVerdict, ConversationMessage, Speaker
from salewatch.domain.detection.sale_classifier import SaleClassifier
from tests.fakes import FakeProvider, failing_provider, sale_verdict


def test_parse_verdict_plain_json() -> None:
    verdict = parse_verdict("openai", '{"esVenta": true, "cantidad": 2, "ubicacion": " Depto 1201 "}')

    assert verdict == ClassificationVerdict(is_sale=True, quantity=2, location="Depto 1201")


def test_parse_verdict_strips_markdown_fences() -> None:
    text = 'Claro:\n```json\n{"esVenta": false, "cantidad": 1, "ubicacion": ""}\n```'

    verdict = parse_verdict("anthropic", text)

    assert verdict.is_sale is False
    assert verdict.quantity == 1


def test_parse_verdict_accepts_whole_float_quantity() -> None:
    verdict = parse_verdict("groq", '{"esVenta": true, "cantidad": 3.0, "ubicacion": ""}')

    assert verdict.quantity == 3


def test_parse_verdict_accepts_largest_plausible_quantity() -> None:
    verdict = parse_verdict("openai", f'{{"esVenta": true, "cantidad": {MAX_VERDICT_QUANTITY}, "ubicacion": ""}}')

    assert verdict.quantity == MAX_VERDICT_QUANTITY


@pytest.mark.parametrize(
    "text",
    [
        "no es json",
        "[]",
        '{"esVenta": "true", "cantidad": 1, "ubicacion": ""}',
        '{"esVenta": true, "cantidad": "1", "ubicacion": ""}',
        '{"esVenta": true, "cantidad": 1.5, "ubicacion": ""}',
        '{"esVenta": true, "cantidad": -1, "ubicacion": ""}',
        '{"esVenta": true, "cantidad": 1001, "ubicacion": ""}',
        '{"esVenta": true, "cantidad": 10000000000000000000, "ubicacion": ""}',
        '{"esVenta": true, "cantidad": 1}',
        '{"esVenta": true, "cantidad": 1, "ubicacion": "", "extra": 1}',
        '{"esVenta": true, "cantidad": 1, "ubicacion": null}',
    ],
)
def test_parse_verdict_rejects_off_contract_output(text) -> None:
    with pytest.raises(ClassificationFailure) as exc_info:
        parse_verdict("openai", text)

    assert exc_info.value.provider == "openai"


def _window():
    return [
        ConversationMessage(speaker=Speaker.CUSTOMER, text="Quiero 2 bidones al 1201", timestamp=1.0),
        ConversationMessage(speaker=Speaker.SELLER, text="Ok voy", timestamp=2.0),
    ]


async def test_primary_provider_answers() -> None:
    primary = FakeProvider("primary", verdict=sale_verdict(2, "1201"))
    fallback = FakeProvider("fallback")

    verdict = await SaleClassifier([primary, fallback]).classify_window(_window())

    assert verdict.is_sale is True
    assert verdict.quantity == 2
    assert fallback.prompts == []


async def test_fallback_used_when_primary_fails() -> None:
    fallback = FakeProvider("fallback", verdict=sale_verdict(1))

    verdict = await SaleClassifier([failing_provider(), fallback]).classify_window(_window())

    assert verdict.is_sale is True
    assert len(fallback.prompts) == 1


async def test_unexpected_provider_error_falls_back() -> None:
    primary = FakeProvider("primary", error=RuntimeError("connection reset"))
    fallback = FakeProvider("fallback", verdict=sale_verdict(1))

    verdict = await SaleClassifier([primary, fallback]).classify_window(_window())

    assert verdict.is_sale is True


async def test_both_providers_failing_gives_default_verdict() -> None:
    verdict = await SaleClassifier([failing_provider("a"), failing_provider("b")]).classify_window(_window())

    assert verdict == ClassificationVerdict.default()


async def test_no_providers_gives_default_verdict() -> None:
    assert await SaleClassifier([]).classify_window(_window()) == ClassificationVerdict.default()


async def test_only_two_providers_are_tried() -> None:
    third = FakeProvider("third", verdict=sale_verdict(1))

    verdict = await SaleClassifier([failing_provider("a"), failing_provider("b"), third]).classify_window(_window())

    assert verdict.is_sale is False
    assert third.prompts == []


async def test_prompt_contains_role_tagged_transcript() -> None:
    provider = FakeProvider("primary")

    await SaleClassifier([provider]).classify_window(_window())

    prompt = provider.prompts[0]
    assert "Cliente: Quiero 2 bidones al 1201\nVendedor: Ok voy" in prompt
    assert '"esVenta"' in prompt
