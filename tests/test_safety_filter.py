"""
Tests for `domain/detection/safety_filter.py`.

Covers:
- A window whose last message is from the customer is never accepted,
  whatever the verdict says
- Automatic triggers must come from the seller; manual scans skip that rule
- Non-sale verdicts and empty windows are rejected
"""
from itertools import product

import pytest

from salewatch.common.schemas.sales import ClassificationVerdict, ConversationMessage, Speaker
from salewatch.domain.detection.safety_filter import SafetyFilter, TriggerMode


def window_of(*speakers: Speaker):
    return [
        ConversationMessage(speaker=s, text=f"mensaje {i}", timestamp=1_700_000_000 + i)
        for i, s in enumerate(speakers)
    ]


SALE = ClassificationVerdict(is_sale=True, quantity=2, location="1201")


@pytest.mark.parametrize("length", [1, 2, 3, 4, 5])
def test_window_ending_with_customer_is_always_rejected(length) -> None:
    safety = SafetyFilter()

    for prefix in product([Speaker.SELLER, Speaker.CUSTOMER], repeat=length - 1):
        window = window_of(*prefix, Speaker.CUSTOMER)
        for mode in TriggerMode:
            for trigger in (Speaker.SELLER, Speaker.CUSTOMER, None):
                decision = safety.evaluate(SALE, window, mode, trigger)
                assert decision.accepted is False
                assert decision.reason == "last_message_from_customer"


def test_seller_confirmation_with_seller_trigger_is_accepted() -> None:
    window = window_of(Speaker.CUSTOMER, Speaker.SELLER)

    decision = SafetyFilter().evaluate(SALE, window, TriggerMode.AUTOMATIC, Speaker.SELLER)

    assert decision.accepted is True
    assert decision.reason == "accepted"


def test_automatic_trigger_from_customer_is_rejected() -> None:
    window = window_of(Speaker.CUSTOMER, Speaker.SELLER)

    decision = SafetyFilter().evaluate(SALE, window, TriggerMode.AUTOMATIC, Speaker.CUSTOMER)

    assert decision.accepted is False
    assert decision.reason == "trigger_not_from_seller"


def test_manual_mode_ignores_trigger_author() -> None:
    window = window_of(Speaker.CUSTOMER, Speaker.SELLER)

    decision = SafetyFilter().evaluate(SALE, window, TriggerMode.MANUAL)

    assert decision.accepted is True


def test_non_sale_verdict_is_rejected() -> None:
    window = window_of(Speaker.CUSTOMER, Speaker.SELLER)

    decision = SafetyFilter().evaluate(ClassificationVerdict.default(), window, TriggerMode.MANUAL)

    assert decision.accepted is False
    assert decision.reason == "verdict_not_sale"


def test_empty_window_is_rejected() -> None:
    decision = SafetyFilter().evaluate(SALE, [], TriggerMode.MANUAL)

    assert decision.accepted is False
    assert decision.reason == "empty_window"
