"""
Tests for `domain/detection/trigger_classifier.py`.
"""
import pytest

from salewatch.domain.detection.trigger_classifier import TriggerClassifier


@pytest.mark.parametrize(
    "text",
    [
        "Hola, me trae un bidón?",
        "QUIERO AGUA",
        "necesito recarga",
        "confirmado, voy",
        "al 1201 por favor",
        "depto 304",
        "1201 torre b",
        "casa #2345",
    ],
)
def test_escalates_keywords_and_implicit_orders(text) -> None:
    assert TriggerClassifier().should_escalate(text) is True


@pytest.mark.parametrize(
    "text",
    [
        "",
        "hola, cómo estás?",
        "gracias!",
        "mi número es 56912345678",
        "al 12",
        "nos vemos a las 1530",
    ],
)
def test_ignores_small_talk(text) -> None:
    assert TriggerClassifier().should_escalate(text) is False


def test_custom_keywords_replace_defaults() -> None:
    trigger = TriggerClassifier(keywords=["gas"])

    assert trigger.should_escalate("me trae gas?") is True
    assert trigger.has_keyword("quiero agua") is False
