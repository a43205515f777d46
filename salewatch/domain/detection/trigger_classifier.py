"""
Trigger Classifier - cheap pre-filter before the LLM

A message is worth escalating when it mentions a domain keyword (product
nouns, request/confirmation words) or looks like an implicit order: a 3-4
digit apartment/house number next to an address or unit token
("al 1201", "depto 304", "1201 torre b").

Tuned for recall: a false positive costs one classifier call, a false
negative loses a sale.
"""
import re
from typing import Iterable, Optional, Sequence

DEFAULT_KEYWORDS: Sequence[str] = (
    # products
    "agua", "bidon", "bidón", "recarga", "botellon", "botellón",
    # requests / confirmations
    "pedido", "quiero", "necesito", "traer", "confirmado", "listo",
)

ADDRESS_TOKENS: Sequence[str] = (
    "al", "depto", "dpto", "dto", "departamento", "casa", "torre", "block",
    "piso", "of", "oficina", "numero", "número", "nro", "n°", "nº", "#",
)


def _build_order_pattern(tokens: Iterable[str]) -> re.Pattern:
    alternatives = "|".join(re.escape(t) for t in sorted(tokens, key=len, reverse=True))
    # token then number, or number then token
    return re.compile(
        rf"(?:(?<!\w)(?:{alternatives})\.?\s*(?<!\d)\d{{3,4}}(?!\d))"
        rf"|(?:(?<!\d)\d{{3,4}}(?!\d)\s*(?:{alternatives})(?!\w))"
    )


class TriggerClassifier:
    """Pure keyword / structure test over normalized message text"""

    def __init__(self, keywords: Optional[Iterable[str]] = None, address_tokens: Optional[Iterable[str]] = None):
        self.keywords = tuple(k.lower() for k in (keywords or DEFAULT_KEYWORDS))
        self._order_pattern = _build_order_pattern(address_tokens or ADDRESS_TOKENS)

    def has_keyword(self, text: str) -> bool:
        return any(keyword in text for keyword in self.keywords)

    def looks_like_order(self, text: str) -> bool:
        return self._order_pattern.search(text) is not None

    def should_escalate(self, text: str) -> bool:
        """True when `text` (lowercase) deserves a full classification"""
        if not text:
            return False
        normalized = text.lower()
        return self.has_keyword(normalized) or self.looks_like_order(normalized)
