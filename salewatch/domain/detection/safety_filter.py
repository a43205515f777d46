"""
Safety Filter - single authority on whether a verdict may reach the ledger

The classifier's opinion is necessary but never sufficient. A verdict is
accepted only when:
1. verdict.is_sale is true
2. the chronologically last window message is from the seller
3. for automatic triggers, the triggering message was authored by the seller

Manual evaluations (operator-requested scans) skip rule 3.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from salewatch.common.schemas.sales import ClassificationVerdict, ConversationMessage, Speaker


class TriggerMode(str, Enum):
    AUTOMATIC = "automatic"
    MANUAL = "manual"


@dataclass(frozen=True)
class FilterDecision:
    accepted: bool
    reason: str


class SafetyFilter:
    """Pure correctness gate between SaleClassifier and SalesLedger"""

    def evaluate(
        self,
        verdict: ClassificationVerdict,
        window: Sequence[ConversationMessage],
        mode: TriggerMode = TriggerMode.AUTOMATIC,
        trigger_speaker: Optional[Speaker] = None,
    ) -> FilterDecision:
        """
        Decide whether a verdict can be written.

        Args:
            verdict: Raw classifier output
            window: Chronologically ordered messages that were classified
            mode: AUTOMATIC (live message) or MANUAL (operator scan)
            trigger_speaker: Author of the triggering message (AUTOMATIC only)
        """
        if not verdict.is_sale:
            return FilterDecision(False, "verdict_not_sale")

        if not window:
            return FilterDecision(False, "empty_window")

        if window[-1].speaker is not Speaker.SELLER:
            return FilterDecision(False, "last_message_from_customer")

        if mode is TriggerMode.AUTOMATIC and trigger_speaker is not Speaker.SELLER:
            return FilterDecision(False, "trigger_not_from_seller")

        return FilterDecision(True, "accepted")
