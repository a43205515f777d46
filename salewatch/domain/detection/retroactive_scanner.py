"""
Retroactive Scanner - replays sale detection over past conversations

Used by the historical rescan and bootstrap admin commands. For each
conversation: fetch recent messages, classify the whole window in MANUAL mode,
and on acceptance append a sale dated on the seller's last message (business
timezone), not on the day the scan runs.

Conversations are processed one at a time with a random 2-5 s pause between
them to stay under the messaging platform's rate limits. A failing
conversation is logged and skipped; it never aborts the batch.
"""
import asyncio
import random
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Sequence

import structlog

from salewatch.common.business_time import BusinessCalendar
from salewatch.common.database import SessionFactory
from salewatch.common.metrics import SALES_RECORDED
from salewatch.common.platform import Conversation, MessagingPlatform
from salewatch.common.sales_repository import SalesLedger
from salewatch.common.schemas.sales import ConversationMessage, SaleSource, Speaker
from salewatch.domain.detection.context_window import ContextWindowBuilder
from salewatch.domain.detection.safety_filter import SafetyFilter, TriggerMode
from salewatch.domain.detection.sale_classifier import SaleClassifier

logger = structlog.get_logger()

SECONDS_PER_DAY = 86400


@dataclass
class ScanReport:
    """Running totals of a scan"""
    total: int = 0
    analyzed: int = 0
    sales_found: int = 0
    skipped: int = 0
    failed: int = 0
    sale_ids: List[int] = field(default_factory=list)


ProgressCallback = Callable[[ScanReport], Awaitable[None]]


def recent_private_conversations(
    conversations: Sequence[Conversation],
    lookback_days: int = 10,
    now: Optional[float] = None,
) -> List[Conversation]:
    """Private chats with activity in the last `lookback_days` days"""
    cutoff = (now if now is not None else time.time()) - lookback_days * SECONDS_PER_DAY
    return [c for c in conversations if not c.is_group and c.last_activity >= cutoff]


class RetroactiveScanner:
    """Serial, throttled batch classifier over historical conversations"""

    def __init__(
        self,
        platform: MessagingPlatform,
        session_factory: SessionFactory,
        ledger: SalesLedger,
        window_builder: ContextWindowBuilder,
        classifier: SaleClassifier,
        safety_filter: SafetyFilter,
        calendar: BusinessCalendar,
        message_limit: int = 50,
        delay_range: tuple = (2.0, 5.0),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.platform = platform
        self.session_factory = session_factory
        self.ledger = ledger
        self.window_builder = window_builder
        self.classifier = classifier
        self.safety_filter = safety_filter
        self.calendar = calendar
        self.message_limit = message_limit
        self.delay_range = delay_range
        self._sleep = sleep

    async def scan(
        self,
        conversations: Sequence[Conversation],
        progress: Optional[ProgressCallback] = None,
    ) -> ScanReport:
        """
        Scan conversations in order.

        Args:
            conversations: Chats to scan (caller pre-filters by recent activity)
            progress: Awaited after each conversation with the running report

        Returns:
            Final ScanReport
        """
        report = ScanReport(total=len(conversations))
        logger.info("retroactive_scan_started", conversations=report.total)

        for index, conversation in enumerate(conversations):
            if index > 0:
                await self._sleep(random.uniform(*self.delay_range))

            try:
                sale_id = await self.scan_conversation(conversation)
            except Exception as e:
                report.failed += 1
                logger.error("retroactive_scan_conversation_failed",
                             conversation_id=conversation.id,
                             conversation=conversation.name,
                             error=str(e),
                             exc_info=True)
            else:
                report.analyzed += 1
                if sale_id is None:
                    report.skipped += 1
                else:
                    report.sales_found += 1
                    report.sale_ids.append(sale_id)

            if progress is not None:
                try:
                    await progress(report)
                except Exception as e:
                    logger.warning("retroactive_scan_progress_failed", error=str(e))

        logger.info("retroactive_scan_complete",
                    analyzed=report.analyzed,
                    sales_found=report.sales_found,
                    failed=report.failed)
        return report

    async def scan_conversation(self, conversation: Conversation) -> Optional[int]:
        """
        Classify one conversation and record its sale if accepted.

        Returns:
            New sale id, or None when nothing was recorded
        """
        log = logger.bind(conversation_id=conversation.id, conversation=conversation.name)

        messages = await self.platform.fetch_messages(conversation.id, self.message_limit)
        window = self.window_builder.assemble(messages, self.message_limit)

        if not any(m.text.strip() for m in window):
            log.debug("retroactive_scan_skipped", reason="no_text")
            return None

        verdict = await self.classifier.classify_window(window)
        decision = self.safety_filter.evaluate(verdict, window, TriggerMode.MANUAL)
        if not decision.accepted:
            log.debug("retroactive_scan_no_sale", reason=decision.reason)
            return None

        confirmation = _last_seller_message(window)
        sale_date = self.calendar.date_of_timestamp(confirmation.timestamp)
        customer_id = conversation.customer_id or conversation.id
        customer_name = conversation.name or customer_id
        quantity = max(1, verdict.quantity)

        async with self.session_factory() as db:
            if await self.ledger.exists(db, customer_id, sale_date):
                log.info("retroactive_sale_already_recorded", customer_id=customer_id, date=sale_date)
                return None

            address = verdict.location or await self.ledger.last_address(db, customer_id)
            sale_id = await self.ledger.append(
                db,
                customer_name=customer_name,
                customer_id=customer_id,
                quantity=quantity,
                address=address,
                date=sale_date,
            )

        SALES_RECORDED.labels(source=SaleSource.RETROACTIVE.value).inc()
        log.info("sale_recorded",
                 source=SaleSource.RETROACTIVE.value,
                 sale_id=sale_id,
                 customer_id=customer_id,
                 date=sale_date,
                 quantity=quantity)
        return sale_id


def _last_seller_message(window: Sequence[ConversationMessage]) -> ConversationMessage:
    for message in reversed(window):
        if message.speaker is Speaker.SELLER:
            return message
    raise ValueError("window has no seller message")
