"""
Sale Detection Pipeline - live message handling

Flow (each stage returns a StageOutcome: PROCEED / SKIP / ERROR):
1. Prepare: transcribe voice notes (cached by message id)
2. Trigger: cheap keyword / structure pre-filter
3. Window: last N speaker-tagged messages
4. Classify: LLM verdict with provider fallback (never fails)
5. Filter: safety rules (seller confirmed last, seller-authored trigger)
6. Append: write to the ledger

Group chats do not go through sale detection; keyword hits there raise an
order alert to the configured destination instead.

Known gap: no per-conversation serialization. Two rapid triggers on the same
chat can both pass the filter and both append.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Sequence

import structlog

from salewatch.common.database import SessionFactory
from salewatch.common.errors import StoreFailure
from salewatch.common.metrics import SALES_RECORDED, TRIGGER_EVALUATIONS
from salewatch.common.platform import ChatMessage, Conversation, MessagingPlatform
from salewatch.common.sales_repository import SalesLedger
from salewatch.common.schemas.sales import ClassificationVerdict, ConversationMessage, SaleSource, Speaker
from salewatch.common.transcription_cache import TranscriptionCache
from salewatch.domain.detection.context_window import ContextWindowBuilder
from salewatch.domain.detection.safety_filter import SafetyFilter, TriggerMode
from salewatch.domain.detection.sale_classifier import SaleClassifier
from salewatch.domain.detection.transcriber import WhisperTranscriber
from salewatch.domain.detection.trigger_classifier import TriggerClassifier

logger = structlog.get_logger()


class OutcomeStatus(str, Enum):
    PROCEED = "proceed"
    SKIP = "skip"
    ERROR = "error"


@dataclass(frozen=True)
class StageOutcome:
    """Tagged result of one pipeline stage"""
    stage: str
    status: OutcomeStatus
    reason: str = ""
    value: Any = None

    @property
    def proceed(self) -> bool:
        return self.status is OutcomeStatus.PROCEED


@dataclass
class PipelineResult:
    """Final stage outcome plus what the run produced"""
    outcome: StageOutcome
    verdict: Optional[ClassificationVerdict] = None
    sale_id: Optional[int] = None
    window: List[ConversationMessage] = field(default_factory=list)

    @property
    def recorded(self) -> bool:
        return self.sale_id is not None


def format_group_alert(conversation: Conversation, message: ChatMessage) -> str:
    """Order alert for keyword hits in group chats"""
    person = message.author_name or message.author_id or "desconocido"
    link = f"https://wa.me/{message.author_id}" if message.author_id else ""
    text = (
        "🚨 *ALERTA DE PEDIDO* 🚨\n\n"
        f"👥 *Grupo:* {conversation.name}\n"
        f"👤 *Persona:* {person}\n"
        f"💬 *Mensaje:* {message.body}\n"
    )
    if link:
        text += f"\n🔗 *Ir al Chat:* {link}"
    return text


class SaleDetectionPipeline:
    """
    Orchestrates trigger -> window -> classify -> filter -> append for live messages.

    Usage:
        pipeline = SaleDetectionPipeline(platform=..., session_factory=sessionmanager.session, ...)
        result = await pipeline.handle_message(message, conversation)
    """

    def __init__(
        self,
        platform: MessagingPlatform,
        session_factory: SessionFactory,
        ledger: SalesLedger,
        trigger: TriggerClassifier,
        window_builder: ContextWindowBuilder,
        classifier: SaleClassifier,
        safety_filter: SafetyFilter,
        cache: TranscriptionCache,
        transcriber: Optional[WhisperTranscriber] = None,
        alert_destination: Optional[str] = None,
        group_alert_keywords: Sequence[str] = (),
    ):
        self.platform = platform
        self.session_factory = session_factory
        self.ledger = ledger
        self.trigger = trigger
        self.window_builder = window_builder
        self.classifier = classifier
        self.safety_filter = safety_filter
        self.cache = cache
        self.transcriber = transcriber
        self.alert_destination = alert_destination
        self.group_alert_keywords = tuple(k.lower() for k in group_alert_keywords)

    async def handle_message(self, message: ChatMessage, conversation: Conversation) -> PipelineResult:
        """Run every stage for one incoming message"""
        log = logger.bind(conversation_id=conversation.id, message_id=message.id)

        if conversation.is_group:
            result = PipelineResult(outcome=await self.stage_group_alert(message, conversation))
            TRIGGER_EVALUATIONS.labels(outcome=result.outcome.reason).inc()
            return result

        text = await self.stage_prepare(message)

        outcome = self.stage_trigger(text)
        if not outcome.proceed:
            return self._finish(PipelineResult(outcome=outcome))

        log.info("sale_trigger_detected", conversation=conversation.name, from_me=message.from_me)

        outcome = await self.stage_window(conversation, message)
        if not outcome.proceed:
            return self._finish(PipelineResult(outcome=outcome))
        window: List[ConversationMessage] = outcome.value

        outcome = await self.stage_classify(window)
        verdict: ClassificationVerdict = outcome.value

        trigger_speaker = Speaker.SELLER if message.from_me else Speaker.CUSTOMER
        outcome = self.stage_filter(verdict, window, trigger_speaker)
        if not outcome.proceed:
            log.info("sale_rejected", reason=outcome.reason, is_sale=verdict.is_sale)
            return self._finish(PipelineResult(outcome=outcome, verdict=verdict, window=window))

        outcome = await self.stage_append(conversation, verdict)
        return self._finish(PipelineResult(
            outcome=outcome,
            verdict=verdict,
            window=window,
            sale_id=outcome.value if outcome.proceed else None,
        ))

    def _finish(self, result: PipelineResult) -> PipelineResult:
        label = "recorded" if result.recorded else f"{result.outcome.stage}_{result.outcome.status.value}"
        TRIGGER_EVALUATIONS.labels(outcome=label).inc()
        return result

    # ---- stages -------------------------------------------------------------------------

    async def stage_prepare(self, message: ChatMessage) -> str:
        """Lowercase text to test; voice notes are transcribed and cached"""
        if not message.is_audio:
            return (message.body or "").lower()

        cached = self.cache.get(message.id)
        if cached is not None:
            return cached.lower()

        if self.transcriber is None or not self.transcriber.enabled:
            return (message.body or "").lower()

        try:
            path = await self.platform.download_audio(message)
        except Exception as e:
            logger.warning("audio_download_failed", message_id=message.id, error=str(e))
            path = None

        if path is None:
            return (message.body or "").lower()

        text = await self.transcriber.transcribe(path)
        if text:
            self.cache.put(message.id, text)
            logger.info("audio_transcribed", message_id=message.id, chars=len(text))
        return (text or message.body or "").lower()

    def stage_trigger(self, text: str) -> StageOutcome:
        if self.trigger.should_escalate(text):
            return StageOutcome("trigger", OutcomeStatus.PROCEED)
        return StageOutcome("trigger", OutcomeStatus.SKIP, "no_trigger")

    async def stage_window(self, conversation: Conversation, message: ChatMessage) -> StageOutcome:
        try:
            window = await self.window_builder.build(conversation, trigger=message)
        except Exception as e:
            logger.error("window_fetch_failed", conversation_id=conversation.id, error=str(e), exc_info=True)
            return StageOutcome("window", OutcomeStatus.ERROR, "fetch_failed")

        if not window:
            return StageOutcome("window", OutcomeStatus.SKIP, "empty_window")
        return StageOutcome("window", OutcomeStatus.PROCEED, value=window)

    async def stage_classify(self, window: List[ConversationMessage]) -> StageOutcome:
        verdict = await self.classifier.classify_window(window)
        return StageOutcome("classify", OutcomeStatus.PROCEED, value=verdict)

    def stage_filter(
        self,
        verdict: ClassificationVerdict,
        window: List[ConversationMessage],
        trigger_speaker: Speaker,
    ) -> StageOutcome:
        decision = self.safety_filter.evaluate(verdict, window, TriggerMode.AUTOMATIC, trigger_speaker)
        status = OutcomeStatus.PROCEED if decision.accepted else OutcomeStatus.SKIP
        return StageOutcome("filter", status, decision.reason)

    async def stage_append(self, conversation: Conversation, verdict: ClassificationVerdict) -> StageOutcome:
        customer_id = conversation.customer_id or conversation.id
        customer_name = conversation.name or customer_id
        quantity = max(1, verdict.quantity)

        try:
            async with self.session_factory() as db:
                address = verdict.location or await self.ledger.last_address(db, customer_id)
                sale_id = await self.ledger.append(
                    db,
                    customer_name=customer_name,
                    customer_id=customer_id,
                    quantity=quantity,
                    address=address,
                )
        except StoreFailure as e:
            logger.error("sale_append_failed", conversation_id=conversation.id, error=str(e))
            return StageOutcome("append", OutcomeStatus.ERROR, "store_failure")

        SALES_RECORDED.labels(source=SaleSource.AUTO.value).inc()
        logger.info("sale_recorded",
                    source=SaleSource.AUTO.value,
                    sale_id=sale_id,
                    customer=customer_name,
                    customer_id=customer_id,
                    quantity=quantity)
        return StageOutcome("append", OutcomeStatus.PROCEED, "recorded", value=sale_id)

    async def stage_group_alert(self, message: ChatMessage, conversation: Conversation) -> StageOutcome:
        if not self.alert_destination or conversation.id == self.alert_destination:
            return StageOutcome("group_alert", OutcomeStatus.SKIP, "alert_destination_chat")

        text = (message.body or "").lower()
        if not any(keyword in text for keyword in self.group_alert_keywords):
            return StageOutcome("group_alert", OutcomeStatus.SKIP, "no_keyword")

        try:
            await self.platform.send_message(self.alert_destination, format_group_alert(conversation, message))
        except Exception as e:
            logger.error("group_alert_failed", group=conversation.name, error=str(e))
            return StageOutcome("group_alert", OutcomeStatus.ERROR, "send_failed")

        logger.info("group_alert_sent", group=conversation.name)
        return StageOutcome("group_alert", OutcomeStatus.PROCEED, "alert_sent")
