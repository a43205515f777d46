"""
Sales bot runtime - wires the detection pipeline, admin commands and reports

The chat client adapter owns the connection to the messaging platform and
calls `on_message` for every incoming / outgoing message. A scheduler calls
`send_follow_up_reports` once a day at `daily_report_time` (DAILY_REPORT_TIME,
business timezone).

Usage:
    bot = SalesBot.from_settings(platform, exporter=xlsx_exporter)
    await bot.start()
    ...
    await bot.on_message(message, conversation)
    ...
    await bot.stop()
"""
from datetime import time
from typing import Optional, Union

import structlog

from salewatch.classifiers import build_providers
from salewatch.common.business_time import BusinessCalendar
from salewatch.common.config import Settings, get_settings
from salewatch.common.database import DatabaseSessionManager, sessionmanager
from salewatch.common.platform import ChatMessage, Conversation, MessagingPlatform, SpreadsheetExporter
from salewatch.common.sales_repository import SalesLedger
from salewatch.common.transcription_cache import TranscriptionCache
from salewatch.domain.commands.admin_commands import AdminCommandHandler, CommandReply
from salewatch.domain.detection import (
    ContextWindowBuilder,
    PipelineResult,
    RetroactiveScanner,
    SafetyFilter,
    SaleClassifier,
    SaleDetectionPipeline,
    TriggerClassifier,
    WhisperTranscriber,
)
from salewatch.domain.reports.sales_reports import SalesReporter
from salewatch.parsers.command_parser import COMMAND_PREFIX

logger = structlog.get_logger()


class SalesBot:
    """Routes chat messages to admin commands or sale detection"""

    def __init__(
        self,
        settings: Settings,
        platform: MessagingPlatform,
        pipeline: SaleDetectionPipeline,
        commands: AdminCommandHandler,
        reporter: SalesReporter,
        db: DatabaseSessionManager,
    ):
        self.settings = settings
        self.platform = platform
        self.pipeline = pipeline
        self.commands = commands
        self.reporter = reporter
        self.db = db

    @classmethod
    def from_settings(
        cls,
        platform: MessagingPlatform,
        settings: Optional[Settings] = None,
        exporter: Optional[SpreadsheetExporter] = None,
        db: Optional[DatabaseSessionManager] = None,
        calendar: Optional[BusinessCalendar] = None,
        classifier: Optional[SaleClassifier] = None,
        transcriber: Optional[WhisperTranscriber] = None,
    ) -> "SalesBot":
        """Build every component from configuration"""
        settings = settings or get_settings()
        db = db or sessionmanager
        calendar = calendar or BusinessCalendar(settings.business_timezone)

        cache = TranscriptionCache(settings.transcription_cache_size)
        ledger = SalesLedger(calendar, unit_price=settings.unit_price_clp)
        window_builder = ContextWindowBuilder(platform, cache, settings.context_window_size)
        classifier = classifier or SaleClassifier(build_providers(settings))
        safety_filter = SafetyFilter()

        if transcriber is None and settings.groq_api_key:
            transcriber = WhisperTranscriber(
                api_key=settings.groq_api_key,
                model=settings.groq_transcription_model,
                base_url=settings.groq_base_url,
            )

        pipeline = SaleDetectionPipeline(
            platform=platform,
            session_factory=db.session,
            ledger=ledger,
            trigger=TriggerClassifier(settings.trigger_keyword_list),
            window_builder=window_builder,
            classifier=classifier,
            safety_filter=safety_filter,
            cache=cache,
            transcriber=transcriber,
            alert_destination=settings.alert_destination,
            group_alert_keywords=settings.group_alert_keyword_list,
        )

        scanner = RetroactiveScanner(
            platform=platform,
            session_factory=db.session,
            ledger=ledger,
            window_builder=window_builder,
            classifier=classifier,
            safety_filter=safety_filter,
            calendar=calendar,
            message_limit=settings.scan_message_limit,
            delay_range=(settings.scan_delay_min_seconds, settings.scan_delay_max_seconds),
        )

        reporter = SalesReporter(
            ledger,
            db.session,
            reminder_days=settings.follow_up_reminder_days,
            range_min_days=settings.follow_up_range_min_days,
            range_max_days=settings.follow_up_range_max_days,
        )

        commands = AdminCommandHandler(
            platform=platform,
            session_factory=db.session,
            ledger=ledger,
            reporter=reporter,
            scanner=scanner,
            calendar=calendar,
            alert_destination=settings.alert_destination,
            exporter=exporter,
            lookback_days=settings.scan_lookback_days,
        )

        return cls(settings, platform, pipeline, commands, reporter, db)

    async def start(self) -> None:
        await self.db.init(self.settings.database_url, echo=self.settings.sql_echo)
        logger.info("sales_bot_started",
                    environment=self.settings.environment,
                    alert_destination=self.settings.alert_destination,
                    providers=[p.name for p in self.pipeline.classifier.providers])

    async def stop(self) -> None:
        await self.db.close()
        logger.info("sales_bot_stopped")

    async def on_message(
        self,
        message: ChatMessage,
        conversation: Conversation,
    ) -> Union[CommandReply, PipelineResult, None]:
        """
        Handle one message from the platform.

        Seller-authored "!" messages in private chats are admin commands and
        never reach sale detection. The reply, if any, is sent back to the
        same chat.
        """
        body = (message.body or "").strip()
        if message.from_me and not conversation.is_group and body.startswith(COMMAND_PREFIX):
            reply = await self.commands.handle(message, conversation)
            if reply is not None:
                await self.platform.send_message(conversation.id, reply.text)
            return reply

        try:
            return await self.pipeline.handle_message(message, conversation)
        except Exception as e:
            logger.error("message_handling_failed",
                         conversation_id=conversation.id,
                         message_id=message.id,
                         error=str(e),
                         exc_info=True)
            return None

    @property
    def daily_report_time(self) -> time:
        """When the scheduler should run `send_follow_up_reports`"""
        return self.settings.daily_report_clock

    async def send_follow_up_reports(self) -> int:
        """Daily job entry point"""
        return await self.reporter.send_follow_up_reports(self.platform, self.settings.alert_destination)
