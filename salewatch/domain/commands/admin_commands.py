"""
Admin Commands - operator corrections and reports over chat

Only seller-authored messages in private chats are treated as commands.
Every command maps to one ledger / pipeline operation and answers with a
single human-readable reply:

    !reporte            send today's follow-up lists to the alert destination
    !finanzas           financial summary + top customers
    !excel              monthly sales spreadsheet
    !borrar [numero]    delete the last sale (optionally for one customer)
    !rv numero [cant]   register a sale by hand
    !scan               rescan this chat's recent history
    !bootstrap          rescan every private chat active in the last days
    !ayuda              help
    !id                 show this chat's id

Store and platform failures become a failure reply; malformed input becomes
a usage reply with no side effects.
"""
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

import structlog

from salewatch.common.business_time import BusinessCalendar
from salewatch.common.database import SessionFactory
from salewatch.common.errors import InputFormatError, StoreFailure
from salewatch.common.metrics import SALES_RECORDED
from salewatch.common.platform import ChatMessage, Conversation, MessagingPlatform, SpreadsheetExporter
from salewatch.common.sales_repository import SalesLedger
from salewatch.common.schemas.sales import SaleSource
from salewatch.domain.detection.retroactive_scanner import (
    RetroactiveScanner,
    ScanReport,
    recent_private_conversations,
)
from salewatch.domain.reports.sales_reports import SalesReporter, format_clp
from salewatch.parsers.command_parser import (
    MIN_CUSTOMER_ID_DIGITS,
    AdminCommand,
    CommandName,
    digits_only,
    parse_command,
    parse_manual_sale,
)

logger = structlog.get_logger()

MANUAL_SALE_USAGE = "Uso: !rv <número> [cantidad]\nEj: !rv +56 9 1234 5678 2"
DELETE_USAGE = "Uso: !borrar  ó  !borrar <número>"

# Bootstrap progress message every N conversations
BOOTSTRAP_PROGRESS_EVERY = 10

HELP_TEXT = (
    "🤖 *COMANDOS*\n\n"
    "!reporte - Enviar seguimiento de clientes\n"
    "!finanzas - Resumen de ventas\n"
    "!excel - Planilla de ventas del mes\n"
    "!borrar - Borrar la última venta\n"
    "!borrar <número> - Borrar la última venta de un cliente\n"
    "!rv <número> [cantidad] - Registrar venta manual\n"
    "!scan - Buscar ventas en este chat\n"
    "!bootstrap - Buscar ventas en todos los chats recientes\n"
    "!id - Ver el id de este chat\n"
    "!ayuda - Esta ayuda"
)


@dataclass(frozen=True)
class CommandReply:
    command: CommandName
    text: str
    ok: bool = True


class AdminCommandHandler:
    """Dispatches parsed admin commands to ledger, reports and scanner"""

    def __init__(
        self,
        platform: MessagingPlatform,
        session_factory: SessionFactory,
        ledger: SalesLedger,
        reporter: SalesReporter,
        scanner: RetroactiveScanner,
        calendar: BusinessCalendar,
        alert_destination: str,
        exporter: Optional[SpreadsheetExporter] = None,
        lookback_days: int = 10,
    ):
        self.platform = platform
        self.session_factory = session_factory
        self.ledger = ledger
        self.reporter = reporter
        self.scanner = scanner
        self.calendar = calendar
        self.alert_destination = alert_destination
        self.exporter = exporter
        self.lookback_days = lookback_days

        self._handlers: Dict[CommandName, Callable[[AdminCommand, Conversation], Awaitable[str]]] = {
            CommandName.REPORT: self._report,
            CommandName.FINANCE: self._finance,
            CommandName.EXPORT: self._export,
            CommandName.DELETE_LAST: self._delete_last,
            CommandName.MANUAL_SALE: self._manual_sale,
            CommandName.RESCAN: self._rescan,
            CommandName.BOOTSTRAP: self._bootstrap,
            CommandName.HELP: self._help,
            CommandName.CHAT_ID: self._chat_id,
        }

    async def handle(self, message: ChatMessage, conversation: Conversation) -> Optional[CommandReply]:
        """
        Run the command in `message`, if it is one.

        Returns:
            CommandReply, or None when the message is not an admin command
        """
        if conversation.is_group or not message.from_me:
            return None

        command = parse_command(message.body)
        if command is None:
            return None

        log = logger.bind(command=command.name.value, conversation_id=conversation.id)
        log.info("admin_command_received", args=command.args)

        try:
            text = await self._handlers[command.name](command, conversation)
        except InputFormatError as e:
            log.info("admin_command_rejected", error=str(e))
            return CommandReply(command.name, f"⚠️ {e}\n{e.usage}".rstrip(), ok=False)
        except StoreFailure as e:
            log.error("admin_command_store_failure", error=str(e))
            return CommandReply(command.name, "❌ No se pudo acceder a la base de datos. Intenta de nuevo.", ok=False)
        except Exception as e:
            log.error("admin_command_failed", error=str(e), exc_info=True)
            return CommandReply(command.name, f"❌ El comando !{command.name.value} falló. Intenta de nuevo.", ok=False)

        return CommandReply(command.name, text)

    # ---- commands -----------------------------------------------------------------------

    async def _report(self, command: AdminCommand, conversation: Conversation) -> str:
        sent = await self.reporter.send_follow_up_reports(self.platform, self.alert_destination)
        if sent == 0:
            return "📭 No hay clientes para seguimiento hoy."
        return f"✅ Reporte de seguimiento enviado ({sent} mensajes)."

    async def _finance(self, command: AdminCommand, conversation: Conversation) -> str:
        return await self.reporter.finance_report()

    async def _export(self, command: AdminCommand, conversation: Conversation) -> str:
        if self.exporter is None:
            return "⚠️ La exportación de planillas no está configurada."

        async with self.session_factory() as db:
            rows = await self.ledger.monthly_sales_detail(db)

        if not rows:
            return "📭 No hay ventas registradas este mes."

        path = await self.exporter.export(rows)
        total = sum(r.total_amount for r in rows)
        await self.platform.send_file(conversation.id, path, caption=f"📊 Ventas del mes ({len(rows)})")
        logger.info("monthly_export_sent", rows=len(rows), file=str(path))
        return f"📊 Planilla enviada: {len(rows)} ventas, {format_clp(total)}."

    async def _delete_last(self, command: AdminCommand, conversation: Conversation) -> str:
        if not command.args:
            async with self.session_factory() as db:
                removed = await self.ledger.delete_last(db)
            return "🗑️ Última venta eliminada." if removed else "📭 No hay ventas para borrar."

        customer_id = digits_only("".join(command.args))
        if len(customer_id) < MIN_CUSTOMER_ID_DIGITS:
            raise InputFormatError("Número inválido.", DELETE_USAGE)

        async with self.session_factory() as db:
            removed = await self.ledger.delete_last_for(db, customer_id)
        if removed:
            return f"🗑️ Última venta de {customer_id} eliminada."
        return f"📭 No hay ventas registradas para {customer_id}."

    async def _manual_sale(self, command: AdminCommand, conversation: Conversation) -> str:
        parsed = parse_manual_sale(command.raw)
        if parsed is None:
            raise InputFormatError("Formato inválido.", MANUAL_SALE_USAGE)

        today = self.calendar.today_str()
        customer_name = await self._resolve_name(parsed.customer_id)

        async with self.session_factory() as db:
            if await self.ledger.exists(db, parsed.customer_id, today):
                return f"⚠️ Ya hay una venta registrada hoy para {customer_name} ({parsed.customer_id})."

            address = await self.ledger.last_address(db, parsed.customer_id)
            sale_id = await self.ledger.append(
                db,
                customer_name=customer_name,
                customer_id=parsed.customer_id,
                quantity=parsed.quantity,
                address=address,
                date=today,
            )

        SALES_RECORDED.labels(source=SaleSource.MANUAL.value).inc()
        logger.info("sale_recorded",
                    source=SaleSource.MANUAL.value,
                    sale_id=sale_id,
                    customer_id=parsed.customer_id,
                    quantity=parsed.quantity)

        total = parsed.quantity * self.ledger.unit_price
        reply = f"✅ Venta registrada: {customer_name} x{parsed.quantity} ({format_clp(total)})"
        if address:
            reply += f"\n📍 {address}"
        return reply

    async def _rescan(self, command: AdminCommand, conversation: Conversation) -> str:
        await self.platform.send_message(conversation.id, "⏳ Escaneando mensajes recientes para buscar ventas pasadas...")
        sale_id = await self.scanner.scan_conversation(conversation)
        if sale_id is None:
            return "No se detectaron ventas nuevas en los últimos mensajes."
        return "✅ Venta histórica detectada y guardada."

    async def _bootstrap(self, command: AdminCommand, conversation: Conversation) -> str:
        conversations = recent_private_conversations(
            await self.platform.list_conversations(),
            lookback_days=self.lookback_days,
            now=self.calendar.now().timestamp(),
        )
        await self.platform.send_message(
            conversation.id,
            f"⏳ Analizando {len(conversations)} chats con actividad en los últimos {self.lookback_days} días...",
        )

        async def progress(report: ScanReport) -> None:
            done = report.analyzed + report.failed
            if done % BOOTSTRAP_PROGRESS_EVERY == 0 and done < report.total:
                await self.platform.send_message(
                    conversation.id,
                    f"🔎 {done}/{report.total} chats analizados, {report.sales_found} ventas encontradas.",
                )

        report = await self.scanner.scan(conversations, progress=progress)
        text = f"✅ Escaneo completo: {report.analyzed} chats analizados, {report.sales_found} ventas registradas."
        if report.failed:
            text += f"\n⚠️ {report.failed} chats no se pudieron analizar."
        return text

    async def _help(self, command: AdminCommand, conversation: Conversation) -> str:
        return HELP_TEXT

    async def _chat_id(self, command: AdminCommand, conversation: Conversation) -> str:
        return f"🆔 {conversation.id}"

    async def _resolve_name(self, customer_id: str) -> str:
        try:
            name = await self.platform.contact_name(customer_id)
        except Exception as e:
            logger.warning("contact_lookup_failed", customer_id=customer_id, error=str(e))
            name = None
        return name or customer_id
