"""
Admin Command Parser - free-text operator commands

Commands are plain chat messages starting with "!". parse_command() splits
them into a name and arguments; parse_manual_sale() handles the phone-number
heavy !rv syntax.

!rv tie-break: customers type numbers in every format ("+56 9 2208 1983",
"+1 (809) 964-6299", "+58 412-4756712"). When more than one token follows the
prefix, a final token of 1-2 digits worth at most 20 is the quantity; every
other token belongs to the number. Non-digits are then stripped.
"""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from salewatch.common.schemas.sales import ManualSaleCommand

COMMAND_PREFIX = "!"
MANUAL_SALE_PREFIX = "!rv"

# Last-token quantity heuristic
MAX_QUANTITY_DIGITS = 2
MAX_QUANTITY = 20
DEFAULT_QUANTITY = 1

# Shortest accepted customer number after stripping non-digits
MIN_CUSTOMER_ID_DIGITS = 8

_QUANTITY_TOKEN = re.compile(rf"^\d{{1,{MAX_QUANTITY_DIGITS}}}$", re.ASCII)
_NON_DIGITS = re.compile(r"\D", re.ASCII)


class CommandName(str, Enum):
    """Admin commands and the word that invokes each"""
    REPORT = "reporte"
    FINANCE = "finanzas"
    EXPORT = "excel"
    DELETE_LAST = "borrar"
    MANUAL_SALE = "rv"
    RESCAN = "scan"
    BOOTSTRAP = "bootstrap"
    HELP = "ayuda"
    CHAT_ID = "id"


@dataclass(frozen=True)
class AdminCommand:
    name: CommandName
    args: List[str] = field(default_factory=list)
    raw: str = ""


def digits_only(text: str) -> str:
    """Keep ASCII digits 0-9; full-width and other script digits are dropped"""
    return _NON_DIGITS.sub("", text)


def parse_command(text: Optional[str]) -> Optional[AdminCommand]:
    """
    Recognize an admin command.

    Returns:
        AdminCommand, or None when the text is not a known command
    """
    raw = (text or "").strip()
    if not raw.startswith(COMMAND_PREFIX):
        return None

    parts = raw[len(COMMAND_PREFIX):].split()
    if not parts:
        return None

    try:
        name = CommandName(parts[0].lower())
    except ValueError:
        return None

    return AdminCommand(name=name, args=parts[1:], raw=raw)


def parse_manual_sale(text: Optional[str]) -> Optional[ManualSaleCommand]:
    """
    Parse "!rv <number> [quantity]".

    Total function: returns None for a missing prefix, empty remainder or a
    number shorter than MIN_CUSTOMER_ID_DIGITS digits.

    Examples:
        "!rv 56912345678 2"        -> 56912345678 x2
        "!rv +56 9 2208 1983 2"    -> 56922081983 x2
        "!rv +58 412-4756712"      -> 584124756712 x1
    """
    if not text:
        return None
    if not text.lower().startswith(MANUAL_SALE_PREFIX):
        return None

    remainder = text[len(MANUAL_SALE_PREFIX):].strip()
    if not remainder:
        return None

    tokens = remainder.split()
    quantity = DEFAULT_QUANTITY
    number_tokens = tokens

    if len(tokens) > 1:
        last = tokens[-1]
        if _QUANTITY_TOKEN.match(last) and int(last) <= MAX_QUANTITY:
            quantity = int(last)
            number_tokens = tokens[:-1]

    customer_id = digits_only("".join(number_tokens))
    if len(customer_id) < MIN_CUSTOMER_ID_DIGITS:
        return None

    # "!rv 12345678 0" keeps 0 out of the ledger
    if quantity < 1:
        return None

    return ManualSaleCommand(customer_id=customer_id, quantity=quantity)
