"""
Sales ledger and detection schemas (Pydantic models)
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Speaker(str, Enum):
    """Who authored a message in a private conversation"""
    SELLER = "seller"
    CUSTOMER = "customer"

    @property
    def label(self) -> str:
        """Role tag used in classifier transcripts"""
        return "Vendedor" if self is Speaker.SELLER else "Cliente"


class SaleSource(str, Enum):
    """How a sale reached the ledger"""
    AUTO = "auto"              # Live message classified as a closed sale
    MANUAL = "manual"          # !rv command
    RETROACTIVE = "retroactive"  # Historical rescan / bootstrap


class ConversationMessage(BaseModel):
    """Single speaker-tagged message inside a conversation window"""
    model_config = ConfigDict(frozen=True)

    speaker: Speaker
    text: str
    timestamp: float = Field(..., description="Epoch seconds (UTC)")
    message_id: Optional[str] = None

    def render(self) -> str:
        return f"{self.speaker.label}: {self.text}"


class ClassificationVerdict(BaseModel):
    """
    Raw, untrusted classifier opinion about a conversation window.

    Never persisted; always passes through the safety filter first.
    """
    model_config = ConfigDict(frozen=True)

    is_sale: bool = False
    quantity: int = 0
    location: str = ""

    @classmethod
    def default(cls) -> "ClassificationVerdict":
        """Verdict used when every provider failed or none is configured"""
        return cls(is_sale=False, quantity=0, location="")


class SaleRecord(BaseModel):
    """Immutable ledger row"""
    model_config = ConfigDict(frozen=True)

    id: int
    customer_name: str
    customer_id: str
    date: str = Field(..., pattern=r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$", description="YYYY-MM-DD, business timezone")
    address: str = ""
    quantity: int = Field(1, ge=1)
    total_amount: int = Field(..., ge=0, description="quantity x unit price, CLP")


class CustomerRef(BaseModel):
    """Distinct customer seen in a date window"""
    customer_name: str
    customer_id: str


class PeriodTotals(BaseModel):
    """Aggregates for one reporting window"""
    count: int = 0
    total: int = 0
    qty: int = 0


class FinancialSummary(BaseModel):
    """Sales totals for the four fixed reporting windows"""
    today: PeriodTotals
    yesterday: PeriodTotals
    week: PeriodTotals
    month: PeriodTotals

    class Config:
        json_schema_extra = {
            "example": {
                "today": {"count": 2, "total": 10000, "qty": 5},
                "yesterday": {"count": 1, "total": 2000, "qty": 1},
                "week": {"count": 9, "total": 36000, "qty": 18},
                "month": {"count": 30, "total": 130000, "qty": 65},
            }
        }


class TopCustomer(BaseModel):
    customer_name: str
    customer_id: str
    total_qty: int


class MonthlySaleRow(BaseModel):
    """Row of the monthly export, newest first"""
    id: int
    date: str
    customer_name: str
    customer_id: str
    address: str = ""
    quantity: int
    total_amount: int


class FollowUpLists(BaseModel):
    """Customers to contact in the daily follow-up job"""
    reminder: List[CustomerRef] = Field(default_factory=list, description="Bought exactly N days ago")
    lapsed: List[CustomerRef] = Field(default_factory=list, description="Last bought within the lapsed range")


class ManualSaleCommand(BaseModel):
    """Parsed !rv command"""
    model_config = ConfigDict(frozen=True)

    customer_id: str = Field(..., min_length=8, pattern=r"^[0-9]+$")
    quantity: int = Field(1, ge=1)
