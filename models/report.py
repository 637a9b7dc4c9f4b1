from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from .budget import Budget

ReportMode = Literal["client", "vendor"]
ReportPeriod = Literal["today", "week", "month", "custom", "all"]
ApprovalFilter = Literal["all", "approved", "not_approved"]


class ConsolidatedByClient(BaseModel):
    """All budgets of one client (exact, case-sensitive name match)."""
    client_name: str
    total: Decimal = Decimal("0")              # sum of member total_value
    design_fee_total: Decimal = Decimal("0")   # sum of member design_fee
    budgets: List[Budget] = Field(default_factory=list)

    @property
    def publications_total(self) -> Decimal:
        return self.total - self.design_fee_total


class VendorLineDetail(BaseModel):
    """One priced line as it appears under a vendor in the drill-down."""
    client_name: str
    publication_date: datetime
    approved: bool
    unit_rate: Decimal
    format_multiplier: Decimal
    subtotal: Decimal


class ConsolidatedByVendor(BaseModel):
    vendor_name: str
    total: Decimal = Decimal("0")              # sum of line subtotals, not budget totals
    lines: List[VendorLineDetail] = Field(default_factory=list)


class ReportSummary(BaseModel):
    total: Decimal = Decimal("0")
    design_fee_total: Decimal = Decimal("0")
    count: int = 0

    @property
    def publications_total(self) -> Decimal:
        return self.total - self.design_fee_total


class ReportFilter(BaseModel):
    """
    Predicates applied to budgets before consolidation.

    period:
      today / week / month  are relative to the report date; week starts on Monday
      custom                uses start_date / end_date, both inclusive and optional
      all                   no date restriction
    """
    period: ReportPeriod = "month"
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: ApprovalFilter = "all"
    client: Optional[str] = None       # case-insensitive substring
    vendor: Optional[str] = None       # case-insensitive substring on any named line

    @model_validator(mode="after")
    def _check_range(self) -> "ReportFilter":
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self
