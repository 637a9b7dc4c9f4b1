from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Tuple, Union

from pydantic import BaseModel, Field, field_validator

# Amounts arrive as numbers or numeric-looking strings (form fields, SQLite
# TEXT columns).  They are kept as given and coerced only at valuation time.
RawAmount = Optional[Union[Decimal, int, float, str]]

LINE_COUNT = 5


class PublicationLine(BaseModel):
    """One candidate insertion within a budget (Line 1..5)."""
    vendor_name: Optional[str] = None       # newspaper / gazette; empty when slot unused
    unit_rate: RawAmount = None             # value per cm x column
    format_multiplier: RawAmount = None     # columns x centimetres
    include_in_total: bool = False

    @property
    def has_vendor(self) -> bool:
        return bool((self.vendor_name or "").strip())


Lines = Tuple[PublicationLine, PublicationLine, PublicationLine, PublicationLine, PublicationLine]


def _empty_lines() -> Lines:
    return tuple(PublicationLine() for _ in range(LINE_COUNT))  # type: ignore[return-value]


def _pad_lines(value):
    """Accept up to five lines; unused trailing slots become empty lines."""
    if value is None:
        return _empty_lines()
    items = list(value)
    if len(items) > LINE_COUNT:
        raise ValueError(f"A budget holds at most {LINE_COUNT} lines (got {len(items)})")
    items.extend(PublicationLine() for _ in range(LINE_COUNT - len(items)))
    return tuple(items)


class BudgetDraft(BaseModel):
    """
    Budget fields supplied by the operator at creation time.

    total_value is not part of the draft: it is computed once from the
    lines and design fee when the budget is stored.
    """
    client_name: str
    client_email: str
    lines: Lines = Field(default_factory=_empty_lines)
    design_fee: RawAmount = Decimal("0")
    publication_date: datetime
    approved: bool = False
    rejected: bool = False
    notes: Optional[str] = None

    @field_validator("lines", mode="before")
    @classmethod
    def _pad(cls, value):
        return _pad_lines(value)

    @property
    def has_included_line(self) -> bool:
        return any(line.include_in_total for line in self.lines)


class Budget(BudgetDraft):
    """
    A stored quote.

    total_value is a write-time snapshot: partial updates never recompute it.
    """
    id: str
    sequence_number: int
    total_value: RawAmount = Decimal("0")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: Optional[datetime] = None
    created_by: Optional[str] = None

    @property
    def display_number(self) -> str:
        """Sequence number as shown to operators, e.g. 0007."""
        return f"{self.sequence_number:04d}"

    @property
    def status(self) -> str:
        if self.approved:
            return "approved"
        if self.rejected:
            return "rejected"
        return "pending"

    def vendor_names(self, included_only: bool = False) -> list[str]:
        """Named vendors in positional order."""
        return [
            line.vendor_name
            for line in self.lines
            if line.has_vendor and (line.include_in_total or not included_only)
        ]


class BudgetUpdate(BaseModel):
    """Partial update body.  Only fields explicitly sent are applied."""
    client_name: Optional[str] = None
    client_email: Optional[str] = None
    lines: Optional[Lines] = None
    design_fee: RawAmount = None
    publication_date: Optional[datetime] = None
    approved: Optional[bool] = None
    rejected: Optional[bool] = None
    notes: Optional[str] = None

    @field_validator("lines", mode="before")
    @classmethod
    def _pad(cls, value):
        return None if value is None else _pad_lines(value)
