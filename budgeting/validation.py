"""
Entry rules for new budgets.

These run where budgets enter the system (the create endpoint and the
import command), never in valuation or reporting: a stored budget that
breaks them is still valued and reported.

Checks:
  Lines:     at least one line marked include_in_total
  Approval:  approved and rejected are not both set
  Amounts:   no rate, format or fee at or above MAX_ENTRY_AMOUNT
"""
from typing import Iterable, Optional

from models.budget import BudgetDraft, PublicationLine, RawAmount

from .valuation import MAX_ENTRY_AMOUNT, is_entry_out_of_range


def amount_errors(lines: Optional[Iterable[PublicationLine]], design_fee: RawAmount = None) -> list[str]:
    """Amounts too large to be accepted, as messages naming the field."""
    errors: list[str] = []
    for i, line in enumerate(lines or (), start=1):
        if is_entry_out_of_range(line.unit_rate):
            errors.append(f"Line {i}: unit rate must be below {MAX_ENTRY_AMOUNT:f}")
        if is_entry_out_of_range(line.format_multiplier):
            errors.append(f"Line {i}: format must be below {MAX_ENTRY_AMOUNT:f}")
    if is_entry_out_of_range(design_fee):
        errors.append(f"Design fee must be below {MAX_ENTRY_AMOUNT:f}")
    return errors


def draft_errors(draft: BudgetDraft) -> list[str]:
    """Every rule *draft* breaks; an empty list means it can be stored."""
    errors: list[str] = []
    if not draft.has_included_line:
        errors.append("Mark at least one line to include in the total")
    if draft.approved and draft.rejected:
        errors.append("A budget cannot be both approved and rejected")
    errors.extend(amount_errors(draft.lines, draft.design_fee))
    return errors
