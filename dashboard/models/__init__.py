"""
Pydantic models for dashboard API requests.
"""
from pydantic import model_validator

from budgeting.validation import amount_errors
from models.budget import BudgetDraft, BudgetUpdate


class BudgetCreate(BudgetDraft):
    """POST /api/budgets body.  Oversized amounts are a 422."""

    @model_validator(mode="after")
    def _check_amounts(self) -> "BudgetCreate":
        errors = amount_errors(self.lines, self.design_fee)
        if errors:
            raise ValueError("; ".join(errors))
        return self


class BudgetPatch(BudgetUpdate):
    """PATCH /api/budgets/{id} body.  Only fields present in the request are applied."""

    @model_validator(mode="after")
    def _check_amounts(self) -> "BudgetPatch":
        errors = amount_errors(self.lines, self.design_fee)
        if errors:
            raise ValueError("; ".join(errors))
        return self
