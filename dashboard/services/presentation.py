"""
Report payloads for the dashboard.

Each view carries the raw amount (canonical two-decimal string) next to a
display string in Brazilian currency format, so the frontend never has to
re-derive totals.
"""
from datetime import date, datetime
from typing import Union

from budgeting.export import format_amount
from budgeting.valuation import to_cents
from models.budget import Budget
from models.report import ConsolidatedByClient, ConsolidatedByVendor, ReportSummary


def format_brl(value) -> str:
    """
    Render an amount as Brazilian reais: 1234.5 -> "R$ 1.234,50".

    Grouping uses "." and the decimal separator is ",".
    """
    amount = to_cents(value)
    sign = "-" if amount < 0 else ""
    grouped = f"{abs(amount):,.2f}"               # 1,234.50
    grouped = grouped.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}R$ {grouped}"


def format_date_br(value: Union[datetime, date, None]) -> str:
    return value.strftime("%d/%m/%Y") if value else ""


def budget_view(budget: Budget) -> dict:
    """Budget as returned by the API, with display fields added."""
    payload = budget.model_dump(mode="json")
    payload.update({
        "display_number":   budget.display_number,
        "status":           budget.status,
        "total_value":      format_amount(budget.total_value),
        "total_display":    format_brl(budget.total_value),
        "design_fee":       format_amount(budget.design_fee),
        "publication_date_display": format_date_br(budget.publication_date),
    })
    return payload


def summary_view(summary: ReportSummary) -> dict:
    return {
        "count":                    summary.count,
        "total":                    format_amount(summary.total),
        "total_display":            format_brl(summary.total),
        "design_fee_total":         format_amount(summary.design_fee_total),
        "design_fee_total_display": format_brl(summary.design_fee_total),
        "publications_total":         format_amount(summary.publications_total),
        "publications_total_display": format_brl(summary.publications_total),
    }


def client_group_view(group: ConsolidatedByClient) -> dict:
    return {
        "client_name":      group.client_name,
        "total":            format_amount(group.total),
        "total_display":    format_brl(group.total),
        "design_fee_total": format_amount(group.design_fee_total),
        "publications_total": format_amount(group.publications_total),
        "budget_count":     len(group.budgets),
        "budgets": [
            {
                "id":               b.id,
                "display_number":   b.display_number,
                "publication_date": format_date_br(b.publication_date),
                "approved":         b.approved,
                "total_value":      format_amount(b.total_value),
                "total_display":    format_brl(b.total_value),
                "design_fee":       format_amount(b.design_fee),
                "vendors":          b.vendor_names(included_only=True),
            }
            for b in group.budgets
        ],
    }


def vendor_group_view(group: ConsolidatedByVendor) -> dict:
    return {
        "vendor_name":   group.vendor_name,
        "total":         format_amount(group.total),
        "total_display": format_brl(group.total),
        "line_count":    len(group.lines),
        "lines": [
            {
                "client_name":       line.client_name,
                "publication_date":  format_date_br(line.publication_date),
                "approved":          line.approved,
                "unit_rate":         format_amount(line.unit_rate),
                "format_multiplier": format_amount(line.format_multiplier),
                "subtotal":          format_amount(line.subtotal),
                "subtotal_display":  format_brl(line.subtotal),
            }
            for line in group.lines
        ],
    }
