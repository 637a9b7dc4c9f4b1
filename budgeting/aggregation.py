"""
Report aggregation over an already-loaded set of budgets.

Every function here is pure: it builds fresh groups on each call and never
mutates its input, so two concurrent report requests cannot interfere.

Inclusion rules
---------------
  by client   sums the stored total_value of each budget (which only counts
              lines marked include_in_total, plus the design fee).
  by vendor   sums unit_rate x format_multiplier of EVERY named line, whether
              or not it is marked include_in_total.  A vendor's figure can
              therefore contain amounts that never reached a client total.
"""
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Sequence

from models.budget import Budget
from models.report import (
    ConsolidatedByClient,
    ConsolidatedByVendor,
    ReportFilter,
    ReportSummary,
    VendorLineDetail,
)

from .valuation import ZERO, raw_line_value, to_decimal


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------

def period_bounds(report_filter: ReportFilter, today: date) -> tuple[Optional[date], Optional[date]]:
    """
    Return the inclusive (start, end) day range selected by the filter.

    Relative periods end today; None means unbounded on that side.
    """
    period = report_filter.period
    if period == "today":
        return today, today
    if period == "week":
        return today - timedelta(days=today.weekday()), today
    if period == "month":
        return today.replace(day=1), today
    if period == "custom":
        return report_filter.start_date, report_filter.end_date
    return None, None


def _as_day(value: datetime | date) -> date:
    return value.date() if isinstance(value, datetime) else value


def filter_budgets(
    budgets: Iterable[Budget],
    report_filter: ReportFilter,
    today: Optional[date] = None,
) -> list[Budget]:
    """Apply date range, approval status, client and vendor predicates (order kept)."""
    start, end = period_bounds(report_filter, today or date.today())
    client_needle = (report_filter.client or "").strip().lower()
    vendor_needle = (report_filter.vendor or "").strip().lower()

    result: list[Budget] = []
    for budget in budgets:
        day = _as_day(budget.publication_date)
        if start is not None and day < start:
            continue
        if end is not None and day > end:
            continue
        if report_filter.status == "approved" and not budget.approved:
            continue
        if report_filter.status == "not_approved" and budget.approved:
            continue
        if client_needle and client_needle not in budget.client_name.lower():
            continue
        if vendor_needle and not any(
            vendor_needle in name.lower() for name in budget.vendor_names()
        ):
            continue
        result.append(budget)
    return result


# ---------------------------------------------------------------------------
# Consolidation
# ---------------------------------------------------------------------------

def consolidate_by_client(budgets: Iterable[Budget]) -> list[ConsolidatedByClient]:
    """
    Group budgets by exact client name, richest client first.

    Ties keep first-encountered order; members keep input order.
    """
    groups: dict[str, ConsolidatedByClient] = {}
    for budget in budgets:
        group = groups.get(budget.client_name)
        if group is None:
            group = groups[budget.client_name] = ConsolidatedByClient(client_name=budget.client_name)
        group.total += to_decimal(budget.total_value)
        group.design_fee_total += to_decimal(budget.design_fee)
        group.budgets.append(budget)

    # sorted() is stable with reverse=True, so equal totals keep encounter order
    return sorted(groups.values(), key=lambda g: g.total, reverse=True)


def consolidate_by_vendor(budgets: Iterable[Budget]) -> list[ConsolidatedByVendor]:
    """
    Group every named line by vendor, highest-grossing vendor first.

    Lines count here even when include_in_total is false (see module docstring).
    """
    groups: dict[str, ConsolidatedByVendor] = {}
    for budget in budgets:
        for line in budget.lines:
            if not line.has_vendor:
                continue
            name = line.vendor_name
            subtotal = raw_line_value(line)
            group = groups.get(name)
            if group is None:
                group = groups[name] = ConsolidatedByVendor(vendor_name=name)
            group.total += subtotal
            group.lines.append(VendorLineDetail(
                client_name=budget.client_name,
                publication_date=budget.publication_date,
                approved=budget.approved,
                unit_rate=to_decimal(line.unit_rate),
                format_multiplier=to_decimal(line.format_multiplier),
                subtotal=subtotal,
            ))

    return sorted(groups.values(), key=lambda g: g.total, reverse=True)


def summarize(budgets: Sequence[Budget]) -> ReportSummary:
    """Headline figures for the filtered set."""
    return ReportSummary(
        total=sum((to_decimal(b.total_value) for b in budgets), ZERO),
        design_fee_total=sum((to_decimal(b.design_fee) for b in budgets), ZERO),
        count=len(budgets),
    )
