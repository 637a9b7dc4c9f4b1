from .valuation import to_decimal, raw_line_value, line_subtotal, budget_total
from .aggregation import filter_budgets, consolidate_by_client, consolidate_by_vendor, summarize
from .export import render_report_csv, export_filename
from .database import Database
from .client_lookup import ClientLookupService, ClientLookupCache
from .validation import draft_errors

__all__ = [
    "to_decimal", "raw_line_value", "line_subtotal", "budget_total",
    "filter_budgets", "consolidate_by_client", "consolidate_by_vendor", "summarize",
    "render_report_csv", "export_filename",
    "Database", "ClientLookupService", "ClientLookupCache", "draft_errors",
]
