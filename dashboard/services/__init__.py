"""
Dashboard business logic services.
"""
from .presentation import (
    format_brl,
    format_date_br,
    budget_view,
    summary_view,
    client_group_view,
    vendor_group_view,
)

__all__ = [
    "format_brl",
    "format_date_br",
    "budget_view",
    "summary_view",
    "client_group_view",
    "vendor_group_view",
]
