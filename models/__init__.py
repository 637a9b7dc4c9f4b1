from .budget import PublicationLine, BudgetDraft, Budget, BudgetUpdate, LINE_COUNT
from .report import (
    ConsolidatedByClient, ConsolidatedByVendor, VendorLineDetail,
    ReportSummary, ReportFilter,
)
from .client import ClientRecord

__all__ = [
    "PublicationLine", "BudgetDraft", "Budget", "BudgetUpdate", "LINE_COUNT",
    "ConsolidatedByClient", "ConsolidatedByVendor", "VendorLineDetail",
    "ReportSummary", "ReportFilter",
    "ClientRecord",
]
