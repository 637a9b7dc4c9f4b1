"""
Delimited (CSV) export of a consolidated budget report.

The output is meant to be opened directly in a spreadsheet, so it starts with
a UTF-8 byte-order mark and uses a canonical numeric format: two decimals,
"." as separator, no thousands grouping.  Locale-aware currency rendering is
a presentation concern and never appears here.

Rows go through csv.writer with QUOTE_NONNUMERIC: amounts are written bare,
every text cell is quoted with embedded quotes doubled.

Only one grouping is exported at a time: whichever report tab is active.
"""
import csv
import io
from datetime import date, datetime
from pathlib import Path
from typing import Sequence, Union

from jinja2 import BaseLoader, Environment, FileSystemLoader

from models.report import ConsolidatedByClient, ConsolidatedByVendor, ReportMode

from .valuation import to_cents

BOM = "\ufeff"
VENDOR_SEPARATOR = "; "

DEFAULT_EXPORT_CSV_TEMPLATE = """\
{#
  Budget report export. Copy to config/report_export.csv.j2 to customise.
  Filters: row (list of cells -> one CSV line), cents (amount, 2 decimals),
           day (dd/mm/YYYY), status (Approved / Not approved).
  Variables: mode ("client" | "vendor"), groups (consolidated rows),
             vendor_separator (joins the vendor list of a budget).
#}
{% if mode == "client" %}
SUMMARY BY CLIENT
Client,Total,Design Fee,Publications
{% for g in groups %}
{{ [g.client_name, g.total | cents, g.design_fee_total | cents, g.publications_total | cents] | row }}
{% endfor %}

DETAIL BY CLIENT
Client,Date,Status,Total Value,Design Fee,Vendors
{% for g in groups %}{% for b in g.budgets %}
{{ [g.client_name, b.publication_date | day, b.approved | status, b.total_value | cents, b.design_fee | cents, b.vendor_names(true) | join(vendor_separator)] | row }}
{% endfor %}{% endfor %}
{% else %}
SUMMARY BY VENDOR
Vendor,Total
{% for g in groups %}
{{ [g.vendor_name, g.total | cents] | row }}
{% endfor %}

DETAIL BY VENDOR
Vendor,Client,Date,Status,Unit Rate,Format,Subtotal
{% for g in groups %}{% for line in g.lines %}
{{ [g.vendor_name, line.client_name, line.publication_date | day, line.approved | status, line.unit_rate | cents, line.format_multiplier | cents, line.subtotal | cents] | row }}
{% endfor %}{% endfor %}
{% endif %}
"""

Groups = Sequence[Union[ConsolidatedByClient, ConsolidatedByVendor]]


def csv_row(cells) -> str:
    """One CSV line (no terminator): Decimals bare, text quoted."""
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_NONNUMERIC, lineterminator="")
    writer.writerow(["" if cell is None else cell for cell in cells])
    return buf.getvalue()


def format_amount(value) -> str:
    """Canonical machine-readable amount: 1234.5 -> "1234.50"."""
    return f"{to_cents(value):f}"


def format_day(value: Union[datetime, date, None]) -> str:
    return value.strftime("%d/%m/%Y") if value else ""


def approval_label(approved: bool) -> str:
    return "Approved" if approved else "Not approved"


def _environment(loader) -> Environment:
    env = Environment(
        loader=loader,
        autoescape=False,
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["row"] = csv_row
    env.filters["cents"] = to_cents
    env.filters["day"] = format_day
    env.filters["status"] = approval_label
    return env


def render_report_csv(
    mode: ReportMode,
    groups: Groups,
    template_file: Path | None = None,
) -> str:
    """
    Render consolidated *groups* for *mode* ("client" or "vendor") as CSV.

    Each mode produces a summary table, a blank line, then a detail table.
    An empty *groups* yields header-only sections.

    Args:
        mode: Which grouping the groups belong to.
        groups: Output of consolidate_by_client / consolidate_by_vendor.
        template_file: Optional operator Jinja2 template overriding the default.
    """
    if mode not in ("client", "vendor"):
        raise ValueError(f"Unknown report mode {mode!r}; expected 'client' or 'vendor'")

    if template_file and template_file.exists():
        env = _environment(FileSystemLoader(str(template_file.parent)))
        tmpl = env.get_template(template_file.name)
    else:
        tmpl = _environment(BaseLoader()).from_string(DEFAULT_EXPORT_CSV_TEMPLATE)
    return BOM + tmpl.render(mode=mode, groups=groups, vendor_separator=VENDOR_SEPARATOR)


def export_filename(mode: ReportMode, today: date | None = None) -> str:
    return f"budgets-{mode}-{(today or date.today()).isoformat()}.csv"
