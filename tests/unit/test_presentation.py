"""
Unit tests for dashboard presentation helpers.
"""
from datetime import datetime
from decimal import Decimal

import pytest

from budgeting.aggregation import consolidate_by_client, consolidate_by_vendor, summarize
from dashboard.services.presentation import (
    budget_view,
    client_group_view,
    format_brl,
    format_date_br,
    summary_view,
    vendor_group_view,
)


@pytest.mark.unit
class TestFormatBrl:
    """Tests for Brazilian currency formatting."""

    @pytest.mark.parametrize("value,expected", [
        (Decimal("1234.5"), "R$ 1.234,50"),
        (Decimal("0"), "R$ 0,00"),
        ("1234567.891", "R$ 1.234.567,89"),
        (Decimal("-15.5"), "-R$ 15,50"),
        ("abc", "R$ 0,00"),
        (Decimal("999.995"), "R$ 1.000,00"),
    ])
    def test_format_brl(self, value, expected):
        assert format_brl(value) == expected

    def test_format_date_br(self):
        assert format_date_br(datetime(2024, 12, 1, 10, 0)) == "01/12/2024"
        assert format_date_br(None) == ""


@pytest.mark.unit
class TestViews:
    """Tests for the report payload builders."""

    def test_budget_view(self, budget_factory, line_factory):
        budget = budget_factory("Acme", [line_factory("Diário X", "10", "2", True)], design_fee="50")
        view = budget_view(budget)

        assert view["total_value"] == "70.00"
        assert view["total_display"] == "R$ 70,00"
        assert view["design_fee"] == "50.00"
        assert view["status"] == "pending"
        assert view["display_number"] == budget.display_number
        assert view["publication_date_display"] == "10/03/2024"
        assert len(view["lines"]) == 5

    def test_summary_view(self, budget_factory):
        view = summary_view(summarize([budget_factory(total="1500", design_fee="100")]))
        assert view == {
            "count": 1,
            "total": "1500.00",
            "total_display": "R$ 1.500,00",
            "design_fee_total": "100.00",
            "design_fee_total_display": "R$ 100,00",
            "publications_total": "1400.00",
            "publications_total_display": "R$ 1.400,00",
        }

    def test_client_group_view(self, budget_factory, line_factory):
        budget = budget_factory("Acme", [line_factory("Diário X", "10", "2", True),
                                         line_factory("Jornal Y", "1", "1", False)])
        view, = [client_group_view(g) for g in consolidate_by_client([budget])]

        assert view["client_name"] == "Acme"
        assert view["budget_count"] == 1
        assert view["budgets"][0]["vendors"] == ["Diário X"]

    def test_vendor_group_view(self, budget_factory, line_factory):
        budget = budget_factory("Acme", [line_factory("Diário X", "10", "2", False)])
        view, = [vendor_group_view(g) for g in consolidate_by_vendor([budget])]

        assert view["total"] == "20.00"
        assert view["line_count"] == 1
        assert view["lines"][0]["subtotal_display"] == "R$ 20,00"
