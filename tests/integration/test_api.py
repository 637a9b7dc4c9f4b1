"""
API tests for the dashboard backend.
"""
import csv
import io

import pytest
from fastapi.testclient import TestClient

import dashboard.app as app_module
from budgeting.client_lookup import ClientLookupCache, ClientLookupService
from budgeting.export import BOM


class RowsSource:
    def __init__(self, rows, error=None):
        self.rows = rows
        self.error = error

    def fetch_rows(self):
        if self.error:
            raise self.error
        return self.rows


@pytest.fixture
def client(test_config, test_db, registry_rows, monkeypatch):
    """TestClient wired to an isolated database and an in-memory client registry."""
    monkeypatch.setattr(app_module, "config", test_config)
    monkeypatch.setattr(app_module, "_db", test_db)
    monkeypatch.setattr(app_module, "_lookup", ClientLookupService(RowsSource(registry_rows), ClientLookupCache()))
    return TestClient(app_module.app)


def _create(client, payload, **overrides):
    response = client.post("/api/budgets", json={**payload, **overrides}, headers={"X-Operator": "maria"})
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.api
@pytest.mark.integration
class TestBudgetEndpoints:
    """CRUD endpoints for budgets."""

    def test_health(self, client):
        body = client.get("/api/health").json()
        assert body["status"] == "ok"
        assert body["client_lookup_configured"] is True

    def test_create_computes_total(self, client, sample_budget_payload):
        body = _create(client, sample_budget_payload, total_value="9999")

        assert body["total_value"] == "70.00"
        assert body["total_display"] == "R$ 70,00"
        assert body["display_number"] == "0001"
        assert body["created_by"] == "maria"
        assert len(body["lines"]) == 5

    def test_create_without_included_line_rejected(self, client, sample_budget_payload):
        sample_budget_payload["lines"][0]["include_in_total"] = False
        response = client.post("/api/budgets", json=sample_budget_payload)
        assert response.status_code == 400

    def test_create_both_approved_and_rejected_rejected(self, client, sample_budget_payload):
        response = client.post("/api/budgets", json={**sample_budget_payload, "approved": True, "rejected": True})
        assert response.status_code == 400

    def test_create_with_too_many_lines_is_422(self, client, sample_budget_payload):
        sample_budget_payload["lines"] = sample_budget_payload["lines"] * 6
        assert client.post("/api/budgets", json=sample_budget_payload).status_code == 422

    @pytest.mark.parametrize("field,value", [
        ("unit_rate", "1e30"),
        ("format_multiplier", "1e999999"),
        ("unit_rate", "10000000"),
    ])
    def test_create_with_oversized_amount_is_422(self, client, sample_budget_payload, field, value):
        sample_budget_payload["lines"][0][field] = value
        assert client.post("/api/budgets", json=sample_budget_payload).status_code == 422
        assert client.get("/api/budgets").json() == []

    def test_patch_with_oversized_design_fee_is_422(self, client, sample_budget_payload):
        created = _create(client, sample_budget_payload)
        response = client.patch(f"/api/budgets/{created['id']}", json={"design_fee": "1e30"})
        assert response.status_code == 422

    def test_stored_oversized_amount_does_not_break_views(self, client, test_db, sample_budget_payload):
        """A row written before entry checks existed is listed and reported with zero amounts."""
        from models.budget import BudgetDraft

        sample_budget_payload["lines"][0]["unit_rate"] = "1e999999"
        sample_budget_payload["design_fee"] = "1e30"
        test_db.create_budget(BudgetDraft.model_validate(sample_budget_payload))

        listed = client.get("/api/budgets")
        assert listed.status_code == 200
        assert listed.json()[0]["total_value"] == "0.00"
        report = client.get("/api/reports/budgets", params={"period": "all"})
        assert report.status_code == 200
        assert report.json()["by_vendor"][0]["total"] == "0.00"
        export = client.get("/api/reports/budgets/export", params={"mode": "client", "period": "all"})
        assert export.status_code == 200

    def test_get_list_and_next_number(self, client, sample_budget_payload):
        created = _create(client, sample_budget_payload)

        assert client.get(f"/api/budgets/{created['id']}").json()["id"] == created["id"]
        assert [b["id"] for b in client.get("/api/budgets", params={"search": "acme"}).json()] == [created["id"]]
        assert client.get("/api/budgets/next-number").json() == {"next_number": 2}

    def test_get_missing_is_404(self, client):
        assert client.get("/api/budgets/does-not-exist").status_code == 404

    def test_patch_approval_keeps_total(self, client, sample_budget_payload):
        created = _create(client, sample_budget_payload)

        response = client.patch(f"/api/budgets/{created['id']}", json={"approved": True, "design_fee": "1000"})
        assert response.status_code == 200
        body = response.json()
        assert body["approved"] is True
        assert body["status"] == "approved"
        assert body["design_fee"] == "1000.00"
        assert body["total_value"] == "70.00"

    def test_patch_cannot_approve_a_rejected_budget(self, client, sample_budget_payload):
        created = _create(client, sample_budget_payload, rejected=True)
        response = client.patch(f"/api/budgets/{created['id']}", json={"approved": True})
        assert response.status_code == 400

    def test_patch_null_clears_notes_only(self, client, sample_budget_payload):
        created = _create(client, sample_budget_payload)
        body = client.patch(f"/api/budgets/{created['id']}", json={"notes": None, "client_name": None}).json()
        assert body["notes"] is None
        assert body["client_name"] == "Acme Ltda"

    def test_patch_missing_is_404(self, client):
        assert client.patch("/api/budgets/nope", json={"approved": True}).status_code == 404

    def test_delete_and_audit(self, client, sample_budget_payload):
        created = _create(client, sample_budget_payload)

        assert client.delete(f"/api/budgets/{created['id']}", headers={"X-Operator": "joao"}).status_code == 204
        assert client.delete(f"/api/budgets/{created['id']}").status_code == 404

        audit = client.get(f"/api/budgets/{created['id']}/audit").json()
        assert [(e["action"], e["actor"]) for e in audit] == [("created", "maria"), ("deleted", "joao")]

    def test_stats(self, client, sample_budget_payload):
        _create(client, sample_budget_payload, approved=True)
        _create(client, sample_budget_payload)
        stats = client.get("/api/stats").json()
        assert (stats["total"], stats["approved"], stats["pending"]) == (2, 1, 1)


@pytest.mark.api
@pytest.mark.integration
class TestReportEndpoints:
    """Consolidated report and CSV export."""

    def _seed(self, client, payload):
        _create(client, payload, client_name="Acme", design_fee="0", lines=[
            {"vendor_name": "Diário X", "unit_rate": "100", "format_multiplier": "1", "include_in_total": True},
        ])
        _create(client, payload, client_name="Zenith", design_fee="0", approved=True, lines=[
            {"vendor_name": "Jornal Y", "unit_rate": "200", "format_multiplier": "1", "include_in_total": True},
            {"vendor_name": "Diário X", "unit_rate": "10", "format_multiplier": "1", "include_in_total": False},
        ])
        _create(client, payload, client_name="Acme", design_fee="0", lines=[
            {"vendor_name": "Diário X", "unit_rate": "50", "format_multiplier": "1", "include_in_total": True},
        ])

    def test_report(self, client, sample_budget_payload):
        self._seed(client, sample_budget_payload)
        body = client.get("/api/reports/budgets", params={"period": "all"}).json()

        assert body["filter"]["period"] == "all"
        assert body["summary"]["count"] == 3
        assert body["summary"]["total"] == "350.00"
        assert [(g["client_name"], g["total"]) for g in body["by_client"]] == [
            ("Zenith", "200.00"), ("Acme", "150.00"),
        ]
        assert [(g["vendor_name"], g["total"]) for g in body["by_vendor"]] == [
            ("Jornal Y", "200.00"), ("Diário X", "160.00"),
        ]

    def test_report_filters(self, client, sample_budget_payload):
        self._seed(client, sample_budget_payload)
        body = client.get("/api/reports/budgets", params={"period": "all", "status": "approved"}).json()
        assert [g["client_name"] for g in body["by_client"]] == ["Zenith"]

        body = client.get("/api/reports/budgets", params={
            "period": "custom", "start_date": "2024-03-11", "end_date": "2024-03-31",
        }).json()
        assert body["summary"]["count"] == 0

    def test_report_invalid_filter_is_400(self, client):
        response = client.get("/api/reports/budgets", params={
            "period": "custom", "start_date": "2024-03-31", "end_date": "2024-03-01",
        })
        assert response.status_code == 400
        assert client.get("/api/reports/budgets", params={"period": "decade"}).status_code == 400

    def test_export_vendor_csv(self, client, sample_budget_payload):
        self._seed(client, sample_budget_payload)
        response = client.get("/api/reports/budgets/export", params={"mode": "vendor", "period": "all"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "budgets-vendor-" in response.headers["content-disposition"]
        text = response.content.decode("utf-8")
        assert text.startswith(BOM + "SUMMARY BY VENDOR\n")
        summary = list(csv.reader(io.StringIO(text[len(BOM):].split("\n\n")[0])))
        assert summary[2:] == [["Jornal Y", "200.00"], ["Diário X", "160.00"]]

    def test_export_empty_is_header_only(self, client):
        text = client.get("/api/reports/budgets/export", params={"mode": "client", "period": "all"}).text
        assert text[len(BOM):].splitlines() == [
            "SUMMARY BY CLIENT",
            "Client,Total,Design Fee,Publications",
            "",
            "DETAIL BY CLIENT",
            "Client,Date,Status,Total Value,Design Fee,Vendors",
        ]

    def test_export_bad_mode(self, client):
        assert client.get("/api/reports/budgets/export", params={"mode": "supplier"}).status_code == 400


@pytest.mark.api
@pytest.mark.integration
class TestClientLookupEndpoints:
    """CNPJ lookup and cache management."""

    def test_lookup_found(self, client):
        response = client.get("/api/clients/lookup-by-cnpj", params={"cnpj": "91.338.558/0001-37"})
        assert response.status_code == 200
        assert response.json()["name"] == "Acme Ltda"
        assert client.get("/api/clients/lookup/cache").json()["valid_entries"] == 1

    def test_lookup_invalid_cnpj(self, client):
        assert client.get("/api/clients/lookup-by-cnpj", params={"cnpj": "123"}).status_code == 400

    def test_lookup_not_found(self, client):
        assert client.get("/api/clients/lookup-by-cnpj", params={"cnpj": "00000000000000"}).status_code == 404

    def test_lookup_not_configured(self, client, monkeypatch):
        monkeypatch.setattr(app_module, "_lookup", ClientLookupService(source=None))
        assert client.get("/api/clients/lookup-by-cnpj", params={"cnpj": "91338558000137"}).status_code == 503

    def test_lookup_upstream_failure(self, client, monkeypatch):
        monkeypatch.setattr(app_module, "_lookup", ClientLookupService(RowsSource([], RuntimeError("boom"))))
        assert client.get("/api/clients/lookup-by-cnpj", params={"cnpj": "91338558000137"}).status_code == 503

    def test_clear_cache(self, client):
        client.get("/api/clients/lookup-by-cnpj", params={"cnpj": "91338558000137"})
        assert client.delete("/api/clients/lookup/cache").json() == {"cleared": "all"}
        assert client.get("/api/clients/lookup/cache").json()["total_entries"] == 0
