"""
API tests - HTTP surface over the ledger core.
"""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from travel_ledger.infrastructure.database import (
    create_db_engine,
    get_db,
    get_session_factory,
    init_db,
    seed_default_accounts,
    seed_default_finance_accounts,
)
from travel_ledger.infrastructure.database.models import AuditLogRow
from travel_ledger.main import app

ADMIN = {"X-User-Id": "u-admin", "X-User-Name": "Alice", "X-User-Role": "ADMIN"}
ACCOUNTANT = {"X-User-Id": "u-acc", "X-User-Name": "Omar", "X-User-Role": "ACCOUNTANT"}
VIEWER = {"X-User-Id": "u-view", "X-User-Role": "VIEWER"}


@pytest.fixture
def api_factory(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'api.db'}")
    init_db(engine)
    factory = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    with factory() as db:
        seed_default_accounts(db)
        seed_default_finance_accounts(db)
    yield factory
    engine.dispose()


@pytest.fixture
def client(api_factory):
    def _get_db():
        db = api_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_factory] = lambda: api_factory
    yield TestClient(app)
    app.dependency_overrides.clear()


def _manual_journal(client, amount="250.00", headers=ACCOUNTANT):
    return client.post(
        "/api/v1/vouchers",
        headers=headers,
        json={
            "source_type": "journal",
            "notes": "Capital",
            "lines": [
                {"account_id": "1-1-2", "debit": amount},
                {"account_id": "3-1", "credit": amount},
            ],
        },
    )


class TestMeta:

    def test_root_and_health(self, client):
        assert client.get("/").json()["name"] == "Travel Ledger API"
        assert client.get("/health").json() == {"status": "healthy"}

    def test_accounts_leaf_only(self, client):
        all_accounts = client.get("/api/v1/accounts").json()
        leaves = client.get("/api/v1/accounts", params={"leaf_only": True}).json()
        assert len(leaves) < len(all_accounts)
        assert all(a["is_leaf"] for a in leaves)
        assert "1-1" not in {a["id"] for a in leaves}

    def test_accounts_resolve_the_caller(self, client):
        response = client.get("/api/v1/accounts", headers={"X-User-Id": "x", "X-User-Role": "PILOT"})
        assert response.status_code == 400


class TestVoucherEndpoints:

    def test_manual_journal(self, client):
        response = _manual_journal(client)
        assert response.status_code == 201
        body = response.json()
        assert body["invoice_number"] == "JE-00001"
        assert body["voucher_type"] == "journal_from_journal"
        assert Decimal(body["total_debit"]) == Decimal("250.00")
        assert [e["account_category"] for e in body["entries"]] == ["bank", "other"]
        assert body["officer"] == "Omar"

    def test_unbalanced_returns_problem(self, client):
        response = client.post(
            "/api/v1/vouchers",
            headers=ACCOUNTANT,
            json={"lines": [{"account_id": "1-1-2", "debit": "100"}, {"account_id": "3-1", "credit": "90"}]},
        )
        assert response.status_code == 422
        assert response.headers["content-type"].startswith("application/problem+json")
        body = response.json()
        assert body["type"] == "UnbalancedEntryError"
        assert body["context"]["delta"] == "10"

    def test_missing_accounts_listed(self, client):
        response = client.post(
            "/api/v1/vouchers",
            headers=ACCOUNTANT,
            json={"lines": [{"account_id": "9-1", "debit": "5"}, {"account_id": "9-2", "credit": "5"}]},
        )
        assert response.status_code == 422
        assert response.json()["context"]["missing_account_ids"] == ["9-1", "9-2"]

    def test_viewer_cannot_post(self, client):
        assert _manual_journal(client, headers=VIEWER).status_code == 403

    def test_viewer_cannot_post_revenue(self, client):
        response = client.post(
            "/api/v1/vouchers/revenue",
            headers=VIEWER,
            json={"source_type": "visa", "source_id": "v-1", "service_kind": "visas", "amount": "0"},
        )
        assert response.status_code == 403

    def test_unknown_role(self, client):
        response = _manual_journal(client, headers={"X-User-Id": "x", "X-User-Role": "PILOT"})
        assert response.status_code == 400

    def test_revenue_flow(self, client):
        response = client.post(
            "/api/v1/vouchers/revenue",
            headers=ACCOUNTANT,
            json={
                "source_type": "booking",
                "source_id": "b-100",
                "service_kind": "tickets",
                "amount": "480.00",
                "client_id": "client-1",
            },
        )
        assert response.status_code == 201
        result = response.json()
        assert result["posted"] is True
        assert result["invoice_number"] == "BK-00001"

        voucher = client.get(f"/api/v1/vouchers/{result['voucher_id']}", headers=VIEWER).json()
        debit, credit = voucher["entries"]
        assert (debit["account_id"], debit["account_category"], debit["relation_id"]) == ("1-2-1", "client", "client-1")
        assert (credit["account_id"], credit["account_category"]) == ("4-1-1", "revenue")
        assert voucher["direct_cash_revenue"] is False

    def test_zero_revenue_posts_nothing(self, client):
        response = client.post(
            "/api/v1/vouchers/revenue",
            headers=ACCOUNTANT,
            json={"source_type": "visa", "source_id": "v-1", "service_kind": "visas", "amount": "0"},
        )
        assert response.json() == {"voucher_id": None, "invoice_number": None, "posted": False}
        assert client.get("/api/v1/vouchers", headers=VIEWER).json() == []

    def test_cost_flow(self, client):
        response = client.post(
            "/api/v1/vouchers/cost",
            headers=ACCOUNTANT,
            json={"cost_kind": "visas", "source_type": "visa", "source_id": "v-7", "amount": "120"},
        )
        result = response.json()
        assert result["invoice_number"] == "VS-00001"
        voucher = client.get(f"/api/v1/vouchers/{result['voucher_id']}", headers=VIEWER).json()
        assert [e["account_id"] for e in voucher["entries"]] == ["5-1-2", "2-1"]

    def test_transaction_accounts_must_differ(self, client):
        response = client.post(
            "/api/v1/vouchers/transactions",
            headers=ACCOUNTANT,
            json={"debit_account_id": "1-1-1", "credit_account_id": "1-1-1", "amount": "50"},
        )
        assert response.status_code == 400

    def test_transaction(self, client):
        response = client.post(
            "/api/v1/vouchers/transactions",
            headers=ACCOUNTANT,
            json={"debit_account_id": "1-1-2", "credit_account_id": "1-1-1", "amount": "50"},
        )
        assert response.status_code == 201
        assert response.json()["invoice_number"] == "TR-00001"


class TestLifecycleEndpoints:

    def test_delete_restore_purge(self, client, api_factory):
        voucher_id = _manual_journal(client).json()["id"]

        deleted = client.post(f"/api/v1/vouchers/{voucher_id}/delete", headers=ACCOUNTANT).json()
        assert deleted["is_deleted"] is True
        assert client.get("/api/v1/vouchers", headers=VIEWER).json() == []
        listed = client.get("/api/v1/vouchers", headers=VIEWER, params={"include_deleted": True}).json()
        assert [v["id"] for v in listed] == [voucher_id]

        restored = client.post(f"/api/v1/vouchers/{voucher_id}/restore", headers=ADMIN).json()
        assert restored["is_deleted"] is False
        assert restored["restored_by"] == "u-admin"

        assert client.delete(f"/api/v1/vouchers/{voucher_id}", headers=ADMIN).status_code == 409

        client.post(f"/api/v1/vouchers/{voucher_id}/delete", headers=ACCOUNTANT)
        assert client.delete(f"/api/v1/vouchers/{voucher_id}", headers=ACCOUNTANT).status_code == 403
        assert client.delete(f"/api/v1/vouchers/{voucher_id}", headers=ADMIN).status_code == 200
        assert client.get(f"/api/v1/vouchers/{voucher_id}", headers=VIEWER).status_code == 404

        with api_factory() as db:
            actions = [row.action for row in db.execute(select(AuditLogRow)).scalars().all()]
        assert actions == ["CREATE", "DELETE", "UPDATE", "DELETE", "DELETE"]

    def test_accountant_cannot_restore(self, client):
        voucher_id = _manual_journal(client).json()["id"]
        client.post(f"/api/v1/vouchers/{voucher_id}/delete", headers=ACCOUNTANT)
        assert client.post(f"/api/v1/vouchers/{voucher_id}/restore", headers=ACCOUNTANT).status_code == 403


class TestSequenceEndpoints:

    def test_list_and_next(self, client):
        sequences = client.get("/api/v1/sequences", headers=VIEWER).json()
        booking = next(s for s in sequences if s["type_key"] == "BK")
        assert booking["next_number"] == "BK-00001"

        response = client.post("/api/v1/sequences/bookings/next", headers=ACCOUNTANT)
        assert response.json() == {"type_key": "BK", "number": "BK-00001"}

    def test_update_requires_permission(self, client):
        response = client.put("/api/v1/sequences/visa", headers=ACCOUNTANT, json={"value": 100})
        assert response.status_code == 403

    def test_update_then_allocate(self, client):
        response = client.put(
            "/api/v1/sequences/visa", headers=ADMIN, json={"prefix": "vis", "value": 99, "pad_width": 3}
        )
        assert response.json()["next_number"] == "VIS-100"
        assert client.post("/api/v1/sequences/VS/next", headers=ADMIN).json()["number"] == "VIS-100"

    def test_invalid_pad_width(self, client):
        response = client.put("/api/v1/sequences/visa", headers=ADMIN, json={"pad_width": 40})
        assert response.status_code == 400


class TestSettingsEndpoints:

    def test_get_is_camel_case(self, client):
        body = client.get("/api/v1/settings/finance-accounts", headers=ACCOUNTANT).json()
        assert body["receivableAccountId"] == "1-2-1"
        assert body["revenueMap"]["tickets"] == "4-1-1"

    def test_update_takes_effect_immediately(self, client):
        settings = client.get("/api/v1/settings/finance-accounts", headers=ADMIN).json()
        settings["receivableAccountId"] = "1-2-2"
        response = client.put("/api/v1/settings/finance-accounts", headers=ADMIN, json=settings)
        assert response.json()["receivableAccountId"] == "1-2-2"

        result = client.post(
            "/api/v1/vouchers/revenue",
            headers=ACCOUNTANT,
            json={"source_type": "booking", "source_id": "b-2", "service_kind": "tickets", "amount": "10"},
        ).json()
        voucher = client.get(f"/api/v1/vouchers/{result['voucher_id']}", headers=VIEWER).json()
        assert voucher["entries"][0]["account_id"] == "1-2-2"

    def test_accountant_cannot_edit(self, client):
        response = client.put("/api/v1/settings/finance-accounts", headers=ACCOUNTANT, json={})
        assert response.status_code == 403
