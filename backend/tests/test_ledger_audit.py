"""Ledger audit: balance vs ledger reconciliation and alert lifecycle."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select, update

from storecredit.models import Customer, LedgerAuditAlert
from storecredit.services.ledger_audit import find_mismatches, run_ledger_audit


async def _tamper(db, customer_id: str, balance: float) -> None:
    """Edit a balance behind the ledger's back."""
    await db.execute(
        update(Customer).where(Customer.id == customer_id).values(credit_balance=balance)
    )
    await db.commit()


async def _alerts(db, customer_id: str) -> list[LedgerAuditAlert]:
    result = await db.execute(
        select(LedgerAuditAlert).where(LedgerAuditAlert.customer_id == customer_id)
    )
    return list(result.scalars().all())


@pytest.mark.integration
@pytest.mark.asyncio
class TestFindMismatches:
    async def test_clean_ledger(self, db_session, customer, make_customer, store):
        await make_customer(store, name="No History")

        checked, mismatches = await find_mismatches(db_session, customer.store_id)
        assert checked == 2
        assert mismatches == []

    async def test_reports_variance(self, db_session, customer):
        await _tamper(db_session, customer.id, 1200)

        _, mismatches = await find_mismatches(db_session, customer.store_id)
        assert mismatches == [{
            "store_id": customer.store_id,
            "customer_id": customer.id,
            "expected_balance": 1000,
            "actual_balance": 1200,
            "variance": 200,
        }]

    async def test_sub_cent_noise_ignored(self, db_session, customer):
        await _tamper(db_session, customer.id, 1000.004)

        _, mismatches = await find_mismatches(db_session, customer.store_id)
        assert mismatches == []

    async def test_scoped_to_store(self, db_session, customer, make_customer, other_store):
        stranger = await make_customer(other_store, name="Elsewhere", opening_balance=40)
        await _tamper(db_session, stranger.id, 0)

        _, mine = await find_mismatches(db_session, customer.store_id)
        _, theirs = await find_mismatches(db_session, other_store.id)
        _, everyone = await find_mismatches(db_session)

        assert mine == []
        assert [m["customer_id"] for m in theirs] == [stranger.id]
        assert len(everyone) == 1


@pytest.mark.integration
@pytest.mark.asyncio
class TestRunLedgerAudit:
    async def test_alert_lifecycle(self, db_session, customer):
        customer_id = customer.id
        store_id = customer.store_id

        await _tamper(db_session, customer_id, 900)
        first = await run_ledger_audit(db_session, store_id)
        await db_session.commit()

        assert first["mismatches"] == 1
        assert first["resolved"] == 0
        alerts = await _alerts(db_session, customer_id)
        assert len(alerts) == 1
        assert alerts[0].status == "open"
        assert alerts[0].variance == -100

        # Still wrong: the same alert is refreshed, not duplicated
        await _tamper(db_session, customer_id, 950)
        second = await run_ledger_audit(db_session, store_id)
        await db_session.commit()

        alerts = await _alerts(db_session, customer_id)
        assert len(alerts) == 1
        assert alerts[0].variance == -50
        assert alerts[0].run_id == second["run_id"]

        # Reconciled: the alert resolves
        await _tamper(db_session, customer_id, 1000)
        third = await run_ledger_audit(db_session, store_id)
        await db_session.commit()

        assert third["mismatches"] == 0
        assert third["resolved"] == 1
        assert third["alerts"] == []
        alerts = await _alerts(db_session, customer_id)
        assert alerts[0].status == "resolved"
        assert alerts[0].resolved_at is not None

    async def test_other_store_alerts_untouched(
        self, db_session, customer, make_customer, other_store,
    ):
        stranger = await make_customer(other_store, name="Elsewhere", opening_balance=40)
        stranger_id = stranger.id
        await _tamper(db_session, stranger_id, 10)
        await run_ledger_audit(db_session, other_store.id)
        await db_session.commit()

        summary = await run_ledger_audit(db_session, customer.store_id)
        await db_session.commit()

        assert summary["resolved"] == 0
        alerts = await _alerts(db_session, stranger_id)
        assert alerts[0].status == "open"


@pytest.mark.api
@pytest.mark.asyncio
class TestAuditEndpoint:
    async def test_reports_open_alerts(self, client: AsyncClient, db_session, customer, auth_headers):
        customer_id = customer.id
        await _tamper(db_session, customer_id, 1500)

        resp = await client.get("/api/store-manager/credit/audit", headers=auth_headers)
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["customersChecked"] == 1
        assert data["mismatches"] == 1
        assert data["alerts"][0]["customerId"] == customer_id
        assert data["alerts"][0]["variance"] == 500

    async def test_staff_cannot_audit(self, client: AsyncClient, customer, staff, make_headers):
        resp = await client.get("/api/store-manager/credit/audit", headers=make_headers(staff))
        assert resp.status_code == 403
