"""Operator commands: audit-ledger and list-stores exit codes and output."""

import pytest
import pytest_asyncio
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storecredit import cli
from storecredit.models import Customer
from storecredit.services import scheduler


@pytest_asyncio.fixture
async def cli_sessions(test_engine, monkeypatch):
    """Point the commands' session factory at the test database."""
    sessions = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    monkeypatch.setattr(cli, "async_session", sessions)
    monkeypatch.setattr(scheduler, "async_session", sessions)
    return sessions


async def _tamper(db, customer_id: str, balance: float) -> None:
    await db.execute(
        update(Customer).where(Customer.id == customer_id).values(credit_balance=balance)
    )
    await db.commit()


@pytest.mark.integration
@pytest.mark.asyncio
class TestAuditLedgerCommand:
    async def test_clean_store_by_code(self, cli_sessions, store, customer, capsys):
        assert await cli.audit_ledger("PH-001") == 0

        out = capsys.readouterr().out
        assert "PH-001 (Green Cross Pharmacy)" in out
        assert "1 checked, 0 out of balance" in out

    async def test_store_by_id(self, cli_sessions, store, customer):
        assert await cli.audit_ledger(store.id) == 0

    async def test_mismatch_exits_1(self, cli_sessions, db_session, store, customer, capsys):
        await _tamper(db_session, customer.id, 1250)

        assert await cli.audit_ledger("PH-001") == 1

        out = capsys.readouterr().out
        assert "1 out of balance" in out
        assert f"customer {customer.id}: balance 1250.00, ledger 1000.00 (variance +250.00)" in out

    async def test_unknown_store_exits_2(self, cli_sessions, store, capsys):
        assert await cli.audit_ledger("PH-999") == 2
        assert "Store not found: PH-999" in capsys.readouterr().err

    async def test_every_active_store(
        self, cli_sessions, db_session, store, other_store, customer, make_customer, capsys,
    ):
        stranger = await make_customer(other_store, name="Elsewhere", opening_balance=40)

        assert await cli.audit_ledger(None) == 0

        await _tamper(db_session, stranger.id, 0)
        assert await cli.audit_ledger(None) == 1

        out = capsys.readouterr().out
        assert store.id in out
        assert other_store.id in out

    async def test_inactive_store_skipped(self, cli_sessions, db_session, store, customer):
        await _tamper(db_session, customer.id, 1)
        store.is_active = False
        await db_session.commit()

        assert await cli.audit_ledger(None) == 0


@pytest.mark.integration
@pytest.mark.asyncio
class TestListStoresCommand:
    async def test_lists_by_code(self, cli_sessions, db_session, store, other_store, capsys):
        other_store.is_active = False
        await db_session.commit()

        assert await cli.list_stores() == 0

        lines = capsys.readouterr().out.splitlines()
        assert lines[0].split()[:2] == ["PH-001", store.id]
        assert lines[1].split()[:3] == ["PH-002", other_store.id, "inactive"]
        assert lines[-1] == "2 stores"


@pytest.mark.unit
class TestArguments:
    def test_command_required(self):
        with pytest.raises(SystemExit) as exc:
            cli.main([])
        assert exc.value.code == 2
