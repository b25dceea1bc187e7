import uuid
from datetime import datetime, timezone
from decimal import Decimal

from conftest import create_lead
from app.database import async_session_factory
from app.models.transaction import Transaction
from app.services.ledger_service import (
    EntryKind, LedgerEntry, LedgerService, LedgerSummary, day_bounds,
)


NOW = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


def entry(kind, amount, lead_id=None, paid=False, sale_value="0"):
    source_id = lead_id if kind == EntryKind.COMMISSION and lead_id else uuid.uuid4()
    return LedgerEntry(
        kind=kind,
        source_id=source_id,
        partner_id=uuid.uuid4(),
        amount=Decimal(amount),
        date=NOW,
        lead_id=lead_id,
        sale_value=Decimal(sale_value),
        paid=paid,
    )


async def closed_sale(db, partner, name, commission, paid=False, sale_value="0"):
    return await create_lead(
        db, partner, name,
        sale_closed=True,
        sale_value=Decimal(sale_value),
        commission_value=Decimal(commission),
        payment_status="payment_made" if paid else None,
    )


async def test_empty_ledger_is_all_zeros(world):
    async with async_session_factory() as db:
        summary = await LedgerService(db).summarize(None)
    assert summary.earnings == Decimal("0.00")
    assert summary.received == Decimal("0.00")
    assert summary.balance == Decimal("0.00")
    assert summary.earnings - summary.received == summary.balance


async def test_paid_commission_counts_in_earnings_and_received(world):
    async with async_session_factory() as db:
        await closed_sale(db, world.partner_a, "Lead Paga", "100.00", paid=True, sale_value="1000.00")
        # Open leads never reach the ledger
        await create_lead(db, world.partner_a, "Lead Aberta", commission_value=Decimal("999.00"))
        await db.commit()

        summary = await LedgerService(db).summarize([world.partner_a.id])
    assert summary.total_sales == Decimal("1000.00")
    assert summary.earnings == Decimal("100.00")
    assert summary.commissions_paid == Decimal("100.00")
    assert summary.received == Decimal("100.00")
    assert summary.balance == Decimal("0.00")


async def test_debit_linked_to_paid_lead_is_not_counted_twice(world):
    async with async_session_factory() as db:
        lead = await closed_sale(db, world.partner_a, "Lead Paga", "100.00", paid=True)
        debit = Transaction(partner_id=world.partner_a.id, lead_id=lead.id, type="debit", amount=Decimal("100.00"))
        db.add(debit)
        await db.commit()

        summary = await LedgerService(db).summarize([world.partner_a.id])
    assert summary.received == Decimal("100.00")
    assert summary.debits == Decimal("0.00")
    assert summary.skipped_debits == [debit.id]


async def test_unpaid_commission_with_manual_debit_and_credit(world):
    async with async_session_factory() as db:
        lead = await closed_sale(db, world.partner_a, "Lead Pendente", "250.00")
        db.add(Transaction(partner_id=world.partner_a.id, lead_id=lead.id, type="debit", amount=Decimal("40.00")))
        db.add(Transaction(partner_id=world.partner_a.id, type="credit", amount=Decimal("25.00")))
        # Another partner's movements stay out of this statement
        db.add(Transaction(partner_id=world.partner_b.id, type="debit", amount=Decimal("99.00")))
        await db.commit()

        summary = await LedgerService(db).summarize([world.partner_a.id])
    assert summary.earnings == Decimal("250.00")
    assert summary.debits == Decimal("40.00")
    assert summary.received == Decimal("40.00")
    assert summary.balance == Decimal("210.00")
    # Credits are reported apart from earnings
    assert summary.manual_credits == Decimal("25.00")
    assert summary.skipped_debits == []
    assert summary.earnings - summary.received == summary.balance



def test_day_bounds_require_both_dates():
    assert day_bounds(None, NOW.date()) is None
    start, end = day_bounds(NOW.date(), NOW.date())
    assert start == datetime(2024, 5, 10, tzinfo=timezone.utc)
    assert end.date() == NOW.date()
    assert end.hour == 23 and end.minute == 59


def test_movement_ids_are_prefixed_by_source():
    lead_id = uuid.uuid4()
    commission = entry(EntryKind.COMMISSION, "10.00", lead_id=lead_id)
    debit = entry(EntryKind.MANUAL_DEBIT, "5.00")

    assert commission.to_movement()["id"] == f"lead_{lead_id}"
    assert commission.to_movement()["status"] == "pending"
    assert debit.to_movement()["id"] == f"trans_{debit.source_id}"
    assert debit.to_movement()["type"] == "debit"


async def test_closed_sale_flows_into_partner_dashboard_and_statement(client, world):
    response = await client.put(f"/api/leads/{world.lead_a.id}", headers=world.headers.admin, json={
        "saleClosed": True,
        "saleValue": "1000.00",
        "commissionPercentage": "10",
        "paymentStatus": "payment_made",
        "status": "converted",
    })
    assert response.status_code == 200
    assert Decimal(response.json()["commissionValue"]) == Decimal("100.00")

    dashboard = await client.get("/api/dashboard/partner", headers=world.headers.partner_a)
    assert dashboard.status_code == 200
    kpis = dashboard.json()["kpis"]
    assert Decimal(kpis["totalEarnings"]) == Decimal("100.00")
    assert Decimal(kpis["totalReceived"]) == Decimal("100.00")
    assert Decimal(kpis["balance"]) == Decimal("0.00")
    assert Decimal(kpis["totalSales"]) == Decimal("1000.00")
    assert kpis["leadsCount"] == 1
    assert kpis["convertedLeads"] == 1
    assert kpis["conversionRate"] == 100.0

    movements = await client.get("/api/finance/movements", headers=world.headers.partner_a)
    assert movements.status_code == 200
    [movement] = movements.json()
    assert movement["id"] == f"lead_{world.lead_a.id}"
    assert movement["type"] == "commission"
    assert movement["status"] == "paid"
    assert movement["partnerName"] == "Paula Parceira"


async def test_admin_dashboard_financials_match_ledger(client, world):
    async with async_session_factory() as db:
        await create_lead(
            db, world.partner_b, "Lead Gama",
            sale_closed=True,
            sale_value=Decimal("500.00"),
            commission_value=Decimal("50.00"),
            status="converted",
        )
        db.add(Transaction(partner_id=world.partner_b.id, type="debit", amount=Decimal("20.00")))
        db.add(Transaction(partner_id=world.partner_a.id, type="credit", amount=Decimal("15.00")))
        await db.commit()

    response = await client.get("/api/dashboard/admin", headers=world.headers.admin)
    assert response.status_code == 200
    body = response.json()

    financial = body["financialStats"]
    assert Decimal(financial["totalSales"]) == Decimal("500.00")
    assert Decimal(financial["totalCommissions"]) == Decimal("50.00")
    assert Decimal(financial["totalPaid"]) == Decimal("20.00")
    assert Decimal(financial["totalPayable"]) == Decimal("30.00")
    assert Decimal(financial["manualCredits"]) == Decimal("15.00")

    assert body["partnerStats"] == {"total": 2, "approved": 2, "pending": 0, "rejected": 0}
    assert body["leadStats"] == {"total": 3, "converted": 1, "notConverted": 2}
    assert {row["uf"]: row["count"] for row in body["partnersByState"]} == {"SP": 1, "RJ": 1}


async def test_dashboards_are_role_guarded(client, world):
    assert (await client.get("/api/dashboard/admin", headers=world.headers.partner_a)).status_code == 403
    assert (await client.get("/api/dashboard/partner", headers=world.headers.admin)).status_code == 403


async def test_statement_scope_and_date_window(client, world):
    async with async_session_factory() as db:
        db.add(Transaction(
            partner_id=world.partner_b.id, type="credit", amount=Decimal("12.50"),
            description="Bonus", date=datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc),
        ))
        await db.commit()

    # Consultant of partner_a cannot read partner_b's statement
    response = await client.get(
        "/api/finance/movements",
        params={"partnerId": str(world.partner_b.id)},
        headers=world.headers.consultor,
    )
    assert response.json() == []

    inside = await client.get(
        "/api/finance/movements",
        params={"startDate": "2024-01-15", "endDate": "2024-01-15"},
        headers=world.headers.partner_b,
    )
    assert [m["description"] for m in inside.json()] == ["Bonus"]

    outside = await client.get(
        "/api/finance/movements",
        params={"startDate": "2024-02-01", "endDate": "2024-02-28"},
        headers=world.headers.partner_b,
    )
    assert outside.json() == []


async def test_create_transaction_validates_lead_owner(client, world):
    response = await client.post("/api/finance/transactions", headers=world.headers.admin, json={
        "partnerId": str(world.partner_a.id),
        "type": "debit",
        "amount": "30.00",
        "leadId": str(world.lead_b.id),
    })
    assert response.status_code == 400

    response = await client.post("/api/finance/transactions", headers=world.headers.admin, json={
        "partnerId": str(world.partner_a.id),
        "type": "debit",
        "amount": "30.00",
        "description": "Pix payment",
        "leadId": str(world.lead_a.id),
    })
    assert response.status_code == 201
    assert response.json()["leadId"] == str(world.lead_a.id)

    forbidden = await client.post("/api/finance/transactions", headers=world.headers.consultor, json={
        "partnerId": str(world.partner_a.id), "type": "credit", "amount": "1.00",
    })
    assert forbidden.status_code == 403


async def test_proof_lookup(client, world):
    missing = await client.get(f"/api/finance/proof/{world.lead_a.id}", headers=world.headers.partner_a)
    assert missing.status_code == 404

    proof = "data:application/pdf;base64,JVBERi0xLjQK"
    await client.put(f"/api/leads/{world.lead_a.id}", headers=world.headers.admin, json={
        "commissionProof": proof,
    })

    response = await client.get(f"/api/finance/proof/{world.lead_a.id}", headers=world.headers.partner_a)
    assert response.status_code == 200
    assert response.json()["proof"] == proof

    foreign = await client.get(f"/api/finance/proof/{world.lead_a.id}", headers=world.headers.partner_b)
    assert foreign.status_code == 403


async def test_ledger_service_skips_empty_partner_list(database):
    async with async_session_factory() as db:
        assert await LedgerService(db).entries([]) == []
        assert await LedgerService(db).summarize([]) == LedgerSummary()
