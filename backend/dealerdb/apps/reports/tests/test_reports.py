from __future__ import annotations

from datetime import date
from decimal import Decimal

from dealerdb.apps.accounts import models as account_models
from dealerdb.apps.purchases import schemas as purchase_schemas
from dealerdb.apps.purchases import services as purchase_services
from dealerdb.apps.reports import services as report_services
from dealerdb.apps.reports.router import router
from dealerdb.apps.sales import schemas as sales_schemas
from dealerdb.apps.sales import services as sales_services
from dealerdb.apps.stock import models as stock_models


def _create_user(db) -> account_models.User:
    user = account_models.User(email="reports@example.com", full_name="Reports", is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _buy(db, user):
    items = [
        ("A1", "EA1", "Activa 6G", "Red"),
        ("A2", "EA2", "Activa 6G", "Red"),
        ("A3", "EA3", "Activa 6G", "Black"),
        ("S1", "ES1", "Shine", "Blue"),
    ]
    purchase = purchase_services.create_purchase(
        db,
        user_id=user.id,
        payload=purchase_schemas.PurchaseCreate(
            invoice_no="HMSI-88",
            invoice_date=date(2024, 5, 2),
            party_name="Honda Motorcycle",
            items=[
                purchase_schemas.PurchaseItemIn(
                    chassis_no=c, engine_no=e, model_name=m, colour=col, price=Decimal("80000"), gst=Decimal("28")
                )
                for c, e, m, col in items
            ],
        ),
    )
    db.commit()
    return purchase


def _sell(db, user, chassis_nos, *, on=date(2024, 6, 1), gst=None):
    invoice = sales_services.create_invoice(
        db,
        user_id=user.id,
        payload=sales_schemas.VehicleInvoiceCreate(
            invoice_date=on,
            customer=sales_schemas.CustomerDetails(customer_name="Buyer", gst=gst),
            items=[sales_schemas.InvoiceItemIn(chassis_no=c) for c in chassis_nos],
        ),
    )
    db.commit()
    return invoice


def test_stock_summary_counts_by_model_and_colour(db_session):
    user = _create_user(db_session)
    _buy(db_session, user)
    _sell(db_session, user, ["A3"])

    summary = report_services.stock_summary(db_session, user_id=user.id)

    assert [(r.model_name, r.colour, r.count) for r in summary.rows] == [
        ("Activa 6G", "Red", 2),
        ("Shine", "Blue", 1),
    ]
    assert [(m.model_name, m.count) for m in summary.models] == [("Activa 6G", 2), ("Shine", 1)]
    assert summary.grand_total == 3
    assert report_services.stock_summary(db_session, user_id=user.id, model_name="shine").grand_total == 1


def test_track_vehicle_shows_history(db_session):
    user = _create_user(db_session)
    purchase = _buy(db_session, user)
    invoice = _sell(db_session, user, ["A1"])

    tracks = report_services.track_vehicle(db_session, user_id=user.id, term="ea1")

    assert len(tracks) == 1
    track = tracks[0]
    assert track.chassis_no == "A1"
    assert track.in_stock is False
    assert track.model_name == "Activa 6G"
    assert [p.id for p in track.purchases] == [purchase.id]
    assert [i.number for i in track.invoices] == [invoice.invoice_no]
    assert report_services.track_vehicle(db_session, user_id=user.id, term="") == []


def test_consistency_report_flags_violations(db_session):
    user = _create_user(db_session)
    _buy(db_session, user)
    invoice = _sell(db_session, user, ["A1"])
    assert report_services.consistency_report(db_session, user_id=user.id) == []

    # Simulate a unit written back to stock outside the ledger.
    db_session.add(
        stock_models.StockUnit(
            user_id=user.id, chassis_no="A1", engine_no="EA1", model_name="Activa 6G", colour="Red", price=80000
        )
    )
    db_session.commit()

    issues = report_services.consistency_report(db_session, user_id=user.id)
    assert len(issues) == 1
    assert issues[0].chassis_no == "A1"
    assert issues[0].kind == "IN_STOCK_AND_SOLD"
    assert issues[0].invoice_nos == [invoice.invoice_no]


def test_sales_register_totals_by_document_type(db_session):
    user = _create_user(db_session)
    _buy(db_session, user)
    _sell(db_session, user, ["A1"])
    _sell(db_session, user, ["A2", "S1"], gst="32ABCDE1234F1Z5")
    _sell(db_session, user, ["A3"], on=date(2025, 4, 5))

    register = report_services.sales_register(db_session, user_id=user.id, financial_year="24-25")

    assert register.start_date == date(2024, 4, 1)
    assert register.end_date == date(2025, 3, 31)
    assert len(register.invoices) == 2
    assert register.totals_by_type["NON_REGISTERED"].count == 1
    assert register.totals_by_type["REGISTERED"].grand_total == Decimal("160000")
    assert register.totals.grand_total == Decimal("240000")
    assert register.totals.taxable_total + register.totals.tax_total == Decimal("240000")


def test_report_routes_registered():
    paths = {route.path for route in router.routes}
    assert {
        "/reports/stock-summary",
        "/reports/track-vehicle",
        "/reports/consistency",
        "/reports/sales-register",
    } <= paths
