from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from fastapi import HTTPException

from dealerdb.apps.accounts import models as account_models
from dealerdb.apps.purchases import models as purchase_models
from dealerdb.apps.purchases import schemas as purchase_schemas
from dealerdb.apps.purchases import services as purchase_services
from dealerdb.apps.purchases.router import router
from dealerdb.apps.sales import schemas as sales_schemas
from dealerdb.apps.sales import services as sales_services
from dealerdb.apps.stock import models as stock_models
from dealerdb.apps.stock import services as stock_services


def _create_user(db, email: str = "buyer@example.com") -> account_models.User:
    user = account_models.User(email=email, full_name="Buyer", is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _item(chassis: str, engine: str, *, model: str = "Splendor+", colour: str = "Black", price: str = "70000"):
    return purchase_schemas.PurchaseItemIn(
        chassis_no=chassis,
        engine_no=engine,
        model_name=model,
        colour=colour,
        price=Decimal(price),
        hsn="8711",
        gst=Decimal("28"),
        category="Motorcycle",
    )


def _purchase(db, user, items, *, invoice_no: str = "SUP-1", key=None) -> purchase_models.Purchase:
    purchase = purchase_services.create_purchase(
        db,
        user_id=user.id,
        payload=purchase_schemas.PurchaseCreate(
            invoice_no=invoice_no,
            invoice_date=date(2024, 6, 10),
            party_name="Hero Distributors",
            items=items,
            idempotency_key=key,
        ),
    )
    db.commit()
    return purchase


def _stock_chassis(db, user):
    return sorted(u.chassis_no for u in db.query(stock_models.StockUnit).filter_by(user_id=user.id).all())


def _sell(db, user, chassis_nos):
    invoice = sales_services.create_invoice(
        db,
        user_id=user.id,
        payload=sales_schemas.VehicleInvoiceCreate(
            invoice_date=date(2024, 7, 1),
            customer=sales_schemas.CustomerDetails(customer_name="Ravi", state="Kerala"),
            items=[sales_schemas.InvoiceItemIn(chassis_no=c) for c in chassis_nos],
        ),
    )
    db.commit()
    return invoice


def test_purchase_creates_one_stock_row_per_item(db_session):
    user = _create_user(db_session)

    purchase = _purchase(db_session, user, [_item("X1", "EX1"), _item("Y1", "EY1", price="72000")])

    assert _stock_chassis(db_session, user) == ["X1", "Y1"]
    assert purchase.total_amount == Decimal("142000")
    unit = stock_services.get_unit(db_session, user_id=user.id, chassis_no="X1")
    assert unit.purchase_id == purchase.id
    assert unit.purchase_date == date(2024, 6, 10)
    assert unit.source == stock_models.StockSourceEnum.PURCHASE


def test_purchase_rejects_chassis_already_in_stock(db_session):
    user = _create_user(db_session)
    _purchase(db_session, user, [_item("X1", "EX1")])

    with pytest.raises(HTTPException) as exc:
        _purchase(db_session, user, [_item("x1", "EZ9")], invoice_no="SUP-2")
    assert exc.value.status_code == 409
    assert exc.value.detail == "Chassis number X1 already exists in your stock."
    db_session.rollback()

    assert db_session.query(purchase_models.Purchase).count() == 1
    assert _stock_chassis(db_session, user) == ["X1"]


def test_purchase_rejects_duplicates_within_payload(db_session):
    user = _create_user(db_session)

    with pytest.raises(HTTPException) as exc:
        _purchase(db_session, user, [_item("X1", "EX1"), _item("X1", "EX2")])
    assert exc.value.status_code == 400

    with pytest.raises(HTTPException) as exc:
        _purchase(db_session, user, [_item("X1", "EX1"), _item("X2", "EX1")])
    assert exc.value.status_code == 400


def test_purchase_rejects_chassis_on_active_invoice(db_session):
    user = _create_user(db_session)
    _purchase(db_session, user, [_item("X1", "EX1")])
    _sell(db_session, user, ["X1"])

    with pytest.raises(HTTPException) as exc:
        _purchase(db_session, user, [_item("X1", "EX1")], invoice_no="SUP-2")
    assert exc.value.status_code == 409
    assert "already sold" in exc.value.detail


def test_repeated_idempotency_key_returns_original(db_session):
    user = _create_user(db_session)
    first = _purchase(db_session, user, [_item("X1", "EX1")], key="retry-1")
    second = _purchase(db_session, user, [_item("X1", "EX1")], key="retry-1")

    assert first.id == second.id
    assert _stock_chassis(db_session, user) == ["X1"]


def test_update_purchase_diffs_items(db_session):
    user = _create_user(db_session)
    purchase = _purchase(db_session, user, [_item("X1", "EX1"), _item("Y1", "EY1")])

    purchase_services.update_purchase(
        db_session,
        user_id=user.id,
        purchase_id=purchase.id,
        payload=purchase_schemas.PurchaseUpdate(
            invoice_no="SUP-1",
            invoice_date=date(2024, 6, 11),
            party_name="Hero Distributors",
            items=[_item("X1", "EX1", colour="Grey", price="71000"), _item("Z1", "EZ1")],
        ),
    )
    db_session.commit()

    assert _stock_chassis(db_session, user) == ["X1", "Z1"]
    kept = stock_services.get_unit(db_session, user_id=user.id, chassis_no="X1")
    assert kept.colour == "Grey"
    assert kept.price == Decimal("71000")
    assert kept.purchase_date == date(2024, 6, 11)
    assert sorted(i.chassis_no for i in purchase.items) == ["X1", "Z1"]
    assert purchase.total_amount == Decimal("141000")


def test_update_purchase_cannot_drop_sold_unit(db_session):
    user = _create_user(db_session)
    purchase = _purchase(db_session, user, [_item("X1", "EX1"), _item("Y1", "EY1")])
    _sell(db_session, user, ["Y1"])

    with pytest.raises(HTTPException) as exc:
        purchase_services.update_purchase(
            db_session,
            user_id=user.id,
            purchase_id=purchase.id,
            payload=purchase_schemas.PurchaseUpdate(
                invoice_no="SUP-1",
                invoice_date=date(2024, 6, 10),
                party_name="Hero Distributors",
                items=[_item("X1", "EX1")],
            ),
        )
    assert exc.value.status_code == 409
    assert "Y1 is sold on invoice" in exc.value.detail


def test_delete_purchase_removes_stock(db_session):
    user = _create_user(db_session)
    purchase = _purchase(db_session, user, [_item("X1", "EX1"), _item("Y1", "EY1")])

    purchase_services.delete_purchase(db_session, user_id=user.id, purchase_id=purchase.id)
    db_session.commit()

    assert _stock_chassis(db_session, user) == []
    assert db_session.query(purchase_models.PurchaseItem).count() == 0


def test_delete_purchase_refused_when_unit_sold(db_session):
    user = _create_user(db_session)
    purchase = _purchase(db_session, user, [_item("X1", "EX1"), _item("Y1", "EY1")])
    _sell(db_session, user, ["X1"])

    with pytest.raises(HTTPException) as exc:
        purchase_services.delete_purchase(db_session, user_id=user.id, purchase_id=purchase.id)
    assert exc.value.status_code == 409
    db_session.rollback()

    assert _stock_chassis(db_session, user) == ["Y1"]


def test_purchase_return_round_trip(db_session):
    user = _create_user(db_session)
    purchase = _purchase(db_session, user, [_item("X1", "EX1"), _item("Y1", "EY1")])

    purchase_return = purchase_services.create_purchase_return(
        db_session,
        user_id=user.id,
        payload=purchase_schemas.PurchaseReturnCreate(
            purchase_id=purchase.id,
            return_date=date(2024, 6, 20),
            chassis_nos=["y1"],
            reason="Damaged in transit",
        ),
    )
    db_session.commit()

    assert purchase_return.return_invoice_no == "PR-2425-0001"
    assert purchase_return.total_amount == Decimal("70000")
    assert _stock_chassis(db_session, user) == ["X1"]

    with pytest.raises(HTTPException) as exc:
        purchase_services.delete_purchase(db_session, user_id=user.id, purchase_id=purchase.id)
    assert exc.value.status_code == 409
    assert "returned on PR-2425-0001" in exc.value.detail

    purchase_services.delete_purchase_return(db_session, user_id=user.id, return_id=purchase_return.id)
    db_session.commit()

    assert _stock_chassis(db_session, user) == ["X1", "Y1"]
    restored = stock_services.get_unit(db_session, user_id=user.id, chassis_no="Y1")
    assert restored.source == stock_models.StockSourceEnum.PURCHASE_RETURN_REVERSAL
    assert restored.purchase_id == purchase.id


def test_purchase_return_rejects_vehicle_from_other_purchase(db_session):
    user = _create_user(db_session)
    purchase = _purchase(db_session, user, [_item("X1", "EX1")])
    _purchase(db_session, user, [_item("Y1", "EY1")], invoice_no="SUP-2")

    with pytest.raises(HTTPException) as exc:
        purchase_services.create_purchase_return(
            db_session,
            user_id=user.id,
            payload=purchase_schemas.PurchaseReturnCreate(
                purchase_id=purchase.id, return_date=date(2024, 6, 20), chassis_nos=["Y1"]
            ),
        )
    assert exc.value.status_code == 400


def _return(db, user, purchase, chassis_nos):
    purchase_return = purchase_services.create_purchase_return(
        db,
        user_id=user.id,
        payload=purchase_schemas.PurchaseReturnCreate(
            purchase_id=purchase.id, return_date=date(2024, 6, 20), chassis_nos=chassis_nos
        ),
    )
    db.commit()
    return purchase_return


def test_returned_vehicle_bought_again_belongs_to_new_purchase(db_session):
    user = _create_user(db_session)
    first = _purchase(db_session, user, [_item("X1", "EX1")], invoice_no="SUP-1")
    first_return = _return(db_session, user, first, ["X1"])
    second = _purchase(db_session, user, [_item("X1", "EX1")], invoice_no="SUP-2")

    with pytest.raises(HTTPException) as exc:
        purchase_services.delete_purchase(db_session, user_id=user.id, purchase_id=first.id)
    assert exc.value.status_code == 409
    assert "returned on PR-2425-0001" in exc.value.detail
    db_session.rollback()

    with pytest.raises(HTTPException) as exc:
        _return(db_session, user, first, ["X1"])
    assert exc.value.status_code == 409
    db_session.rollback()

    with pytest.raises(HTTPException) as exc:
        purchase_services.delete_purchase_return(db_session, user_id=user.id, return_id=first_return.id)
    assert exc.value.status_code == 409
    assert "in stock from another purchase" in exc.value.detail
    db_session.rollback()

    unit = stock_services.get_unit(db_session, user_id=user.id, chassis_no="X1")
    assert unit.purchase_id == second.id
    second = purchase_services.get_purchase(db_session, user_id=user.id, purchase_id=second.id)
    assert [i.chassis_no for i in second.items] == ["X1"]
    assert db_session.query(purchase_models.PurchaseReturn).count() == 1

    results = purchase_services.search_purchases_for_return(db_session, user_id=user.id, term="X1")
    in_stock = {entry.invoice_no: entry.items[0].in_stock for entry in results}
    assert in_stock == {"SUP-1": False, "SUP-2": True}


def test_update_purchase_cannot_drop_vehicle_held_by_another_purchase(db_session):
    user = _create_user(db_session)
    first = _purchase(db_session, user, [_item("X1", "EX1"), _item("Y1", "EY1")], invoice_no="SUP-1")
    _return(db_session, user, first, ["X1"])
    second = _purchase(db_session, user, [_item("X1", "EX1")], invoice_no="SUP-2")

    with pytest.raises(HTTPException) as exc:
        purchase_services.update_purchase(
            db_session,
            user_id=user.id,
            purchase_id=first.id,
            payload=purchase_schemas.PurchaseUpdate(
                invoice_no="SUP-1",
                invoice_date=date(2024, 6, 10),
                party_name="Hero Distributors",
                items=[_item("Y1", "EY1")],
            ),
        )
    assert exc.value.status_code == 409
    db_session.rollback()

    assert _stock_chassis(db_session, user) == ["X1", "Y1"]
    assert stock_services.get_unit(db_session, user_id=user.id, chassis_no="X1").purchase_id == second.id


def test_delete_second_purchase_leaves_first_purchase_history(db_session):
    user = _create_user(db_session)
    first = _purchase(db_session, user, [_item("X1", "EX1")], invoice_no="SUP-1")
    _return(db_session, user, first, ["X1"])
    second = _purchase(db_session, user, [_item("X1", "EX1")], invoice_no="SUP-2")

    purchase_services.delete_purchase(db_session, user_id=user.id, purchase_id=second.id)
    db_session.commit()

    assert _stock_chassis(db_session, user) == []
    assert purchase_services.get_purchase(db_session, user_id=user.id, purchase_id=first.id).invoice_no == "SUP-1"


def test_search_purchases_for_return_returns_matching_lines(db_session):
    user = _create_user(db_session)
    _purchase(db_session, user, [_item("MBLHA10", "EX1"), _item("MBLHB20", "EY1")])
    _sell(db_session, user, ["MBLHB20"])

    results = purchase_services.search_purchases_for_return(db_session, user_id=user.id, term="hb2")

    assert len(results) == 1
    assert [i.chassis_no for i in results[0].items] == ["MBLHB20"]
    assert results[0].items[0].in_stock is False
    assert purchase_services.search_purchases_for_return(db_session, user_id=user.id, term="  ") == []


def test_list_purchases_search_covers_items(db_session):
    user = _create_user(db_session)
    _purchase(db_session, user, [_item("X1", "EX1")], invoice_no="SUP-1")
    _purchase(db_session, user, [_item("Y1", "EY1")], invoice_no="SUP-2")

    items, total = purchase_services.list_purchases(db_session, user_id=user.id, search="y1")
    assert total == 1 and items[0].invoice_no == "SUP-2"

    _, total = purchase_services.list_purchases(
        db_session, user_id=user.id, start_date=date(2024, 7, 1)
    )
    assert total == 0


def test_purchase_routes_registered():
    paths = {(route.path, tuple(sorted(route.methods))) for route in router.routes}
    assert ("/purchases", ("POST",)) in paths
    assert ("/purchases/{purchase_id}", ("PUT",)) in paths
    assert ("/purchases/{purchase_id}", ("DELETE",)) in paths
    assert ("/purchases/search-for-return", ("GET",)) in paths
    assert ("/purchase-returns", ("POST",)) in paths
    assert ("/purchase-returns/{return_id}", ("DELETE",)) in paths
