from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest
from fastapi import HTTPException

from dealerdb.apps.accounts import models as account_models
from dealerdb.apps.customers import schemas as customer_schemas
from dealerdb.apps.customers import services as customer_services
from dealerdb.apps.workshop import models as workshop_models
from dealerdb.apps.workshop import schemas as workshop_schemas
from dealerdb.apps.workshop import services as workshop_services
from dealerdb.apps.workshop.router import router

JOB_DATE = date(2024, 7, 10)


def _create_user(db, email: str = "workshop@example.com") -> account_models.User:
    user = account_models.User(email=email, full_name="Service Advisor", is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _parts(db, user):
    workshop_services.upsert_parts(
        db,
        user_id=user.id,
        parts=[
            workshop_schemas.WorkshopPartIn(
                part_no="of-100", part_name="Oil Filter", hsn_code="8421", sale_rate=Decimal("150"),
                gst=Decimal("18"), quantity=Decimal("10"),
            ),
            workshop_schemas.WorkshopPartIn(
                part_no="EO-1L", part_name="Engine Oil 1L", hsn_code="2710", uom="LTR",
                sale_rate=Decimal("400"), gst=Decimal("18"), quantity=Decimal("5"),
            ),
        ],
    )
    db.commit()


def _on_hand(db, user, part_no):
    return workshop_services.get_part(db, user_id=user.id, part_no=part_no).quantity


def _card(parts, *, labour=("General Service", "500"), schema=workshop_schemas.JobCardCreate, **kwargs):
    labour_items = []
    if labour:
        name, rate = labour
        labour_items.append(workshop_schemas.JobCardItemIn(item_name=name, rate=Decimal(rate), gst_rate=Decimal("18")))
    return schema(
        invoice_date=kwargs.pop("invoice_date", JOB_DATE),
        customer_name=kwargs.pop("customer_name", "Suresh"),
        customer_state=kwargs.pop("customer_state", "Kerala"),
        reg_no=kwargs.pop("reg_no", "kl 07 ab 1234"),
        model="Activa 6G",
        kms=12000,
        parts_items=[
            workshop_schemas.JobCardItemIn(part_no=part_no, quantity=Decimal(qty)) for part_no, qty in parts
        ],
        labour_items=labour_items,
        **kwargs,
    )


def test_upsert_parts_inserts_then_overwrites(db_session):
    user = _create_user(db_session)
    _parts(db_session, user)

    assert _on_hand(db_session, user, "OF-100") == Decimal("10")

    workshop_services.upsert_parts(
        db_session,
        user_id=user.id,
        parts=[workshop_schemas.WorkshopPartIn(part_no=" of-100 ", part_name="Oil Filter (HMSI)", quantity=Decimal("4"))],
    )
    db_session.commit()

    part = workshop_services.get_part(db_session, user_id=user.id, part_no="of-100")
    assert part.part_name == "Oil Filter (HMSI)"
    assert part.quantity == Decimal("4")
    items, total = workshop_services.list_parts(db_session, user_id=user.id, search="oil")
    assert total == 2
    assert [p.part_no for p in items] == ["EO-1L", "OF-100"]

    with pytest.raises(HTTPException) as exc:
        workshop_services.upsert_parts(
            db_session,
            user_id=user.id,
            parts=[
                workshop_schemas.WorkshopPartIn(part_no="X1", part_name="Bulb"),
                workshop_schemas.WorkshopPartIn(part_no="x1", part_name="Bulb"),
            ],
        )
    assert exc.value.status_code == 400

    with pytest.raises(HTTPException) as exc:
        workshop_services.get_part(db_session, user_id=user.id, part_no="NOPE")
    assert exc.value.status_code == 404


def test_job_card_is_numbered_and_deducts_parts(db_session):
    user = _create_user(db_session)
    _parts(db_session, user)

    card = workshop_services.create_job_card(
        db_session, user_id=user.id, payload=_card([("OF-100", "1"), ("EO-1L", "2")])
    )
    db_session.commit()

    assert card.invoice_no == "JC-2425-0001"
    assert card.financial_year == "24-25"
    assert card.reg_no == "KL07AB1234"
    assert card.next_due_date == JOB_DATE + timedelta(days=90)
    assert card.parts_total == Decimal("1121.00")
    assert card.labour_total == Decimal("590.00")
    assert card.taxable_total == Decimal("1450.00")
    assert card.cgst_total == Decimal("130.50")
    assert card.sgst_total == Decimal("130.50")
    assert card.igst_total == Decimal("0")
    assert card.grand_total == Decimal("1711")
    kinds = [item.kind for item in card.items]
    assert kinds.count(workshop_models.JobCardItemKind.PART) == 2
    assert [i.item_name for i in card.items if i.part_no == "EO-1L"] == ["Engine Oil 1L"]

    assert _on_hand(db_session, user, "OF-100") == Decimal("9")
    assert _on_hand(db_session, user, "EO-1L") == Decimal("3")


def test_job_card_needs_enough_parts_and_rolls_back(db_session):
    user = _create_user(db_session)
    _parts(db_session, user)

    with pytest.raises(HTTPException) as exc:
        workshop_services.create_job_card(
            db_session, user_id=user.id, payload=_card([("OF-100", "1"), ("EO-1L", "6")])
        )
    assert exc.value.status_code == 409
    assert "EO-1L" in exc.value.detail
    db_session.rollback()

    assert _on_hand(db_session, user, "OF-100") == Decimal("10")
    assert _on_hand(db_session, user, "EO-1L") == Decimal("5")
    assert db_session.query(workshop_models.JobCard).count() == 0

    card = workshop_services.create_job_card(db_session, user_id=user.id, payload=_card([("OF-100", "1")]))
    assert card.invoice_no == "JC-2425-0001"


def test_job_card_rejects_unknown_part_and_empty_card(db_session):
    user = _create_user(db_session)
    _parts(db_session, user)

    with pytest.raises(HTTPException) as exc:
        workshop_services.create_job_card(db_session, user_id=user.id, payload=_card([("SPARK-9", "1")]))
    assert exc.value.status_code == 404
    db_session.rollback()

    with pytest.raises(HTTPException) as exc:
        workshop_services.create_job_card(db_session, user_id=user.id, payload=_card([], labour=None))
    assert exc.value.status_code == 400


def test_edit_applies_only_the_part_difference(db_session):
    user = _create_user(db_session)
    _parts(db_session, user)
    card = workshop_services.create_job_card(
        db_session, user_id=user.id, payload=_card([("OF-100", "1"), ("EO-1L", "2")])
    )
    db_session.commit()

    updated = workshop_services.update_job_card(
        db_session,
        user_id=user.id,
        job_card_id=card.id,
        payload=_card([("OF-100", "3")], schema=workshop_schemas.JobCardUpdate),
    )
    db_session.commit()

    assert updated.invoice_no == "JC-2425-0001"
    assert [(i.part_no, i.quantity) for i in updated.items if i.part_no] == [("OF-100", Decimal("3"))]
    assert _on_hand(db_session, user, "OF-100") == Decimal("7")
    assert _on_hand(db_session, user, "EO-1L") == Decimal("5")

    with pytest.raises(HTTPException) as exc:
        workshop_services.update_job_card(
            db_session,
            user_id=user.id,
            job_card_id=card.id,
            payload=_card([("OF-100", "3")], schema=workshop_schemas.JobCardUpdate, invoice_date=date(2025, 4, 2)),
        )
    assert exc.value.status_code == 400
    db_session.rollback()
    assert workshop_services.get_job_card(db_session, user_id=user.id, job_card_id=card.id).invoice_date == JOB_DATE


def test_delete_job_card_restores_parts(db_session):
    user = _create_user(db_session)
    _parts(db_session, user)
    card = workshop_services.create_job_card(
        db_session, user_id=user.id, payload=_card([("OF-100", "1"), ("OF-100", "1"), ("EO-1L", "2")])
    )
    db_session.commit()
    assert _on_hand(db_session, user, "OF-100") == Decimal("8")

    workshop_services.delete_job_card(db_session, user_id=user.id, job_card_id=card.id)
    db_session.commit()

    assert _on_hand(db_session, user, "OF-100") == Decimal("10")
    assert _on_hand(db_session, user, "EO-1L") == Decimal("5")
    assert db_session.query(workshop_models.JobCardItem).count() == 0
    with pytest.raises(HTTPException) as exc:
        workshop_services.get_job_card(db_session, user_id=user.id, job_card_id=card.id)
    assert exc.value.status_code == 404


def test_manual_number_is_unique_and_skipped_by_the_series(db_session):
    user = _create_user(db_session)
    _parts(db_session, user)
    workshop_services.create_job_card(
        db_session, user_id=user.id, payload=_card([("OF-100", "1")], invoice_no="JC-2425-0001")
    )
    db_session.commit()

    preview = workshop_services.preview_job_card_number(db_session, user_id=user.id, on_date=JOB_DATE)
    assert preview.number == "JC-2425-0002"

    with pytest.raises(HTTPException) as exc:
        workshop_services.create_job_card(
            db_session, user_id=user.id, payload=_card([("OF-100", "1")], invoice_no="JC-2425-0001")
        )
    assert exc.value.status_code == 409
    db_session.rollback()

    card = workshop_services.create_job_card(db_session, user_id=user.id, payload=_card([("OF-100", "1")]))
    assert card.invoice_no == preview.number


def test_inter_state_job_card_charges_igst(db_session):
    user = _create_user(db_session)
    _parts(db_session, user)

    card = workshop_services.create_job_card(
        db_session, user_id=user.id, payload=_card([("OF-100", "1")], customer_state="Tamil Nadu")
    )

    assert card.is_inter_state is True
    assert card.igst_total == Decimal("117.00")
    assert card.cgst_total == Decimal("0")


def test_list_job_cards_searches_reg_no_and_dates(db_session):
    user = _create_user(db_session)
    _parts(db_session, user)
    workshop_services.create_job_card(db_session, user_id=user.id, payload=_card([("OF-100", "1")]))
    workshop_services.create_job_card(
        db_session,
        user_id=user.id,
        payload=_card([("OF-100", "1")], reg_no="KL01Z9", customer_name="Meera", invoice_date=date(2024, 8, 1)),
    )
    db_session.commit()

    items, total = workshop_services.list_job_cards(db_session, user_id=user.id, search="z9")
    assert total == 1 and items[0].customer_name == "Meera"

    _, total = workshop_services.list_job_cards(db_session, user_id=user.id, start_date=date(2024, 7, 15))
    assert total == 1
    items, total = workshop_services.list_job_cards(db_session, user_id=user.id)
    assert [c.invoice_no for c in items] == ["JC-2425-0002", "JC-2425-0001"]


def test_customer_on_a_job_card_cannot_be_deleted(db_session):
    user = _create_user(db_session)
    _parts(db_session, user)
    customer = customer_services.create_customer(
        db_session,
        user_id=user.id,
        payload=customer_schemas.CustomerCreate(customer_name="Anita", mobile1="9876543210", state="Kerala"),
    )
    db_session.commit()
    card = workshop_services.create_job_card(
        db_session, user_id=user.id, payload=_card([("OF-100", "1")], customer_id=customer.id)
    )
    db_session.commit()
    assert card.customer_mobile == "9876543210"

    with pytest.raises(HTTPException) as exc:
        customer_services.delete_customer(db_session, user_id=user.id, customer_id=customer.id)
    assert exc.value.status_code == 409
    assert "job cards" in exc.value.detail


def test_workshop_routes_registered():
    paths = {(route.path, tuple(sorted(route.methods))) for route in router.routes}
    assert ("/workshop/parts", ("GET",)) in paths
    assert ("/workshop/parts", ("PUT",)) in paths
    assert ("/workshop/parts/{part_no}", ("GET",)) in paths
    assert ("/job-cards", ("POST",)) in paths
    assert ("/job-cards/preview-number", ("GET",)) in paths
    assert ("/job-cards/{job_card_id}", ("PUT",)) in paths
    assert ("/job-cards/{job_card_id}", ("DELETE",)) in paths
