from __future__ import annotations

import logging
from decimal import Decimal
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from fastapi import HTTPException, status
from sqlalchemy import exists, or_
from sqlalchemy.orm import Session

from dealerdb.apps.audit import services as audit_services
from dealerdb.apps.numbering import services as numbering_services
from dealerdb.apps.numbering.models import DocumentType
from dealerdb.apps.sales import models as sales_models
from dealerdb.apps.stock import models as stock_models
from dealerdb.apps.stock import services as stock_services
from dealerdb.apps.stock.snapshots import UnitSnapshot

from . import models, schemas

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def _ensure_unique_within(items: Sequence[schemas.PurchaseItemIn]) -> None:
    seen_chassis = set()
    seen_engines = set()
    for item in items:
        if item.chassis_no in seen_chassis:
            raise HTTPException(
                status_code=400, detail=f"Chassis number {item.chassis_no} is entered more than once."
            )
        if item.engine_no in seen_engines:
            raise HTTPException(
                status_code=400, detail=f"Engine number {item.engine_no} is entered more than once."
            )
        seen_chassis.add(item.chassis_no)
        seen_engines.add(item.engine_no)


def _snapshot(item: schemas.PurchaseItemIn, *, purchase: models.Purchase) -> UnitSnapshot:
    return UnitSnapshot(
        chassis_no=item.chassis_no,
        engine_no=item.engine_no,
        model_name=item.model_name,
        colour=item.colour,
        price=item.price,
        hsn=item.hsn,
        gst=item.gst,
        category=item.category,
        purchase_date=purchase.invoice_date,
        purchase_id=purchase.id,
    )


def _item_row(item: schemas.PurchaseItemIn, *, user_id: str) -> models.PurchaseItem:
    return models.PurchaseItem(
        user_id=user_id,
        chassis_no=item.chassis_no,
        engine_no=item.engine_no,
        model_name=item.model_name,
        colour=item.colour,
        price=item.price,
        hsn=item.hsn,
        gst=item.gst,
        category=item.category,
    )


def sold_chassis(db: Session, *, user_id: str, chassis_nos: Iterable[str]) -> Dict[str, str]:
    """Chassis numbers on a live invoice line, mapped to the invoice number."""
    chassis_nos = list(chassis_nos)
    if not chassis_nos:
        return {}
    rows = (
        db.query(sales_models.VehicleInvoiceItem.chassis_no, sales_models.VehicleInvoice.invoice_no)
        .join(sales_models.VehicleInvoice, sales_models.VehicleInvoiceItem.invoice_id == sales_models.VehicleInvoice.id)
        .filter(
            sales_models.VehicleInvoiceItem.user_id == user_id,
            sales_models.VehicleInvoiceItem.chassis_no.in_(chassis_nos),
            sales_models.VehicleInvoiceItem.is_returned.is_(False),
        )
        .all()
    )
    return {chassis: invoice_no for chassis, invoice_no in rows}


def returned_chassis(
    db: Session,
    *,
    user_id: str,
    chassis_nos: Iterable[str],
    purchase_id: Optional[int] = None,
) -> Dict[str, str]:
    """Chassis numbers sent back on a purchase return, mapped to the return number."""
    chassis_nos = list(chassis_nos)
    if not chassis_nos:
        return {}
    query = (
        db.query(models.PurchaseReturnItem.chassis_no, models.PurchaseReturn.return_invoice_no)
        .join(models.PurchaseReturn, models.PurchaseReturnItem.purchase_return_id == models.PurchaseReturn.id)
        .filter(
            models.PurchaseReturnItem.user_id == user_id,
            models.PurchaseReturnItem.chassis_no.in_(chassis_nos),
        )
    )
    if purchase_id is not None:
        query = query.filter(models.PurchaseReturn.purchase_id == purchase_id)
    return {chassis: number for chassis, number in query.all()}


def _ensure_can_stock(db: Session, *, user_id: str, items: Sequence[schemas.PurchaseItemIn]) -> None:
    for item in items:
        check = stock_services.check_existence(
            db, user_id=user_id, chassis_no=item.chassis_no, engine_no=item.engine_no
        )
        if check.exists:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=check.message)
    sold = sold_chassis(db, user_id=user_id, chassis_nos=[i.chassis_no for i in items])
    if sold:
        chassis_no, invoice_no = next(iter(sold.items()))
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Chassis number {chassis_no} is already sold on invoice {invoice_no}.",
        )


def _ensure_owned_in_stock(
    db: Session,
    *,
    user_id: str,
    purchase: models.Purchase,
    chassis_nos: Sequence[str],
    action: str,
) -> None:
    """Every chassis must still be on the floor as the unit this purchase brought in."""
    chassis_nos = list(chassis_nos)
    if not chassis_nos:
        return
    returned = returned_chassis(db, user_id=user_id, chassis_nos=chassis_nos, purchase_id=purchase.id)
    problems = []
    for chassis_no in chassis_nos:
        unit = stock_services.get_unit(db, user_id=user_id, chassis_no=chassis_no)
        if chassis_no in returned or unit is None or unit.purchase_id != purchase.id:
            problems.append((chassis_no, unit))
    if not problems:
        return
    sold = sold_chassis(db, user_id=user_id, chassis_nos=[c for c, unit in problems if unit is None])
    reasons = []
    for chassis_no, unit in problems:
        if chassis_no in returned:
            reasons.append(f"{chassis_no} is returned on {returned[chassis_no]}")
        elif unit is not None:
            reasons.append(f"{chassis_no} is in stock from another purchase")
        elif chassis_no in sold:
            reasons.append(f"{chassis_no} is sold on invoice {sold[chassis_no]}")
        else:
            reasons.append(f"{chassis_no} is no longer in stock")
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=f"Cannot {action}: " + "; ".join(reasons) + ".",
    )


def _reference(purchase: models.Purchase) -> dict:
    return {"purchase_id": purchase.id, "invoice_no": purchase.invoice_no}


def _total(items: Iterable) -> Decimal:
    return sum((Decimal(str(i.price or 0)) for i in items), Decimal("0"))


# ---------------------------------------------------------------------------
# purchases
# ---------------------------------------------------------------------------


def get_purchase(db: Session, *, user_id: str, purchase_id: int) -> models.Purchase:
    purchase = (
        db.query(models.Purchase)
        .filter(models.Purchase.user_id == user_id, models.Purchase.id == purchase_id)
        .first()
    )
    if not purchase:
        raise HTTPException(status_code=404, detail="Purchase not found.")
    return purchase


def list_purchases(
    db: Session,
    *,
    user_id: str,
    search: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    skip: int = 0,
    limit: int = 50,
) -> Tuple[List[models.Purchase], int]:
    query = db.query(models.Purchase).filter(models.Purchase.user_id == user_id)
    if search and search.strip():
        term = f"%{search.strip()}%"
        item_match = exists().where(
            models.PurchaseItem.purchase_id == models.Purchase.id,
            or_(models.PurchaseItem.chassis_no.ilike(term), models.PurchaseItem.engine_no.ilike(term)),
        )
        query = query.filter(
            or_(
                models.Purchase.invoice_no.ilike(term),
                models.Purchase.party_name.ilike(term),
                item_match,
            )
        )
    else:
        if start_date:
            query = query.filter(models.Purchase.invoice_date >= start_date)
        if end_date:
            query = query.filter(models.Purchase.invoice_date <= end_date)
    total = query.count()
    items = (
        query.order_by(models.Purchase.invoice_date.desc(), models.Purchase.created_at.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return items, total


def create_purchase(
    db: Session,
    *,
    user_id: str,
    payload: schemas.PurchaseCreate,
) -> models.Purchase:
    if payload.idempotency_key:
        existing = (
            db.query(models.Purchase)
            .filter(
                models.Purchase.user_id == user_id,
                models.Purchase.idempotency_key == payload.idempotency_key,
            )
            .first()
        )
        if existing:
            return existing

    _ensure_unique_within(payload.items)
    _ensure_can_stock(db, user_id=user_id, items=payload.items)

    purchase = models.Purchase(
        user_id=user_id,
        serial_no=payload.serial_no,
        invoice_no=payload.invoice_no.strip(),
        invoice_date=payload.invoice_date,
        party_name=payload.party_name.strip(),
        total_amount=_total(payload.items),
        idempotency_key=payload.idempotency_key,
        items=[_item_row(item, user_id=user_id) for item in payload.items],
    )
    db.add(purchase)
    db.flush()

    stock_services.add_units(
        db,
        user_id=user_id,
        snapshots=[_snapshot(item, purchase=purchase) for item in payload.items],
        source=stock_models.StockSourceEnum.PURCHASE,
        reference=_reference(purchase),
    )
    audit_services.log_event(
        db,
        user_id=user_id,
        entity_type="Purchase",
        entity_id=str(purchase.id),
        action="create",
        after={"invoice_no": purchase.invoice_no, "chassis_nos": [i.chassis_no for i in payload.items]},
    )
    logger.info(
        "Purchase saved",
        extra={"user_id": user_id, "purchase_id": purchase.id, "items": len(payload.items)},
    )
    return purchase


def update_purchase(
    db: Session,
    *,
    user_id: str,
    purchase_id: int,
    payload: schemas.PurchaseUpdate,
) -> models.Purchase:
    purchase = get_purchase(db, user_id=user_id, purchase_id=purchase_id)
    _ensure_unique_within(payload.items)

    new_by_chassis = {item.chassis_no: item for item in payload.items}
    diff = stock_services.diff_items([i.chassis_no for i in purchase.items], new_by_chassis.keys())
    reference = _reference(purchase)

    # Removed lines must still be on the floor; a sold unit stays on its purchase.
    _ensure_owned_in_stock(
        db,
        user_id=user_id,
        purchase=purchase,
        chassis_nos=diff.removed,
        action="remove vehicles from this purchase",
    )
    stock_services.remove_units(
        db, user_id=user_id, chassis_nos=diff.removed, reference=reference, purchase_id=purchase.id
    )

    added_items = [new_by_chassis[c] for c in diff.added]
    _ensure_can_stock(db, user_id=user_id, items=added_items)

    purchase.serial_no = payload.serial_no
    purchase.invoice_no = payload.invoice_no.strip()
    purchase.invoice_date = payload.invoice_date
    purchase.party_name = payload.party_name.strip()

    for chassis_no in diff.kept:
        stock_services.refresh_attributes(
            db, user_id=user_id, snapshot=_snapshot(new_by_chassis[chassis_no], purchase=purchase)
        )

    old_rows = {row.chassis_no: row for row in purchase.items}
    rows = []
    for item in payload.items:
        row = old_rows.get(item.chassis_no)
        if row is None:
            rows.append(_item_row(item, user_id=user_id))
            continue
        for name in ("engine_no", "model_name", "colour", "price", "hsn", "gst", "category"):
            setattr(row, name, getattr(item, name))
        rows.append(row)
    purchase.items = rows
    purchase.total_amount = _total(payload.items)
    db.add(purchase)
    db.flush()

    if added_items:
        stock_services.add_units(
            db,
            user_id=user_id,
            snapshots=[_snapshot(item, purchase=purchase) for item in added_items],
            source=stock_models.StockSourceEnum.PURCHASE,
            reference=reference,
        )
    audit_services.log_event(
        db,
        user_id=user_id,
        entity_type="Purchase",
        entity_id=str(purchase.id),
        action="update",
        metadata={"removed": diff.removed, "added": diff.added, "kept": diff.kept},
    )
    logger.info(
        "Purchase updated",
        extra={
            "user_id": user_id,
            "purchase_id": purchase.id,
            "removed": len(diff.removed),
            "added": len(diff.added),
        },
    )
    return purchase


def delete_purchase(db: Session, *, user_id: str, purchase_id: int) -> None:
    purchase = get_purchase(db, user_id=user_id, purchase_id=purchase_id)
    chassis_nos = [item.chassis_no for item in purchase.items]
    _ensure_owned_in_stock(
        db, user_id=user_id, purchase=purchase, chassis_nos=chassis_nos, action="delete this purchase"
    )

    stock_services.remove_units(
        db,
        user_id=user_id,
        chassis_nos=chassis_nos,
        reference=_reference(purchase),
        purchase_id=purchase.id,
    )
    audit_services.log_event(
        db,
        user_id=user_id,
        entity_type="Purchase",
        entity_id=str(purchase.id),
        action="delete",
        before={"invoice_no": purchase.invoice_no, "chassis_nos": chassis_nos},
    )
    db.delete(purchase)
    db.flush()
    logger.info("Purchase deleted", extra={"user_id": user_id, "purchase_id": purchase_id})


def search_purchases_for_return(
    db: Session,
    *,
    user_id: str,
    term: str,
    limit: int = 20,
) -> List[schemas.PurchaseForReturn]:
    """Purchases holding a chassis or engine number like `term`, with only the matching lines."""
    term = (term or "").strip()
    if not term:
        return []
    pattern = f"%{term}%"
    matches = (
        db.query(models.PurchaseItem)
        .join(models.Purchase, models.PurchaseItem.purchase_id == models.Purchase.id)
        .filter(
            models.Purchase.user_id == user_id,
            or_(models.PurchaseItem.chassis_no.ilike(pattern), models.PurchaseItem.engine_no.ilike(pattern)),
        )
        .order_by(models.Purchase.invoice_date.desc(), models.PurchaseItem.id)
        .all()
    )
    grouped: Dict[int, schemas.PurchaseForReturn] = {}
    for item in matches:
        purchase = item.purchase
        entry = grouped.get(purchase.id)
        if entry is None:
            if len(grouped) >= limit:
                continue
            entry = schemas.PurchaseForReturn(
                id=purchase.id,
                invoice_no=purchase.invoice_no,
                invoice_date=purchase.invoice_date,
                party_name=purchase.party_name,
                items=[],
            )
            grouped[purchase.id] = entry
        unit = stock_services.get_unit(db, user_id=user_id, chassis_no=item.chassis_no)
        in_stock = unit is not None and unit.purchase_id == purchase.id
        entry.items.append(
            schemas.PurchaseItemMatch.model_validate(
                {**schemas.PurchaseItemRead.model_validate(item).model_dump(), "in_stock": in_stock}
            )
        )
    return list(grouped.values())


# ---------------------------------------------------------------------------
# purchase returns
# ---------------------------------------------------------------------------


def get_purchase_return(db: Session, *, user_id: str, return_id: int) -> models.PurchaseReturn:
    purchase_return = (
        db.query(models.PurchaseReturn)
        .filter(models.PurchaseReturn.user_id == user_id, models.PurchaseReturn.id == return_id)
        .first()
    )
    if not purchase_return:
        raise HTTPException(status_code=404, detail="Purchase return not found.")
    return purchase_return


def list_purchase_returns(
    db: Session,
    *,
    user_id: str,
    search: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    skip: int = 0,
    limit: int = 50,
) -> Tuple[List[models.PurchaseReturn], int]:
    query = db.query(models.PurchaseReturn).filter(models.PurchaseReturn.user_id == user_id)
    if search and search.strip():
        term = f"%{search.strip()}%"
        item_match = exists().where(
            models.PurchaseReturnItem.purchase_return_id == models.PurchaseReturn.id,
            or_(
                models.PurchaseReturnItem.chassis_no.ilike(term),
                models.PurchaseReturnItem.engine_no.ilike(term),
            ),
        )
        query = query.filter(
            or_(
                models.PurchaseReturn.return_invoice_no.ilike(term),
                models.PurchaseReturn.party_name.ilike(term),
                item_match,
            )
        )
    if start_date:
        query = query.filter(models.PurchaseReturn.return_date >= start_date)
    if end_date:
        query = query.filter(models.PurchaseReturn.return_date <= end_date)
    total = query.count()
    items = query.order_by(models.PurchaseReturn.return_date.desc(), models.PurchaseReturn.id.desc())
    return items.offset(skip).limit(limit).all(), total


def _return_number_taken(db: Session, *, user_id: str, number: str) -> bool:
    return (
        db.query(models.PurchaseReturn.id)
        .filter(models.PurchaseReturn.user_id == user_id, models.PurchaseReturn.return_invoice_no == number)
        .first()
        is not None
    )


def create_purchase_return(
    db: Session,
    *,
    user_id: str,
    payload: schemas.PurchaseReturnCreate,
) -> models.PurchaseReturn:
    if payload.idempotency_key:
        existing = (
            db.query(models.PurchaseReturn)
            .filter(
                models.PurchaseReturn.user_id == user_id,
                models.PurchaseReturn.idempotency_key == payload.idempotency_key,
            )
            .first()
        )
        if existing:
            return existing

    purchase = get_purchase(db, user_id=user_id, purchase_id=payload.purchase_id)
    on_purchase = {item.chassis_no for item in purchase.items}
    foreign = [c for c in payload.chassis_nos if c not in on_purchase]
    if foreign:
        raise HTTPException(
            status_code=400,
            detail=f"Vehicles not on purchase {purchase.invoice_no}: {', '.join(foreign)}.",
        )
    _ensure_owned_in_stock(
        db,
        user_id=user_id,
        purchase=purchase,
        chassis_nos=payload.chassis_nos,
        action="return these vehicles",
    )

    manual_no = (payload.return_invoice_no or "").strip()
    if manual_no:
        if _return_number_taken(db, user_id=user_id, number=manual_no):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Return number {manual_no} is already used.",
            )
        number = manual_no
    else:
        number = numbering_services.issue_number(
            db,
            user_id=user_id,
            document_type=DocumentType.PURCHASE_RETURN,
            on_date=payload.return_date,
            is_taken=lambda n: _return_number_taken(db, user_id=user_id, number=n),
        )

    reference = {"purchase_return_no": number, "purchase_id": purchase.id}
    snapshots = [
        stock_services.reserve(
            db, user_id=user_id, chassis_no=c, reference=reference, purchase_id=purchase.id
        )
        for c in payload.chassis_nos
    ]

    purchase_return = models.PurchaseReturn(
        user_id=user_id,
        return_invoice_no=number,
        return_date=payload.return_date,
        purchase_id=purchase.id,
        party_name=purchase.party_name,
        reason=payload.reason,
        total_amount=_total(snapshots),
        idempotency_key=payload.idempotency_key,
        items=[
            models.PurchaseReturnItem(user_id=user_id, **snapshot.column_values())
            for snapshot in snapshots
        ],
    )
    db.add(purchase_return)
    db.flush()
    audit_services.log_event(
        db,
        user_id=user_id,
        entity_type="PurchaseReturn",
        entity_id=str(purchase_return.id),
        action="create",
        after={"return_invoice_no": number, "chassis_nos": list(payload.chassis_nos)},
    )
    logger.info(
        "Purchase return saved",
        extra={"user_id": user_id, "return_invoice_no": number, "items": len(snapshots)},
    )
    return purchase_return


def _ensure_can_restock(db: Session, *, user_id: str, purchase_return: models.PurchaseReturn) -> None:
    """Returned units come back only if the chassis was not bought or sold again meanwhile."""
    chassis_nos = [item.chassis_no for item in purchase_return.items]
    sold = sold_chassis(db, user_id=user_id, chassis_nos=chassis_nos)
    reasons = []
    for item in purchase_return.items:
        unit = stock_services.get_unit(db, user_id=user_id, chassis_no=item.chassis_no)
        if item.chassis_no in sold:
            reasons.append(f"{item.chassis_no} is sold on invoice {sold[item.chassis_no]}")
        elif unit is not None and unit.purchase_id != item.purchase_id:
            reasons.append(f"{item.chassis_no} is already in stock from another purchase")
    if reasons:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Cannot delete this return: " + "; ".join(reasons) + ".",
        )


def delete_purchase_return(db: Session, *, user_id: str, return_id: int) -> None:
    purchase_return = get_purchase_return(db, user_id=user_id, return_id=return_id)
    _ensure_can_restock(db, user_id=user_id, purchase_return=purchase_return)
    reference = {"purchase_return_no": purchase_return.return_invoice_no}
    for item in purchase_return.items:
        stock_services.release(
            db,
            user_id=user_id,
            snapshot=UnitSnapshot.from_row(item),
            source=stock_models.StockSourceEnum.PURCHASE_RETURN_REVERSAL,
            reference=reference,
        )
    audit_services.log_event(
        db,
        user_id=user_id,
        entity_type="PurchaseReturn",
        entity_id=str(purchase_return.id),
        action="delete",
        before={
            "return_invoice_no": purchase_return.return_invoice_no,
            "chassis_nos": [i.chassis_no for i in purchase_return.items],
        },
    )
    db.delete(purchase_return)
    db.flush()
    logger.info("Purchase return deleted", extra={"user_id": user_id, "return_id": return_id})
