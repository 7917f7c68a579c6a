"""
Vehicle invoices and sales returns.

Saving an invoice is one transaction: the number is issued, every new line
is reserved out of stock, dropped lines are released back, and the totals
are recomputed. Any failure rolls the whole save back, including the
numbering counter.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy import exists, or_
from sqlalchemy.orm import Session

from dealerdb.apps.audit import services as audit_services
from dealerdb.apps.customers import services as customer_services
from dealerdb.apps.numbering import fiscal
from dealerdb.apps.numbering import schemas as numbering_schemas
from dealerdb.apps.numbering import services as numbering_services
from dealerdb.apps.numbering.models import DocumentType
from dealerdb.apps.stock import models as stock_models
from dealerdb.apps.stock import services as stock_services
from dealerdb.apps.stock.snapshots import UnitSnapshot

from . import models, schemas, tax

logger = logging.getLogger(__name__)

INVOICE_ENTITY = "VehicleInvoice"
RETURN_ENTITY = "SalesReturn"


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def document_type_for(registered: bool) -> DocumentType:
    return DocumentType.REGISTERED if registered else DocumentType.NON_REGISTERED


def _customer_fields(db: Session, *, user_id: str, payload: schemas.VehicleInvoiceBase) -> Dict[str, Optional[str]]:
    if payload.customer_id is not None:
        customer = customer_services.get_customer(db, user_id=user_id, customer_id=payload.customer_id)
        return {
            "customer_id": customer.id,
            "customer_name": customer.customer_name,
            "guardian_name": customer.guardian_name,
            "mobile": customer.mobile1,
            "customer_gst": customer.gst,
            "address": customer.address,
            "state": customer.state,
            "district": customer.district,
            "pincode": customer.pincode,
        }
    if payload.customer is None:
        raise HTTPException(status_code=400, detail="Select a customer or enter customer details.")
    details = payload.customer
    gst = (details.gst or "").strip().upper() or None
    return {
        "customer_id": None,
        "customer_name": details.customer_name.strip(),
        "guardian_name": details.guardian_name,
        "mobile": details.mobile,
        "customer_gst": gst,
        "address": details.address,
        "state": details.state,
        "district": details.district,
        "pincode": details.pincode,
    }


def _ensure_unique_chassis(items: Iterable[schemas.InvoiceItemIn]) -> None:
    seen = set()
    for item in items:
        if item.chassis_no in seen:
            raise HTTPException(
                status_code=400, detail=f"Chassis number {item.chassis_no} is entered more than once."
            )
        seen.add(item.chassis_no)


def _apply_line(
    row: models.VehicleInvoiceItem,
    *,
    sale_price,
    discount,
    inter_state: bool,
) -> tax.LineTax:
    try:
        line = tax.compute_line(sale_price, discount, row.gst, inter_state=inter_state)
    except ValueError as exc:
        raise HTTPException(
            status_code=400,
            detail=f"Discount on {row.chassis_no} must not exceed its price.",
        ) from exc
    row.sale_price = tax.round_money(sale_price)
    row.discount = tax.round_money(discount)
    row.taxable_value = line.taxable_value
    row.cgst_rate = line.cgst_rate
    row.cgst_amount = line.cgst_amount
    row.sgst_rate = line.sgst_rate
    row.sgst_amount = line.sgst_amount
    row.igst_rate = line.igst_rate
    row.igst_amount = line.igst_amount
    row.total = line.net
    return line


def _new_line(
    snapshot: UnitSnapshot,
    item: schemas.InvoiceItemIn,
    *,
    user_id: str,
    inter_state: bool,
) -> Tuple[models.VehicleInvoiceItem, tax.LineTax]:
    row = models.VehicleInvoiceItem(user_id=user_id, is_returned=False, **snapshot.column_values())
    sale_price = item.sale_price if item.sale_price is not None else snapshot.price
    line = _apply_line(row, sale_price=sale_price, discount=item.discount, inter_state=inter_state)
    return row, line


def _apply_totals(invoice: models.VehicleInvoice, lines: List[tax.LineTax], extra_charges: Dict) -> None:
    totals = tax.compute_totals(lines, extra_charges)
    invoice.extra_charges = {name: str(tax.round_money(value)) for name, value in extra_charges.items()}
    invoice.items_total = totals.items_total
    invoice.taxable_total = totals.taxable_total
    invoice.cgst_total = totals.cgst_total
    invoice.sgst_total = totals.sgst_total
    invoice.igst_total = totals.igst_total
    invoice.extra_charges_total = totals.extra_charges_total
    invoice.round_off = totals.round_off
    invoice.grand_total = totals.grand_total


def _invoice_number_taken(db: Session, *, user_id: str, number: str) -> bool:
    return (
        db.query(models.VehicleInvoice.id)
        .filter(models.VehicleInvoice.user_id == user_id, models.VehicleInvoice.invoice_no == number)
        .first()
        is not None
    )


def _return_number_taken(db: Session, *, user_id: str, number: str) -> bool:
    return (
        db.query(models.SalesReturn.id)
        .filter(models.SalesReturn.user_id == user_id, models.SalesReturn.return_invoice_no == number)
        .first()
        is not None
    )


def _invoice_reference(invoice: models.VehicleInvoice) -> dict:
    return {"invoice_id": invoice.id, "invoice_no": invoice.invoice_no}


# ---------------------------------------------------------------------------
# invoices
# ---------------------------------------------------------------------------


def preview_invoice_number(
    db: Session,
    *,
    user_id: str,
    customer_id: Optional[int] = None,
    registered: Optional[bool] = None,
    on_date: Optional[date] = None,
) -> numbering_schemas.NumberPreview:
    if customer_id is not None:
        customer = customer_services.get_customer(db, user_id=user_id, customer_id=customer_id)
        registered = customer.is_registered
    return numbering_services.preview_number(
        db,
        user_id=user_id,
        document_type=document_type_for(bool(registered)),
        on_date=on_date,
    )


def get_invoice(db: Session, *, user_id: str, invoice_id: int) -> models.VehicleInvoice:
    invoice = (
        db.query(models.VehicleInvoice)
        .filter(models.VehicleInvoice.user_id == user_id, models.VehicleInvoice.id == invoice_id)
        .first()
    )
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found.")
    return invoice


def list_invoices(
    db: Session,
    *,
    user_id: str,
    search: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    skip: int = 0,
    limit: int = 50,
) -> Tuple[List[models.VehicleInvoice], int]:
    query = db.query(models.VehicleInvoice).filter(models.VehicleInvoice.user_id == user_id)
    if search and search.strip():
        term = f"%{search.strip()}%"
        item_match = exists().where(
            models.VehicleInvoiceItem.invoice_id == models.VehicleInvoice.id,
            or_(
                models.VehicleInvoiceItem.chassis_no.ilike(term),
                models.VehicleInvoiceItem.engine_no.ilike(term),
            ),
        )
        query = query.filter(
            or_(
                models.VehicleInvoice.invoice_no.ilike(term),
                models.VehicleInvoice.customer_name.ilike(term),
                models.VehicleInvoice.mobile.ilike(term),
                item_match,
            )
        )
    if start_date:
        query = query.filter(models.VehicleInvoice.invoice_date >= start_date)
    if end_date:
        query = query.filter(models.VehicleInvoice.invoice_date <= end_date)
    total = query.count()
    items = (
        query.order_by(models.VehicleInvoice.invoice_date.desc(), models.VehicleInvoice.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return items, total


def create_invoice(
    db: Session,
    *,
    user_id: str,
    payload: schemas.VehicleInvoiceCreate,
) -> models.VehicleInvoice:
    if payload.idempotency_key:
        existing = (
            db.query(models.VehicleInvoice)
            .filter(
                models.VehicleInvoice.user_id == user_id,
                models.VehicleInvoice.idempotency_key == payload.idempotency_key,
            )
            .first()
        )
        if existing:
            return existing

    _ensure_unique_chassis(payload.items)
    customer = _customer_fields(db, user_id=user_id, payload=payload)
    document_type = document_type_for(bool(customer["customer_gst"]))
    inter_state = tax.is_inter_state(customer["state"], numbering_services.dealer_state(db, user_id=user_id))

    manual_no = (payload.invoice_no or "").strip()
    if manual_no:
        if _invoice_number_taken(db, user_id=user_id, number=manual_no):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Invoice number {manual_no} is already used.",
            )
        invoice_no = manual_no
    else:
        invoice_no = numbering_services.issue_number(
            db,
            user_id=user_id,
            document_type=document_type,
            on_date=payload.invoice_date,
            is_taken=lambda n: _invoice_number_taken(db, user_id=user_id, number=n),
        )

    reference = {"invoice_no": invoice_no}
    rows = []
    lines = []
    for item in payload.items:
        snapshot = stock_services.reserve(db, user_id=user_id, chassis_no=item.chassis_no, reference=reference)
        row, line = _new_line(snapshot, item, user_id=user_id, inter_state=inter_state)
        rows.append(row)
        lines.append(line)

    invoice = models.VehicleInvoice(
        user_id=user_id,
        invoice_no=invoice_no,
        document_type=document_type,
        financial_year=fiscal.financial_year(payload.invoice_date),
        invoice_date=payload.invoice_date,
        is_inter_state=inter_state,
        remarks=payload.remarks,
        idempotency_key=payload.idempotency_key,
        items=rows,
        **customer,
    )
    _apply_totals(invoice, lines, payload.extra_charges)
    db.add(invoice)
    db.flush()

    audit_services.log_event(
        db,
        user_id=user_id,
        entity_type=INVOICE_ENTITY,
        entity_id=str(invoice.id),
        action="create",
        after={
            "invoice_no": invoice.invoice_no,
            "grand_total": str(invoice.grand_total),
            "chassis_nos": [row.chassis_no for row in rows],
        },
    )
    logger.info(
        "Vehicle invoice saved",
        extra={"user_id": user_id, "invoice_no": invoice_no, "items": len(rows)},
    )
    return invoice


def update_invoice(
    db: Session,
    *,
    user_id: str,
    invoice_id: int,
    payload: schemas.VehicleInvoiceUpdate,
) -> models.VehicleInvoice:
    invoice = get_invoice(db, user_id=user_id, invoice_id=invoice_id)
    numbering_services.ensure_same_financial_year(invoice.invoice_no, invoice.financial_year, payload.invoice_date)
    _ensure_unique_chassis(payload.items)

    new_by_chassis = {item.chassis_no: item for item in payload.items}
    rows_by_chassis = {row.chassis_no: row for row in invoice.items}
    diff = stock_services.diff_items(rows_by_chassis.keys(), new_by_chassis.keys())

    returned = [c for c in diff.removed if rows_by_chassis[c].is_returned]
    if returned:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Returned vehicles cannot be removed from the invoice: {', '.join(returned)}.",
        )

    customer = _customer_fields(db, user_id=user_id, payload=payload)
    inter_state = tax.is_inter_state(customer["state"], numbering_services.dealer_state(db, user_id=user_id))
    reference = _invoice_reference(invoice)

    for chassis_no in diff.removed:
        stock_services.release(
            db,
            user_id=user_id,
            snapshot=UnitSnapshot.from_row(rows_by_chassis[chassis_no]),
            source=stock_models.StockSourceEnum.INVOICE_RELEASE,
            reference=reference,
        )

    rows = []
    lines = []
    for item in payload.items:
        row = rows_by_chassis.get(item.chassis_no)
        if row is None:
            snapshot = stock_services.reserve(db, user_id=user_id, chassis_no=item.chassis_no, reference=reference)
            row, line = _new_line(snapshot, item, user_id=user_id, inter_state=inter_state)
        elif row.is_returned:
            # Refunded lines keep the amounts they were returned at.
            line = _apply_line(
                row, sale_price=row.sale_price, discount=row.discount, inter_state=row.igst_rate > 0
            )
        else:
            sale_price = item.sale_price if item.sale_price is not None else row.sale_price
            line = _apply_line(row, sale_price=sale_price, discount=item.discount, inter_state=inter_state)
        rows.append(row)
        lines.append(line)

    for field, value in customer.items():
        setattr(invoice, field, value)
    invoice.invoice_date = payload.invoice_date
    invoice.is_inter_state = inter_state
    invoice.remarks = payload.remarks
    invoice.items = rows
    _apply_totals(invoice, lines, payload.extra_charges)
    db.add(invoice)
    db.flush()

    audit_services.log_event(
        db,
        user_id=user_id,
        entity_type=INVOICE_ENTITY,
        entity_id=str(invoice.id),
        action="update",
        metadata={"removed": diff.removed, "added": diff.added, "kept": diff.kept},
    )
    logger.info(
        "Vehicle invoice updated",
        extra={
            "user_id": user_id,
            "invoice_no": invoice.invoice_no,
            "removed": len(diff.removed),
            "added": len(diff.added),
        },
    )
    return invoice


def delete_invoice(db: Session, *, user_id: str, invoice_id: int) -> None:
    invoice = get_invoice(db, user_id=user_id, invoice_id=invoice_id)
    has_returns = (
        db.query(models.SalesReturn.id)
        .filter(models.SalesReturn.user_id == user_id, models.SalesReturn.invoice_id == invoice.id)
        .first()
    )
    if has_returns:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Invoice has sales returns; delete the returns first.",
        )

    reference = _invoice_reference(invoice)
    chassis_nos = []
    for row in invoice.items:
        if row.is_returned:
            continue
        stock_services.release(
            db,
            user_id=user_id,
            snapshot=UnitSnapshot.from_row(row),
            source=stock_models.StockSourceEnum.INVOICE_RELEASE,
            reference=reference,
        )
        chassis_nos.append(row.chassis_no)

    audit_services.log_event(
        db,
        user_id=user_id,
        entity_type=INVOICE_ENTITY,
        entity_id=str(invoice.id),
        action="delete",
        before={"invoice_no": invoice.invoice_no, "chassis_nos": chassis_nos},
    )
    db.delete(invoice)
    db.flush()
    logger.info("Vehicle invoice deleted", extra={"user_id": user_id, "invoice_no": invoice.invoice_no})


def search_invoices_for_return(
    db: Session,
    *,
    user_id: str,
    term: str,
    limit: int = 20,
) -> List[schemas.InvoiceForReturn]:
    """Invoices with a live line whose chassis or engine number is like `term`."""
    term = (term or "").strip()
    if not term:
        return []
    pattern = f"%{term}%"
    rows = (
        db.query(models.VehicleInvoiceItem)
        .join(models.VehicleInvoice, models.VehicleInvoiceItem.invoice_id == models.VehicleInvoice.id)
        .filter(
            models.VehicleInvoice.user_id == user_id,
            models.VehicleInvoiceItem.is_returned.is_(False),
            or_(
                models.VehicleInvoiceItem.chassis_no.ilike(pattern),
                models.VehicleInvoiceItem.engine_no.ilike(pattern),
            ),
        )
        .order_by(models.VehicleInvoice.invoice_date.desc(), models.VehicleInvoiceItem.id)
        .all()
    )
    grouped: Dict[int, schemas.InvoiceForReturn] = {}
    for row in rows:
        invoice = row.invoice
        entry = grouped.get(invoice.id)
        if entry is None:
            if len(grouped) >= limit:
                continue
            entry = schemas.InvoiceForReturn(
                id=invoice.id,
                invoice_no=invoice.invoice_no,
                invoice_date=invoice.invoice_date,
                customer_name=invoice.customer_name,
                items=[],
            )
            grouped[invoice.id] = entry
        entry.items.append(schemas.VehicleInvoiceItemRead.model_validate(row))
    return list(grouped.values())


# ---------------------------------------------------------------------------
# sales returns
# ---------------------------------------------------------------------------


def get_sales_return(db: Session, *, user_id: str, return_id: int) -> models.SalesReturn:
    sales_return = (
        db.query(models.SalesReturn)
        .filter(models.SalesReturn.user_id == user_id, models.SalesReturn.id == return_id)
        .first()
    )
    if not sales_return:
        raise HTTPException(status_code=404, detail="Sales return not found.")
    return sales_return


def list_sales_returns(
    db: Session,
    *,
    user_id: str,
    search: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    skip: int = 0,
    limit: int = 50,
) -> Tuple[List[models.SalesReturn], int]:
    query = db.query(models.SalesReturn).filter(models.SalesReturn.user_id == user_id)
    if search and search.strip():
        term = f"%{search.strip()}%"
        item_match = exists().where(
            models.SalesReturnItem.sales_return_id == models.SalesReturn.id,
            or_(models.SalesReturnItem.chassis_no.ilike(term), models.SalesReturnItem.engine_no.ilike(term)),
        )
        query = query.filter(
            or_(
                models.SalesReturn.return_invoice_no.ilike(term),
                models.SalesReturn.customer_name.ilike(term),
                item_match,
            )
        )
    if start_date:
        query = query.filter(models.SalesReturn.return_date >= start_date)
    if end_date:
        query = query.filter(models.SalesReturn.return_date <= end_date)
    total = query.count()
    items = (
        query.order_by(models.SalesReturn.return_date.desc(), models.SalesReturn.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return items, total


def create_sales_return(
    db: Session,
    *,
    user_id: str,
    payload: schemas.SalesReturnCreate,
) -> models.SalesReturn:
    if payload.idempotency_key:
        existing = (
            db.query(models.SalesReturn)
            .filter(
                models.SalesReturn.user_id == user_id,
                models.SalesReturn.idempotency_key == payload.idempotency_key,
            )
            .first()
        )
        if existing:
            return existing

    invoice = get_invoice(db, user_id=user_id, invoice_id=payload.invoice_id)
    rows_by_chassis = {row.chassis_no: row for row in invoice.items}
    missing = [c for c in payload.chassis_nos if c not in rows_by_chassis]
    if missing:
        raise HTTPException(
            status_code=400,
            detail=f"Vehicles not on invoice {invoice.invoice_no}: {', '.join(missing)}.",
        )
    already = [c for c in payload.chassis_nos if rows_by_chassis[c].is_returned]
    if already:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Vehicles already returned: {', '.join(already)}.",
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
            document_type=DocumentType.SALES_RETURN,
            on_date=payload.return_date,
            is_taken=lambda n: _return_number_taken(db, user_id=user_id, number=n),
        )

    reference = {"sales_return_no": number, "invoice_no": invoice.invoice_no}
    return_items = []
    for chassis_no in payload.chassis_nos:
        row = rows_by_chassis[chassis_no]
        row.is_returned = True
        db.add(row)
        db.flush()
        stock_services.release(
            db,
            user_id=user_id,
            snapshot=UnitSnapshot.from_row(row),
            source=stock_models.StockSourceEnum.SALES_RETURN,
            reference=reference,
        )
        return_items.append(
            models.SalesReturnItem(
                user_id=user_id,
                invoice_item_id=row.id,
                chassis_no=row.chassis_no,
                engine_no=row.engine_no,
                model_name=row.model_name,
                colour=row.colour,
                price=row.total,
            )
        )

    sales_return = models.SalesReturn(
        user_id=user_id,
        return_invoice_no=number,
        return_date=payload.return_date,
        invoice_id=invoice.id,
        customer_name=invoice.customer_name,
        reason=payload.reason,
        total_refund_amount=sum((tax.to_decimal(i.price) for i in return_items), tax.ZERO),
        idempotency_key=payload.idempotency_key,
        items=return_items,
    )
    db.add(sales_return)
    db.flush()
    audit_services.log_event(
        db,
        user_id=user_id,
        entity_type=RETURN_ENTITY,
        entity_id=str(sales_return.id),
        action="create",
        after={"return_invoice_no": number, "chassis_nos": list(payload.chassis_nos)},
    )
    logger.info(
        "Sales return saved",
        extra={"user_id": user_id, "return_invoice_no": number, "items": len(return_items)},
    )
    return sales_return


def delete_sales_return(db: Session, *, user_id: str, return_id: int) -> None:
    sales_return = get_sales_return(db, user_id=user_id, return_id=return_id)
    reference = {"sales_return_no": sales_return.return_invoice_no}
    for item in sales_return.items:
        # Fails with 409 if the vehicle has since been sold again.
        stock_services.reserve(db, user_id=user_id, chassis_no=item.chassis_no, reference=reference)
        row = item.invoice_item
        row.is_returned = False
        db.add(row)
    db.flush()
    audit_services.log_event(
        db,
        user_id=user_id,
        entity_type=RETURN_ENTITY,
        entity_id=str(sales_return.id),
        action="delete",
        before={
            "return_invoice_no": sales_return.return_invoice_no,
            "chassis_nos": [i.chassis_no for i in sales_return.items],
        },
    )
    db.delete(sales_return)
    db.flush()
    logger.info("Sales return deleted", extra={"user_id": user_id, "return_id": return_id})
