"""
Workshop parts ledger and job cards.

A job card draws its part lines from `workshop_parts` by quantity. Saving a
card deducts the parts it uses, editing applies only the per-part
difference, and deleting it restores them, all inside the caller's
transaction together with the card and its number.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from fastapi import HTTPException, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from dealerdb.apps.audit import services as audit_services
from dealerdb.apps.customers import services as customer_services
from dealerdb.apps.numbering import fiscal
from dealerdb.apps.numbering import schemas as numbering_schemas
from dealerdb.apps.numbering import services as numbering_services
from dealerdb.apps.numbering.models import DocumentType
from dealerdb.apps.sales import tax

from . import models, schemas

logger = logging.getLogger(__name__)

PART_ENTITY = "WorkshopPart"
JOB_CARD_ENTITY = "JobCard"

NEXT_SERVICE_DAYS = 90

ZERO = Decimal("0")


# ---------------------------------------------------------------------------
# parts ledger
# ---------------------------------------------------------------------------


def _part_query(db: Session, *, user_id: str):
    return db.query(models.WorkshopPart).filter(models.WorkshopPart.user_id == user_id)


def find_part(db: Session, *, user_id: str, part_no: str) -> Optional[models.WorkshopPart]:
    part_no = schemas.normalize_part_no(part_no)
    return _part_query(db, user_id=user_id).filter(models.WorkshopPart.part_no == part_no).first()


def get_part(db: Session, *, user_id: str, part_no: str) -> models.WorkshopPart:
    part = find_part(db, user_id=user_id, part_no=part_no)
    if part is None:
        raise HTTPException(status_code=404, detail=f"Part {part_no} is not in the workshop inventory.")
    return part


def list_parts(
    db: Session,
    *,
    user_id: str,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 50,
) -> Tuple[List[models.WorkshopPart], int]:
    query = _part_query(db, user_id=user_id)
    if search and search.strip():
        term = f"%{search.strip()}%"
        query = query.filter(
            or_(models.WorkshopPart.part_no.ilike(term), models.WorkshopPart.part_name.ilike(term))
        )
    total = query.count()
    items = query.order_by(models.WorkshopPart.part_name, models.WorkshopPart.part_no).offset(skip).limit(limit).all()
    return items, total


def upsert_parts(
    db: Session,
    *,
    user_id: str,
    parts: Sequence[schemas.WorkshopPartIn],
) -> List[models.WorkshopPart]:
    """Insert new part numbers and overwrite existing ones, quantity included."""
    seen = set()
    for part in parts:
        if part.part_no in seen:
            raise HTTPException(status_code=400, detail=f"Part {part.part_no} is entered more than once.")
        seen.add(part.part_no)

    saved = []
    created = []
    for part in parts:
        row = find_part(db, user_id=user_id, part_no=part.part_no)
        if row is None:
            row = models.WorkshopPart(user_id=user_id)
            created.append(part.part_no)
        for field, value in part.model_dump().items():
            setattr(row, field, value)
        db.add(row)
        saved.append(row)
    db.flush()

    audit_services.log_event(
        db,
        user_id=user_id,
        entity_type=PART_ENTITY,
        entity_id="bulk",
        action="upsert",
        metadata={"part_nos": sorted(seen), "created": created},
    )
    logger.info(
        "Workshop parts saved",
        extra={"user_id": user_id, "count": len(saved), "created": len(created)},
    )
    return saved


def _part_usage(rows: Iterable) -> Dict[str, Decimal]:
    usage: Dict[str, Decimal] = {}
    for row in rows:
        if row.kind != models.JobCardItemKind.PART or not row.part_no:
            continue
        usage[row.part_no] = usage.get(row.part_no, ZERO) + tax.to_decimal(row.quantity)
    return usage


def _apply_part_usage(
    db: Session,
    *,
    user_id: str,
    before: Dict[str, Decimal],
    after: Dict[str, Decimal],
    reference: dict,
) -> Dict[str, str]:
    """
    Move the ledger from `before` usage to `after` usage.

    Positive differences are drawn from stock and negative ones put back.
    Every part is checked before any is changed; drawing more than is on
    hand is a 409.
    """
    pending = []
    for part_no in sorted(set(before) | set(after)):
        used = after.get(part_no, ZERO) - before.get(part_no, ZERO)
        if used == ZERO:
            continue
        part = (
            _part_query(db, user_id=user_id)
            .filter(models.WorkshopPart.part_no == part_no)
            .with_for_update()
            .first()
        )
        if part is None:
            raise HTTPException(status_code=404, detail=f"Part {part_no} is not in the workshop inventory.")
        on_hand = tax.to_decimal(part.quantity)
        if used > on_hand:
            logger.warning(
                "Part issue rejected; insufficient quantity",
                extra={"user_id": user_id, "part_no": part_no, "on_hand": str(on_hand), "wanted": str(used)},
            )
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Only {on_hand} {part.uom} of part {part_no} in stock; {used} needed.",
            )
        pending.append((part, on_hand - used, used))

    changes: Dict[str, str] = {}
    for part, remaining, used in pending:
        part.quantity = remaining
        db.add(part)
        changes[part.part_no] = str(-used)
    db.flush()
    if changes:
        logger.info(
            "Workshop parts adjusted",
            extra={"user_id": user_id, "changes": changes, **reference},
        )
    return changes


# ---------------------------------------------------------------------------
# job cards
# ---------------------------------------------------------------------------


def _customer_fields(db: Session, *, user_id: str, payload: schemas.JobCardBase) -> Dict[str, Optional[str]]:
    if payload.customer_id is not None:
        customer = customer_services.get_customer(db, user_id=user_id, customer_id=payload.customer_id)
        return {
            "customer_id": customer.id,
            "customer_name": customer.customer_name,
            "customer_mobile": customer.mobile1,
            "customer_address": customer.address,
            "customer_state": customer.state,
        }
    name = (payload.customer_name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Select a customer or enter the customer name.")
    return {
        "customer_id": None,
        "customer_name": name,
        "customer_mobile": payload.customer_mobile,
        "customer_address": payload.customer_address,
        "customer_state": payload.customer_state,
    }


def _line(
    kind: models.JobCardItemKind,
    item: schemas.JobCardItemIn,
    *,
    user_id: str,
    part: Optional[models.WorkshopPart],
    inter_state: bool,
) -> Tuple[models.JobCardItem, tax.LineTax]:
    name = (item.item_name or "").strip() or (part.part_name if part else "")
    if not name:
        raise HTTPException(status_code=400, detail="Labour lines need a description.")
    rate = item.rate if item.rate is not None else (part.sale_rate if part else ZERO)
    gst_rate = item.gst_rate if item.gst_rate is not None else (part.gst if part else ZERO)
    try:
        line = tax.compute_exclusive_line(item.quantity, rate, item.discount, gst_rate, inter_state=inter_state)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Discount on {name} must not exceed its amount.") from exc
    row = models.JobCardItem(
        user_id=user_id,
        kind=kind,
        part_no=part.part_no if part else None,
        item_name=name,
        hsn_code=item.hsn_code or (part.hsn_code if part else None),
        uom=item.uom or (part.uom if part else None),
        quantity=tax.to_decimal(item.quantity),
        rate=tax.round_money(rate),
        discount=tax.round_money(item.discount),
        gst_rate=tax.to_decimal(gst_rate),
        taxable_value=line.taxable_value,
        cgst_amount=line.cgst_amount,
        sgst_amount=line.sgst_amount,
        igst_amount=line.igst_amount,
        total=line.net,
    )
    return row, line


def _build_items(
    db: Session,
    *,
    user_id: str,
    payload: schemas.JobCardBase,
    inter_state: bool,
) -> Tuple[List[models.JobCardItem], List[tax.LineTax], List[tax.LineTax]]:
    if not payload.parts_items and not payload.labour_items:
        raise HTTPException(status_code=400, detail="Add at least one part or labour item.")
    rows = []
    part_lines = []
    labour_lines = []
    for item in payload.parts_items:
        if not item.part_no:
            raise HTTPException(status_code=400, detail="Part lines need a part number.")
        part = get_part(db, user_id=user_id, part_no=item.part_no)
        row, line = _line(models.JobCardItemKind.PART, item, user_id=user_id, part=part, inter_state=inter_state)
        rows.append(row)
        part_lines.append(line)
    for item in payload.labour_items:
        row, line = _line(models.JobCardItemKind.LABOUR, item, user_id=user_id, part=None, inter_state=inter_state)
        rows.append(row)
        labour_lines.append(line)
    return rows, part_lines, labour_lines


def _apply_totals(card: models.JobCard, part_lines: List[tax.LineTax], labour_lines: List[tax.LineTax]) -> None:
    totals = tax.compute_totals(part_lines + labour_lines)
    card.parts_total = sum((line.net for line in part_lines), ZERO)
    card.labour_total = sum((line.net for line in labour_lines), ZERO)
    card.taxable_total = totals.taxable_total
    card.cgst_total = totals.cgst_total
    card.sgst_total = totals.sgst_total
    card.igst_total = totals.igst_total
    card.round_off = totals.round_off
    card.grand_total = totals.grand_total


def _vehicle_fields(payload: schemas.JobCardBase) -> dict:
    return {
        "reg_no": payload.reg_no,
        "frame_no": (payload.frame_no or "").strip().upper() or None,
        "model": payload.model,
        "kms": payload.kms,
        "job_type": payload.job_type.strip() or "Paid Service",
        "mechanic": payload.mechanic,
        "next_due_date": payload.next_due_date or payload.invoice_date + timedelta(days=NEXT_SERVICE_DAYS),
        "denied_items": [d.strip() for d in payload.denied_items if d and d.strip()],
    }


def _job_card_number_taken(db: Session, *, user_id: str, number: str) -> bool:
    return numbering_services.document_number_taken(
        db, user_id=user_id, document_type=DocumentType.JOB_CARD, number=number
    )


def preview_job_card_number(
    db: Session,
    *,
    user_id: str,
    on_date: Optional[date] = None,
) -> numbering_schemas.NumberPreview:
    return numbering_services.preview_number(
        db, user_id=user_id, document_type=DocumentType.JOB_CARD, on_date=on_date
    )


def get_job_card(db: Session, *, user_id: str, job_card_id: int) -> models.JobCard:
    card = (
        db.query(models.JobCard)
        .filter(models.JobCard.user_id == user_id, models.JobCard.id == job_card_id)
        .first()
    )
    if not card:
        raise HTTPException(status_code=404, detail="Job card not found.")
    return card


def list_job_cards(
    db: Session,
    *,
    user_id: str,
    search: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    skip: int = 0,
    limit: int = 50,
) -> Tuple[List[models.JobCard], int]:
    query = db.query(models.JobCard).filter(models.JobCard.user_id == user_id)
    if search and search.strip():
        term = f"%{search.strip()}%"
        query = query.filter(
            or_(
                models.JobCard.customer_name.ilike(term),
                models.JobCard.invoice_no.ilike(term),
                models.JobCard.reg_no.ilike(term),
            )
        )
    if start_date:
        query = query.filter(models.JobCard.invoice_date >= start_date)
    if end_date:
        query = query.filter(models.JobCard.invoice_date <= end_date)
    total = query.count()
    items = (
        query.order_by(models.JobCard.invoice_date.desc(), models.JobCard.created_at.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return items, total


def create_job_card(
    db: Session,
    *,
    user_id: str,
    payload: schemas.JobCardCreate,
) -> models.JobCard:
    if payload.idempotency_key:
        existing = (
            db.query(models.JobCard)
            .filter(
                models.JobCard.user_id == user_id,
                models.JobCard.idempotency_key == payload.idempotency_key,
            )
            .first()
        )
        if existing:
            return existing

    customer = _customer_fields(db, user_id=user_id, payload=payload)
    inter_state = tax.is_inter_state(customer["customer_state"], numbering_services.dealer_state(db, user_id=user_id))
    rows, part_lines, labour_lines = _build_items(db, user_id=user_id, payload=payload, inter_state=inter_state)

    manual_no = (payload.invoice_no or "").strip()
    if manual_no:
        if _job_card_number_taken(db, user_id=user_id, number=manual_no):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Job card number {manual_no} is already used.",
            )
        invoice_no = manual_no
    else:
        invoice_no = numbering_services.issue_number(
            db,
            user_id=user_id,
            document_type=DocumentType.JOB_CARD,
            on_date=payload.invoice_date,
        )

    changes = _apply_part_usage(
        db,
        user_id=user_id,
        before={},
        after=_part_usage(rows),
        reference={"invoice_no": invoice_no},
    )

    card = models.JobCard(
        user_id=user_id,
        invoice_no=invoice_no,
        financial_year=fiscal.financial_year(payload.invoice_date),
        invoice_date=payload.invoice_date,
        is_inter_state=inter_state,
        idempotency_key=payload.idempotency_key,
        items=rows,
        **customer,
        **_vehicle_fields(payload),
    )
    _apply_totals(card, part_lines, labour_lines)
    db.add(card)
    db.flush()

    audit_services.log_event(
        db,
        user_id=user_id,
        entity_type=JOB_CARD_ENTITY,
        entity_id=str(card.id),
        action="create",
        after={"invoice_no": invoice_no, "reg_no": card.reg_no, "grand_total": str(card.grand_total)},
        metadata={"parts": changes},
    )
    logger.info(
        "Job card saved",
        extra={"user_id": user_id, "invoice_no": invoice_no, "items": len(rows)},
    )
    return card


def update_job_card(
    db: Session,
    *,
    user_id: str,
    job_card_id: int,
    payload: schemas.JobCardUpdate,
) -> models.JobCard:
    card = get_job_card(db, user_id=user_id, job_card_id=job_card_id)
    numbering_services.ensure_same_financial_year(card.invoice_no, card.financial_year, payload.invoice_date)

    customer = _customer_fields(db, user_id=user_id, payload=payload)
    inter_state = tax.is_inter_state(customer["customer_state"], numbering_services.dealer_state(db, user_id=user_id))
    rows, part_lines, labour_lines = _build_items(db, user_id=user_id, payload=payload, inter_state=inter_state)

    changes = _apply_part_usage(
        db,
        user_id=user_id,
        before=_part_usage(card.items),
        after=_part_usage(rows),
        reference={"invoice_no": card.invoice_no},
    )

    for field, value in {**customer, **_vehicle_fields(payload)}.items():
        setattr(card, field, value)
    card.invoice_date = payload.invoice_date
    card.is_inter_state = inter_state
    card.items = rows
    _apply_totals(card, part_lines, labour_lines)
    db.add(card)
    db.flush()

    audit_services.log_event(
        db,
        user_id=user_id,
        entity_type=JOB_CARD_ENTITY,
        entity_id=str(card.id),
        action="update",
        metadata={"parts": changes},
    )
    logger.info(
        "Job card updated",
        extra={"user_id": user_id, "invoice_no": card.invoice_no, "parts_changed": len(changes)},
    )
    return card


def delete_job_card(db: Session, *, user_id: str, job_card_id: int) -> None:
    card = get_job_card(db, user_id=user_id, job_card_id=job_card_id)
    changes = _apply_part_usage(
        db,
        user_id=user_id,
        before=_part_usage(card.items),
        after={},
        reference={"invoice_no": card.invoice_no},
    )
    audit_services.log_event(
        db,
        user_id=user_id,
        entity_type=JOB_CARD_ENTITY,
        entity_id=str(card.id),
        action="delete",
        before={"invoice_no": card.invoice_no, "reg_no": card.reg_no},
        metadata={"parts": changes},
    )
    db.delete(card)
    db.flush()
    logger.info("Job card deleted", extra={"user_id": user_id, "invoice_no": card.invoice_no})
