"""
Inventory ledger operations.

A vehicle is either a row in `stock_units` or attached to a document
(invoice item, purchase return line). `reserve` and `release` are the only
ways the sale side moves units in and out; both flush inside the caller's
transaction and write an audit event.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from fastapi import HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from dealerdb.apps.audit import services as audit_services
from dealerdb.utils.identifiers import normalize_vehicle_number

from . import models, schemas
from .snapshots import UnitSnapshot

logger = logging.getLogger(__name__)

ENTITY_TYPE = "StockUnit"


@dataclass
class ItemDiff:
    removed: List[str] = field(default_factory=list)
    added: List[str] = field(default_factory=list)
    kept: List[str] = field(default_factory=list)


def diff_items(old: Iterable[str], new: Iterable[str]) -> ItemDiff:
    """
    Compare two chassis lists.

    Order of `new` is preserved for added/kept so reservations happen in
    the order the user entered them.
    """
    old_list = _unique_normalized(old)
    new_list = _unique_normalized(new)
    old_set = set(old_list)
    new_set = set(new_list)
    return ItemDiff(
        removed=[c for c in old_list if c not in new_set],
        added=[c for c in new_list if c not in old_set],
        kept=[c for c in new_list if c in old_set],
    )


def _unique_normalized(values: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for value in values:
        value = normalize_vehicle_number(value)
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result


def _unit_query(db: Session, *, user_id: str):
    return db.query(models.StockUnit).filter(models.StockUnit.user_id == user_id)


def _owner_filter(purchase_id: Optional[int]) -> tuple:
    if purchase_id is None:
        return ()
    return (models.StockUnit.purchase_id == purchase_id,)


def get_unit(db: Session, *, user_id: str, chassis_no: str) -> Optional[models.StockUnit]:
    return (
        _unit_query(db, user_id=user_id)
        .filter(models.StockUnit.chassis_no == normalize_vehicle_number(chassis_no))
        .first()
    )


def get_unit_by_engine(db: Session, *, user_id: str, engine_no: str) -> Optional[models.StockUnit]:
    return (
        _unit_query(db, user_id=user_id)
        .filter(models.StockUnit.engine_no == normalize_vehicle_number(engine_no))
        .first()
    )


def check_existence(
    db: Session,
    *,
    user_id: str,
    chassis_no: Optional[str] = None,
    engine_no: Optional[str] = None,
) -> schemas.StockCheck:
    """Chassis is checked before engine; the first hit wins."""
    chassis_no = normalize_vehicle_number(chassis_no)
    engine_no = normalize_vehicle_number(engine_no)
    if chassis_no and get_unit(db, user_id=user_id, chassis_no=chassis_no):
        return schemas.StockCheck(
            exists=True,
            field="chassis_no",
            message=f"Chassis number {chassis_no} already exists in your stock.",
        )
    if engine_no and get_unit_by_engine(db, user_id=user_id, engine_no=engine_no):
        return schemas.StockCheck(
            exists=True,
            field="engine_no",
            message=f"Engine number {engine_no} already exists in your stock.",
        )
    return schemas.StockCheck(exists=False)


def _audit(db: Session, *, user_id: str, action: str, snapshot: UnitSnapshot, reference: Optional[dict], before: bool):
    audit_services.log_event(
        db,
        user_id=user_id,
        entity_type=ENTITY_TYPE,
        entity_id=snapshot.chassis_no,
        action=action,
        before=snapshot.as_json() if before else None,
        after=None if before else snapshot.as_json(),
        metadata=reference,
    )


def _insert(
    db: Session,
    *,
    user_id: str,
    snapshot: UnitSnapshot,
    source: models.StockSourceEnum,
) -> models.StockUnit:
    unit = models.StockUnit(user_id=user_id, source=source, **snapshot.column_values())
    db.add(unit)
    return unit


def add_units(
    db: Session,
    *,
    user_id: str,
    snapshots: Sequence[UnitSnapshot],
    source: models.StockSourceEnum = models.StockSourceEnum.PURCHASE,
    reference: Optional[dict] = None,
) -> List[models.StockUnit]:
    seen_chassis = set()
    seen_engines = set()
    for snapshot in snapshots:
        if snapshot.chassis_no in seen_chassis or snapshot.engine_no in seen_engines:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Vehicle {snapshot.chassis_no} appears more than once.",
            )
        seen_chassis.add(snapshot.chassis_no)
        seen_engines.add(snapshot.engine_no)
        check = check_existence(
            db, user_id=user_id, chassis_no=snapshot.chassis_no, engine_no=snapshot.engine_no
        )
        if check.exists:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=check.message)

    units = [_insert(db, user_id=user_id, snapshot=s, source=source) for s in snapshots]
    db.flush()
    for snapshot in snapshots:
        _audit(db, user_id=user_id, action="stock_in", snapshot=snapshot, reference=reference, before=False)
    logger.info(
        "Stock added",
        extra={"user_id": user_id, "count": len(units), "source": source.value},
    )
    return units


def reserve(
    db: Session,
    *,
    user_id: str,
    chassis_no: str,
    reference: Optional[dict] = None,
    purchase_id: Optional[int] = None,
) -> UnitSnapshot:
    """
    Take a unit out of stock and return its attributes.

    Raises 409 when the chassis is not in stock (sold, returned or never
    purchased). With `purchase_id`, only the unit that arrived on that
    purchase qualifies.
    """
    chassis_no = normalize_vehicle_number(chassis_no)
    if not chassis_no:
        raise HTTPException(status_code=400, detail="Chassis number is required.")
    unit = (
        _unit_query(db, user_id=user_id)
        .filter(models.StockUnit.chassis_no == chassis_no)
        .filter(*_owner_filter(purchase_id))
        .with_for_update()
        .first()
    )
    if unit is None:
        logger.warning(
            "Reservation rejected; unit not in stock",
            extra={"user_id": user_id, "chassis_no": chassis_no},
        )
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Chassis number {chassis_no} is not in stock.",
        )
    snapshot = UnitSnapshot.from_row(unit)
    db.delete(unit)
    db.flush()
    _audit(db, user_id=user_id, action="reserve", snapshot=snapshot, reference=reference, before=True)
    logger.info("Stock reserved", extra={"user_id": user_id, "chassis_no": chassis_no})
    return snapshot


def release(
    db: Session,
    *,
    user_id: str,
    snapshot: UnitSnapshot,
    source: models.StockSourceEnum = models.StockSourceEnum.INVOICE_RELEASE,
    reference: Optional[dict] = None,
) -> models.StockUnit:
    """
    Put a unit back in stock with its recorded attributes.

    Releasing a unit that is already in stock is a no-op, so a retried
    save never produces a second row for the chassis. The chassis being in
    stock as a different unit (another engine or another purchase) is a
    conflict.
    """
    existing = get_unit(db, user_id=user_id, chassis_no=snapshot.chassis_no)
    if existing is not None:
        if existing.purchase_id != snapshot.purchase_id:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Chassis number {snapshot.chassis_no} is already in stock from another purchase.",
            )
        if existing.engine_no != snapshot.engine_no:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=(
                    f"Chassis number {snapshot.chassis_no} is already in stock "
                    f"with engine number {existing.engine_no}."
                ),
            )
        return existing

    engine_holder = get_unit_by_engine(db, user_id=user_id, engine_no=snapshot.engine_no)
    if engine_holder is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=(
                f"Engine number {snapshot.engine_no} is already in stock "
                f"on chassis {engine_holder.chassis_no}."
            ),
        )

    unit = _insert(db, user_id=user_id, snapshot=snapshot, source=source)
    db.flush()
    _audit(db, user_id=user_id, action="release", snapshot=snapshot, reference=reference, before=False)
    logger.info(
        "Stock released",
        extra={"user_id": user_id, "chassis_no": snapshot.chassis_no, "source": source.value},
    )
    return unit


def remove_units(
    db: Session,
    *,
    user_id: str,
    chassis_nos: Iterable[str],
    reference: Optional[dict] = None,
    strict: bool = True,
    purchase_id: Optional[int] = None,
) -> int:
    """
    Delete stock rows for the given chassis numbers.

    With `strict`, every chassis must be in stock or nothing is removed.
    With `purchase_id`, units that arrived on another purchase are left alone
    and count as missing.
    """
    wanted = _unique_normalized(chassis_nos)
    if not wanted:
        return 0
    units = (
        _unit_query(db, user_id=user_id)
        .filter(models.StockUnit.chassis_no.in_(wanted))
        .filter(*_owner_filter(purchase_id))
        .with_for_update()
        .all()
    )
    found = {u.chassis_no for u in units}
    missing = [c for c in wanted if c not in found]
    if strict and missing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Vehicles no longer in stock: {', '.join(missing)}.",
        )
    for unit in units:
        snapshot = UnitSnapshot.from_row(unit)
        db.delete(unit)
        _audit(db, user_id=user_id, action="stock_out", snapshot=snapshot, reference=reference, before=True)
    db.flush()
    logger.info("Stock removed", extra={"user_id": user_id, "count": len(units)})
    return len(units)


def refresh_attributes(
    db: Session,
    *,
    user_id: str,
    snapshot: UnitSnapshot,
) -> Optional[models.StockUnit]:
    """
    Overwrite the attributes of a unit still in stock; returns None if it is
    not. A snapshot carrying a purchase only refreshes that purchase's unit.
    """
    unit = get_unit(db, user_id=user_id, chassis_no=snapshot.chassis_no)
    if unit is None or (snapshot.purchase_id is not None and unit.purchase_id != snapshot.purchase_id):
        return None
    if unit.engine_no != snapshot.engine_no:
        holder = get_unit_by_engine(db, user_id=user_id, engine_no=snapshot.engine_no)
        if holder is not None and holder.id != unit.id:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Engine number {snapshot.engine_no} already exists in your stock.",
            )
    for name, value in snapshot.column_values().items():
        setattr(unit, name, value)
    db.add(unit)
    db.flush()
    return unit


def _apply_search(query, search: Optional[str]):
    if not search or not search.strip():
        return query
    parts = [p.strip() for p in search.split(",")]
    if len(parts) == 2 and parts[0] and parts[1]:
        # "Model, Colour"
        return query.filter(
            models.StockUnit.model_name.ilike(f"%{parts[0]}%"),
            models.StockUnit.colour.ilike(f"%{parts[1]}%"),
        )
    term = f"%{search.strip()}%"
    return query.filter(
        or_(
            models.StockUnit.model_name.ilike(term),
            models.StockUnit.chassis_no.ilike(term),
            models.StockUnit.engine_no.ilike(term),
            models.StockUnit.colour.ilike(term),
            models.StockUnit.category.ilike(term),
        )
    )


def list_stock(
    db: Session,
    *,
    user_id: str,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 50,
) -> Tuple[List[models.StockUnit], int]:
    query = _apply_search(_unit_query(db, user_id=user_id), search)
    total = query.count()
    items = (
        query.order_by(models.StockUnit.created_at.desc(), models.StockUnit.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return items, total


def search_stock(db: Session, *, user_id: str, term: str, limit: int = 20) -> List[models.StockUnit]:
    """Lookup used while picking vehicles for an invoice."""
    term = (term or "").strip()
    if not term:
        return []
    pattern = f"%{term}%"
    return (
        _unit_query(db, user_id=user_id)
        .filter(
            or_(
                models.StockUnit.chassis_no.ilike(pattern),
                models.StockUnit.engine_no.ilike(pattern),
                models.StockUnit.model_name.ilike(pattern),
            )
        )
        .order_by(models.StockUnit.model_name, models.StockUnit.chassis_no)
        .limit(limit)
        .all()
    )


def count_by_model_colour(db: Session, *, user_id: str, model_name: Optional[str] = None):
    query = db.query(
        models.StockUnit.model_name,
        models.StockUnit.colour,
        func.count(models.StockUnit.id),
    ).filter(models.StockUnit.user_id == user_id)
    if model_name:
        query = query.filter(models.StockUnit.model_name.ilike(f"%{model_name.strip()}%"))
    return (
        query.group_by(models.StockUnit.model_name, models.StockUnit.colour)
        .order_by(models.StockUnit.model_name, models.StockUnit.colour)
        .all()
    )
