from __future__ import annotations

from typing import List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from . import models, schemas


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def get_customer(db: Session, *, user_id: str, customer_id: int) -> models.Customer:
    customer = (
        db.query(models.Customer)
        .filter(models.Customer.user_id == user_id, models.Customer.id == customer_id)
        .first()
    )
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found.")
    return customer


def list_customers(
    db: Session,
    *,
    user_id: str,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 50,
) -> Tuple[List[models.Customer], int]:
    query = db.query(models.Customer).filter(models.Customer.user_id == user_id)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(
            or_(
                models.Customer.customer_name.ilike(term),
                models.Customer.mobile1.ilike(term),
                models.Customer.gst.ilike(term),
            )
        )
    total = query.count()
    items = query.order_by(models.Customer.customer_name).offset(skip).limit(limit).all()
    return items, total


def create_customer(db: Session, *, user_id: str, payload: schemas.CustomerCreate) -> models.Customer:
    data = {k: _clean(v) for k, v in payload.model_dump().items()}
    if data.get("gst"):
        data["gst"] = data["gst"].upper()
    customer = models.Customer(user_id=user_id, **data)
    db.add(customer)
    db.flush()
    return customer


def update_customer(
    db: Session,
    *,
    user_id: str,
    customer_id: int,
    payload: schemas.CustomerUpdate,
) -> models.Customer:
    customer = get_customer(db, user_id=user_id, customer_id=customer_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        value = _clean(value)
        if field == "customer_name" and not value:
            raise HTTPException(status_code=400, detail="customer_name cannot be blank.")
        if field == "gst" and value:
            value = value.upper()
        setattr(customer, field, value)
    db.add(customer)
    db.flush()
    return customer


def delete_customer(db: Session, *, user_id: str, customer_id: int) -> None:
    # Imported lazily: sales and workshop depend on customers.
    from dealerdb.apps.sales import models as sales_models
    from dealerdb.apps.workshop import models as workshop_models

    customer = get_customer(db, user_id=user_id, customer_id=customer_id)
    for document, label in ((sales_models.VehicleInvoice, "invoices"), (workshop_models.JobCard, "job cards")):
        in_use = (
            db.query(document.id)
            .filter(document.user_id == user_id, document.customer_id == customer.id)
            .first()
        )
        if in_use:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Customer has {label} and cannot be deleted.",
            )
    db.delete(customer)
    db.flush()
