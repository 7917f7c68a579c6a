from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy.orm import Session

from dealerdb.database import get_db, get_read_db
from dealerdb.security import get_current_active_user
from dealerdb.apps.accounts import models as account_models
from dealerdb.apps.numbering import schemas as numbering_schemas

from . import schemas, services

router = APIRouter(prefix="", tags=["sales"])


def _page(skip: int, limit: int):
    return max(skip, 0), min(max(limit, 1), 500)


@router.get("/vehicle-invoices", response_model=schemas.VehicleInvoicePage)
def list_invoices(
    search: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    skip: int = 0,
    limit: int = 50,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    skip, limit = _page(skip, limit)
    items, total = services.list_invoices(
        db,
        user_id=current_user.id,
        search=search,
        start_date=start_date,
        end_date=end_date,
        skip=skip,
        limit=limit,
    )
    return schemas.VehicleInvoicePage(items=items, total=total)


@router.get("/vehicle-invoices/preview-number", response_model=numbering_schemas.NumberPreview)
def preview_invoice_number(
    customer_id: Optional[int] = None,
    registered: bool = False,
    on_date: Optional[date] = None,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.preview_invoice_number(
        db,
        user_id=current_user.id,
        customer_id=customer_id,
        registered=registered,
        on_date=on_date,
    )


@router.get("/vehicle-invoices/search-for-return", response_model=List[schemas.InvoiceForReturn])
def search_invoices_for_return(
    q: str = Query(..., min_length=1),
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.search_invoices_for_return(db, user_id=current_user.id, term=q)


@router.get("/vehicle-invoices/{invoice_id}", response_model=schemas.VehicleInvoiceRead)
def get_invoice(
    invoice_id: int,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.get_invoice(db, user_id=current_user.id, invoice_id=invoice_id)


@router.post("/vehicle-invoices", response_model=schemas.VehicleInvoiceRead, status_code=status.HTTP_201_CREATED)
def create_invoice(
    payload: schemas.VehicleInvoiceCreate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
):
    if not payload.idempotency_key and idempotency_key:
        payload.idempotency_key = idempotency_key
    invoice = services.create_invoice(db, user_id=current_user.id, payload=payload)
    db.commit()
    db.refresh(invoice)
    return invoice


@router.put("/vehicle-invoices/{invoice_id}", response_model=schemas.VehicleInvoiceRead)
def update_invoice(
    invoice_id: int,
    payload: schemas.VehicleInvoiceUpdate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    invoice = services.update_invoice(db, user_id=current_user.id, invoice_id=invoice_id, payload=payload)
    db.commit()
    db.refresh(invoice)
    return invoice


@router.delete("/vehicle-invoices/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    services.delete_invoice(db, user_id=current_user.id, invoice_id=invoice_id)
    db.commit()


@router.get("/sales-returns", response_model=schemas.SalesReturnPage)
def list_sales_returns(
    search: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    skip: int = 0,
    limit: int = 50,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    skip, limit = _page(skip, limit)
    items, total = services.list_sales_returns(
        db,
        user_id=current_user.id,
        search=search,
        start_date=start_date,
        end_date=end_date,
        skip=skip,
        limit=limit,
    )
    return schemas.SalesReturnPage(items=items, total=total)


@router.get("/sales-returns/{return_id}", response_model=schemas.SalesReturnRead)
def get_sales_return(
    return_id: int,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.get_sales_return(db, user_id=current_user.id, return_id=return_id)


@router.post("/sales-returns", response_model=schemas.SalesReturnRead, status_code=status.HTTP_201_CREATED)
def create_sales_return(
    payload: schemas.SalesReturnCreate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
):
    if not payload.idempotency_key and idempotency_key:
        payload.idempotency_key = idempotency_key
    sales_return = services.create_sales_return(db, user_id=current_user.id, payload=payload)
    db.commit()
    db.refresh(sales_return)
    return sales_return


@router.delete("/sales-returns/{return_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_sales_return(
    return_id: int,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    services.delete_sales_return(db, user_id=current_user.id, return_id=return_id)
    db.commit()
