from __future__ import annotations

import logging
import os
from datetime import date
from typing import Callable, List, Optional, Tuple

from fastapi import HTTPException
from sqlalchemy.orm import Session

from . import fiscal, models, schemas

logger = logging.getLogger(__name__)

# Guards against a pathological run of manually-entered numbers.
MAX_SKIPPED_NUMBERS = 1000

# Dealer state used when settings leave it blank.
DEFAULT_STATE = os.getenv("DEFAULT_STATE", "")


def get_settings(db: Session, *, user_id: str) -> models.DealerSettings:
    settings = db.get(models.DealerSettings, user_id)
    if settings:
        return settings
    settings = models.DealerSettings(
        user_id=user_id,
        company_name="Showroom Pro",
        bank_details=schemas.BankDetails().model_dump(),
    )
    db.add(settings)
    db.flush()
    logger.info("Default dealer settings created", extra={"user_id": user_id})
    return settings


def update_settings(
    db: Session,
    *,
    user_id: str,
    payload: schemas.DealerSettingsUpdate,
) -> models.DealerSettings:
    settings = get_settings(db, user_id=user_id)
    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        if field.endswith("_prefix") and value is not None:
            value = value.strip()
        setattr(settings, field, value)
    db.add(settings)
    db.flush()
    return settings


def dealer_state(db: Session, *, user_id: str) -> str:
    settings = get_settings(db, user_id=user_id)
    return (settings.state or "").strip() or DEFAULT_STATE


def prefix_for(db: Session, *, user_id: str, document_type: models.DocumentType) -> str:
    """Series prefix from settings, falling back to the default without creating a row."""
    settings = db.get(models.DealerSettings, user_id)
    if settings is None:
        return models.DEFAULT_PREFIXES[document_type]
    return settings.prefix_for(document_type)


def document_number_taken(
    db: Session,
    *,
    user_id: str,
    document_type: models.DocumentType,
    number: str,
) -> bool:
    """Whether a saved document of this series already carries `number`."""
    # Document apps import this module; resolve their models lazily.
    from dealerdb.apps.purchases import models as purchase_models
    from dealerdb.apps.sales import models as sales_models
    from dealerdb.apps.workshop import models as workshop_models

    column = {
        models.DocumentType.REGISTERED: sales_models.VehicleInvoice.invoice_no,
        models.DocumentType.NON_REGISTERED: sales_models.VehicleInvoice.invoice_no,
        models.DocumentType.JOB_CARD: workshop_models.JobCard.invoice_no,
        models.DocumentType.SALES_RETURN: sales_models.SalesReturn.return_invoice_no,
        models.DocumentType.PURCHASE_RETURN: purchase_models.PurchaseReturn.return_invoice_no,
    }[document_type]
    owner = column.class_.user_id
    return db.query(column).filter(owner == user_id, column == number).first() is not None


def format_number(prefix: str, financial_year: str, sequence: int) -> str:
    return f"{prefix}{financial_year.replace('-', '')}-{sequence:04d}"


def _counter_query(db: Session, *, user_id: str, financial_year: str, document_type: models.DocumentType):
    return db.query(models.InvoiceCounter).filter(
        models.InvoiceCounter.user_id == user_id,
        models.InvoiceCounter.financial_year == financial_year,
        models.InvoiceCounter.document_type == document_type,
    )


def last_sequence(
    db: Session,
    *,
    user_id: str,
    financial_year: str,
    document_type: models.DocumentType,
) -> int:
    counter = _counter_query(
        db, user_id=user_id, financial_year=financial_year, document_type=document_type
    ).first()
    return counter.last_sequence if counter else 0


def _taken_check(
    db: Session,
    *,
    user_id: str,
    document_type: models.DocumentType,
    is_taken: Optional[Callable[[str], bool]],
) -> Callable[[str], bool]:
    if is_taken is not None:
        return is_taken
    return lambda number: document_number_taken(
        db, user_id=user_id, document_type=document_type, number=number
    )


def _next_free(
    *,
    prefix: str,
    financial_year: str,
    after: int,
    is_taken: Callable[[str], bool],
) -> Tuple[int, str, int]:
    """First (sequence, number) after `after` not in use, and how many were skipped."""
    for skipped in range(MAX_SKIPPED_NUMBERS):
        sequence = after + skipped + 1
        number = format_number(prefix, financial_year, sequence)
        if not is_taken(number):
            return sequence, number, skipped
    raise RuntimeError(f"Could not find a free number after {prefix}{financial_year} #{after}")


def preview_number(
    db: Session,
    *,
    user_id: str,
    document_type: models.DocumentType,
    on_date: Optional[date] = None,
    is_taken: Optional[Callable[[str], bool]] = None,
) -> schemas.NumberPreview:
    """
    Number the next saved document of this type would receive.

    Read only: neither the counter nor the settings row is written. Two
    sessions previewing at the same time see the same number, and the one
    that saves second is issued the following free sequence instead.
    """
    fy = fiscal.financial_year(on_date)
    sequence, number, _ = _next_free(
        prefix=prefix_for(db, user_id=user_id, document_type=document_type),
        financial_year=fy,
        after=last_sequence(db, user_id=user_id, financial_year=fy, document_type=document_type),
        is_taken=_taken_check(db, user_id=user_id, document_type=document_type, is_taken=is_taken),
    )
    return schemas.NumberPreview(
        document_type=document_type,
        financial_year=fy,
        sequence=sequence,
        number=number,
    )


def issue_number(
    db: Session,
    *,
    user_id: str,
    document_type: models.DocumentType,
    on_date: Optional[date] = None,
    is_taken: Optional[Callable[[str], bool]] = None,
) -> str:
    """
    Durably advance the counter and return the issued number.

    Runs inside the caller's transaction with the counter row locked, so
    the increment commits or rolls back together with the document that
    carries the number. Numbers already used by manually numbered
    documents are skipped (by default looked up in the series' own table);
    skipped sequences are consumed.
    """
    fy = fiscal.financial_year(on_date)
    prefix = get_settings(db, user_id=user_id).prefix_for(document_type)

    counter = (
        _counter_query(db, user_id=user_id, financial_year=fy, document_type=document_type)
        .with_for_update()
        .first()
    )
    if counter is None:
        counter = models.InvoiceCounter(
            user_id=user_id,
            financial_year=fy,
            document_type=document_type,
            last_sequence=0,
        )
        db.add(counter)
        db.flush()

    sequence, number, skipped = _next_free(
        prefix=prefix,
        financial_year=fy,
        after=counter.last_sequence,
        is_taken=_taken_check(db, user_id=user_id, document_type=document_type, is_taken=is_taken),
    )
    if skipped:
        logger.warning(
            "Skipped document numbers already in use",
            extra={"user_id": user_id, "document_type": document_type.value, "skipped": skipped},
        )
    counter.last_sequence = sequence

    db.add(counter)
    db.flush()
    logger.info(
        "Document number issued",
        extra={
            "user_id": user_id,
            "document_type": document_type.value,
            "financial_year": fy,
            "sequence": counter.last_sequence,
        },
    )
    return number


def list_counters(db: Session, *, user_id: str, financial_year: Optional[str] = None) -> List[models.InvoiceCounter]:
    query = db.query(models.InvoiceCounter).filter(models.InvoiceCounter.user_id == user_id)
    if financial_year:
        query = query.filter(models.InvoiceCounter.financial_year == financial_year)
    return query.order_by(models.InvoiceCounter.financial_year, models.InvoiceCounter.document_type).all()


def financial_years(*, start_year: Optional[int] = None, count: int = 5) -> schemas.FinancialYearList:
    current = fiscal.financial_year()
    if start_year is None:
        start_year = fiscal.financial_year_start() - 1
    years = []
    for fy in fiscal.upcoming_financial_years(start_year, count):
        start, end = fiscal.financial_year_bounds(fy)
        years.append(schemas.FinancialYearRead(financial_year=fy, start=start, end=end))
    return schemas.FinancialYearList(current=current, years=years)


def ensure_same_financial_year(number: str, financial_year: str, new_date: date) -> None:
    """Edits keep a numbered document inside the FY its number was issued for."""
    if fiscal.financial_year(new_date) == financial_year:
        return
    start, end = fiscal.financial_year_bounds(financial_year)
    raise HTTPException(
        status_code=400,
        detail=(
            f"{number} is numbered in financial year {financial_year}; "
            f"its date must stay between {start.isoformat()} and {end.isoformat()}."
        ),
    )
