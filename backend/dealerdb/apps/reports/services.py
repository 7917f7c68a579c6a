from __future__ import annotations

from collections import OrderedDict, defaultdict
from typing import Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from dealerdb.apps.numbering import fiscal
from dealerdb.apps.purchases import models as purchase_models
from dealerdb.apps.sales import models as sales_models
from dealerdb.apps.stock import models as stock_models
from dealerdb.apps.stock import services as stock_services

from . import schemas

TRACK_LIMIT = 20


def stock_summary(db: Session, *, user_id: str, model_name: Optional[str] = None) -> schemas.StockSummary:
    rows = []
    per_model: "OrderedDict[str, int]" = OrderedDict()
    for model, colour, count in stock_services.count_by_model_colour(db, user_id=user_id, model_name=model_name):
        rows.append(schemas.StockSummaryRow(model_name=model, colour=colour, count=count))
        per_model[model] = per_model.get(model, 0) + count
    return schemas.StockSummary(
        rows=rows,
        models=[schemas.ModelTotal(model_name=m, count=c) for m, c in per_model.items()],
        grand_total=sum(per_model.values()),
    )


def _matching_chassis(db: Session, *, user_id: str, term: str) -> List[str]:
    pattern = f"%{term}%"
    found: "OrderedDict[str, None]" = OrderedDict()
    sources = (
        (stock_models.StockUnit, stock_models.StockUnit.user_id),
        (purchase_models.PurchaseItem, purchase_models.PurchaseItem.user_id),
        (sales_models.VehicleInvoiceItem, sales_models.VehicleInvoiceItem.user_id),
    )
    for model, owner in sources:
        rows = (
            db.query(model.chassis_no)
            .filter(owner == user_id, or_(model.chassis_no.ilike(pattern), model.engine_no.ilike(pattern)))
            .distinct()
            .limit(TRACK_LIMIT)
            .all()
        )
        for (chassis_no,) in rows:
            found.setdefault(chassis_no, None)
    return list(found)[:TRACK_LIMIT]


def track_vehicle(db: Session, *, user_id: str, term: str) -> List[schemas.VehicleTrack]:
    """History of every vehicle whose chassis or engine number is like `term`."""
    term = (term or "").strip()
    if not term:
        return []
    results = []
    for chassis_no in _matching_chassis(db, user_id=user_id, term=term):
        unit = stock_services.get_unit(db, user_id=user_id, chassis_no=chassis_no)

        purchase_rows = (
            db.query(purchase_models.PurchaseItem, purchase_models.Purchase)
            .join(purchase_models.Purchase, purchase_models.PurchaseItem.purchase_id == purchase_models.Purchase.id)
            .filter(purchase_models.PurchaseItem.user_id == user_id, purchase_models.PurchaseItem.chassis_no == chassis_no)
            .order_by(purchase_models.Purchase.invoice_date)
            .all()
        )
        purchase_return_rows = (
            db.query(purchase_models.PurchaseReturnItem, purchase_models.PurchaseReturn)
            .join(
                purchase_models.PurchaseReturn,
                purchase_models.PurchaseReturnItem.purchase_return_id == purchase_models.PurchaseReturn.id,
            )
            .filter(
                purchase_models.PurchaseReturnItem.user_id == user_id,
                purchase_models.PurchaseReturnItem.chassis_no == chassis_no,
            )
            .order_by(purchase_models.PurchaseReturn.return_date)
            .all()
        )
        invoice_rows = (
            db.query(sales_models.VehicleInvoiceItem, sales_models.VehicleInvoice)
            .join(sales_models.VehicleInvoice, sales_models.VehicleInvoiceItem.invoice_id == sales_models.VehicleInvoice.id)
            .filter(
                sales_models.VehicleInvoiceItem.user_id == user_id,
                sales_models.VehicleInvoiceItem.chassis_no == chassis_no,
            )
            .order_by(sales_models.VehicleInvoice.invoice_date)
            .all()
        )
        sales_return_rows = (
            db.query(sales_models.SalesReturnItem, sales_models.SalesReturn)
            .join(sales_models.SalesReturn, sales_models.SalesReturnItem.sales_return_id == sales_models.SalesReturn.id)
            .filter(sales_models.SalesReturnItem.user_id == user_id, sales_models.SalesReturnItem.chassis_no == chassis_no)
            .order_by(sales_models.SalesReturn.return_date)
            .all()
        )

        candidates = [unit] + [i for i, _ in reversed(invoice_rows)] + [i for i, _ in purchase_rows]
        latest = next((c for c in candidates if c is not None), None)

        results.append(
            schemas.VehicleTrack(
                chassis_no=chassis_no,
                engine_no=getattr(latest, "engine_no", None),
                model_name=getattr(latest, "model_name", None),
                colour=getattr(latest, "colour", None),
                in_stock=unit is not None,
                purchases=[
                    schemas.DocumentRef(id=p.id, number=p.invoice_no, date=p.invoice_date, party=p.party_name)
                    for _, p in purchase_rows
                ],
                purchase_returns=[
                    schemas.DocumentRef(id=r.id, number=r.return_invoice_no, date=r.return_date, party=r.party_name)
                    for _, r in purchase_return_rows
                ],
                invoices=[
                    schemas.DocumentRef(
                        id=inv.id,
                        number=inv.invoice_no,
                        date=inv.invoice_date,
                        party=inv.customer_name,
                        is_returned=bool(item.is_returned),
                    )
                    for item, inv in invoice_rows
                ],
                sales_returns=[
                    schemas.DocumentRef(id=r.id, number=r.return_invoice_no, date=r.return_date, party=r.customer_name)
                    for _, r in sales_return_rows
                ],
            )
        )
    return results


def consistency_report(db: Session, *, user_id: str) -> List[schemas.ConsistencyIssue]:
    """
    Chassis numbers that are in stock while on a live invoice line, or on
    more than one live invoice line. An empty list means the ledger holds.
    """
    live = (
        db.query(sales_models.VehicleInvoiceItem.chassis_no, sales_models.VehicleInvoice.invoice_no)
        .join(sales_models.VehicleInvoice, sales_models.VehicleInvoiceItem.invoice_id == sales_models.VehicleInvoice.id)
        .filter(
            sales_models.VehicleInvoiceItem.user_id == user_id,
            sales_models.VehicleInvoiceItem.is_returned.is_(False),
        )
        .all()
    )
    invoices_by_chassis: Dict[str, List[str]] = defaultdict(list)
    for chassis_no, invoice_no in live:
        invoices_by_chassis[chassis_no].append(invoice_no)
    if not invoices_by_chassis:
        return []

    in_stock = {
        chassis_no
        for (chassis_no,) in db.query(stock_models.StockUnit.chassis_no)
        .filter(
            stock_models.StockUnit.user_id == user_id,
            stock_models.StockUnit.chassis_no.in_(list(invoices_by_chassis)),
        )
        .all()
    }

    issues = []
    for chassis_no in sorted(invoices_by_chassis):
        invoice_nos = sorted(invoices_by_chassis[chassis_no])
        stocked = chassis_no in in_stock
        if len(invoice_nos) > 1:
            kind = "SOLD_TWICE"
        elif stocked:
            kind = "IN_STOCK_AND_SOLD"
        else:
            continue
        issues.append(
            schemas.ConsistencyIssue(chassis_no=chassis_no, kind=kind, in_stock=stocked, invoice_nos=invoice_nos)
        )
    return issues


def sales_register(db: Session, *, user_id: str, financial_year: Optional[str] = None) -> schemas.SalesRegister:
    start, end = fiscal.financial_year_bounds(financial_year)
    fy = fiscal.financial_year(start)
    invoices = (
        db.query(sales_models.VehicleInvoice)
        .filter(
            sales_models.VehicleInvoice.user_id == user_id,
            sales_models.VehicleInvoice.invoice_date >= start,
            sales_models.VehicleInvoice.invoice_date <= end,
        )
        .order_by(sales_models.VehicleInvoice.invoice_date, sales_models.VehicleInvoice.invoice_no)
        .all()
    )

    by_type: Dict[str, schemas.RegisterTotals] = {}
    overall = schemas.RegisterTotals()
    for invoice in invoices:
        bucket = by_type.setdefault(invoice.document_type.value, schemas.RegisterTotals())
        tax_total = invoice.cgst_total + invoice.sgst_total + invoice.igst_total
        for totals in (bucket, overall):
            totals.count += 1
            totals.taxable_total += invoice.taxable_total
            totals.tax_total += tax_total
            totals.grand_total += invoice.grand_total

    return schemas.SalesRegister(
        financial_year=fy,
        start_date=start,
        end_date=end,
        invoices=[schemas.SalesRegisterRow.model_validate(i) for i in invoices],
        totals_by_type=by_type,
        totals=overall,
    )
