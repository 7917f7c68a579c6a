from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parent
sys.path.append(str(ROOT))

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["DATABASE_WRITE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["DEFAULT_STATE"] = "Kerala"

from dealerdb.database import Base  # noqa: E402
from dealerdb.apps.accounts import models as account_models  # noqa: E402
from dealerdb.apps.audit import models as audit_models  # noqa: E402
from dealerdb.apps.numbering import models as numbering_models  # noqa: E402
from dealerdb.apps.customers import models as customer_models  # noqa: E402
from dealerdb.apps.stock import models as stock_models  # noqa: E402
from dealerdb.apps.purchases import models as purchase_models  # noqa: E402
from dealerdb.apps.sales import models as sales_models  # noqa: E402
from dealerdb.apps.workshop import models as workshop_models  # noqa: E402


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(
        bind=engine,
        tables=[
            account_models.User.__table__,
            audit_models.AuditEvent.__table__,
            numbering_models.DealerSettings.__table__,
            numbering_models.InvoiceCounter.__table__,
            customer_models.Customer.__table__,
            stock_models.StockUnit.__table__,
            purchase_models.Purchase.__table__,
            purchase_models.PurchaseItem.__table__,
            purchase_models.PurchaseReturn.__table__,
            purchase_models.PurchaseReturnItem.__table__,
            sales_models.VehicleInvoice.__table__,
            sales_models.VehicleInvoiceItem.__table__,
            sales_models.SalesReturn.__table__,
            sales_models.SalesReturnItem.__table__,
            workshop_models.WorkshopPart.__table__,
            workshop_models.JobCard.__table__,
            workshop_models.JobCardItem.__table__,
        ],
    )
    TestingSession = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
