# backend/dealerdb/__init__.py
"""
Import ORM models from each app so that Base.metadata.create_all() sees
every table. The model classes live in dealerdb/apps/*/models.py.
"""

from .apps.accounts import models as accounts_models          # users
from .apps.audit import models as audit_models                # audit trail
from .apps.numbering import models as numbering_models        # settings + counters
from .apps.customers import models as customers_models        # customer master
from .apps.stock import models as stock_models                # inventory ledger
from .apps.purchases import models as purchases_models        # purchases + purchase returns
from .apps.sales import models as sales_models                # vehicle invoices + sales returns
from .apps.workshop import models as workshop_models          # parts ledger + job cards

__all__ = [
    "accounts_models",
    "audit_models",
    "numbering_models",
    "customers_models",
    "stock_models",
    "purchases_models",
    "sales_models",
    "workshop_models",
]
