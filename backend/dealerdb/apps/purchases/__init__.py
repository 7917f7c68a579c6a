"""
Purchases module.

Supplier purchases bring vehicles into stock; purchase returns send them
back to the supplier. Both sides keep `stock_units` in step inside the
same transaction as the document.
"""

from . import models  # noqa: F401
