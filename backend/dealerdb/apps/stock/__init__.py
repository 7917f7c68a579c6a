"""
Stock module.

Inventory ledger of individual vehicles keyed by chassis number. A row in
`stock_units` means the vehicle is on the showroom floor; selling it moves
its attributes onto an invoice item and removes the row.
"""

from . import models  # noqa: F401
