"""
Sales module.

Vehicle invoices and sales returns. Every active invoice item holds a
vehicle that is out of stock; saving, editing or deleting an invoice moves
units between the invoice and `stock_units` in one transaction.
"""

from . import models  # noqa: F401
