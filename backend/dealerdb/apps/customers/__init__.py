"""
Customers module.

Buyer master data. Whether a customer carries a GSTIN decides which
invoice series their sales are numbered in.
"""

from . import models  # noqa: F401
