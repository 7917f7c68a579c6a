"""
Audit module.

Append-only trail of stock movements and of invoice, purchase and return
mutations.
"""

from . import models  # noqa: F401
