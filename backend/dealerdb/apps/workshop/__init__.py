"""
Workshop module.

Service job cards and the spare parts they consume. Parts are counted by
quantity, not by chassis: saving a job card deducts its parts from the
ledger, editing it applies the difference and deleting it puts them back.
"""

from . import models  # noqa: F401
