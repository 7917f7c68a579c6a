"""
Numbering module.

Dealer settings (company details, document prefixes) and the
per-financial-year document counters behind sales, return and job-card
numbers.
"""

from . import models  # noqa: F401
