"""
Accounts module.

Dealer user accounts. Every business row in the portal is scoped by the
owning user's id, resolved once per request by `dealerdb.security`.
"""

from . import models  # noqa: F401
