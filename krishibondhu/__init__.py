"""
KrishiBondhu Core

Loan tracking, simulated loan settlement and due-date reminders for
smallholder farmers. Loan amounts use Decimal throughout.
"""

__version__ = "1.0.0"
