"""
Lendbook Loan Servicing Core

Amortization schedules, fee calculation and payment application for a small
lending back office. Monetary math uses Decimal throughout and state changes
are recorded in a hash-chained audit trail.
"""

__version__ = "1.0.0"
