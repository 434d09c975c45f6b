"""
Billing Engine

A loan billing engine for fixed-term, flat-interest weekly installment loans:
schedule generation, strict in-order payment recording, outstanding balance
and delinquency tracking. All financial math uses Decimal.
"""

__version__ = "1.0.0"
