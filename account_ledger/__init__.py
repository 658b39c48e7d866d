"""
Account Ledger Service

Account ledger microservice: creates accounts, tracks balances and applies
debits, credits, transfers and interest accrual under account-type rules.
All monetary values use Decimal.
"""

__version__ = "1.0.0"
