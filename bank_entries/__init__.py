"""
Bank Entries Module
-------------------
Turns classified bank-statement rows into QuickBooks ledger documents
(Purchase, Deposit, Transfer) and reports per-row outcomes.
"""
