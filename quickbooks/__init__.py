"""
QuickBooks Online integration.

Owns the OAuth credential lifecycle for each connected company (realm) and
the gateway that issues authenticated calls against the accounting API.
"""
