"""
Utility modules for the clinic ledger backend.

This package contains shared helpers used across the application:
datetime/period handling, booking → session mapping tables and the
bulk-then-individual batch executor.
"""
