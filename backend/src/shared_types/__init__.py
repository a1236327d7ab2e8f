"""
Shared types package.

Dataclass result types returned by the booking/ledger services so that API
handlers, scripts and tests all see the same shapes.
"""
