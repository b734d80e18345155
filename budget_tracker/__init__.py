"""
Budget Tracker

Personal and property finance bookkeeping backed by a schema-versioned
local record store, with Decimal loan amortization and recurring posting.
"""

__version__ = "1.0.0"
