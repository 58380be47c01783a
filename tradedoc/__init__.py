"""
TradeDoc Tracker

Trade-finance transaction tracking with document-completion workflow
and deadline reminders.
"""

__version__ = "1.0.0"
