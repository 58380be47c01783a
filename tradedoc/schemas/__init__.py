"""
TradeDoc Tracker - Pydantic Schemas Package
"""
