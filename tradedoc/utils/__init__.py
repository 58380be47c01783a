"""
TradeDoc Tracker - Utilities Package
"""
