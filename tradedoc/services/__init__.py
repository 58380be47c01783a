"""
TradeDoc Tracker - Services Package

Business logic layer.
"""
