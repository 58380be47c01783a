"""
TradeDoc Tracker - Test Suite
"""
