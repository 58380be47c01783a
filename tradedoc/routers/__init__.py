"""
TradeDoc Tracker - API Routers Package
"""
