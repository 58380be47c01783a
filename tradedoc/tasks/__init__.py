"""
TradeDoc Tracker - Background Tasks

Celery tasks for reminder sweeps and deferred dispatch.
"""
