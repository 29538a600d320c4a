"""
Event Ledger - API Routers
"""
