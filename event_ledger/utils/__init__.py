"""
Event Ledger - Utilities
"""
