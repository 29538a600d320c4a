"""
Event Ledger - Services
"""
