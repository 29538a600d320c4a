"""
Event Ledger - Pydantic Schemas
"""
