"""
Event Ledger - Event-driven double-entry journal engine.
"""

__version__ = "0.1.0"
