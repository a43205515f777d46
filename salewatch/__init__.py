"""
salewatch - sale-event detection and sales ledger for a chat-driven delivery business
"""
__version__ = "0.1.0"
