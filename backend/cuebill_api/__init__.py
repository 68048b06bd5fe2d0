"""
CueBill venue API.

Session lifecycle and billing engine for a table-rental venue: opens play
sessions on tables, tracks paused time and consumable orders, and closes
them into invoices.
"""

__version__ = "0.1.0"
