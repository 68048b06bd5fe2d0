"""
Billing: pure cost arithmetic (calculator) and invoice assembly.
"""

from .calculator import (
    PricingSnapshot,
    InvoiceTotals,
    CostEstimate,
    billable_minutes,
    occupancy_cost,
    compute_tax,
    compute_invoice_totals,
    estimate,
)
from .invoice_assembler import InvoiceAssembler

__all__ = [
    "PricingSnapshot",
    "InvoiceTotals",
    "CostEstimate",
    "billable_minutes",
    "occupancy_cost",
    "compute_tax",
    "compute_invoice_totals",
    "estimate",
    "InvoiceAssembler",
]
