"""Selectors for the job-work kernel (read side)."""

from jobwork_kernel.selectors.assignment_selector import AssignmentSelector
from jobwork_kernel.selectors.ledger_selector import LedgerSelector
from jobwork_kernel.selectors.return_selector import ReturnSelector
from jobwork_kernel.selectors.stock_selector import StockSelector

__all__ = [
    "AssignmentSelector",
    "LedgerSelector",
    "ReturnSelector",
    "StockSelector",
]
