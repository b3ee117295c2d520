"""Execution Layer - order submission to a broker or simulation."""

from stockbasket.execution.base import (
    OrderSubmitter,
    SubmissionResult,
    SubmissionStatus,
    fills_from_results,
)
from stockbasket.execution.paper_submitter import PaperOrderSubmitter

__all__ = [
    # Abstract interface
    "OrderSubmitter",
    # Concrete implementations
    "PaperOrderSubmitter",
    # Data classes
    "SubmissionResult",
    "fills_from_results",
    # Enums
    "SubmissionStatus",
]
