"""Custom exceptions for StockBasket.

This module defines the exception hierarchy for the application.

Validation errors are normally returned inside plan/edit results rather than
raised; callers that prefer exceptions can raise the returned instance.
"""


class StockBasketError(Exception):
    """Base exception for all StockBasket errors.

    All custom exceptions in the application should inherit from this class.
    """

    pass


class ConfigurationError(StockBasketError):
    """Raised when configuration is invalid or missing.

    Examples:
        - Configuration file not found
        - Engine setting outside its allowed range
    """

    pass


class ValidationError(StockBasketError):
    """Caller-correctable input problem.

    Examples:
        - Basket weights do not sum to 100
        - More than the allowed number of constituents
        - Investment amount below the basket minimum
    """

    pass


class BasketValidationError(ValidationError):
    """Raised (or returned) when a basket edit or save is rejected.

    Examples:
        - Adding a 21st constituent
        - Adjusting a weight on an empty basket
        - Duplicate exchange/symbol pair
    """

    pass


class InsufficientInvestmentError(ValidationError):
    """Returned when a cash amount is below the basket's minimum investment."""

    def __init__(self, amount, minimum) -> None:
        super().__init__(
            f"Investment amount {amount} is below the basket minimum {minimum}"
        )
        self.amount = amount
        self.minimum = minimum


class InvariantViolation(StockBasketError):
    """Programmer error: an engine invariant was broken.

    Never expected on a valid input path. Examples:
        - Non-positive order quantity
        - Weight outside [0, 100] after normalization
    """

    pass


class SIPError(StockBasketError):
    """Base exception for SIP schedule errors."""

    pass


class SIPStateError(SIPError):
    """Returned when a SIP transition is not allowed from the current status.

    Examples:
        - Resuming a schedule that is not paused
        - Any transition out of CANCELLED or COMPLETED
    """

    pass


class CollaboratorError(StockBasketError):
    """Base exception for failures of external collaborators."""

    pass


class PriceProviderError(CollaboratorError):
    """Raised when the price provider cannot deliver a snapshot.

    Examples:
        - Broker quote API unreachable
        - Session token expired
    """

    pass


class OrderSubmissionError(CollaboratorError):
    """Raised when the order submitter fails as a whole.

    Per-order rejections are reported as results, not raised.
    """

    pass


class SIPValidationError(SIPError, ValidationError):
    """Returned when SIP creation or update input is invalid.

    Examples:
        - Installment amount below the minimum
        - End date before start date
    """

    pass
